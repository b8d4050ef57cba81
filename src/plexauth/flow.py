"""End-to-end PIN login.

Flow:
    1. ``POST /pins`` to obtain a fresh :class:`~plexauth.models.Claim`.
    2. Build the authorization URL and hand it to a presenter, which by
       default prints it to stderr.
    3. Poll ``GET /pins/{id}`` until the user approves it or the deadline
       passes.

Errors from any step propagate unchanged. Retrying means calling
:meth:`PinLogin.run` again, which requests a new PIN; a claim is never
reused.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Callable, Optional

from plexauth.auth_url import build_auth_url
from plexauth.client import AsyncPlexClient, PlexClient
from plexauth.ids import generate_client_id
from plexauth.models import AuthURLOptions, Claim, LoginResult, Settings
from plexauth.output import info
from plexauth.poller import AsyncPoller, Poller

Presenter = Callable[[str, Claim], None]


def display_auth_url(auth_url: str, claim: Claim) -> None:
    """Print the authorization URL to stderr."""
    info("")
    info(f"Please visit {auth_url} to authenticate.")
    info("")
    info("Waiting for authorization...")


def default_url_options(settings: Settings) -> AuthURLOptions:
    """Device metadata for the authorization URL taken from *settings*."""
    return AuthURLOptions(
        app_version=settings.app_version,
        device_name=settings.device_name or "",
    )


class _LoginBase:
    def __init__(self, settings: Settings, present: Optional[Presenter] = None) -> None:
        self._settings = settings
        self._present = present or display_auth_url

    def _client_id(self) -> str:
        return self._settings.client_id or generate_client_id()

    def _timeout(self, timeout: Optional[float]) -> Optional[float]:
        return timeout if timeout is not None else self._settings.poll_timeout

    def _auth_url(
        self, client_id: str, claim: Claim, options: Optional[AuthURLOptions]
    ) -> str:
        if options is None:
            options = default_url_options(self._settings)
        return build_auth_url(self._settings.app_name, client_id, claim.code, options)


class PinLogin(_LoginBase):
    """Run the PIN flow with a blocking :class:`~plexauth.client.PlexClient`.

    Args:
        client: An entered client.
        settings: Supplies the app name, client id, poll interval and
            default timeout.
        present: Called with the authorization URL and the claim before
            polling starts. Defaults to :func:`display_auth_url`.

    Example::

        with PlexClient.from_settings(settings) as client:
            result = PinLogin(client, settings).run()
        print(result.token)
    """

    def __init__(
        self,
        client: PlexClient,
        settings: Settings,
        present: Optional[Presenter] = None,
    ) -> None:
        super().__init__(settings, present)
        self._client = client
        self.poller: Optional[Poller] = None

    def run(
        self,
        options: Optional[AuthURLOptions] = None,
        timeout: Optional[float] = None,
        cancel: Optional[threading.Event] = None,
    ) -> LoginResult:
        """Request a PIN, present it, and wait for approval.

        Args:
            options: Device metadata for the URL; defaults to the app
                version and device name from the settings.
            timeout: Polling budget in seconds; defaults to
                ``settings.poll_timeout``. Always capped at 30 minutes.
            cancel: Event that stops polling early when set.

        Returns:
            A :class:`~plexauth.models.LoginResult` holding the token.

        Raises:
            TransportError: A request failed at the network level.
            ProtocolError: plex.tv answered with an unexpected status or body.
            EncodingError: The authorization URL could not be built.
            TimeoutError_: The PIN was not approved in time, or *cancel* was set.
        """
        client_id = self._client_id()
        claim = self._client.create_claim(self._settings.app_name, client_id)
        auth_url = self._auth_url(client_id, claim, options)
        self._present(auth_url, claim)

        self.poller = Poller(self._client, interval=self._settings.poll_interval)
        token = self.poller.poll(
            claim, client_id, timeout=self._timeout(timeout), cancel=cancel
        )
        return LoginResult(token=token, claim=claim, auth_url=auth_url, client_id=client_id)


class AsyncPinLogin(_LoginBase):
    """:class:`PinLogin` for an :class:`~plexauth.client.AsyncPlexClient`."""

    def __init__(
        self,
        client: AsyncPlexClient,
        settings: Settings,
        present: Optional[Presenter] = None,
    ) -> None:
        super().__init__(settings, present)
        self._client = client
        self.poller: Optional[AsyncPoller] = None

    async def run(
        self,
        options: Optional[AuthURLOptions] = None,
        timeout: Optional[float] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> LoginResult:
        client_id = self._client_id()
        claim = await self._client.create_claim(self._settings.app_name, client_id)
        auth_url = self._auth_url(client_id, claim, options)
        self._present(auth_url, claim)

        self.poller = AsyncPoller(self._client, interval=self._settings.poll_interval)
        token = await self.poller.poll(
            claim, client_id, timeout=self._timeout(timeout), cancel=cancel
        )
        return LoginResult(token=token, claim=claim, auth_url=auth_url, client_id=client_id)
