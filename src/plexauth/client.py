"""Transports for the plex.tv v2 API.

:class:`PlexClient` wraps :class:`httpx.Client` and :class:`AsyncPlexClient`
wraps :class:`httpx.AsyncClient`. Both expose the three calls the PIN
flow needs:

- :meth:`~PlexClient.validate_token` -- ``GET /user``
- :meth:`~PlexClient.create_claim` -- ``POST /pins``
- :meth:`~PlexClient.poll_claim` -- ``GET /pins/{id}``

Every request sends a form-encoded body and ``Accept: application/json``.
Failures are mapped once, here:

- network errors -> :class:`~plexauth.exceptions.TransportError`
- unexpected status or body -> :class:`~plexauth.exceptions.ProtocolError`

Nothing is retried. Each response is read in full and closed before the
call returns, so a long poll loop does not pile up open connections.

See Also:
    :mod:`plexauth.poller` for the loop built on :meth:`~PlexClient.poll_claim`.
"""

from __future__ import annotations

from typing import Any, Optional, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from plexauth.exceptions import ProtocolError, TransportError
from plexauth.models import PLEX_API_BASE_URL, Claim, PollResponse, Settings
from plexauth.output import debug

_M = TypeVar("_M", bound=BaseModel)

_HEADERS = {"Accept": "application/json"}


def _claim_form(app_name: str, client_id: str) -> dict[str, str]:
    return {
        "strong": "true",
        "X-Plex-Product": app_name,
        "X-Plex-Client-Identifier": client_id,
    }


def _poll_form(claim: Claim, client_id: str) -> dict[str, str]:
    return {"code": claim.code, "X-Plex-Client-Identifier": client_id}


def _user_form(app_name: str, client_id: str, token: str) -> dict[str, str]:
    return {
        "X-Plex-Product": app_name,
        "X-Plex-Client-Identifier": client_id,
        "X-Plex-Token": token,
    }


def _decode(operation: str, response: httpx.Response, model: type[_M]) -> _M:
    """Check for a 2xx status and parse the JSON body into *model*.

    Raises:
        ProtocolError: On a non-2xx status (``status_code`` set) or a body
            that is not JSON of the expected shape (``status_code`` unset).
    """
    if not response.is_success:
        raise ProtocolError(
            f"{operation}: unexpected status code {response.status_code}",
            status_code=response.status_code,
        )
    try:
        return model.model_validate(response.json())
    except (ValueError, ValidationError) as exc:
        raise ProtocolError(f"{operation}: undecodable response body: {exc}") from exc


def _validity(response: httpx.Response) -> bool:
    status = response.status_code
    if status == 200:
        return True
    if status == 401:
        return False
    raise ProtocolError(
        f"validate_token: unable to determine token validity, "
        f"received status code {status}",
        status_code=status,
    )


class PlexClient:
    """Blocking client for the plex.tv v2 API.

    Must be used as a context manager so the underlying connection pool
    is opened and closed.

    Args:
        base_url: API root. Defaults to ``https://plex.tv/api/v2/``.
        timeout: Per-request timeout in seconds.
        transport: Optional :class:`httpx.BaseTransport`, e.g. an
            :class:`httpx.MockTransport` in tests.

    Example::

        with PlexClient() as client:
            claim = client.create_claim("My App", client_id)
    """

    def __init__(
        self,
        base_url: str = PLEX_API_BASE_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._base_url = base_url
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: Optional[httpx.BaseTransport] = None
    ) -> PlexClient:
        return cls(base_url=settings.base_url, timeout=settings.timeout, transport=transport)

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> PlexClient:
        self._client = httpx.Client(
            base_url=self._base_url,
            timeout=self._timeout,
            headers=_HEADERS,
            transport=self._transport,
        )
        return self

    def __exit__(self, *args: object) -> None:
        if self._client:
            self._client.close()
            self._client = None

    # ------------------------------------------------------------------ #
    # API calls
    # ------------------------------------------------------------------ #

    def validate_token(self, app_name: str, client_id: str, token: str) -> bool:
        """Ask plex.tv whether *token* currently authorizes this client.

        Returns:
            ``True`` on HTTP 200, ``False`` on HTTP 401.

        Raises:
            TransportError: If the request fails at the network level.
            ProtocolError: On any other status code.
        """
        response = self._send(
            "validate_token", "GET", "/user", _user_form(app_name, client_id, token)
        )
        return _validity(response)

    def create_claim(self, app_name: str, client_id: str) -> Claim:
        """Request a new strong PIN.

        Args:
            app_name: Sent as ``X-Plex-Product``.
            client_id: Sent as ``X-Plex-Client-Identifier``. Polling must
                use the same value.

        Raises:
            TransportError: If the request fails at the network level.
            ProtocolError: On a non-2xx status or a body without an
                integer ``id`` and string ``code``.
        """
        response = self._send(
            "create_claim", "POST", "/pins", _claim_form(app_name, client_id)
        )
        claim = _decode("create_claim", response, Claim)
        debug(f"Created PIN {claim.id}")
        return claim

    def poll_claim(self, claim: Claim, client_id: str) -> Optional[str]:
        """Check once whether *claim* has been approved.

        Returns:
            The auth token, or ``None`` while the PIN is still pending.

        Raises:
            TransportError: If the request fails at the network level.
            ProtocolError: On a non-2xx status or an undecodable body.
        """
        response = self._send(
            "poll_claim", "GET", f"/pins/{claim.id}", _poll_form(claim, client_id)
        )
        return _decode("poll_claim", response, PollResponse).auth_token

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _send(
        self, operation: str, method: str, path: str, data: dict[str, Any]
    ) -> httpx.Response:
        """Send one request, read the body, and release the connection."""
        assert self._client is not None, "Client not initialised -- use as context manager"

        try:
            response = self._client.request(method, path, data=data)
        except httpx.HTTPError as exc:
            raise TransportError(f"{operation}: {exc}") from exc
        try:
            response.read()
        except httpx.HTTPError as exc:
            raise TransportError(f"{operation}: {exc}") from exc
        finally:
            response.close()

        debug(f"{operation}: {method} {path} -> HTTP {response.status_code}")
        return response


class AsyncPlexClient:
    """Non-blocking counterpart of :class:`PlexClient`.

    Same calls and the same error mapping, backed by
    :class:`httpx.AsyncClient`. Must be used as an async context manager.

    Example::

        async with AsyncPlexClient() as client:
            claim = await client.create_claim("My App", client_id)
    """

    def __init__(
        self,
        base_url: str = PLEX_API_BASE_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> AsyncPlexClient:
        return cls(base_url=settings.base_url, timeout=settings.timeout, transport=transport)

    async def __aenter__(self) -> AsyncPlexClient:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            headers=_HEADERS,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def validate_token(self, app_name: str, client_id: str, token: str) -> bool:
        """Async :meth:`PlexClient.validate_token`."""
        response = await self._send(
            "validate_token", "GET", "/user", _user_form(app_name, client_id, token)
        )
        return _validity(response)

    async def create_claim(self, app_name: str, client_id: str) -> Claim:
        """Async :meth:`PlexClient.create_claim`."""
        response = await self._send(
            "create_claim", "POST", "/pins", _claim_form(app_name, client_id)
        )
        claim = _decode("create_claim", response, Claim)
        debug(f"Created PIN {claim.id}")
        return claim

    async def poll_claim(self, claim: Claim, client_id: str) -> Optional[str]:
        """Async :meth:`PlexClient.poll_claim`."""
        response = await self._send(
            "poll_claim", "GET", f"/pins/{claim.id}", _poll_form(claim, client_id)
        )
        return _decode("poll_claim", response, PollResponse).auth_token

    async def _send(
        self, operation: str, method: str, path: str, data: dict[str, Any]
    ) -> httpx.Response:
        assert self._client is not None, "Client not initialised -- use as async context manager"

        try:
            response = await self._client.request(method, path, data=data)
        except httpx.HTTPError as exc:
            raise TransportError(f"{operation}: {exc}") from exc
        try:
            await response.aread()
        except httpx.HTTPError as exc:
            raise TransportError(f"{operation}: {exc}") from exc
        finally:
            await response.aclose()

        debug(f"{operation}: {method} {path} -> HTTP {response.status_code}")
        return response
