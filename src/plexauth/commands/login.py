"""Login commands -- obtain and check plex.tv auth tokens.

``plexauth login`` runs the PIN flow: it creates a PIN, prints the
authorization URL to stderr, waits for the user to approve it, and prints
the token to stdout so it can be captured::

    export PLEX_TOKEN=$(plexauth login --device-name "NAS")

``plexauth validate`` asks plex.tv whether a token is still good and
reports it through both stdout and the exit code.
"""

from __future__ import annotations

import webbrowser
from typing import Optional

import typer

from plexauth.exceptions import PlexAuthError
from plexauth.exit_codes import EXIT_INVALID_TOKEN
from plexauth.models import Claim
from plexauth.output import debug, error, info, print_result, success, suggest, warning


def _open_in_browser(auth_url: str) -> None:
    try:
        opened = webbrowser.open(auth_url)
    except webbrowser.Error as exc:
        debug(f"Could not open a browser: {exc}")
        opened = False
    if not opened:
        warning("Could not open a browser; open the URL above manually.")


def login_command(
    ctx: typer.Context,
    device_name: Optional[str] = typer.Option(
        None,
        "--device-name",
        "-d",
        help="Name shown on the plex.tv Authorized Devices page.",
    ),
    app_name: Optional[str] = typer.Option(
        None, "--app-name", help="Product name sent as X-Plex-Product."
    ),
    app_version: Optional[str] = typer.Option(
        None, "--app-version", help="Product version shown while approving."
    ),
    client_id: Optional[str] = typer.Option(
        None,
        "--client-id",
        help="X-Plex-Client-Identifier (random per run when omitted).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        "-t",
        min=0.001,
        help="Give up after this many seconds (never longer than 30 minutes).",
    ),
    open_browser: bool = typer.Option(
        False, "--open/--no-open", help="Open the authorization URL in a browser."
    ),
) -> None:
    """Sign in to plex.tv and print the auth token.

    Settings come from CLI options, then ``PLEXAUTH_*`` environment
    variables, then the config file. When no device name is configured
    and prompts are allowed, the user is asked for one.

    Raises:
        typer.Exit: With the error's exit code when any step fails
            (6 network, 5 protocol, 4 timeout).

    Example::

        plexauth login --device-name "Living room"
        plexauth --json login --timeout 300
    """
    from plexauth.client import PlexClient
    from plexauth.config import resolve_settings
    from plexauth.flow import PinLogin, display_auth_url

    no_input = bool(ctx.obj.get("no_input")) if ctx.obj else False

    try:
        settings = resolve_settings(
            device_name=device_name,
            app_name=app_name,
            app_version=app_version,
            client_id=client_id,
        )
    except PlexAuthError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    if settings.device_name is None and not no_input:
        entered = typer.prompt(
            "Please enter a device name", default="", show_default=False
        )
        settings = settings.model_copy(update={"device_name": entered.strip() or None})

    def present(auth_url: str, claim: Claim) -> None:
        display_auth_url(auth_url, claim)
        if open_browser:
            _open_in_browser(auth_url)

    try:
        with PlexClient.from_settings(settings) as client:
            result = PinLogin(client, settings, present=present).run(timeout=timeout)
    except PlexAuthError as exc:
        error(str(exc))
        suggest("Run 'plexauth login' again to request a new PIN.")
        raise typer.Exit(code=exc.exit_code) from None

    success("Authenticated.")
    if settings.client_id is None:
        info(f"Client identifier: {result.client_id}")
    print_result({"token": result.token})


def validate_command(
    token: str = typer.Argument(
        ..., envvar="PLEX_TOKEN", help="Token to check (default: $PLEX_TOKEN)."
    ),
    client_id: Optional[str] = typer.Option(
        None, "--client-id", help="X-Plex-Client-Identifier to check against."
    ),
    app_name: Optional[str] = typer.Option(
        None, "--app-name", help="Product name sent as X-Plex-Product."
    ),
) -> None:
    """Check whether a token is still accepted by plex.tv.

    Prints ``valid`` or ``invalid``. Exits 0 when valid, 3 when plex.tv
    rejects the token, and 5 or 6 when validity could not be determined.

    Example::

        plexauth validate "$PLEX_TOKEN" && echo ok
    """
    from plexauth.client import PlexClient
    from plexauth.config import resolve_settings
    from plexauth.ids import generate_client_id

    try:
        settings = resolve_settings(client_id=client_id, app_name=app_name)
        with PlexClient.from_settings(settings) as client:
            valid = client.validate_token(
                settings.app_name, settings.client_id or generate_client_id(), token
            )
    except PlexAuthError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    print_result({"status": "valid" if valid else "invalid"})
    if not valid:
        raise typer.Exit(code=EXIT_INVALID_TOKEN)
