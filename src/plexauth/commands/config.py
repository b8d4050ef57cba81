"""Config commands -- view and modify stored settings.

Provides the ``plexauth config`` sub-command group. Values written here
land in the JSON config file (see :func:`plexauth.config.config_path`)
and sit below environment variables and CLI flags in precedence.
"""

from __future__ import annotations

import typer

from plexauth.exceptions import PlexAuthError
from plexauth.output import error, info, print_result, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show() -> None:
    """Show the effective configuration.

    Prints the config file location to stderr and the merged settings
    (file, environment, defaults) to stdout.

    Example::

        plexauth config show
        plexauth --json config show
    """
    from plexauth.config import config_path, resolve_settings

    try:
        settings = resolve_settings()
    except PlexAuthError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    info(f"Config file: {config_path()}")
    print_result(settings.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Setting name, e.g. 'client_id' or 'poll_timeout'."),
    value: str = typer.Argument(help="Value to store."),
) -> None:
    """Store a setting in the config file.

    The value is validated against the settings model before anything is
    written.

    Raises:
        typer.Exit: With code 1 if the key is unknown or the value invalid.

    Example::

        plexauth config set device_name "Living room"
        plexauth config set poll_timeout 300
    """
    from plexauth.config import set_value

    try:
        set_value(key, value)
    except PlexAuthError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    success(f"Set {key} = {value}")


@config_app.command("unset")
def config_unset(
    key: str = typer.Argument(help="Setting name to remove from the config file."),
) -> None:
    """Remove a setting from the config file so its default applies again."""
    from plexauth.config import set_value

    try:
        set_value(key, None)
    except PlexAuthError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    success(f"Unset {key}")
