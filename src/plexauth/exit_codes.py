"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a failure category and is referenced by the
corresponding :class:`~plexauth.exceptions.PlexAuthError` subclass, so
shell wrappers can tell a rejected token from an unreachable server
without parsing stderr.

Example::

    $ plexauth validate "$PLEX_TOKEN"
    $ echo $?
    3   # EXIT_INVALID_TOKEN -- plex.tv answered 401
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments."""

EXIT_INVALID_TOKEN = 3
"""The token was checked and plex.tv rejected it."""

EXIT_TIMEOUT = 4
"""The PIN was not approved before the deadline, or polling was cancelled."""

EXIT_PROTOCOL_ERROR = 5
"""plex.tv returned an unexpected status code or an undecodable body."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred (timeout, DNS failure, connection refused)."""

EXIT_INTERRUPTED = 130
"""The user pressed Ctrl-C."""
