"""Exception hierarchy for plexauth.

All exceptions inherit from :class:`PlexAuthError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`plexauth.exit_codes`.
The top-level handler in :func:`plexauth.app.main` catches
``PlexAuthError`` and exits with the matching code.

Subclass hierarchy::

    PlexAuthError (exit 1)
    +-- TransportError  (exit 6)
    +-- ProtocolError   (exit 5)
    +-- TimeoutError_   (exit 4)
    +-- EncodingError   (exit 1)
    +-- ConfigError     (exit 1)
"""

from __future__ import annotations

from typing import Optional

from plexauth.exit_codes import (
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_PROTOCOL_ERROR,
    EXIT_TIMEOUT,
)


class PlexAuthError(Exception):
    """Base exception for all plexauth errors.

    Args:
        message: Human-readable error description, prefixed with the
            operation that failed (e.g. ``"create_claim: ..."``).
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class TransportError(PlexAuthError):
    """Raised when a request to plex.tv cannot be sent or completed."""

    exit_code = EXIT_CONNECTION_ERROR


class ProtocolError(PlexAuthError):
    """Raised on an unexpected HTTP status or a response body of the wrong shape.

    Args:
        message: Human-readable error description.
        status_code: The offending HTTP status, or ``None`` when the
            status was fine but the body could not be decoded.
    """

    exit_code = EXIT_PROTOCOL_ERROR

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TimeoutError_(PlexAuthError):
    """Raised when a PIN is not claimed before the effective deadline.

    Also raised when the caller cancels polling; ``cancelled`` tells the
    two apart. Named with a trailing underscore to avoid shadowing the
    built-in ``TimeoutError``.
    """

    exit_code = EXIT_TIMEOUT

    def __init__(self, message: str, cancelled: bool = False):
        super().__init__(message)
        self.cancelled = cancelled


class EncodingError(PlexAuthError):
    """Raised when the authorization URL query string cannot be encoded."""


class ConfigError(PlexAuthError):
    """Raised for configuration problems (invalid JSON, unknown keys, bad values)."""
