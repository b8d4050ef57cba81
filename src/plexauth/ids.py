"""Random client identifiers for the ``X-Plex-Client-Identifier`` header."""

from __future__ import annotations

import secrets
import string

_ALPHABET = string.ascii_letters + string.digits


def generate_client_id(prefix: str = "plexauth-", length: int = 10) -> str:
    """Return *prefix* followed by *length* random alphanumeric characters.

    plex.tv lists each identifier as a separate device, so a fresh one per
    run is fine for one-off logins; set ``client_id`` in the config to
    keep a stable device entry.
    """
    return prefix + "".join(secrets.choice(_ALPHABET) for _ in range(length))
