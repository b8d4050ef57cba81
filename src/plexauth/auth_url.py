"""Authorization URL construction.

The user approves a PIN by opening ``https://app.plex.tv/auth#?<query>``
in a browser. The query is form-encoded with keys sorted alphabetically,
so identical inputs always produce an identical URL::

    >>> build_auth_url("App", "abc123", "XYZ9")
    'https://app.plex.tv/auth#?clientID=abc123&code=XYZ9&context%5Bdevice%5D%5Bproduct%5D=App'
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import quote_plus, urlencode

from plexauth.exceptions import EncodingError
from plexauth.models import PLEX_AUTH_APP_URL, AuthURLOptions


def auth_url_params(
    app_name: str,
    client_id: str,
    pin_code: str,
    options: Optional[AuthURLOptions] = None,
) -> dict[str, str]:
    """Return the query parameters for the authorization URL.

    Required keys are always present, even when empty. Optional keys are
    present only when the matching option is a non-empty string.
    """
    params: dict[str, str] = {
        "clientID": client_id,
        "code": pin_code,
        "context[device][product]": app_name,
    }
    if options is None:
        return params

    if options.app_version:
        params["context[device][version]"] = options.app_version
    if options.device_name:
        params["context[device][deviceName]"] = options.device_name
    if options.device:
        params["context[device][device]"] = options.device
    if options.platform:
        params["context[device][platform]"] = options.platform
    if options.platform_version:
        params["context[device][platformVersion]"] = options.platform_version
    return params


def build_auth_url(
    app_name: str,
    client_id: str,
    pin_code: str,
    options: Optional[AuthURLOptions] = None,
) -> str:
    """Build the URL a user opens to approve a PIN.

    Pure: no network access, and the same arguments always give the same
    string.

    Args:
        app_name: Product name, shown to the user while approving.
        client_id: The ``X-Plex-Client-Identifier`` used to create the PIN.
        pin_code: :attr:`Claim.code <plexauth.models.Claim.code>` of the PIN.
        options: Extra device metadata; empty fields are omitted.

    Returns:
        ``https://app.plex.tv/auth#?`` followed by the encoded query.

    Raises:
        EncodingError: If a value is not a string or cannot be encoded
            as UTF-8.
    """
    params = auth_url_params(app_name, client_id, pin_code, options)
    for key, value in params.items():
        if not isinstance(value, str):
            raise EncodingError(
                f"build_auth_url: value for '{key}' must be a string, "
                f"got {type(value).__name__}"
            )

    try:
        query = urlencode(sorted(params.items()), quote_via=quote_plus)
    except UnicodeError as exc:
        raise EncodingError(f"build_auth_url: {exc}") from exc

    return PLEX_AUTH_APP_URL + query
