"""Pydantic models shared across plexauth.

Two groups live here:

**Wire models** -- shapes of plex.tv JSON responses:
    :class:`Claim` (``POST /pins``) and :class:`PollResponse`
    (``GET /pins/{id}``).

**Value and configuration models** -- :class:`AuthURLOptions`,
:class:`PollState`, :class:`PollOutcome`, :class:`LoginResult`, and
:class:`Settings`.

Wire models ignore unknown keys because plex.tv returns far more fields
than the PIN flow needs.
"""

from __future__ import annotations

import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr

from plexauth import __version__

PLEX_API_BASE_URL = "https://plex.tv/api/v2/"
PLEX_AUTH_APP_URL = "https://app.plex.tv/auth#?"
PIN_LIFETIME_SECONDS = 30 * 60


# --- Wire models ---


class Claim(BaseModel):
    """A claimable PIN issued by plex.tv.

    Immutable once created. plex.tv expires it after 30 minutes; it is
    never persisted and a new one is requested for every login attempt.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: StrictInt = Field(gt=0)
    code: StrictStr = Field(min_length=1)


class PollResponse(BaseModel):
    """Body of ``GET /pins/{id}``.

    ``auth_token`` stays ``None`` until the user approves the PIN.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    auth_token: Optional[StrictStr] = Field(default=None, alias="authToken")


# --- Values ---


class AuthURLOptions(BaseModel):
    """Extra device metadata shown on the plex.tv Authorized Devices page.

    Every field is optional. Empty strings are left out of the
    authorization URL entirely.
    """

    model_config = ConfigDict(frozen=True)

    app_version: str = ""
    device_name: str = ""
    device: str = Field(default="", description="Short descriptor of the device")
    platform: str = Field(
        default="", description="Selects the icon on the Authorized Devices page"
    )
    platform_version: str = ""


class PollState(str, enum.Enum):
    """States of the PIN poll loop."""

    PENDING = "pending"
    FULFILLED = "fulfilled"
    EXPIRED = "expired"
    FAILED = "failed"


class PollOutcome(BaseModel):
    """Final record of one poll loop run."""

    state: PollState
    token: Optional[str] = None
    attempts: int = 0
    elapsed: float = 0.0


class LoginResult(BaseModel):
    """Everything produced by a successful :class:`~plexauth.flow.PinLogin` run."""

    token: str
    claim: Claim
    auth_url: str
    client_id: str


# --- Configuration ---


class Settings(BaseModel):
    """Effective configuration, persisted at ``~/.config/plexauth/config.json``.

    Loaded and merged by :func:`~plexauth.config.resolve_settings`. See
    that function for the precedence chain.
    """

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    app_name: str = Field(default="plexauth", description="X-Plex-Product sent to plex.tv")
    app_version: str = Field(default=__version__)
    client_id: Optional[str] = Field(
        default=None,
        description="X-Plex-Client-Identifier; generated per run when unset",
    )
    device_name: Optional[str] = Field(
        default=None, description="Device name shown on the Authorized Devices page"
    )
    base_url: str = Field(default=PLEX_API_BASE_URL)
    timeout: float = Field(default=30.0, gt=0, description="HTTP timeout in seconds")
    poll_interval: float = Field(default=1.0, gt=0, description="Seconds between polls")
    poll_timeout: Optional[float] = Field(
        default=None,
        gt=0,
        description="Give up polling after this many seconds (capped at 30 minutes)",
    )
