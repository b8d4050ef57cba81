"""Shared test fixtures for plexauth.

Provides a fake plex.tv built on :class:`httpx.MockTransport`, isolated
config directories, output state management, and a CLI runner. These
fixtures are discovered by pytest and available to every test module.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Optional

import httpx
import pytest

from plexauth.client import PlexClient
from plexauth.models import Settings
from plexauth.output import OutputFormat, OutputManager, reset_output, set_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The manager caches sys.stdout/sys.stderr at creation time; CliRunner
    swaps those streams, so a manager left over from one test would write
    to closed files in the next.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Fake plex.tv
# ---------------------------------------------------------------------------


class FakePlex:
    """Scripted stand-in for the three plex.tv endpoints the PIN flow uses.

    ``poll_responses`` is consumed one entry per ``GET /pins/{id}``; the
    last entry repeats once the list runs out. An entry is either a JSON
    body for a 200 response or a ready-made :class:`httpx.Response`.
    """

    def __init__(
        self,
        claim: Optional[dict[str, Any]] = None,
        poll_responses: Optional[list[Any]] = None,
        user_status: int = 200,
    ) -> None:
        self.claim = claim if claim is not None else {"id": 1234, "code": "XYZ9"}
        self.poll_responses = poll_responses or [{"authToken": None}]
        self.user_status = user_status
        self.requests: list[httpx.Request] = []
        self.poll_count = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if request.method == "POST" and path == "/api/v2/pins":
            return httpx.Response(201, json=self.claim)

        if request.method == "GET" and path.startswith("/api/v2/pins/"):
            idx = min(self.poll_count, len(self.poll_responses) - 1)
            self.poll_count += 1
            entry = self.poll_responses[idx]
            if isinstance(entry, httpx.Response):
                return entry
            return httpx.Response(200, json=entry)

        if request.method == "GET" and path == "/api/v2/user":
            return httpx.Response(self.user_status, json={})

        return httpx.Response(404, json={"error": "not found"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def form_of(request: httpx.Request) -> dict[str, str]:
    """Decode a form-encoded request body into a flat dict."""
    return dict(httpx.QueryParams(request.content.decode()))


@pytest.fixture
def fake_plex() -> FakePlex:
    return FakePlex()


@pytest.fixture
def make_client() -> Callable[..., PlexClient]:
    """Factory for an unentered PlexClient backed by a MockTransport handler."""

    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> PlexClient:
        return PlexClient(transport=httpx.MockTransport(handler))

    return _make


@pytest.fixture
def fast_settings() -> Settings:
    """Settings with a short poll interval so loops finish quickly."""
    return Settings(
        app_name="Test App",
        client_id="test-client",
        device_name="pytest",
        poll_interval=0.01,
    )


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point XDG_CONFIG_HOME and XDG_DATA_HOME into tmp_path.

    Also forces the XDG code path and clears every PLEXAUTH_* variable so
    tests never see the real user's config.

    Returns:
        The tmp_path root directory.
    """
    monkeypatch.setattr("plexauth.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for name in Settings.model_fields:
        monkeypatch.delenv(f"PLEXAUTH_{name.upper()}", raising=False)
    monkeypatch.delenv("PLEX_TOKEN", raising=False)

    return tmp_path


@pytest.fixture
def write_config(isolated_config: Path) -> Callable[[dict[str, Any]], Path]:
    """Write a config file into the isolated config directory."""

    def _write(data: dict[str, Any]) -> Path:
        path = isolated_config / "config" / "plexauth" / "config.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    return _write


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a quiet, plain OutputManager for tests that ignore output."""
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
