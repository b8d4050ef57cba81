"""Integration tests for the plexauth command line.

Each test drives the real root Typer app through :class:`CliRunner`
against a :class:`FakePlex` transport and an isolated config directory,
then checks stdout, exit codes, and files on disk.
"""

from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest
from typer.testing import CliRunner

from conftest import FakePlex
from plexauth import __version__
from plexauth.app import app, main
from plexauth.client import PlexClient
from plexauth.config import load_file_values
from plexauth.exceptions import (
    ConfigError,
    EncodingError,
    PlexAuthError,
    ProtocolError,
    TimeoutError_,
    TransportError,
)


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def use_fake(isolated_config: Path, monkeypatch: pytest.MonkeyPatch):
    """Route every PlexClient built by the commands through a FakePlex."""

    def _install(fake: FakePlex) -> FakePlex:
        monkeypatch.setattr(
            PlexClient,
            "from_settings",
            classmethod(lambda cls, s: cls(base_url=s.base_url, transport=fake.transport)),
        )
        return fake

    monkeypatch.setenv("PLEXAUTH_POLL_INTERVAL", "0.01")
    return _install


def _last_line(text: str) -> str:
    return text.strip().splitlines()[-1]


# ---------------------------------------------------------------------------
# login
# ---------------------------------------------------------------------------


class TestLogin:
    def test_prints_token(self, runner: CliRunner, use_fake) -> None:
        use_fake(FakePlex(poll_responses=[{"authToken": None}, {"authToken": "cli-token"}]))

        result = runner.invoke(app, ["--plain", "-q", "login", "--device-name", "NAS"])

        assert result.exit_code == 0, result.output
        assert _last_line(result.output) == "cli-token"

    def test_shows_auth_url(self, runner: CliRunner, use_fake) -> None:
        use_fake(FakePlex(poll_responses=[{"authToken": "tok"}]))

        result = runner.invoke(
            app, ["--plain", "--no-color", "login", "-d", "Living room", "--client-id", "cid"]
        )

        assert result.exit_code == 0, result.output
        assert "Please visit https://app.plex.tv/auth#?" in result.output
        assert "clientID=cid" in result.output
        assert "context%5Bdevice%5D%5BdeviceName%5D=Living+room" in result.output
        assert "Authenticated." in result.output

    def test_prompts_for_device_name(self, runner: CliRunner, use_fake) -> None:
        use_fake(FakePlex(poll_responses=[{"authToken": "tok"}]))

        result = runner.invoke(app, ["--plain", "--no-color", "login"], input="Attic\n")

        assert result.exit_code == 0, result.output
        assert "Please enter a device name" in result.output
        assert "deviceName%5D=Attic" in result.output

    def test_no_input_skips_prompt(self, runner: CliRunner, use_fake) -> None:
        use_fake(FakePlex(poll_responses=[{"authToken": "tok"}]))

        result = runner.invoke(app, ["--plain", "--no-color", "--no-input", "login"])

        assert result.exit_code == 0, result.output
        assert "Please enter a device name" not in result.output
        assert "deviceName" not in result.output

    def test_generated_client_id_reported(self, runner: CliRunner, use_fake) -> None:
        fake = use_fake(FakePlex(poll_responses=[{"authToken": "tok"}]))

        result = runner.invoke(app, ["--plain", "--no-color", "--no-input", "login"])

        sent = dict(httpx.QueryParams(fake.requests[0].content.decode()))
        assert sent["X-Plex-Client-Identifier"].startswith("plexauth-")
        assert f"Client identifier: {sent['X-Plex-Client-Identifier']}" in result.output

    def test_json_output(self, runner: CliRunner, use_fake) -> None:
        use_fake(FakePlex(poll_responses=[{"authToken": "tok"}]))

        result = runner.invoke(app, ["--json", "-q", "login", "-d", "NAS"])

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == {"token": "tok"}

    def test_settings_from_config_file(self, runner: CliRunner, use_fake, write_config) -> None:
        fake = use_fake(FakePlex(poll_responses=[{"authToken": "tok"}]))
        write_config({"app_name": "Configured", "client_id": "stored-id", "device_name": "NAS"})

        result = runner.invoke(app, ["--plain", "-q", "login"])

        assert result.exit_code == 0, result.output
        sent = dict(httpx.QueryParams(fake.requests[0].content.decode()))
        assert sent == {
            "strong": "true",
            "X-Plex-Product": "Configured",
            "X-Plex-Client-Identifier": "stored-id",
        }

    def test_timeout_exit_code(self, runner: CliRunner, use_fake) -> None:
        use_fake(FakePlex())

        result = runner.invoke(
            app, ["--plain", "--no-color", "login", "-d", "NAS", "--timeout", "0.05"]
        )

        assert result.exit_code == 4
        assert "deadline exceeded" in result.output

    def test_protocol_error_exit_code(self, runner: CliRunner, use_fake) -> None:
        use_fake(FakePlex(poll_responses=[httpx.Response(500)]))

        result = runner.invoke(app, ["--plain", "--no-color", "login", "-d", "NAS"])

        assert result.exit_code == 5
        assert "Error:" in result.output

    def test_network_error_exit_code(
        self, runner: CliRunner, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("no route to host", request=request)

        monkeypatch.setattr(
            PlexClient,
            "from_settings",
            classmethod(lambda cls, s: cls(transport=httpx.MockTransport(handler))),
        )

        result = runner.invoke(app, ["--plain", "--no-color", "login", "-d", "NAS"])

        assert result.exit_code == 6
        assert "no route to host" in result.output

    def test_open_browser(self, runner: CliRunner, use_fake, monkeypatch) -> None:
        use_fake(FakePlex(poll_responses=[{"authToken": "tok"}]))
        opened: list[str] = []
        monkeypatch.setattr(
            "plexauth.commands.login.webbrowser.open", lambda url: opened.append(url) or True
        )

        result = runner.invoke(app, ["--plain", "-q", "login", "-d", "NAS", "--open"])

        assert result.exit_code == 0, result.output
        assert len(opened) == 1
        assert opened[0].startswith("https://app.plex.tv/auth#?")
        assert "code=XYZ9" in opened[0]

    def test_open_browser_failure_warns(self, runner: CliRunner, use_fake, monkeypatch) -> None:
        use_fake(FakePlex(poll_responses=[{"authToken": "tok"}]))
        monkeypatch.setattr("plexauth.commands.login.webbrowser.open", lambda url: False)

        result = runner.invoke(app, ["--plain", "--no-color", "login", "-d", "NAS", "--open"])

        assert result.exit_code == 0, result.output
        assert "Could not open a browser" in result.output


# ---------------------------------------------------------------------------
# validate
# ---------------------------------------------------------------------------


class TestValidate:
    def test_valid(self, runner: CliRunner, use_fake) -> None:
        fake = use_fake(FakePlex(user_status=200))

        result = runner.invoke(app, ["--plain", "-q", "validate", "secret", "--client-id", "cid"])

        assert result.exit_code == 0, result.output
        assert _last_line(result.output) == "valid"
        sent = dict(httpx.QueryParams(fake.requests[0].content.decode()))
        assert sent["X-Plex-Token"] == "secret"
        assert sent["X-Plex-Client-Identifier"] == "cid"

    def test_invalid(self, runner: CliRunner, use_fake) -> None:
        use_fake(FakePlex(user_status=401))

        result = runner.invoke(app, ["--plain", "-q", "validate", "stale"])

        assert result.exit_code == 3
        assert _last_line(result.output) == "invalid"

    def test_undetermined(self, runner: CliRunner, use_fake) -> None:
        use_fake(FakePlex(user_status=503))

        result = runner.invoke(app, ["--plain", "--no-color", "validate", "tok"])

        assert result.exit_code == 5
        assert "503" in result.output

    def test_token_from_env(self, runner: CliRunner, use_fake, monkeypatch) -> None:
        fake = use_fake(FakePlex(user_status=200))
        monkeypatch.setenv("PLEX_TOKEN", "from-env")

        result = runner.invoke(app, ["--plain", "-q", "validate"])

        assert result.exit_code == 0, result.output
        assert dict(httpx.QueryParams(fake.requests[0].content.decode()))["X-Plex-Token"] == "from-env"

    def test_missing_token_is_usage_error(self, runner: CliRunner, use_fake) -> None:
        use_fake(FakePlex())
        result = runner.invoke(app, ["validate"])
        assert result.exit_code == 2

    def test_json_output(self, runner: CliRunner, use_fake) -> None:
        use_fake(FakePlex(user_status=200))
        result = runner.invoke(app, ["--json", "-q", "validate", "tok"])
        assert json.loads(result.output) == {"status": "valid"}


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------


class TestConfigCommands:
    def test_show_defaults(self, runner: CliRunner, isolated_config: Path) -> None:
        result = runner.invoke(app, ["--json", "-q", "config", "show"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["app_name"] == "plexauth"
        assert data["base_url"] == "https://plex.tv/api/v2/"
        assert data["client_id"] is None

    def test_show_reports_path(self, runner: CliRunner, isolated_config: Path) -> None:
        result = runner.invoke(app, ["--plain", "--no-color", "config", "show"])
        assert "Config file:" in result.output
        assert "config.json" in result.output

    def test_set_then_show(self, runner: CliRunner, isolated_config: Path) -> None:
        result = runner.invoke(app, ["--plain", "config", "set", "device_name", "Living room"])
        assert result.exit_code == 0, result.output
        assert load_file_values() == {"device_name": "Living room"}

        shown = runner.invoke(app, ["--json", "-q", "config", "show"])
        assert json.loads(shown.output)["device_name"] == "Living room"

    def test_env_overrides_file_in_show(
        self, runner: CliRunner, write_config, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        write_config({"poll_timeout": 60})
        monkeypatch.setenv("PLEXAUTH_POLL_TIMEOUT", "90")

        result = runner.invoke(app, ["--json", "-q", "config", "show"])

        assert json.loads(result.output)["poll_timeout"] == 90.0

    def test_set_unknown_key(self, runner: CliRunner, isolated_config: Path) -> None:
        result = runner.invoke(app, ["--plain", "--no-color", "config", "set", "token", "x"])
        assert result.exit_code == 1
        assert "Unknown config key" in result.output

    def test_set_invalid_value(self, runner: CliRunner, isolated_config: Path) -> None:
        result = runner.invoke(app, ["--plain", "config", "set", "timeout", "abc"])
        assert result.exit_code == 1
        assert load_file_values() == {}

    def test_set_negative_value_after_double_dash(
        self, runner: CliRunner, isolated_config: Path
    ) -> None:
        result = runner.invoke(app, ["--plain", "config", "set", "--", "timeout", "-3"])
        assert result.exit_code == 1
        assert load_file_values() == {}

    def test_unset(self, runner: CliRunner, write_config) -> None:
        write_config({"client_id": "abc", "device_name": "NAS"})

        result = runner.invoke(app, ["--plain", "config", "unset", "client_id"])

        assert result.exit_code == 0, result.output
        assert load_file_values() == {"device_name": "NAS"}

    def test_broken_config_file(self, runner: CliRunner, write_config) -> None:
        write_config({}).write_text("{", encoding="utf-8")
        result = runner.invoke(app, ["--plain", "config", "show"])
        assert result.exit_code == 1


# ---------------------------------------------------------------------------
# Root app and entry point
# ---------------------------------------------------------------------------


class TestRootApp:
    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"plexauth {__version__}" in result.output

    def test_help_lists_commands(self, runner: CliRunner) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for name in ("login", "validate", "config"):
            assert name in result.output


class TestMain:
    @pytest.fixture(autouse=True)
    def _no_signal_handlers(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("plexauth.app._setup_signal_handlers", lambda: None)

    @pytest.mark.parametrize(
        ("exc", "code"),
        [
            (TransportError("down"), 6),
            (ProtocolError("bad", status_code=500), 5),
            (TimeoutError_("late"), 4),
            (EncodingError("enc"), 1),
            (ConfigError("cfg"), 1),
            (PlexAuthError("custom", exit_code=7), 7),
        ],
    )
    def test_library_errors_map_to_exit_codes(
        self, monkeypatch: pytest.MonkeyPatch, quiet_output, exc: Exception, code: int
    ) -> None:
        def _raise() -> None:
            raise exc

        monkeypatch.setattr("plexauth.app.app", _raise)
        with pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == code

    def test_unexpected_error_writes_crash_log(
        self, monkeypatch: pytest.MonkeyPatch, isolated_config: Path, quiet_output
    ) -> None:
        def _raise() -> None:
            raise RuntimeError("boom")

        monkeypatch.setattr("plexauth.app.app", _raise)
        with pytest.raises(SystemExit) as exc_info:
            main()

        assert exc_info.value.code == 1
        logs = list((isolated_config / "data" / "plexauth" / "logs").glob("crash-*.log"))
        assert len(logs) == 1
        assert "RuntimeError: boom" in logs[0].read_text()

    def test_keyboard_interrupt(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def _raise() -> None:
            raise KeyboardInterrupt

        monkeypatch.setattr("plexauth.app.app", _raise)
        with pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == 130
