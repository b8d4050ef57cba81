"""Settings resolution with XDG paths, atomic writes, and precedence.

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD
  (``$XDG_CONFIG_HOME/plexauth/``), ``~/.plexauth/`` on macOS and
  Windows. See :func:`get_config_dir` and :func:`get_data_dir`.
* **Config file** -- a single JSON object deserialised into
  :class:`~plexauth.models.Settings`. Only keys the user set are stored.
* **Precedence** -- :func:`resolve_settings` layers CLI overrides over
  ``PLEXAUTH_*`` environment variables over the config file over
  defaults.

The auth token itself is never written here.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from plexauth.exceptions import ConfigError
from plexauth.models import Settings

_APP_NAME = "plexauth"
_CONFIG_FILENAME = "config.json"
_ENV_PREFIX = "PLEXAUTH_"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True on Linux and the BSDs."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from *env_var*, else ``$HOME/<segments>``."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/plexauth/`` (default
    ``~/.config/plexauth/``). Elsewhere: ``~/.plexauth/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory used for crash logs, creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/plexauth/`` (default
    ``~/.local/share/plexauth/``). Elsewhere: ``~/.plexauth/logs/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def config_path() -> Path:
    """Path to the JSON config file."""
    return get_config_dir() / _CONFIG_FILENAME


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write *data* to *path* through a temp file in the same directory and ``os.replace``.

    The temp file is removed if anything fails, including
    ``KeyboardInterrupt``.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Config file ---


def load_file_values() -> dict[str, Any]:
    """Read the raw key/value pairs stored in the config file.

    Returns:
        The stored mapping, or an empty dict when the file does not exist.

    Raises:
        ConfigError: If the file is not a JSON object.
    """
    path = config_path()
    if not path.is_file():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as exc:
        raise ConfigError(f"Invalid config file at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid config file at {path}: expected a JSON object")
    return data


def save_file_values(values: dict[str, Any]) -> None:
    """Validate *values* against :class:`Settings` and persist them atomically.

    Raises:
        ConfigError: If a key is unknown or a value fails validation.
    """
    try:
        Settings.model_validate(values)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
    _atomic_write(config_path(), json.dumps(values, indent=2, sort_keys=True) + "\n")


def set_value(key: str, value: Optional[str]) -> Settings:
    """Set (or, with ``value=None``, remove) one key in the config file.

    Args:
        key: A :class:`Settings` field name.
        value: String form of the new value; pydantic coerces it to the
            field type.

    Returns:
        The settings as stored after the change.

    Raises:
        ConfigError: If *key* is not a settings field or *value* is invalid.
    """
    if key not in Settings.model_fields:
        known = ", ".join(sorted(Settings.model_fields))
        raise ConfigError(f"Unknown config key '{key}' (known keys: {known})")

    values = load_file_values()
    if value is None:
        values.pop(key, None)
    else:
        values[key] = value
    save_file_values(values)
    return Settings.model_validate(values)


# --- Precedence resolution ---


def _env_values() -> dict[str, str]:
    """Collect ``PLEXAUTH_<FIELD>`` environment variables that are set and non-empty."""
    values: dict[str, str] = {}
    for name in Settings.model_fields:
        env_value = os.environ.get(f"{_ENV_PREFIX}{name.upper()}")
        if env_value:
            values[name] = env_value
    return values


def resolve_settings(**overrides: Any) -> Settings:
    """Resolve the effective settings.

    Precedence (high to low):
        1. *overrides* (CLI flags); ``None`` values are ignored
        2. Environment variables (``PLEXAUTH_CLIENT_ID``,
           ``PLEXAUTH_POLL_TIMEOUT``, ...)
        3. Config file (``~/.config/plexauth/config.json``)
        4. Defaults

    Raises:
        ConfigError: If the merged values fail validation.
    """
    merged: dict[str, Any] = {}
    merged.update(load_file_values())
    merged.update(_env_values())
    merged.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return Settings.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
