"""Settings for the CLI: XDG paths, settings files and precedence resolution.

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.steadyhttp/`` on macOS and Windows. See :func:`get_config_dir`,
  :func:`get_cache_dir`, :func:`get_data_dir`.
* **Settings files** -- JSON or YAML, deserialised into
  :class:`ClientSettings` by :func:`load_settings`.
* **Precedence resolution** -- :func:`resolve_settings` merges explicit
  overrides, environment variables, the settings file and defaults.

The library itself never reads these; :class:`ClientSettings` only feeds the
base :class:`~steadyhttp.options.RequestConfig` of the CLI's client.
"""

from __future__ import annotations

import json
import os
import platform
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from steadyhttp.exceptions import ConfigError, InvalidArgumentError
from steadyhttp.options import RequestConfig

_APP_NAME = "steadyhttp"
_CONFIG_STEM = "config"
_CONFIG_SUFFIXES = (".json", ".yaml", ".yml")

# Environment variable -> settings field.
ENV_VARS: dict[str, str] = {
    "STEADYHTTP_TIMEOUT": "timeout",
    "STEADYHTTP_CONNECT_TIMEOUT": "connect_timeout",
    "STEADYHTTP_RETRY_LIMIT": "retry_limit",
    "STEADYHTTP_CACHE_TTL": "cache_ttl",
    "STEADYHTTP_PROXY": "proxy",
    "STEADYHTTP_CONCURRENCY": "concurrency",
}
CONFIG_ENV_VAR = "STEADYHTTP_CONFIG"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from *env_var*, else from segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    return Path.home().joinpath(*default_segments)


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/steadyhttp/`` (default
    ``~/.config/steadyhttp/``).  Elsewhere: ``~/.steadyhttp/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the response cache directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CACHE_HOME/steadyhttp/`` (default
    ``~/.cache/steadyhttp/``).  Elsewhere: ``~/.steadyhttp/cache/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CACHE_HOME", (".cache",)) / _APP_NAME
    else:
        path = _fallback_base_dir() / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/steadyhttp/`` (default
    ``~/.local/share/steadyhttp/``).  Elsewhere: ``~/.steadyhttp/logs/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Settings model ---


class ClientSettings(BaseModel):
    """User settings for the CLI client.

    Example (``~/.config/steadyhttp/config.yaml``)::

        timeout: 10
        retry_limit: 2
        cache_ttl: 300
        headers:
          Accept: application/json
    """

    headers: dict[str, Optional[str]] = Field(
        default_factory=dict, description="Extra default headers; null removes a built-in one"
    )
    proxy: Optional[str] = None
    timeout: float = 30.0
    connect_timeout: float = 10.0
    retry_limit: int = 3
    backoff_factor: float = 0.5
    cache_ttl: Optional[int] = Field(
        default=0, description="Seconds to cache GET/HEAD results; 0 disables, null keeps forever"
    )
    concurrency: int = 10
    cache_enabled: bool = True
    cache_dir: Optional[Path] = Field(
        default=None, description="Overrides the XDG cache directory"
    )

    def to_request_config(self) -> RequestConfig:
        """Build the base request options these settings describe.

        Raises:
            ConfigError: If a value is out of range for a request option.
        """
        try:
            return RequestConfig.from_options(
                {
                    "headers": self.headers,
                    "proxy": self.proxy,
                    "timeout": self.timeout,
                    "connect_timeout": self.connect_timeout,
                    "retry_limit": self.retry_limit,
                    "backoff_factor": self.backoff_factor,
                    "cache_ttl": self.cache_ttl,
                }
            )
        except InvalidArgumentError as exc:
            raise ConfigError(f"Invalid settings: {exc}") from exc

    def resolved_cache_dir(self) -> Path:
        return self.cache_dir or get_cache_dir()


# --- Loading ---


def find_settings_file() -> Optional[Path]:
    """Locate the settings file: ``$STEADYHTTP_CONFIG``, else ``<config_dir>/config.*``."""
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    config_dir = get_config_dir()
    for suffix in _CONFIG_SUFFIXES:
        candidate = config_dir / f"{_CONFIG_STEM}{suffix}"
        if candidate.is_file():
            return candidate
    return None


def _read_settings_file(path: Path) -> dict[str, Any]:
    if not path.is_file():
        raise ConfigError(f"Settings file not found: {path}")
    try:
        text = path.read_text(encoding="utf-8")
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Invalid settings file {path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Invalid settings file {path}: expected a mapping at the top level")
    return data


def load_settings(path: Optional[Path] = None) -> ClientSettings:
    """Load settings from *path*, or from the discovered settings file.

    Returns defaults when no file is given and none is found.

    Raises:
        ConfigError: If the file is missing (explicit path), unparsable, or
            fails validation.
    """
    if path is None:
        path = find_settings_file()
        if path is None:
            return ClientSettings()
    data = _read_settings_file(path)
    try:
        return ClientSettings.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid settings file {path}: {exc}") from exc


def _env_values() -> dict[str, Any]:
    values: dict[str, Any] = {}
    for var, field in ENV_VARS.items():
        raw = os.environ.get(var)
        if raw is None or raw == "":
            continue
        values[field] = raw
    return values


def resolve_settings(path: Optional[Path] = None, **overrides: Any) -> ClientSettings:
    """Resolve settings with the full precedence chain.

    Precedence (high to low):
        1. Explicit *overrides* (CLI flags; ``None`` values are ignored)
        2. Environment variables (see :data:`ENV_VARS`)
        3. Settings file (*path*, ``$STEADYHTTP_CONFIG`` or ``<config_dir>/config.*``)
        4. Defaults

    Raises:
        ConfigError: If any layer holds an invalid value.
    """
    base = load_settings(path)
    merged = base.model_dump(exclude_unset=True)
    merged.update(_env_values())
    merged.update({key: value for key, value in overrides.items() if value is not None})
    try:
        return ClientSettings.model_validate(merged)
    except ValidationError as exc:
        raise ConfigError(f"Invalid settings: {exc}") from exc
