"""Runtime settings for the Momentum client.

Values come from, in increasing precedence: built-in defaults, an optional
YAML file (``MOMENTUM_CONFIG`` or ``~/.momentum/config.yaml``), and
``MOMENTUM_*`` environment variables.
"""
from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

DEFAULT_HOME = Path("~/.momentum")
DEFAULT_API_URL = "http://localhost:8000/api"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


class ConfigError(ValueError):
    """Raised when a configuration value cannot be interpreted."""


@dataclass(slots=True, frozen=True)
class Settings:
    api_url: str = DEFAULT_API_URL
    token_path: Path = field(default_factory=lambda: DEFAULT_HOME / "token")
    timeout: float = 15.0
    log_level: str = "WARNING"
    stale_guard: bool = True


def _as_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ConfigError(f"{key} must be a boolean, got {value!r}")


def _as_float(key: str, value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key} must be a number, got {value!r}") from exc


def _config_path(explicit: Path | None) -> Path | None:
    if explicit is not None:
        return explicit.expanduser()
    env_path = os.getenv("MOMENTUM_CONFIG")
    if env_path:
        return Path(env_path).expanduser()
    default = (DEFAULT_HOME / "config.yaml").expanduser()
    return default if default.exists() else None


def _load_file(path: Path | None) -> dict[str, Any]:
    if path is None:
        return {}
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    with path.open("r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    return data


def _apply(settings: Settings, values: dict[str, Any], source: str) -> Settings:
    updates: dict[str, Any] = {}
    if values.get("api_url"):
        updates["api_url"] = str(values["api_url"]).strip()
    if values.get("token_path"):
        updates["token_path"] = Path(str(values["token_path"])).expanduser()
    if values.get("timeout") not in (None, ""):
        updates["timeout"] = _as_float(f"{source}:timeout", values["timeout"])
    if values.get("log_level"):
        updates["log_level"] = str(values["log_level"]).strip().upper()
    if values.get("stale_guard") not in (None, ""):
        updates["stale_guard"] = _as_bool(f"{source}:stale_guard", values["stale_guard"])
    return replace(settings, **updates)


def load_settings(path: Path | None = None) -> Settings:
    """Resolve settings from defaults, the YAML file and the environment."""

    settings = Settings()
    config_path = _config_path(path)
    settings = _apply(settings, _load_file(config_path), str(config_path))

    env_values = {
        "api_url": os.getenv("MOMENTUM_API_URL"),
        "token_path": os.getenv("MOMENTUM_TOKEN_PATH"),
        "timeout": os.getenv("MOMENTUM_TIMEOUT"),
        "log_level": os.getenv("MOMENTUM_LOG_LEVEL"),
        "stale_guard": os.getenv("MOMENTUM_STALE_GUARD"),
    }
    return _apply(settings, env_values, "env")


def configure_logging(level: str | int = "WARNING") -> logging.Logger:
    """Attach a single stderr handler to the ``momentum`` logger."""

    log = logging.getLogger("momentum")
    log.setLevel(level if isinstance(level, int) else level.upper())
    if not log.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        log.addHandler(handler)
    return log
