"""
Configuration for the log collector.

Two kinds of settings live here:

- LogBufferConfiguration: runtime-adjustable buffering policy, shared by the
  buffer, the flush timer and the settings panel.
- RumConfig: read-only startup configuration loaded from rum.yaml (or JSON)
  and the environment, including the HTTP log endpoint URL and token.

Environment Variables:
    RUM_CONFIG: Path to the config file
    RUM_HEC_URL: HTTP log endpoint URL
    RUM_HEC_TOKEN: HTTP log endpoint ingestion token
    RUM_APP_NAME: Value sent as the event "source"
    RUM_LOG_BUFFERING: "true"/"false", enables buffered mode
    RUM_LOG_MAX_BUFFER_SIZE: Entry count that triggers a flush
    RUM_LOG_FLUSH_INTERVAL: Seconds between timer flushes
"""

import json
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from rum_logs.errors import ConfigurationError


DEFAULT_MAX_BUFFER_SIZE = 50
DEFAULT_FLUSH_INTERVAL = 5.0
DEFAULT_APP_NAME = "SplunkRUMDemo"
DEFAULT_HEC_TIMEOUT = 10.0

CONFIG_FILENAME = "rum.yaml"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class LogBufferConfiguration:
    """
    Process-wide buffering policy, mutable at runtime.

    Every read goes through the lock so a change made from the panel (or any
    other thread) is seen by the next append or timer tick.
    """

    def __init__(
        self,
        enabled: bool = True,
        max_buffer_size: int = DEFAULT_MAX_BUFFER_SIZE,
        flush_interval: float = DEFAULT_FLUSH_INTERVAL,
    ):
        self._lock = threading.Lock()
        _validate_max_buffer_size(max_buffer_size)
        _validate_flush_interval(flush_interval)
        self._enabled = bool(enabled)
        self._max_buffer_size = int(max_buffer_size)
        self._flush_interval = float(flush_interval)

    @property
    def enabled(self) -> bool:
        with self._lock:
            return self._enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        with self._lock:
            self._enabled = bool(value)

    @property
    def max_buffer_size(self) -> int:
        with self._lock:
            return self._max_buffer_size

    @max_buffer_size.setter
    def max_buffer_size(self, value: int) -> None:
        _validate_max_buffer_size(value)
        with self._lock:
            self._max_buffer_size = int(value)

    @property
    def flush_interval(self) -> float:
        with self._lock:
            return self._flush_interval

    @flush_interval.setter
    def flush_interval(self, value: float) -> None:
        _validate_flush_interval(value)
        with self._lock:
            self._flush_interval = float(value)

    def update(self, **changes: Any) -> None:
        """
        Apply several settings at once.

        All values are validated before any is applied.

        Raises:
            ConfigurationError: On an unknown key or invalid value
        """
        unknown = set(changes) - {"enabled", "max_buffer_size", "flush_interval"}
        if unknown:
            raise ConfigurationError(f"Unknown buffer setting(s): {', '.join(sorted(unknown))}")

        if "max_buffer_size" in changes:
            _validate_max_buffer_size(changes["max_buffer_size"])
        if "flush_interval" in changes:
            _validate_flush_interval(changes["flush_interval"])
        if "enabled" in changes and not isinstance(changes["enabled"], bool):
            raise ConfigurationError("enabled must be a boolean")

        with self._lock:
            if "enabled" in changes:
                self._enabled = changes["enabled"]
            if "max_buffer_size" in changes:
                self._max_buffer_size = int(changes["max_buffer_size"])
            if "flush_interval" in changes:
                self._flush_interval = float(changes["flush_interval"])

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "enabled": self._enabled,
                "max_buffer_size": self._max_buffer_size,
                "flush_interval": self._flush_interval,
            }

    def __repr__(self) -> str:
        s = self.snapshot()
        return (
            f"LogBufferConfiguration(enabled={s['enabled']}, "
            f"max_buffer_size={s['max_buffer_size']}, "
            f"flush_interval={s['flush_interval']})"
        )


def _validate_max_buffer_size(value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigurationError(f"max_buffer_size must be an integer >= 1, got {value!r}")


def _validate_flush_interval(value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigurationError(f"flush_interval must be a number > 0, got {value!r}")


@dataclass
class HecConfig:
    """Connection settings for the HTTP log endpoint."""
    url: str = ""
    token: str = ""
    source: str = DEFAULT_APP_NAME
    timeout: float = DEFAULT_HEC_TIMEOUT

    @property
    def is_configured(self) -> bool:
        """Both URL and token are present and non-empty."""
        return bool(self.url and self.url.strip() and self.token and self.token.strip())

    @property
    def missing(self) -> list:
        missing = []
        if not (self.url and self.url.strip()):
            missing.append("url")
        if not (self.token and self.token.strip()):
            missing.append("token")
        return missing

    @classmethod
    def from_env(cls) -> "HecConfig":
        return cls(
            url=os.environ.get("RUM_HEC_URL", ""),
            token=os.environ.get("RUM_HEC_TOKEN", ""),
            source=os.environ.get("RUM_APP_NAME", DEFAULT_APP_NAME),
        )


class RumConfig:
    """Configuration loaded from rum.yaml, with environment overrides."""

    def __init__(self, config_dict: Dict[str, Any]):
        self._config = config_dict or {}

    @property
    def hec_settings(self) -> Dict[str, Any]:
        """Raw `hec:` section of the config file"""
        return self._config.get("hec", {}) or {}

    @property
    def buffer_settings(self) -> Dict[str, Any]:
        """Raw `buffer:` section of the config file"""
        return self._config.get("buffer", {}) or {}

    @property
    def app_name(self) -> str:
        return os.environ.get("RUM_APP_NAME") or self._config.get("app_name", DEFAULT_APP_NAME)

    @property
    def flags_path(self) -> Optional[Path]:
        """Where feature flags are persisted, if anywhere"""
        flags = self._config.get("flags") or {}
        path = flags.get("path")
        return Path(path) if path else None

    def hec_config(self) -> HecConfig:
        hec = self.hec_settings
        return HecConfig(
            url=os.environ.get("RUM_HEC_URL", hec.get("url", "")) or "",
            token=os.environ.get("RUM_HEC_TOKEN", hec.get("token", "")) or "",
            source=self.app_name,
            timeout=_hec_timeout(hec.get("timeout", DEFAULT_HEC_TIMEOUT)),
        )

    def buffer_config(self) -> LogBufferConfiguration:
        """
        Build the runtime buffer settings.

        Raises:
            ConfigurationError: If a file or environment value is invalid
        """
        buf = self.buffer_settings

        enabled = buf.get("enabled", True)
        if isinstance(enabled, str):
            enabled = _parse_bool(enabled, "buffer.enabled")
        elif not isinstance(enabled, bool):
            raise ConfigurationError(f"buffer.enabled is not a boolean: {enabled!r}")
        env_enabled = os.environ.get("RUM_LOG_BUFFERING")
        if env_enabled is not None:
            enabled = _parse_bool(env_enabled, "RUM_LOG_BUFFERING")

        max_size = buf.get("max_buffer_size", DEFAULT_MAX_BUFFER_SIZE)
        env_size = os.environ.get("RUM_LOG_MAX_BUFFER_SIZE")
        if env_size is not None:
            try:
                max_size = int(env_size)
            except ValueError:
                raise ConfigurationError(f"RUM_LOG_MAX_BUFFER_SIZE is not an integer: {env_size!r}")

        interval = buf.get("flush_interval", DEFAULT_FLUSH_INTERVAL)
        env_interval = os.environ.get("RUM_LOG_FLUSH_INTERVAL")
        if env_interval is not None:
            try:
                interval = float(env_interval)
            except ValueError:
                raise ConfigurationError(f"RUM_LOG_FLUSH_INTERVAL is not a number: {env_interval!r}")

        return LogBufferConfiguration(
            enabled=enabled,
            max_buffer_size=max_size,
            flush_interval=interval,
        )

    def get(self, key: str, default: Any = None) -> Any:
        """Get a top-level configuration value by key"""
        return self._config.get(key, default)


def _hec_timeout(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigurationError(f"hec.timeout must be a number > 0, got {value!r}")
    return float(value)


def _parse_bool(value: str, name: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} is not a boolean: {value!r}")


def load_config(config_path: Optional[str] = None) -> RumConfig:
    """
    Load configuration from rum.yaml.

    Search order:
    1. Provided config_path
    2. RUM_CONFIG environment variable
    3. ./rum.yaml in current directory
    4. rum.yaml in parent directories (walk up the tree)

    Args:
        config_path: Optional explicit path to config file

    Returns:
        RumConfig instance (empty if no file was found)

    Raises:
        ConfigurationError: If the file exists but cannot be parsed
    """
    if config_path:
        return _load_from_path(config_path)

    env_path = os.environ.get("RUM_CONFIG")
    if env_path:
        return _load_from_path(env_path)

    current = Path.cwd()
    while True:
        config_file = current / CONFIG_FILENAME
        if config_file.exists():
            return _load_from_path(str(config_file))

        if current == current.parent:
            break
        current = current.parent

    return RumConfig({})


def _load_from_path(path: str) -> RumConfig:
    with open(path, "r", encoding="utf-8") as f:
        content = f.read()

    try:
        if path.endswith(".json"):
            config_dict = json.loads(content)
        else:
            config_dict = yaml.safe_load(content)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot parse config file {path}: {e}")

    if config_dict is None:
        config_dict = {}
    if not isinstance(config_dict, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    return RumConfig(config_dict)
