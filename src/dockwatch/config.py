"""
Configuration management for dockwatch.

Settings live in dataclasses with sensible defaults; a YAML file can override
any of them. All durations are in seconds.

Features:
- Debounce, max-debounce, idle refresh and pull timeout settings
- Optional auto-reconnect with exponential backoff
- Container filter described as nested YAML (see filters.from_config)
- Log level and log file override for the command-line entry point

Architecture:
- MonitorConfig: timing and filter for one monitor
- ReconnectConfig: backoff parameters (reconnect is off unless configured)
- LogConfig: logging setup used by ``python -m dockwatch``
- AppConfig: everything above, as loaded by ConfigManager
- ConfigManager: loads a YAML file and merges it over the defaults

Example:

    monitor:
      debounce: 0.1
      max_debounce: 5
      max_idle: 30
      filter:
        all:
          - label_exists: traefik.enable
          - state: running
    reconnect:          # omit, or set enabled: false, to disable
      min_delay: 1
      max_delay: 30
      max_retries: 0
    logging:
      level: INFO
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

import yaml

from .errors import ConfigError
from .filters import from_config as filter_from_config
from .model import Container

logger = logging.getLogger(__name__)

ContainerFilter = Callable[[Container], bool]


def _require_number(owner: str, name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{owner}.{name} must be a number, got {value!r}")


@dataclass
class ReconnectConfig:
    """Backoff parameters for automatic reconnection."""
    min_delay: float = 1.0
    max_delay: float = 30.0
    max_retries: int = 0  # 0 retries forever
    stability_window: float = 60.0  # uptime that resets the backoff

    def validate(self) -> None:
        for name in ("min_delay", "max_delay", "stability_window"):
            _require_number("reconnect", name, getattr(self, name))
        if isinstance(self.max_retries, bool) or not isinstance(self.max_retries, int):
            raise ConfigError(f"reconnect.max_retries must be an integer, got {self.max_retries!r}")
        if self.min_delay <= 0:
            raise ConfigError(f"min_delay must be positive, got {self.min_delay}")
        if self.max_delay < self.min_delay:
            raise ConfigError(f"max_delay ({self.max_delay}) must not be below min_delay ({self.min_delay})")
        if self.max_retries < 0:
            raise ConfigError(f"max_retries must not be negative, got {self.max_retries}")
        if self.stability_window < 0:
            raise ConfigError(f"stability_window must not be negative, got {self.stability_window}")


@dataclass
class MonitorConfig:
    """Timing, filter and reconnect settings for a Monitor."""
    debounce: float = 0.1
    max_debounce: float = 5.0
    max_idle: float = 30.0
    pull_timeout: Optional[float] = 30.0  # None waits forever
    filter: Optional[ContainerFilter] = None  # None accepts everything
    reconnect: Optional[ReconnectConfig] = None  # None disables reconnection

    def validate(self) -> None:
        for name in ("debounce", "max_debounce", "max_idle"):
            value = getattr(self, name)
            _require_number("monitor", name, value)
            if value <= 0:
                raise ConfigError(f"{name} must be positive, got {value}")
        if self.max_debounce < self.debounce:
            raise ConfigError(
                f"max_debounce ({self.max_debounce}) must not be below debounce ({self.debounce})"
            )
        if self.pull_timeout is not None:
            _require_number("monitor", "pull_timeout", self.pull_timeout)
            if self.pull_timeout <= 0:
                raise ConfigError(f"pull_timeout must be positive, got {self.pull_timeout}")
        if self.reconnect is not None:
            self.reconnect.validate()


@dataclass
class LogConfig:
    """Logging configuration."""
    level: str = "INFO"
    file_path: Optional[str] = None  # None for default

    def validate(self) -> None:
        if not isinstance(self.level, str) or not isinstance(logging.getLevelName(self.level.upper()), int):
            raise ConfigError(f"logging.level must be a level name such as INFO, got {self.level!r}")
        if self.file_path is not None and not isinstance(self.file_path, str):
            raise ConfigError(f"logging.file_path must be a string, got {self.file_path!r}")


@dataclass
class AppConfig:
    """Main application configuration."""
    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    logging: LogConfig = field(default_factory=LogConfig)


class ConfigManager:
    """Configuration manager with YAML file support."""

    def __init__(self, config_file: Optional[Union[str, Path]] = None):
        self.config_file = Path(config_file) if config_file else None
        self._config = AppConfig()

    def load_config(self) -> AppConfig:
        """Load configuration from the YAML file, if there is one."""
        if self.config_file is None:
            return self._config
        if not self.config_file.exists():
            logger.info(f"No configuration at {self.config_file}, using defaults")
            return self._config

        try:
            with open(self.config_file, 'r') as f:
                user_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Failed to parse {self.config_file}: {e}") from e

        self._config = self.merge(AppConfig(), user_config)
        logger.debug(f"Loaded configuration from {self.config_file}")
        return self._config

    def merge(self, default: AppConfig, user: Dict[str, Any]) -> AppConfig:
        """Merge a user config mapping over defaults and validate the result."""
        if not isinstance(user, dict):
            raise ConfigError(f"configuration must be a mapping, got {type(user).__name__}")

        monitor = dict(user.get('monitor') or {})
        filter_rules = monitor.pop('filter', None)
        self._merge_dataclass(default.monitor, monitor)
        if filter_rules is not None:
            default.monitor.filter = filter_from_config(filter_rules)

        reconnect = dict(user.get('reconnect') or {})
        if reconnect.pop('enabled', bool(reconnect)):
            default.monitor.reconnect = ReconnectConfig()
            self._merge_dataclass(default.monitor.reconnect, reconnect)

        if 'logging' in user:
            self._merge_dataclass(default.logging, user['logging'] or {})

        default.monitor.validate()
        default.logging.validate()
        return default

    def _merge_dataclass(self, obj: Any, updates: Dict[str, Any]) -> None:
        """Merge updates into dataclass object."""
        for key, value in updates.items():
            if not hasattr(obj, key) or key in ('filter', 'reconnect'):
                raise ConfigError(f"Unknown {type(obj).__name__} option: {key!r}")
            setattr(obj, key, value)

    def get_log_level(self) -> str:
        return self._config.logging.level.upper()

    def get_custom_log_path(self) -> Optional[str]:
        return self._config.logging.file_path


def load_config(path: Optional[Union[str, Path]] = None) -> AppConfig:
    return ConfigManager(path).load_config()
