"""Configuration management for Expiry Alerts."""

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .expiry_policy import DEFAULT_OFFSETS
from .platform_scheduler import PLATFORM_LIMIT


@dataclass
class DataConfig:
    """Data storage configuration."""

    storage_dir: Path
    backend: str = "json"


@dataclass
class SchedulerConfig:
    """Reminder scheduling configuration."""

    ceiling: int = 60
    max_replacements: int = 10
    platform_limit: int = PLATFORM_LIMIT
    notify_hour: int = 9
    immediate_delay_seconds: int = 5
    offsets: list[int] = field(default_factory=lambda: list(DEFAULT_OFFSETS))


@dataclass
class TriggersConfig:
    """Foreground throttle and background interval configuration."""

    foreground_interval_hours: float = 4.0
    periodic_interval_hours: float = 12.0


@dataclass
class LocalizationConfig:
    """Notification language configuration."""

    locale: str = "en"


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "WARNING"


@dataclass
class Config:
    """Complete application configuration."""

    data: DataConfig
    scheduler: SchedulerConfig
    triggers: TriggersConfig
    localization: LocalizationConfig
    logging: LoggingConfig


class ConfigManager:
    """Manages application configuration from TOML files."""

    def __init__(self, config_path: Path | None = None):
        """Initialize configuration manager.

        Args:
            config_path: Optional explicit path to config file.
                        If not provided, searches standard locations.

        Raises:
            ValueError: If the file holds inconsistent values
        """
        self.config_path = config_path or self._find_config()
        self._config = self._load_config()
        self._validate()

    @property
    def data(self) -> DataConfig:
        """Get data configuration."""
        return self._config.data

    @property
    def scheduler(self) -> SchedulerConfig:
        """Get scheduler configuration."""
        return self._config.scheduler

    @property
    def triggers(self) -> TriggersConfig:
        """Get triggers configuration."""
        return self._config.triggers

    @property
    def localization(self) -> LocalizationConfig:
        """Get localization configuration."""
        return self._config.localization

    @property
    def logging(self) -> LoggingConfig:
        """Get logging configuration."""
        return self._config.logging

    def _find_config(self) -> Path:
        """Find config file in standard locations."""
        locations = [
            Path.cwd() / "config.toml",
            Path.home() / ".config" / "expiry-alerts" / "config.toml",
            Path.home() / ".expiry-alerts" / "config.toml",
        ]

        for loc in locations:
            if loc.exists():
                return loc

        # Return default location if none found
        return Path.home() / ".config" / "expiry-alerts" / "config.toml"

    def _load_config(self) -> Config:
        """Load configuration from TOML file."""
        if not self.config_path.exists():
            return self._default_config()

        with open(self.config_path, "rb") as f:
            data = tomllib.load(f)

        scheduler = data.get("scheduler", {})
        triggers = data.get("triggers", {})
        defaults = SchedulerConfig()

        return Config(
            data=DataConfig(
                storage_dir=Path(
                    data.get("data", {}).get("storage_dir", "~/expiry-alerts/data")
                ).expanduser(),
                backend=data.get("data", {}).get("backend", "json"),
            ),
            scheduler=SchedulerConfig(
                ceiling=scheduler.get("ceiling", defaults.ceiling),
                max_replacements=scheduler.get("max_replacements", defaults.max_replacements),
                platform_limit=scheduler.get("platform_limit", defaults.platform_limit),
                notify_hour=scheduler.get("notify_hour", defaults.notify_hour),
                immediate_delay_seconds=scheduler.get(
                    "immediate_delay_seconds", defaults.immediate_delay_seconds
                ),
                offsets=list(scheduler.get("offsets", defaults.offsets)),
            ),
            triggers=TriggersConfig(
                foreground_interval_hours=triggers.get("foreground_interval_hours", 4.0),
                periodic_interval_hours=triggers.get("periodic_interval_hours", 12.0),
            ),
            localization=LocalizationConfig(
                locale=data.get("localization", {}).get("locale", "en"),
            ),
            logging=LoggingConfig(
                level=str(data.get("logging", {}).get("level", "WARNING")).upper(),
            ),
        )

    def _default_config(self) -> Config:
        """Return default configuration."""
        return Config(
            data=DataConfig(storage_dir=Path.home() / "expiry-alerts" / "data"),
            scheduler=SchedulerConfig(),
            triggers=TriggersConfig(),
            localization=LocalizationConfig(),
            logging=LoggingConfig(),
        )

    def _validate(self) -> None:
        """Reject settings the scheduler cannot honour."""
        sched = self._config.scheduler
        if sched.ceiling < 1:
            raise ValueError("scheduler.ceiling must be positive")
        if sched.ceiling > sched.platform_limit:
            raise ValueError(
                f"scheduler.ceiling ({sched.ceiling}) exceeds platform_limit "
                f"({sched.platform_limit})"
            )
        if sched.max_replacements < 0:
            raise ValueError("scheduler.max_replacements must not be negative")
        if not 0 <= sched.notify_hour <= 23:
            raise ValueError("scheduler.notify_hour must be between 0 and 23")
        if not sched.offsets or any(o < 0 for o in sched.offsets):
            raise ValueError("scheduler.offsets must be a non-empty list of non-negative days")
        if self._config.data.backend not in ("json", "sqlite"):
            raise ValueError(f"Unknown data.backend: {self._config.data.backend}")

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get config value by dot-notation path.

        Args:
            key_path: Dot-separated path like 'scheduler.ceiling'
            default: Default value if path not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split(".")
        value: Any = self._config

        for key in keys:
            if hasattr(value, key):
                value = getattr(value, key)
            elif isinstance(value, dict):
                value = value.get(key)
                if value is None:
                    return default
            else:
                return default

        return value if value is not None else default
