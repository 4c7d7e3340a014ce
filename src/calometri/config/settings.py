"""Application settings and configuration management."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

VALID_ENVIRONMENTS = ("development", "qa", "production")
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _default_config_dir() -> Path:
    """Return the default configuration directory."""
    return Path.home() / ".calometri"


def _default_db_path() -> Path:
    """Return the default database path."""
    return _default_config_dir() / "calometri.db"


@dataclass
class DatabaseConfig:
    """Database configuration."""

    path: Path = field(default_factory=_default_db_path)
    timeout: float = 5.0  # seconds to wait on a locked database


@dataclass
class AnalyticsConfig:
    """TDEE analysis configuration."""

    window_days: int = 28
    # lbs/day; ~0.14 lbs/week, ~70 kcal/day of energy imbalance
    maintaining_threshold: float = 0.02
    entries_page_size: int = 50

    def __post_init__(self) -> None:
        if isinstance(self.window_days, bool) or not isinstance(self.window_days, int):
            raise ValueError(f"window_days must be an integer, got '{self.window_days}'")
        if self.window_days <= 0:
            raise ValueError(f"window_days must be positive, got {self.window_days}")
        if self.maintaining_threshold < 0:
            raise ValueError(
                f"maintaining_threshold must not be negative, got {self.maintaining_threshold}"
            )


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    json: bool = False

    def __post_init__(self) -> None:
        self.level = self.level.upper()
        if self.level not in VALID_LOG_LEVELS:
            raise ValueError(f"level must be one of {VALID_LOG_LEVELS}, got '{self.level}'")


@dataclass
class Settings:
    """Main application settings."""

    environment: str = "development"
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    analytics: AnalyticsConfig = field(default_factory=AnalyticsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def __post_init__(self) -> None:
        if self.environment not in VALID_ENVIRONMENTS:
            raise ValueError(f"Unknown environment: {self.environment}")

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> "Settings":
        """Load settings from YAML file or return defaults.

        Environment variables CALOMETRI_ENV, CALOMETRI_DB_PATH and
        CALOMETRI_LOG_LEVEL override values from the file.

        Args:
            config_path: Path to config.yaml. If None, uses ~/.calometri/config.yaml

        Returns:
            Settings instance
        """
        if config_path is None:
            config_path = _default_config_dir() / "config.yaml"

        data: dict = {}
        if config_path.exists():
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}

        environment = os.environ.get("CALOMETRI_ENV") or data.get("environment", "development")
        settings = cls(environment=environment)

        # Parse database config
        if "database" in data:
            db_data = data["database"]
            if "path" in db_data:
                settings.database.path = Path(db_data["path"]).expanduser()
            if "timeout" in db_data:
                settings.database.timeout = float(db_data["timeout"])

        # Parse analytics config
        if "analytics" in data:
            an_data = data["analytics"]
            settings.analytics = AnalyticsConfig(
                window_days=int(an_data.get("window_days", settings.analytics.window_days)),
                maintaining_threshold=float(
                    an_data.get(
                        "maintaining_threshold", settings.analytics.maintaining_threshold
                    )
                ),
                entries_page_size=int(
                    an_data.get("entries_page_size", settings.analytics.entries_page_size)
                ),
            )

        # Parse logging config
        if "logging" in data:
            log_data = data["logging"]
            settings.logging = LoggingConfig(
                level=str(log_data.get("level", settings.logging.level)),
                json=bool(log_data.get("json", settings.logging.json)),
            )

        if os.environ.get("CALOMETRI_DB_PATH"):
            settings.database.path = Path(os.environ["CALOMETRI_DB_PATH"]).expanduser()
        if os.environ.get("CALOMETRI_LOG_LEVEL"):
            settings.logging = LoggingConfig(
                level=os.environ["CALOMETRI_LOG_LEVEL"], json=settings.logging.json
            )

        return settings

    def save(self, config_path: Optional[Path] = None) -> None:
        """Save current settings to YAML file.

        Args:
            config_path: Path to save config.yaml. If None, uses ~/.calometri/config.yaml
        """
        if config_path is None:
            config_path = _default_config_dir() / "config.yaml"

        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "environment": self.environment,
            "database": {
                "path": str(self.database.path),
                "timeout": self.database.timeout,
            },
            "analytics": {
                "window_days": self.analytics.window_days,
                "maintaining_threshold": self.analytics.maintaining_threshold,
                "entries_page_size": self.analytics.entries_page_size,
            },
            "logging": {
                "level": self.logging.level,
                "json": self.logging.json,
            },
        }

        with open(config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)


# Global settings instance (lazy loaded)
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance, loading from disk if needed."""
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def reload_settings(config_path: Optional[Path] = None) -> Settings:
    """Force reload settings from disk."""
    global _settings
    _settings = Settings.load(config_path)
    return _settings
