"""Configuration loading."""

from __future__ import annotations

from calometri.config.settings import (
    AnalyticsConfig,
    DatabaseConfig,
    LoggingConfig,
    Settings,
    get_settings,
    reload_settings,
)

__all__ = [
    "AnalyticsConfig",
    "DatabaseConfig",
    "LoggingConfig",
    "Settings",
    "get_settings",
    "reload_settings",
]
