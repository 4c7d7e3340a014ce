"""SQLite storage layer."""

from __future__ import annotations

from calometri.db.connection import (
    DatabaseConnection,
    HealthCheckResult,
    get_db,
    set_db,
)

__all__ = [
    "DatabaseConnection",
    "HealthCheckResult",
    "get_db",
    "set_db",
]
