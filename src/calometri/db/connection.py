"""Database connection management using raw sqlite3."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Generator, Optional

from calometri.db.schema import get_schema_sql
from calometri.errors import StorageUnavailable

# Seconds a connection waits on a locked database before giving up
DEFAULT_TIMEOUT = 5.0


@dataclass(frozen=True)
class HealthCheckResult:
    """Outcome of a database connectivity probe."""

    connected: bool
    error: Optional[str] = None


class DatabaseConnection:
    """Manages SQLite database connections.

    A fresh connection is opened for every ``get_connection()`` block, so the
    same instance can be shared by worker threads.
    """

    def __init__(self, db_path: Path, timeout: float = DEFAULT_TIMEOUT):
        """Initialize database connection manager.

        Args:
            db_path: Path to the SQLite database file
            timeout: Busy timeout in seconds for locked databases
        """
        self.db_path = db_path
        self.timeout = timeout
        self._ensure_directory()

    def _ensure_directory(self) -> None:
        """Create parent directories if they don't exist."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Context manager for database connections.

        Commits when the block exits cleanly and rolls back otherwise.

        Yields:
            sqlite3.Connection with Row factory enabled

        Example:
            with db.get_connection() as conn:
                rows = conn.execute("SELECT * FROM entries").fetchall()
        """
        conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def initialize_schema(self) -> None:
        """Create all tables if they don't exist.

        Raises:
            StorageUnavailable: If the database cannot be opened or written
        """
        try:
            with self.get_connection() as conn:
                conn.executescript(get_schema_sql())
        except sqlite3.Error as exc:
            raise StorageUnavailable(
                f"Cannot initialize database at {self.db_path}: {exc}"
            ) from exc

    def table_exists(self, table_name: str) -> bool:
        """Check if a table exists in the database.

        Args:
            table_name: Name of the table to check

        Returns:
            True if table exists
        """
        query = """
            SELECT name FROM sqlite_master
            WHERE type='table' AND name=?
        """
        with self.get_connection() as conn:
            cursor = conn.execute(query, (table_name,))
            return cursor.fetchone() is not None

    def get_table_count(self, table_name: str) -> int:
        """Get the number of rows in a table.

        Args:
            table_name: Name of the table

        Returns:
            Row count
        """
        # Note: table_name is validated by checking it exists first
        if not self.table_exists(table_name):
            return 0
        with self.get_connection() as conn:
            cursor = conn.execute(f"SELECT COUNT(*) FROM {table_name}")
            result = cursor.fetchone()
            return result[0] if result else 0

    def check_connection(self) -> HealthCheckResult:
        """Probe the database with a trivial query.

        Returns:
            HealthCheckResult; failures are reported, not raised
        """
        try:
            with self.get_connection() as conn:
                conn.execute("SELECT 1").fetchone()
        except sqlite3.Error as exc:
            return HealthCheckResult(connected=False, error=str(exc))
        return HealthCheckResult(connected=True)


# Global database instance (lazy loaded)
_db: Optional[DatabaseConnection] = None


def get_db() -> DatabaseConnection:
    """Get the global database instance.

    Lazily initializes the database connection using settings.

    Returns:
        DatabaseConnection instance
    """
    global _db
    if _db is None:
        from calometri.config import get_settings

        settings = get_settings()
        _db = DatabaseConnection(settings.database.path, settings.database.timeout)
    return _db


def set_db(db: Optional[DatabaseConnection]) -> None:
    """Set the global database instance.

    Useful for testing with a custom database. Passing None resets it.

    Args:
        db: DatabaseConnection instance to use
    """
    global _db
    _db = db
