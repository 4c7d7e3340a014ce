"""Entry storage: per-user daily weight and calorie entries."""

from __future__ import annotations

import asyncio
import sqlite3
import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, Optional, Union

import structlog

from calometri.db.connection import DatabaseConnection
from calometri.errors import ConstraintViolation, StorageUnavailable, ValidationError
from calometri.tracking.models import Entry, EntryUpdate, NewEntry, parse_date

logger = structlog.get_logger(__name__)

_COLUMNS = "entry_id, user_id, date, weight, calories, created_at, updated_at"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _format_timestamp(moment: datetime) -> str:
    # Fixed width so that text comparison matches chronological order
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _row_to_entry(row: sqlite3.Row) -> Entry:
    return Entry(
        entry_id=row["entry_id"],
        user_id=row["user_id"],
        date=date.fromisoformat(row["date"]),
        weight=Decimal(row["weight"]),
        calories=row["calories"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


class EntryStore:
    """
    Async storage for daily entries, one per user per date.

    Each operation runs its sqlite3 work in a worker thread with its own
    connection, so awaiting it never blocks other coroutines.

    Attributes:
        db: Connection manager for the SQLite database
        clock: Returns the current time for created_at/updated_at
    """

    def __init__(
        self,
        db: DatabaseConnection,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self.clock = clock or _utc_now

    async def _run(self, operation: str, func: Callable[..., Any], *args: Any) -> Any:
        """Run a blocking storage call off the event loop.

        sqlite3 failures other than constraint violations surface as
        StorageUnavailable.
        """
        try:
            return await asyncio.to_thread(func, *args)
        except sqlite3.IntegrityError:
            raise
        except sqlite3.Error as exc:
            logger.error("storage_unavailable", operation=operation, error=str(exc))
            raise StorageUnavailable(f"{operation} failed: {exc}") from exc

    def _timestamp(self, previous: Optional[str] = None) -> str:
        """Current time, kept at least 1µs past ``previous`` if given."""
        moment = self.clock()
        if previous is not None:
            moment = max(moment, datetime.fromisoformat(previous) + timedelta(microseconds=1))
        return _format_timestamp(moment)

    def _stored_updated_at(
        self, conn: sqlite3.Connection, where: str, params: tuple
    ) -> Optional[str]:
        # Caller holds the write lock (BEGIN IMMEDIATE), so the value can't move
        row = conn.execute(f"SELECT updated_at FROM entries WHERE {where}", params).fetchone()
        return row["updated_at"] if row else None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(self, new_entry: NewEntry) -> Entry:
        """
        Insert a new entry.

        Raises:
            ConstraintViolation: If the user already has an entry on that date
        """
        return await self._run("create", self._create, new_entry)

    def _create(self, new_entry: NewEntry) -> Entry:
        entry_id = uuid.uuid4().hex
        now = self._timestamp()
        try:
            with self.db.get_connection() as conn:
                rows = conn.execute(
                    f"""
                    INSERT INTO entries ({_COLUMNS})
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    RETURNING {_COLUMNS}
                    """,
                    (
                        entry_id,
                        new_entry.user_id,
                        new_entry.date.isoformat(),
                        str(new_entry.weight),
                        new_entry.calories,
                        now,
                        now,
                    ),
                ).fetchall()
        except sqlite3.IntegrityError as exc:
            raise ConstraintViolation(new_entry.user_id, new_entry.date) from exc

        logger.debug("entry_created", entry_id=entry_id, user_id=new_entry.user_id)
        return _row_to_entry(rows[0])

    async def upsert(self, new_entry: NewEntry) -> Entry:
        """
        Create the entry, or overwrite weight and calories of the user's
        existing entry for that date.

        The write is one INSERT ... ON CONFLICT DO UPDATE statement, so
        concurrent upserts for the same (user, date) can never both insert.
        updated_at always moves past the stored value, even if the clock
        stalls or steps backward.
        """
        return await self._run("upsert", self._upsert, new_entry)

    def _upsert(self, new_entry: NewEntry) -> Entry:
        with self.db.get_connection() as conn:
            conn.execute("BEGIN IMMEDIATE")
            now = self._timestamp(
                self._stored_updated_at(
                    conn,
                    "user_id = ? AND date = ?",
                    (new_entry.user_id, new_entry.date.isoformat()),
                )
            )
            rows = conn.execute(
                f"""
                INSERT INTO entries ({_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id, date) DO UPDATE SET
                    weight = excluded.weight,
                    calories = excluded.calories,
                    updated_at = excluded.updated_at
                RETURNING {_COLUMNS}
                """,
                (
                    uuid.uuid4().hex,
                    new_entry.user_id,
                    new_entry.date.isoformat(),
                    str(new_entry.weight),
                    new_entry.calories,
                    now,
                    now,
                ),
            ).fetchall()

        entry = _row_to_entry(rows[0])
        logger.debug(
            "entry_upserted",
            entry_id=entry.entry_id,
            user_id=entry.user_id,
            date=entry.date.isoformat(),
        )
        return entry

    async def update(self, entry_id: str, changes: EntryUpdate) -> Optional[Entry]:
        """
        Apply a partial update and refresh updated_at.

        Returns:
            The updated entry, or None if no entry has this id

        Raises:
            ConstraintViolation: If the new date collides with another entry
                of the same user
        """
        return await self._run("update", self._update, entry_id, changes)

    def _update(self, entry_id: str, changes: EntryUpdate) -> Optional[Entry]:
        assignments: list[str] = []
        params: list = []

        if changes.date is not None:
            assignments.append("date = ?")
            params.append(changes.date.isoformat())
        if changes.weight is not None:
            assignments.append("weight = ?")
            params.append(str(changes.weight))
        if changes.calories is not None:
            assignments.append("calories = ?")
            params.append(changes.calories)

        assignments.append("updated_at = ?")

        try:
            with self.db.get_connection() as conn:
                conn.execute("BEGIN IMMEDIATE")
                previous = self._stored_updated_at(conn, "entry_id = ?", (entry_id,))
                params.append(self._timestamp(previous))
                params.append(entry_id)
                rows = conn.execute(
                    f"""
                    UPDATE entries SET {", ".join(assignments)}
                    WHERE entry_id = ?
                    RETURNING {_COLUMNS}
                    """,
                    params,
                ).fetchall()
        except sqlite3.IntegrityError as exc:
            owner = self._get_by_id(entry_id)
            user_id = owner.user_id if owner else ""
            raise ConstraintViolation(user_id, changes.date) from exc  # type: ignore[arg-type]

        if not rows:
            return None

        logger.debug("entry_updated", entry_id=entry_id)
        return _row_to_entry(rows[0])

    async def delete(self, entry_id: str) -> bool:
        """Delete an entry by id. Returns True if a row was removed."""
        return await self._run("delete", self._delete, entry_id)

    def _delete(self, entry_id: str) -> bool:
        with self.db.get_connection() as conn:
            cursor = conn.execute("DELETE FROM entries WHERE entry_id = ?", (entry_id,))
            deleted = cursor.rowcount > 0

        if deleted:
            logger.debug("entry_deleted", entry_id=entry_id)
        return deleted

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_by_id(self, entry_id: str) -> Optional[Entry]:
        """Get an entry by id."""
        return await self._run("get_by_id", self._get_by_id, entry_id)

    def _get_by_id(self, entry_id: str) -> Optional[Entry]:
        with self.db.get_connection() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM entries WHERE entry_id = ?",
                (entry_id,),
            ).fetchone()
        return _row_to_entry(row) if row else None

    async def get_by_user_and_date(
        self, user_id: str, entry_date: Union[str, date]
    ) -> Optional[Entry]:
        """Get a user's entry for one calendar date."""
        return await self._run(
            "get_by_user_and_date",
            self._get_by_user_and_date,
            user_id,
            parse_date(entry_date),
        )

    def _get_by_user_and_date(self, user_id: str, entry_date: date) -> Optional[Entry]:
        with self.db.get_connection() as conn:
            row = conn.execute(
                f"SELECT {_COLUMNS} FROM entries WHERE user_id = ? AND date = ?",
                (user_id, entry_date.isoformat()),
            ).fetchone()
        return _row_to_entry(row) if row else None

    async def get_by_user(
        self,
        user_id: str,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> list[Entry]:
        """
        Get a user's entries, newest date first.

        Args:
            user_id: Owner of the entries
            limit: Maximum number of entries to return (None or 0 = all)
            offset: Number of entries to skip
        """
        if limit is not None and limit < 0:
            raise ValidationError("limit must not be negative", field="limit")
        if offset is not None and offset < 0:
            raise ValidationError("offset must not be negative", field="offset")
        return await self._run("get_by_user", self._get_by_user, user_id, limit, offset)

    def _get_by_user(
        self, user_id: str, limit: Optional[int], offset: Optional[int]
    ) -> list[Entry]:
        query = f"SELECT {_COLUMNS} FROM entries WHERE user_id = ? ORDER BY date DESC"
        params: list = [user_id]

        if limit:
            query += " LIMIT ?"
            params.append(limit)
        elif offset:
            # SQLite only accepts OFFSET after a LIMIT
            query += " LIMIT -1"
        if offset:
            query += " OFFSET ?"
            params.append(offset)

        with self.db.get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
        return [_row_to_entry(row) for row in rows]

    async def get_by_user_in_range(
        self,
        user_id: str,
        start: Union[str, date],
        end: Union[str, date],
    ) -> list[Entry]:
        """
        Get a user's entries with start <= date <= end, newest date first.

        Both bounds are inclusive. An inverted range returns no entries.
        """
        return await self._run(
            "get_by_user_in_range",
            self._get_by_user_in_range,
            user_id,
            parse_date(start),
            parse_date(end),
        )

    def _get_by_user_in_range(self, user_id: str, start: date, end: date) -> list[Entry]:
        with self.db.get_connection() as conn:
            rows = conn.execute(
                f"""
                SELECT {_COLUMNS} FROM entries
                WHERE user_id = ? AND date BETWEEN ? AND ?
                ORDER BY date DESC
                """,
                (user_id, start.isoformat(), end.isoformat()),
            ).fetchall()
        return [_row_to_entry(row) for row in rows]
