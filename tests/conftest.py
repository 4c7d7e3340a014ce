"""Pytest fixtures for calometri tests."""

from __future__ import annotations

import tempfile
import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

import pytest
import structlog

from calometri.db.connection import DatabaseConnection
from calometri.tracking.models import Entry
from calometri.tracking.queries import EntryStore


class TickingClock:
    """Clock that advances one second on every read."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


def make_entry(
    entry_date: str,
    weight: float,
    calories: int,
    user_id: str = "user-1",
) -> Entry:
    """Build an in-memory entry for engine tests."""
    stamp = datetime(2024, 6, 1, tzinfo=timezone.utc)
    return Entry(
        entry_id=uuid.uuid4().hex,
        user_id=user_id,
        date=date.fromisoformat(entry_date),
        weight=Decimal(str(weight)),
        calories=calories,
        created_at=stamp,
        updated_at=stamp,
    )


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo any structlog configuration done by a test."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def temp_db():
    """Create a temporary database with schema."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = Path(f.name)

    db = DatabaseConnection(db_path)
    db.initialize_schema()

    yield db

    # Cleanup
    db_path.unlink(missing_ok=True)


@pytest.fixture
def clock():
    return TickingClock(datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def store(temp_db, clock):
    """Entry store on the temporary database with a deterministic clock."""
    return EntryStore(temp_db, clock=clock)
