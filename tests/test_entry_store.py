"""Tests for the SQLite-backed entry store."""

from __future__ import annotations

import asyncio
import tempfile
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

import pytest

from calometri.db.connection import DatabaseConnection
from calometri.errors import ConstraintViolation, StorageUnavailable, ValidationError
from calometri.tracking.models import EntryUpdate, NewEntry
from calometri.tracking.queries import EntryStore


def new_entry(entry_date: str, weight="185.00", calories=2200, user_id="user-1") -> NewEntry:
    return NewEntry(user_id=user_id, date=entry_date, weight=weight, calories=calories)


async def seed(store: EntryStore, dates: list[str], user_id: str = "user-1") -> None:
    for entry_date in dates:
        await store.create(new_entry(entry_date, user_id=user_id))


@pytest.mark.asyncio
class TestCreateAndGet:
    """Tests for create and the single-entry lookups."""

    async def test_create_assigns_id_and_timestamps(self, store) -> None:
        entry = await store.create(new_entry("2024-06-01", weight="185.5"))

        assert entry.entry_id
        assert entry.user_id == "user-1"
        assert entry.date == date(2024, 6, 1)
        assert entry.weight == Decimal("185.50")
        assert str(entry.weight) == "185.50"
        assert entry.calories == 2200
        assert entry.created_at == entry.updated_at
        assert entry.created_at.tzinfo is not None

    async def test_get_by_id(self, store) -> None:
        created = await store.create(new_entry("2024-06-01"))

        fetched = await store.get_by_id(created.entry_id)

        assert fetched == created

    async def test_get_by_id_missing(self, store) -> None:
        assert await store.get_by_id("does-not-exist") is None

    async def test_create_duplicate_date_raises(self, store) -> None:
        await store.create(new_entry("2024-06-01"))

        with pytest.raises(ConstraintViolation) as exc_info:
            await store.create(new_entry("2024-06-01", weight="190"))

        assert exc_info.value.user_id == "user-1"
        assert exc_info.value.date == date(2024, 6, 1)

    async def test_same_date_different_users_allowed(self, store) -> None:
        await store.create(new_entry("2024-06-01", user_id="alice"))
        await store.create(new_entry("2024-06-01", user_id="bob"))

        assert await store.get_by_user_and_date("alice", "2024-06-01") is not None
        assert await store.get_by_user_and_date("bob", date(2024, 6, 1)) is not None

    async def test_get_by_user_and_date_missing(self, store) -> None:
        await store.create(new_entry("2024-06-01"))

        assert await store.get_by_user_and_date("user-1", "2024-06-02") is None
        assert await store.get_by_user_and_date("someone-else", "2024-06-01") is None

    async def test_weight_keeps_exact_decimal(self, store) -> None:
        created = await store.create(new_entry("2024-06-01", weight=185.1))

        fetched = await store.get_by_id(created.entry_id)

        assert fetched is not None
        assert fetched.weight == Decimal("185.10")


@pytest.mark.asyncio
class TestListing:
    """Tests for get_by_user and get_by_user_in_range."""

    async def test_get_by_user_newest_first(self, store) -> None:
        await seed(store, ["2024-06-02", "2024-06-05", "2024-06-01", "2024-06-03"])

        entries = await store.get_by_user("user-1")

        assert [e.date.isoformat() for e in entries] == [
            "2024-06-05",
            "2024-06-03",
            "2024-06-02",
            "2024-06-01",
        ]

    async def test_get_by_user_pagination(self, store) -> None:
        await seed(store, [f"2024-06-0{d}" for d in range(1, 7)])

        first_page = await store.get_by_user("user-1", limit=2)
        second_page = await store.get_by_user("user-1", limit=2, offset=2)

        assert [e.date.day for e in first_page] == [6, 5]
        assert [e.date.day for e in second_page] == [4, 3]

    async def test_get_by_user_offset_without_limit(self, store) -> None:
        await seed(store, [f"2024-06-0{d}" for d in range(1, 5)])

        entries = await store.get_by_user("user-1", offset=1)

        assert [e.date.day for e in entries] == [3, 2, 1]

    async def test_get_by_user_limit_zero_returns_all(self, store) -> None:
        await seed(store, [f"2024-06-0{d}" for d in range(1, 5)])

        entries = await store.get_by_user("user-1", limit=0)

        assert [e.date.day for e in entries] == [4, 3, 2, 1]

    async def test_get_by_user_rejects_negative_limit(self, store) -> None:
        with pytest.raises(ValidationError):
            await store.get_by_user("user-1", limit=-1)

    async def test_get_by_user_excludes_other_users(self, store) -> None:
        await seed(store, ["2024-06-01"], user_id="alice")
        await seed(store, ["2024-06-02"], user_id="bob")

        entries = await store.get_by_user("alice")

        assert len(entries) == 1
        assert entries[0].user_id == "alice"

    async def test_range_is_inclusive_and_descending(self, store) -> None:
        await seed(
            store,
            ["2024-05-31", "2024-06-01", "2024-06-04", "2024-06-07", "2024-06-08"],
        )
        await seed(store, ["2024-06-03"], user_id="other")

        entries = await store.get_by_user_in_range("user-1", "2024-06-01", "2024-06-07")

        assert [e.date.isoformat() for e in entries] == [
            "2024-06-07",
            "2024-06-04",
            "2024-06-01",
        ]

    async def test_range_accepts_dates(self, store) -> None:
        await seed(store, ["2024-06-01", "2024-06-02"])

        entries = await store.get_by_user_in_range(
            "user-1", date(2024, 6, 2), date(2024, 6, 2)
        )

        assert [e.date for e in entries] == [date(2024, 6, 2)]

    async def test_inverted_range_is_empty(self, store) -> None:
        await seed(store, ["2024-06-01", "2024-06-02"])

        assert await store.get_by_user_in_range("user-1", "2024-06-02", "2024-06-01") == []

    async def test_range_rejects_malformed_date(self, store) -> None:
        with pytest.raises(ValidationError):
            await store.get_by_user_in_range("user-1", "06/01/2024", "2024-06-07")


@pytest.mark.asyncio
class TestUpdateAndDelete:
    """Tests for update and delete."""

    async def test_update_partial_fields(self, store) -> None:
        created = await store.create(new_entry("2024-06-01", weight="185", calories=2200))

        updated = await store.update(created.entry_id, EntryUpdate(calories=2400))

        assert updated is not None
        assert updated.calories == 2400
        assert updated.weight == Decimal("185.00")
        assert updated.date == created.date
        assert updated.created_at == created.created_at
        assert updated.updated_at > created.updated_at

    async def test_update_with_stalled_clock_still_advances(self, temp_db) -> None:
        frozen = datetime(2024, 6, 1, tzinfo=timezone.utc)
        store = EntryStore(temp_db, clock=lambda: frozen)
        created = await store.create(new_entry("2024-06-01"))

        first = await store.update(created.entry_id, EntryUpdate(calories=2300))
        second = await store.update(created.entry_id, EntryUpdate(calories=2400))

        assert created.updated_at < first.updated_at < second.updated_at

    async def test_update_missing_returns_none(self, store) -> None:
        assert await store.update("nope", EntryUpdate(calories=1800)) is None

    async def test_update_onto_taken_date_raises(self, store) -> None:
        await store.create(new_entry("2024-06-01"))
        second = await store.create(new_entry("2024-06-02"))

        with pytest.raises(ConstraintViolation):
            await store.update(second.entry_id, EntryUpdate(date="2024-06-01"))

        unchanged = await store.get_by_id(second.entry_id)
        assert unchanged is not None
        assert unchanged.date == date(2024, 6, 2)

    async def test_delete(self, store) -> None:
        created = await store.create(new_entry("2024-06-01"))

        assert await store.delete(created.entry_id) is True
        assert await store.get_by_id(created.entry_id) is None
        assert await store.delete(created.entry_id) is False


@pytest.mark.asyncio
class TestUpsert:
    """Tests for the atomic upsert."""

    async def test_upsert_creates_when_absent(self, store) -> None:
        entry = await store.upsert(new_entry("2024-06-01", weight="184.2"))

        assert entry.weight == Decimal("184.20")
        assert await store.get_by_user("user-1") == [entry]

    async def test_second_upsert_overrides_first(self, store) -> None:
        first = await store.upsert(new_entry("2024-06-01", weight="185", calories=2200))
        second = await store.upsert(new_entry("2024-06-01", weight="186.4", calories=2500))

        rows = await store.get_by_user("user-1")
        assert len(rows) == 1
        assert second.entry_id == first.entry_id
        assert second.weight == Decimal("186.40")
        assert second.calories == 2500
        assert second.created_at == first.created_at
        assert second.updated_at > first.updated_at
        assert rows[0] == second

    async def test_upsert_with_real_clock(self, temp_db) -> None:
        store = EntryStore(temp_db)

        first = await store.upsert(new_entry("2024-06-01", calories=2000))
        second = await store.upsert(new_entry("2024-06-01", calories=2100))

        assert second.updated_at > first.updated_at

    async def test_upsert_with_stalled_clock_still_advances(self, temp_db) -> None:
        frozen = datetime(2024, 6, 1, tzinfo=timezone.utc)
        store = EntryStore(temp_db, clock=lambda: frozen)

        first = await store.upsert(new_entry("2024-06-01", calories=2000))
        second = await store.upsert(new_entry("2024-06-01", calories=2100))

        assert first.updated_at == frozen
        assert second.updated_at == frozen + timedelta(microseconds=1)

    async def test_upsert_with_clock_stepping_back(self, temp_db) -> None:
        readings = iter(
            [
                datetime(2024, 6, 1, 12, tzinfo=timezone.utc),
                datetime(2024, 6, 1, 11, tzinfo=timezone.utc),
            ]
        )
        store = EntryStore(temp_db, clock=lambda: next(readings))

        first = await store.upsert(new_entry("2024-06-01", calories=2000))
        second = await store.upsert(new_entry("2024-06-01", calories=2100))

        assert second.updated_at > first.updated_at
        assert second.calories == 2100

    async def test_concurrent_upserts_leave_one_row(self, store) -> None:
        """Racing writers for the same day never duplicate or fail."""
        calories = list(range(2000, 2010))

        results = await asyncio.gather(
            *(store.upsert(new_entry("2024-06-01", calories=c)) for c in calories)
        )

        rows = await store.get_by_user("user-1")
        assert len(rows) == 1
        assert len({r.entry_id for r in results}) == 1
        assert rows[0].calories in calories

    async def test_upsert_after_create_does_not_raise(self, store) -> None:
        created = await store.create(new_entry("2024-06-01", calories=2000))

        merged = await store.upsert(new_entry("2024-06-01", calories=2300))

        assert merged.entry_id == created.entry_id
        assert merged.calories == 2300


@pytest.mark.asyncio
class TestStorageFailures:
    """Storage faults surface as StorageUnavailable."""

    async def test_missing_schema_is_storage_unavailable(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            store = EntryStore(DatabaseConnection(Path(tmp) / "empty.db"))

            with pytest.raises(StorageUnavailable):
                await store.get_by_user("user-1")

    async def test_unopenable_database_is_storage_unavailable(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            # A directory cannot be opened as a database file
            store = EntryStore(DatabaseConnection(Path(tmp)))

            with pytest.raises(StorageUnavailable):
                await store.upsert(new_entry("2024-06-01"))
