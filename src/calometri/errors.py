"""Exception types raised by calometri."""

from __future__ import annotations

from datetime import date
from typing import Optional


class CalometriError(Exception):
    """Base class for all calometri errors."""


class ValidationError(CalometriError, ValueError):
    """Input rejected before it reaches the entry store or the TDEE engine.

    Raised for malformed dates, non-positive or out-of-range weights,
    non-positive calories and invalid analysis windows.
    """

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class ConstraintViolation(CalometriError):
    """A user already has an entry for the given date.

    Raised by ``EntryStore.create`` and by date-moving updates. ``upsert``
    merges into the existing row instead and never raises this.
    """

    def __init__(self, user_id: str, entry_date: date):
        super().__init__(
            f"Entry already exists for user '{user_id}' on {entry_date.isoformat()}"
        )
        self.user_id = user_id
        self.date = entry_date


class StorageUnavailable(CalometriError):
    """Transient failure talking to the database."""
