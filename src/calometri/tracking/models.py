"""Data models for daily entries and TDEE results."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Optional, Union

from calometri.errors import ValidationError

# Weight is stored as DECIMAL(5, 2): two decimal places, below 1000 lbs
WEIGHT_QUANTUM = Decimal("0.01")
MAX_WEIGHT = Decimal("999.99")

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_date(value: Union[str, date]) -> date:
    """Parse a ``YYYY-MM-DD`` string into a date.

    Args:
        value: ISO calendar date string, or a date (returned unchanged)

    Returns:
        The parsed date

    Raises:
        ValidationError: If the string is not in ``YYYY-MM-DD`` form or
            does not name a real calendar day
    """
    if isinstance(value, datetime):
        raise ValidationError("Date must not carry a time of day", field="date")
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not _ISO_DATE_RE.match(value):
        raise ValidationError("Date must be YYYY-MM-DD format", field="date")
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise ValidationError(f"Invalid date '{value}'", field="date") from exc


def parse_weight(value: Union[str, int, float, Decimal]) -> Decimal:
    """Convert a weight to a two-place Decimal.

    Floats go through ``str`` first so that ``185.1`` becomes
    ``Decimal("185.10")`` rather than its binary expansion.

    Raises:
        ValidationError: If the weight is not numeric, not positive or
            too large for the stored precision
    """
    if isinstance(value, bool):
        raise ValidationError("Weight must be a number", field="weight")
    try:
        weight = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValidationError(f"Weight must be a number, got '{value}'", field="weight") from exc

    if not weight.is_finite():
        raise ValidationError("Weight must be a finite number", field="weight")
    if weight <= 0:
        raise ValidationError("Weight must be positive", field="weight")

    if weight <= MAX_WEIGHT:
        weight = weight.quantize(WEIGHT_QUANTUM, rounding=ROUND_HALF_UP)
    if weight <= 0:
        raise ValidationError("Weight must be positive", field="weight")
    if weight > MAX_WEIGHT:
        raise ValidationError(f"Weight must be at most {MAX_WEIGHT}", field="weight")
    return weight


def parse_calories(value: int) -> int:
    """Validate a daily calorie intake."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError("Calories must be a positive integer", field="calories")
    if value <= 0:
        raise ValidationError("Calories must be a positive integer", field="calories")
    return value


@dataclass
class NewEntry:
    """Fields supplied by the caller to create or upsert an entry."""

    user_id: str
    date: date
    weight: Decimal
    calories: int

    def __post_init__(self) -> None:
        if not isinstance(self.user_id, str) or not self.user_id:
            raise ValidationError("user_id is required", field="user_id")
        self.date = parse_date(self.date)
        self.weight = parse_weight(self.weight)
        self.calories = parse_calories(self.calories)


@dataclass
class EntryUpdate:
    """Partial update; fields left as None are not written."""

    date: Optional[date] = None
    weight: Optional[Decimal] = None
    calories: Optional[int] = None

    def __post_init__(self) -> None:
        if self.date is not None:
            self.date = parse_date(self.date)
        if self.weight is not None:
            self.weight = parse_weight(self.weight)
        if self.calories is not None:
            self.calories = parse_calories(self.calories)

    def is_empty(self) -> bool:
        return self.date is None and self.weight is None and self.calories is None


@dataclass
class Entry:
    """A stored daily weight/calorie entry."""

    entry_id: str
    user_id: str
    date: date
    weight: Decimal
    calories: int
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> dict:
        """Return the JSON-friendly representation (weight as a string)."""
        return {
            "id": self.entry_id,
            "userId": self.user_id,
            "date": self.date.isoformat(),
            "weight": str(self.weight),
            "calories": self.calories,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


class WeightTrend(str, Enum):
    """Direction of the fitted weight change."""

    GAINING = "gaining"
    LOSING = "losing"
    MAINTAINING = "maintaining"


@dataclass(frozen=True)
class TDEEResult:
    """TDEE estimate derived from a window of entries."""

    current_tdee: int
    weekly_average_weight: Decimal
    weekly_average_calories: int
    weight_trend: WeightTrend
    data_points: int

    def to_dict(self) -> dict:
        return {
            "currentTDEE": self.current_tdee,
            "weeklyAverageWeight": float(self.weekly_average_weight),
            "weeklyAverageCalories": self.weekly_average_calories,
            "weightTrend": self.weight_trend.value,
            "dataPoints": self.data_points,
        }


@dataclass(frozen=True)
class InsufficientData:
    """Too few entries in the analysis window to estimate TDEE."""

    minimum_required: int
    window_days: int

    def to_dict(self) -> dict:
        return {
            "minimumRequired": self.minimum_required,
            "windowDays": self.window_days,
        }
