"""Weight/calorie tracking and TDEE estimation.

Daily entries (weight, calorie intake) are kept one per user per day by
the entry store. The TDEE engine fits a linear regression of weight over
the analysis window and applies the 3500 kcal/lb energy balance to the
mean intake; the stats service ties the two together for a rolling window.

Key components:
- EntryStore (async SQLite storage with atomic upsert)
- calculate_tdee / linear_regression_slope (pure engine)
- StatsService (window resolution and result mapping)
"""

from __future__ import annotations

from calometri.tracking.models import (
    Entry,
    EntryUpdate,
    InsufficientData,
    NewEntry,
    TDEEResult,
    WeightTrend,
)
from calometri.tracking.queries import EntryStore
from calometri.tracking.stats import StatsService
from calometri.tracking.tdee import calculate_tdee, linear_regression_slope

__all__ = [
    "Entry",
    "EntryStore",
    "EntryUpdate",
    "InsufficientData",
    "NewEntry",
    "StatsService",
    "TDEEResult",
    "WeightTrend",
    "calculate_tdee",
    "linear_regression_slope",
]
