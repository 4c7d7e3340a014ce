"""Energy-balance TDEE estimation from daily weight and intake logs.

The estimate fits a least-squares line to weight against day index over the
analysis window. The slope is the average daily weight change; with the
standard approximation that one pound of body mass stores 3500 kcal:

    weight_change (lbs/day) = (intake - TDEE) / 3500
    =>  TDEE = intake - weight_change × 3500

where intake is the mean logged calorie intake over the same window.

Everything in this module is pure: no I/O, no module state, no logging.
"""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Sequence

from calometri.tracking.models import Entry, TDEEResult, WeightTrend

# Energy equivalent of one pound of body mass
CALORIES_PER_POUND = 3500

# Fewer entries than this and the regression is meaningless
MIN_DATA_POINTS = 3

# |slope| at or below this counts as maintaining (lbs/day).
# 0.02 lbs/day is ~0.14 lbs/week, or ~70 kcal/day of imbalance, which is
# well inside day-to-day scale noise from water and gut contents.
MAINTAINING_THRESHOLD = 0.02


def linear_regression_slope(points: Sequence[tuple[float, float]]) -> float:
    """
    Least-squares slope of y against x.

    slope = (n·Σxy − Σx·Σy) / (n·Σx² − (Σx)²)

    Args:
        points: (x, y) pairs, in any order

    Returns:
        Change in y per unit x. 0.0 for fewer than two points or when
        every x is identical (vertical line, undefined slope).

    Example:
        >>> linear_regression_slope([(0, 180), (10, 181), (20, 182)])
        0.1
    """
    n = len(points)
    if n < 2:
        return 0.0

    sum_x = 0.0
    sum_y = 0.0
    sum_xy = 0.0
    sum_x2 = 0.0
    for x, y in points:
        sum_x += x
        sum_y += y
        sum_xy += x * y
        sum_x2 += x * x

    denominator = n * sum_x2 - sum_x * sum_x
    if denominator == 0:
        return 0.0

    return (n * sum_xy - sum_x * sum_y) / denominator


def classify_trend(
    daily_weight_change: float,
    threshold: float = MAINTAINING_THRESHOLD,
) -> WeightTrend:
    """Label a daily weight change as gaining, losing or maintaining."""
    if daily_weight_change > threshold:
        return WeightTrend.GAINING
    if daily_weight_change < -threshold:
        return WeightTrend.LOSING
    return WeightTrend.MAINTAINING


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves toward +infinity."""
    return math.floor(value + 0.5)


def calculate_tdee(
    entries: Sequence[Entry],
    maintaining_threshold: float = MAINTAINING_THRESHOLD,
) -> Optional[TDEEResult]:
    """
    Estimate TDEE and weight trend from a window of daily entries.

    Entries should already be limited to the analysis window (e.g. the last
    28 days); they may arrive in any order.

    Args:
        entries: Daily entries for a single user
        maintaining_threshold: Slope magnitude (lbs/day) below which the
            trend is reported as maintaining

    Returns:
        TDEEResult, or None if there are fewer than MIN_DATA_POINTS entries
    """
    if len(entries) < MIN_DATA_POINTS:
        return None

    ordered = sorted(entries, key=lambda e: e.date)
    base_date = ordered[0].date

    # Day index is a calendar-date difference, so DST and local clocks
    # cannot skew it
    weight_points = [
        ((entry.date - base_date).days, float(entry.weight)) for entry in ordered
    ]

    count = len(ordered)
    avg_calories = sum(entry.calories for entry in ordered) / count
    avg_weight = sum((Decimal(entry.weight) for entry in ordered), Decimal(0)) / count

    daily_weight_change = linear_regression_slope(weight_points)
    tdee = round_half_up(avg_calories - daily_weight_change * CALORIES_PER_POUND)

    return TDEEResult(
        current_tdee=tdee,
        weekly_average_weight=avg_weight.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP),
        weekly_average_calories=round_half_up(avg_calories),
        weight_trend=classify_trend(daily_weight_change, maintaining_threshold),
        data_points=count,
    )
