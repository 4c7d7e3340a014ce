"""TDEE statistics over a rolling window of entries."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional, Union

import structlog

from calometri.config.settings import AnalyticsConfig
from calometri.errors import ValidationError
from calometri.tracking.models import InsufficientData, TDEEResult
from calometri.tracking.queries import EntryStore
from calometri.tracking.tdee import MIN_DATA_POINTS, calculate_tdee


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


class StatsService:
    """
    Resolves the analysis window, loads entries and runs the TDEE engine.

    Configuration and logger are passed in; nothing is read from globals.

    Attributes:
        store: Entry storage to read from
        config: Default window and maintaining threshold
        logger: structlog logger, bound with user_id/window_days per call
        today: Returns the last day of the window
    """

    def __init__(
        self,
        store: EntryStore,
        config: Optional[AnalyticsConfig] = None,
        logger: Optional[structlog.typing.FilteringBoundLogger] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self.store = store
        self.config = config or AnalyticsConfig()
        self.logger = logger or structlog.get_logger(__name__)
        self.today = today or _utc_today

    def resolve_window(self, window_days: int) -> tuple[date, date]:
        """Return the inclusive (start, end) window ending today."""
        end = self.today()
        return end - timedelta(days=window_days), end

    async def get_tdee_stats(
        self,
        user_id: str,
        window_days: Optional[int] = None,
    ) -> Union[TDEEResult, InsufficientData]:
        """
        Estimate TDEE from the user's entries in the last ``window_days`` days.

        Args:
            user_id: Whose entries to analyse
            window_days: Window length; defaults to the configured value (28)

        Returns:
            TDEEResult, or InsufficientData when fewer than 3 entries fall
            inside the window

        Raises:
            ValidationError: If window_days is not a positive integer
            StorageUnavailable: If the entry store cannot be read
        """
        if window_days is None:
            window_days = self.config.window_days
        if isinstance(window_days, bool) or not isinstance(window_days, int) or window_days <= 0:
            raise ValidationError(
                f"window_days must be a positive integer, got '{window_days}'",
                field="window_days",
            )

        log = self.logger.bind(user_id=user_id, window_days=window_days)
        start, end = self.resolve_window(window_days)

        entries = await self.store.get_by_user_in_range(user_id, start, end)
        result = calculate_tdee(
            entries, maintaining_threshold=self.config.maintaining_threshold
        )

        if result is None:
            log.info("tdee_insufficient_data", data_points=len(entries))
            return InsufficientData(minimum_required=MIN_DATA_POINTS, window_days=window_days)

        log.info(
            "tdee_calculated",
            current_tdee=result.current_tdee,
            weight_trend=result.weight_trend.value,
            data_points=result.data_points,
        )
        return result
