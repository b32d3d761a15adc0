"""Sorting and limiting of filtered events."""

from __future__ import annotations

import datetime
import logging
from collections.abc import Sequence

from .models import Event

logger = logging.getLogger(__name__)


class EventRanker:
    """Orders events by start time and bounds the result by count and day horizon."""

    def __init__(self, maximum_entries: int, maximum_number_of_days: int):
        """Initialize ranker.

        Args:
            maximum_entries: Maximum number of events to keep
            maximum_number_of_days: Events starting later than now + this many days are dropped
        """
        self.maximum_entries = maximum_entries
        self.maximum_number_of_days = maximum_number_of_days

    def rank(self, events: Sequence[Event], now: datetime.datetime) -> list[Event]:
        """Sort and limit events.

        ``sorted`` is stable, so events sharing a start keep their encounter
        order and an unchanged feed always ranks the same way. Limits run after
        sorting so the earliest events win.

        Args:
            events: Filtered events
            now: Current instant

        Returns:
            At most ``maximum_entries`` events, ascending by start
        """
        horizon = now + datetime.timedelta(days=self.maximum_number_of_days)
        ranked = sorted(events, key=lambda e: e.start)
        within_horizon = [e for e in ranked if e.start <= horizon]
        limited = within_horizon[: self.maximum_entries]

        logger.debug(
            "Ranked %d events: %d within %d days, %d kept",
            len(events),
            len(within_horizon),
            self.maximum_number_of_days,
            len(limited),
        )
        return limited
