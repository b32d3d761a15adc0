"""Filter chain for normalized calendar events.

Every stage takes the full candidate list and returns a possibly smaller list
in the same order, so stages compose freely and ranking can run afterwards.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable, Sequence
from typing import Protocol

from dateutil.relativedelta import relativedelta

from .models import Event, ExclusionRule, FetcherConfig
from .rules import parse_time_filter

logger = logging.getLogger(__name__)


def time_filter_applies(
    now: datetime.datetime,
    end_date: datetime.datetime,
    time_filter: str | relativedelta | None,
) -> bool:
    """Determine if a time-window cutoff hides an event.

    The cutoff is ``end_date - amount*unit``; the event is hidden from the
    moment ``now`` reaches it.

    Args:
        now: Current instant
        end_date: Event end instant
        time_filter: "<amount> <unit>" text, a parsed delta, or None

    Returns:
        True if the event should be filtered out
    """
    if not time_filter:
        return False
    delta = parse_time_filter(time_filter) if isinstance(time_filter, str) else time_filter
    return now >= end_date - delta


class FilterStage(Protocol):
    """A single step of the filter chain."""

    @property
    def name(self) -> str: ...

    def apply(self, events: Sequence[Event], now: datetime.datetime) -> list[Event]: ...


class ExclusionFilter:
    """Drops events whose title matches an exclusion rule.

    The first matching rule decides. A rule carrying ``until`` hides the event
    only once its own cutoff is reached.
    """

    name = "Exclusion"

    def __init__(self, rules: Iterable[ExclusionRule]):
        self.rules = tuple(rules)

    def matching_rule(self, title: str) -> ExclusionRule | None:
        for rule in self.rules:
            if rule.matches(title):
                return rule
        return None

    def apply(self, events: Sequence[Event], now: datetime.datetime) -> list[Event]:
        if not self.rules:
            return list(events)

        kept = []
        for event in events:
            rule = self.matching_rule(event.title)
            if rule is None:
                kept.append(event)
            elif rule.until_delta is not None and not time_filter_applies(
                now, event.end, rule.until_delta
            ):
                kept.append(event)
        return kept


class PastEventFilter:
    """Drops events that ended strictly before now, unless past events are wanted."""

    name = "PastEvents"

    def __init__(self, include_past_events: bool = False):
        self.include_past_events = include_past_events

    def apply(self, events: Sequence[Event], now: datetime.datetime) -> list[Event]:
        if self.include_past_events:
            return list(events)
        return [event for event in events if not event.end < now]


class TimeWindowFilter:
    """Hides events once now reaches a fixed duration before their end."""

    name = "TimeWindow"

    def __init__(self, time_filter: str | relativedelta | None):
        if isinstance(time_filter, str):
            time_filter = parse_time_filter(time_filter)
        self.delta = time_filter

    def apply(self, events: Sequence[Event], now: datetime.datetime) -> list[Event]:
        if self.delta is None:
            return list(events)
        return [event for event in events if not time_filter_applies(now, event.end, self.delta)]


class FilterChain:
    """Runs filter stages in sequence."""

    def __init__(self, stages: Iterable[FilterStage] = ()):
        self.stages: list[FilterStage] = list(stages)

    @classmethod
    def from_config(cls, config: FetcherConfig) -> FilterChain:
        """Build the standard chain: exclusion, past events, time window."""
        return cls(
            [
                ExclusionFilter(config.excluded_events),
                PastEventFilter(config.include_past_events),
                TimeWindowFilter(config.time_filter_delta),
            ]
        )

    def add_stage(self, stage: FilterStage) -> FilterChain:
        """Append a stage (builder pattern)."""
        self.stages.append(stage)
        return self

    def apply(self, events: Sequence[Event], now: datetime.datetime) -> list[Event]:
        """Apply every stage in order.

        Args:
            events: Normalized candidate events
            now: Current instant shared by all stages

        Returns:
            Surviving events in their original relative order
        """
        candidates = list(events)
        for stage in self.stages:
            before = len(candidates)
            candidates = stage.apply(candidates, now)
            if len(candidates) != before:
                logger.debug(
                    "Filter %s: %d -> %d events", stage.name, before, len(candidates)
                )
        return candidates

    def __repr__(self) -> str:
        return f"FilterChain(stages={[stage.name for stage in self.stages]})"
