"""Normalization of decoded calendar entries into Event records.

One malformed entry must never abort a whole feed, so every per-entry failure
here ends in a debug log and a dropped entry, never in an exception.
"""

import datetime
import logging
import re
from collections.abc import Iterable
from typing import Any, Optional

from dateutil import parser as date_parser
from dateutil.rrule import rrulestr

from .models import EntryKind, Event, RawEntry

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Event"
ONE_DAY = datetime.timedelta(days=1)

_UNTIL_RE = re.compile(r"(?<![A-Z])UNTIL=([0-9TZ]+)", re.IGNORECASE)


def _unwrap_value(value: Any) -> Any:
    """Return the inner value of a wrapped property ({"val": ...} or obj.val)."""
    if isinstance(value, dict) and "val" in value:
        return value["val"]
    inner = getattr(value, "val", None)
    if inner is not None:
        return inner
    return value


def resolve_title(entry: RawEntry) -> str:
    """Resolve an entry title: summary, then description, then "Event"."""
    for candidate in (entry.summary, entry.description):
        if not candidate:
            continue
        text = str(_unwrap_value(candidate)).strip()
        if text:
            return text
    return DEFAULT_TITLE


def is_completed_todo(entry: RawEntry) -> bool:
    """Check whether a to-do entry is finished and must never be shown."""
    if not entry.is_todo:
        return False
    status = str(entry.status or "").upper()
    return status == "COMPLETED" or (entry.completion is not None and entry.completion >= 100)


def override_key(
    uid: Optional[str], instant: datetime.datetime
) -> tuple[Optional[str], datetime.datetime]:
    """Key identifying one occurrence of a series, independent of its zone."""
    return uid, instant.astimezone(datetime.timezone.utc)


class EventNormalizer:
    """Converts RawEntry records into Event records."""

    def __init__(self, tzinfo: datetime.tzinfo, include_todos: bool = False):
        """Initialize normalizer.

        Args:
            tzinfo: Zone for date-only markers, floating times and local midnight
            include_todos: Whether open to-dos are normalized (ordered by due date)
        """
        self.tzinfo = tzinfo
        self.include_todos = include_todos

    def coerce_marker(self, marker: Any) -> tuple[datetime.datetime, bool]:
        """Convert a start/end marker into an aware datetime.

        Args:
            marker: date, datetime, "YYYYMMDD"/date-time string, or object exposing ``.dt``

        Returns:
            Tuple of (instant, is_date_only)

        Raises:
            ValueError: If the marker cannot be interpreted
        """
        value = getattr(marker, "dt", marker)

        if isinstance(value, str):
            text = value.strip()
            if len(text) == 8 and text.isdigit():
                value = datetime.datetime.strptime(text, "%Y%m%d").date()
            else:
                value = date_parser.parse(text)

        if isinstance(value, datetime.datetime):
            if value.tzinfo is None:
                value = value.replace(tzinfo=self.tzinfo)
            return value, False
        if isinstance(value, datetime.date):
            return datetime.datetime.combine(value, datetime.time.min, tzinfo=self.tzinfo), True

        raise ValueError(f"Unsupported date marker: {marker!r}")

    def rrule_in_utc(self, rrule: str) -> str:
        """Rewrite a floating or date-only UNTIL as a UTC instant.

        dateutil rejects a local UNTIL once DTSTART is aware. Floating values are
        read in the configured zone; a date-only UNTIL covers its whole day.
        """

        def _to_utc(match: re.Match) -> str:
            text = match.group(1).upper()
            if text.endswith("Z"):
                return match.group(0)
            if len(text) == 8:
                day = datetime.datetime.strptime(text, "%Y%m%d").date()
                local = datetime.datetime.combine(
                    day, datetime.time(23, 59, 59), tzinfo=self.tzinfo
                )
            else:
                local = datetime.datetime.strptime(text, "%Y%m%dT%H%M%S").replace(
                    tzinfo=self.tzinfo
                )
            instant = local.astimezone(datetime.timezone.utc)
            return "UNTIL=" + instant.strftime("%Y%m%dT%H%M%SZ")

        return _UNTIL_RE.sub(_to_utc, rrule)

    def override_keys(
        self, entries: Iterable[RawEntry]
    ) -> set[tuple[Optional[str], datetime.datetime]]:
        """Collect (uid, instant) pairs of occurrences replaced via RECURRENCE-ID."""
        keys = set()
        for entry in entries:
            if entry.recurrence_id is None:
                continue
            try:
                instant, _ = self.coerce_marker(entry.recurrence_id)
            except (ValueError, TypeError, OverflowError):
                logger.debug("Ignoring unparseable RECURRENCE-ID on %s", entry.uid)
                continue
            keys.add(override_key(entry.uid, instant))
        return keys

    def is_full_day(
        self, start: datetime.datetime, end: datetime.datetime, start_is_date: bool
    ) -> bool:
        """Check if an event is a full-day event.

        Date-only starts are full-day. So are date-time ranges spanning a whole
        number of days that start exactly at local midnight.
        """
        if start_is_date:
            return True
        local_start = start.astimezone(self.tzinfo)
        return (end - start) % ONE_DAY == datetime.timedelta(0) and (
            local_start.hour == 0 and local_start.minute == 0
        )

    def normalize(self, entry: RawEntry) -> Optional[Event]:
        """Normalize one entry.

        Returns:
            The Event, or None when the entry is discarded
        """
        if entry.is_todo:
            if is_completed_todo(entry):
                logger.debug("Discarding completed to-do %s", entry.uid)
                return None
            if not self.include_todos:
                return None
            start_marker = entry.start if entry.start is not None else entry.due
            end_marker = entry.due
            kind = EntryKind.TODO
        elif entry.kind == EntryKind.EVENT.value:
            start_marker = entry.start
            end_marker = entry.end
            kind = EntryKind.EVENT
        else:
            logger.debug("Ignoring unsupported entry kind %s", entry.kind)
            return None

        if start_marker is None:
            logger.debug("Skipping entry %s without a start", entry.uid)
            return None

        try:
            start, start_is_date = self.coerce_marker(start_marker)
            if end_marker is not None:
                end, _ = self.coerce_marker(end_marker)
            elif entry.duration is not None:
                end = start + entry.duration
            elif start_is_date:
                end = start + ONE_DAY
            else:
                end = start
        except (ValueError, TypeError, OverflowError) as e:
            logger.debug("Skipping entry %s with unusable dates: %s", entry.uid, e)
            return None

        description = _unwrap_value(entry.description) if entry.description else None

        return Event(
            title=resolve_title(entry),
            start=start,
            end=end,
            full_day=self.is_full_day(start, end, start_is_date),
            visibility=entry.visibility,
            description=str(description) if description else None,
            kind=kind,
        )

    def expand(
        self,
        entry: RawEntry,
        window_start: Optional[datetime.datetime],
        window_end: datetime.datetime,
        overridden: Optional[set[tuple[Optional[str], datetime.datetime]]] = None,
    ) -> list[Event]:
        """Normalize an entry, expanding its RRULE into occurrences overlapping a window.

        Occurrences keep the master's duration and are flagged ``recurring``.
        Non-recurring entries yield at most one event, unfiltered by the window.

        Args:
            entry: Raw entry to normalize
            window_start: Occurrences ending before this are skipped; None keeps
                every occurrence from the master start on
            window_end: Occurrences starting after this are skipped
            overridden: Keys from override_keys(); matching occurrences are
                dropped because a RECURRENCE-ID entry replaces them

        Returns:
            List of events in occurrence order
        """
        master = self.normalize(entry)
        if master is None:
            return []
        if not entry.rrule:
            return [master]

        try:
            rule_set = rrulestr(
                self.rrule_in_utc(entry.rrule), dtstart=master.start, forceset=True
            )
        except (ValueError, TypeError) as e:
            logger.debug("Unusable RRULE on %s (%s); keeping master event only", entry.uid, e)
            return [master]

        for exdate in entry.exdates:
            try:
                excluded, _ = self.coerce_marker(exdate)
            except (ValueError, TypeError, OverflowError):
                logger.debug("Ignoring unparseable EXDATE %r on %s", exdate, entry.uid)
                continue
            rule_set.exdate(excluded)

        duration = master.end - master.start
        lower = master.start if window_start is None else window_start - duration
        try:
            occurrences = rule_set.between(lower, window_end, inc=True)
        except TypeError as e:
            # naive EXDATE/UNTIL values compared against an aware start
            logger.debug("RRULE expansion failed on %s (%s); keeping master event only", entry.uid, e)
            return [master]

        if overridden:
            occurrences = [
                occ for occ in occurrences if override_key(entry.uid, occ) not in overridden
            ]

        logger.debug("Expanded %s into %d occurrences", entry.uid, len(occurrences))
        return [
            master.model_copy(update={"start": occ, "end": occ + duration, "recurring": True})
            for occ in occurrences
        ]
