"""ICS decoding into RawEntry records.

Wraps the icalendar library; only VEVENT and VTODO components are handed on.
"""

import logging
from typing import Any, Optional

from icalendar import Calendar

from .exceptions import CalendarDecodeError
from .models import EntryKind, RawEntry

logger = logging.getLogger(__name__)

_SUPPORTED_COMPONENTS = frozenset(kind.value for kind in EntryKind)


def _text(component: Any, name: str) -> Optional[str]:
    value = component.get(name)
    if value is None:
        return None
    return str(value)


def _date_value(component: Any, name: str) -> Any:
    prop = component.get(name)
    if prop is None:
        return None
    return getattr(prop, "dt", prop)


def _percent_complete(component: Any) -> Optional[int]:
    raw = component.get("PERCENT-COMPLETE")
    if raw is None:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        logger.debug("Ignoring non-numeric PERCENT-COMPLETE %r", raw)
        return None


def _rrule_text(component: Any) -> Optional[str]:
    prop = component.get("RRULE")
    if prop is None:
        return None
    if hasattr(prop, "to_ical"):
        return prop.to_ical().decode("utf-8")
    return str(prop)


def _collect_exdates(component: Any) -> tuple[Any, ...]:
    """Collect EXDATE values; icalendar returns one property or a list of them."""
    raw = component.get("EXDATE")
    if raw is None:
        return ()
    props = raw if isinstance(raw, list) else [raw]

    dates = []
    for prop in props:
        for item in getattr(prop, "dts", ()):
            dates.append(getattr(item, "dt", item))
    return tuple(dates)


def component_to_entry(component: Any) -> RawEntry:
    """Convert one icalendar VEVENT/VTODO component into a RawEntry."""
    duration = _date_value(component, "DURATION")
    return RawEntry(
        kind=component.name,
        uid=_text(component, "UID"),
        status=_text(component, "STATUS"),
        completion=_percent_complete(component),
        summary=_text(component, "SUMMARY"),
        description=_text(component, "DESCRIPTION"),
        start=_date_value(component, "DTSTART"),
        end=_date_value(component, "DTEND"),
        duration=duration,
        due=_date_value(component, "DUE"),
        rrule=_rrule_text(component),
        exdates=_collect_exdates(component),
        recurrence_id=_date_value(component, "RECURRENCE-ID"),
        visibility=_text(component, "CLASS"),
    )


def decode_calendar(content: str, url: Optional[str] = None) -> list[RawEntry]:
    """Decode ICS text into raw entries.

    Components that fail to convert are skipped with a warning.

    Args:
        content: ICS calendar text
        url: Source URL, attached to raised errors

    Returns:
        Raw entries in document order

    Raises:
        CalendarDecodeError: If the payload is not a parseable calendar
    """
    try:
        calendar = Calendar.from_ical(content)
    except Exception as e:
        raise CalendarDecodeError(f"Invalid calendar data: {e}", url) from e

    entries = []
    for component in calendar.walk():
        if component.name not in _SUPPORTED_COMPONENTS:
            continue
        try:
            entries.append(component_to_entry(component))
        except Exception as e:
            logger.warning("Failed to decode %s component: %s", component.name, e)

    logger.debug("Decoded %d entries from %s", len(entries), url or "calendar data")
    return entries
