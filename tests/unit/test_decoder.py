"""Tests for calendarfetcher.decoder module."""

import datetime

import pytest

from calendarfetcher.decoder import decode_calendar
from calendarfetcher.exceptions import CalendarDecodeError, TransportError

pytestmark = pytest.mark.unit

UTC = datetime.timezone.utc

RECURRING_ICS = """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//calendarfetcher//tests//EN
BEGIN:VEVENT
UID:standup
SUMMARY:Standup
DTSTART:20240101T100000Z
DURATION:PT15M
RRULE:FREQ=DAILY;COUNT=10
EXDATE:20240103T100000Z,20240104T100000Z
EXDATE:20240108T100000Z
END:VEVENT
BEGIN:VTODO
UID:task
SUMMARY:Write report
DUE;VALUE=DATE:20240120
PERCENT-COMPLETE:40
STATUS:IN-PROCESS
END:VTODO
BEGIN:VJOURNAL
UID:journal
SUMMARY:Not an event
END:VJOURNAL
END:VCALENDAR
"""


class TestDecodeCalendar:
    def test_decode_when_sample_then_events_and_todos_in_order(self, sample_ics: str) -> None:
        entries = decode_calendar(sample_ics)

        assert [e.uid for e in entries] == [
            "planning-1",
            "standup-1",
            "offsite-1",
            "past-1",
            "todo-done",
        ]
        planning = entries[0]
        assert planning.kind == "VEVENT"
        assert planning.summary == "Sprint Planning"
        assert planning.description == "Plan the next sprint"
        assert planning.start == datetime.datetime(2024, 1, 15, 17, 0, tzinfo=UTC)
        assert planning.visibility == "PUBLIC"

    def test_decode_when_date_value_then_date_kept(self, sample_ics: str) -> None:
        offsite = decode_calendar(sample_ics)[2]

        assert offsite.start == datetime.date(2024, 1, 20)
        assert not isinstance(offsite.start, datetime.datetime)

    def test_decode_when_completed_todo_then_status_read(self, sample_ics: str) -> None:
        todo = decode_calendar(sample_ics)[-1]

        assert todo.is_todo
        assert todo.status == "COMPLETED"

    def test_decode_when_recurring_then_rule_duration_and_exdates(self) -> None:
        entries = decode_calendar(RECURRING_ICS)
        standup = entries[0]

        assert "FREQ=DAILY" in standup.rrule
        assert "COUNT=10" in standup.rrule
        assert standup.duration == datetime.timedelta(minutes=15)
        assert set(standup.exdates) == {
            datetime.datetime(2024, 1, 3, 10, 0, tzinfo=UTC),
            datetime.datetime(2024, 1, 4, 10, 0, tzinfo=UTC),
            datetime.datetime(2024, 1, 8, 10, 0, tzinfo=UTC),
        }

    def test_decode_when_todo_then_completion_and_due(self) -> None:
        todo = decode_calendar(RECURRING_ICS)[1]

        assert todo.kind == "VTODO"
        assert todo.completion == 40
        assert todo.due == datetime.date(2024, 1, 20)

    def test_decode_skips_unsupported_components(self) -> None:
        uids = [e.uid for e in decode_calendar(RECURRING_ICS)]

        assert "journal" not in uids

    def test_decode_when_garbage_then_decode_error(self) -> None:
        with pytest.raises(CalendarDecodeError) as exc_info:
            decode_calendar("this is not a calendar", "https://example.com/cal.ics")

        assert isinstance(exc_info.value, TransportError)
        assert exc_info.value.url == "https://example.com/cal.ics"

    def test_decode_when_recurrence_id_then_carried_on_entry(self) -> None:
        ics = (
            "BEGIN:VCALENDAR\nVERSION:2.0\nPRODID:-//calendarfetcher//tests//EN\n"
            "BEGIN:VEVENT\nUID:sync\nSUMMARY:Sync (moved)\n"
            "RECURRENCE-ID:20240129T090000Z\n"
            "DTSTART:20240130T140000Z\nDTEND:20240130T150000Z\n"
            "END:VEVENT\nEND:VCALENDAR\n"
        )

        (moved,) = decode_calendar(ics)

        assert moved.uid == "sync"
        assert moved.recurrence_id == datetime.datetime(2024, 1, 29, 9, 0, tzinfo=UTC)
        assert moved.rrule is None
