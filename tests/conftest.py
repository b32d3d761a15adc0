"""Shared fixtures for calendarfetcher tests."""

import datetime
from collections.abc import Generator
from typing import Any, Callable
from zoneinfo import ZoneInfo

import pytest

from calendarfetcher.models import FetcherConfig, RawEntry

UTC = datetime.timezone.utc
TEST_URL = "https://calendar.example.com/team.ics"

SAMPLE_ICS = """BEGIN:VCALENDAR
VERSION:2.0
PRODID:-//calendarfetcher//tests//EN
BEGIN:VEVENT
UID:planning-1
SUMMARY:Sprint Planning
DESCRIPTION:Plan the next sprint
DTSTART:20240115T170000Z
DTEND:20240115T180000Z
CLASS:PUBLIC
END:VEVENT
BEGIN:VEVENT
UID:standup-1
SUMMARY:Daily Standup
DTSTART:20240116T160000Z
DTEND:20240116T161500Z
END:VEVENT
BEGIN:VEVENT
UID:offsite-1
SUMMARY:Team Offsite
DTSTART;VALUE=DATE:20240120
DTEND;VALUE=DATE:20240121
END:VEVENT
BEGIN:VEVENT
UID:past-1
SUMMARY:Last Week Review
DTSTART:20240108T170000Z
DTEND:20240108T180000Z
END:VEVENT
BEGIN:VTODO
UID:todo-done
SUMMARY:Finished task
STATUS:COMPLETED
DUE:20240117T170000Z
END:VTODO
END:VCALENDAR
"""


def pytest_configure(config: Any) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Fast unit tests")
    config.addinivalue_line("markers", "integration: Tests spanning several components")


@pytest.fixture
def fixed_now() -> datetime.datetime:
    """Deterministic reference instant: Monday 2024-01-15 09:00 UTC."""
    return datetime.datetime(2024, 1, 15, 9, 0, tzinfo=UTC)


@pytest.fixture
def test_timezone() -> ZoneInfo:
    """Non-UTC zone for local-midnight checks."""
    return ZoneInfo("America/Los_Angeles")


@pytest.fixture
def sample_ics() -> str:
    return SAMPLE_ICS


@pytest.fixture
def make_config() -> Callable[..., FetcherConfig]:
    """Factory for FetcherConfig with a test URL and UTC timezone."""

    def _make(**overrides: Any) -> FetcherConfig:
        values: dict[str, Any] = {"url": TEST_URL, "timezone": "UTC"}
        values.update(overrides)
        return FetcherConfig(**values)

    return _make


@pytest.fixture
def make_entry() -> Callable[..., RawEntry]:
    """Factory for RawEntry records."""

    def _make(**fields: Any) -> RawEntry:
        return RawEntry(**fields)

    return _make


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Keep CALENDARFETCHER_* variables from leaking into tests."""
    for key in (
        "CALENDARFETCHER_URL",
        "CALENDARFETCHER_RELOAD_INTERVAL",
        "CALENDARFETCHER_MAX_ENTRIES",
        "CALENDARFETCHER_MAX_DAYS",
        "CALENDARFETCHER_DEFAULT_TIMEZONE",
        "CALENDARFETCHER_LOG_LEVEL",
        "CALENDARFETCHER_DEBUG",
    ):
        # setenv first so teardown also removes values written straight to os.environ
        monkeypatch.setenv(key, "")
        monkeypatch.delenv(key)
    yield
