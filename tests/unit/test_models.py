"""Tests for calendarfetcher.models validation."""

import datetime

import pytest
from dateutil import tz
from dateutil.relativedelta import relativedelta
from pydantic import ValidationError

from calendarfetcher.models import (
    AuthConfig,
    AuthMethod,
    EntryKind,
    Event,
    ExclusionRule,
    FetcherConfig,
    RawEntry,
)

pytestmark = pytest.mark.unit


class TestExclusionRule:
    def test_rule_when_camel_case_keys_then_accepted(self) -> None:
        rule = ExclusionRule.model_validate(
            {"filterBy": "/^Private:/i", "regex": True, "caseSensitive": False}
        )

        assert rule.filter_by == "/^Private:/i"
        assert rule.case_sensitive is False

    def test_matches_when_substring_then_case_sensitive_by_default(self) -> None:
        rule = ExclusionRule(filter_by="Standup")

        assert rule.matches("Daily Standup")
        assert not rule.matches("daily standup")

    def test_matches_when_case_insensitive_then_ignores_case(self) -> None:
        rule = ExclusionRule(filter_by="standup", case_sensitive=False)

        assert rule.matches("Daily STANDUP")

    def test_matches_when_regex_then_searches(self) -> None:
        rule = ExclusionRule(filter_by="/^Private:/i", regex=True)

        assert rule.matches("PRIVATE: doctor")
        assert not rule.matches("Not Private: lunch")

    def test_rule_when_bad_regex_then_validation_fails(self) -> None:
        with pytest.raises(ValidationError):
            ExclusionRule(filter_by="/(oops/", regex=True)

    def test_rule_when_until_then_parsed(self) -> None:
        rule = ExclusionRule(filter_by="Standup", until="30 minutes")

        assert rule.until_delta == relativedelta(minutes=30)

    def test_rule_when_bad_until_then_validation_fails(self) -> None:
        with pytest.raises(ValidationError):
            ExclusionRule(filter_by="Standup", until="soon")


class TestFetcherConfig:
    def test_config_when_minimal_then_defaults_applied(self) -> None:
        config = FetcherConfig(url="https://example.com/cal.ics")

        assert config.reload_interval == 300.0
        assert config.maximum_entries == 10
        assert config.maximum_number_of_days == 365
        assert config.excluded_events == ()
        assert config.include_past_events is False
        assert config.timezone is None
        assert isinstance(config.tzinfo, tz.tzlocal)

    def test_config_when_string_rules_then_coerced(self) -> None:
        config = FetcherConfig(
            url="https://example.com/cal.ics",
            excluded_events=["Standup", {"filterBy": "Retro", "caseSensitive": False}],
        )

        assert [r.filter_by for r in config.excluded_events] == ["Standup", "Retro"]
        assert config.excluded_events[1].case_sensitive is False

    def test_config_when_time_filter_then_parsed_once(self) -> None:
        config = FetcherConfig(url="https://example.com/cal.ics", time_filter="2 hours")

        assert config.time_filter_delta == relativedelta(hours=2)

    def test_config_when_malformed_time_filter_then_rejected(self) -> None:
        with pytest.raises(ValidationError):
            FetcherConfig(url="https://example.com/cal.ics", time_filter="2 lightyears")

    def test_config_when_unknown_timezone_then_rejected(self) -> None:
        with pytest.raises(ValidationError):
            FetcherConfig(url="https://example.com/cal.ics", timezone="Mars/Olympus_Mons")

    def test_config_when_non_positive_interval_then_rejected(self) -> None:
        with pytest.raises(ValidationError):
            FetcherConfig(url="https://example.com/cal.ics", reload_interval=0)

    def test_config_when_env_timezone_then_used_as_default(self, monkeypatch) -> None:
        monkeypatch.setenv("CALENDARFETCHER_DEFAULT_TIMEZONE", "Europe/Berlin")

        config = FetcherConfig(url="https://example.com/cal.ics")

        assert config.timezone == "Europe/Berlin"

    def test_config_is_frozen(self) -> None:
        config = FetcherConfig(url="https://example.com/cal.ics")

        with pytest.raises(ValidationError):
            config.url = "https://other.example.com"


class TestAuthConfig:
    def test_auth_when_pass_alias_then_password_set(self) -> None:
        auth = AuthConfig.model_validate({"method": "DIGEST", "user": "me", "pass": "s3cret"})

        assert auth.method is AuthMethod.DIGEST
        assert auth.password == "s3cret"

    def test_auth_when_unknown_method_then_rejected(self) -> None:
        with pytest.raises(ValidationError):
            AuthConfig(method="kerberos")


class TestRawEntryAndEvent:
    def test_raw_entry_when_lowercase_kind_then_normalized(self) -> None:
        entry = RawEntry(kind="vtodo")

        assert entry.kind == "VTODO"
        assert entry.is_todo

    def test_raw_entry_when_class_alias_then_visibility_set(self) -> None:
        entry = RawEntry.model_validate({"class": "PRIVATE"})

        assert entry.visibility == "PRIVATE"

    def test_event_when_empty_title_then_rejected(self) -> None:
        start = datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)
        with pytest.raises(ValidationError):
            Event(title="", start=start, end=start)

    def test_event_equality_is_structural(self) -> None:
        start = datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)

        assert Event(title="A", start=start, end=start) == Event(title="A", start=start, end=start)
        assert Event(title="A", start=start, end=start).kind is EntryKind.EVENT
