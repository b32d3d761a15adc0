"""Data models for calendar fetching and event normalization."""

import datetime as dt
import re
from enum import Enum
from typing import Any, Optional

from dateutil.relativedelta import relativedelta
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    field_validator,
    model_validator,
)

from . import __version__
from .config_manager import get_default_timezone, resolve_tzinfo
from .rules import compile_title_pattern, parse_time_filter

DEFAULT_USER_AGENT = f"Mozilla/5.0 (Python) calendarfetcher/{__version__}"


class AuthMethod(str, Enum):
    """Supported authentication methods for calendar sources."""

    BASIC = "basic"
    DIGEST = "digest"
    BEARER = "bearer"


class AuthConfig(BaseModel):
    """Authentication descriptor for a calendar source.

    ``basic`` sends credentials immediately, ``digest`` answers the server's
    challenge, ``bearer`` sends ``password`` as the token.
    """

    model_config = ConfigDict(frozen=True)

    method: AuthMethod = AuthMethod.BASIC
    user: Optional[str] = None
    password: Optional[str] = Field(default=None, validation_alias=AliasChoices("password", "pass"))

    @field_validator("method", mode="before")
    @classmethod
    def _lower_method(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value


class ExclusionRule(BaseModel):
    """Title-matching rule used to drop events.

    Regex rules are compiled once here; an invalid pattern fails validation.
    A rule with ``until`` does not drop matching events outright, it hides
    them once ``now`` reaches ``end - until``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    filter_by: str = Field(..., min_length=1, validation_alias=AliasChoices("filter_by", "filterBy"))
    regex: bool = False
    regex_flags: str = Field(default="", validation_alias=AliasChoices("regex_flags", "regexFlags"))
    case_sensitive: bool = Field(
        default=True, validation_alias=AliasChoices("case_sensitive", "caseSensitive")
    )
    until: Optional[str] = None

    _pattern: Optional[re.Pattern] = PrivateAttr(default=None)
    _until_delta: Optional[relativedelta] = PrivateAttr(default=None)

    @model_validator(mode="after")
    def _compile(self) -> "ExclusionRule":
        if self.regex:
            self._pattern = compile_title_pattern(self.filter_by, self.regex_flags)
        if self.until:
            self._until_delta = parse_time_filter(self.until)
        return self

    @property
    def until_delta(self) -> Optional[relativedelta]:
        """Parsed per-rule cutoff, or None."""
        return self._until_delta

    def matches(self, title: str) -> bool:
        """Check whether ``title`` is matched by this rule."""
        if self._pattern is not None:
            return self._pattern.search(title) is not None
        if self.case_sensitive:
            return self.filter_by in title
        return self.filter_by.lower() in title.lower()


class FetcherConfig(BaseModel):
    """Configuration for one calendar source. Immutable once constructed."""

    model_config = ConfigDict(frozen=True)

    url: str = Field(..., min_length=1, description="Calendar feed URL")
    reload_interval: float = Field(default=300.0, gt=0, description="Poll interval in seconds")
    excluded_events: tuple[ExclusionRule, ...] = Field(default=())
    maximum_entries: int = Field(default=10, ge=0)
    maximum_number_of_days: int = Field(default=365, ge=0)
    auth: Optional[AuthConfig] = None
    include_past_events: bool = False

    time_filter: Optional[str] = Field(
        default=None, description="Global cutoff before event end, e.g. '15 minutes'"
    )
    include_todos: bool = False
    timezone: Optional[str] = Field(
        default_factory=get_default_timezone,
        description="IANA zone for local midnight; None uses the host zone",
    )

    # Request settings
    user_agent: str = DEFAULT_USER_AGENT
    request_timeout: float = Field(default=30.0, gt=0)
    gzip: bool = True

    _time_filter_delta: Optional[relativedelta] = PrivateAttr(default=None)

    @field_validator("excluded_events", mode="before")
    @classmethod
    def _coerce_rules(cls, value: Any) -> Any:
        if value is None:
            return ()
        if isinstance(value, (str, dict, ExclusionRule)):
            value = [value]
        return tuple({"filter_by": v} if isinstance(v, str) else v for v in value)

    @field_validator("timezone")
    @classmethod
    def _validate_timezone(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            try:
                resolve_tzinfo(value)
            except (KeyError, ValueError) as e:
                raise ValueError(f"Unknown timezone {value!r}") from e
        return value

    @model_validator(mode="after")
    def _parse_time_filter(self) -> "FetcherConfig":
        if self.time_filter:
            self._time_filter_delta = parse_time_filter(self.time_filter)
        return self

    @property
    def time_filter_delta(self) -> Optional[relativedelta]:
        """Parsed global cutoff, or None."""
        return self._time_filter_delta

    @property
    def tzinfo(self) -> dt.tzinfo:
        """Timezone used to interpret date-only markers and local midnight."""
        return resolve_tzinfo(self.timezone)


class RequestOptions(BaseModel):
    """Options handed to the transport for a single fetch."""

    model_config = ConfigDict(frozen=True)

    headers: dict[str, str] = Field(default_factory=dict)
    auth: Optional[AuthConfig] = None
    gzip: bool = True
    timeout: float = 30.0


class EntryKind(str, Enum):
    """Calendar component kinds the decoder hands over."""

    EVENT = "VEVENT"
    TODO = "VTODO"


class RawEntry(BaseModel):
    """One decoded calendar component, read but not owned by the normalizer.

    ``start``/``end``/``due`` markers may be ``date``, ``datetime``, a string
    (``YYYYMMDD`` for date-only) or any object exposing ``.dt``.
    ``summary`` may be a plain value or a wrapped one exposing ``val``.
    ``recurrence_id`` marks an entry that replaces one occurrence of the series
    sharing its ``uid``.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True, populate_by_name=True)

    kind: str = EntryKind.EVENT.value
    uid: Optional[str] = None
    status: Optional[str] = None
    completion: Optional[int] = None
    summary: Any = None
    description: Any = None
    start: Any = None
    end: Any = None
    duration: Optional[dt.timedelta] = None
    due: Any = None
    rrule: Optional[str] = None
    exdates: tuple[Any, ...] = ()
    recurrence_id: Any = None
    visibility: Optional[str] = Field(default=None, alias="class")

    @field_validator("kind", mode="before")
    @classmethod
    def _upper_kind(cls, value: Any) -> Any:
        if isinstance(value, EntryKind):
            return value.value
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @property
    def is_todo(self) -> bool:
        return self.kind == EntryKind.TODO.value


class Event(BaseModel):
    """Normalized calendar event. Immutable; equality is structural."""

    model_config = ConfigDict(frozen=True)

    title: str = Field(..., min_length=1)
    start: dt.datetime
    end: dt.datetime
    full_day: bool = False
    visibility: Optional[str] = None
    description: Optional[str] = None
    kind: EntryKind = EntryKind.EVENT
    recurring: bool = False
