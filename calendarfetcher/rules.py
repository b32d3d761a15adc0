"""Parsing helpers for title-exclusion patterns and time-window filters.

Both helpers run once, at configuration time, so that bad patterns surface as
configuration errors instead of failing on every event.
"""

from __future__ import annotations

import re

from dateutil.relativedelta import relativedelta

from .exceptions import ConfigError

# Regex flag letters as written in calendar configs ("/pattern/flags")
_REGEX_FLAGS: dict[str, int] = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
}
# Accepted for compatibility, no Python equivalent needed
_IGNORED_REGEX_FLAGS = frozenset("guy")

_TIME_UNITS: dict[str, str] = {
    "second": "seconds",
    "minute": "minutes",
    "hour": "hours",
    "day": "days",
    "week": "weeks",
    "month": "months",
    "year": "years",
}


def _flag_bits(flags: str, source: str) -> int:
    bits = 0
    for letter in flags:
        if letter in _REGEX_FLAGS:
            bits |= _REGEX_FLAGS[letter]
        elif letter not in _IGNORED_REGEX_FLAGS:
            raise ConfigError(f"Unknown regex flag {letter!r} in exclusion rule {source!r}")
    return bits


def _is_flag_suffix(suffix: str) -> bool:
    return all(c in _REGEX_FLAGS or c in _IGNORED_REGEX_FLAGS for c in suffix)


def compile_title_pattern(filter_by: str, regex_flags: str = "") -> re.Pattern[str]:
    """Compile an exclusion rule written as a regular expression.

    A leading "/" marks a delimited pattern: the delimiters are stripped and
    any flag letters after the closing "/" are merged into ``regex_flags``.

    Raises:
        ConfigError: If the pattern does not compile or a flag is unknown.
    """
    pattern = filter_by
    flags = regex_flags or ""

    if pattern.startswith("/"):
        closing = pattern.rfind("/")
        if closing > 0 and _is_flag_suffix(pattern[closing + 1 :]):
            flags += pattern[closing + 1 :]
            pattern = pattern[1:closing]

    try:
        return re.compile(pattern, _flag_bits(flags, filter_by))
    except re.error as e:
        raise ConfigError(f"Invalid exclusion pattern {filter_by!r}: {e}") from e


def parse_time_filter(text: str) -> relativedelta:
    """Parse a "<amount> <unit>" filter such as "2 days" or "15 minutes".

    Units may be singular or plural.

    Raises:
        ConfigError: If the text is not an integer amount followed by a known unit.
    """
    parts = str(text).split()
    if len(parts) != 2:
        raise ConfigError(f"Time filter {text!r} must look like '<amount> <unit>'")

    amount_raw, unit_raw = parts
    try:
        amount = int(amount_raw)
    except ValueError as e:
        raise ConfigError(f"Time filter {text!r} has a non-integer amount") from e
    if amount < 0:
        raise ConfigError(f"Time filter {text!r} has a negative amount")

    unit = unit_raw.lower()
    if unit.endswith("s"):
        unit = unit[:-1]
    if unit not in _TIME_UNITS:
        raise ConfigError(f"Time filter {text!r} has unknown unit {unit_raw!r}")

    return relativedelta(**{_TIME_UNITS[unit]: amount})
