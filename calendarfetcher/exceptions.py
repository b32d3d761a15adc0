"""Exception hierarchy for calendarfetcher."""

from typing import Optional


class CalendarFetcherError(Exception):
    """Base exception for calendarfetcher errors."""


class ConfigError(CalendarFetcherError, ValueError):
    """Invalid configuration (bad regex, malformed time filter, unreadable config file)."""


class TransportError(CalendarFetcherError):
    """Failure reaching or reading a calendar source.

    Reported once per fetch cycle to the fetcher's error subscriber. Never
    propagates out of the poll loop.
    """

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class TransportAuthError(TransportError):
    """Authentication error during calendar fetch."""

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message, url)
        self.status_code = status_code


class TransportNetworkError(TransportError):
    """Network error (DNS, refused connection, TLS) during calendar fetch."""


class TransportTimeoutError(TransportError):
    """Timeout error during calendar fetch."""


class CalendarDecodeError(TransportError):
    """Calendar payload could not be decoded into entries."""
