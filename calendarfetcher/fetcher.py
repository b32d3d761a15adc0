"""Calendar fetcher facade: poll a source, normalize, filter, rank, publish."""

from __future__ import annotations

import datetime
import logging
from collections.abc import Awaitable, Iterable
from typing import Any, Callable, Optional

from .event_filter import FilterChain
from .exceptions import TransportError
from .models import Event, FetcherConfig, RawEntry, RequestOptions
from .normalizer import EventNormalizer
from .ranker import EventRanker
from .scheduler import FetchScheduler

logger = logging.getLogger(__name__)

Transport = Callable[[str, RequestOptions], Awaitable[Iterable[RawEntry]]]
ReceiveCallback = Callable[["CalendarFetcher"], Any]
ErrorCallback = Callable[["CalendarFetcher", TransportError], Any]


def _noop_receive(_fetcher: CalendarFetcher) -> None:
    return None


def _noop_error(_fetcher: CalendarFetcher, _error: TransportError) -> None:
    return None


class CalendarFetcher:
    """Periodically fetches one calendar source and publishes its upcoming events.

    The published list is an immutable tuple replaced in a single rebind, so a
    reader sees either the previous or the new list, never a mix. A failed
    cycle leaves the last good list in place.

    Example:
        >>> fetcher = CalendarFetcher(FetcherConfig(url="https://example.com/cal.ics"))
        >>> fetcher.on_receive(lambda f: print(len(f.events())))
        >>> fetcher.start_fetch()  # inside a running event loop
    """

    def __init__(
        self,
        config: FetcherConfig,
        transport: Optional[Transport] = None,
        time_provider: Optional[Callable[[], datetime.datetime]] = None,
    ) -> None:
        """Initialize fetcher.

        Args:
            config: Source configuration
            transport: Async callable fetching and decoding entries; defaults to
                an owned HttpCalendarTransport
            time_provider: Returns the current aware instant; defaults to the
                wall clock in the configured timezone
        """
        self.config = config
        self._owns_transport = transport is None
        if transport is None:
            from .transport import HttpCalendarTransport

            transport = HttpCalendarTransport()
        self._transport = transport

        tzinfo = config.tzinfo
        self._time_provider = time_provider or (lambda: datetime.datetime.now(tzinfo))

        self.normalizer = EventNormalizer(tzinfo, include_todos=config.include_todos)
        self.filter_chain = FilterChain.from_config(config)
        self.ranker = EventRanker(config.maximum_entries, config.maximum_number_of_days)

        self._events: tuple[Event, ...] = ()
        self._receive_callback: ReceiveCallback = _noop_receive
        self._error_callback: ErrorCallback = _noop_error

        self._scheduler: FetchScheduler[Iterable[RawEntry]] = FetchScheduler(
            self._fetch_entries,
            self._handle_entries,
            self._handle_failure,
            config.reload_interval,
        )

        logger.debug("Calendar fetcher created for %s (%s)", config.url, self.filter_chain)

    async def __aenter__(self) -> CalendarFetcher:
        return self

    async def __aexit__(self, _exc_type: Any, _exc_val: Any, _exc_tb: Any) -> None:
        await self.close()

    @property
    def scheduler(self) -> FetchScheduler[Iterable[RawEntry]]:
        return self._scheduler

    def url(self) -> str:
        """Return the source URL."""
        return self.config.url

    def events(self) -> tuple[Event, ...]:
        """Return the current published event list (read-only snapshot)."""
        return self._events

    def on_receive(self, callback: ReceiveCallback) -> None:
        """Register the receive subscriber; replaces any previous one."""
        self._receive_callback = callback

    def on_error(self, callback: ErrorCallback) -> None:
        """Register the error subscriber; replaces any previous one."""
        self._error_callback = callback

    def start_fetch(self) -> None:
        """Start polling with an immediate fetch. Requires a running event loop."""
        logger.info(
            "Starting calendar fetch for %s every %.0fs", self.config.url, self.config.reload_interval
        )
        self._scheduler.start()

    def stop(self) -> None:
        """Stop polling; a cycle still in flight is discarded when it completes."""
        self._scheduler.stop()

    async def close(self) -> None:
        """Stop polling, cancel any in-flight cycle and close an owned transport."""
        await self._scheduler.aclose()
        if self._owns_transport:
            aclose = getattr(self._transport, "aclose", None)
            if aclose is not None:
                await aclose()

    def broadcast_events(self) -> None:
        """Notify the receive subscriber with the current list."""
        try:
            self._receive_callback(self)
        except Exception:
            logger.exception("Receive callback failed for %s", self.config.url)

    def request_options(self) -> RequestOptions:
        """Build the per-request options handed to the transport."""
        return RequestOptions(
            headers={"User-Agent": self.config.user_agent},
            auth=self.config.auth,
            gzip=self.config.gzip,
            timeout=self.config.request_timeout,
        )

    def process_entries(
        self, entries: Iterable[RawEntry], now: Optional[datetime.datetime] = None
    ) -> list[Event]:
        """Run the normalize, filter and rank pipeline over decoded entries.

        Args:
            entries: Raw entries from a decoder
            now: Reference instant; defaults to the time provider

        Returns:
            Ranked events ready for publishing
        """
        if now is None:
            now = self._time_provider()

        window_start = None if self.config.include_past_events else now
        window_end = now + datetime.timedelta(days=self.config.maximum_number_of_days)

        entries = list(entries)
        overridden = self.normalizer.override_keys(entries)

        candidates: list[Event] = []
        for entry in entries:
            candidates.extend(
                self.normalizer.expand(entry, window_start, window_end, overridden)
            )

        filtered = self.filter_chain.apply(candidates, now)
        return self.ranker.rank(filtered, now)

    async def fetch_once(self) -> tuple[Event, ...]:
        """Fetch, process and publish a single time, outside the poll loop.

        Raises:
            TransportError: If the fetch fails; the published list is unchanged
        """
        entries = await self._fetch_entries()
        self._handle_entries(entries)
        return self._events

    async def _fetch_entries(self) -> Iterable[RawEntry]:
        url = self.config.url
        try:
            return await self._transport(url, self.request_options())
        except TransportError as e:
            if e.url is None:
                e.url = url
            raise
        except Exception as e:
            raise TransportError(f"Unexpected error: {e}", url) from e

    def _handle_entries(self, entries: Iterable[RawEntry]) -> None:
        entries = list(entries)
        events = tuple(self.process_entries(entries))
        self._events = events
        logger.info(
            "Published %d events from %d entries for %s", len(events), len(entries), self.config.url
        )
        self.broadcast_events()

    def _handle_failure(self, error: Exception) -> None:
        if not isinstance(error, TransportError):
            error = TransportError(str(error), self.config.url)
        logger.warning("Calendar fetch failed for %s: %s", self.config.url, error)
        try:
            self._error_callback(self, error)
        except Exception:
            logger.exception("Error callback failed for %s", self.config.url)
