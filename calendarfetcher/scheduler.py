"""Single-flight poll loop for calendar fetching.

The next cycle's timer is armed only from the completion of the current cycle,
never on a fixed wall-clock cadence, so at most one fetch per scheduler is ever
in flight. The loop keeps retrying at the poll interval after failures: there
is no backoff and no retry cap.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable
from typing import Any, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FetchScheduler(Generic[T]):
    """Owns the poll loop of one calendar source.

    Each cycle awaits ``fetch``, hands the outcome to ``on_success`` or
    ``on_failure``, and then arms exactly one timer for ``interval`` seconds.
    A result that arrives after ``stop()`` is discarded and arms nothing.

    Must be started from within a running asyncio event loop.
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[T]],
        on_success: Callable[[T], Any],
        on_failure: Callable[[Exception], Any],
        interval: float,
    ):
        """Initialize scheduler.

        Args:
            fetch: Coroutine function performing one fetch
            on_success: Called with the fetch result of a live cycle
            on_failure: Called with the exception of a failed live cycle
            interval: Seconds between the end of one cycle and the start of the next
        """
        self._fetch = fetch
        self._on_success = on_success
        self._on_failure = on_failure
        self.interval = interval

        self._timer: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task[None]] = None
        # Bumped on stop/restart so cycles dispatched earlier become stale
        self._generation = 0
        self._stopped = True

    @property
    def running(self) -> bool:
        """True between start() and stop()."""
        return not self._stopped

    @property
    def in_flight(self) -> bool:
        """True while a fetch cycle is executing."""
        return self._task is not None and not self._task.done()

    @property
    def pending_timer(self) -> Optional[asyncio.TimerHandle]:
        """The armed timer for the next cycle, if any."""
        return self._timer

    def start(self) -> None:
        """Start the loop with an immediate fetch.

        Cancels any pending timer first. If a live cycle is already in flight
        the call is a no-op; that cycle will arm the next timer. If a stopped
        cycle is still draining, the new cycle starts once it settles.
        """
        asyncio.get_running_loop()  # raises RuntimeError outside a loop
        self._cancel_timer()

        task = self._task
        if task is not None and not task.done():
            if not self._stopped:
                logger.debug("Fetch cycle already in flight; start() ignored")
                return
            self._stopped = False
            self._generation += 1
            generation = self._generation
            task.add_done_callback(lambda _task: self._launch(generation))
            logger.debug("Restart requested while a stopped cycle drains; deferring")
            return

        self._stopped = False
        self._generation += 1
        self._launch(self._generation)

    def stop(self) -> None:
        """Cancel any pending timer and suppress further scheduling.

        A cycle already in flight may complete but its result is discarded.
        """
        self._stopped = True
        self._generation += 1
        self._cancel_timer()
        logger.debug("Fetch scheduler stopped")

    async def aclose(self) -> None:
        """Stop the loop and cancel an in-flight cycle, waiting for it to unwind."""
        self.stop()
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation and not self._stopped

    def _launch(self, generation: int) -> None:
        if not self._is_current(generation):
            return
        # start(), timers and done callbacks all run inside the owning loop
        self._task = asyncio.get_running_loop().create_task(self._run_cycle(generation))

    async def _run_cycle(self, generation: int) -> None:
        logger.debug("Starting fetch cycle (generation %d)", generation)
        try:
            result = await self._fetch()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if self._is_current(generation):
                self._deliver(self._on_failure, exc)
            else:
                logger.debug("Discarding failure of stale cycle: %s", exc)
        else:
            if self._is_current(generation):
                self._deliver(self._on_success, result)
            else:
                logger.debug("Discarding result of stale cycle")

        if self._is_current(generation):
            self._arm_timer(generation)

    def _deliver(self, handler: Callable[[Any], Any], outcome: Any) -> None:
        try:
            handler(outcome)
        except Exception:
            logger.exception("Fetch cycle handler raised; loop continues")

    def _arm_timer(self, generation: int) -> None:
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.interval, self._on_timer, generation)
        logger.debug("Next fetch in %.1fs", self.interval)

    def _on_timer(self, generation: int) -> None:
        self._timer = None
        self._launch(generation)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
