"""Single-flight fetch scheduling with a short-retry policy."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum

logger = logging.getLogger(__name__)

RETRY_DELAY_SECONDS = 10.0
MAX_FAILED_RETRIEVALS = 3


class FetchOutcome(str, Enum):
    """Result of one fetch cycle as seen by the scheduler."""

    FAILURE = "failure"
    EMPTY = "empty"
    EVENTS = "events"


class FetchScheduler:
    """Owns the timer that drives fetch cycles for one feed.

    At most one timer is pending and at most one cycle runs at a time. Every
    re-arm cancels the previous timer first.

    Failure policy: while fewer than max_failed_retrievals short retries have
    been made, a transport failure increments the counter and the next attempt
    comes after the short retry delay. The failure after the last short retry
    resets the counter and the normal reload interval applies. Any successful
    retrieval resets the counter and uses the reload interval.
    """

    def __init__(
        self,
        cycle: Callable[[], Awaitable[FetchOutcome]],
        reload_interval: float,
        retry_delay: float = RETRY_DELAY_SECONDS,
        max_failed_retrievals: int = MAX_FAILED_RETRIEVALS,
        on_retries_exhausted: Callable[[], None] | None = None,
    ):
        """Initialize scheduler.

        Args:
            cycle: Coroutine function performing one fetch cycle
            reload_interval: Normal delay between cycles, in seconds
            retry_delay: Delay after a failure below the threshold, in seconds
            max_failed_retrievals: Short retries made before falling back
                to the normal interval
            on_retries_exhausted: Called when a failure follows the last short retry
        """
        self._cycle = cycle
        self.reload_interval = reload_interval
        self.retry_delay = retry_delay
        self.max_failed_retrievals = max_failed_retrievals
        self._on_retries_exhausted = on_retries_exhausted

        self._failed_retrievals = 0
        self._timer: asyncio.TimerHandle | None = None
        self._pending_delay: float | None = None
        self._task: asyncio.Task[FetchOutcome] | None = None

    @property
    def failed_retrievals(self) -> int:
        return self._failed_retrievals

    @property
    def pending_delay(self) -> float | None:
        """Delay of the currently armed timer in seconds, None if nothing is armed."""
        return self._pending_delay if self._timer is not None else None

    @property
    def is_fetching(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Cancel any pending timer and trigger a cycle now.

        Must be called from within a running event loop. Calling it while a
        cycle is in flight does not start a second one.
        """
        self._cancel_timer()
        if self.is_fetching:
            logger.debug("Fetch already in progress; not starting another")
            return
        self._task = asyncio.get_running_loop().create_task(self.run_cycle())

    def stop(self) -> None:
        """Cancel the pending timer and any in-flight cycle."""
        self._cancel_timer()
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def run_cycle(self) -> FetchOutcome:
        """Run one cycle, apply the retry policy and re-arm."""
        # We've started working, so disable the next scheduled run for now
        self._cancel_timer()

        try:
            outcome = await self._cycle()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Fetch cycle raised unexpectedly; treating as failure")
            outcome = FetchOutcome.FAILURE

        self.schedule(self.record_outcome(outcome))
        return outcome

    def record_outcome(self, outcome: FetchOutcome) -> float:
        """Update the failure counter and return the delay before the next cycle.

        Args:
            outcome: Result of the cycle that just finished

        Returns:
            Delay in seconds
        """
        if outcome != FetchOutcome.FAILURE:
            self._failed_retrievals = 0
            return self.reload_interval

        if self._failed_retrievals < self.max_failed_retrievals:
            self._failed_retrievals += 1
            logger.debug(
                "Retrieval failed (%d/%d), retrying in %.0fs",
                self._failed_retrievals,
                self.max_failed_retrievals,
                self.retry_delay,
            )
            return self.retry_delay

        logger.warning(
            "Retrieval failed %d times in a row; falling back to the %.0fs reload interval",
            self._failed_retrievals + 1,
            self.reload_interval,
        )
        self._failed_retrievals = 0
        if self._on_retries_exhausted is not None:
            try:
                self._on_retries_exhausted()
            except Exception:
                logger.exception("Retries-exhausted callback failed")
        return self.reload_interval

    def schedule(self, delay: float) -> None:
        """Arm the timer for the next cycle, replacing any pending one."""
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(delay, self._on_timer)
        self._pending_delay = delay

    def _on_timer(self) -> None:
        self._timer = None
        self._pending_delay = None
        self._task = asyncio.get_running_loop().create_task(self.run_cycle())

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None
        self._pending_delay = None
