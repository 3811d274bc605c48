"""Repeating callbacks on the asyncio event loop."""

import asyncio
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicTimer:
    """
    Runs a callback every `interval` seconds on the running event loop.

    Ticks are scheduled against absolute deadlines (start + n * interval)
    so a slow callback does not push later ticks back. If the loop falls
    more than one interval behind, missed ticks are skipped rather than
    fired in a burst.

    stop() cancels the pending handle immediately: once it returns, the
    callback will not run again until start() is called.
    """

    def __init__(self, interval: float, callback: Callable[[], None], name: str = "timer"):
        """
        Args:
            interval: Seconds between ticks (must be > 0).
            callback: Synchronous function run on every tick.
            name: Label used in log messages.
        """
        if interval <= 0:
            raise ValueError("Timer interval must be positive")
        self.interval = interval
        self.name = name
        self._callback = callback
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._handle: Optional[asyncio.TimerHandle] = None
        self._next_deadline: float = 0.0
        self.tick_count: int = 0

    @property
    def is_running(self) -> bool:
        return self._handle is not None

    def start(self) -> None:
        """Start ticking. The first tick fires one interval from now."""
        if self._handle is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._next_deadline = self._loop.time() + self.interval
        self._handle = self._loop.call_at(self._next_deadline, self._fire)
        logger.debug(f"Timer '{self.name}' started ({self.interval * 1000:.0f} ms)")

    def stop(self) -> None:
        """Cancel the pending tick. Safe to call when not running."""
        if self._handle is None:
            return
        self._handle.cancel()
        self._handle = None
        logger.debug(f"Timer '{self.name}' stopped after {self.tick_count} ticks")

    def _fire(self) -> None:
        # Reschedule first so an exception in the callback doesn't kill the timer
        now = self._loop.time()
        self._next_deadline += self.interval
        if self._next_deadline <= now:
            missed = int((now - self._next_deadline) // self.interval) + 1
            self._next_deadline += missed * self.interval
        self._handle = self._loop.call_at(self._next_deadline, self._fire)

        self.tick_count += 1
        try:
            self._callback()
        except Exception as e:
            logger.error(f"Timer '{self.name}' callback error: {e}")
