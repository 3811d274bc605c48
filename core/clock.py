"""Monotonic time source used by all timing math."""

import time


class ClockSource:
    """
    Supplies monotonic timestamps in seconds.

    Wall-clock adjustments (NTP, DST) never move it backwards, so
    deltas between two readings are always >= 0.
    """

    def now(self) -> float:
        """Return the current monotonic timestamp in seconds."""
        return time.monotonic()
