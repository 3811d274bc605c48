"""Focused/distracted duration accumulation."""

import logging
import math
from dataclasses import dataclass
from typing import Callable, Optional

from core.clock import ClockSource
from tracking.status import ClassificationLabel

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccumulatedDurations:
    """Snapshot of both buckets, in seconds."""
    focused_seconds: float = 0.0
    distracted_seconds: float = 0.0

    @property
    def total_seconds(self) -> float:
        return self.focused_seconds + self.distracted_seconds


def format_duration(seconds: float) -> str:
    """
    Format seconds as "S.mmm".

    Both parts are floored, never rounded, so the displayed value never
    exceeds the true elapsed time.

    Examples:
        >>> format_duration(1.2349)
        '1.234'
        >>> format_duration(0.05)
        '0.050'
    """
    whole = math.floor(seconds)
    millis = math.floor((seconds - whole) * 1000)
    return f"{whole}.{millis:03d}"


class TimeAccumulator:
    """
    Integrates elapsed clock time into the focused or distracted bucket.

    Each tick adds the time since the previous tick (the anchor) to the
    bucket for the label read at the moment of the tick, then moves the
    anchor forward. A label change therefore attributes the interval
    that contains it to the new label; the error is at most one tick.
    """

    def __init__(
        self,
        label_source: Callable[[], ClassificationLabel],
        clock: Optional[ClockSource] = None,
    ):
        """
        Args:
            label_source: Returns the latest classification label.
            clock: Monotonic time source (defaults to ClockSource()).
        """
        self._label_source = label_source
        self._clock = clock or ClockSource()
        self.focused_seconds: float = 0.0
        self.distracted_seconds: float = 0.0
        self.anchor: Optional[float] = None

    @property
    def is_active(self) -> bool:
        return self.anchor is not None

    @property
    def durations(self) -> AccumulatedDurations:
        return AccumulatedDurations(self.focused_seconds, self.distracted_seconds)

    def reset(self) -> None:
        """Zero both buckets and anchor at the current time."""
        self.focused_seconds = 0.0
        self.distracted_seconds = 0.0
        self.anchor = self._clock.now()

    def tick(self) -> None:
        """Attribute the time since the last tick to the current label's bucket."""
        if self.anchor is None:
            return

        now = self._clock.now()
        delta = max(0.0, now - self.anchor)

        if self._label_source() == ClassificationLabel.DISTRACTED:
            self.distracted_seconds += delta
        else:
            self.focused_seconds += delta
        self.anchor = now

    def stop(self) -> None:
        """Stop accumulating. The partial interval since the last tick is dropped."""
        self.anchor = None
        logger.debug(
            f"Accumulator stopped: focused={format_duration(self.focused_seconds)}s "
            f"distracted={format_duration(self.distracted_seconds)}s"
        )
