"""One-way readiness latches."""

import logging
from dataclasses import dataclass, field
from typing import Callable, List

logger = logging.getLogger(__name__)


class Latch:
    """
    A boolean that goes from False to True exactly once and never reverts.

    Listeners registered before the latch is set are called once when it
    is set; listeners registered afterwards are called immediately.
    """

    def __init__(self, name: str):
        self.name = name
        self._set = False
        self._listeners: List[Callable[[], None]] = []

    @property
    def is_set(self) -> bool:
        return self._set

    def set(self) -> None:
        """Set the latch. Repeated calls are ignored."""
        if self._set:
            return
        self._set = True
        logger.info(f"{self.name} ready")
        listeners, self._listeners = self._listeners, []
        for listener in listeners:
            self._call(listener)

    def add_listener(self, listener: Callable[[], None]) -> None:
        """Call `listener` once the latch is set (now, if already set)."""
        if self._set:
            self._call(listener)
        else:
            self._listeners.append(listener)

    def _call(self, listener: Callable[[], None]) -> None:
        try:
            listener()
        except Exception as e:
            logger.error(f"{self.name} listener error: {e}")


@dataclass
class ReadinessFlags:
    """Readiness latches set by external collaborators."""

    server_ready: Latch = field(default_factory=lambda: Latch("Server"))
    video_ready: Latch = field(default_factory=lambda: Latch("Video"))
