"""Periodic capture -> encode -> send of webcam frames."""

import logging
from typing import Any, Callable, Optional

import config
from camera.encoding import encode_frame
from connection.manager import ConnectionManager
from core.readiness import ReadinessFlags

logger = logging.getLogger(__name__)


class CaptureLoop:
    """
    One capture cycle per tick, only while the gate is open.

    The gate is tracking AND server ready AND video ready AND connected,
    evaluated once at the start of every tick. A closed gate skips the
    tick; sends already handed to the connection are not recalled.
    """

    def __init__(
        self,
        connection: ConnectionManager,
        readiness: ReadinessFlags,
        is_tracking: Callable[[], bool],
        frame_source: Callable[[], Any],
        encoder: Callable[[Any], str] = encode_frame,
    ):
        """
        Args:
            connection: Connection used to send frames.
            readiness: Server/video readiness latches.
            is_tracking: Returns the current tracking flag.
            frame_source: Returns the latest frame (or None if unavailable).
            encoder: Turns a frame into a base64 JPEG string.
        """
        self._connection = connection
        self._readiness = readiness
        self._is_tracking = is_tracking
        self._frame_source = frame_source
        self._encoder = encoder
        self.frames_sent: int = 0
        self.frames_skipped: int = 0

    def gate_open(self) -> bool:
        """All four preconditions for a capture cycle."""
        return (
            self._is_tracking()
            and self._readiness.server_ready.is_set
            and self._readiness.video_ready.is_set
            and self._connection.is_connected
        )

    def tick(self) -> None:
        """Run one capture cycle if the gate is open."""
        if not self.gate_open():
            self.frames_skipped += 1
            return

        payload = self._capture()
        if payload is None:
            return

        if self._connection.send(config.CHANNEL_FRAME, {"frame": payload}):
            self.frames_sent += 1

    def _capture(self) -> Optional[str]:
        # Transient misses are expected (camera warming up, dropped frame)
        try:
            frame = self._frame_source()
            if frame is None:
                logger.debug("No frame available this tick")
                return None
            return self._encoder(frame)
        except Exception as e:
            logger.warning(f"Frame capture failed, retrying next tick: {e}")
            return None
