"""Terminal display sink: status label and the two duration counters."""

import logging
import sys
from typing import Dict, Optional, TextIO

import config
from core.engine import SessionController
from core.timer import PeriodicTimer

logger = logging.getLogger(__name__)

REFRESH_INTERVAL = 0.1  # Seconds between counter redraws


def render_counters(status: Dict) -> str:
    """Single-line rendering of both counters."""
    return (
        f"Focused Time: {status['focused']} seconds | "
        f"Distracted Time: {status['distracted']} seconds"
    )


class ConsoleDisplay:
    """
    Mirrors controller state to a terminal.

    Status text changes are printed on their own line as they happen;
    counters are redrawn in place while a session is tracking.
    """

    def __init__(self, controller: SessionController, stream: Optional[TextIO] = None):
        self.controller = controller
        self.stream = stream or sys.stdout
        self._timer = PeriodicTimer(REFRESH_INTERVAL, self.refresh, name="display")
        self._last_line: Optional[str] = None
        self._server_ready_shown = False
        controller.on_status_change = self.show_status
        controller.on_error = self.show_error

    def start(self) -> None:
        self.write_line("Distraction Detection")
        self.write_line(config.STATUS_SERVER_LOADING)
        self._timer.start()

    def stop(self) -> None:
        self._timer.stop()
        self.refresh()
        self._end_counter_line()

    def show_status(self, text: str) -> None:
        self._end_counter_line()
        self.write_line(f"Status: {text}")

    def show_error(self, error_type: str, message: str) -> None:
        logger.debug(f"Display error [{error_type}]: {message}")

    def refresh(self) -> None:
        status = self.controller.get_status()

        if status["server_ready"] and not self._server_ready_shown:
            self._server_ready_shown = True
            self._end_counter_line()
            self.write_line("Server ready. Commands: start, stop, status, reconnect, quit")

        if not status["is_tracking"]:
            return

        line = render_counters(status)
        if line != self._last_line:
            self.stream.write("\r" + line)
            self.stream.flush()
            self._last_line = line

    def show_summary(self) -> None:
        status = self.controller.get_status()
        self._end_counter_line()
        self.write_line(
            f"[{status['connection_state']}] {status['status']} | {render_counters(status)}"
        )
        self.write_line(
            f"Frames sent: {status['frames_sent']} | skipped ticks: {status['frames_skipped']} | "
            f"status messages: {status['messages_received']}"
        )

    def write_line(self, text: str) -> None:
        self.stream.write(text + "\n")
        self.stream.flush()

    def _end_counter_line(self) -> None:
        if self._last_line is not None:
            self.stream.write("\n")
            self._last_line = None
