"""Ingestion of classification messages from the remote service."""

import logging
from enum import Enum
from typing import Any, Callable, List, Optional

import config

logger = logging.getLogger(__name__)


class ClassificationLabel(Enum):
    """Classification state used to pick the duration bucket."""
    FOCUSED = "focused"
    DISTRACTED = "distracted"
    UNKNOWN = "unknown"  # Only before the first status message arrives


def map_status(status: str) -> ClassificationLabel:
    """
    Map a remote status string to a label.

    Only the exact string "Distracted" is distracted; every other value
    (including unexpected ones) counts as focused.
    """
    if status == config.REMOTE_DISTRACTED_STATUS:
        return ClassificationLabel.DISTRACTED
    return ClassificationLabel.FOCUSED


class StatusIngester:
    """
    Consumes `focus_status` and `error` messages.

    Single writer of the current ClassificationLabel. Listeners receive
    (status_text, label) after each applied message.
    """

    def __init__(self) -> None:
        self.label: ClassificationLabel = ClassificationLabel.UNKNOWN
        self.status_text: Optional[str] = None
        self.messages_received: int = 0
        self._listeners: List[Callable[[str, ClassificationLabel], None]] = []

    def attach(self, connection) -> None:
        """Register message handlers on a ConnectionManager."""
        connection.on_message(config.CHANNEL_FOCUS_STATUS, self.handle_status)
        connection.on_message(config.CHANNEL_ERROR, self.handle_error)

    def add_listener(self, listener: Callable[[str, ClassificationLabel], None]) -> None:
        self._listeners.append(listener)

    def current_label(self) -> ClassificationLabel:
        return self.label

    def handle_status(self, data: Any) -> None:
        """Apply a `{status: str}` message."""
        if not isinstance(data, dict) or not isinstance(data.get("status"), str):
            logger.warning(f"Ignoring malformed focus_status message: {data!r}")
            return

        status = data["status"]
        self.label = map_status(status)
        self.status_text = status
        self.messages_received += 1
        logger.debug(f"Status '{status}' -> {self.label.value}")
        self._publish(status)

    def handle_error(self, data: Any) -> None:
        """Apply a `{error: str}` message. The label is left untouched."""
        detail = data.get("error") if isinstance(data, dict) else data
        logger.error(f"Error from server: {detail}")
        self.status_text = config.STATUS_PROCESSING_ERROR
        self._publish(config.STATUS_PROCESSING_ERROR)

    def _publish(self, text: str) -> None:
        for listener in self._listeners:
            try:
                listener(text, self.label)
            except Exception as e:
                logger.debug(f"Status listener error: {e}")
