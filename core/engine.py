"""
SessionController — top-level orchestration for the Distraction Detection
client.

Owns one SessionContext per mount: the connection, status ingestion,
duration accumulation, the capture loop, readiness latches and the two
periodic timers. All of it runs on a single asyncio event loop.

This module has ZERO UI dependencies. A display sink polls get_status()
on its own schedule and/or subscribes to on_status_change.

Callbacks:
    on_status_change(text: str)
    on_error(error_type: str, message: str)
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Set

import config
from camera.capture import CameraCapture
from connection.manager import ConnectionManager, ConnectionState
from core.capture_loop import CaptureLoop
from core.clock import ClockSource
from core.provisioning import ServerLauncher
from core.readiness import ReadinessFlags
from core.timer import PeriodicTimer
from tracking.accumulator import AccumulatedDurations, TimeAccumulator, format_duration
from tracking.status import ClassificationLabel, StatusIngester

logger = logging.getLogger(__name__)


@dataclass
class SessionContext:
    """Everything that lives between mount() and dispose()."""
    connection: ConnectionManager
    ingester: StatusIngester
    accumulator: TimeAccumulator
    capture_loop: CaptureLoop
    readiness: ReadinessFlags
    capture_timer: PeriodicTimer
    accumulator_timer: PeriodicTimer
    camera: Optional[CameraCapture] = None
    is_tracking: bool = False
    connection_state: ConnectionState = ConnectionState.DISCONNECTED


class SessionController:
    """
    Start/stop semantics and component wiring.

    Handles:
    - Configuration check (backend address)
    - Server provisioning, then connection and camera acquisition
    - Session lifecycle (start resets durations, stop keeps them)
    - Mirroring connection and classification events to status text
    """

    # ------------------------------------------------------------------
    # Initialisation
    # ------------------------------------------------------------------

    def __init__(
        self,
        backend_url: Optional[str] = None,
        local: bool = False,
        clock: Optional[ClockSource] = None,
        connection_factory: Callable[[], ConnectionManager] = ConnectionManager,
        camera_factory: Callable[[], CameraCapture] = CameraCapture,
        launcher_factory: Optional[Callable[[Any], ServerLauncher]] = None,
    ) -> None:
        """
        Args:
            backend_url: Remote service address (defaults to config).
            local: Local testing variant (simulated provisioning).
            clock: Time source for duration accumulation.
            connection_factory: Builds the ConnectionManager.
            camera_factory: Builds the video frame source.
            launcher_factory: Builds the ServerLauncher from the server latch.
        """
        self.backend_url = backend_url if backend_url is not None else config.get_backend_url(local)
        self.local = local
        self._clock = clock or ClockSource()
        self._connection_factory = connection_factory
        self._camera_factory = camera_factory
        self._launcher_factory = launcher_factory or (
            lambda latch: ServerLauncher(latch, simulate=local)
        )

        self.context: Optional[SessionContext] = None
        self.status_text: str = config.STATUS_IDLE
        self._tasks: Set[asyncio.Task] = set()

        # ---- Callbacks (set by the display sink) ----
        self.on_status_change: Optional[Callable[[str], None]] = None
        self.on_error: Optional[Callable[[str, str], None]] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def is_tracking(self) -> bool:
        return self.context is not None and self.context.is_tracking

    @property
    def durations(self) -> AccumulatedDurations:
        if self.context is None:
            return AccumulatedDurations()
        return self.context.accumulator.durations

    def mount(self) -> None:
        """
        Create the session context and start provisioning.

        Must be called from a running event loop. A missing backend address
        is reported through status text; nothing is raised.
        """
        if self.context is not None:
            logger.debug("mount() ignored: already mounted")
            return

        readiness = ReadinessFlags()
        connection = self._connection_factory()
        ingester = StatusIngester()
        accumulator = TimeAccumulator(ingester.current_label, self._clock)

        capture_loop = CaptureLoop(
            connection,
            readiness,
            is_tracking=lambda: self.is_tracking,
            frame_source=self._read_frame,
        )

        self.context = SessionContext(
            connection=connection,
            ingester=ingester,
            accumulator=accumulator,
            capture_loop=capture_loop,
            readiness=readiness,
            capture_timer=PeriodicTimer(
                config.CAPTURE_INTERVAL, capture_loop.tick, name="capture"
            ),
            accumulator_timer=PeriodicTimer(
                config.ACCUMULATOR_INTERVAL, accumulator.tick, name="accumulator"
            ),
        )

        ingester.attach(connection)
        ingester.add_listener(self._on_classification)
        connection.add_state_listener(self._on_connection_state)
        connection.add_error_listener(self._on_connection_error)

        if not self.backend_url:
            logger.error("No backend URL configured!")
            self._notify_status_change(config.STATUS_NO_BACKEND_URL)
            self._notify_error("no_backend_url", config.STATUS_NO_BACKEND_URL)
            return

        logger.info(f"Using backend URL: {self.backend_url}")
        readiness.server_ready.add_listener(self._on_server_ready)
        self._spawn(self._launcher_factory(readiness.server_ready).run(), "launch")

    def start(self) -> Dict:
        """
        Start a new tracking session.

        Returns:
            {"success": bool, "error": str | None, "error_type": str | None}
            error_type values: "not_mounted", "already_running", "no_backend_url"
        """
        ctx = self.context
        if ctx is None:
            return {"success": False, "error": "Controller is not mounted", "error_type": "not_mounted"}
        if ctx.is_tracking:
            return {"success": False, "error": "Session already running", "error_type": "already_running"}
        if not self.backend_url:
            return {
                "success": False,
                "error": config.STATUS_NO_BACKEND_URL,
                "error_type": "no_backend_url",
            }

        ctx.accumulator.reset()
        ctx.is_tracking = True
        ctx.accumulator_timer.start()
        ctx.capture_timer.start()

        logger.info("Session started")
        return {"success": True, "error": None, "error_type": None}

    def stop(self) -> Dict:
        """
        Stop the current session. Durations keep their last values.

        Returns:
            {"success": bool, "durations": AccumulatedDurations | None}
        """
        ctx = self.context
        if ctx is None or not ctx.is_tracking:
            return {"success": False, "durations": None}

        ctx.is_tracking = False
        ctx.capture_timer.stop()
        ctx.accumulator_timer.stop()
        ctx.accumulator.stop()

        self._notify_status_change(config.STATUS_IDLE)
        durations = ctx.accumulator.durations
        logger.info(
            f"Session stopped: focused {format_duration(durations.focused_seconds)}s, "
            f"distracted {format_duration(durations.distracted_seconds)}s"
        )
        return {"success": True, "durations": durations}

    def reconnect(self) -> Dict:
        """
        Start a new connection attempt (the way out of an errored connection).

        Returns:
            {"success": bool, "error": str | None, "error_type": str | None}
            error_type values: "not_mounted", "no_backend_url",
            "server_not_ready", "already_connected"
        """
        ctx = self.context
        if ctx is None:
            return {"success": False, "error": "Controller is not mounted", "error_type": "not_mounted"}
        if not self.backend_url:
            return {
                "success": False,
                "error": config.STATUS_NO_BACKEND_URL,
                "error_type": "no_backend_url",
            }
        if not ctx.readiness.server_ready.is_set:
            return {"success": False, "error": "Server is not ready yet", "error_type": "server_not_ready"}
        if ctx.connection.state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
            return {
                "success": False,
                "error": f"Connection is already {ctx.connection.state.value}",
                "error_type": "already_connected",
            }

        logger.info("Reconnect requested")
        ctx.connection.connect(self.backend_url)
        return {"success": True, "error": None, "error_type": None}

    async def dispose(self) -> None:
        """Stop tracking, close the connection and release the camera."""
        ctx = self.context
        if ctx is None:
            return

        self.stop()

        for task in list(self._tasks):
            task.cancel()
        for task in list(self._tasks):
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.warning(f"Error stopping background task: {e}")
        self._tasks.clear()

        await ctx.connection.disconnect()

        if ctx.camera is not None:
            ctx.camera.close()
            ctx.camera = None

        self.context = None
        logger.info("Controller disposed")

    def get_status(self) -> Dict:
        """
        Get current status (polled by the display sink).

        Returns:
            dict with keys: is_tracking, status, label, connection_state,
            focused, distracted, server_ready, video_ready, frames_sent,
            frames_skipped, messages_received.
        """
        ctx = self.context
        durations = self.durations
        return {
            "is_tracking": self.is_tracking,
            "status": self.status_text,
            "label": ctx.ingester.label.value if ctx else ClassificationLabel.UNKNOWN.value,
            "connection_state": (
                ctx.connection.state.value if ctx else ConnectionState.DISCONNECTED.value
            ),
            "focused": format_duration(durations.focused_seconds),
            "distracted": format_duration(durations.distracted_seconds),
            "server_ready": bool(ctx and ctx.readiness.server_ready.is_set),
            "video_ready": bool(ctx and ctx.readiness.video_ready.is_set),
            "frames_sent": ctx.capture_loop.frames_sent if ctx else 0,
            "frames_skipped": ctx.capture_loop.frames_skipped if ctx else 0,
            "messages_received": ctx.ingester.messages_received if ctx else 0,
        }

    # ------------------------------------------------------------------
    # Readiness
    # ------------------------------------------------------------------

    def _on_server_ready(self) -> None:
        ctx = self.context
        if ctx is None:
            return
        ctx.connection.connect(self.backend_url)
        self._spawn(self._acquire_video(), "acquire-video")

    async def _acquire_video(self) -> None:
        """Open the camera off the event loop, then set the video latch."""
        camera = self._camera_factory()
        loop = asyncio.get_running_loop()
        try:
            opened = await loop.run_in_executor(None, camera.open)
        except Exception as e:
            logger.error(f"Error accessing webcam: {e}")
            opened = False

        ctx = self.context
        if ctx is None:
            camera.close()
            return

        if not opened:
            camera.close()
            self._notify_status_change(config.STATUS_WEBCAM_ERROR)
            self._notify_error("camera_error", config.STATUS_WEBCAM_ERROR)
            return

        ctx.camera = camera
        ctx.readiness.video_ready.set()

    def _read_frame(self) -> Any:
        ctx = self.context
        if ctx is None or ctx.camera is None:
            return None
        success, frame = ctx.camera.read_frame()
        return frame if success else None

    # ------------------------------------------------------------------
    # Event mirroring
    # ------------------------------------------------------------------

    def _on_connection_state(self, state: ConnectionState) -> None:
        ctx = self.context
        previous = ctx.connection_state if ctx else ConnectionState.DISCONNECTED
        if ctx:
            ctx.connection_state = state

        if state == ConnectionState.CONNECTED:
            self._notify_status_change(config.STATUS_CONNECTED)
        elif state == ConnectionState.DISCONNECTED:
            self._notify_status_change(config.STATUS_DISCONNECTED)
        elif state == ConnectionState.CONNECTING and previous == ConnectionState.CONNECTED:
            # Dropped; reconnection is under way
            self._notify_status_change(config.STATUS_DISCONNECTED)

    def _on_connection_error(self, reason: str) -> None:
        message = config.STATUS_CONNECTION_ERROR.format(reason=reason)
        self._notify_status_change(message)
        self._notify_error("connection_error", message)

    def _on_classification(self, text: str, label: ClassificationLabel) -> None:
        self._notify_status_change(text)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _spawn(self, coro, name: str) -> None:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _notify_status_change(self, text: str) -> None:
        """Update status text and notify the display sink."""
        self.status_text = text
        if self.on_status_change:
            try:
                self.on_status_change(text)
            except Exception as e:
                logger.debug(f"on_status_change callback error: {e}")

    def _notify_error(self, error_type: str, message: str) -> None:
        """Notify of an error via callback."""
        if self.on_error:
            try:
                self.on_error(error_type, message)
            except Exception as e:
                logger.debug(f"on_error callback error: {e}")
