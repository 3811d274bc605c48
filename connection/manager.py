"""
ConnectionManager — owns the persistent Socket.IO connection to the
classification service.

Lifecycle:
    DISCONNECTED -> CONNECTING -> CONNECTED | ERRORED
    CONNECTED -> DISCONNECTED   (disconnect() called)
    CONNECTED -> CONNECTING     (unexpected drop, reconnection starts)
    CONNECTING -> ERRORED       (retries exhausted)

A refused first connect is retried with the same bounded policy as a
drop. Nothing here raises to callers: every failed attempt delivers its
reason to error listeners, and exhaustion also moves the state to ERRORED.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Set

import socketio

import config

logger = logging.getLogger(__name__)


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERRORED = "errored"


def _create_client() -> socketio.AsyncClient:
    # Reconnection is driven by ConnectionManager so its state machine
    # sees every attempt. request_timeout bounds the engine.io transport
    # connect; wait_timeout in connect() bounds the namespace handshake.
    return socketio.AsyncClient(
        reconnection=False,
        ssl_verify=config.SSL_VERIFY,
        request_timeout=config.CONNECT_TIMEOUT,
    )


class ConnectionManager:
    """
    One persistent connection with bounded, fixed-delay reconnection.

    Callbacks:
        state listeners: (state: ConnectionState) on every transition
        error listeners: (reason: str) on every connection failure
    """

    def __init__(
        self,
        reconnection_attempts: int = config.RECONNECTION_ATTEMPTS,
        reconnection_delay: float = config.RECONNECTION_DELAY,
        connect_timeout: float = config.CONNECT_TIMEOUT,
        client_factory: Optional[Callable[[], Any]] = None,
    ) -> None:
        """
        Args:
            reconnection_attempts: Attempts after an unexpected drop.
            reconnection_delay: Fixed seconds to wait before each attempt.
            connect_timeout: Seconds to wait for the server to accept.
            client_factory: Builds the Socket.IO client.
        """
        self.reconnection_attempts = reconnection_attempts
        self.reconnection_delay = reconnection_delay
        self.connect_timeout = connect_timeout
        self._client_factory = client_factory or _create_client

        self.state: ConnectionState = ConnectionState.DISCONNECTED
        self.address: Optional[str] = None
        self.last_error: Optional[str] = None

        self._client: Optional[Any] = None
        self._task: Optional[asyncio.Task] = None
        self._closing: bool = False
        self._handlers: Dict[str, List[Callable[[Any], None]]] = {}
        self._state_listeners: List[Callable[[ConnectionState], None]] = []
        self._error_listeners: List[Callable[[str], None]] = []
        self._pending_sends: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def is_connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED

    def add_state_listener(self, listener: Callable[[ConnectionState], None]) -> None:
        self._state_listeners.append(listener)

    def add_error_listener(self, listener: Callable[[str], None]) -> None:
        self._error_listeners.append(listener)

    def on_message(self, channel: str, handler: Callable[[Any], None]) -> None:
        """
        Register a handler for inbound messages on `channel`.

        Handlers run once per message, in arrival order, on the event loop.
        """
        first = channel not in self._handlers
        self._handlers.setdefault(channel, []).append(handler)
        if first and self._client is not None:
            self._bind_channel(self._client, channel)

    def connect(self, address: str) -> None:
        """
        Start connecting to `address`. Returns immediately.

        Ignored while already connecting or connected. The outcome is
        reported through state and error listeners.
        """
        if self.state in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
            logger.debug(f"connect() ignored in state {self.state.value}")
            return

        self.address = address
        self._closing = False
        if self._client is None:
            self._client = self._client_factory()
            self._bind_client(self._client)

        logger.info(f"Connecting to backend at: {address}")
        self._set_state(ConnectionState.CONNECTING)
        self._task = asyncio.get_running_loop().create_task(self._initial_connect())

    def send(self, channel: str, payload: Dict[str, Any]) -> bool:
        """
        Emit a message without waiting for delivery.

        Returns:
            True if the emit was scheduled, False if not connected.
        """
        if self.state != ConnectionState.CONNECTED:
            logger.debug(f"Not connected, dropping '{channel}' message")
            return False

        task = asyncio.get_running_loop().create_task(self._emit(channel, payload))
        self._pending_sends.add(task)
        task.add_done_callback(self._pending_sends.discard)
        return True

    async def disconnect(self) -> None:
        """Close the connection cleanly and cancel any reconnection."""
        self._closing = True
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

        if self._client is not None and self._client.connected:
            try:
                await self._client.disconnect()
            except Exception as e:
                logger.warning(f"Error disconnecting socket client: {e}")

        if self.state != ConnectionState.DISCONNECTED:
            self._set_state(ConnectionState.DISCONNECTED)

    # ------------------------------------------------------------------
    # Connection attempts
    # ------------------------------------------------------------------

    async def _attempt(self) -> Optional[str]:
        """Try to connect once. Returns None on success, else the failure reason."""
        try:
            await self._client.connect(
                self.address,
                transports=config.SOCKETIO_TRANSPORTS,
                socketio_path=config.SOCKETIO_PATH,
                wait_timeout=self.connect_timeout,
            )
            return None
        except asyncio.CancelledError:
            raise
        except socketio.exceptions.ConnectionError as e:
            return str(e) or "connection refused"
        except Exception as e:
            logger.debug(f"Unexpected connect failure: {e!r}")
            return str(e) or type(e).__name__

    async def _initial_connect(self) -> None:
        reason = await self._attempt()
        if reason is None:
            self._on_established()
            return
        # A refused first attempt gets the same retry policy as a drop
        self._report(reason)
        await self._retry(reason)

    async def _reconnect(self) -> None:
        await self._retry("connection lost")

    async def _retry(self, reason: str) -> None:
        """Retry up to `reconnection_attempts` times with a fixed delay."""
        for attempt in range(1, self.reconnection_attempts + 1):
            await asyncio.sleep(self.reconnection_delay)
            logger.info(f"Reconnection attempt {attempt}/{self.reconnection_attempts}")
            reason = await self._attempt()
            if reason is None:
                logger.info(f"Reconnected after {attempt} attempt(s)")
                self._on_established()
                return
            logger.warning(f"Reconnection attempt {attempt} failed: {reason}")
            self._report(reason)

        self._fail(f"reconnection failed after {self.reconnection_attempts} attempts ({reason})")

    def _on_established(self) -> None:
        self.last_error = None
        if self.state != ConnectionState.CONNECTED:
            logger.info("Connected to WebSocket server")
            self._set_state(ConnectionState.CONNECTED)

    def _fail(self, reason: str) -> None:
        logger.error(f"Connection error: {reason}")
        self._set_state(ConnectionState.ERRORED)
        self._report(reason)

    def _report(self, reason: str) -> None:
        """Publish a failure reason to error listeners."""
        self.last_error = reason
        for listener in list(self._error_listeners):
            try:
                listener(reason)
            except Exception as e:
                logger.debug(f"Error listener raised: {e}")

    # ------------------------------------------------------------------
    # Socket.IO client events
    # ------------------------------------------------------------------

    def _bind_client(self, client) -> None:
        client.on("disconnect", self._on_transport_disconnect)
        for channel in self._handlers:
            self._bind_channel(client, channel)

    def _bind_channel(self, client, channel: str) -> None:
        def dispatch(data=None):
            self._dispatch(channel, data)
        client.on(channel, dispatch)

    def _dispatch(self, channel: str, data: Any) -> None:
        for handler in list(self._handlers.get(channel, [])):
            try:
                handler(data)
            except Exception as e:
                logger.error(f"Handler for '{channel}' failed: {e}")

    def _on_transport_disconnect(self, *args) -> None:
        if self._closing:
            return
        if self.state != ConnectionState.CONNECTED:
            return

        logger.warning("Disconnected from WebSocket server unexpectedly")
        if self.reconnection_attempts <= 0:
            self._fail("connection lost")
            return
        self._set_state(ConnectionState.CONNECTING)
        self._task = asyncio.get_running_loop().create_task(self._reconnect())

    async def _emit(self, channel: str, payload: Dict[str, Any]) -> None:
        try:
            await self._client.emit(channel, payload)
        except Exception as e:
            logger.warning(f"Failed to send '{channel}': {e}")

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _set_state(self, state: ConnectionState) -> None:
        if state == self.state:
            return
        logger.debug(f"Connection state: {self.state.value} -> {state.value}")
        self.state = state
        for listener in list(self._state_listeners):
            try:
                listener(state)
            except Exception as e:
                logger.debug(f"State listener raised: {e}")
