"""
Tests for connection/manager.py — lifecycle state machine, message
dispatch and bounded reconnection, using a fake Socket.IO client.
"""

import asyncio
import sys
import unittest
from pathlib import Path
from unittest.mock import patch

# Ensure project root and test helpers are on the path
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

import config
from connection.manager import ConnectionManager, ConnectionState, _create_client
from fakes import FakeSocketClient, refused, settle, wait_for

ADDRESS = "http://backend.test:5000"


def make_manager(client, **kwargs):
    return ConnectionManager(client_factory=lambda: client, **kwargs)


class TestDefaults(unittest.TestCase):
    """Configured reconnection policy."""

    def test_policy_constants(self):
        manager = ConnectionManager(client_factory=FakeSocketClient)
        self.assertEqual(manager.reconnection_attempts, 5)
        self.assertEqual(manager.reconnection_delay, 1.0)
        self.assertEqual(manager.connect_timeout, 10.0)
        self.assertEqual(manager.state, ConnectionState.DISCONNECTED)

    @patch("connection.manager.socketio.AsyncClient")
    def test_client_options(self, mock_client):
        """Reconnection stays with the manager; the timeout covers the transport."""
        _create_client()
        kwargs = mock_client.call_args.kwargs
        self.assertFalse(kwargs["reconnection"])
        self.assertEqual(kwargs["request_timeout"], config.CONNECT_TIMEOUT)
        self.assertEqual(kwargs["ssl_verify"], config.SSL_VERIFY)


class TestConnect(unittest.IsolatedAsyncioTestCase):
    """Initial connection."""

    async def test_connect_success(self):
        """DISCONNECTED -> CONNECTING -> CONNECTED."""
        client = FakeSocketClient()
        manager = make_manager(client)
        states = []
        manager.add_state_listener(states.append)

        manager.connect(ADDRESS)
        self.assertEqual(manager.state, ConnectionState.CONNECTING)
        await settle()

        self.assertEqual(manager.state, ConnectionState.CONNECTED)
        self.assertEqual(states, [ConnectionState.CONNECTING, ConnectionState.CONNECTED])
        self.assertEqual(client.connect_kwargs["transports"], ["websocket"])
        self.assertEqual(client.connect_kwargs["socketio_path"], config.SOCKETIO_PATH)
        self.assertEqual(client.connect_kwargs["wait_timeout"], 10.0)

    async def test_refused_once_then_connected(self):
        """A refused first attempt is retried, not left in ERRORED."""
        client = FakeSocketClient(outcomes=[refused()])
        manager = make_manager(client, reconnection_delay=0.01)
        states = []
        errors = []
        manager.add_state_listener(states.append)
        manager.add_error_listener(errors.append)

        manager.connect(ADDRESS)
        self.assertTrue(await wait_for(lambda: manager.state == ConnectionState.CONNECTED))

        self.assertEqual(client.connect_calls, 2)
        self.assertEqual(states, [ConnectionState.CONNECTING, ConnectionState.CONNECTED])
        self.assertEqual(len(errors), 1)
        self.assertIn("refused", errors[0])
        self.assertIsNone(manager.last_error)

    async def test_connect_failure_surfaces_error(self):
        """Every refused attempt is reported; exhaustion ends in ERRORED."""
        client = FakeSocketClient(outcomes=[refused() for _ in range(6)])
        manager = make_manager(client, reconnection_delay=0.01)
        errors = []
        manager.add_error_listener(errors.append)

        manager.connect(ADDRESS)
        self.assertTrue(await wait_for(lambda: manager.state == ConnectionState.ERRORED))

        self.assertEqual(client.connect_calls, 1 + 5)
        self.assertEqual(len(errors), 1 + 5 + 1)
        self.assertTrue(all("refused" in reason for reason in errors))
        self.assertIn("5 attempts", errors[-1])
        self.assertEqual(manager.last_error, errors[-1])

    async def test_connect_ignored_while_connected(self):
        client = FakeSocketClient()
        manager = make_manager(client)
        manager.connect(ADDRESS)
        await settle()
        manager.connect(ADDRESS)
        await settle()
        self.assertEqual(client.connect_calls, 1)

    async def test_explicit_connect_recovers_from_error(self):
        """ERRORED is left only by a new connect() call."""
        client = FakeSocketClient(outcomes=[refused() for _ in range(6)])
        manager = make_manager(client, reconnection_delay=0.01)
        manager.connect(ADDRESS)
        self.assertTrue(await wait_for(lambda: manager.state == ConnectionState.ERRORED))

        await wait_for(lambda: False, timeout=0.05)
        self.assertEqual(manager.state, ConnectionState.ERRORED)

        manager.connect(ADDRESS)
        await settle()
        self.assertEqual(manager.state, ConnectionState.CONNECTED)


class TestSend(unittest.IsolatedAsyncioTestCase):
    """Outbound messages."""

    async def test_send_when_not_connected_is_dropped(self):
        client = FakeSocketClient()
        manager = make_manager(client)
        self.assertFalse(manager.send("frame", {"frame": "abc"}))
        await settle()
        self.assertEqual(client.emitted, [])

    async def test_send_when_connected(self):
        client = FakeSocketClient()
        manager = make_manager(client)
        manager.connect(ADDRESS)
        await settle()

        self.assertTrue(manager.send("frame", {"frame": "abc"}))
        await settle()
        self.assertEqual(client.emitted, [("frame", {"frame": "abc"})])

    async def test_emit_failure_is_swallowed(self):
        client = FakeSocketClient()

        async def broken_emit(event, data):
            raise RuntimeError("socket closed")

        client.emit = broken_emit
        manager = make_manager(client)
        manager.connect(ADDRESS)
        await settle()

        self.assertTrue(manager.send("frame", {"frame": "abc"}))
        await settle()
        self.assertEqual(manager.state, ConnectionState.CONNECTED)


class TestInbound(unittest.IsolatedAsyncioTestCase):
    """Inbound dispatch."""

    async def test_handlers_called_in_arrival_order(self):
        client = FakeSocketClient()
        manager = make_manager(client)
        received = []
        manager.on_message("focus_status", received.append)
        manager.connect(ADDRESS)
        await settle()

        client.deliver("focus_status", {"status": "Focused"})
        client.deliver("focus_status", {"status": "Distracted"})
        client.deliver("focus_status", {"status": "Distracted"})
        self.assertEqual(
            [m["status"] for m in received], ["Focused", "Distracted", "Distracted"]
        )

    async def test_handler_registered_after_connect(self):
        client = FakeSocketClient()
        manager = make_manager(client)
        manager.connect(ADDRESS)
        await settle()

        received = []
        manager.on_message("error", received.append)
        client.deliver("error", {"error": "bad frame"})
        self.assertEqual(received, [{"error": "bad frame"}])

    async def test_handler_exception_does_not_escape(self):
        client = FakeSocketClient()
        manager = make_manager(client)
        received = []
        manager.on_message("focus_status", lambda data: 1 / 0)
        manager.on_message("focus_status", received.append)
        manager.connect(ADDRESS)
        await settle()

        client.deliver("focus_status", {"status": "Focused"})
        self.assertEqual(received, [{"status": "Focused"}])


class TestDisconnect(unittest.IsolatedAsyncioTestCase):
    """Clean disconnect."""

    async def test_clean_disconnect_does_not_reconnect(self):
        client = FakeSocketClient()
        manager = make_manager(client, reconnection_delay=0.01)
        manager.connect(ADDRESS)
        await settle()

        await manager.disconnect()
        self.assertEqual(manager.state, ConnectionState.DISCONNECTED)
        await wait_for(lambda: False, timeout=0.1)
        self.assertEqual(client.connect_calls, 1)
        self.assertEqual(manager.state, ConnectionState.DISCONNECTED)

    async def test_disconnect_cancels_reconnection(self):
        client = FakeSocketClient()
        manager = make_manager(client, reconnection_delay=0.05)
        manager.connect(ADDRESS)
        await settle()

        client.drop(failures=5)
        self.assertEqual(manager.state, ConnectionState.CONNECTING)
        await manager.disconnect()

        self.assertEqual(manager.state, ConnectionState.DISCONNECTED)
        await wait_for(lambda: False, timeout=0.2)
        self.assertEqual(client.connect_calls, 1)


class TestReconnection(unittest.IsolatedAsyncioTestCase):
    """Bounded fixed-delay reconnection after an unexpected drop."""

    async def test_reconnects_after_drop(self):
        client = FakeSocketClient()
        manager = make_manager(client, reconnection_delay=0.01)
        states = []
        manager.add_state_listener(states.append)
        manager.connect(ADDRESS)
        await settle()

        client.drop(failures=2)
        self.assertEqual(manager.state, ConnectionState.CONNECTING)

        self.assertTrue(await wait_for(lambda: manager.state == ConnectionState.CONNECTED))
        self.assertEqual(client.connect_calls, 1 + 3)
        self.assertEqual(states, [
            ConnectionState.CONNECTING,
            ConnectionState.CONNECTED,
            ConnectionState.CONNECTING,
            ConnectionState.CONNECTED,
        ])

    async def test_errored_after_five_failed_attempts(self):
        """Five failures -> ERRORED; no sixth attempt."""
        client = FakeSocketClient()
        manager = make_manager(client, reconnection_delay=0.01)
        errors = []
        manager.add_error_listener(errors.append)
        manager.connect(ADDRESS)
        await settle()

        client.drop(failures=10)
        self.assertTrue(await wait_for(lambda: manager.state == ConnectionState.ERRORED))
        self.assertEqual(client.connect_calls, 1 + 5)
        self.assertEqual(len(errors), 5 + 1)
        self.assertIn("5 attempts", errors[-1])

        await wait_for(lambda: False, timeout=0.1)
        self.assertEqual(client.connect_calls, 1 + 5)
        self.assertFalse(manager.send("frame", {"frame": "abc"}))

    async def test_fixed_delay_between_attempts(self):
        """Attempts are spaced by the configured delay."""
        client = FakeSocketClient()
        manager = make_manager(client, reconnection_attempts=3, reconnection_delay=0.05)
        manager.connect(ADDRESS)
        await settle()

        times = []
        original_connect = client.connect

        async def timed_connect(url, **kwargs):
            times.append(asyncio.get_running_loop().time())
            await original_connect(url, **kwargs)

        client.connect = timed_connect
        client.drop(failures=3)
        self.assertTrue(await wait_for(lambda: manager.state == ConnectionState.ERRORED))

        self.assertEqual(len(times), 3)
        gaps = [b - a for a, b in zip(times, times[1:])]
        for gap in gaps:
            self.assertGreaterEqual(gap, 0.045)


if __name__ == "__main__":
    unittest.main()
