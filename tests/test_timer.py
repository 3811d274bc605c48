"""
Tests for core/timer.py and core/readiness.py — periodic scheduling and
one-way latches.
"""

import asyncio
import sys
import unittest
from pathlib import Path

# Ensure project root is on the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from core.readiness import Latch, ReadinessFlags
from core.timer import PeriodicTimer


class TestPeriodicTimer(unittest.IsolatedAsyncioTestCase):
    """Repeating callbacks on the event loop."""

    async def test_ticks_repeatedly(self):
        calls = []
        timer = PeriodicTimer(0.01, lambda: calls.append(1))
        timer.start()
        await asyncio.sleep(0.2)
        timer.stop()
        self.assertGreaterEqual(len(calls), 5)
        self.assertEqual(timer.tick_count, len(calls))

    async def test_no_ticks_after_stop(self):
        """stop() takes effect immediately."""
        calls = []
        timer = PeriodicTimer(0.01, lambda: calls.append(1))
        timer.start()
        await asyncio.sleep(0.05)
        timer.stop()
        count = len(calls)
        await asyncio.sleep(0.1)
        self.assertEqual(len(calls), count)
        self.assertFalse(timer.is_running)

    async def test_first_tick_after_one_interval(self):
        calls = []
        timer = PeriodicTimer(0.2, lambda: calls.append(1))
        timer.start()
        await asyncio.sleep(0.05)
        self.assertEqual(calls, [])
        timer.stop()

    async def test_callback_exception_keeps_timer_running(self):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("first tick fails")

        timer = PeriodicTimer(0.01, flaky)
        timer.start()
        await asyncio.sleep(0.1)
        timer.stop()
        self.assertGreater(len(calls), 1)

    async def test_start_twice_is_noop(self):
        calls = []
        timer = PeriodicTimer(0.05, lambda: calls.append(1))
        timer.start()
        timer.start()
        await asyncio.sleep(0.07)
        timer.stop()
        self.assertEqual(len(calls), 1)

    async def test_restart_after_stop(self):
        calls = []
        timer = PeriodicTimer(0.01, lambda: calls.append(1))
        timer.start()
        timer.stop()
        timer.start()
        await asyncio.sleep(0.05)
        timer.stop()
        self.assertGreater(len(calls), 0)

    def test_invalid_interval(self):
        with self.assertRaises(ValueError):
            PeriodicTimer(0, lambda: None)


class TestLatch(unittest.IsolatedAsyncioTestCase):
    """One-way readiness latches."""

    async def test_starts_unset(self):
        flags = ReadinessFlags()
        self.assertFalse(flags.server_ready.is_set)
        self.assertFalse(flags.video_ready.is_set)

    async def test_set_once_notifies_once(self):
        latch = Latch("Test")
        calls = []
        latch.add_listener(lambda: calls.append("a"))
        latch.set()
        latch.set()
        self.assertTrue(latch.is_set)
        self.assertEqual(calls, ["a"])

    async def test_late_listener_called_immediately(self):
        latch = Latch("Test")
        latch.set()
        calls = []
        latch.add_listener(lambda: calls.append("late"))
        self.assertEqual(calls, ["late"])

    async def test_set_from_scheduled_callback(self):
        latch = Latch("Test")
        calls = []
        latch.add_listener(lambda: calls.append("set"))
        asyncio.get_running_loop().call_later(0.01, latch.set)
        await asyncio.sleep(0.05)
        self.assertTrue(latch.is_set)
        self.assertEqual(calls, ["set"])

    async def test_listener_exception_does_not_block_others(self):
        latch = Latch("Test")
        calls = []
        latch.add_listener(lambda: 1 / 0)
        latch.add_listener(lambda: calls.append("ok"))
        latch.set()
        self.assertEqual(calls, ["ok"])


if __name__ == "__main__":
    unittest.main()
