"""Tests for PeriodicTrigger."""

import asyncio

import pytest

from sitekeeper.application.scheduler import PeriodicTrigger


class TestPeriodicTrigger:
    def test_fires_repeatedly_until_stopped(self):
        async def go():
            fired = []

            async def callback():
                fired.append(1)

            trigger = PeriodicTrigger(0.01, callback)
            trigger.start()
            await asyncio.sleep(0.2)
            trigger.stop()
            count = len(fired)
            await asyncio.sleep(0.05)
            return count, len(fired), trigger.running

        count, later, running = asyncio.run(go())

        assert count >= 2
        assert later <= count + 1
        assert running is False

    def test_stop_does_not_cancel_running_callback(self):
        async def go():
            started = asyncio.Event()
            finished = asyncio.Event()

            async def callback():
                started.set()
                await asyncio.sleep(0.05)
                finished.set()

            trigger = PeriodicTrigger(0.01, callback)
            trigger.start()
            await started.wait()
            trigger.stop()
            await asyncio.wait_for(finished.wait(), 1)
            return finished.is_set()

        assert asyncio.run(go()) is True

    def test_failing_callback_does_not_stop_timer(self):
        async def go():
            calls = []

            async def callback():
                calls.append(1)
                raise RuntimeError("boom")

            trigger = PeriodicTrigger(0.01, callback)
            trigger.start()
            await asyncio.sleep(0.1)
            running = trigger.running
            trigger.stop()
            return len(calls), running

        calls, running = asyncio.run(go())

        assert calls >= 2
        assert running is True

    def test_stop_twice_and_before_start(self):
        async def go():
            async def callback():
                pass

            trigger = PeriodicTrigger(60, callback)
            trigger.stop()
            trigger.start()
            trigger.stop()
            trigger.stop()
            await asyncio.sleep(0)
            return trigger.running

        assert asyncio.run(go()) is False

    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValueError):
            PeriodicTrigger(0, lambda: None)
