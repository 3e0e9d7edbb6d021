"""Tests for the cancellable recording timer."""

import asyncio

from conftest import FakeClock, sleep_forever
from meeting_recorder.meeting_handler import DurationTimer


def test_full_duration_elapses():
    clock = FakeClock()
    timer = DurationTimer(sleep=clock.sleep)

    async def scenario():
        return await timer.wait(90.0, asyncio.Event())

    assert asyncio.run(scenario()) is True
    assert clock.sleeps == [90.0]


def test_cancel_event_ends_wait_early():
    timer = DurationTimer(sleep=sleep_forever)

    async def scenario():
        event = asyncio.Event()
        asyncio.get_running_loop().call_soon(event.set)
        return await timer.wait(3600.0, event)

    assert asyncio.run(scenario()) is False


def test_already_set_event_returns_immediately():
    clock = FakeClock()
    timer = DurationTimer(sleep=clock.sleep)

    async def scenario():
        event = asyncio.Event()
        event.set()
        return await timer.wait(60.0, event)

    assert asyncio.run(scenario()) is False
    assert clock.sleeps == []


def test_cancelling_the_waiter_cleans_up():
    timer = DurationTimer(sleep=sleep_forever)

    async def scenario():
        task = asyncio.create_task(timer.wait(60.0, asyncio.Event()))
        await asyncio.sleep(0)
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        return [t for t in asyncio.all_tasks() if t is not asyncio.current_task()]

    assert asyncio.run(scenario()) == []
