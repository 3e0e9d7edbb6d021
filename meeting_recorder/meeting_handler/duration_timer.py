"""
Cancellable recording timer.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable


class DurationTimer:
    """
    Waits for a fixed duration unless a cancel event fires first.

    The sleep function is injectable so tests can advance a fake clock
    instead of waiting in real time.
    """

    def __init__(self, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep) -> None:
        self._sleep = sleep

    async def wait(self, seconds: float, cancel_event: asyncio.Event) -> bool:
        """
        Wait for `seconds` or until `cancel_event` is set.

        Returns:
            True if the full duration elapsed, False if cancelled first
        """
        if cancel_event.is_set():
            return False

        sleeper = asyncio.ensure_future(self._sleep(seconds))
        canceller = asyncio.ensure_future(cancel_event.wait())
        try:
            done, _ = await asyncio.wait({sleeper, canceller}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (sleeper, canceller):
                if not task.done():
                    task.cancel()
            await asyncio.gather(sleeper, canceller, return_exceptions=True)

        return sleeper in done
