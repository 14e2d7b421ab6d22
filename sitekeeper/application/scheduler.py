from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

log = logging.getLogger(__name__)


class PeriodicTrigger:
    """
    Calls an async callback every `interval` seconds until stopped.

    Each tick runs in its own task, so stop() only ends the timer; a
    callback that is already running finishes on its own. The trigger does
    not keep anything alive: whoever owns the event loop decides when the
    process ends.
    """

    def __init__(self, interval: float, callback: Callable[[], Awaitable[object]], name: str = "periodic") -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._interval = interval
        self._callback = callback
        self._name     = name
        self._timer: asyncio.Task | None = None
        self._ticks: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    def start(self) -> None:
        if self.running:
            return
        self._timer = asyncio.get_running_loop().create_task(self._loop(), name=f"{self._name}-timer")
        log.info("%s trigger armed every %gs", self._name, self._interval)

    def stop(self) -> None:
        """Cancel the timer. Safe to call from a signal handler and more than once."""
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
            log.info("%s trigger stopped", self._name)

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            tick = asyncio.get_running_loop().create_task(self._fire(), name=f"{self._name}-tick")
            self._ticks.add(tick)
            tick.add_done_callback(self._ticks.discard)

    async def _fire(self) -> None:
        try:
            await self._callback()
        except Exception:
            log.exception("%s callback failed", self._name)
