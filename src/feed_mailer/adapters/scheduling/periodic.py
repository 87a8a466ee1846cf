"""Fixed-interval scheduler for the producer stage."""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicScheduler:
    """Run an async job every `interval` seconds.

    Ticks never overlap: a slow job pushes the next tick back instead of
    starting a second run next to it. A failing job is logged and the
    schedule carries on, so the next tick acts as the retry.
    """

    def __init__(self, interval: float, job: Callable[[], Awaitable[object]]) -> None:
        if interval <= 0:
            raise ValueError("Interval must be positive")
        self.interval = interval
        self.job = job
        self.ticks = 0
        self.failures = 0

    async def run(self, max_ticks: Optional[int] = None, stop: Optional[asyncio.Event] = None) -> None:
        """Tick until max_ticks is reached or stop is set."""
        stop = stop or asyncio.Event()

        while not stop.is_set() and (max_ticks is None or self.ticks < max_ticks):
            started = time.monotonic()
            await self._tick()

            if max_ticks is not None and self.ticks >= max_ticks:
                break

            delay = max(0.0, self.interval - (time.monotonic() - started))
            try:
                await asyncio.wait_for(stop.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass

    async def _tick(self) -> None:
        self.ticks += 1
        logger.info(f"Scheduled run #{self.ticks}")
        try:
            await self.job()
        except Exception:
            self.failures += 1
            logger.exception(f"Scheduled run #{self.ticks} failed")
