"""Admission gate pacing outbound calls to third-party services."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Iterable, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FetchScheduler:
    """Bound in-flight work to ``concurrency`` slots and delay each admission.

    Every admitted item first waits out any active cooldown, then sleeps
    ``delay`` seconds, then runs. Admission order is FIFO. A caller that
    receives a rate-limit response calls :meth:`trigger_cooldown` and every
    later admission waits until the cooldown window has passed.

    The same primitive serves serial job queues: ``FetchScheduler(1, delay)``.
    """

    def __init__(
        self,
        concurrency: int,
        delay: float = 0.0,
        *,
        cooldown: float = 10.0,
        name: str = "fetch",
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.concurrency = concurrency
        self.delay = delay
        self.cooldown = cooldown
        self.name = name
        self._clock = clock
        self._sleep = sleep
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._resume_at = 0.0
        self.in_flight = 0
        self.admitted = 0

    @property
    def semaphore(self) -> asyncio.Semaphore:
        # Created lazily so the gate binds to the running event loop.
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.concurrency)
        return self._semaphore

    def trigger_cooldown(self, seconds: Optional[float] = None) -> None:
        window = self.cooldown if seconds is None else seconds
        resume_at = self._clock() + window
        if resume_at > self._resume_at:
            self._resume_at = resume_at
            logger.warning("%s scheduler cooling down for %.1fs", self.name, window)

    def cooling_down(self) -> bool:
        return self._clock() < self._resume_at

    async def _wait_for_cooldown(self) -> None:
        while True:
            remaining = self._resume_at - self._clock()
            if remaining <= 0:
                return
            await self._sleep(remaining)

    async def submit(self, work: Callable[[], Awaitable[T]]) -> T:
        async with self.semaphore:
            self.in_flight += 1
            try:
                await self._wait_for_cooldown()
                if self.delay > 0:
                    await self._sleep(self.delay)
                self.admitted += 1
                return await work()
            finally:
                self.in_flight -= 1

    async def run_all(self, works: Iterable[Callable[[], Awaitable[T]]]) -> List[T]:
        """Submit every item and wait for the whole batch."""
        return list(await asyncio.gather(*(self.submit(work) for work in works)))
