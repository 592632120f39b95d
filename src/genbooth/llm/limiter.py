"""Admission gate capping in-flight generation calls."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ConcurrencyLimiter:
    """An asyncio-native gate that admits at most ``max_concurrency`` calls.

    Waiters are resumed in arrival order as slots free up. The gate never
    fails, it only delays.
    """

    def __init__(self, max_concurrency: int = 2) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self.max_concurrency = max_concurrency
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._in_flight = 0

    @property
    def in_flight(self) -> int:
        return self._in_flight

    async def acquire(self) -> None:
        """Wait for a free slot."""
        await self._semaphore.acquire()
        self._in_flight += 1

    def release(self) -> None:
        self._in_flight -= 1
        self._semaphore.release()

    @asynccontextmanager
    async def throttle(self) -> AsyncIterator[None]:
        await self.acquire()
        try:
            yield
        finally:
            self.release()

    async def run(self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Run ``fn`` once a slot is available."""
        if self._semaphore.locked():
            logger.debug("Concurrency limit %s reached, queueing call", self.max_concurrency)
        async with self.throttle():
            return await fn(*args, **kwargs)
