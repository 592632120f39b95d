"""Cooperative cancellation shared by the transport and the backoff waits."""

from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

T = TypeVar("T")


class GenerationCancelled(Exception):
    """Internal signal: the caller withdrew the request. Never surfaced."""


class CancelToken:
    """Caller-owned cancellation flag.

    Firing the token aborts the network call in progress and wakes any
    pending backoff wait. ``cancel()`` is idempotent.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise GenerationCancelled()

    async def guard(self, awaitable: Awaitable[T], timeout: float | None = None) -> T:
        """Await ``awaitable`` unless the token fires or ``timeout`` elapses first.

        Raises GenerationCancelled on cancellation (checked first, so it wins
        over a simultaneous timeout) and asyncio.TimeoutError on timeout. The
        losing work is cancelled and awaited before returning.
        """
        if self.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise GenerationCancelled()
        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {work, waiter},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        except BaseException:
            await _discard(work, waiter)
            raise

        if self.cancelled:
            await _discard(work, waiter)
            raise GenerationCancelled()
        if work not in done:
            await _discard(work, waiter)
            raise asyncio.TimeoutError()

        await _discard(waiter)
        return work.result()

    async def sleep(self, seconds: float, sleep=asyncio.sleep) -> None:
        """Backoff wait that returns early (raising) when the token fires."""
        await self.guard(sleep(seconds))


async def _discard(*tasks: asyncio.Future) -> None:
    pending = []
    for task in tasks:
        if not task.done():
            task.cancel()
            pending.append(task)
        elif not task.cancelled():
            task.exception()  # mark retrieved
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)
