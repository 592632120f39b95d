"""Bounded retries with exponential backoff and a rate-limit penalty."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt

from .cancellation import CancelToken, GenerationCancelled
from .types import ProviderError, RateLimitedError, RetryableError, RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryController:
    """Repeats one unit of work until it succeeds, the budget runs out, or
    the caller cancels.

    Only RetryableError subclasses are retried; anything else propagates on
    the attempt that raised it. Cancellation resolves to ``None``.
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    def compute_delay(self, retry_state: RetryCallState) -> float:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        return self.policy.backoff(
            retry_state.attempt_number - 1,
            rate_limited=isinstance(exc, RateLimitedError),
        )

    def _log_retry(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        if isinstance(exc, RateLimitedError):
            logger.warning("Rate limit error detected. Increasing retry delay.")
        logger.warning(
            "Attempt %d failed (%s), retrying after %dms...",
            retry_state.attempt_number,
            exc,
            int(delay * 1000),
        )

    async def run(self, fn: Callable[[], Awaitable[T]], cancel: CancelToken) -> T | None:
        async def cancellable_sleep(seconds: float) -> None:
            await cancel.sleep(seconds, sleep=self._sleep)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.policy.max_retries),
            wait=self.compute_delay,
            retry=retry_if_exception_type(RetryableError),
            sleep=cancellable_sleep,
            before_sleep=self._log_retry,
            reraise=True,
        )

        try:
            cancel.raise_if_cancelled()
            async for attempt in retrying:
                with attempt:
                    return await fn()
        except GenerationCancelled:
            logger.debug("Generation cancelled by caller")
            return None
        except ProviderError:
            if cancel.cancelled:
                logger.debug("Generation cancelled by caller after a failed attempt")
                return None
            raise
        return None
