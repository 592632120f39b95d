import asyncio

import pytest

from genbooth.llm.cancellation import CancelToken
from genbooth.llm.retry import RetryController
from genbooth.llm.types import (
    HTTPStatusFailure,
    NoCandidatesError,
    RateLimitedError,
    RetryPolicy,
    TransportError,
)


class FlakyWork:
    """Fails with the given errors in order, then returns ``result``."""

    def __init__(self, errors, result="done"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


class AlwaysFailWork:
    def __init__(self, error_factory):
        self.error_factory = error_factory
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        raise self.error_factory(self.calls)


def _controller(delays, **policy):
    async def record_sleep(seconds):
        delays.append(seconds)

    return RetryController(RetryPolicy(**policy), sleep=record_sleep)


@pytest.mark.parametrize("failures", [0, 1, 3, 4])
def test_succeeds_after_k_transient_failures(failures):
    delays: list[float] = []
    work = FlakyWork([TransportError("net down") for _ in range(failures)])

    result = asyncio.run(_controller(delays).run(work, CancelToken()))

    assert result == "done"
    assert work.calls == failures + 1
    assert len(delays) == failures


def test_always_failing_work_raises_last_error_after_five_attempts():
    delays: list[float] = []
    work = AlwaysFailWork(lambda n: HTTPStatusFailure(f"failure {n}", 500))

    with pytest.raises(HTTPStatusFailure, match="failure 5"):
        asyncio.run(_controller(delays).run(work, CancelToken()))

    assert work.calls == 5
    assert delays == pytest.approx([1.233, 2.466, 4.932, 9.864])


def test_rate_limited_failure_waits_longer_than_plain_failure():
    plain_delays: list[float] = []
    limited_delays: list[float] = []

    asyncio.run(_controller(plain_delays).run(FlakyWork([HTTPStatusFailure("x", 500)]), CancelToken()))
    asyncio.run(_controller(limited_delays).run(FlakyWork([RateLimitedError("quota", 429)]), CancelToken()))

    assert limited_delays[0] > plain_delays[0]
    assert limited_delays[0] == pytest.approx(plain_delays[0] + 10.0)


def test_terminal_errors_are_not_retried():
    delays: list[float] = []
    work = FlakyWork([NoCandidatesError("API returned no candidates.")])

    with pytest.raises(NoCandidatesError):
        asyncio.run(_controller(delays).run(work, CancelToken()))

    assert work.calls == 1
    assert delays == []


def test_cancelled_before_start_returns_none_without_calling_work():
    token = CancelToken()
    token.cancel()
    work = FlakyWork([])

    result = asyncio.run(_controller([]).run(work, token))

    assert result is None
    assert work.calls == 0


def test_cancel_during_backoff_wait_returns_none():
    token = CancelToken()

    async def cancelling_sleep(seconds):
        token.cancel()
        await asyncio.Event().wait()

    controller = RetryController(RetryPolicy(), sleep=cancelling_sleep)
    work = AlwaysFailWork(lambda n: TransportError("net down"))

    result = asyncio.run(asyncio.wait_for(controller.run(work, token), timeout=5))

    assert result is None
    assert work.calls == 1


def test_failure_after_cancellation_is_not_reported():
    token = CancelToken()

    async def cancel_then_fail():
        token.cancel()
        raise HTTPStatusFailure("aborted", 499)

    result = asyncio.run(_controller([], max_retries=1).run(cancel_then_fail, token))

    assert result is None


def test_policy_validates_values():
    with pytest.raises(ValueError):
        RetryPolicy(max_retries=0)
    with pytest.raises(ValueError):
        RetryPolicy(timeout=0)
    assert RetryPolicy(base_delay=1.0).backoff(3) == 8.0
    assert RetryPolicy(base_delay=1.0, rate_limit_penalty=10.0).backoff(0, rate_limited=True) == 11.0
