from __future__ import annotations

import asyncio

import pytest

from core.errors import EntityResolutionError, RateLimitError, TransientBackendError
from core.retry import RetryPolicy


class SleepRecorder:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


class Flaky:
    def __init__(self, errors) -> None:
        self._errors = list(errors)
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self._errors:
            raise self._errors.pop(0)
        return "ok"


def test_rate_limit_sleeps_exact_duration_without_cap() -> None:
    sleep = SleepRecorder()
    operation = Flaky([RateLimitError(30)] * 5)
    policy = RetryPolicy(sleep=sleep, max_retries=1)

    assert asyncio.run(policy.call(operation)) == "ok"
    assert sleep.calls == [30] * 5
    assert operation.calls == 6


def test_transient_errors_back_off_exponentially() -> None:
    sleep = SleepRecorder()
    operation = Flaky([TransientBackendError("timeout")] * 3)

    assert asyncio.run(RetryPolicy(sleep=sleep).call(operation)) == "ok"
    assert sleep.calls == [1.0, 2.0, 4.0]


def test_transient_errors_give_up_after_cap() -> None:
    sleep = SleepRecorder()
    operation = Flaky([TransientBackendError("timeout")] * 4)

    with pytest.raises(TransientBackendError):
        asyncio.run(RetryPolicy(sleep=sleep).call(operation))
    assert operation.calls == 4
    assert sleep.calls == [1.0, 2.0, 4.0]


def test_other_errors_propagate_immediately() -> None:
    sleep = SleepRecorder()
    operation = Flaky([EntityResolutionError("no such chat")])

    with pytest.raises(EntityResolutionError):
        asyncio.run(RetryPolicy(sleep=sleep).call(operation))
    assert operation.calls == 1
    assert sleep.calls == []


def test_rate_limit_does_not_count_as_transient_retry() -> None:
    sleep = SleepRecorder()
    operation = Flaky([TransientBackendError("x"), RateLimitError(3), TransientBackendError("y")])

    assert asyncio.run(RetryPolicy(sleep=sleep).call(operation)) == "ok"
    assert sleep.calls == [1.0, 3, 2.0]
