from __future__ import annotations

import asyncio
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1]))

import pytest

from atelier.core.errors import ConfigurationError, InferenceError, RetryExhaustedError, error_message
from atelier.workers.retry import ExponentialRetry, FixedDelayRetry, RetryPolicy


class Flaky:
    def __init__(self, failures: int, error: Exception | None = None) -> None:
        self.failures = failures
        self.error = error or InferenceError("temporarily unavailable")
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return "ok"


def _recording_policy(cls=RetryPolicy, **kwargs):
    delays: list[float] = []

    async def sleep(delay: float) -> None:
        delays.append(delay)

    return cls(sleep=sleep, **kwargs), delays


def test_linear_backoff_until_success():
    policy, delays = _recording_policy(max_attempts=3, base_delay=1.0)
    operation = Flaky(failures=2)

    assert asyncio.run(policy.call(operation)) == "ok"
    assert operation.calls == 3
    assert delays == [1.0, 2.0]


def test_exhaustion_carries_last_error():
    policy, delays = _recording_policy(max_attempts=3, base_delay=0.5)
    operation = Flaky(failures=10)

    with pytest.raises(RetryExhaustedError) as info:
        asyncio.run(policy.call(operation))

    assert operation.calls == 3
    assert delays == [0.5, 1.0]
    assert info.value.attempts == 3
    assert isinstance(info.value.last_error, InferenceError)
    assert error_message(info.value) == "temporarily unavailable"


def test_permanent_errors_are_not_retried():
    policy, delays = _recording_policy(max_attempts=5, base_delay=1.0)
    operation = Flaky(failures=10, error=ConfigurationError("no schema"))

    with pytest.raises(ConfigurationError):
        asyncio.run(policy.call(operation))

    assert operation.calls == 1
    assert delays == []


def test_fixed_and_exponential_delays():
    fixed, fixed_delays = _recording_policy(FixedDelayRetry, max_attempts=3, base_delay=2.0)
    exponential, exp_delays = _recording_policy(ExponentialRetry, max_attempts=4, base_delay=1.0)

    with pytest.raises(RetryExhaustedError):
        asyncio.run(fixed.call(Flaky(failures=10)))
    with pytest.raises(RetryExhaustedError):
        asyncio.run(exponential.call(Flaky(failures=10)))

    assert fixed_delays == [2.0, 2.0]
    assert exp_delays == [1.0, 2.0, 4.0]


def test_single_attempt_has_no_delay():
    policy, delays = _recording_policy(max_attempts=1, base_delay=1.0)

    with pytest.raises(RetryExhaustedError):
        asyncio.run(policy.call(Flaky(failures=1)))

    assert delays == []


def test_rejects_invalid_configuration():
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)
    with pytest.raises(ValueError):
        RetryPolicy(base_delay=-1)
