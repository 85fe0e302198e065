"""再試行ループとバックオフ計算のテスト。"""

from __future__ import annotations

import asyncio
import time

import pytest

from mapsclient import (
    CallContext,
    MapsCancelledError,
    MapsRetriesExhaustedError,
    MapsServiceRejectedError,
    MapsTransportError,
    RetryableFailure,
    RetryPolicy,
    Success,
    TerminalFailure,
)
from mapsclient.context import AsyncCallContext
from mapsclient.retry import backoff_schedule, execute_with_retry, execute_with_retry_async, next_delay


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def _retryable() -> RetryableFailure:
    return RetryableFailure(MapsTransportError("temporary", request_url="https://example.invalid/x"))


def test_backoff_scenario_one_to_eight_seconds() -> None:
    policy = RetryPolicy(initial_delay=1.0, max_delay=8.0, multiplier=2.0, max_retries=5, max_elapsed_time=None)
    clock = _Clock()
    calls: list[int] = []

    def attempt() -> RetryableFailure:
        calls.append(1)
        return _retryable()

    with pytest.raises(MapsRetriesExhaustedError) as info:
        execute_with_retry(attempt, policy=policy, sleep=clock.sleep, clock=clock)

    assert len(calls) == 6
    assert clock.sleeps == [1.0, 2.0, 4.0, 8.0, 8.0]
    assert info.value.attempts == 6
    assert info.value.reason == "max_retries"
    assert isinstance(info.value.last_error, MapsTransportError)
    assert info.value.__cause__ is info.value.last_error


@pytest.mark.parametrize("max_retries", [0, 1, 3, 7])
def test_at_most_max_retries_plus_one_attempts(max_retries: int) -> None:
    policy = RetryPolicy(initial_delay=0.1, max_delay=1.0, multiplier=2.0, max_retries=max_retries)
    clock = _Clock()
    calls: list[int] = []

    def attempt() -> RetryableFailure:
        calls.append(1)
        return _retryable()

    with pytest.raises(MapsRetriesExhaustedError):
        execute_with_retry(attempt, policy=policy, sleep=clock.sleep, clock=clock)

    assert len(calls) == max_retries + 1
    assert len(clock.sleeps) == max_retries


@pytest.mark.parametrize("multiplier", [1.01, 1.5, 2.0, 3.7])
def test_delays_never_decrease_and_never_exceed_max(multiplier: float) -> None:
    policy = RetryPolicy(
        initial_delay=0.3,
        max_delay=5.0,
        multiplier=multiplier,
        max_retries=40,
        max_elapsed_time=None,
    )
    clock = _Clock()

    with pytest.raises(MapsRetriesExhaustedError):
        execute_with_retry(_retryable, policy=policy, sleep=clock.sleep, clock=clock)

    assert clock.sleeps == sorted(clock.sleeps)
    assert max(clock.sleeps) <= 5.0
    assert clock.sleeps == list(backoff_schedule(policy))


def test_terminal_failure_stops_immediately() -> None:
    error = MapsServiceRejectedError("REQUEST_DENIED: denied", status="REQUEST_DENIED")
    clock = _Clock()
    calls: list[int] = []

    def attempt() -> TerminalFailure:
        calls.append(1)
        return TerminalFailure(error)

    with pytest.raises(MapsServiceRejectedError) as info:
        execute_with_retry(attempt, policy=RetryPolicy(), sleep=clock.sleep, clock=clock)

    assert info.value is error
    assert calls == [1]
    assert clock.sleeps == []


def test_success_on_third_attempt_returns_value() -> None:
    policy = RetryPolicy(initial_delay=1.0, max_delay=8.0, multiplier=2.0, max_retries=5)
    clock = _Clock()
    outcomes = [_retryable(), _retryable(), Success({"status": "OK"})]
    calls: list[int] = []

    def attempt() -> Success[dict[str, str]] | RetryableFailure:
        calls.append(1)
        return outcomes[len(calls) - 1]

    value = execute_with_retry(attempt, policy=policy, sleep=clock.sleep, clock=clock)

    assert value == {"status": "OK"}
    assert len(calls) == 3
    assert clock.sleeps == [1.0, 2.0]


def test_max_elapsed_time_bounds_the_session() -> None:
    policy = RetryPolicy(initial_delay=1.0, max_delay=100.0, multiplier=2.0, max_retries=None, max_elapsed_time=10.0)
    clock = _Clock()

    with pytest.raises(MapsRetriesExhaustedError) as info:
        execute_with_retry(_retryable, policy=policy, sleep=clock.sleep, clock=clock)

    assert clock.sleeps == [1.0, 2.0, 4.0]
    assert info.value.attempts == 4
    assert info.value.reason == "max_elapsed_time"


def test_retry_after_is_honoured_up_to_max_delay() -> None:
    policy = RetryPolicy(initial_delay=1.0, max_delay=8.0, multiplier=2.0, max_retries=5)
    clock = _Clock()
    error = MapsTransportError("429")
    outcomes = [
        RetryableFailure(error, retry_after=3.0),
        RetryableFailure(error, retry_after=100.0),
        RetryableFailure(error, retry_after=0.5),
        Success(1),
    ]
    calls: list[int] = []

    def attempt() -> Success[int] | RetryableFailure:
        calls.append(1)
        return outcomes[len(calls) - 1]

    assert execute_with_retry(attempt, policy=policy, sleep=clock.sleep, clock=clock) == 1
    assert clock.sleeps == [3.0, 8.0, 8.0]


def test_backoff_continues_from_retry_after_wait() -> None:
    policy = RetryPolicy(initial_delay=1.0, max_delay=8.0, multiplier=2.0, max_retries=5)
    clock = _Clock()
    outcomes = [
        RetryableFailure(MapsTransportError("429"), retry_after=6.0),
        _retryable(),
        Success(1),
    ]
    calls: list[int] = []

    def attempt() -> Success[int] | RetryableFailure:
        calls.append(1)
        return outcomes[len(calls) - 1]

    assert execute_with_retry(attempt, policy=policy, sleep=clock.sleep, clock=clock) == 1
    assert clock.sleeps == [6.0, 8.0]
    assert clock.sleeps == sorted(clock.sleeps)


def test_cancel_during_backoff_performs_no_further_attempt() -> None:
    context = CallContext()
    calls: list[int] = []

    def attempt() -> RetryableFailure:
        calls.append(1)
        return _retryable()

    def sleep(seconds: float) -> None:
        context.cancel()

    with pytest.raises(MapsCancelledError) as info:
        execute_with_retry(attempt, policy=RetryPolicy(), context=context, sleep=sleep)

    assert info.value.stage == "backoff"
    assert calls == [1]


def test_deadline_interrupts_real_backoff_wait() -> None:
    policy = RetryPolicy(initial_delay=30.0, max_delay=30.0, multiplier=2.0)
    calls: list[int] = []

    def attempt() -> RetryableFailure:
        calls.append(1)
        return _retryable()

    started = time.monotonic()
    with pytest.raises(MapsCancelledError) as info:
        execute_with_retry(attempt, policy=policy, context=CallContext(timeout=0.05))

    assert time.monotonic() - started < 2.0
    assert info.value.stage == "backoff"
    assert calls == [1]


def test_unknown_outcome_type_is_rejected() -> None:
    with pytest.raises(TypeError):
        execute_with_retry(lambda: "ok", policy=RetryPolicy())  # type: ignore[arg-type,return-value]


def test_next_delay_caps_at_max_delay() -> None:
    policy = RetryPolicy(initial_delay=1.0, max_delay=8.0, multiplier=2.0)

    assert next_delay(1.0, policy) == 2.0
    assert next_delay(6.0, policy) == 8.0
    assert list(backoff_schedule(RetryPolicy(initial_delay=1.0, max_delay=8.0, multiplier=2.0, max_retries=5))) == [
        1.0,
        2.0,
        4.0,
        8.0,
        8.0,
    ]


@pytest.mark.parametrize(
    "kwargs",
    [
        {"multiplier": 1.0},
        {"initial_delay": -1.0},
        {"initial_delay": 5.0, "max_delay": 1.0},
        {"max_retries": -1},
        {"max_elapsed_time": -0.1},
    ],
)
def test_retry_policy_rejects_invalid_values(kwargs: dict[str, float]) -> None:
    with pytest.raises(ValueError):
        RetryPolicy(**kwargs)


def test_async_executor_follows_same_schedule() -> None:
    policy = RetryPolicy(initial_delay=1.0, max_delay=8.0, multiplier=2.0, max_retries=5, max_elapsed_time=None)
    clock = _Clock()
    calls: list[int] = []

    async def fake_sleep(seconds: float) -> None:
        clock.sleep(seconds)

    async def attempt() -> RetryableFailure:
        calls.append(1)
        return _retryable()

    async def run() -> None:
        await execute_with_retry_async(attempt, policy=policy, sleep=fake_sleep, clock=clock)

    with pytest.raises(MapsRetriesExhaustedError):
        asyncio.run(run())

    assert len(calls) == 6
    assert clock.sleeps == [1.0, 2.0, 4.0, 8.0, 8.0]


def test_async_deadline_interrupts_backoff() -> None:
    policy = RetryPolicy(initial_delay=30.0, max_delay=30.0, multiplier=2.0)
    calls: list[int] = []

    async def attempt() -> RetryableFailure:
        calls.append(1)
        return _retryable()

    async def run() -> None:
        context = AsyncCallContext(timeout=0.05)
        with pytest.raises(MapsCancelledError) as info:
            await execute_with_retry_async(attempt, policy=policy, context=context)
        assert info.value.stage == "backoff"

    started = time.monotonic()
    asyncio.run(run())

    assert time.monotonic() - started < 2.0
    assert calls == [1]
