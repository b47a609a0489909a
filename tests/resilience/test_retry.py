from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import httpx
import pytest

from storesync.errors import OperationCancelledError, RateLimitError
from storesync.resilience import CancellationToken

if TYPE_CHECKING:
    from storesync.resilience import ResilienceContext
    from tests.support.fakes import SleepRecorder


class _Flaky:
    """Raise the scripted errors in order, then return ``value``."""

    def __init__(self, errors: list[Exception], value: str = "ok") -> None:
        self.errors = list(errors)
        self.value = value
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.value


def _connect_error() -> httpx.ConnectError:
    return httpx.ConnectError("connection refused")


def test_network_failures_back_off_exponentially(
    context: ResilienceContext, sleeper: SleepRecorder
) -> None:
    operation = _Flaky([_connect_error(), _connect_error()])

    result = asyncio.run(context.retry.execute(operation, operation_name="list channels"))

    assert result == "ok"
    assert operation.calls == 3
    assert sleeper.calls == [1.0, 2.0]


def test_exhausted_attempts_reraise_last_error(
    context: ResilienceContext, sleeper: SleepRecorder
) -> None:
    final = httpx.ConnectError("still down")
    operation = _Flaky([_connect_error(), _connect_error(), final])

    with pytest.raises(httpx.ConnectError) as excinfo:
        asyncio.run(context.retry.execute(operation))

    assert excinfo.value is final
    assert operation.calls == 3
    assert sleeper.calls == [1.0, 2.0]


def test_non_retryable_errors_propagate_immediately(
    context: ResilienceContext, sleeper: SleepRecorder
) -> None:
    operation = _Flaky([ValueError("slug must be lowercase")])

    with pytest.raises(ValueError, match="slug must be lowercase"):
        asyncio.run(context.retry.execute(operation))

    assert operation.calls == 1
    assert sleeper.calls == []


def test_retry_after_is_honoured_before_backoff(
    context: ResilienceContext, sleeper: SleepRecorder
) -> None:
    operation = _Flaky([RateLimitError("limited", retry_after_ms=500)])

    assert asyncio.run(context.retry.execute(operation)) == "ok"

    # the hint is slept inside the failing attempt, then the adaptive backoff applies
    assert sleeper.calls == [0.5, 2.0]
    assert context.rate_limiter.recent_rate_limit_count == 1
    assert context.concurrency.current_limit == 9


def test_retries_are_counted_in_the_active_stage(context: ResilienceContext) -> None:
    operation = _Flaky([RateLimitError("limited"), _connect_error()])

    with context.tracker.stage("channels"):
        asyncio.run(context.retry.execute(operation))

    metrics = context.tracker.get_stage_metrics("channels")
    assert metrics is not None
    assert metrics.rate_limit_hits == 1
    assert metrics.network_errors == 1
    assert metrics.retry_attempts == 2


def test_cancelled_token_stops_before_first_attempt(context: ResilienceContext) -> None:
    token = CancellationToken()
    token.cancel("user interrupt")
    operation = _Flaky([])

    with pytest.raises(OperationCancelledError, match="user interrupt"):
        asyncio.run(context.retry.execute(operation, cancellation=token))

    assert operation.calls == 0


def test_with_resilience_runs_through_the_concurrency_gate(
    context: ResilienceContext,
) -> None:
    operation = _Flaky([_connect_error()], value="created")

    result = asyncio.run(context.with_resilience(operation, operation_name="create channel"))

    assert result == "created"
    assert context.concurrency.current_limit == 10
