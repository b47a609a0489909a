"""Bounded retries with exponential backoff around one remote operation."""

from __future__ import annotations

import asyncio
from functools import partial
from logging import getLogger
from typing import TYPE_CHECKING

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from storesync.config.http_resilience import RetryPolicy

from .cancellation import pause
from .classification import RateLimited, classify_error, is_retryable

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from .cancellation import CancellationToken, Sleeper
    from .concurrency import ConcurrencyController
    from .rate_limiter import AdaptiveRateLimiter
    from .tracker import ResilienceTracker

log = getLogger(__name__)


class RetryExecutor:
    """Run an async operation up to ``policy.max_attempts`` times.

    Each failed attempt is classified. Rate limits feed the adaptive rate
    limiter and shrink the concurrency gate, and a ``Retry-After`` hint is
    honoured inside the failing attempt before the error reaches the retry
    loop. Only rate-limit and network failures are retried; anything else
    propagates on first occurrence. Exhaustion re-raises the last error.
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        *,
        rate_limiter: AdaptiveRateLimiter,
        concurrency: ConcurrencyController,
        tracker: ResilienceTracker | None = None,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self.policy = policy or RetryPolicy()
        self._rate_limiter = rate_limiter
        self._concurrency = concurrency
        self._tracker = tracker
        self._sleep = sleep
        self._backoff = wait_exponential_jitter(
            initial=self.policy.base_delay_seconds,
            max=self.policy.max_backoff_seconds,
            exp_base=self.policy.backoff_factor,
            jitter=self.policy.jitter_seconds,
        )

    async def execute[T](
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        operation_name: str = "operation",
        cancellation: CancellationToken | None = None,
    ) -> T:
        retrying = AsyncRetrying(
            sleep=partial(pause, cancellation=cancellation, sleeper=self._sleep),
            stop=stop_after_attempt(self.policy.max_attempts),
            wait=self._wait,
            retry=retry_if_exception(is_retryable),
            before_sleep=partial(self._before_sleep, operation_name),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._attempt(operation, cancellation=cancellation)
        raise AssertionError("unreachable: tenacity either returns or re-raises")

    async def _attempt[T](
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        cancellation: CancellationToken | None,
    ) -> T:
        if cancellation is not None:
            cancellation.raise_if_cancelled()
        decision = self._rate_limiter.should_wait()
        if decision.wait:
            await pause(decision.delay_ms / 1000, cancellation=cancellation, sleeper=self._sleep)

        try:
            result = await operation()
        except Exception as exc:
            classified = classify_error(exc)
            if self._tracker is not None:
                self._tracker.record_error(classified)
            if isinstance(classified, RateLimited):
                self._rate_limiter.track_rate_limit(classified.retry_after_ms)
                self._concurrency.adjust_concurrency(was_rate_limited=True)
                if classified.retry_after_ms:
                    await pause(
                        classified.retry_after_ms / 1000,
                        cancellation=cancellation,
                        sleeper=self._sleep,
                    )
            raise

        self._concurrency.adjust_concurrency(was_rate_limited=False)
        return result

    def _wait(self, retry_state: RetryCallState) -> float:
        backoff = self._backoff(retry_state)
        outcome = retry_state.outcome
        if outcome is not None and outcome.failed:
            if isinstance(classify_error(outcome.exception()), RateLimited):
                adaptive = self._rate_limiter.get_adaptive_delay(backoff * 1000) / 1000
                return min(adaptive, self.policy.max_backoff_seconds)
        return backoff

    def _before_sleep(self, operation_name: str, retry_state: RetryCallState) -> None:
        if self._tracker is not None:
            self._tracker.record_retry()
        outcome = retry_state.outcome
        error = outcome.exception() if outcome is not None else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        log.warning(
            "Retrying %s (attempt %s/%s) in %.2fs after: %s",
            operation_name,
            retry_state.attempt_number + 1,
            self.policy.max_attempts,
            delay,
            error,
        )
