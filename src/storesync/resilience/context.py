"""One resilience context per command invocation.

The context owns the adaptive rate limiter, the concurrency gate, the
retry executor and the stage tracker, and is passed to every caller that
talks to the platform. Composition order for a single operation is::

    concurrency slot -> retry loop -> operation

so retries of one logical operation reuse the slot it was admitted with.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from storesync.config.http_resilience import ResilienceConfig

from .chunked import (
    DEFAULT_CHUNK_DELAY_SECONDS,
    DEFAULT_CHUNK_SIZE,
    ChunkedProcessorResult,
    process_in_chunks,
)
from .concurrency import ConcurrencyController
from .rate_limiter import AdaptiveRateLimiter
from .retry import RetryExecutor
from .tracker import ResilienceTracker

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from .cancellation import CancellationToken, Sleeper
    from .chunked import BatchOperation
    from .rate_limiter import Clock


@dataclass(slots=True)
class ResilienceContext:
    rate_limiter: AdaptiveRateLimiter
    concurrency: ConcurrencyController
    retry: RetryExecutor
    tracker: ResilienceTracker
    sleep: Sleeper = asyncio.sleep

    @classmethod
    def create(
        cls,
        config: ResilienceConfig | None = None,
        *,
        clock: Clock = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
    ) -> ResilienceContext:
        config = config or ResilienceConfig(name="default")
        rate_limiter = AdaptiveRateLimiter(config.adaptive, clock=clock)
        concurrency = ConcurrencyController(config.concurrency)
        tracker = ResilienceTracker()
        retry = RetryExecutor(
            config.retry,
            rate_limiter=rate_limiter,
            concurrency=concurrency,
            tracker=tracker,
            sleep=sleep,
        )
        return cls(
            rate_limiter=rate_limiter,
            concurrency=concurrency,
            retry=retry,
            tracker=tracker,
            sleep=sleep,
        )

    async def with_resilience[T](
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        operation_name: str = "operation",
        cancellation: CancellationToken | None = None,
    ) -> T:
        async with self.concurrency.slot():
            return await self.retry.execute(
                operation,
                operation_name=operation_name,
                cancellation=cancellation,
            )

    async def process_in_chunks[T, R](
        self,
        items: Sequence[T],
        batch_operation: BatchOperation[T, R],
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        delay_seconds: float = DEFAULT_CHUNK_DELAY_SECONDS,
        entity_type: str = "items",
        cancellation: CancellationToken | None = None,
    ) -> ChunkedProcessorResult[T, R]:
        return await process_in_chunks(
            items,
            batch_operation,
            chunk_size=chunk_size,
            delay_seconds=delay_seconds,
            entity_type=entity_type,
            cancellation=cancellation,
            adjust_delay=self._adaptive_chunk_delay,
            sleeper=self.sleep,
        )

    def reset(self) -> None:
        self.rate_limiter.reset()
        self.concurrency.reset()
        self.tracker.reset()

    def _adaptive_chunk_delay(self, delay_seconds: float) -> float:
        return self.rate_limiter.get_adaptive_delay(delay_seconds * 1000) / 1000
