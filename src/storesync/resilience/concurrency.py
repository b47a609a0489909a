"""Adaptive bound on the number of in-flight platform operations."""

from __future__ import annotations

import asyncio
import threading
from contextlib import asynccontextmanager
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from storesync.config.http_resilience import ConcurrencyPolicy

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ConcurrencyState:
    current_limit: int
    floor: int
    ceiling: int


class ConcurrencyController:
    """Semaphore gate whose width shrinks fast on rate limits and grows slowly.

    Changing the width swaps in a fresh semaphore. Work already admitted
    keeps (and releases) the semaphore it entered through, so a resize
    never strands an in-flight operation.
    """

    def __init__(self, policy: ConcurrencyPolicy | None = None) -> None:
        self._policy = policy or ConcurrencyPolicy()
        self._limit = self._policy.initial
        self._gate = asyncio.Semaphore(self._limit)
        self._lock = threading.Lock()

    @property
    def current_limit(self) -> int:
        return self._limit

    def state(self) -> ConcurrencyState:
        return ConcurrencyState(
            current_limit=self._limit,
            floor=self._policy.floor,
            ceiling=self._policy.ceiling,
        )

    def adjust_concurrency(self, was_rate_limited: bool) -> int:  # noqa: FBT001
        """Shrink after a rate limit, grow after a success; return the new width."""

        with self._lock:
            previous = self._limit
            if was_rate_limited:
                updated = max(self._policy.floor, previous - self._policy.decrease_step)
            else:
                updated = min(self._policy.ceiling, previous + self._policy.increase_step)
            if updated == previous:
                return previous
            self._limit = updated
            self._gate = asyncio.Semaphore(updated)

        if was_rate_limited:
            log.warning("Reducing concurrency from %s to %s after rate limit", previous, updated)
        else:
            log.debug("Increasing concurrency from %s to %s", previous, updated)
        return updated

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        gate = self._gate
        async with gate:
            yield

    async def run[T](self, operation: Callable[[], Awaitable[T]]) -> T:
        async with self.slot():
            return await operation()

    def reset(self) -> None:
        with self._lock:
            self._limit = self._policy.initial
            self._gate = asyncio.Semaphore(self._limit)
