"""Adaptive delay tracking driven by observed rate limiting."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, replace
from logging import getLogger
from typing import TYPE_CHECKING

from storesync.config.http_resilience import AdaptiveDelayPolicy

from .classification import parse_retry_after

if TYPE_CHECKING:
    from collections.abc import Callable

log = getLogger(__name__)

type Clock = Callable[[], float]


@dataclass(frozen=True, slots=True)
class WaitDecision:
    wait: bool
    delay_ms: float


@dataclass(slots=True)
class RateLimiterState:
    """Timestamps are clock milliseconds."""

    recent_rate_limit_count: int = 0
    last_rate_limit_timestamp: float | None = None
    retry_after_expires_at: float = 0.0


class AdaptiveRateLimiter:
    """Turn recent rate-limit hits and server hints into wait times.

    The recent-hit counter is reset lazily: whenever it is read or
    incremented and the window has elapsed since the last hit. A
    ``Retry-After`` hint always wins over the computed backoff while it is
    active.

    Methods hold a lock so the state stays consistent if the limiter is
    shared with worker threads; on the event loop they never block.
    """

    def __init__(
        self,
        policy: AdaptiveDelayPolicy | None = None,
        *,
        clock: Clock = time.monotonic,
    ) -> None:
        self._policy = policy or AdaptiveDelayPolicy()
        self._clock = clock
        self._state = RateLimiterState()
        self._lock = threading.Lock()

    parse_retry_after = staticmethod(parse_retry_after)

    @property
    def window_ms(self) -> float:
        return self._policy.window_seconds * 1000

    @property
    def max_delay_ms(self) -> float:
        return self._policy.max_delay_seconds * 1000

    @property
    def recent_rate_limit_count(self) -> int:
        with self._lock:
            self._reset_if_stale(self._now_ms())
            return self._state.recent_rate_limit_count

    def snapshot(self) -> RateLimiterState:
        with self._lock:
            return replace(self._state)

    def track_rate_limit(self, retry_after_ms: float | None = None) -> None:
        with self._lock:
            now = self._now_ms()
            self._reset_if_stale(now)
            self._state.recent_rate_limit_count += 1
            self._state.last_rate_limit_timestamp = now
            count = self._state.recent_rate_limit_count
            if retry_after_ms is not None and retry_after_ms > 0:
                self._state.retry_after_expires_at = now + retry_after_ms

        if retry_after_ms is not None and retry_after_ms > 0:
            log.info(
                "Rate limit with Retry-After: %sms (recent rate limits: %s)",
                retry_after_ms,
                count,
            )
        else:
            log.warning("Rate limit detected (recent rate limits: %s)", count)

    def get_adaptive_delay(self, base_delay_ms: float) -> float:
        """Return how long to wait, in milliseconds, given a caller's base delay."""

        with self._lock:
            now = self._now_ms()
            self._reset_if_stale(now)
            if self._state.retry_after_expires_at > now:
                return max(self._state.retry_after_expires_at - now, base_delay_ms)
            count = self._state.recent_rate_limit_count
        if count == 0:
            return base_delay_ms
        return min(base_delay_ms * 2**count, self.max_delay_ms)

    def should_wait(self) -> WaitDecision:
        with self._lock:
            now = self._now_ms()
            if self._state.retry_after_expires_at > now:
                return WaitDecision(wait=True, delay_ms=self._state.retry_after_expires_at - now)
        return WaitDecision(wait=False, delay_ms=0)

    def reset(self) -> None:
        with self._lock:
            self._state = RateLimiterState()

    def _now_ms(self) -> float:
        return self._clock() * 1000

    def _reset_if_stale(self, now: float) -> None:
        last = self._state.last_rate_limit_timestamp
        if last is not None and now - last >= self.window_ms:
            self._state.recent_rate_limit_count = 0
