"""Resilience layer for talking to a rate-limited, unreliable platform API."""

from __future__ import annotations

from .cancellation import CancellationToken
from .chunked import (
    ChunkedProcessorResult,
    ChunkFailure,
    ChunkSuccess,
    process_in_chunks,
    split_into_chunks,
)
from .classification import (
    ClassifiedError,
    ErrorKind,
    GraphQLFailure,
    NetworkFailure,
    RateLimited,
    Unclassified,
    classify_error,
    extract_retry_after_ms,
    is_rate_limit_error,
    is_retryable,
    parse_retry_after,
)
from .concurrency import ConcurrencyController, ConcurrencyState
from .context import ResilienceContext
from .rate_limiter import AdaptiveRateLimiter, RateLimiterState, WaitDecision
from .retry import RetryExecutor
from .tracker import ResilienceTracker, StageMetrics

__all__ = [
    "AdaptiveRateLimiter",
    "CancellationToken",
    "ChunkFailure",
    "ChunkSuccess",
    "ChunkedProcessorResult",
    "ClassifiedError",
    "ConcurrencyController",
    "ConcurrencyState",
    "ErrorKind",
    "GraphQLFailure",
    "NetworkFailure",
    "RateLimited",
    "RateLimiterState",
    "ResilienceContext",
    "ResilienceTracker",
    "RetryExecutor",
    "StageMetrics",
    "Unclassified",
    "WaitDecision",
    "classify_error",
    "extract_retry_after_ms",
    "is_rate_limit_error",
    "is_retryable",
    "parse_retry_after",
    "process_in_chunks",
    "split_into_chunks",
]
