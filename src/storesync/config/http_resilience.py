"""Configuration types for the resilient platform client."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping


@dataclass(slots=True, frozen=True)
class RetryPolicy:
    """Bounded exponential backoff applied around one remote operation."""

    max_attempts: int = 5
    base_delay_seconds: float = 1.0
    backoff_factor: float = 2.0
    max_backoff_seconds: float = 30.0
    jitter_seconds: float = 1.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay_seconds < 0 or self.max_backoff_seconds < 0:
            raise ValueError("Backoff delays must be non-negative")


@dataclass(slots=True, frozen=True)
class AdaptiveDelayPolicy:
    """How recent rate-limit hits inflate subsequent delays."""

    window_seconds: float = 60.0
    max_delay_seconds: float = 15.0


@dataclass(slots=True, frozen=True)
class ConcurrencyPolicy:
    initial: int = 10
    floor: int = 1
    ceiling: int = 10
    decrease_step: int = 2
    increase_step: int = 1

    def __post_init__(self) -> None:
        if not 1 <= self.floor <= self.initial <= self.ceiling:
            raise ValueError("Concurrency policy requires 1 <= floor <= initial <= ceiling")


@dataclass(slots=True, frozen=True)
class RateLimit:
    max_calls: int
    per_seconds: float


@dataclass(slots=True, frozen=True)
class ResilienceConfig:
    name: str
    base_url: str | None = None
    timeout_seconds: float = 30.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    adaptive: AdaptiveDelayPolicy = field(default_factory=AdaptiveDelayPolicy)
    concurrency: ConcurrencyPolicy = field(default_factory=ConcurrencyPolicy)
    ratelimit: RateLimit | None = None
    default_headers: Mapping[str, str] | None = None
