"""Per-stage counters of rate limits, retries and classified errors."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from storesync.errors import StageContextError

from .classification import ErrorKind

if TYPE_CHECKING:
    from collections.abc import Iterator

    from .classification import ClassifiedError

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StageMetrics:
    rate_limit_hits: int = 0
    retry_attempts: int = 0
    graphql_errors: int = 0
    network_errors: int = 0

    @property
    def total_events(self) -> int:
        return (
            self.rate_limit_hits + self.retry_attempts + self.graphql_errors + self.network_errors
        )


@dataclass(slots=True)
class _StageCounters:
    name: str
    rate_limit_hits: int = 0
    retry_attempts: int = 0
    graphql_errors: int = 0
    network_errors: int = 0

    def freeze(self) -> StageMetrics:
        return StageMetrics(
            rate_limit_hits=self.rate_limit_hits,
            retry_attempts=self.retry_attempts,
            graphql_errors=self.graphql_errors,
            network_errors=self.network_errors,
        )


class ResilienceTracker:
    """Single active stage slot plus a map of finished stages.

    Starting a stage while another is active raises ``StageContextError``.
    ``record_*`` calls outside a stage are dropped.
    """

    def __init__(self) -> None:
        self._active: _StageCounters | None = None
        self._stages: dict[str, StageMetrics] = {}

    def start_stage_context(self, name: str) -> None:
        if self._active is not None:
            raise StageContextError(
                f"Cannot start stage {name!r} while stage {self._active.name!r} is active"
            )
        self._active = _StageCounters(name=name)

    def end_stage_context(self) -> StageMetrics | None:
        active = self._active
        if active is None:
            return None
        metrics = active.freeze()
        self._stages[active.name] = metrics
        self._active = None
        log.debug("Stage %r resilience metrics: %s", active.name, metrics)
        return metrics

    @contextmanager
    def stage(self, name: str) -> Iterator[None]:
        self.start_stage_context(name)
        try:
            yield
        finally:
            self.end_stage_context()

    @property
    def in_stage_context(self) -> bool:
        return self._active is not None

    @property
    def current_stage_name(self) -> str | None:
        return self._active.name if self._active else None

    def record_rate_limit(self) -> None:
        if self._active is not None:
            self._active.rate_limit_hits += 1

    def record_retry(self) -> None:
        if self._active is not None:
            self._active.retry_attempts += 1

    def record_graphql_error(self) -> None:
        if self._active is not None:
            self._active.graphql_errors += 1

    def record_network_error(self) -> None:
        if self._active is not None:
            self._active.network_errors += 1

    def record_error(self, error: ClassifiedError) -> None:
        match error.kind:
            case ErrorKind.RATE_LIMITED:
                self.record_rate_limit()
            case ErrorKind.NETWORK:
                self.record_network_error()
            case ErrorKind.GRAPHQL:
                self.record_graphql_error()
            case ErrorKind.UNCLASSIFIED:
                pass

    def get_stage_metrics(self, name: str) -> StageMetrics | None:
        return self._stages.get(name)

    def get_all_stage_metrics(self) -> dict[str, StageMetrics]:
        return dict(self._stages)

    def reset(self) -> None:
        self._active = None
        self._stages.clear()
