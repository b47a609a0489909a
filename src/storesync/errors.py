"""Exception hierarchy shared by the resilience layer, diffing and reconciliation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence


class StoreSyncError(RuntimeError):
    """Base class for errors raised by storesync."""

    code = "STORESYNC_ERROR"


class RateLimitError(StoreSyncError):
    """The platform rejected a request because of rate limiting. Retryable."""

    code = "RATE_LIMITED"

    def __init__(self, message: str, *, retry_after_ms: int | None = None) -> None:
        super().__init__(message)
        self.retry_after_ms = retry_after_ms


class NetworkError(StoreSyncError):
    """The platform could not be reached. Retryable."""

    code = "NETWORK_ERROR"


@dataclass(frozen=True, slots=True)
class GraphQLErrorDetail:
    message: str
    code: str | None = None
    path: tuple[str, ...] = ()

    def render(self) -> str:
        if self.path:
            return f"[{'.'.join(self.path)}] {self.message}"
        return self.message


class GraphQLApplicationError(StoreSyncError):
    """The platform answered with field-level errors. Not retryable."""

    code = "GRAPHQL_ERROR"

    def __init__(self, message: str, *, errors: Sequence[GraphQLErrorDetail] = ()) -> None:
        self.errors = tuple(errors)
        if self.errors:
            rendered = "; ".join(error.render() for error in self.errors)
            message = f"{message}: {rendered}"
        super().__init__(message)


class EntityValidationError(StoreSyncError, ValueError):
    """Input failed a pre-flight check before any network call was made."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class BatchOperationError(StoreSyncError):
    """One or more items of a batch failed; carries every failed key."""

    code = "BATCH_FAILED"

    def __init__(
        self,
        *,
        operation: str,
        entity_type: str,
        failures: Sequence[tuple[str, str]],
        total: int,
    ) -> None:
        self.operation = operation
        self.entity_type = entity_type
        self.failures = tuple(failures)
        self.total = total
        details = "; ".join(f"{key}: {message}" for key, message in self.failures)
        super().__init__(
            f"Failed to {operation} {len(self.failures)} of {total} {entity_type}: {details}"
        )

    @property
    def failed_keys(self) -> tuple[str, ...]:
        return tuple(key for key, _ in self.failures)


class OperationCancelledError(StoreSyncError):
    """Raised when a cancellation token fires before work could continue."""

    code = "CANCELLED"


class StageContextError(StoreSyncError):
    """Raised when a resilience stage is started while another one is active."""

    code = "STAGE_CONTEXT_ERROR"
