"""Per-item outcomes of a reconciliation batch."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from storesync.errors import BatchOperationError

if TYPE_CHECKING:
    from storesync.domain.entities import EntityType
    from storesync.domain.ports import RemoteEntity


class ReconcileAction(StrEnum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


@dataclass(frozen=True, slots=True, kw_only=True)
class ItemSuccess:
    key: str
    action: ReconcileAction
    entity: RemoteEntity | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class ItemFailure:
    key: str
    error: Exception

    @property
    def message(self) -> str:
        return str(self.error) or type(self.error).__name__


@dataclass(slots=True, kw_only=True)
class BatchReport:
    entity_type: EntityType
    operation: str
    successes: list[ItemSuccess] = field(default_factory=list)
    failures: list[ItemFailure] = field(default_factory=list)
    # keys of deletions that were computed but not applied
    skipped: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.successes) + len(self.failures)

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)

    @property
    def failed_keys(self) -> tuple[str, ...]:
        return tuple(failure.key for failure in self.failures)

    def count(self, action: ReconcileAction) -> int:
        return sum(1 for success in self.successes if success.action is action)

    def merge(self, other: BatchReport) -> None:
        self.successes.extend(other.successes)
        self.failures.extend(other.failures)
        self.skipped.extend(other.skipped)

    def to_error(self) -> BatchOperationError:
        return BatchOperationError(
            operation=self.operation,
            entity_type=str(self.entity_type),
            failures=[(failure.key, failure.message) for failure in self.failures],
            total=self.total,
        )

    def raise_for_failures(self) -> None:
        if self.failures:
            raise self.to_error()
