"""Value types produced by the diff engine."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from storesync.domain.entities import EntitySnapshot, EntityType


class DiffOperation(StrEnum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True, slots=True, kw_only=True)
class DiffChange:
    """One field-level delta inside an UPDATE."""

    field: str
    current_value: object
    desired_value: object
    description: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class DiffResult:
    """One entity instance that needs an operation. In-sync entities have none."""

    operation: DiffOperation
    entity_type: EntityType
    entity_name: str
    entity_key: str
    current: EntitySnapshot | None = None
    desired: EntitySnapshot | None = None
    changes: tuple[DiffChange, ...] = ()


@dataclass(frozen=True, slots=True)
class DiffSummary:
    """Counts are derived from ``results`` and never tracked separately."""

    results: tuple[DiffResult, ...] = ()

    @property
    def total_changes(self) -> int:
        return len(self.results)

    @property
    def creates(self) -> int:
        return self._count(DiffOperation.CREATE)

    @property
    def updates(self) -> int:
        return self._count(DiffOperation.UPDATE)

    @property
    def deletes(self) -> int:
        return self._count(DiffOperation.DELETE)

    @property
    def has_changes(self) -> bool:
        return bool(self.results)

    def for_entity_type(self, entity_type: EntityType) -> tuple[DiffResult, ...]:
        return tuple(result for result in self.results if result.entity_type == entity_type)

    def _count(self, operation: DiffOperation) -> int:
        return sum(1 for result in self.results if result.operation is operation)


@dataclass(frozen=True, slots=True)
class DiffStatistics:
    by_entity_type: dict[EntityType, int] = field(default_factory=dict)
    by_operation: dict[DiffOperation, int] = field(default_factory=dict)

    @property
    def most_common_operation(self) -> DiffOperation | None:
        if not self.by_operation:
            return None
        # ties resolve in CREATE, UPDATE, DELETE order
        return max(DiffOperation, key=lambda operation: self.by_operation.get(operation, 0))


def summarize(results: Iterable[DiffResult]) -> DiffSummary:
    return DiffSummary(results=tuple(results))


def statistics(summary: DiffSummary) -> DiffStatistics:
    by_type = Counter(result.entity_type for result in summary.results)
    by_operation = Counter(result.operation for result in summary.results)
    return DiffStatistics(by_entity_type=dict(by_type), by_operation=dict(by_operation))
