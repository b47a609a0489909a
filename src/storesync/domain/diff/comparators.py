"""Declared-field comparison of one entity collection."""

from __future__ import annotations

import json
from collections import Counter
from collections.abc import Mapping
from logging import getLogger
from typing import TYPE_CHECKING

from storesync.domain.entities import ensure_unique_keys

from .types import DiffChange, DiffOperation, DiffResult

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from storesync.domain.entities import EntityFamily, EntitySnapshot, EntityType

log = getLogger(__name__)

_SCALARS = (str, int, float, bool, type(None))


class EntityComparator:
    """Compare desired and current snapshots of a single entity family.

    Only fields present in the desired snapshot are compared. Nested
    mappings recurse per declared sub-field and report dotted paths such as
    ``settings.allocationStrategy``. Lists of scalars compare without regard
    to order; any other list compares as a whole.
    """

    def __init__(self, family: EntityFamily) -> None:
        self.family = family

    @property
    def entity_type(self) -> EntityType:
        return self.family.entity_type

    def compare(
        self,
        desired: Sequence[EntitySnapshot],
        current: Sequence[EntitySnapshot],
    ) -> list[DiffResult]:
        self.validate_unique_keys(desired)
        current_by_key = self._index_current(current)
        desired_keys: set[str] = set()
        results: list[DiffResult] = []

        for entity in desired:
            key = self.family.key_of(entity)
            desired_keys.add(key)
            existing = current_by_key.get(key)
            if existing is None:
                results.append(self._result(DiffOperation.CREATE, key, entity, desired=entity))
                continue
            changes = self.compare_fields(entity, existing)
            if changes:
                results.append(
                    self._result(
                        DiffOperation.UPDATE,
                        key,
                        entity,
                        desired=entity,
                        current=existing,
                        changes=tuple(changes),
                    )
                )

        for key, existing in current_by_key.items():
            if key not in desired_keys:
                results.append(self._result(DiffOperation.DELETE, key, existing, current=existing))
        return results

    def compare_fields(self, desired: EntitySnapshot, current: EntitySnapshot) -> list[DiffChange]:
        changes: list[DiffChange] = []
        self._compare_mapping("", desired, current, changes)
        return changes

    def validate_unique_keys(self, entities: Iterable[EntitySnapshot]) -> None:
        ensure_unique_keys(self.family, entities)

    def _index_current(self, current: Iterable[EntitySnapshot]) -> dict[str, EntitySnapshot]:
        indexed: dict[str, EntitySnapshot] = {}
        duplicates: list[str] = []
        for entity in current:
            key = self.family.key_of(entity)
            if key in indexed:
                duplicates.append(key)
                continue
            indexed[key] = entity
        if duplicates:
            log.warning(
                "Duplicate %s detected in current state: %s. Using first occurrence only.",
                self.entity_type,
                ", ".join(dict.fromkeys(duplicates)),
            )
        return indexed

    def _compare_mapping(
        self,
        prefix: str,
        desired: Mapping[str, object],
        current: Mapping[str, object],
        changes: list[DiffChange],
    ) -> None:
        for name, desired_value in desired.items():
            path = f"{prefix}{name}"
            current_value = current.get(name)
            if isinstance(desired_value, Mapping) and isinstance(current_value, Mapping):
                self._compare_mapping(f"{path}.", desired_value, current_value, changes)
                continue
            if not self._values_equal(path, current_value, desired_value):
                changes.append(
                    DiffChange(
                        field=path,
                        current_value=current_value,
                        desired_value=desired_value,
                        description=describe_change(path, current_value, desired_value),
                    )
                )

    def _values_equal(self, path: str, current: object, desired: object) -> bool:
        if path in self.family.case_insensitive_fields:
            if isinstance(current, str) and isinstance(desired, str):
                return current.casefold() == desired.casefold()
        if isinstance(current, list | tuple) and isinstance(desired, list | tuple):
            if _all_scalars(current) and _all_scalars(desired):
                return Counter(current) == Counter(desired)
            return list(current) == list(desired)
        return current == desired

    def _result(
        self,
        operation: DiffOperation,
        key: str,
        named: EntitySnapshot,
        *,
        desired: EntitySnapshot | None = None,
        current: EntitySnapshot | None = None,
        changes: tuple[DiffChange, ...] = (),
    ) -> DiffResult:
        return DiffResult(
            operation=operation,
            entity_type=self.entity_type,
            entity_name=self.family.display_name(named),
            entity_key=key,
            current=current,
            desired=desired,
            changes=changes,
        )


def describe_change(path: str, current: object, desired: object) -> str:
    return f"{path}: {_render(current)} → {_render(desired)}"


def _render(value: object) -> str:
    if isinstance(value, str):
        return f'"{value}"'
    return json.dumps(value, sort_keys=True, default=str)


def _all_scalars(values: Iterable[object]) -> bool:
    return all(isinstance(value, _SCALARS) for value in values)
