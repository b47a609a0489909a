from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from storesync.domain.entities import DEPLOYMENT_ORDER, family_for

from .comparators import EntityComparator
from .types import DiffResult, DiffSummary, summarize

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from storesync.domain.entities import EntitySnapshot, EntityType

log = getLogger(__name__)

type EntityCollections = Mapping[EntityType, Sequence[EntitySnapshot]]


class DiffEngine:
    """Compute the operations that bring the platform in line with configuration.

    Results are grouped by entity type in deployment order. Within a type,
    creates and updates follow the desired list's order and deletions follow
    the current list's order, so identical inputs always produce an
    identical summary.
    """

    def __init__(self, comparators: Mapping[EntityType, EntityComparator] | None = None) -> None:
        self._comparators = dict(comparators or {})

    def comparator_for(self, entity_type: EntityType) -> EntityComparator:
        comparator = self._comparators.get(entity_type)
        if comparator is None:
            comparator = EntityComparator(family_for(entity_type))
            self._comparators[entity_type] = comparator
        return comparator

    def diff_collection(
        self,
        entity_type: EntityType,
        desired: Sequence[EntitySnapshot],
        current: Sequence[EntitySnapshot],
    ) -> DiffSummary:
        return summarize(self._diff_results(entity_type, desired, current))

    def diff(
        self,
        desired: EntityCollections,
        current: EntityCollections,
        entity_types: Iterable[EntityType] | None = None,
    ) -> DiffSummary:
        selected = set(entity_types) if entity_types is not None else None
        results: list[DiffResult] = []
        for entity_type in DEPLOYMENT_ORDER:
            if selected is not None and entity_type not in selected:
                continue
            if entity_type not in desired and entity_type not in current:
                continue
            results.extend(
                self._diff_results(
                    entity_type,
                    desired.get(entity_type, ()),
                    current.get(entity_type, ()),
                )
            )
        summary = summarize(results)
        log.info(
            "Diff complete: %s changes (%s creates, %s updates, %s deletes)",
            summary.total_changes,
            summary.creates,
            summary.updates,
            summary.deletes,
        )
        return summary

    def _diff_results(
        self,
        entity_type: EntityType,
        desired: Sequence[EntitySnapshot],
        current: Sequence[EntitySnapshot],
    ) -> list[DiffResult]:
        results = self.comparator_for(entity_type).compare(desired, current)
        log.debug("Compared %s: %s differences", entity_type, len(results))
        return results
