"""Create-or-update reconciliation of one entity family against the platform.

Every network call goes through the invocation's ``ResilienceContext``,
so it is admitted by the concurrency gate and retried inside that slot.
Batches at or below ``SyncConfig.bulk_threshold`` are dispatched
concurrently; larger batches run through the chunked processor, one chunk
at a time. Either way a chunk or batch only completes once every item in
it has settled, and each item succeeds or fails on its own.
"""

from __future__ import annotations

import asyncio
from logging import getLogger
from typing import TYPE_CHECKING

from storesync.config.sync import SyncConfig
from storesync.domain.diff import DiffOperation
from storesync.domain.entities import ensure_unique_keys
from storesync.domain.ports import entity_id_of
from storesync.errors import OperationCancelledError

from .batch import BatchReport, ItemFailure, ItemSuccess, ReconcileAction

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence

    from storesync.domain.diff import DiffResult
    from storesync.domain.entities import EntityFamily, EntitySnapshot, EntityType
    from storesync.domain.ports import EntityRepository, RemoteEntity
    from storesync.resilience import CancellationToken, ResilienceContext

log = getLogger(__name__)


class ReconciliationService:
    def __init__(
        self,
        family: EntityFamily,
        repository: EntityRepository,
        context: ResilienceContext,
        sync_config: SyncConfig | None = None,
    ) -> None:
        self.family = family
        self._repository = repository
        self._context = context
        self._sync = sync_config or SyncConfig()

    @property
    def entity_type(self) -> EntityType:
        return self.family.entity_type

    async def fetch_existing(
        self, *, cancellation: CancellationToken | None = None
    ) -> list[RemoteEntity]:
        existing = await self._call(
            self._repository.list_existing,
            f"list {self.entity_type}",
            cancellation,
        )
        log.debug("Fetched %s existing %s", len(existing), self.entity_type)
        return existing

    async def get_or_create(
        self,
        entity: EntitySnapshot,
        *,
        cancellation: CancellationToken | None = None,
    ) -> ItemSuccess:
        """Update the entity if its natural key exists on the platform, else create it."""

        key = self.family.key_of(entity)
        existing = await self._call(
            lambda: self._repository.find_by_key(key),
            f"find {self.entity_type} {key}",
            cancellation,
        )
        if existing is None:
            log.debug("Creating %s %s", self.entity_type, key)
            created = await self._call(
                lambda: self._repository.create(entity),
                f"create {self.entity_type} {key}",
                cancellation,
            )
            return ItemSuccess(key=key, action=ReconcileAction.CREATED, entity=created)

        return await self.update(entity_id_of(existing), entity, cancellation=cancellation)

    async def update(
        self,
        entity_id: str,
        entity: EntitySnapshot,
        *,
        cancellation: CancellationToken | None = None,
    ) -> ItemSuccess:
        key = self.family.key_of(entity)
        log.debug("Updating %s %s (%s)", self.entity_type, key, entity_id)
        updated = await self._call(
            lambda: self._repository.update(entity_id, entity),
            f"update {self.entity_type} {key}",
            cancellation,
        )
        return ItemSuccess(key=key, action=ReconcileAction.UPDATED, entity=updated)

    async def delete(
        self,
        entity: RemoteEntity,
        *,
        cancellation: CancellationToken | None = None,
    ) -> ItemSuccess:
        key = self.family.key_of(entity)
        entity_id = entity_id_of(entity)
        await self._call(
            lambda: self._repository.delete(entity_id),
            f"delete {self.entity_type} {key}",
            cancellation,
        )
        return ItemSuccess(key=key, action=ReconcileAction.DELETED, entity=entity)

    async def bootstrap(
        self,
        entities: Iterable[EntitySnapshot],
        *,
        cancellation: CancellationToken | None = None,
        fail_on_partial: bool | None = None,
    ) -> BatchReport:
        """Create or update every entity of a batch.

        Duplicate natural keys or an invalid entity fail the whole batch with
        ``EntityValidationError`` before any network call. Item failures are
        collected into the report; with ``fail_on_partial`` (the configured
        default) any failure is raised as one ``BatchOperationError``.
        """

        report = await self._reconcile(list(entities), "bootstrap", cancellation)
        self._finish(report, fail_on_partial)
        return report

    async def apply_diff(
        self,
        results: Sequence[DiffResult],
        *,
        cancellation: CancellationToken | None = None,
        allow_deletes: bool | None = None,
        fail_on_partial: bool | None = None,
    ) -> BatchReport:
        foreign = {result.entity_type for result in results} - {self.entity_type}
        if foreign:
            raise ValueError(
                f"{self.entity_type} service cannot apply diff results for "
                + ", ".join(sorted(foreign))
            )

        upserts: list[EntitySnapshot] = []
        # updates whose platform id the diff already resolved skip the lookup
        known_ids: dict[str, str] = {}
        deletions: list[RemoteEntity] = []
        for result in results:
            if result.operation is DiffOperation.DELETE:
                if result.current is not None:
                    deletions.append(result.current)
                continue
            if result.desired is None:
                continue
            upserts.append(result.desired)
            if result.operation is DiffOperation.UPDATE and result.current is not None:
                entity_id = result.current.get("id")
                if isinstance(entity_id, str) and entity_id:
                    known_ids[result.entity_key] = entity_id

        report = await self._reconcile(upserts, "deploy", cancellation, known_ids)
        if deletions:
            if self._resolve(allow_deletes, self._sync.allow_deletes):
                report.merge(await self._delete_all(deletions, cancellation))
            else:
                report.skipped.extend(self.family.key_of(entity) for entity in deletions)
                log.info(
                    "Skipping %s %s deletions; deletes are not allowed",
                    len(deletions),
                    self.entity_type,
                )
        self._finish(report, fail_on_partial)
        return report

    async def _reconcile(
        self,
        entities: list[EntitySnapshot],
        operation: str,
        cancellation: CancellationToken | None,
        known_ids: Mapping[str, str] | None = None,
    ) -> BatchReport:
        report = BatchReport(entity_type=self.entity_type, operation=operation)
        if not entities:
            return report

        ensure_unique_keys(self.family, entities)
        for entity in entities:
            self.family.validate(entity)

        def upsert(entity: EntitySnapshot) -> Awaitable[ItemSuccess]:
            entity_id = (known_ids or {}).get(self.family.key_of(entity))
            if entity_id is None:
                return self.get_or_create(entity, cancellation=cancellation)
            return self.update(entity_id, entity, cancellation=cancellation)

        log.debug("Reconciling %s %s", len(entities), self.entity_type)
        if len(entities) > self._sync.bulk_threshold:
            report.merge(await self._reconcile_in_chunks(entities, upsert, operation, cancellation))
        else:
            report.merge(
                await self._settle(
                    operation,
                    [self.family.key_of(entity) for entity in entities],
                    [upsert(entity) for entity in entities],
                )
            )
        return report

    async def _reconcile_in_chunks(
        self,
        entities: list[EntitySnapshot],
        upsert: Callable[[EntitySnapshot], Awaitable[ItemSuccess]],
        operation: str,
        cancellation: CancellationToken | None,
    ) -> BatchReport:
        async def run_chunk(chunk: list[EntitySnapshot]) -> list[ItemSuccess | Exception]:
            return await _gather_outcomes([upsert(entity) for entity in chunk])

        result = await self._context.process_in_chunks(
            entities,
            run_chunk,
            chunk_size=self._sync.chunk_size,
            delay_seconds=self._sync.chunk_delay_seconds,
            entity_type=str(self.entity_type),
            cancellation=cancellation,
        )
        report = BatchReport(entity_type=self.entity_type, operation=operation)
        for success in result.successes:
            if isinstance(success.result, ItemSuccess):
                report.successes.append(success.result)
            else:
                key = self.family.key_of(success.item)
                report.failures.append(ItemFailure(key=key, error=success.result))
        report.failures.extend(
            ItemFailure(key=self.family.key_of(failure.item), error=failure.error)
            for failure in result.failures
        )
        return report

    async def _delete_all(
        self,
        entities: list[RemoteEntity],
        cancellation: CancellationToken | None,
    ) -> BatchReport:
        return await self._settle(
            "delete",
            [self.family.key_of(entity) for entity in entities],
            [self.delete(entity, cancellation=cancellation) for entity in entities],
        )

    async def _settle(
        self,
        operation: str,
        keys: list[str],
        calls: list[Awaitable[ItemSuccess]],
    ) -> BatchReport:
        report = BatchReport(entity_type=self.entity_type, operation=operation)
        for key, outcome in zip(keys, await _gather_outcomes(calls), strict=True):
            if isinstance(outcome, ItemSuccess):
                report.successes.append(outcome)
            else:
                report.failures.append(ItemFailure(key=key, error=outcome))
        if report.failures:
            log.warning(
                "%s %s completed with %s failures",
                operation.capitalize(),
                self.entity_type,
                len(report.failures),
            )
        return report

    def _finish(self, report: BatchReport, fail_on_partial: bool | None) -> None:
        if report.failures:
            error = report.to_error()
            log.error("%s", error)
            if self._resolve(fail_on_partial, self._sync.fail_on_partial):
                raise error
            return
        log.debug(
            "%s %s: %s created, %s updated, %s deleted",
            report.operation.capitalize(),
            self.entity_type,
            report.count(ReconcileAction.CREATED),
            report.count(ReconcileAction.UPDATED),
            report.count(ReconcileAction.DELETED),
        )

    async def _call[T](
        self,
        operation: Callable[[], Awaitable[T]],
        operation_name: str,
        cancellation: CancellationToken | None,
    ) -> T:
        return await self._context.with_resilience(
            operation,
            operation_name=operation_name,
            cancellation=cancellation,
        )

    @staticmethod
    def _resolve(override: bool | None, default: bool) -> bool:
        return default if override is None else override


async def _gather_outcomes(
    calls: Sequence[Awaitable[ItemSuccess]],
) -> list[ItemSuccess | Exception]:
    """Await every call, returning each item's success or error in input order.

    Nothing returns before all calls have settled. Cancellation and
    non-``Exception`` errors are re-raised once they have.
    """

    outcomes = await asyncio.gather(*calls, return_exceptions=True)
    for outcome in outcomes:
        if isinstance(outcome, OperationCancelledError) or not isinstance(
            outcome, ItemSuccess | Exception
        ):
            raise outcome
    return [outcome for outcome in outcomes if isinstance(outcome, ItemSuccess | Exception)]
