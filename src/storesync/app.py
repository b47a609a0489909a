"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING

from storesync.adapters.config_file import load_desired_state
from storesync.adapters.platform import GraphQLClient, build_repositories
from storesync.config.platform import get_platform_config
from storesync.config.sync import SyncConfig
from storesync.domain.diff import DiffEngine
from storesync.domain.entities import DEPLOYMENT_ORDER, family_for, select_entity_types
from storesync.domain.reconciliation import (
    DeploymentReport,
    ReconciliationService,
    StageReport,
)
from storesync.errors import OperationCancelledError, StoreSyncError
from storesync.resilience import ResilienceContext

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Iterable, Mapping, Sequence

    from storesync.adapters.config_file import DesiredState
    from storesync.config.platform import PlatformConfig
    from storesync.domain.diff import DiffResult, DiffSummary
    from storesync.domain.entities import EntitySnapshot, EntityType
    from storesync.domain.ports import EntityRepository
    from storesync.resilience import CancellationToken

type Repositories = Mapping[EntityType, EntityRepository]
type ServiceMap = dict[EntityType, ReconciliationService]

log = getLogger(__name__)


@asynccontextmanager
async def _open_repositories(
    repositories: Repositories | None,
    platform: PlatformConfig | None,
) -> AsyncIterator[Repositories]:
    if repositories is not None:
        yield repositories
        return
    config = platform or get_platform_config()
    async with GraphQLClient(config.resilience) as client:
        yield build_repositories(client)


def _selected_types(
    state: DesiredState,
    include: Iterable[str] | None,
    exclude: Iterable[str] | None,
) -> tuple[EntityType, ...]:
    requested = select_entity_types(include, exclude)
    declared = state.declared_types()
    undeclared = [str(entity_type) for entity_type in requested if entity_type not in declared]
    if undeclared:
        log.debug("Sections absent from the configuration are not managed: %s", undeclared)
    return tuple(entity_type for entity_type in requested if entity_type in declared)


def _build_services(
    repositories: Repositories,
    entity_types: Sequence[EntityType],
    context: ResilienceContext,
    sync_config: SyncConfig,
) -> ServiceMap:
    return {
        entity_type: ReconciliationService(
            family_for(entity_type), repositories[entity_type], context, sync_config
        )
        for entity_type in entity_types
    }


async def fetch_current_state(
    services: ServiceMap,
    context: ResilienceContext,
    *,
    cancellation: CancellationToken | None = None,
) -> dict[EntityType, list[EntitySnapshot]]:
    """Fetch every selected family from the platform concurrently.

    The stage closes only after every fetch has settled; the first failure
    in deployment order is then raised.
    """

    entity_types = list(services)
    current: dict[EntityType, list[EntitySnapshot]] = {}
    with context.tracker.stage("fetch current state"):
        outcomes = await asyncio.gather(
            *(
                services[entity_type].fetch_existing(cancellation=cancellation)
                for entity_type in entity_types
            ),
            return_exceptions=True,
        )
        for entity_type, outcome in zip(entity_types, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                raise outcome
            current[entity_type] = list(outcome)
    return current


async def run_diff(
    state: DesiredState,
    *,
    include: Iterable[str] | None = None,
    exclude: Iterable[str] | None = None,
    repositories: Repositories | None = None,
    platform: PlatformConfig | None = None,
    context: ResilienceContext | None = None,
    cancellation: CancellationToken | None = None,
) -> DiffSummary:
    entity_types = _selected_types(state, include, exclude)
    if context is None:
        context = ResilienceContext.create(platform.resilience if platform else None)

    async with _open_repositories(repositories, platform) as opened:
        services = _build_services(opened, entity_types, context, SyncConfig())
        current = await fetch_current_state(services, context, cancellation=cancellation)
    return DiffEngine().diff(state.collections(entity_types), current, entity_types)


async def run_deploy(
    state: DesiredState,
    *,
    include: Iterable[str] | None = None,
    exclude: Iterable[str] | None = None,
    dry_run: bool = False,
    sync_config: SyncConfig | None = None,
    repositories: Repositories | None = None,
    platform: PlatformConfig | None = None,
    context: ResilienceContext | None = None,
    cancellation: CancellationToken | None = None,
    now: Callable[[], datetime] | None = None,
) -> DeploymentReport:
    """Diff the desired state against the platform and apply it family by family.

    Each family runs as one resilience stage in deployment order. A family
    whose batch fails is recorded in the report and later families still
    run. With ``dry_run`` nothing is applied.
    """

    sync_config = sync_config or SyncConfig()
    clock = now or (lambda: datetime.now(UTC))
    entity_types = _selected_types(state, include, exclude)
    if context is None:
        context = ResilienceContext.create(platform.resilience if platform else None)

    started_at = clock()
    log.info(
        "Starting deployment: families=%s, dry_run=%s, allow_deletes=%s",
        ", ".join(entity_types) or "none",
        dry_run,
        sync_config.allow_deletes,
    )

    async with _open_repositories(repositories, platform) as opened:
        services = _build_services(opened, entity_types, context, sync_config)
        current = await fetch_current_state(services, context, cancellation=cancellation)
        summary = DiffEngine().diff(state.collections(entity_types), current, entity_types)
        report = DeploymentReport(started_at=started_at, summary=summary, dry_run=dry_run)

        if dry_run:
            log.info("Dry run: %s changes computed, nothing applied", summary.total_changes)
        else:
            for entity_type in DEPLOYMENT_ORDER:
                if entity_type not in services:
                    continue
                results = summary.for_entity_type(entity_type)
                if not results:
                    log.debug("%s already in sync", entity_type.label)
                    continue
                report.stages.append(
                    await _deploy_stage(
                        services[entity_type],
                        results,
                        context,
                        cancellation=cancellation,
                    )
                )

    report.finished_at = clock()
    if report.has_failures:
        log.warning(
            "Deployment finished with failures in: %s",
            ", ".join(stage.name for stage in report.failed_stages),
        )
    else:
        log.info("Deployment finished: %s stages", len(report.stages))
    return report


async def _deploy_stage(
    service: ReconciliationService,
    results: Sequence[DiffResult],
    context: ResilienceContext,
    *,
    cancellation: CancellationToken | None,
) -> StageReport:
    entity_type = service.entity_type
    stage = StageReport(name=f"deploy {entity_type}", entity_type=entity_type)
    log.info("Deploying %s (%s changes)", entity_type.label, len(results))
    started = time.perf_counter()
    context.tracker.start_stage_context(stage.name)
    try:
        batch = await service.apply_diff(results, cancellation=cancellation, fail_on_partial=False)
        stage.record_batch(batch)
        if batch.has_failures:
            stage.error = str(batch.to_error())
    except OperationCancelledError:
        raise
    except StoreSyncError as exc:
        stage.error = str(exc)
        log.error("Stage %r failed: %s", stage.name, exc)  # noqa: TRY400
    finally:
        stage.metrics = context.tracker.end_stage_context()
        stage.duration_seconds = time.perf_counter() - started
    return stage


def diff_configuration(
    config_path: Path | str,
    *,
    include: Iterable[str] | None = None,
    exclude: Iterable[str] | None = None,
    repositories: Repositories | None = None,
    platform: PlatformConfig | None = None,
) -> DiffSummary:
    """Compare the desired-state file with the platform without changing anything."""

    state = load_desired_state(config_path)
    return asyncio.run(
        run_diff(
            state,
            include=include,
            exclude=exclude,
            repositories=repositories,
            platform=platform,
        )
    )


def deploy_configuration(
    config_path: Path | str,
    *,
    include: Iterable[str] | None = None,
    exclude: Iterable[str] | None = None,
    dry_run: bool = False,
    sync_config: SyncConfig | None = None,
    repositories: Repositories | None = None,
    platform: PlatformConfig | None = None,
    report_path: Path | str | None = None,
) -> DeploymentReport:
    state = load_desired_state(config_path)
    report = asyncio.run(
        run_deploy(
            state,
            include=include,
            exclude=exclude,
            dry_run=dry_run,
            sync_config=sync_config,
            repositories=repositories,
            platform=platform,
        )
    )
    if report_path is not None:
        report.write_json(Path(report_path))
        log.info("Deployment report written to %s", report_path)
    return report
