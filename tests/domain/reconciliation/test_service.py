from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import httpx
import pytest

from storesync.config.sync import SyncConfig
from storesync.domain.diff import DiffEngine
from storesync.domain.entities import EntityType, family_for
from storesync.domain.reconciliation import ReconcileAction, ReconciliationService
from storesync.errors import (
    BatchOperationError,
    EntityValidationError,
    GraphQLApplicationError,
    GraphQLErrorDetail,
    OperationCancelledError,
)
from storesync.resilience import CancellationToken
from tests.support.fakes import FakeRepository

if TYPE_CHECKING:
    from storesync.resilience import ResilienceContext
    from tests.support.fakes import SleepRecorder

CATEGORIES = family_for(EntityType.CATEGORIES)


def _category(slug: str, **fields: object) -> dict[str, object]:
    return {"slug": slug, "name": slug.title(), **fields}


def _slug_taken() -> GraphQLApplicationError:
    return GraphQLApplicationError(
        "Failed to create category",
        errors=[GraphQLErrorDetail(message="Slug already taken", code="UNIQUE", path=("slug",))],
    )


def _service(
    repository: FakeRepository,
    context: ResilienceContext,
    sync_config: SyncConfig | None = None,
) -> ReconciliationService:
    return ReconciliationService(CATEGORIES, repository, context, sync_config)


def test_bootstrap_creates_missing_and_updates_existing(context: ResilienceContext) -> None:
    repository = FakeRepository(CATEGORIES, [{**_category("shoes"), "id": "c-1"}])
    service = _service(repository, context)

    report = asyncio.run(
        service.bootstrap([_category("shoes", description="All shoes"), _category("hats")])
    )

    assert report.count(ReconcileAction.UPDATED) == 1
    assert report.count(ReconcileAction.CREATED) == 1
    assert not report.has_failures
    assert repository.operations("update") == ["shoes"]
    assert repository.operations("create") == ["hats"]
    assert repository.entities["shoes"]["description"] == "All shoes"
    assert repository.entities["shoes"]["id"] == "c-1"


def test_duplicate_keys_fail_before_any_call(context: ResilienceContext) -> None:
    repository = FakeRepository(CATEGORIES)
    service = _service(repository, context)

    with pytest.raises(EntityValidationError, match="Duplicate entity identifiers"):
        asyncio.run(service.bootstrap([_category("shoes"), _category("shoes")]))

    assert repository.calls == []


def test_invalid_entity_fails_before_any_call(context: ResilienceContext) -> None:
    repository = FakeRepository(CATEGORIES)
    service = _service(repository, context)

    with pytest.raises(EntityValidationError) as excinfo:
        asyncio.run(service.bootstrap([_category("shoes"), {"slug": "hats"}]))

    assert excinfo.value.field == "name"
    assert repository.calls == []


def test_item_failures_are_collected_into_one_error(context: ResilienceContext) -> None:
    repository = FakeRepository(CATEGORIES, fail_on={("create", "hats"): [_slug_taken()]})
    service = _service(repository, context)

    with pytest.raises(BatchOperationError) as excinfo:
        asyncio.run(service.bootstrap([_category("shoes"), _category("hats"), _category("bags")]))

    error = excinfo.value
    assert error.failed_keys == ("hats",)
    assert error.total == 3
    assert "[slug] Slug already taken" in str(error)
    # siblings of the failed item still ran
    assert sorted(repository.operations("create")) == ["bags", "hats", "shoes"]
    assert set(repository.entities) == {"shoes", "bags"}


def test_partial_failures_can_be_returned_instead(context: ResilienceContext) -> None:
    repository = FakeRepository(CATEGORIES, fail_on={("create", "hats"): [_slug_taken()]})
    service = _service(repository, context)

    report = asyncio.run(
        service.bootstrap([_category("shoes"), _category("hats")], fail_on_partial=False)
    )

    assert report.failed_keys == ("hats",)
    assert report.count(ReconcileAction.CREATED) == 1
    assert report.failures[0].message.startswith("Failed to create category")


def test_transient_errors_are_retried(
    context: ResilienceContext, sleeper: SleepRecorder
) -> None:
    repository = FakeRepository(
        CATEGORIES, fail_on={("find", "shoes"): [httpx.ConnectError("connection reset")]}
    )
    service = _service(repository, context)

    report = asyncio.run(service.bootstrap([_category("shoes")]))

    assert report.count(ReconcileAction.CREATED) == 1
    assert repository.operations("find") == ["shoes", "shoes"]
    assert sleeper.calls == [1.0]


def test_large_batches_run_in_chunks_with_per_item_failures(
    context: ResilienceContext, sleeper: SleepRecorder
) -> None:
    repository = FakeRepository(CATEGORIES, fail_on={("create", "c3"): [_slug_taken()]})
    sync_config = SyncConfig(chunk_size=2, chunk_delay_seconds=0.5, bulk_threshold=2)
    service = _service(repository, context, sync_config)

    report = asyncio.run(
        service.bootstrap(
            [_category(f"c{index}") for index in range(1, 6)],
            fail_on_partial=False,
        )
    )

    assert report.failed_keys == ("c3",)
    assert [success.key for success in report.successes] == ["c1", "c2", "c4", "c5"]
    assert set(repository.entities) == {"c1", "c2", "c4", "c5"}
    assert sleeper.calls == [0.5, 0.5]


def test_chunk_waits_for_every_item_before_the_next_chunk(context: ResilienceContext) -> None:
    repository = FakeRepository(
        CATEGORIES,
        fail_on={("create", "c1"): [_slug_taken()]},
        delays={("create", "c2"): 0.01},
    )
    sync_config = SyncConfig(chunk_size=2, chunk_delay_seconds=0.5, bulk_threshold=2)
    service = _service(repository, context, sync_config)

    report = asyncio.run(
        service.bootstrap(
            [_category(f"c{index}") for index in range(1, 4)],
            fail_on_partial=False,
        )
    )

    assert repository.calls.index(("done create", "c2")) < repository.calls.index(("find", "c3"))
    assert report.failed_keys == ("c1",)
    assert [success.key for success in report.successes] == ["c2", "c3"]
    assert "c2" in repository.entities


def test_apply_diff_skips_deletes_unless_allowed(context: ResilienceContext) -> None:
    current = [{**_category("shoes"), "id": "c-1"}, {**_category("bags"), "id": "c-2"}]
    repository = FakeRepository(CATEGORIES, current)
    service = _service(repository, context)
    summary = DiffEngine().diff_collection(
        EntityType.CATEGORIES, [_category("shoes"), _category("hats")], current
    )

    report = asyncio.run(service.apply_diff(summary.results))

    assert report.skipped == ["bags"]
    assert repository.operations("create") == ["hats"]
    assert repository.operations("delete") == []
    assert "bags" in repository.entities


def test_apply_diff_updates_by_known_id_without_lookup(context: ResilienceContext) -> None:
    current = [{**_category("shoes"), "id": "c-1"}]
    repository = FakeRepository(CATEGORIES, current)
    service = _service(repository, context)
    summary = DiffEngine().diff_collection(
        EntityType.CATEGORIES,
        [_category("shoes", description="All shoes"), _category("hats")],
        current,
    )

    report = asyncio.run(service.apply_diff(summary.results))

    assert report.count(ReconcileAction.UPDATED) == 1
    assert repository.operations("update") == ["shoes"]
    assert repository.operations("find") == ["hats"]
    assert repository.entities["shoes"]["description"] == "All shoes"


def test_apply_diff_deletes_when_allowed(context: ResilienceContext) -> None:
    current = [{**_category("bags"), "id": "c-2"}]
    repository = FakeRepository(CATEGORIES, current)
    service = _service(repository, context)
    summary = DiffEngine().diff_collection(EntityType.CATEGORIES, [], current)

    report = asyncio.run(service.apply_diff(summary.results, allow_deletes=True))

    assert report.count(ReconcileAction.DELETED) == 1
    assert repository.entities == {}


def test_apply_diff_rejects_other_entity_types(context: ResilienceContext) -> None:
    service = _service(FakeRepository(CATEGORIES), context)
    summary = DiffEngine().diff_collection(
        EntityType.PRODUCT_TYPES, [{"name": "Shirt"}], []
    )

    with pytest.raises(ValueError, match="cannot apply diff results for productTypes"):
        asyncio.run(service.apply_diff(summary.results))


def test_cancellation_propagates(context: ResilienceContext) -> None:
    repository = FakeRepository(CATEGORIES)
    service = _service(repository, context)
    token = CancellationToken()
    token.cancel("interrupted")

    with pytest.raises(OperationCancelledError, match="interrupted"):
        asyncio.run(service.bootstrap([_category("shoes")], cancellation=token))

    assert repository.calls == []


def test_fetch_existing_lists_through_the_repository(context: ResilienceContext) -> None:
    repository = FakeRepository(CATEGORIES, [_category("shoes"), _category("bags")])
    service = _service(repository, context)

    existing = asyncio.run(service.fetch_existing())

    assert [entity["slug"] for entity in existing] == ["shoes", "bags"]
    assert repository.calls == [("list", "*")]
