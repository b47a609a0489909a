"""Deployment run report: one stage per entity family plus the diff summary."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING

from storesync.domain.diff import summary_to_dict

from .batch import ReconcileAction

if TYPE_CHECKING:
    from datetime import datetime
    from pathlib import Path

    from storesync.domain.diff import DiffSummary
    from storesync.domain.entities import EntityType
    from storesync.resilience import StageMetrics

    from .batch import BatchReport


@dataclass(slots=True, kw_only=True)
class StageReport:
    name: str
    entity_type: EntityType
    duration_seconds: float = 0.0
    created: int = 0
    updated: int = 0
    deleted: int = 0
    skipped_deletes: tuple[str, ...] = ()
    failures: tuple[tuple[str, str], ...] = ()
    error: str | None = None
    metrics: StageMetrics | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and not self.failures

    def record_batch(self, batch: BatchReport) -> None:
        self.created += batch.count(ReconcileAction.CREATED)
        self.updated += batch.count(ReconcileAction.UPDATED)
        self.deleted += batch.count(ReconcileAction.DELETED)
        self.skipped_deletes += tuple(batch.skipped)
        self.failures += tuple((failure.key, failure.message) for failure in batch.failures)

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "entityType": str(self.entity_type),
            "durationSeconds": round(self.duration_seconds, 3),
            "created": self.created,
            "updated": self.updated,
            "deleted": self.deleted,
            "skippedDeletes": list(self.skipped_deletes),
            "failures": [{"key": key, "error": message} for key, message in self.failures],
            "error": self.error,
            "metrics": asdict(self.metrics) if self.metrics is not None else None,
        }


@dataclass(slots=True, kw_only=True)
class DeploymentReport:
    started_at: datetime
    summary: DiffSummary
    dry_run: bool = False
    stages: list[StageReport] = field(default_factory=list)
    finished_at: datetime | None = None

    @property
    def has_failures(self) -> bool:
        return any(not stage.succeeded for stage in self.stages)

    @property
    def failed_stages(self) -> list[StageReport]:
        return [stage for stage in self.stages if not stage.succeeded]

    def to_dict(self) -> dict[str, object]:
        return {
            "startedAt": self.started_at.isoformat(),
            "finishedAt": self.finished_at.isoformat() if self.finished_at else None,
            "dryRun": self.dry_run,
            "hasFailures": self.has_failures,
            "summary": summary_to_dict(self.summary),
            "stages": [stage.to_dict() for stage in self.stages],
        }

    def write_json(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.to_dict(), indent=2, default=str) + "\n", encoding="utf-8")
