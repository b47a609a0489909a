"""Plain-text and JSON renderings of a diff summary."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from storesync.domain.entities import DEPLOYMENT_ORDER

from .types import DiffOperation, statistics

if TYPE_CHECKING:
    from .types import DiffResult, DiffSummary

_MARKERS = {
    DiffOperation.CREATE: "+",
    DiffOperation.UPDATE: "~",
    DiffOperation.DELETE: "-",
}


def format_summary(summary: DiffSummary) -> str:
    if not summary.has_changes:
        return "No differences found; configuration is in sync."

    lines = [f"Found {summary.total_changes} differences"]
    for label, count in (
        ("to create", summary.creates),
        ("to update", summary.updates),
        ("to delete", summary.deletes),
    ):
        if count:
            lines.append(f"  {count} {label}")

    stats = statistics(summary)
    lines.append("")
    lines.append("By entity type:")
    for entity_type in DEPLOYMENT_ORDER:
        count = stats.by_entity_type.get(entity_type)
        if count:
            lines.append(f"  {entity_type.label}: {count}")
    return "\n".join(lines)


def format_detailed(summary: DiffSummary) -> str:
    if not summary.has_changes:
        return format_summary(summary)

    lines: list[str] = []
    for entity_type in DEPLOYMENT_ORDER:
        results = summary.for_entity_type(entity_type)
        if not results:
            continue
        lines.append(f"{entity_type.label}:")
        for result in results:
            lines.append(f"  {_MARKERS[result.operation]} {result.operation} {result.entity_name}")
            lines.extend(f"      {change.description}" for change in result.changes)
        lines.append("")
    lines.append(format_summary(summary))
    return "\n".join(lines)


def summary_to_dict(summary: DiffSummary) -> dict[str, object]:
    return {
        "totalChanges": summary.total_changes,
        "creates": summary.creates,
        "updates": summary.updates,
        "deletes": summary.deletes,
        "results": [_result_to_dict(result) for result in summary.results],
    }


def format_json(summary: DiffSummary, *, indent: int | None = 2) -> str:
    return json.dumps(summary_to_dict(summary), indent=indent, default=str)


def _result_to_dict(result: DiffResult) -> dict[str, object]:
    payload: dict[str, object] = {
        "operation": str(result.operation),
        "entityType": str(result.entity_type),
        "entityName": result.entity_name,
    }
    if result.current is not None:
        payload["current"] = dict(result.current)
    if result.desired is not None:
        payload["desired"] = dict(result.desired)
    if result.changes:
        payload["changes"] = [
            {
                "field": change.field,
                "currentValue": change.current_value,
                "desiredValue": change.desired_value,
                "description": change.description,
            }
            for change in result.changes
        ]
    return payload
