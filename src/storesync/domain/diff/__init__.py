"""Desired-versus-current comparison of entity collections."""

from __future__ import annotations

from .comparators import EntityComparator, describe_change
from .engine import DiffEngine
from .formatting import format_detailed, format_json, format_summary, summary_to_dict
from .types import (
    DiffChange,
    DiffOperation,
    DiffResult,
    DiffStatistics,
    DiffSummary,
    statistics,
    summarize,
)

__all__ = [
    "DiffChange",
    "DiffEngine",
    "DiffOperation",
    "DiffResult",
    "DiffStatistics",
    "DiffSummary",
    "EntityComparator",
    "describe_change",
    "format_detailed",
    "format_json",
    "format_summary",
    "statistics",
    "summarize",
    "summary_to_dict",
]
