"""Reconciliation of desired entities against the platform."""

from __future__ import annotations

from .batch import BatchReport, ItemFailure, ItemSuccess, ReconcileAction
from .report import DeploymentReport, StageReport
from .service import ReconciliationService

__all__ = [
    "BatchReport",
    "DeploymentReport",
    "ItemFailure",
    "ItemSuccess",
    "ReconcileAction",
    "ReconciliationService",
    "StageReport",
]
