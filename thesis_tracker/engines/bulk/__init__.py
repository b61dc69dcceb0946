"""Bulk Engine - administrative actions applied to many records at once."""

from thesis_tracker.engines.bulk.orchestrator import (
    BulkAction,
    BulkContext,
    BulkEntityType,
    BulkFailure,
    BulkOperationOrchestrator,
    BulkResult,
    dedupe_ids,
)

__all__ = [
    "BulkAction",
    "BulkContext",
    "BulkEntityType",
    "BulkFailure",
    "BulkOperationOrchestrator",
    "BulkResult",
    "dedupe_ids",
]
