"""
Progress Engine - milestone completion, percentage and deadline notifications.
"""

from thesis_tracker.engines.progress.aggregator import (
    DEFAULT_STAGES,
    STAGE_TITLES,
    DeadlineEntry,
    MilestoneView,
    Notification,
    NotificationSeverity,
    ProgressAggregator,
    ProgressSnapshot,
    compute_snapshot,
    days_until,
    derive_milestone_status,
    stage_unit,
)

__all__ = [
    "DEFAULT_STAGES",
    "STAGE_TITLES",
    "DeadlineEntry",
    "MilestoneView",
    "Notification",
    "NotificationSeverity",
    "ProgressAggregator",
    "ProgressSnapshot",
    "compute_snapshot",
    "days_until",
    "derive_milestone_status",
    "stage_unit",
]
