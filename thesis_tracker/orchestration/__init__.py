"""Orchestration layer - submission review state machine."""

from thesis_tracker.orchestration.state_machine import (
    ReviewDecision,
    ReviewStateMachine,
    can_review,
    coerce_decision,
    target_status,
)

__all__ = [
    "ReviewDecision",
    "ReviewStateMachine",
    "can_review",
    "coerce_decision",
    "target_status",
]
