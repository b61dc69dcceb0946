"""
Domain exceptions for the submission and review core.

Every error carries a stable ``reason`` code so callers can translate it
without matching on message text.

Usage:
    from thesis_tracker.kernel.errors import NotFoundError

    if submission is None:
        raise NotFoundError("submission", submission_id)
"""

from typing import Any, Dict, Optional


class ThesisTrackerError(Exception):
    """Base exception for all domain errors."""

    default_reason = "error"

    def __init__(
        self,
        message: str,
        reason: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.reason = reason or self.default_reason
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(ThesisTrackerError):
    """Malformed input: unknown unit type, missing file metadata, blank comment."""

    default_reason = "validation-error"


class NotFoundError(ThesisTrackerError):
    """Unknown id."""

    default_reason = "not-found"

    def __init__(self, resource_type: str, resource_id: Any):
        super().__init__(
            f"{resource_type.capitalize()} '{resource_id}' not found",
            details={"resource_type": resource_type, "resource_id": str(resource_id)},
        )


class InvalidStateError(ThesisTrackerError):
    """Operation not legal for the entity's current state."""

    default_reason = "invalid-state"


class ConflictError(ThesisTrackerError):
    """Operation would violate an invariant (e.g. deleting an approved submission)."""

    default_reason = "conflict"


class PermissionDeniedError(ThesisTrackerError):
    """Caller's role or ownership does not allow the operation."""

    default_reason = "forbidden"
