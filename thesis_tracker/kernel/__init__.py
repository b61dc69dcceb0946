"""
Kernel Layer

Foundational components shared by the engines:
- Data models (research projects, versioned submissions, milestones, documents)
- Immutable event log
- Caller identity context
- Storage collaborator interface
- Domain error taxonomy
"""

from thesis_tracker.kernel.errors import (
    ThesisTrackerError,
    ValidationError,
    NotFoundError,
    InvalidStateError,
    ConflictError,
    PermissionDeniedError,
)

__all__ = [
    "ThesisTrackerError",
    "ValidationError",
    "NotFoundError",
    "InvalidStateError",
    "ConflictError",
    "PermissionDeniedError",
]
