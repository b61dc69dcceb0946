"""
Kernel Data Models

Core SQLAlchemy models: research projects, versioned submissions,
milestones, shared documents and the audit log.
"""

from thesis_tracker.kernel.models.base import Base, TimestampMixin, generate_uuid, utcnow, ensure_aware
from thesis_tracker.kernel.models.research import ResearchProject, ResearchStatus, ResearchStage
from thesis_tracker.kernel.models.submission import (
    Submission,
    SubmissionStatus,
    UnitType,
    ComplianceFormType,
)
from thesis_tracker.kernel.models.milestone import Milestone, MilestoneStatus
from thesis_tracker.kernel.models.document import Document, DocumentCategory
from thesis_tracker.kernel.models.event_log import EventLog, EventType

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "generate_uuid",
    "utcnow",
    "ensure_aware",
    # Research
    "ResearchProject",
    "ResearchStatus",
    "ResearchStage",
    # Submissions
    "Submission",
    "SubmissionStatus",
    "UnitType",
    "ComplianceFormType",
    # Milestones
    "Milestone",
    "MilestoneStatus",
    # Documents
    "Document",
    "DocumentCategory",
    # Event Log
    "EventLog",
    "EventType",
]
