"""
Research project model.

One research project is the ownership root for submissions and milestones.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Boolean, DateTime, String, JSON, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from thesis_tracker.kernel.models.base import Base, TimestampMixin, generate_uuid

if TYPE_CHECKING:
    from thesis_tracker.kernel.models.submission import Submission
    from thesis_tracker.kernel.models.milestone import Milestone


class ResearchStatus(str, Enum):
    """Research lifecycle status."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    IN_PROGRESS = "in-progress"
    FOR_REVISION = "for-revision"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class ResearchStage(str, Enum):
    """Where the research currently sits in the thesis pipeline."""
    PROPOSAL = "proposal"
    CHAPTER1 = "chapter1"
    CHAPTER2 = "chapter2"
    CHAPTER3 = "chapter3"
    DEFENSE = "defense"
    FINAL = "final"


class ResearchProject(Base, TimestampMixin):
    """Top-level research project container."""

    __tablename__ = "research_projects"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    title: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )
    adviser_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        nullable=True,
        index=True,
    )
    # Student user IDs (JSON array of strings)
    student_ids: Mapped[Optional[list]] = mapped_column(
        JSON,
        nullable=True,
    )
    status: Mapped[ResearchStatus] = mapped_column(
        String(50),
        default=ResearchStatus.PENDING,
        nullable=False,
    )
    stage: Mapped[ResearchStage] = mapped_column(
        String(50),
        default=ResearchStage.PROPOSAL,
        nullable=False,
    )
    # IANA timezone used for calendar-day deadline math
    timezone: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
    )

    # Archival
    status_before_archive: Mapped[Optional[str]] = mapped_column(
        String(50),
        nullable=True,
    )
    archived_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    archived_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        nullable=True,
    )

    # Sharing with the dean
    shared_with_dean: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    shared_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    shared_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        nullable=True,
    )

    approved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        nullable=True,
    )

    # Relationships
    submissions: Mapped[List["Submission"]] = relationship(
        "Submission",
        back_populates="research",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    milestones: Mapped[List["Milestone"]] = relationship(
        "Milestone",
        back_populates="research",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<ResearchProject {self.title[:50]}>"
