"""
Milestone model - a named stage of a research project with a due date.

Status is refreshed from submission approval state and from externally
supplied stage events (e.g. defense completed).
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from thesis_tracker.kernel.models.base import Base, TimestampMixin, generate_uuid

if TYPE_CHECKING:
    from thesis_tracker.kernel.models.research import ResearchProject


class MilestoneStatus(str, Enum):
    """Milestone completion status."""
    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"


class Milestone(Base, TimestampMixin):
    """A stage in the research lifecycle."""

    __tablename__ = "milestones"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    research_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("research_projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # e.g. "chapter1", "compliance_form", "proposal", "defense"
    stage_key: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    title: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )
    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    due_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    status: Mapped[MilestoneStatus] = mapped_column(
        String(50),
        default=MilestoneStatus.NOT_STARTED,
        nullable=False,
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    # Opaque UI reference
    submission_link: Mapped[Optional[str]] = mapped_column(
        String(1000),
        nullable=True,
    )
    sort_order: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )

    research: Mapped["ResearchProject"] = relationship(
        "ResearchProject",
        back_populates="milestones",
    )

    __table_args__ = (
        UniqueConstraint("research_id", "stage_key", name="uq_milestones_research_stage"),
    )

    def __repr__(self) -> str:
        return f"<Milestone {self.stage_key} {self.status}>"
