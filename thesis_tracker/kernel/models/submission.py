"""
Submission model - one row per uploaded file instance.

A logical unit is (research_id, unit_type, part_key); versions within a unit
are 1..n with no gaps or duplicates, enforced by a unique constraint.
Approved rows are immutable.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, JSON, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from thesis_tracker.kernel.models.base import Base, generate_uuid, utcnow

if TYPE_CHECKING:
    from thesis_tracker.kernel.models.research import ResearchProject


class UnitType(str, Enum):
    """Submittable unit kinds."""
    CHAPTER1 = "chapter1"
    CHAPTER2 = "chapter2"
    CHAPTER3 = "chapter3"
    COMPLIANCE_FORM = "compliance_form"

    @classmethod
    def _missing_(cls, value):
        # Accept the camelCase spelling used by the dashboard client
        if isinstance(value, str) and value.replace("_", "").lower() == "complianceform":
            return cls.COMPLIANCE_FORM
        return None


class SubmissionStatus(str, Enum):
    """Review status of a single submission version."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    REVISION = "revision"


class ComplianceFormType(str, Enum):
    """Compliance form categories."""
    ETHICS = "ethics"
    DECLARATION = "declaration"
    CONSENT = "consent"
    AUTHORIZATION = "authorization"
    OTHER = "other"


class Submission(Base):
    """An uploaded chapter draft or compliance form version."""

    __tablename__ = "submissions"

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
    unit_type: Mapped[UnitType] = mapped_column(
        String(50),
        nullable=False,
    )
    # Display name as entered (trimmed); None means the full unit
    part_name: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
    )
    # Normalized grouping key (see engines.submissions.resolver.normalize_part_name)
    part_key: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    title: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
    )
    form_type: Mapped[Optional[ComplianceFormType]] = mapped_column(
        String(50),
        nullable=True,
    )

    # File
    filename: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )
    content_type: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    file_size: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    storage_ref: Mapped[str] = mapped_column(
        String(1000),
        nullable=False,
    )
    uploaded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    uploaded_by: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        nullable=False,
    )

    # Review
    status: Mapped[SubmissionStatus] = mapped_column(
        String(50),
        default=SubmissionStatus.PENDING,
        nullable=False,
    )
    review_comment: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    reviewed_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        nullable=True,
    )
    reviewed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    # Storage refs of files attached by the reviewer (JSON array)
    review_attachments: Mapped[Optional[list]] = mapped_column(
        JSON,
        nullable=True,
    )

    research: Mapped["ResearchProject"] = relationship(
        "ResearchProject",
        back_populates="submissions",
    )

    __table_args__ = (
        UniqueConstraint(
            "research_id", "unit_type", "part_key", "version",
            name="uq_submissions_unit_version",
        ),
        Index("ix_submissions_research_unit", "research_id", "unit_type"),
        Index("ix_submissions_research_status", "research_id", "status"),
    )

    @property
    def is_approved(self) -> bool:
        return self.status == SubmissionStatus.APPROVED

    def __repr__(self) -> str:
        return f"<Submission {self.unit_type} {self.part_key} v{self.version} {self.status}>"
