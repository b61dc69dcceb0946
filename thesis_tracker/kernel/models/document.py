"""
Shared document model (forms, templates, guidelines published to users).
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Boolean, DateTime, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from thesis_tracker.kernel.models.base import Base, TimestampMixin, generate_uuid


class DocumentCategory(str, Enum):
    """Document categories."""
    FORM = "form"
    TEMPLATE = "template"
    GUIDELINE = "guideline"
    POLICY = "policy"
    OTHER = "other"


class Document(Base, TimestampMixin):
    """A published document. Archived documents have is_active=False."""

    __tablename__ = "documents"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )
    title: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )
    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    category: Mapped[DocumentCategory] = mapped_column(
        String(50),
        default=DocumentCategory.OTHER,
        nullable=False,
    )
    filename: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
    )
    storage_ref: Mapped[Optional[str]] = mapped_column(
        String(1000),
        nullable=True,
    )
    uploaded_by: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )
    archived_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Document {self.title[:50]} active={self.is_active}>"
