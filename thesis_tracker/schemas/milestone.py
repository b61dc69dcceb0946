"""Milestone management schemas."""

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from thesis_tracker.kernel.models.milestone import MilestoneStatus


class MilestoneUpdate(BaseModel):
    """
    Update a milestone. Omitted fields are left alone.

    ``status`` records an externally driven stage transition; ``occurred_at``
    dates it (defaults to now).
    """

    due_date: Optional[datetime | date] = None
    clear_due_date: bool = False
    status: Optional[MilestoneStatus] = None
    occurred_at: Optional[datetime] = None


class MilestoneResponse(BaseModel):
    """Stored milestone."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    research_id: uuid.UUID
    stage_key: str
    title: str
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    status: MilestoneStatus
    completed_at: Optional[datetime] = None
    sort_order: int
