"""Submission and review schemas."""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from thesis_tracker.kernel.models.submission import ComplianceFormType, SubmissionStatus, UnitType


class SubmissionResponse(BaseModel):
    """One submission version."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    research_id: uuid.UUID
    unit_type: UnitType
    part_name: Optional[str] = None
    version: int
    title: Optional[str] = None
    form_type: Optional[ComplianceFormType] = None
    filename: str
    content_type: str
    file_size: int
    uploaded_at: datetime
    uploaded_by: uuid.UUID
    status: SubmissionStatus
    review_comment: Optional[str] = None
    reviewed_by: Optional[uuid.UUID] = None
    reviewed_at: Optional[datetime] = None
    review_attachments: Optional[List[str]] = None


class PartHistoryResponse(BaseModel):
    """Versions of one part of a unit, current first."""

    part_key: str
    part_name: Optional[str] = None
    current: SubmissionResponse
    history: List[SubmissionResponse]


class UnitHistoryResponse(BaseModel):
    """
    Resolved history of one unit type.

    ``current`` is the current full-unit version; per-part currents are in
    ``parts``. ``history`` lists every version of the unit, highest first.
    """

    unit_type: UnitType
    current: Optional[SubmissionResponse] = None
    history: List[SubmissionResponse] = []
    parts: List[PartHistoryResponse] = []


class SubmissionHistoryResponse(BaseModel):
    """listHistory response."""

    research_id: uuid.UUID
    units: List[UnitHistoryResponse]
