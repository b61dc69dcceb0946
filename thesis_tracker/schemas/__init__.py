"""
Pydantic schemas for API request/response validation.
"""

from thesis_tracker.schemas.bulk import BulkRequest
from thesis_tracker.schemas.common import ErrorResponse, HealthResponse
from thesis_tracker.schemas.milestone import MilestoneResponse, MilestoneUpdate
from thesis_tracker.schemas.submission import (
    PartHistoryResponse,
    SubmissionHistoryResponse,
    SubmissionResponse,
    UnitHistoryResponse,
)

__all__ = [
    "BulkRequest",
    "ErrorResponse",
    "HealthResponse",
    "MilestoneResponse",
    "MilestoneUpdate",
    "PartHistoryResponse",
    "SubmissionHistoryResponse",
    "SubmissionResponse",
    "UnitHistoryResponse",
]
