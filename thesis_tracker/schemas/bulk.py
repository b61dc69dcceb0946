"""Bulk action schemas."""

from typing import List, Optional

from pydantic import BaseModel, Field


class BulkRequest(BaseModel):
    """Apply one action to many ids of the same entity type."""

    action: str
    ids: List[str] = Field(..., min_length=1, max_length=500)
    comment: Optional[str] = Field(None, max_length=5000)
