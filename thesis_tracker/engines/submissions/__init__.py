"""
Submissions Engine

Append-only versioned submissions and the pure history resolver.
"""

from thesis_tracker.engines.submissions.resolver import (
    FULL_UNIT,
    UnitHistory,
    clean_part_name,
    current_submissions,
    normalize_part_name,
    resolve_history,
)
from thesis_tracker.engines.submissions.store import (
    SubmissionFilters,
    SubmissionMetadata,
    SubmissionQuery,
    SubmissionStore,
    UnitKey,
    UploadedFile,
    coerce_unit_type,
)

__all__ = [
    "FULL_UNIT",
    "UnitHistory",
    "clean_part_name",
    "current_submissions",
    "normalize_part_name",
    "resolve_history",
    "SubmissionFilters",
    "SubmissionMetadata",
    "SubmissionQuery",
    "SubmissionStore",
    "UnitKey",
    "UploadedFile",
    "coerce_unit_type",
]
