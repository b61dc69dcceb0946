"""
Version Resolver - groups flat submission lists into per-unit history.

Partitions submissions by (unit_type, normalized part name); within each
partition the highest version wins, ties broken by the most recent upload.
Pure functions only: no I/O, no mutation of the input rows.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

from thesis_tracker.kernel.models.base import ensure_aware
from thesis_tracker.kernel.models.submission import SubmissionStatus, UnitType

# Grouping key for uploads that cover the whole unit rather than one part
FULL_UNIT = "__full_unit__"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def normalize_part_name(part_name: Optional[str]) -> str:
    """
    Collapse a part name to its grouping key.

    None, empty and whitespace-only names mean "full unit". Part names are
    compared case-insensitively, so "Objectives " and "objectives" share a key.
    """
    if part_name is None:
        return FULL_UNIT
    stripped = part_name.strip()
    if not stripped:
        return FULL_UNIT
    return stripped.casefold()


def clean_part_name(part_name: Optional[str]) -> Optional[str]:
    """Display form of a part name: trimmed, or None for the full unit."""
    if part_name is None:
        return None
    stripped = part_name.strip()
    return stripped or None


def _recency_key(submission: Any) -> tuple:
    uploaded_at = ensure_aware(submission.uploaded_at) or _EPOCH
    # id keeps the order total so repeated runs agree on the same input set
    return (submission.version, uploaded_at, str(submission.id))


def _history_key(submission: Any) -> tuple:
    version, uploaded_at, submission_id = _recency_key(submission)
    return (version, uploaded_at, normalize_part_name(submission.part_name), submission_id)


@dataclass
class UnitHistory:
    """Resolved history for one unit type."""

    unit_type: UnitType
    # All submissions of the unit, highest version first
    submissions: List[Any] = field(default_factory=list)
    # part key -> submissions of that part, current first
    parts: Dict[str, List[Any]] = field(default_factory=dict)
    # part key -> current submission
    current: Dict[str, Any] = field(default_factory=dict)

    @property
    def has_submissions(self) -> bool:
        return bool(self.submissions)

    @property
    def approved_parts(self) -> List[str]:
        return [
            key for key, sub in self.current.items()
            if sub.status == SubmissionStatus.APPROVED
        ]

    def current_for(self, part_name: Optional[str] = None) -> Optional[Any]:
        return self.current.get(normalize_part_name(part_name))


def resolve_history(
    submissions: Iterable[Any],
    unit_types: Sequence[UnitType] = tuple(UnitType),
) -> Dict[UnitType, UnitHistory]:
    """
    Group submissions into per-unit history and current-version maps.

    Every requested unit type appears in the result; a unit with no
    submissions has empty history and no current entry.
    """
    histories = {UnitType(u): UnitHistory(unit_type=UnitType(u)) for u in unit_types}

    for submission in submissions:
        unit_type = UnitType(submission.unit_type)
        history = histories.get(unit_type)
        if history is None:
            continue
        part_key = normalize_part_name(submission.part_name)
        history.parts.setdefault(part_key, []).append(submission)
        history.submissions.append(submission)

    for history in histories.values():
        for part_key, rows in history.parts.items():
            rows.sort(key=_recency_key, reverse=True)
            history.current[part_key] = rows[0]
        history.submissions.sort(key=_history_key, reverse=True)

    return histories


def current_submissions(submissions: Iterable[Any]) -> List[Any]:
    """Flatten the current submission of every (unit, part) partition."""
    resolved = resolve_history(submissions)
    return [
        sub
        for history in resolved.values()
        for sub in history.current.values()
    ]
