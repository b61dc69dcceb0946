"""Unit tests for the version resolver (pure, no database)."""

import random
import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from thesis_tracker.engines.submissions.resolver import (
    FULL_UNIT,
    current_submissions,
    normalize_part_name,
    resolve_history,
)
from thesis_tracker.kernel.models.submission import SubmissionStatus, UnitType

BASE_TIME = datetime(2026, 10, 1, 9, 0, tzinfo=timezone.utc)


def row(unit_type="chapter1", part_name=None, version=1, minutes=0, status="pending"):
    return SimpleNamespace(
        id=uuid.uuid4(),
        unit_type=unit_type,
        part_name=part_name,
        version=version,
        uploaded_at=BASE_TIME + timedelta(minutes=minutes),
        status=status,
    )


class TestNormalizePartName:
    """Part names collapse to a case-insensitive grouping key."""

    def test_blank_names_mean_full_unit(self):
        assert normalize_part_name(None) == FULL_UNIT
        assert normalize_part_name("") == FULL_UNIT
        assert normalize_part_name("   \t") == FULL_UNIT

    def test_trimmed_and_casefolded(self):
        assert normalize_part_name("  Objectives ") == "objectives"
        assert normalize_part_name("OBJECTIVES") == normalize_part_name("objectives")


class TestResolveHistory:
    """Grouping, ordering and current-version selection."""

    def test_every_unit_type_present(self):
        resolved = resolve_history([])
        assert set(resolved) == set(UnitType)
        for history in resolved.values():
            assert history.submissions == []
            assert history.current == {}
            assert not history.has_submissions

    def test_highest_version_is_current(self):
        v1 = row(unit_type="chapter2", version=1, minutes=0)
        v2 = row(unit_type="chapter2", version=2, minutes=5)
        resolved = resolve_history([v1, v2])
        history = resolved[UnitType.CHAPTER2]
        assert history.current_for(None) is v2
        assert history.submissions == [v2, v1]

    def test_version_beats_upload_time(self):
        """A higher version wins even if its clock reading is earlier."""
        v1 = row(version=1, minutes=30)
        v2 = row(version=2, minutes=10)
        assert resolve_history([v1, v2])[UnitType.CHAPTER1].current_for() is v2

    def test_parts_grouped_separately(self):
        full = row(version=1)
        part_a = row(part_name="Objectives", version=1, minutes=1)
        part_b = row(part_name=" objectives ", version=2, minutes=2)
        scope = row(part_name="Scope", version=1, minutes=3)
        history = resolve_history([full, part_a, part_b, scope])[UnitType.CHAPTER1]

        assert set(history.current) == {FULL_UNIT, "objectives", "scope"}
        assert history.current[FULL_UNIT] is full
        assert history.current["objectives"] is part_b
        assert history.parts["objectives"] == [part_b, part_a]
        assert len(history.submissions) == 4

    def test_unit_filter_limits_result(self):
        resolved = resolve_history([row(), row(unit_type="chapter3")], unit_types=[UnitType.CHAPTER3])
        assert list(resolved) == [UnitType.CHAPTER3]
        assert resolved[UnitType.CHAPTER3].has_submissions

    def test_approved_parts(self):
        approved = row(part_name="Objectives", status=SubmissionStatus.APPROVED.value)
        pending = row(version=1)
        history = resolve_history([approved, pending])[UnitType.CHAPTER1]
        assert history.approved_parts == ["objectives"]

    def test_idempotent_regardless_of_input_order(self):
        rows = [
            row(unit_type=unit, part_name=part, version=version, minutes=version * 7 + i)
            for i, (unit, part) in enumerate([
                ("chapter1", None), ("chapter1", "Objectives"), ("chapter2", None),
                ("compliance_form", "ethics"),
            ])
            for version in (1, 2, 3)
        ]
        expected = {s.id for s in current_submissions(rows)}
        shuffler = random.Random(42)
        for _ in range(10):
            shuffled = rows[:]
            shuffler.shuffle(shuffled)
            assert {s.id for s in current_submissions(shuffled)} == expected
        assert all(s.version == 3 for s in current_submissions(rows))

    def test_input_not_mutated(self):
        rows = [row(version=2), row(version=1)]
        snapshot = [(s.id, s.version, s.status) for s in rows]
        resolve_history(rows)
        assert [(s.id, s.version, s.status) for s in rows] == snapshot

    def test_naive_timestamps_treated_as_utc(self):
        aware = row(version=1)
        naive = row(part_name="Scope", version=1)
        naive.uploaded_at = naive.uploaded_at.replace(tzinfo=None)
        history = resolve_history([aware, naive])[UnitType.CHAPTER1]
        assert len(history.current) == 2
