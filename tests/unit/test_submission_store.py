"""Tests for SubmissionStore: versioning, validation, listing, deletion."""

import asyncio
import uuid
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy import func, select

from thesis_tracker.config import get_settings
from thesis_tracker.engines.submissions.store import (
    SubmissionFilters,
    SubmissionMetadata,
    SubmissionStore,
    UnitKey,
)
from thesis_tracker.kernel.errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from thesis_tracker.kernel.identity.context import RequestContext, UserRole
from thesis_tracker.kernel.models import EventLog, EventType, Submission, SubmissionStatus, UnitType
from thesis_tracker.kernel.storage import commit_and_purge, discard_blob_deletes, pending_blob_refs
from tests.factories import make_file, submit


class TestVersionAssignment:
    """Versions per logical unit are 1..n without gaps or duplicates."""

    async def test_versions_increase_per_unit(self, store, research, student):
        versions = [(await submit(store, research.id, student)).version for _ in range(3)]
        assert versions == [1, 2, 3]

    async def test_parts_and_units_are_independent(self, store, research, student):
        full = await submit(store, research.id, student, "chapter1")
        part = await submit(store, research.id, student, "chapter1", part_name="Objectives")
        other = await submit(store, research.id, student, "chapter2")
        assert (full.version, part.version, other.version) == (1, 1, 1)

    async def test_part_names_compare_case_insensitively(self, store, research, student):
        first = await submit(store, research.id, student, part_name="Objectives")
        second = await submit(store, research.id, student, part_name="  objectives ")
        assert second.version == 2
        assert first.part_key == second.part_key
        assert second.part_name == "objectives"

    async def test_new_submissions_are_pending(self, store, research, student, storage):
        submission = await submit(store, research.id, student)
        assert submission.status == SubmissionStatus.PENDING
        assert submission.uploaded_by == student.user_id
        assert storage.blobs[submission.storage_ref] == b"%PDF-1.4 draft"

    async def test_collision_is_retried(self, store, research, student, monkeypatch):
        """A concurrent writer taking our version number forces a recompute."""
        await submit(store, research.id, student)
        real_next_version = store._next_version
        calls = []

        async def stale_next_version(*args):
            calls.append(args)
            if len(calls) == 1:
                return 1  # already taken
            return await real_next_version(*args)

        monkeypatch.setattr(store, "_next_version", stale_next_version)
        submission = await submit(store, research.id, student)

        assert submission.version == 2
        assert len(calls) == 2
        count = await store.session.scalar(select(func.count()).select_from(Submission))
        assert count == 2

    async def test_concurrent_uploads_get_distinct_versions(self, session_maker, storage, research, student):
        async def upload(n):
            async with session_maker() as session:
                store = SubmissionStore(session, storage)
                submission = await submit(store, research.id, student, filename=f"draft{n}.pdf")
                await session.commit()
                return submission.version

        versions = await asyncio.gather(*(upload(n) for n in range(4)))

        assert sorted(versions) == [1, 2, 3, 4]
        assert len(storage.blobs) == 4

    async def test_retries_exhausted_raises_conflict(self, store, research, student, storage, monkeypatch):
        first = await submit(store, research.id, student)

        async def always_taken(*args):
            return 1

        monkeypatch.setattr(store, "_next_version", always_taken)
        with pytest.raises(ConflictError) as exc_info:
            await submit(store, research.id, student)

        assert exc_info.value.reason == "version-conflict"
        # The orphaned blob of the failed upload is removed
        assert list(storage.blobs) == [first.storage_ref]


class TestCreateValidation:
    async def test_unknown_unit_type(self, store, research, student):
        with pytest.raises(ValidationError) as exc_info:
            await submit(store, research.id, student, unit_type="chapter9")
        assert exc_info.value.reason == "invalid-unit-type"

    async def test_camel_case_compliance_form_accepted(self, store, research, student):
        submission = await submit(store, research.id, student, unit_type="complianceForm")
        assert submission.unit_type == UnitType.COMPLIANCE_FORM

    async def test_compliance_form_type_is_part_key(self, store, research, student):
        key = UnitKey(research_id=research.id, unit_type=UnitType.COMPLIANCE_FORM)
        ethics = await store.create(key, student, make_file(), SubmissionMetadata(form_type="ethics"))
        consent = await store.create(key, student, make_file(), SubmissionMetadata(form_type="consent"))
        assert (ethics.version, consent.version) == (1, 1)
        assert ethics.part_name == "ethics"

    async def test_form_type_rejected_for_chapters(self, store, research, student):
        key = UnitKey(research_id=research.id, unit_type="chapter1")
        with pytest.raises(ValidationError) as exc_info:
            await store.create(key, student, make_file(), SubmissionMetadata(form_type="ethics"))
        assert exc_info.value.reason == "invalid-form-type"

    @pytest.mark.parametrize("file_kwargs", [
        {"filename": ""},
        {"content_type": ""},
        {"data": b""},
    ])
    async def test_missing_file_metadata(self, store, research, student, file_kwargs):
        key = UnitKey(research_id=research.id, unit_type="chapter1")
        with pytest.raises(ValidationError) as exc_info:
            await store.create(key, student, make_file(**file_kwargs))
        assert exc_info.value.reason == "missing-file-metadata"

    async def test_file_too_large(self, db_session, storage, research, student):
        settings = get_settings().model_copy(update={"max_upload_bytes": 8})
        store = SubmissionStore(db_session, storage, settings=settings)
        with pytest.raises(ValidationError) as exc_info:
            await submit(store, research.id, student)
        assert exc_info.value.reason == "file-too-large"
        assert storage.blobs == {}

    async def test_unknown_research(self, store, student):
        with pytest.raises(NotFoundError):
            await submit(store, uuid.uuid4(), student)

    async def test_student_must_be_member(self, store, research):
        stranger = RequestContext(user_id=uuid.uuid4(), role=UserRole.STUDENT)
        with pytest.raises(PermissionDeniedError) as exc_info:
            await submit(store, research.id, stranger)
        assert exc_info.value.reason == "not-member"

    async def test_creation_is_audited(self, store, research, student):
        submission = await submit(store, research.id, student)
        await store.session.flush()
        events = await store.event_store.get_entity_history("submission", submission.id)
        assert [e.event_type for e in events] == [EventType.SUBMISSION_CREATED.value]
        assert events[0].payload["version"] == 1


class TestListByResearch:
    async def test_query_is_lazy_and_restartable(self, store, research, student):
        await submit(store, research.id, student)
        query = store.list_by_research(research.id)
        await submit(store, research.id, student)

        first = [s.version async for s in query]
        second = [s.version async for s in query]
        assert sorted(first) == [1, 2]
        assert sorted(second) == [1, 2]

    async def test_filters(self, store, research, student):
        await submit(store, research.id, student, "chapter1", filename="intro-draft.pdf")
        await submit(store, research.id, student, "chapter1", part_name="Statement of the Problem")
        await submit(store, research.id, student, "chapter2", filename="rrl.docx")

        by_unit = await store.list_by_research(research.id, SubmissionFilters(unit_type="chapter1")).all()
        assert len(by_unit) == 2

        by_part = await store.list_by_research(research.id, SubmissionFilters(part_name="PROBLEM")).all()
        assert [s.part_name for s in by_part] == ["Statement of the Problem"]

        by_search = await store.list_by_research(research.id, SubmissionFilters(search="rrl")).all()
        assert [s.filename for s in by_search] == ["rrl.docx"]

        approved = await store.list_by_research(research.id, SubmissionFilters(status="approved")).all()
        assert approved == []

    async def test_search_treats_wildcards_literally(self, store, research, student):
        await submit(store, research.id, student, filename="chapter.pdf")
        found = await store.list_by_research(research.id, SubmissionFilters(search="%")).all()
        assert found == []

    async def test_invalid_status_filter(self, store, research):
        with pytest.raises(ValidationError):
            store.list_by_research(research.id, SubmissionFilters(status="lost"))

    async def test_date_only_bounds_use_research_timezone(self, store, research, student):
        late_utc = await submit(store, research.id, student, filename="late.pdf")
        morning_utc = await submit(store, research.id, student, filename="morning.pdf")
        # 2026-10-10 20:00 UTC is 2026-10-11 04:00 in Manila
        late_utc.uploaded_at = datetime(2026, 10, 10, 20, 0, tzinfo=timezone.utc)
        morning_utc.uploaded_at = datetime(2026, 10, 11, 3, 0, tzinfo=timezone.utc)
        await store.session.flush()

        one_day = SubmissionFilters(uploaded_from=date(2026, 10, 11), uploaded_to=date(2026, 10, 11))
        in_manila = await store.list_by_research(research.id, one_day, tz=ZoneInfo("Asia/Manila")).all()
        in_utc = await store.list_by_research(research.id, one_day, tz=ZoneInfo("UTC")).all()

        assert sorted(s.filename for s in in_manila) == ["late.pdf", "morning.pdf"]
        assert [s.filename for s in in_utc] == ["morning.pdf"]


class TestDelete:
    async def test_owner_deletes_pending(self, store, research, student, storage):
        submission = await submit(store, research.id, student)
        ref = submission.storage_ref
        await store.delete(submission.id, student)

        with pytest.raises(NotFoundError):
            await store.get(submission.id)
        # The blob outlives the row until the transaction commits
        assert ref in storage.blobs
        assert await commit_and_purge(store.session) == []
        assert ref not in storage.blobs
        logged = await store.session.scalar(
            select(func.count()).select_from(EventLog).where(
                EventLog.event_type == EventType.SUBMISSION_DELETED.value
            )
        )
        assert logged == 1

    async def test_rollback_keeps_blob(self, db_session, store, research, student, storage):
        submission = await submit(store, research.id, student)
        await db_session.commit()
        ref = submission.storage_ref

        await store.delete(submission.id, student)
        assert pending_blob_refs(db_session) == [ref]
        discard_blob_deletes(db_session)
        await db_session.rollback()

        assert ref in storage.blobs
        assert (await store.get(submission.id)).storage_ref == ref

    async def test_approved_is_protected(self, store, research, student, adviser):
        submission = await submit(store, research.id, student)
        submission.status = SubmissionStatus.APPROVED.value
        await store.session.flush()

        for requester in (student, adviser):
            with pytest.raises(ConflictError) as exc_info:
                await store.delete(submission.id, requester)
            assert exc_info.value.reason == "protected-state"
        assert (await store.get(submission.id)).id == submission.id

    async def test_students_delete_only_their_own(self, store, research, student, other_student):
        submission = await submit(store, research.id, student)
        with pytest.raises(PermissionDeniedError) as exc_info:
            await store.delete(submission.id, other_student)
        assert exc_info.value.reason == "not-owner"

    async def test_staff_may_delete_any_unapproved(self, store, research, student, adviser):
        submission = await submit(store, research.id, student)
        await store.delete(submission.id, adviser)
        with pytest.raises(NotFoundError):
            await store.get(submission.id)

    async def test_unknown_id(self, store, student):
        with pytest.raises(NotFoundError):
            await store.delete(uuid.uuid4(), student)
