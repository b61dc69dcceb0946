"""Tests for the review state machine."""

import uuid

import pytest
from sqlalchemy import select

from thesis_tracker.engines.progress.aggregator import ProgressAggregator
from thesis_tracker.kernel.errors import InvalidStateError, NotFoundError, ValidationError
from thesis_tracker.kernel.models import EventLog, EventType, Milestone, MilestoneStatus, SubmissionStatus
from thesis_tracker.orchestration.state_machine import (
    ReviewDecision,
    ReviewStateMachine,
    can_review,
    target_status,
)
from tests.factories import submit


class TestTransitionTable:
    """Every (status, decision) pair has a defined outcome."""

    @pytest.mark.parametrize("status", list(SubmissionStatus))
    def test_only_pending_is_reviewable(self, status):
        assert can_review(status) is (status == SubmissionStatus.PENDING)

    def test_decision_targets(self):
        assert target_status(ReviewDecision.APPROVE) == SubmissionStatus.APPROVED
        assert target_status(ReviewDecision.REJECT) == SubmissionStatus.REJECTED
        assert target_status(ReviewDecision.REQUEST_REVISION) == SubmissionStatus.REVISION

    def test_camel_case_alias(self):
        assert ReviewDecision("requestRevision") == ReviewDecision.REQUEST_REVISION


class TestReview:
    async def test_approve_without_comment(self, db_session, store, research, student, adviser):
        submission = await submit(store, research.id, student)
        reviewed = await ReviewStateMachine(db_session).review(submission.id, adviser, "approve")

        assert reviewed.status == SubmissionStatus.APPROVED
        assert reviewed.reviewed_by == adviser.user_id
        assert reviewed.reviewed_at is not None
        assert reviewed.review_comment is None

    @pytest.mark.parametrize("decision", ["reject", "request_revision", "requestRevision"])
    @pytest.mark.parametrize("comment", [None, "", "   "])
    async def test_comment_required(self, db_session, store, research, student, adviser, decision, comment):
        submission = await submit(store, research.id, student)
        with pytest.raises(ValidationError) as exc_info:
            await ReviewStateMachine(db_session).review(submission.id, adviser, decision, comment=comment)
        assert exc_info.value.reason == "comment-required"
        assert (await store.get(submission.id)).status == SubmissionStatus.PENDING

    async def test_request_revision_with_attachments(self, db_session, store, research, student, adviser):
        submission = await submit(store, research.id, student)
        reviewed = await ReviewStateMachine(db_session).review(
            submission.id,
            adviser,
            "requestRevision",
            comment="  Tighten the research questions.  ",
            attachments=["memory:annotated/chapter1.pdf"],
        )
        assert reviewed.status == SubmissionStatus.REVISION
        assert reviewed.review_comment == "Tighten the research questions."
        assert reviewed.review_attachments == ["memory:annotated/chapter1.pdf"]

    @pytest.mark.parametrize(
        "status",
        [SubmissionStatus.APPROVED, SubmissionStatus.REJECTED, SubmissionStatus.REVISION],
    )
    @pytest.mark.parametrize("decision", list(ReviewDecision))
    @pytest.mark.parametrize("comment", [None, "Second look"])
    async def test_reviewed_submissions_are_final(
        self, db_session, store, research, student, adviser, status, decision, comment
    ):
        submission = await submit(store, research.id, student)
        submission.status = status.value
        await db_session.flush()

        with pytest.raises(InvalidStateError):
            await ReviewStateMachine(db_session).review(submission.id, adviser, decision, comment=comment)
        assert (await store.get(submission.id)).status == status

    async def test_second_review_after_rejection(self, db_session, store, research, student, adviser):
        submission = await submit(store, research.id, student)
        machine = ReviewStateMachine(db_session)
        await machine.review(submission.id, adviser, "reject", comment="Wrong template")

        with pytest.raises(InvalidStateError):
            await machine.review(submission.id, adviser, "request_revision")

    async def test_unknown_decision(self, db_session, store, research, student, adviser):
        submission = await submit(store, research.id, student)
        with pytest.raises(ValidationError) as exc_info:
            await ReviewStateMachine(db_session).review(submission.id, adviser, "maybe")
        assert exc_info.value.reason == "invalid-decision"

    async def test_unknown_submission(self, db_session, adviser):
        with pytest.raises(NotFoundError):
            await ReviewStateMachine(db_session).review(uuid.uuid4(), adviser, "approve")

    @pytest.mark.parametrize("decision", ["reject", "request_revision"])
    async def test_unknown_submission_without_comment(self, db_session, adviser, decision):
        with pytest.raises(NotFoundError):
            await ReviewStateMachine(db_session).review(uuid.uuid4(), adviser, decision)

    async def test_review_is_audited(self, db_session, store, research, student, adviser):
        submission = await submit(store, research.id, student)
        await ReviewStateMachine(db_session).review(submission.id, adviser, "reject", comment="Missing references")
        await db_session.flush()

        result = await db_session.execute(
            select(EventLog).where(EventLog.event_type == EventType.SUBMISSION_REVIEWED.value)
        )
        event = result.scalar_one()
        assert event.entity_id == submission.id
        assert event.payload["from_status"] == "pending"
        assert event.payload["to_status"] == "rejected"

    async def test_approval_completes_milestone(self, db_session, store, research, student, adviser):
        progress = ProgressAggregator(db_session)
        await progress.ensure_default_milestones(research.id)
        submission = await submit(store, research.id, student, "chapter1")

        await ReviewStateMachine(db_session, progress).review(submission.id, adviser, "approve")

        result = await db_session.execute(
            select(Milestone).where(Milestone.research_id == research.id, Milestone.stage_key == "chapter1")
        )
        chapter1 = result.scalar_one()
        assert chapter1.status == MilestoneStatus.COMPLETED
        assert chapter1.completed_at is not None

    async def test_concurrent_reviewer_loses(self, session_maker, db_session, store, research, student, adviser):
        """The conditional update refuses a decision on a row another session already reviewed."""
        submission = await submit(store, research.id, student)
        await db_session.commit()

        async with session_maker() as other:
            await ReviewStateMachine(other).review(submission.id, adviser, "approve")
            await other.commit()

        # db_session still holds the stale pending copy in its identity map
        assert submission.status == SubmissionStatus.PENDING
        with pytest.raises(InvalidStateError):
            await ReviewStateMachine(db_session).review(
                submission.id, adviser, "reject", comment="Too late"
            )
