"""
Review state machine for submissions.

Only pending submissions can be reviewed; every decision is terminal for
that version. Students respond to a rejection or revision request by
uploading a new version, not by moving the old one.
"""

import uuid
from enum import Enum
from typing import Dict, List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from thesis_tracker.engines.progress.aggregator import ProgressAggregator
from thesis_tracker.kernel.errors import InvalidStateError, NotFoundError, ValidationError
from thesis_tracker.kernel.events.event_store import EventStore
from thesis_tracker.kernel.identity.context import RequestContext
from thesis_tracker.kernel.models.base import utcnow
from thesis_tracker.kernel.models.event_log import EventType
from thesis_tracker.kernel.models.submission import Submission, SubmissionStatus
from thesis_tracker.logging_config import get_logger

logger = get_logger(__name__)


class ReviewDecision(str, Enum):
    """Reviewer decisions."""
    APPROVE = "approve"
    REJECT = "reject"
    REQUEST_REVISION = "request_revision"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str) and value.replace("_", "").lower() == "requestrevision":
            return cls.REQUEST_REVISION
        return None


# (from_status, decision) -> to_status
_TRANSITIONS: Dict[Tuple[str, ReviewDecision], SubmissionStatus] = {
    (SubmissionStatus.PENDING.value, ReviewDecision.APPROVE): SubmissionStatus.APPROVED,
    (SubmissionStatus.PENDING.value, ReviewDecision.REJECT): SubmissionStatus.REJECTED,
    (SubmissionStatus.PENDING.value, ReviewDecision.REQUEST_REVISION): SubmissionStatus.REVISION,
}

# Decisions that must explain themselves to the student
_COMMENT_REQUIRED = frozenset({ReviewDecision.REJECT, ReviewDecision.REQUEST_REVISION})


def can_review(status: SubmissionStatus | str) -> bool:
    """True if a submission in this status accepts a review decision."""
    return any(f == SubmissionStatus(status).value for f, _ in _TRANSITIONS)


def target_status(decision: ReviewDecision | str) -> SubmissionStatus:
    """Status a pending submission moves to for the given decision."""
    return _TRANSITIONS[(SubmissionStatus.PENDING.value, ReviewDecision(decision))]


def coerce_decision(decision: ReviewDecision | str) -> ReviewDecision:
    try:
        return ReviewDecision(decision)
    except ValueError:
        raise ValidationError(
            f"Unknown review decision: {decision!r}",
            reason="invalid-decision",
            details={"allowed": [d.value for d in ReviewDecision]},
        ) from None


class ReviewStateMachine:
    """Applies review decisions with an optimistic guard and audit logging."""

    def __init__(self, session: AsyncSession, progress: Optional[ProgressAggregator] = None):
        self.session = session
        self.progress = progress or ProgressAggregator(session)
        self.event_store = EventStore(session)

    async def review(
        self,
        submission_id: uuid.UUID,
        reviewer: RequestContext,
        decision: ReviewDecision | str,
        comment: Optional[str] = None,
        attachments: Optional[List[str]] = None,
    ) -> Submission:
        """
        Record a review decision on a pending submission.

        Raises:
            ValidationError: unknown decision, or blank comment on reject/revision
            NotFoundError: unknown submission
            InvalidStateError: submission is not pending (including a lost race)
        """
        decision = coerce_decision(decision)

        submission = await self.session.get(Submission, submission_id)
        if submission is None:
            raise NotFoundError("submission", submission_id)
        from_status = SubmissionStatus(submission.status)
        if not can_review(from_status):
            raise InvalidStateError(
                f"Submission is {from_status.value}; only pending submissions can be reviewed",
                details={"status": from_status.value},
            )

        comment = (comment or "").strip() or None
        if decision in _COMMENT_REQUIRED and comment is None:
            raise ValidationError(
                "A comment is required when rejecting or requesting revision",
                reason="comment-required",
            )

        to_status = target_status(decision)
        reviewed_at = utcnow()
        result = await self.session.execute(
            update(Submission)
            .where(
                Submission.id == submission_id,
                Submission.status == SubmissionStatus.PENDING.value,
            )
            .values(
                status=to_status.value,
                reviewed_by=reviewer.user_id,
                reviewed_at=reviewed_at,
                review_comment=comment,
                review_attachments=list(submission.review_attachments or []) + list(attachments or []),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise InvalidStateError(
                "Submission was reviewed concurrently",
                details={"submission_id": str(submission_id)},
            )
        await self.session.refresh(submission)

        await self.event_store.log(
            event_type=EventType.SUBMISSION_REVIEWED,
            entity_type="submission",
            entity_id=submission.id,
            user_id=reviewer.user_id,
            payload={
                "research_id": submission.research_id,
                "from_status": from_status,
                "to_status": to_status,
                "decision": decision,
                "has_comment": comment is not None,
                "attachments": len(attachments or []),
            },
            ip_address=reviewer.ip_address,
        )

        if to_status == SubmissionStatus.APPROVED:
            await self.progress.refresh_milestones(submission.research_id, actor_id=reviewer.user_id)

        logger.info(
            "Submission reviewed",
            extra={
                "submission_id": str(submission.id),
                "decision": decision.value,
                "to_status": to_status.value,
                "reviewer_id": str(reviewer.user_id),
            },
        )
        return submission
