"""
Progress Aggregator - milestone status, completion percentage and deadlines.

Completion is derived from the current version of each stage's unit: a
chapter milestone completes once a current submission of that chapter is
approved. Stages with no submittable unit (proposal, defense, final) are
driven by externally recorded stage events. Day math uses calendar days in
the research project's timezone.
"""

import uuid
from datetime import date, datetime, time, timezone, tzinfo
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from thesis_tracker.config import Settings, get_settings
from thesis_tracker.engines.submissions.resolver import UnitHistory, resolve_history
from thesis_tracker.kernel.errors import InvalidStateError, NotFoundError, ValidationError
from thesis_tracker.kernel.events.event_store import EventStore
from thesis_tracker.kernel.models.base import ensure_aware, utcnow
from thesis_tracker.kernel.models.event_log import EventType
from thesis_tracker.kernel.models.milestone import Milestone, MilestoneStatus
from thesis_tracker.kernel.models.research import ResearchProject
from thesis_tracker.kernel.models.submission import Submission, SubmissionStatus, UnitType
from thesis_tracker.logging_config import get_logger

logger = get_logger(__name__)

STAGE_TITLES: Dict[str, str] = {
    "proposal": "Proposal",
    "chapter1": "Chapter 1 - Introduction",
    "chapter2": "Chapter 2 - Literature Review",
    "chapter3": "Chapter 3 - Methodology",
    "compliance_form": "Compliance Forms",
    "defense": "Defense",
    "final": "Final Manuscript",
}

DEFAULT_STAGES: Tuple[str, ...] = ("chapter1", "chapter2", "chapter3")


class NotificationSeverity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"


class MilestoneView(BaseModel):
    """A milestone with its derived status."""

    id: Optional[uuid.UUID] = None
    stage_key: str
    title: str
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    status: MilestoneStatus
    completed_at: Optional[datetime] = None
    submission_link: Optional[str] = None


class DeadlineEntry(BaseModel):
    """A non-completed milestone due within the horizon (or overdue)."""

    milestone_id: Optional[uuid.UUID] = None
    stage_key: str
    title: str
    due_date: datetime
    days_until_due: int
    is_overdue: bool


class Notification(BaseModel):
    """Deadline reminder shown on the student dashboard."""

    milestone_id: Optional[uuid.UUID] = None
    stage_key: str
    severity: NotificationSeverity
    message: str
    due_date: datetime
    days_until_due: int


class ProgressSnapshot(BaseModel):
    """Read-only progress view of one research project."""

    research_id: uuid.UUID
    total_milestones: int
    completed_milestones: int
    percentage: int
    milestones: List[MilestoneView] = []
    upcoming_deadlines: List[DeadlineEntry] = []
    notifications: List[Notification] = []
    generated_at: datetime


def stage_unit(stage_key: str) -> Optional[UnitType]:
    """Unit type whose approval completes the stage, or None for externally driven stages."""
    try:
        return UnitType(stage_key)
    except ValueError:
        return None


def days_until(due: date | datetime, now: datetime, tz: tzinfo) -> int:
    """Calendar days from ``now`` to ``due`` in ``tz``. Negative when overdue."""
    if isinstance(due, datetime):
        due_day = ensure_aware(due).astimezone(tz).date()
    else:
        due_day = due
    return (due_day - ensure_aware(now).astimezone(tz).date()).days


def derive_milestone_status(
    milestone: Any,
    history: Optional[UnitHistory],
    now: datetime,
) -> Tuple[MilestoneStatus, Optional[datetime]]:
    """
    Derive (status, completed_at) for a milestone.

    A recorded completion is never undone. Otherwise the milestone completes
    when a current submission of its unit is approved, and is in progress
    once anything was submitted for that unit.
    """
    now = ensure_aware(now)
    recorded = ensure_aware(milestone.completed_at)
    if recorded is not None:
        return MilestoneStatus.COMPLETED, min(recorded, now)

    if history is not None:
        approved = [
            sub for sub in history.current.values()
            if sub.status == SubmissionStatus.APPROVED
        ]
        if approved:
            completed_at = min(
                ensure_aware(sub.reviewed_at or sub.uploaded_at) for sub in approved
            )
            return MilestoneStatus.COMPLETED, min(completed_at, now)
        if history.has_submissions:
            return MilestoneStatus.IN_PROGRESS, None

    if milestone.status == MilestoneStatus.COMPLETED:
        # Externally completed without a timestamp: last touch of the row
        touched = ensure_aware(getattr(milestone, "updated_at", None)) or now
        return MilestoneStatus.COMPLETED, min(touched, now)
    if milestone.status == MilestoneStatus.IN_PROGRESS:
        return MilestoneStatus.IN_PROGRESS, None
    return MilestoneStatus.NOT_STARTED, None


def _deadline_message(title: str, days: int) -> str:
    if days < 0:
        overdue = -days
        return f"{title} is overdue by {overdue} day{'s' if overdue != 1 else ''}"
    if days == 0:
        return f"{title} is due today"
    if days == 1:
        return f"{title} is due tomorrow"
    return f"{title} is due in {days} days"


def compute_snapshot(
    research_id: uuid.UUID,
    milestones: Sequence[Any],
    submissions: Iterable[Any],
    now: datetime,
    tz: tzinfo,
    horizon_days: int = 7,
    high_severity_days: int = 2,
) -> ProgressSnapshot:
    """Build a progress snapshot. Pure: neither input is mutated."""
    now = ensure_aware(now)
    histories = resolve_history(submissions)

    views: List[MilestoneView] = []
    deadlines: List[DeadlineEntry] = []
    for milestone in milestones:
        unit = stage_unit(milestone.stage_key)
        status, completed_at = derive_milestone_status(
            milestone, histories.get(unit) if unit else None, now
        )
        due = ensure_aware(milestone.due_date)
        views.append(
            MilestoneView(
                id=milestone.id,
                stage_key=milestone.stage_key,
                title=milestone.title,
                description=milestone.description,
                due_date=due,
                status=status,
                completed_at=completed_at,
                submission_link=milestone.submission_link,
            )
        )
        if status == MilestoneStatus.COMPLETED or due is None:
            continue
        days = days_until(due, now, tz)
        if days <= horizon_days:
            deadlines.append(
                DeadlineEntry(
                    milestone_id=milestone.id,
                    stage_key=milestone.stage_key,
                    title=milestone.title,
                    due_date=due,
                    days_until_due=days,
                    is_overdue=days < 0,
                )
            )

    deadlines.sort(key=lambda d: (d.due_date, d.stage_key))
    notifications = [
        Notification(
            milestone_id=d.milestone_id,
            stage_key=d.stage_key,
            severity=(
                NotificationSeverity.HIGH
                if d.is_overdue or d.days_until_due <= high_severity_days
                else NotificationSeverity.MEDIUM
            ),
            message=_deadline_message(d.title, d.days_until_due),
            due_date=d.due_date,
            days_until_due=d.days_until_due,
        )
        for d in deadlines
    ]

    total = len(views)
    completed = sum(1 for v in views if v.status == MilestoneStatus.COMPLETED)
    percentage = (100 * completed) // total if total else 0

    return ProgressSnapshot(
        research_id=research_id,
        total_milestones=total,
        completed_milestones=completed,
        percentage=percentage,
        milestones=views,
        upcoming_deadlines=deadlines,
        notifications=notifications,
        generated_at=now,
    )


class ProgressAggregator:
    """DB-backed progress reads and milestone maintenance."""

    def __init__(self, session: AsyncSession, settings: Optional[Settings] = None):
        self.session = session
        self.settings = settings or get_settings()
        self.event_store = EventStore(session)

    async def _get_research(self, research_id: uuid.UUID) -> ResearchProject:
        research = await self.session.get(ResearchProject, research_id)
        if research is None:
            raise NotFoundError("research", research_id)
        return research

    def research_timezone(self, research: ResearchProject) -> tzinfo:
        """Research timezone, falling back to the configured default."""
        if research.timezone:
            try:
                return ZoneInfo(research.timezone)
            except (ZoneInfoNotFoundError, ValueError):
                logger.warning(
                    "Unknown research timezone, using default",
                    extra={"research_id": str(research.id), "timezone": research.timezone},
                )
        return ZoneInfo(self.settings.default_timezone)

    async def _milestones(self, research_id: uuid.UUID) -> List[Milestone]:
        result = await self.session.execute(
            select(Milestone)
            .where(Milestone.research_id == research_id)
            .order_by(Milestone.sort_order, Milestone.stage_key)
        )
        return list(result.scalars().all())

    async def _submissions(self, research_id: uuid.UUID) -> List[Submission]:
        result = await self.session.execute(
            select(Submission).where(Submission.research_id == research_id)
        )
        return list(result.scalars().all())

    async def _get_or_create_milestone(self, research_id: uuid.UUID, stage_key: str) -> Milestone:
        result = await self.session.execute(
            select(Milestone).where(
                Milestone.research_id == research_id,
                Milestone.stage_key == stage_key,
            )
        )
        milestone = result.scalar_one_or_none()
        if milestone is None:
            order = list(STAGE_TITLES).index(stage_key) if stage_key in STAGE_TITLES else len(STAGE_TITLES)
            milestone = Milestone(
                research_id=research_id,
                stage_key=stage_key,
                title=STAGE_TITLES.get(stage_key, stage_key.replace("_", " ").title()),
                status=MilestoneStatus.NOT_STARTED,
                sort_order=order,
            )
            self.session.add(milestone)
            await self.session.flush()
        return milestone

    async def get_progress(self, research_id: uuid.UUID, now: Optional[datetime] = None) -> ProgressSnapshot:
        """Compute the project's progress snapshot. Read-only."""
        research = await self._get_research(research_id)
        return compute_snapshot(
            research_id=research.id,
            milestones=await self._milestones(research_id),
            submissions=await self._submissions(research_id),
            now=now or utcnow(),
            tz=self.research_timezone(research),
            horizon_days=self.settings.deadline_horizon_days,
            high_severity_days=self.settings.high_severity_days,
        )

    async def refresh_milestones(
        self,
        research_id: uuid.UUID,
        actor_id: Optional[uuid.UUID] = None,
    ) -> List[Milestone]:
        """Persist derived milestone status so completion survives later uploads."""
        await self._get_research(research_id)
        milestones = await self._milestones(research_id)
        histories = resolve_history(await self._submissions(research_id))
        now = utcnow()

        changed = False
        for milestone in milestones:
            unit = stage_unit(milestone.stage_key)
            status, completed_at = derive_milestone_status(
                milestone, histories.get(unit) if unit else None, now
            )
            if status == milestone.status and completed_at == ensure_aware(milestone.completed_at):
                continue
            flipped = status == MilestoneStatus.COMPLETED and milestone.status != MilestoneStatus.COMPLETED
            milestone.status = status
            milestone.completed_at = completed_at
            changed = True
            if flipped:
                await self.event_store.log(
                    event_type=EventType.MILESTONE_COMPLETED,
                    entity_type="milestone",
                    entity_id=milestone.id,
                    user_id=actor_id,
                    payload={"research_id": research_id, "stage_key": milestone.stage_key},
                )
                logger.info(
                    "Milestone completed",
                    extra={"research_id": str(research_id), "stage_key": milestone.stage_key},
                )

        if changed:
            await self.session.flush()
            for milestone in milestones:
                await self.session.refresh(milestone)
        return milestones

    async def ensure_default_milestones(self, research_id: uuid.UUID) -> List[Milestone]:
        """Create the chapter milestones for a project that has none."""
        await self._get_research(research_id)
        existing = await self._milestones(research_id)
        if existing:
            return existing

        for order, stage_key in enumerate(DEFAULT_STAGES, start=1):
            self.session.add(
                Milestone(
                    research_id=research_id,
                    stage_key=stage_key,
                    title=STAGE_TITLES[stage_key],
                    status=MilestoneStatus.NOT_STARTED,
                    sort_order=order,
                )
            )
        await self.session.flush()
        return await self._milestones(research_id)

    async def record_stage_event(
        self,
        research_id: uuid.UUID,
        stage_key: str,
        status: MilestoneStatus | str,
        occurred_at: Optional[datetime] = None,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Milestone:
        """
        Apply an externally supplied stage transition (e.g. defense completed).

        Raises:
            ValidationError: unknown status, or a completion dated in the future
            InvalidStateError: moving a completed milestone backwards
        """
        try:
            status = MilestoneStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown milestone status: {status!r}", reason="invalid-status") from None

        now = utcnow()
        occurred_at = (ensure_aware(occurred_at) or now).astimezone(timezone.utc)
        if status == MilestoneStatus.COMPLETED and occurred_at > now:
            raise ValidationError("Completion time cannot be in the future", reason="future-completion")

        await self._get_research(research_id)
        milestone = await self._get_or_create_milestone(research_id, stage_key)
        if milestone.status == MilestoneStatus.COMPLETED and status != MilestoneStatus.COMPLETED:
            raise InvalidStateError(
                "Completed milestones cannot be reopened",
                details={"stage_key": stage_key},
            )
        if milestone.status == status:
            return milestone

        milestone.status = status
        if status == MilestoneStatus.COMPLETED:
            milestone.completed_at = occurred_at
        await self.session.flush()
        await self.session.refresh(milestone)

        await self.event_store.log(
            event_type=(
                EventType.MILESTONE_COMPLETED
                if status == MilestoneStatus.COMPLETED
                else EventType.MILESTONE_UPDATED
            ),
            entity_type="milestone",
            entity_id=milestone.id,
            user_id=actor_id,
            payload={"research_id": research_id, "stage_key": stage_key, "status": status},
        )
        logger.info(
            "Stage event recorded",
            extra={"research_id": str(research_id), "stage_key": stage_key, "status": status.value},
        )
        return milestone

    async def set_due_date(
        self,
        research_id: uuid.UUID,
        stage_key: str,
        due_date: Optional[date | datetime],
        actor_id: Optional[uuid.UUID] = None,
    ) -> Milestone:
        """Set or clear a milestone's due date. A plain date means midnight in the research timezone."""
        research = await self._get_research(research_id)
        if due_date is not None and not isinstance(due_date, datetime):
            due_date = datetime.combine(due_date, time.min, tzinfo=self.research_timezone(research))
        elif due_date is not None and due_date.tzinfo is None:
            due_date = due_date.replace(tzinfo=self.research_timezone(research))
        if due_date is not None:
            due_date = due_date.astimezone(timezone.utc)

        milestone = await self._get_or_create_milestone(research_id, stage_key)
        milestone.due_date = due_date
        await self.session.flush()
        await self.session.refresh(milestone)

        await self.event_store.log(
            event_type=EventType.MILESTONE_UPDATED,
            entity_type="milestone",
            entity_id=milestone.id,
            user_id=actor_id,
            payload={"research_id": research_id, "stage_key": stage_key, "due_date": due_date},
        )
        return milestone
