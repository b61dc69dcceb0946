"""Progress overview and milestone management."""

import uuid
from typing import List

from fastapi import APIRouter, status

from thesis_tracker.api.deps import CurrentContext, DbSession, StaffContext, load_research_for
from thesis_tracker.engines.progress.aggregator import ProgressAggregator, ProgressSnapshot
from thesis_tracker.kernel.errors import ValidationError
from thesis_tracker.schemas.milestone import MilestoneResponse, MilestoneUpdate

router = APIRouter()


@router.get("/research/{research_id}/progress", response_model=ProgressSnapshot)
async def get_progress(
    research_id: uuid.UUID,
    context: CurrentContext,
    db: DbSession,
):
    """Milestone status, completion percentage, deadlines and notifications."""
    await load_research_for(db, research_id, context)
    return await ProgressAggregator(db).get_progress(research_id)


@router.post(
    "/research/{research_id}/milestones/defaults",
    response_model=List[MilestoneResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_default_milestones(
    research_id: uuid.UUID,
    context: StaffContext,
    db: DbSession,
):
    """Create the chapter milestones for a project that has none."""
    milestones = await ProgressAggregator(db).ensure_default_milestones(research_id)
    return [MilestoneResponse.model_validate(m) for m in milestones]


@router.put("/research/{research_id}/milestones/{stage_key}", response_model=MilestoneResponse)
async def update_milestone(
    research_id: uuid.UUID,
    stage_key: str,
    data: MilestoneUpdate,
    context: StaffContext,
    db: DbSession,
):
    """Set a due date and/or record an externally driven stage transition."""
    if data.due_date is None and not data.clear_due_date and data.status is None:
        raise ValidationError("Nothing to update", reason="empty-update")

    progress = ProgressAggregator(db)
    milestone = None
    if data.due_date is not None or data.clear_due_date:
        milestone = await progress.set_due_date(
            research_id, stage_key, data.due_date, actor_id=context.user_id
        )
    if data.status is not None:
        milestone = await progress.record_stage_event(
            research_id,
            stage_key,
            data.status,
            occurred_at=data.occurred_at,
            actor_id=context.user_id,
        )
    return MilestoneResponse.model_validate(milestone)
