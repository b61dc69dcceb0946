"""Bulk administrative actions."""

from fastapi import APIRouter

from thesis_tracker.api.deps import DbSession, StaffContext, StorageDep
from thesis_tracker.engines.bulk.orchestrator import (
    BulkContext,
    BulkEntityType,
    BulkOperationOrchestrator,
    BulkResult,
)
from thesis_tracker.schemas.bulk import BulkRequest

router = APIRouter()


@router.post("/bulk/{entity_type}", response_model=BulkResult)
async def apply_bulk(
    entity_type: BulkEntityType,
    data: BulkRequest,
    context: StaffContext,
    db: DbSession,
    storage: StorageDep,
):
    """
    Apply one action to many records.

    Always 200 for a well-formed request; per-id failures are listed in
    ``failed`` and do not roll back the successful ids.
    """
    orchestrator = BulkOperationOrchestrator(db, storage)
    return await orchestrator.apply_bulk(
        data.action,
        data.ids,
        BulkContext(entity_type=entity_type, actor=context, comment=data.comment),
    )
