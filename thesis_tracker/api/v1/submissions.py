"""Submission endpoints: submit, history, get, download, delete, review."""

import uuid
from datetime import date, datetime
from typing import Annotated, List, Optional
from urllib.parse import quote

from fastapi import APIRouter, File, Form, Query, Response, UploadFile, status

from thesis_tracker.api.deps import CurrentContext, DbSession, StaffContext, StorageDep, load_research_for
from thesis_tracker.engines.progress.aggregator import ProgressAggregator
from thesis_tracker.engines.submissions.resolver import FULL_UNIT, resolve_history
from thesis_tracker.engines.submissions.store import (
    SubmissionFilters,
    SubmissionMetadata,
    SubmissionStore,
    UnitKey,
    UploadedFile,
    coerce_unit_type,
)
from thesis_tracker.kernel.errors import ThesisTrackerError, ValidationError
from thesis_tracker.kernel.models.submission import UnitType
from thesis_tracker.kernel.storage.base import StoredFileMetadata
from thesis_tracker.orchestration.state_machine import ReviewStateMachine
from thesis_tracker.schemas.submission import (
    PartHistoryResponse,
    SubmissionHistoryResponse,
    SubmissionResponse,
    UnitHistoryResponse,
)

router = APIRouter()


def _parse_bound(value: Optional[str], field: str) -> Optional[date | datetime]:
    """ISO date (whole day) or ISO datetime."""
    if value is None or not value.strip():
        return None
    value = value.strip()
    try:
        if len(value) == 10:
            return date.fromisoformat(value)
        return datetime.fromisoformat(value)
    except ValueError:
        raise ValidationError(
            f"{field} must be an ISO date or datetime",
            reason="invalid-date",
            details={"field": field, "value": value},
        ) from None



def content_disposition(filename: str) -> str:
    """Attachment header value; non-ASCII or quoted names use RFC 5987 encoding."""
    quoted = quote(filename, safe="")
    if quoted != filename:
        return f"attachment; filename*=utf-8''{quoted}"
    return f'attachment; filename="{filename}"'


@router.post(
    "/research/{research_id}/submissions",
    response_model=SubmissionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def submit(
    research_id: uuid.UUID,
    context: CurrentContext,
    db: DbSession,
    storage: StorageDep,
    unit_type: Annotated[str, Form()],
    file: Annotated[UploadFile, File()],
    part_name: Annotated[Optional[str], Form()] = None,
    title: Annotated[Optional[str], Form()] = None,
    form_type: Annotated[Optional[str], Form()] = None,
):
    """Upload a new version of a chapter, chapter part or compliance form."""
    data = await file.read()
    submission = await SubmissionStore(db, storage).create(
        UnitKey(research_id=research_id, unit_type=unit_type, part_name=part_name),
        context,
        UploadedFile(
            filename=file.filename or "",
            content_type=file.content_type or "",
            data=data,
        ),
        SubmissionMetadata(title=title, form_type=form_type),
    )

    progress = ProgressAggregator(db)
    await progress.ensure_default_milestones(research_id)
    await progress.refresh_milestones(research_id, actor_id=context.user_id)
    return SubmissionResponse.model_validate(submission)


@router.get("/research/{research_id}/submissions", response_model=SubmissionHistoryResponse)
async def list_history(
    research_id: uuid.UUID,
    context: CurrentContext,
    db: DbSession,
    storage: StorageDep,
    unit_type: Optional[str] = None,
    part_name: Optional[str] = None,
    status_filter: Annotated[Optional[str], Query(alias="status")] = None,
    uploaded_from: Optional[str] = None,
    uploaded_to: Optional[str] = None,
    search: Optional[str] = None,
):
    """Resolved version history and current versions per unit."""
    research = await load_research_for(db, research_id, context)
    filters = SubmissionFilters(
        unit_type=unit_type,
        part_name=part_name,
        status=status_filter,
        uploaded_from=_parse_bound(uploaded_from, "uploaded_from"),
        uploaded_to=_parse_bound(uploaded_to, "uploaded_to"),
        search=search,
    )
    tz = ProgressAggregator(db).research_timezone(research)
    submissions = await SubmissionStore(db, storage).list_by_research(research_id, filters, tz=tz).all()

    unit_types = [coerce_unit_type(unit_type)] if unit_type else list(UnitType)
    units: List[UnitHistoryResponse] = []
    for unit, history in resolve_history(submissions, unit_types).items():
        current = history.current.get(FULL_UNIT)
        units.append(
            UnitHistoryResponse(
                unit_type=unit,
                current=SubmissionResponse.model_validate(current) if current else None,
                history=[SubmissionResponse.model_validate(s) for s in history.submissions],
                parts=[
                    PartHistoryResponse(
                        part_key=key,
                        part_name=rows[0].part_name,
                        current=SubmissionResponse.model_validate(rows[0]),
                        history=[SubmissionResponse.model_validate(s) for s in rows],
                    )
                    for key, rows in sorted(history.parts.items())
                ],
            )
        )
    return SubmissionHistoryResponse(research_id=research_id, units=units)


@router.get("/submissions/{submission_id}", response_model=SubmissionResponse)
async def get_submission(
    submission_id: uuid.UUID,
    context: CurrentContext,
    db: DbSession,
    storage: StorageDep,
):
    """Get one submission version."""
    submission = await SubmissionStore(db, storage).get(submission_id)
    await load_research_for(db, submission.research_id, context)
    return SubmissionResponse.model_validate(submission)


@router.get("/submissions/{submission_id}/file")
async def download_submission(
    submission_id: uuid.UUID,
    context: CurrentContext,
    db: DbSession,
    storage: StorageDep,
):
    """Download the uploaded file of a submission version."""
    submission = await SubmissionStore(db, storage).get(submission_id)
    await load_research_for(db, submission.research_id, context)
    data = await storage.retrieve(submission.storage_ref)
    return Response(
        content=data,
        media_type=submission.content_type,
        headers={"Content-Disposition": content_disposition(submission.filename)},
    )


@router.delete("/submissions/{submission_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_submission(
    submission_id: uuid.UUID,
    context: CurrentContext,
    db: DbSession,
    storage: StorageDep,
):
    """Delete a non-approved submission."""
    store = SubmissionStore(db, storage)
    submission = await store.get(submission_id)
    await load_research_for(db, submission.research_id, context)
    await store.delete(submission_id, context)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/submissions/{submission_id}/review", response_model=SubmissionResponse)
async def review_submission(
    submission_id: uuid.UUID,
    context: StaffContext,
    db: DbSession,
    storage: StorageDep,
    decision: Annotated[str, Form()],
    comment: Annotated[Optional[str], Form()] = None,
    attachments: Annotated[Optional[List[UploadFile]], File()] = None,
):
    """Approve, reject or request revision of a pending submission."""
    refs: List[str] = []
    for upload in attachments or []:
        refs.append(
            await storage.store(
                await upload.read(),
                StoredFileMetadata(
                    filename=upload.filename or "attachment",
                    content_type=upload.content_type or "application/octet-stream",
                    extra={"submission_id": str(submission_id), "kind": "review-attachment"},
                ),
            )
        )

    try:
        submission = await ReviewStateMachine(db).review(
            submission_id,
            context,
            decision,
            comment=comment,
            attachments=refs,
        )
    except ThesisTrackerError:
        for ref in refs:
            await storage.delete(ref)
        raise
    return SubmissionResponse.model_validate(submission)
