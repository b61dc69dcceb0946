"""
Bulk Operation Orchestrator - one administrative action over many ids.

Each id runs in its own SAVEPOINT, so a failing item rolls back alone and
is reported in ``failed`` while the rest of the batch proceeds. Blobs of
deleted records are queued on the session and removed after commit.
"""

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from thesis_tracker.engines.submissions.store import SubmissionStore
from thesis_tracker.kernel.errors import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    ThesisTrackerError,
    ValidationError,
)
from thesis_tracker.kernel.events.event_store import EventStore
from thesis_tracker.kernel.identity.context import RequestContext
from thesis_tracker.kernel.models.base import utcnow
from thesis_tracker.kernel.models.document import Document
from thesis_tracker.kernel.models.event_log import EventType
from thesis_tracker.kernel.models.research import ResearchProject, ResearchStatus
from thesis_tracker.kernel.models.submission import Submission, SubmissionStatus
from thesis_tracker.kernel.storage.base import Storage
from thesis_tracker.kernel.storage.cleanup import (
    discard_blob_deletes,
    pending_blob_refs,
    schedule_blob_delete,
)
from thesis_tracker.logging_config import get_logger
from thesis_tracker.orchestration.state_machine import ReviewDecision, ReviewStateMachine

logger = get_logger(__name__)


class BulkAction(str, Enum):
    ARCHIVE = "archive"
    UNARCHIVE = "unarchive"
    APPROVE = "approve"
    SHARE = "share"
    PERMANENT_DELETE = "permanent_delete"
    RESTORE = "restore"


class BulkEntityType(str, Enum):
    RESEARCH = "research"
    DOCUMENT = "document"
    SUBMISSION = "submission"


@dataclass(frozen=True)
class BulkContext:
    """Who runs the batch and against which entity type."""

    entity_type: BulkEntityType
    actor: RequestContext
    comment: Optional[str] = None


class BulkFailure(BaseModel):
    id: str
    reason: str
    message: str


class BulkResult(BaseModel):
    """Outcome of a bulk action. Every distinct input id is in exactly one list."""

    batch_id: uuid.UUID
    action: BulkAction
    entity_type: BulkEntityType
    succeeded: List[str] = []
    failed: List[BulkFailure] = []


Handler = Callable[[uuid.UUID, BulkContext], Awaitable[None]]


def _coerce(enum_cls, value, reason: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(
            f"Unknown {enum_cls.__name__}: {value!r}",
            reason=reason,
            details={"allowed": [e.value for e in enum_cls]},
        ) from None


def dedupe_ids(ids: Iterable[str | uuid.UUID]) -> List[str]:
    """Distinct ids in first-seen order. Equal UUIDs in different spellings collapse."""
    seen: Dict[str, str] = {}
    for raw in ids:
        text = str(raw).strip()
        try:
            key = str(uuid.UUID(text))
        except ValueError:
            key = text
        seen.setdefault(key, text)
    return list(seen.values())


class BulkOperationOrchestrator:
    """Runs bulk actions over research projects, documents and submissions."""

    def __init__(
        self,
        session: AsyncSession,
        storage: Storage,
        review_machine: Optional[ReviewStateMachine] = None,
        store: Optional[SubmissionStore] = None,
    ):
        self.session = session
        self.storage = storage
        self.review_machine = review_machine or ReviewStateMachine(session)
        self.store = store or SubmissionStore(session, storage)
        self.event_store = EventStore(session)
        self._handlers: Dict[Tuple[BulkEntityType, BulkAction], Handler] = {
            (BulkEntityType.RESEARCH, BulkAction.ARCHIVE): self._archive_research,
            (BulkEntityType.RESEARCH, BulkAction.UNARCHIVE): self._restore_research,
            (BulkEntityType.RESEARCH, BulkAction.RESTORE): self._restore_research,
            (BulkEntityType.RESEARCH, BulkAction.APPROVE): self._approve_research,
            (BulkEntityType.RESEARCH, BulkAction.SHARE): self._share_research,
            (BulkEntityType.RESEARCH, BulkAction.PERMANENT_DELETE): self._delete_research,
            (BulkEntityType.DOCUMENT, BulkAction.ARCHIVE): self._archive_document,
            (BulkEntityType.DOCUMENT, BulkAction.UNARCHIVE): self._restore_document,
            (BulkEntityType.DOCUMENT, BulkAction.RESTORE): self._restore_document,
            (BulkEntityType.DOCUMENT, BulkAction.PERMANENT_DELETE): self._delete_document,
            (BulkEntityType.SUBMISSION, BulkAction.APPROVE): self._approve_submission,
            (BulkEntityType.SUBMISSION, BulkAction.PERMANENT_DELETE): self._delete_submission,
        }

    async def apply_bulk(
        self,
        action: BulkAction | str,
        ids: Iterable[str | uuid.UUID],
        context: BulkContext,
    ) -> BulkResult:
        """
        Apply ``action`` to every distinct id.

        Per-item problems never raise; they land in ``BulkResult.failed``.

        Raises:
            ValidationError: the action or entity type itself is unknown
        """
        action = _coerce(BulkAction, action, "invalid-action")
        entity_type = _coerce(BulkEntityType, context.entity_type, "invalid-entity-type")
        handler = self._handlers.get((entity_type, action))
        result = BulkResult(batch_id=uuid.uuid4(), action=action, entity_type=entity_type)

        for raw_id in dedupe_ids(ids):
            try:
                item_id = uuid.UUID(raw_id)
            except ValueError:
                result.failed.append(BulkFailure(id=raw_id, reason="invalid-id", message="Not a valid id"))
                continue
            if handler is None:
                result.failed.append(
                    BulkFailure(
                        id=raw_id,
                        reason="unsupported-action",
                        message=f"'{action.value}' is not supported for {entity_type.value}",
                    )
                )
                continue

            queued = len(pending_blob_refs(self.session))
            try:
                async with self.session.begin_nested():
                    await handler(item_id, context)
            except ThesisTrackerError as exc:
                discard_blob_deletes(self.session, keep=queued)
                logger.warning(
                    "Bulk item failed",
                    extra={
                        "batch_id": str(result.batch_id),
                        "item_id": raw_id,
                        "action": action.value,
                        "reason": exc.reason,
                    },
                )
                result.failed.append(BulkFailure(id=raw_id, reason=exc.reason, message=exc.message))
            else:
                result.succeeded.append(raw_id)

        await self.event_store.log(
            event_type=EventType.BULK_APPLIED,
            entity_type="bulk",
            entity_id=result.batch_id,
            user_id=context.actor.user_id,
            payload={
                "action": action,
                "entity_type": entity_type,
                "succeeded": len(result.succeeded),
                "failed": len(result.failed),
            },
            ip_address=context.actor.ip_address,
        )
        await self.session.flush()
        logger.info(
            "Bulk action applied",
            extra={
                "batch_id": str(result.batch_id),
                "action": action.value,
                "entity_type": entity_type.value,
                "succeeded": len(result.succeeded),
                "failed": len(result.failed),
            },
        )
        return result

    # Research

    async def _get_research(self, research_id: uuid.UUID) -> ResearchProject:
        research = await self.session.get(ResearchProject, research_id)
        if research is None:
            raise NotFoundError("research", research_id)
        return research

    async def _log(self, event_type: EventType, entity_type: str, entity_id: uuid.UUID, context: BulkContext, **payload):
        await self.event_store.log(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            user_id=context.actor.user_id,
            payload=payload,
            ip_address=context.actor.ip_address,
        )

    async def _archive_research(self, research_id: uuid.UUID, context: BulkContext) -> None:
        research = await self._get_research(research_id)
        if research.status == ResearchStatus.ARCHIVED:
            return
        previous = ResearchStatus(research.status)
        research.status_before_archive = previous.value
        research.status = ResearchStatus.ARCHIVED.value
        research.archived_at = utcnow()
        research.archived_by = context.actor.user_id
        await self.session.flush()
        await self.session.refresh(research)
        await self._log(EventType.RESEARCH_ARCHIVED, "research", research_id, context, previous_status=previous)

    async def _restore_research(self, research_id: uuid.UUID, context: BulkContext) -> None:
        research = await self._get_research(research_id)
        if research.status != ResearchStatus.ARCHIVED:
            return
        restored = research.status_before_archive or ResearchStatus.APPROVED.value
        research.status = restored
        research.status_before_archive = None
        research.archived_at = None
        research.archived_by = None
        await self.session.flush()
        await self.session.refresh(research)
        await self._log(EventType.RESEARCH_RESTORED, "research", research_id, context, restored_status=restored)

    async def _approve_research(self, research_id: uuid.UUID, context: BulkContext) -> None:
        research = await self._get_research(research_id)
        if research.status != ResearchStatus.PENDING:
            raise InvalidStateError(
                f"Only pending research can be approved (currently {ResearchStatus(research.status).value})",
                reason="ineligible-state",
            )
        research.status = ResearchStatus.APPROVED.value
        research.approved_at = utcnow()
        research.approved_by = context.actor.user_id
        await self.session.flush()
        await self.session.refresh(research)
        await self._log(EventType.RESEARCH_APPROVED, "research", research_id, context, comment=context.comment)

    async def _share_research(self, research_id: uuid.UUID, context: BulkContext) -> None:
        research = await self._get_research(research_id)
        if research.shared_with_dean:
            return
        research.shared_with_dean = True
        research.shared_at = utcnow()
        research.shared_by = context.actor.user_id
        await self.session.flush()
        await self.session.refresh(research)
        await self._log(EventType.RESEARCH_SHARED, "research", research_id, context)

    async def _delete_research(self, research_id: uuid.UUID, context: BulkContext) -> None:
        research = await self._get_research(research_id)
        if research.status != ResearchStatus.ARCHIVED:
            raise ConflictError(
                "Only archived research can be permanently deleted",
                reason="protected-state",
            )
        rows = await self.session.execute(
            select(Submission.storage_ref, Submission.review_attachments).where(
                Submission.research_id == research_id
            )
        )
        refs: List[str] = []
        for storage_ref, attachments in rows:
            refs.append(storage_ref)
            refs.extend(attachments or [])

        title = research.title
        await self.session.delete(research)
        await self.session.flush()
        for ref in refs:
            schedule_blob_delete(self.session, self.storage, ref)
        await self._log(EventType.RESEARCH_DELETED, "research", research_id, context, title=title, files=len(refs))

    # Documents

    async def _get_document(self, document_id: uuid.UUID) -> Document:
        document = await self.session.get(Document, document_id)
        if document is None:
            raise NotFoundError("document", document_id)
        return document

    async def _archive_document(self, document_id: uuid.UUID, context: BulkContext) -> None:
        document = await self._get_document(document_id)
        if not document.is_active:
            return
        document.is_active = False
        document.archived_at = utcnow()
        await self.session.flush()
        await self.session.refresh(document)
        await self._log(EventType.DOCUMENT_ARCHIVED, "document", document_id, context)

    async def _restore_document(self, document_id: uuid.UUID, context: BulkContext) -> None:
        document = await self._get_document(document_id)
        if document.is_active:
            return
        document.is_active = True
        document.archived_at = None
        await self.session.flush()
        await self.session.refresh(document)
        await self._log(EventType.DOCUMENT_RESTORED, "document", document_id, context)

    async def _delete_document(self, document_id: uuid.UUID, context: BulkContext) -> None:
        document = await self._get_document(document_id)
        if document.is_active:
            raise ConflictError(
                "Only archived documents can be permanently deleted",
                reason="protected-state",
            )
        storage_ref = document.storage_ref
        title = document.title
        await self.session.delete(document)
        await self.session.flush()
        if storage_ref:
            schedule_blob_delete(self.session, self.storage, storage_ref)
        await self._log(EventType.DOCUMENT_DELETED, "document", document_id, context, title=title)

    # Submissions

    async def _approve_submission(self, submission_id: uuid.UUID, context: BulkContext) -> None:
        submission = await self.store.get(submission_id)
        if submission.status != SubmissionStatus.PENDING:
            raise InvalidStateError(
                f"Only pending submissions can be approved (currently {SubmissionStatus(submission.status).value})",
                reason="ineligible-state",
            )
        await self.review_machine.review(
            submission_id,
            context.actor,
            ReviewDecision.APPROVE,
            comment=context.comment,
        )

    async def _delete_submission(self, submission_id: uuid.UUID, context: BulkContext) -> None:
        await self.store.delete(submission_id, context.actor)
