"""
Submission Store - append-only persistence of versioned submissions.

Version numbers are assigned as max(existing) + 1 per logical unit. The
unique constraint on (research_id, unit_type, part_key, version) is the
serialization point: a concurrent writer that takes the same number makes
our SAVEPOINT fail, and we recompute and retry.
"""

import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import AsyncIterator, List, Optional
from zoneinfo import ZoneInfo

from sqlalchemy import Select, and_, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from thesis_tracker.config import Settings, get_settings
from thesis_tracker.engines.submissions.resolver import clean_part_name, normalize_part_name
from thesis_tracker.kernel.errors import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from thesis_tracker.kernel.events.event_store import EventStore
from thesis_tracker.kernel.identity.context import RequestContext, UserRole
from thesis_tracker.kernel.models.event_log import EventType
from thesis_tracker.kernel.models.research import ResearchProject
from thesis_tracker.kernel.models.submission import (
    ComplianceFormType,
    Submission,
    SubmissionStatus,
    UnitType,
)
from thesis_tracker.kernel.storage.base import Storage, StoredFileMetadata
from thesis_tracker.kernel.storage.cleanup import schedule_blob_delete
from thesis_tracker.logging_config import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class UnitKey:
    """Identifies a logical unit. unit_type may arrive as a raw string."""

    research_id: uuid.UUID
    unit_type: UnitType | str
    part_name: Optional[str] = None


@dataclass
class UploadedFile:
    """File payload as received from the transport layer."""

    filename: str
    content_type: str
    data: bytes


@dataclass
class SubmissionMetadata:
    """Optional descriptive fields supplied with an upload."""

    title: Optional[str] = None
    form_type: Optional[ComplianceFormType | str] = None


@dataclass
class SubmissionFilters:
    """
    Filters for listing a research project's submissions.

    Date bounds are inclusive. A plain ``date`` covers that whole calendar
    day in the research timezone; naive datetimes are read in that timezone.
    """

    unit_type: Optional[UnitType | str] = None
    part_name: Optional[str] = None
    status: Optional[SubmissionStatus | str] = None
    uploaded_from: Optional[date | datetime] = None
    uploaded_to: Optional[date | datetime] = None
    search: Optional[str] = None


def coerce_unit_type(value: UnitType | str) -> UnitType:
    """Parse a unit type, raising ValidationError for unknown values."""
    try:
        return UnitType(value)
    except ValueError:
        raise ValidationError(
            f"Unknown unit type: {value!r}",
            reason="invalid-unit-type",
            details={"allowed": [u.value for u in UnitType]},
        ) from None


def _lower_bound(value: date | datetime, tz: tzinfo) -> datetime:
    if isinstance(value, datetime):
        bound = value if value.tzinfo else value.replace(tzinfo=tz)
    else:
        bound = datetime.combine(value, time.min, tzinfo=tz)
    return bound.astimezone(timezone.utc)


def _upper_bound(value: date | datetime, tz: tzinfo) -> tuple[datetime, bool]:
    """Return (bound, inclusive)."""
    if isinstance(value, datetime):
        bound = value if value.tzinfo else value.replace(tzinfo=tz)
        return bound.astimezone(timezone.utc), True
    bound = datetime.combine(value + timedelta(days=1), time.min, tzinfo=tz)
    return bound.astimezone(timezone.utc), False


class SubmissionQuery:
    """
    Lazy, restartable listing of submissions.

    Nothing runs until iterated; each ``async for`` re-executes the query,
    so the same object can be consumed more than once.
    """

    def __init__(self, session: AsyncSession, statement: Select):
        self.session = session
        self.statement = statement

    async def __aiter__(self) -> AsyncIterator[Submission]:
        result = await self.session.execute(self.statement)
        for submission in result.scalars():
            yield submission

    async def all(self) -> List[Submission]:
        return [s async for s in self]


class SubmissionStore:
    """Creates, reads, lists and deletes submission versions."""

    def __init__(
        self,
        session: AsyncSession,
        storage: Storage,
        settings: Optional[Settings] = None,
    ):
        self.session = session
        self.storage = storage
        self.settings = settings or get_settings()
        self.event_store = EventStore(session)

    async def create(
        self,
        unit_key: UnitKey,
        uploader: RequestContext,
        file: UploadedFile,
        metadata: Optional[SubmissionMetadata] = None,
    ) -> Submission:
        """
        Store a new version of a unit. Status is always pending.

        Raises:
            ValidationError: unknown unit type, bad form type, missing or oversized file
            NotFoundError: research project does not exist
            PermissionDeniedError: student uploading to a project they are not part of
            ConflictError: version could not be assigned after retries
        """
        metadata = metadata or SubmissionMetadata()
        unit_type = coerce_unit_type(unit_key.unit_type)
        self._validate_file(file)
        form_type = self._coerce_form_type(unit_type, metadata.form_type)

        research = await self.session.get(ResearchProject, unit_key.research_id)
        if research is None:
            raise NotFoundError("research", unit_key.research_id)
        self._check_membership(research, uploader)

        part_name = clean_part_name(unit_key.part_name)
        if part_name is None and form_type is not None:
            # Each compliance form type is versioned independently
            part_name = form_type.value
        part_key = normalize_part_name(part_name)

        storage_ref = await self.storage.store(
            file.data,
            StoredFileMetadata(
                filename=file.filename,
                content_type=file.content_type,
                extra={"research_id": str(research.id), "unit_type": unit_type.value},
            ),
        )

        try:
            submission = await self._insert_next_version(
                research_id=research.id,
                unit_type=unit_type,
                part_name=part_name,
                part_key=part_key,
                fields=dict(
                    title=(metadata.title or "").strip() or None,
                    form_type=form_type,
                    filename=file.filename,
                    content_type=file.content_type,
                    file_size=len(file.data),
                    storage_ref=storage_ref,
                    uploaded_by=uploader.user_id,
                    status=SubmissionStatus.PENDING,
                ),
            )
        except Exception:
            await self.storage.delete(storage_ref)
            raise

        await self.event_store.log(
            event_type=EventType.SUBMISSION_CREATED,
            entity_type="submission",
            entity_id=submission.id,
            user_id=uploader.user_id,
            payload={
                "research_id": research.id,
                "unit_type": unit_type,
                "part_name": part_name,
                "version": submission.version,
                "file_name": file.filename,
                "file_size": len(file.data),
            },
            ip_address=uploader.ip_address,
        )
        logger.info(
            "Submission created",
            extra={
                "submission_id": str(submission.id),
                "research_id": str(research.id),
                "unit_type": unit_type.value,
                "part_key": part_key,
                "version": submission.version,
            },
        )
        return submission

    async def get(self, submission_id: uuid.UUID) -> Submission:
        """Fetch one submission or raise NotFoundError."""
        submission = await self.session.get(Submission, submission_id)
        if submission is None:
            raise NotFoundError("submission", submission_id)
        return submission

    def list_by_research(
        self,
        research_id: uuid.UUID,
        filters: Optional[SubmissionFilters] = None,
        tz: Optional[tzinfo] = None,
    ) -> SubmissionQuery:
        """Build a lazy listing of a project's submissions. Ordering is unspecified."""
        filters = filters or SubmissionFilters()
        tz = tz or ZoneInfo(self.settings.default_timezone)

        conditions = [Submission.research_id == research_id]
        if filters.unit_type:
            conditions.append(Submission.unit_type == coerce_unit_type(filters.unit_type).value)
        if filters.status:
            try:
                status = SubmissionStatus(filters.status)
            except ValueError:
                raise ValidationError(
                    f"Unknown status filter: {filters.status!r}",
                    reason="invalid-status",
                ) from None
            conditions.append(Submission.status == status.value)
        if filters.part_name and filters.part_name.strip():
            conditions.append(Submission.part_name.icontains(filters.part_name.strip(), autoescape=True))
        if filters.uploaded_from is not None:
            conditions.append(Submission.uploaded_at >= _lower_bound(filters.uploaded_from, tz))
        if filters.uploaded_to is not None:
            bound, inclusive = _upper_bound(filters.uploaded_to, tz)
            conditions.append(
                Submission.uploaded_at <= bound if inclusive else Submission.uploaded_at < bound
            )
        if filters.search and filters.search.strip():
            term = filters.search.strip()
            conditions.append(
                or_(
                    Submission.filename.icontains(term, autoescape=True),
                    Submission.part_name.icontains(term, autoescape=True),
                    Submission.title.icontains(term, autoescape=True),
                )
            )

        return SubmissionQuery(self.session, select(Submission).where(and_(*conditions)))

    async def delete(self, submission_id: uuid.UUID, requester: RequestContext) -> None:
        """
        Remove a non-approved submission. Its stored files are queued for
        deletion after the surrounding transaction commits.

        Raises:
            NotFoundError: unknown id
            ConflictError: the submission is approved
            PermissionDeniedError: a student deleting someone else's upload
        """
        submission = await self.get(submission_id)
        if submission.status == SubmissionStatus.APPROVED:
            raise ConflictError(
                "Approved submissions cannot be deleted",
                reason="protected-state",
                details={"submission_id": str(submission_id)},
            )
        if requester.role == UserRole.STUDENT and submission.uploaded_by != requester.user_id:
            raise PermissionDeniedError(
                "You can only delete submissions that you uploaded",
                reason="not-owner",
            )

        refs = [submission.storage_ref, *(submission.review_attachments or [])]
        payload = {
            "research_id": submission.research_id,
            "unit_type": submission.unit_type,
            "part_name": submission.part_name,
            "version": submission.version,
            "status": submission.status,
        }

        await self.session.delete(submission)
        await self.session.flush()

        await self.event_store.log(
            event_type=EventType.SUBMISSION_DELETED,
            entity_type="submission",
            entity_id=submission_id,
            user_id=requester.user_id,
            payload=payload,
            ip_address=requester.ip_address,
        )
        for ref in refs:
            schedule_blob_delete(self.session, self.storage, ref)

        logger.info("Submission deleted", extra={"submission_id": str(submission_id)})

    async def _next_version(
        self,
        research_id: uuid.UUID,
        unit_type: UnitType,
        part_key: str,
    ) -> int:
        result = await self.session.execute(
            select(func.max(Submission.version)).where(
                and_(
                    Submission.research_id == research_id,
                    Submission.unit_type == unit_type.value,
                    Submission.part_key == part_key,
                )
            )
        )
        return (result.scalar_one_or_none() or 0) + 1

    async def _insert_next_version(
        self,
        research_id: uuid.UUID,
        unit_type: UnitType,
        part_name: Optional[str],
        part_key: str,
        fields: dict,
    ) -> Submission:
        attempts = max(1, self.settings.version_assign_retries)
        for attempt in range(1, attempts + 1):
            version = await self._next_version(research_id, unit_type, part_key)
            submission = Submission(
                research_id=research_id,
                unit_type=unit_type.value,
                part_name=part_name,
                part_key=part_key,
                version=version,
                **fields,
            )
            try:
                async with self.session.begin_nested():
                    self.session.add(submission)
            except IntegrityError:
                logger.warning(
                    "Version collision, retrying",
                    extra={
                        "research_id": str(research_id),
                        "unit_type": unit_type.value,
                        "part_key": part_key,
                        "version": version,
                        "attempt": attempt,
                    },
                )
                continue
            return submission

        raise ConflictError(
            "Could not assign a version number; too many concurrent uploads",
            reason="version-conflict",
            details={"unit_type": unit_type.value, "part_key": part_key},
        )

    def _validate_file(self, file: Optional[UploadedFile]) -> None:
        if file is None or not (file.filename or "").strip() or not (file.content_type or "").strip():
            raise ValidationError("File name and content type are required", reason="missing-file-metadata")
        if not file.data:
            raise ValidationError("Uploaded file is empty", reason="missing-file-metadata")
        if len(file.data) > self.settings.max_upload_bytes:
            raise ValidationError(
                "Uploaded file is too large",
                reason="file-too-large",
                details={"max_bytes": self.settings.max_upload_bytes},
            )

    @staticmethod
    def _coerce_form_type(
        unit_type: UnitType,
        form_type: Optional[ComplianceFormType | str],
    ) -> Optional[ComplianceFormType]:
        if form_type is None or form_type == "":
            return None
        if unit_type != UnitType.COMPLIANCE_FORM:
            raise ValidationError("Form type only applies to compliance forms", reason="invalid-form-type")
        try:
            return ComplianceFormType(form_type)
        except ValueError:
            raise ValidationError(
                f"Unknown compliance form type: {form_type!r}",
                reason="invalid-form-type",
                details={"allowed": [f.value for f in ComplianceFormType]},
            ) from None

    @staticmethod
    def _check_membership(research: ResearchProject, uploader: RequestContext) -> None:
        if uploader.role != UserRole.STUDENT:
            return
        if str(uploader.user_id) not in {str(s) for s in (research.student_ids or [])}:
            raise PermissionDeniedError(
                "You are not a student on this research project",
                reason="not-member",
            )
