"""
Deferred blob removal.

Rows and blobs cannot share a transaction, so deleting a blob while the row
deletion may still roll back would leave restored rows pointing at nothing.
Deletes are queued on the session instead and carried out only after the
commit succeeds.

Usage:
    schedule_blob_delete(session, storage, submission.storage_ref)
    ...
    await commit_and_purge(session)
"""

from typing import List, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from thesis_tracker.kernel.storage.base import Storage, StorageError
from thesis_tracker.logging_config import get_logger

logger = get_logger(__name__)

_PENDING_KEY = "pending_blob_deletes"


def _pending(session: AsyncSession) -> List[Tuple[Storage, str]]:
    return session.info.setdefault(_PENDING_KEY, [])


def schedule_blob_delete(session: AsyncSession, storage: Storage, ref: str) -> None:
    """Queue ``ref`` for deletion once the session's transaction commits."""
    if ref:
        _pending(session).append((storage, ref))


def pending_blob_refs(session: AsyncSession) -> List[str]:
    return [ref for _, ref in _pending(session)]


def discard_blob_deletes(session: AsyncSession, keep: int = 0) -> None:
    """Forget queued deletes past the first ``keep`` (their rows were rolled back)."""
    del _pending(session)[keep:]


async def purge_deleted_blobs(session: AsyncSession) -> List[str]:
    """
    Delete every queued blob. Call only after a successful commit.

    A blob that cannot be removed is left orphaned and logged; its row is
    already gone, so there is nothing to roll back. Returns the refs that
    could not be removed.
    """
    queued = list(_pending(session))
    discard_blob_deletes(session)

    orphaned: List[str] = []
    for storage, ref in queued:
        try:
            await storage.delete(ref)
        except StorageError as exc:
            logger.warning("Blob delete failed", extra={"storage_ref": ref, "error": str(exc)})
            orphaned.append(ref)
    return orphaned


async def commit_and_purge(session: AsyncSession) -> List[str]:
    """Commit, then remove the blobs whose rows the commit deleted."""
    await session.commit()
    return await purge_deleted_blobs(session)
