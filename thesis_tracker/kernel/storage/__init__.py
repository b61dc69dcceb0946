"""Blob storage collaborators."""

from functools import lru_cache

from thesis_tracker.config import get_settings
from thesis_tracker.kernel.storage.base import Storage, StorageError, StoredFileMetadata
from thesis_tracker.kernel.storage.cleanup import (
    commit_and_purge,
    discard_blob_deletes,
    pending_blob_refs,
    purge_deleted_blobs,
    schedule_blob_delete,
)
from thesis_tracker.kernel.storage.local import InMemoryStorage, LocalFileStorage


@lru_cache
def get_storage() -> Storage:
    """Default storage adapter for the running service."""
    return LocalFileStorage(get_settings().upload_dir)


__all__ = [
    "Storage",
    "StorageError",
    "StoredFileMetadata",
    "LocalFileStorage",
    "InMemoryStorage",
    "get_storage",
    "schedule_blob_delete",
    "pending_blob_refs",
    "discard_blob_deletes",
    "purge_deleted_blobs",
    "commit_and_purge",
]
