"""
File storage collaborator interface.

The core only needs store/retrieve/delete; whether bytes land on local disk
or a cloud drive is the adapter's business.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Protocol, runtime_checkable


@dataclass
class StoredFileMetadata:
    """Metadata handed to the storage adapter alongside the bytes."""

    filename: str
    content_type: str
    extra: Dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class Storage(Protocol):
    """Blob storage used for submission files and review attachments."""

    async def store(self, data: bytes, metadata: StoredFileMetadata) -> str:
        """Persist bytes and return an opaque storage reference."""
        ...

    async def retrieve(self, ref: str) -> bytes:
        """Return the bytes behind a reference."""
        ...

    async def delete(self, ref: str) -> None:
        """Remove the blob behind a reference. Missing blobs are ignored."""
        ...


class StorageError(Exception):
    """Raised by adapters when a blob cannot be read or written."""
