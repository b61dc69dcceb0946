"""
Local filesystem and in-memory storage adapters.
"""

import re
import uuid
from pathlib import Path
from typing import Dict

import aiofiles
import aiofiles.os

from thesis_tracker.kernel.storage.base import StorageError, StoredFileMetadata
from thesis_tracker.logging_config import get_logger

logger = get_logger(__name__)

LOCAL_PREFIX = "local:"
MEMORY_PREFIX = "memory:"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def _safe_filename(filename: str) -> str:
    name = _UNSAFE_CHARS.sub("_", Path(filename).name).strip("._")
    return name or "file"


class LocalFileStorage:
    """Stores blobs under a root directory. Refs look like ``local:<relative path>``."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def _resolve(self, ref: str) -> Path:
        if not ref.startswith(LOCAL_PREFIX):
            raise StorageError(f"Not a local storage reference: {ref}")
        path = (self.root / ref[len(LOCAL_PREFIX):]).resolve()
        if self.root.resolve() not in path.parents:
            raise StorageError(f"Reference escapes storage root: {ref}")
        return path

    async def store(self, data: bytes, metadata: StoredFileMetadata) -> str:
        relative = Path(uuid.uuid4().hex[:2]) / f"{uuid.uuid4().hex}_{_safe_filename(metadata.filename)}"
        path = self.root / relative

        await aiofiles.os.makedirs(path.parent, exist_ok=True)
        async with aiofiles.open(path, "wb") as f:
            await f.write(data)
        return f"{LOCAL_PREFIX}{relative.as_posix()}"

    async def retrieve(self, ref: str) -> bytes:
        path = self._resolve(ref)
        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except FileNotFoundError as exc:
            raise StorageError(f"Blob not found: {ref}") from exc

    async def delete(self, ref: str) -> None:
        path = self._resolve(ref)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            logger.warning("Blob already gone", extra={"storage_ref": ref})


class InMemoryStorage:
    """Dict-backed storage for tests and ephemeral runs."""

    def __init__(self):
        self.blobs: Dict[str, bytes] = {}

    async def store(self, data: bytes, metadata: StoredFileMetadata) -> str:
        ref = f"{MEMORY_PREFIX}{uuid.uuid4().hex}/{_safe_filename(metadata.filename)}"
        self.blobs[ref] = data
        return ref

    async def retrieve(self, ref: str) -> bytes:
        try:
            return self.blobs[ref]
        except KeyError as exc:
            raise StorageError(f"Blob not found: {ref}") from exc

    async def delete(self, ref: str) -> None:
        self.blobs.pop(ref, None)
