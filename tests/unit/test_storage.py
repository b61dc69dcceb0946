"""Unit tests for the filesystem storage adapter."""

import pytest

from thesis_tracker.kernel.storage import LocalFileStorage, StorageError, StoredFileMetadata

PDF = b"%PDF-1.4 chapter"


@pytest.fixture
def local_storage(tmp_path):
    return LocalFileStorage(tmp_path / "uploads")


def meta(filename="chapter1.pdf"):
    return StoredFileMetadata(filename=filename, content_type="application/pdf")


class TestLocalFileStorage:
    async def test_store_retrieve_delete(self, local_storage, tmp_path):
        ref = await local_storage.store(PDF, meta())

        assert ref.startswith("local:")
        assert ref.endswith("_chapter1.pdf")
        assert await local_storage.retrieve(ref) == PDF
        assert len(list((tmp_path / "uploads").rglob("*.pdf"))) == 1

        await local_storage.delete(ref)

        assert not list((tmp_path / "uploads").rglob("*.pdf"))
        with pytest.raises(StorageError):
            await local_storage.retrieve(ref)

    async def test_unsafe_filename_is_sanitized(self, local_storage):
        ref = await local_storage.store(PDF, meta("../../etc/Kapitel 1.pdf"))
        assert ".." not in ref
        assert ref.endswith("_Kapitel_1.pdf")

    async def test_reference_outside_root_is_rejected(self, local_storage):
        with pytest.raises(StorageError):
            await local_storage.retrieve("local:../../etc/passwd")
        with pytest.raises(StorageError):
            await local_storage.delete("memory:abc/file.pdf")

    async def test_deleting_missing_blob_is_tolerated(self, local_storage):
        ref = await local_storage.store(PDF, meta())
        await local_storage.delete(ref)
        await local_storage.delete(ref)
