"""Small builders shared by the test modules."""

from thesis_tracker.engines.submissions.store import SubmissionStore, UnitKey, UploadedFile
from thesis_tracker.kernel.identity.context import RequestContext
from thesis_tracker.kernel.identity.jwt import get_jwt_manager


def make_file(
    filename: str = "chapter.pdf",
    data: bytes = b"%PDF-1.4 draft",
    content_type: str = "application/pdf",
) -> UploadedFile:
    return UploadedFile(filename=filename, content_type=content_type, data=data)


async def submit(
    store: SubmissionStore,
    research_id,
    uploader,
    unit_type="chapter1",
    part_name=None,
    filename="chapter.pdf",
):
    """Create a submission with a small PDF payload."""
    return await store.create(
        UnitKey(research_id=research_id, unit_type=unit_type, part_name=part_name),
        uploader,
        make_file(filename=filename),
    )


def auth_headers(context: RequestContext) -> dict:
    token = get_jwt_manager().create_access_token(context.user_id, context.role.value)
    return {"Authorization": f"Bearer {token}"}
