"""
Pytest fixtures for thesis tracker tests.

Each test gets its own file-backed SQLite database (in-memory SQLite is
per-connection, and NullPool hands every session a new connection).
"""

import os
import tempfile
import uuid
from typing import AsyncGenerator

# Configure the app before any thesis_tracker import reads settings
_tmpdir = tempfile.mkdtemp(prefix="thesis-tracker-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_tmpdir, 'app.db')}"
os.environ["UPLOAD_DIR"] = os.path.join(_tmpdir, "uploads")
os.environ["SECRET_KEY"] = "test-secret-key-that-is-long-enough-for-hs256"
os.environ["ENVIRONMENT"] = "test"

from thesis_tracker.config import get_settings

get_settings.cache_clear()

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from thesis_tracker.database import create_engine_for, get_db
from thesis_tracker.engines.submissions.store import SubmissionStore
from thesis_tracker.kernel.identity.context import RequestContext, UserRole
from thesis_tracker.kernel.models import Base, ResearchProject, ResearchStatus
from thesis_tracker.kernel.storage import InMemoryStorage, commit_and_purge, discard_blob_deletes, get_storage


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Fresh SQLite database per test."""
    engine = create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(db_engine) -> async_sessionmaker:
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def student() -> RequestContext:
    return RequestContext(user_id=uuid.uuid4(), role=UserRole.STUDENT, ip_address="127.0.0.1")


@pytest.fixture
def other_student() -> RequestContext:
    return RequestContext(user_id=uuid.uuid4(), role=UserRole.STUDENT)


@pytest.fixture
def adviser() -> RequestContext:
    return RequestContext(user_id=uuid.uuid4(), role=UserRole.ADVISER)


@pytest_asyncio.fixture
async def research(db_session: AsyncSession, student, other_student, adviser) -> ResearchProject:
    """An approved research project with two student members."""
    project = ResearchProject(
        title="Effects of Peer Tutoring on Grade 10 Mathematics",
        adviser_id=adviser.user_id,
        student_ids=[str(student.user_id), str(other_student.user_id)],
        status=ResearchStatus.APPROVED,
    )
    db_session.add(project)
    await db_session.commit()
    return project


@pytest.fixture
def store(db_session, storage) -> SubmissionStore:
    return SubmissionStore(db_session, storage)


@pytest_asyncio.fixture
async def client(session_maker, storage) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to the per-test database and in-memory storage."""
    from thesis_tracker.main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_maker() as session:
            try:
                yield session
                await commit_and_purge(session)
            except Exception:
                discard_blob_deletes(session)
                await session.rollback()
                raise
            finally:
                await session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.pop(get_db, None)
        app.dependency_overrides.pop(get_storage, None)
