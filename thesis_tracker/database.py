"""
Database connection and session management.
Uses SQLAlchemy 2.0 async pattern.
"""

from typing import AsyncGenerator
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from thesis_tracker.config import get_settings
from thesis_tracker.kernel.storage.cleanup import commit_and_purge, discard_blob_deletes

settings = get_settings()


def configure_sqlite_engine(engine: AsyncEngine) -> None:
    """
    Attach SQLite connection hooks.

    pysqlite/aiosqlite emit their own BEGIN lazily, which breaks SAVEPOINT
    (``session.begin_nested()``). Disable the driver's transaction handling and
    emit BEGIN ourselves so nested transactions behave like PostgreSQL.

    BEGIN IMMEDIATE takes the write lock up front: concurrent writers queue on
    busy_timeout instead of failing to upgrade a read snapshot after reading
    max(version).
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        """Enable WAL mode + foreign keys on every new SQLite connection."""
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_engine_for(database_url: str, *, echo: bool = False) -> AsyncEngine:
    """Create an async engine with options suited to the database type."""
    if database_url.startswith("sqlite"):
        # NullPool: every session gets its own connection
        sqlite_engine = create_async_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=NullPool,
        )
        configure_sqlite_engine(sqlite_engine)
        return sqlite_engine

    # PostgreSQL settings with connection pooling
    return create_async_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
    )


engine = create_engine_for(settings.database_url, echo=settings.debug)

# Session factory
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that yields a request-scoped session (commit on success).

    Blobs queued for deletion are removed only after the commit succeeds.
    """
    async with async_session_maker() as session:
        try:
            yield session
            await commit_and_purge(session)
        except Exception:
            discard_blob_deletes(session)
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db() -> None:
    """Initialize database tables."""
    # Import Base from kernel models to ensure all models are registered
    from thesis_tracker.kernel.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
