"""Database session management."""

from __future__ import annotations

from pathlib import Path

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from mediasync.core.config import settings
from mediasync.db.base import Base


def get_database_url() -> str:
    """Get the database URL, ensuring a SQLite file's directory exists."""
    url = make_url(settings.database_url)
    if url.get_backend_name() == "sqlite" and url.database and url.database != ":memory:":
        Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    return settings.database_url


def _is_sqlite(database_url: str) -> bool:
    return make_url(database_url).get_backend_name() == "sqlite"


def create_engine_for(database_url: str) -> AsyncEngine:
    """Create an async engine, applying SQLite pragmas when relevant."""
    if not _is_sqlite(database_url):
        return create_async_engine(database_url, echo=settings.debug, pool_pre_ping=True)

    sqlite_engine = create_async_engine(
        database_url,
        echo=settings.debug,
        connect_args={
            "timeout": 30,  # Wait up to 30 seconds for locks
        },
    )

    # Enable WAL mode on each connection for better concurrency
    @event.listens_for(sqlite_engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.execute("PRAGMA busy_timeout=30000")
        cursor.close()

    return sqlite_engine


engine = create_engine_for(get_database_url())

# Create async session factory
async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def init_db(target: AsyncEngine | None = None) -> None:
    """Create all tables that do not exist yet."""
    # Import models so they register on Base.metadata
    import mediasync.db.models  # noqa: F401

    async with (target or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

