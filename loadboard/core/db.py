import asyncio
import logging
import re
from collections.abc import AsyncGenerator

from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from loadboard.core.config import get_settings
from loadboard.models.base import Base
import loadboard.models  # noqa: F401 ensure models register with Base.metadata

logger = logging.getLogger(__name__)

settings = get_settings()


def get_async_database_url(url: str) -> str:
    """Convert database URL to async-compatible format using psycopg driver."""
    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+psycopg://", 1)
    elif url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+psycopg://", 1)

    if "channel_binding=" in url:
        url = re.sub(r'[&?]channel_binding=[^&]*', '', url)
        url = url.replace('?&', '?').rstrip('?')

    return url


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {}
    return {
        "pool_pre_ping": True,  # Verify connections before using
        "pool_recycle": 3600,   # Recycle connections after 1 hour
        "pool_timeout": 10,
        "max_overflow": 10,
        "connect_args": {"connect_timeout": 10},
    }


def enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    """SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection."""

    @event.listens_for(engine.sync_engine, "connect")
    def _set_pragma(dbapi_connection, _):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def serialize_sqlite_writers(engine: AsyncEngine) -> None:
    """Start every SQLite transaction with BEGIN IMMEDIATE.

    SQLite has no row locks and ignores FOR UPDATE, so the write lock is taken
    up front instead. A second transaction waits on the busy timeout until the
    first one commits, then reads what it wrote.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _take_over_begin(dbapi_connection, _):
        # Stop the driver from issuing its own deferred BEGIN.
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


database_url = get_async_database_url(settings.database_url)

engine: AsyncEngine = create_async_engine(
    database_url,
    future=True,
    echo=settings.debug,
    **_engine_options(database_url),
)
if database_url.startswith("sqlite"):
    enable_sqlite_foreign_keys(engine)
    serialize_sqlite_writers(engine)

AsyncSessionFactory = async_sessionmaker(
    bind=engine,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    # Leaving the context without commit rolls back whatever the request did.
    async with AsyncSessionFactory() as session:
        yield session


async def init_database() -> None:
    """Create all tables. In production use Alembic migrations instead."""
    logger.info("[DB] Initializing database tables...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("[DB] Database tables initialized")


async def check_database_connection() -> bool:
    """Test database connection with timeout."""

    async def _test_connection():
        async with engine.connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            result.fetchone()

    try:
        await asyncio.wait_for(_test_connection(), timeout=10.0)
        return True
    except asyncio.TimeoutError:
        logger.error("[DB] Database connection test timed out after 10 seconds")
        return False
    except Exception as e:
        logger.error(f"[DB] Database connection test failed: {type(e).__name__}: {e}")
        return False
