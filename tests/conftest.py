"""
Pytest configuration and fixtures.

Every test gets its own in-memory SQLite database; HTTP tests talk to the
FastAPI app through httpx with ``get_db`` pointed at that database.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from loadboard.core.db import enable_sqlite_foreign_keys, get_db, serialize_sqlite_writers
from loadboard.main import app
from loadboard.models.base import Base
from loadboard.services.booking import BookingService
from loadboard.services.load import LoadService


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(bind=engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def file_session_factory(tmp_path):
    """Sessions on a real SQLite file, so separate sessions get separate connections."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'loadboard.db'}")
    enable_sqlite_foreign_keys(engine)
    serialize_sqlite_writers(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(bind=engine, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
def load_service(db):
    return LoadService(db)


@pytest.fixture
def booking_service(db, load_service):
    return BookingService(db, load_service)


@pytest_asyncio.fixture
async def client(session_factory):
    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()
