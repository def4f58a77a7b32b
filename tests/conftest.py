"""Shared test fixtures."""

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from homescreen_cms.engine.upload_resolver import UploadResolver
from homescreen_cms.models import Base

BASE_URL = "https://cms.example.com"


@pytest_asyncio.fixture
async def db_session_factory():
    """Session factory over a fresh in-memory database (shared via StaticPool)."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def session(db_session_factory):
    async with db_session_factory() as s:
        yield s


@pytest.fixture
def resolve_url():
    return UploadResolver(BASE_URL)


@pytest.fixture
def png_data_url():
    # 1x1 transparent PNG
    return (
        "data:image/png;base64,"
        "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
    )
