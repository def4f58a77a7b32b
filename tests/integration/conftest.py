"""Integration test fixtures — in-memory app and async client."""

import os
import tempfile

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

# Force test config BEFORE any app imports
_TMP = tempfile.mkdtemp(prefix="homescreen-cms-tests-")
os.environ["DEBUG"] = "true"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["API_BASE_URL"] = "https://cms.example.com"
os.environ["UPLOAD_DIR"] = os.path.join(_TMP, "uploads")
os.environ["LOG_DIR"] = os.path.join(_TMP, "logs")
os.environ.pop("LAYOUT_WEBHOOK_URL", None)

import homescreen_cms.database as db_mod
import homescreen_cms.dependencies as dep_mod


def _reset_singletons():
    """Reset all module-level singletons so each test starts clean."""
    db_mod._engine = None
    db_mod._session_factory = None
    dep_mod._config_instance = None
    dep_mod._upload_resolver = None
    dep_mod._upload_store = None
    dep_mod._layout_reconciler = None
    dep_mod._layout_notifier = None


@pytest_asyncio.fixture
async def test_app():
    """Create test app with in-memory database (shared via StaticPool)."""
    _reset_singletons()

    # Create a shared in-memory engine using StaticPool
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # Inject into database module BEFORE app import
    db_mod._engine = engine
    db_mod._session_factory = async_sessionmaker(engine, expire_on_commit=False)

    # Force config singleton
    dep_mod.get_app_config()

    # Import app
    from homescreen_cms.models.base import Base
    from homescreen_cms.main import app

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield app

    await engine.dispose()
    _reset_singletons()


@pytest_asyncio.fixture
async def client(test_app):
    """Async HTTP client for testing."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
