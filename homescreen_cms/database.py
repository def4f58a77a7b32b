"""Database engine, session management, and table creation."""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from .config import CmsConfig
from .models.base import Base
from .utils.logging import get_logger

logger = get_logger("homescreen_cms.database")

_engine = None
_session_factory = None


def get_engine(config: CmsConfig):
    """Get or create the async database engine."""
    global _engine
    if _engine is None:
        kwargs = {"echo": config.debug, "future": True, "pool_pre_ping": True}
        if config.is_sqlite:
            kwargs["connect_args"] = {"timeout": 30}
        _engine = create_async_engine(config.database_url, **kwargs)
    return _engine


def get_session_factory(config: CmsConfig) -> async_sessionmaker[AsyncSession]:
    """Get or create the async session factory."""
    global _session_factory
    if _session_factory is None:
        engine = get_engine(config)
        _session_factory = async_sessionmaker(engine, expire_on_commit=False)
    return _session_factory


async def _enable_wal_mode(config: CmsConfig) -> None:
    """Enable WAL journal mode and performance PRAGMAs for SQLite."""
    if not config.is_sqlite or not config.db_wal_mode or ":memory:" in config.database_url:
        return
    engine = get_engine(config)
    async with engine.begin() as conn:
        await conn.execute(text("PRAGMA journal_mode=WAL"))
        await conn.execute(text(f"PRAGMA busy_timeout={config.db_busy_timeout}"))
        await conn.execute(text(f"PRAGMA synchronous={config.db_synchronous}"))
    logger.info(
        "sqlite_pragmas_applied",
        busy_timeout=config.db_busy_timeout,
        synchronous=config.db_synchronous,
    )


async def create_tables(config: CmsConfig) -> None:
    """Create all database tables and apply performance PRAGMAs."""
    engine = get_engine(config)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await _enable_wal_mode(config)


async def get_session(config: CmsConfig) -> AsyncSession:
    """Get a new async session."""
    factory = get_session_factory(config)
    async with factory() as session:
        yield session


async def close_engine() -> None:
    """Close the database engine."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
