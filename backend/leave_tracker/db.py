"""Engine and session factory for the SQL persistence backend.

Only used when ``persistence_backend == "sql"``. The repository opens one
short session per call, so the factory never autoflushes and keeps loaded
rows usable after commit.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from leave_tracker.config import Settings, get_settings
from leave_tracker.models import SQLModel

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def build_engine(settings: Settings) -> AsyncEngine:
    return create_async_engine(settings.database_url, echo=settings.debug, pool_pre_ping=True)


def get_engine() -> AsyncEngine:
    """Process-wide engine for the configured database."""
    global _engine
    if _engine is None:
        _engine = build_engine(get_settings())
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(get_engine(), expire_on_commit=False, autoflush=False)
    return _session_factory


async def create_tables(engine: AsyncEngine | None = None) -> None:
    """Create the users, leave request, TOIL and audit tables if missing."""
    target = engine or get_engine()
    async with target.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("Ensured tables: %s", ", ".join(sorted(SQLModel.metadata.tables)))


async def dispose_engine() -> None:
    global _engine, _session_factory
    if _engine is None:
        return
    await _engine.dispose()
    logger.info("Disposed database engine")
    _engine = None
    _session_factory = None
