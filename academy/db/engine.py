"""PostgreSQL access for the progress and analytics repositories.

``engine`` and ``async_session_factory`` exist only when DATABASE_URL is
set; otherwise both are None and academy.api.dependencies wires the
in-memory repositories.  One request uses one session: progress writes
and their recomputation commit together or not at all.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from academy.core.config import SETTINGS

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base for every table in academy.db.tables."""


def build_engine(url: str) -> AsyncEngine:
    # Analytics scans hold a connection for the length of a report
    return create_async_engine(
        url,
        echo=SETTINGS.is_dev,
        pool_size=10,
        max_overflow=10,
        pool_pre_ping=True,
    )


engine: AsyncEngine | None = None
async_session_factory: async_sessionmaker[AsyncSession] | None = None
if SETTINGS.database_url:
    engine = build_engine(SETTINGS.database_url)
    async_session_factory = async_sessionmaker(engine, expire_on_commit=False)


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Yield a session that commits on clean exit and rolls back on error."""
    if async_session_factory is None:
        raise RuntimeError("DATABASE_URL is not configured")
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def lifespan_db() -> AsyncIterator[None]:
    if engine is None:
        logger.info("No DATABASE_URL configured, progress is kept in memory")
        yield
        return

    logger.info(
        "Database engine ready: %s", engine.url.render_as_string(hide_password=True)
    )
    try:
        yield
    finally:
        await engine.dispose()
        logger.info("Database engine disposed")
