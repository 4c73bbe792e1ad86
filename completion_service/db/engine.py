"""PostgreSQL access for the completion store.

With DATABASE_URL set, every request gets one AsyncSession from
session_scope().  Each write path commits its own transaction through
PgStore.transaction() while its per-pair lock is held; session_scope()
commits whatever is left when the request ends.

Without DATABASE_URL, ``engine`` and ``async_session_factory`` are None and
the API serves from the in-memory store.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from completion_service.core.config import SETTINGS

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


engine: AsyncEngine | None = None
async_session_factory: async_sessionmaker[AsyncSession] | None = None

if SETTINGS.database_url:
    engine = create_async_engine(
        SETTINGS.database_url,
        echo=SETTINGS.is_dev,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
    )
    async_session_factory = async_sessionmaker(engine, expire_on_commit=False)


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """One request's session: committed when the block exits cleanly."""
    if async_session_factory is None:
        raise RuntimeError("DATABASE_URL is not configured; no session available")
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def database_status() -> str:
    """ok, degraded or not_configured, for the health endpoints."""
    if engine is None:
        return "not_configured"
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError):
        logger.warning("Database health check failed", exc_info=True)
        return "degraded"
    return "ok"


@asynccontextmanager
async def lifespan_db() -> AsyncIterator[None]:
    if engine is None:
        logger.info("DATABASE_URL unset; serving from the in-memory store")
        yield
        return

    logger.info("Completion store on %s", engine.url.render_as_string(hide_password=True))
    try:
        yield
    finally:
        await engine.dispose()
        logger.info("Database pool disposed")
