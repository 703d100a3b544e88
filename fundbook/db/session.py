"""Async database session management using SQLAlchemy."""

import logging
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from fundbook.core.config import get_settings
from fundbook.core.exceptions import StorageFailure

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_session_maker: async_sessionmaker[AsyncSession] | None = None


def get_async_engine() -> AsyncEngine:
    """Return the process-wide async database engine.

    Uses asyncpg driver for PostgreSQL.
    """
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = create_async_engine(
            settings.database_url,
            echo=settings.DEBUG,
            pool_pre_ping=True,
        )
    return _engine


def get_async_session_maker() -> async_sessionmaker[AsyncSession]:
    """Return the async session maker bound to the shared engine."""
    global _session_maker
    if _session_maker is None:
        _session_maker = async_sessionmaker(
            get_async_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_maker


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that provides an async database session.

    Yields an async session and ensures proper cleanup after use.
    Use this as a FastAPI dependency for database operations.
    """
    async_session_maker = get_async_session_maker()
    async with async_session_maker() as session:
        try:
            yield session
        finally:
            await session.close()


@asynccontextmanager
async def transaction(session: AsyncSession, operation: str) -> AsyncIterator[AsyncSession]:
    """Run a block in one database transaction.

    Commits when the block exits cleanly and rolls back otherwise. Database
    errors are re-raised as StorageFailure; application errors pass through.
    """
    try:
        async with session.begin():
            yield session
    except SQLAlchemyError as exc:
        logger.error("Transaction failed during %s: %s", operation, exc)
        raise StorageFailure(operation) from exc
