"""
Database configuration.

Async engine and session factory shared by the application.
"""

from collections.abc import AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from ledger_engine.config.settings import settings


def create_engine(url: str | None = None, **kwargs) -> AsyncEngine:
    """
    Create async engine.

    Args:
        url: Database URL, defaults to settings.database_url
        **kwargs: Extra create_async_engine options

    Returns:
        AsyncEngine instance
    """
    url = url or settings.database_url
    if url.startswith("postgresql"):
        kwargs.setdefault("pool_size", 10)
        kwargs.setdefault("max_overflow", 20)
        kwargs.setdefault("pool_pre_ping", True)
    return create_async_engine(url, echo=settings.database_echo, **kwargs)


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create session factory bound to engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def create_task_engine() -> AsyncEngine:
    """Create engine for isolated dramatiq tasks (no shared pool)."""
    return create_async_engine(
        settings.database_url,
        echo=False,
        poolclass=NullPool,
    )


async_engine = create_engine()
async_session_maker = create_session_maker(async_engine)


async def get_session() -> AsyncIterator[AsyncSession]:
    """
    Yield a session and close it afterwards.

    Yields:
        AsyncSession
    """
    async with async_session_maker() as session:
        yield session
