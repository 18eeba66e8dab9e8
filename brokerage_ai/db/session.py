"""
Session helpers for the fact store, workers, and scripts.

The API process shares the module-level ``AsyncSessionLocal``. Anything
that runs its own event loop (a Celery task under ``asyncio.run()``, a CLI
script) builds a private engine with ``create_session_factory`` and
disposes it when done.

Usage:
    engine, session_factory = create_session_factory()
    try:
        store = SqlFactStore(session_factory, embedding_dimension=settings.embedding_dimension)
        ...
    finally:
        await engine.dispose()
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from brokerage_ai.core.config import settings


def create_session_factory(
    url: str | None = None,
    **engine_options,
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Private engine plus session factory, configured like the shared one."""
    engine_options.setdefault("echo", False)
    engine_options.setdefault("pool_pre_ping", True)
    engine = create_async_engine(url or settings.db_url, **engine_options)
    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    return engine, session_factory


@asynccontextmanager
async def transaction(session: AsyncSession) -> AsyncGenerator[AsyncSession, None]:
    """
    Context manager for explicit transaction control.

    Commits on successful completion, rolls back on any exception.
    """
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
