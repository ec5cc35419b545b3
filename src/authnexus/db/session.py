"""
authnexus.db.session

Async SQLAlchemy engine and session helpers for the principal store.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from authnexus.settings import Settings


def create_engine(settings: Settings) -> AsyncEngine:
    kwargs: dict[str, object] = {"pool_pre_ping": True}
    if settings.database_url.startswith("sqlite"):
        # SQLite has no row locks; give concurrent writers time instead of failing fast.
        kwargs["connect_args"] = {"timeout": 30}
    return create_async_engine(settings.database_url, **kwargs)


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Rows stay readable after commit: the issuer returns the user it just committed.
    return async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


@asynccontextmanager
async def session_scope(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    """
    One unit of work. The issuer commits explicitly; anything left pending when an
    error escapes is rolled back so a failed rotation never half-applies.
    """

    async with session_factory() as session:
        try:
            yield session
        except BaseException:
            await session.rollback()
            raise
