"""
authnexus.api.deps

FastAPI dependency wiring for the API layer.

Responsibilities:
- Provide dependency functions for settings, clock, notifier and DB sessions.
- Encapsulate app.state access patterns (engine/sessionmaker).
"""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from authnexus.clock import Clock, utcnow
from authnexus.db.session import session_scope
from authnexus.services.notifications import AccountNotifier, LoggingNotifier
from authnexus.settings import Settings, get_settings


def settings_dep(request: Request) -> Settings:
    # The app is built with an explicit Settings object; fall back to env for bare routers.
    return getattr(request.app.state, "settings", None) or get_settings()


def clock_dep() -> Clock:
    # Overridden in tests to simulate the passage of time.
    return utcnow


def notifier_dep() -> AccountNotifier:
    # Overridden where real delivery is wired in.
    return LoggingNotifier()


def sessionmaker_from_app(request: Request) -> async_sessionmaker[AsyncSession]:
    # Created by the lifespan handler in `authnexus.api.app.create_app`.
    return request.app.state.sessionmaker  # type: ignore[attr-defined]


async def db_session(
    session_factory: async_sessionmaker[AsyncSession] = Depends(sessionmaker_from_app),
) -> AsyncIterator[AsyncSession]:
    # Commits are issued by the service layer; the scope only rolls back on error.
    async with session_scope(session_factory) as session:
        yield session
