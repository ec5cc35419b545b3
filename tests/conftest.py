"""
tests.conftest

Shared fixtures: settings pointing at a per-test SQLite file, a running app, a service-level
session factory and controllable clocks.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from datetime import datetime, timedelta

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from authnexus.api.app import create_app
from authnexus.api.deps import clock_dep
from authnexus.clock import epoch_seconds, utcnow
from authnexus.db.models import init_db
from authnexus.db.session import create_engine, create_sessionmaker
from authnexus.services.token_issuer import TokenIssuer
from authnexus.settings import Settings

PASSWORD = "Sup3r$ecret"


class FakeClock:
    """Naive-UTC clock for the issuer; only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = (start or utcnow()).replace(microsecond=0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class EpochClock:
    """Epoch-seconds clock for the guardian."""

    def __init__(self, start: float) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds



class RecordingNotifier:
    """Keeps the links the issuer hands off, newest last."""

    def __init__(self) -> None:
        self.verify_links: list[str] = []
        self.reset_links: list[str] = []

    async def email_verification_requested(
        self, *, email: str, username: str, verify_url: str
    ) -> None:
        self.verify_links.append(verify_url)

    async def password_reset_requested(self, *, email: str, username: str, reset_url: str) -> None:
        self.reset_links.append(reset_url)


def token_from(link: str) -> str:
    return link.rsplit("/", 1)[-1]

@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        env="test",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'authnexus.db'}",
        jwt_secret="test-secret-0123456789abcdef0123456789",
        log_level="WARNING",
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def epoch_clock(clock: FakeClock) -> EpochClock:
    return EpochClock(epoch_seconds(clock.now))


@pytest_asyncio.fixture
async def session_factory(settings: Settings) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine = create_engine(settings)
    await init_db(engine)
    try:
        yield create_sessionmaker(engine)
    finally:
        await engine.dispose()


@pytest.fixture
def issuer_factory(session_factory, settings: Settings, clock: FakeClock):
    def _make(session: AsyncSession, **kwargs) -> TokenIssuer:
        return TokenIssuer(session=session, settings=settings, clock=clock, **kwargs)

    return _make


@pytest_asyncio.fixture
async def app(settings: Settings) -> AsyncIterator[FastAPI]:
    app = create_app(settings=settings)
    # httpx's ASGITransport does not run the lifespan; drive it explicitly.
    async with app.router.lifespan_context(app):
        yield app


@pytest_asyncio.fixture
async def api(app: FastAPI) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def frozen_app(app: FastAPI, clock: FakeClock) -> FastAPI:
    app.dependency_overrides[clock_dep] = lambda: clock
    return app


async def register(
    api: httpx.AsyncClient,
    *,
    username: str = "alice",
    email: str = "alice@example.com",
    password: str = PASSWORD,
) -> httpx.Response:
    r = await api.post(
        "/auth/register",
        json={
            "username": username,
            "email": email,
            "password": password,
            "confirmPassword": password,
        },
    )
    assert r.status_code == 201, r.text
    return r
