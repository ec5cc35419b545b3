"""
authnexus.api.app

FastAPI app factory for the AuthNexus issuer.

Responsibilities:
- Build the FastAPI application and register routers, middleware and error handlers.
- Initialize and dispose shared infrastructure (DB engine/session factory) via lifespan.
- Provide a single composition root where cross-cutting concerns live.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from authnexus import __version__
from authnexus.api.errors import register_exception_handlers
from authnexus.api.routers.auth import router as auth_router
from authnexus.api.routers.health import router as health_router
from authnexus.db.models import init_db
from authnexus.db.session import create_engine, create_sessionmaker
from authnexus.observability.logging import configure_logging, get_logger
from authnexus.observability.middleware import RequestContextMiddleware
from authnexus.settings import Settings

log = get_logger(__name__)


def create_app(*, settings: Settings) -> FastAPI:
    configure_logging(service_name=settings.service_name, level=settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        log.info("startup", env=settings.env)
        engine = create_engine(settings)
        app.state.engine = engine
        app.state.sessionmaker = create_sessionmaker(engine)
        if settings.env in ("dev", "test"):
            await init_db(engine)
        try:
            yield
        finally:
            await engine.dispose()
            log.info("shutdown")

    app = FastAPI(
        title="AuthNexus",
        version=__version__,
        docs_url="/docs",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(RequestContextMiddleware)
    register_exception_handlers(app)
    app.include_router(health_router, tags=["health"])
    app.include_router(auth_router)

    return app


# --- Module Notes -----------------------------------------------------------
# Tests drive the lifespan explicitly (`app.router.lifespan_context(app)`) because
# httpx's ASGITransport does not send lifespan events.
