"""
authnexus.api.routers.health

Liveness and readiness probes for the issuer.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from authnexus.api.deps import db_session
from authnexus.db.models import User
from authnexus.errors import AuthNexusError
from authnexus.observability.logging import get_logger

router = APIRouter()
log = get_logger(__name__)


class PrincipalStoreUnavailable(AuthNexusError):
    status_code = 503
    kind = "ServiceUnavailable"
    default_message = "Principal store unavailable"


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(session: AsyncSession = Depends(db_session)) -> dict[str, str]:
    # Tokens can only be issued once the users table is reachable, not just the database.
    try:
        await session.execute(select(User.id).limit(1))
    except SQLAlchemyError as e:
        log.error("principal_store_unreachable", error=e.__class__.__name__)
        raise PrincipalStoreUnavailable() from e
    return {"status": "ready"}
