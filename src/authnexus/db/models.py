"""
authnexus.db.models

Persistence schema for principals.

Responsibilities:
- Define the `User` row: identity, credentials, refresh-token record and lockout state.
- Create the schema for dev/test runs (`init_db`).
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Enum, Index, String, Uuid as SAUuid
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from authnexus.auth.models import Role
from authnexus.clock import utcnow


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        SAUuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    username: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    email: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    role: Mapped[Role] = mapped_column(Enum(Role), nullable=False, default=Role.user)

    # Only a SHA-256 digest of the current refresh token is stored; one per principal.
    refresh_token_hash: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    refresh_token_expires: Mapped[datetime | None] = mapped_column(nullable=True)

    login_attempts: Mapped[int] = mapped_column(nullable=False, default=0)
    locked_until: Mapped[datetime | None] = mapped_column(nullable=True)

    password_reset_token_hash: Mapped[str | None] = mapped_column(
        String(64), nullable=True, index=True
    )
    password_reset_expires: Mapped[datetime | None] = mapped_column(nullable=True)

    email_verified: Mapped[bool] = mapped_column(nullable=False, default=False)
    email_verification_token_hash: Mapped[str | None] = mapped_column(
        String(64), nullable=True, index=True
    )
    email_verification_expires: Mapped[datetime | None] = mapped_column(nullable=True)

    last_login: Mapped[datetime | None] = mapped_column(nullable=True)
    last_active: Mapped[datetime | None] = mapped_column(nullable=True)

    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utcnow, onupdate=utcnow)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __table_args__ = (Index("ix_users_deleted_at", "deleted_at"),)

    def is_locked(self, now: datetime) -> bool:
        return self.locked_until is not None and self.locked_until > now

    def to_safe_dict(self) -> dict[str, object]:
        # Never expose hashes or token digests.
        return {
            "id": str(self.id),
            "username": self.username,
            "email": self.email,
            "role": self.role.value,
            "email_verified": self.email_verified,
            "last_login": self.last_login,
            "last_active": self.last_active,
            "created_at": self.created_at,
        }


async def init_db(engine: AsyncEngine) -> None:
    # Dev/test only; production schemas are managed out of band.
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# --- Module Notes -----------------------------------------------------------
# Soft-deleted rows keep their unique email/username; re-registration with the same
# identifiers is intentionally refused.
