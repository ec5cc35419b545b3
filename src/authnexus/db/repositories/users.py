"""
authnexus.db.repositories.users

Repository for `User` rows.

Responsibilities:
- Look up principals by id, identifier or reset-token digest (soft-deleted rows excluded).
- Persist refresh-token records, including the compare-and-set used by rotation.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import case, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from authnexus.auth.models import Role
from authnexus.db.models import User


class UserRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(
        self,
        *,
        username: str,
        email: str,
        password_hash: str,
        role: Role = Role.user,
    ) -> User:
        user = User(
            username=username,
            email=email,
            password_hash=password_hash,
            role=role,
            login_attempts=0,
            email_verified=False,
        )
        self._session.add(user)
        await self._session.flush()
        return user

    async def get(self, user_id: uuid.UUID) -> User | None:
        user = await self._session.get(User, user_id)
        if user is None or user.deleted_at is not None:
            return None
        return user

    async def get_for_update(self, user_id: uuid.UUID) -> User | None:
        # Row lock on backends that support it (no-op on SQLite); rotation still relies
        # on `swap_refresh_token` for atomicity.
        stmt = (
            select(User)
            .where(User.id == user_id, User.deleted_at.is_(None))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def get_by_identifier(self, identifier: str) -> User | None:
        stmt = select(User).where(
            or_(User.email == identifier, User.username == identifier),
            User.deleted_at.is_(None),
        )
        return (await self._session.execute(stmt)).scalars().first()

    async def exists_with(self, *, email: str | None = None, username: str | None = None) -> bool:
        # Includes soft-deleted rows: their unique identifiers stay reserved.
        clauses = []
        if email is not None:
            clauses.append(User.email == email)
        if username is not None:
            clauses.append(User.username == username)
        if not clauses:
            return False
        stmt = select(User.id).where(or_(*clauses)).limit(1)
        return (await self._session.execute(stmt)).scalar_one_or_none() is not None

    async def get_by_reset_token_hash(self, token_hash: str) -> User | None:
        stmt = select(User).where(
            User.password_reset_token_hash == token_hash,
            User.deleted_at.is_(None),
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def get_by_verification_token_hash(self, token_hash: str) -> User | None:
        stmt = select(User).where(
            User.email_verification_token_hash == token_hash,
            User.deleted_at.is_(None),
        )
        return (await self._session.execute(stmt)).scalar_one_or_none()

    async def record_failed_login(
        self, user_id: uuid.UUID, *, max_attempts: int, lock_until: datetime
    ) -> tuple[int, datetime | None]:
        """
        Increment the failure counter in the database and lock the account once it
        reaches `max_attempts`. Returns the new `(login_attempts, locked_until)`.
        """

        # Right-hand sides see the pre-update row, so both columns move together.
        attempts = User.login_attempts + 1
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(
                login_attempts=attempts,
                locked_until=case(
                    (attempts >= max_attempts, lock_until), else_=User.locked_until
                ),
            )
            .returning(User.login_attempts, User.locked_until)
            .execution_options(synchronize_session=False)
        )
        row = (await self._session.execute(stmt)).one()
        return row.login_attempts, row.locked_until

    async def store_refresh_token(
        self, user: User, *, token_hash: str, expires_at: datetime
    ) -> None:
        # Unconditional overwrite: any previous refresh token becomes unusable.
        user.refresh_token_hash = token_hash
        user.refresh_token_expires = expires_at
        await self._session.flush()

    async def swap_refresh_token(
        self,
        user_id: uuid.UUID,
        *,
        expected_hash: str,
        token_hash: str,
        expires_at: datetime,
        now: datetime,
    ) -> bool:
        """
        Replace the refresh record only if it still holds `expected_hash`.
        Returns False when another rotation (or a revoke) got there first.
        """

        stmt = (
            update(User)
            .where(User.id == user_id, User.refresh_token_hash == expected_hash)
            .values(
                refresh_token_hash=token_hash,
                refresh_token_expires=expires_at,
                last_active=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def clear_refresh_token(self, user: User) -> None:
        user.refresh_token_hash = None
        user.refresh_token_expires = None
        await self._session.flush()

    async def soft_delete(self, user: User, *, now: datetime) -> None:
        user.deleted_at = now
        user.refresh_token_hash = None
        user.refresh_token_expires = None
        await self._session.flush()


# --- Module Notes -----------------------------------------------------------
# Repositories stay thin; lockout and rotation policy live in `services.token_issuer`.
