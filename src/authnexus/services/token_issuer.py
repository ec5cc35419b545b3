"""
authnexus.services.token_issuer

Token issuer: credential checks, token minting, rotation and revocation.

Responsibilities:
- Validate credentials with lockout after repeated failures.
- Mint access/refresh token pairs and persist the refresh record (one per principal).
- Rotate on every refresh use; reject replayed, mismatched or expired refresh tokens.
- Revoke on logout, password reset and account removal.
- Issue and redeem the one-time email verification and password reset tokens.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from authnexus.auth.models import TokenPair
from authnexus.auth.passwords import hash_password, password_policy_violations, verify_password
from authnexus.auth.tokens import (
    JwtConfig,
    JwtValidationError,
    TokenKind,
    decode_and_validate,
    issue_token,
)
from authnexus.clock import Clock, utcnow
from authnexus.db.models import User
from authnexus.db.repositories.users import UserRepo
from authnexus.errors import (
    AccountLocked,
    AuthenticationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from authnexus.observability.logging import get_logger
from authnexus.services.notifications import AccountNotifier
from authnexus.settings import Settings

log = get_logger(__name__)

INVALID_CREDENTIALS = "Invalid credentials"
INVALID_REFRESH_TOKEN = "Invalid refresh token"


def _digest(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _parse_id(raw: object) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(raw))
    except ValueError:
        return None


class TokenIssuer:
    def __init__(
        self,
        *,
        session: AsyncSession,
        settings: Settings,
        clock: Clock = utcnow,
        notifier: AccountNotifier | None = None,
    ) -> None:
        self._session = session
        self._settings = settings
        self._clock = clock
        self._notifier = notifier
        self._users = UserRepo(session)

    def _link(self, route: str, token: str) -> str:
        return f"{self._settings.frontend_url.rstrip('/')}/{route}/{token}"

    # -- credentials -----------------------------------------------------------

    async def register(self, *, username: str, email: str, password: str) -> User:
        problems = password_policy_violations(password)
        if problems:
            raise ValidationError("Password does not meet requirements", {"password": problems})
        if await self._users.exists_with(email=email):
            raise ConflictError("Email already registered", {"field": "email"})
        if await self._users.exists_with(username=username):
            raise ConflictError("Username already taken", {"field": "username"})

        user = await self._users.create(
            username=username,
            email=email,
            password_hash=hash_password(password),
        )
        token = secrets.token_hex(32)
        user.email_verification_token_hash = _digest(token)
        user.email_verification_expires = self._clock() + self._settings.email_verification_ttl
        await self._session.commit()
        log.info("principal_registered", principal_id=str(user.id))

        if self._notifier is not None:
            await self._notifier.email_verification_requested(
                email=user.email,
                username=user.username,
                verify_url=self._link("verify-email", token),
            )
        return user

    async def verify_email(self, token: str) -> User:
        user = await self._users.get_by_verification_token_hash(_digest(token))
        if user is None:
            raise ValidationError("Invalid verification token")
        expires = user.email_verification_expires
        if expires is None or expires <= self._clock():
            raise ValidationError("Verification token has expired")

        user.email_verified = True
        user.email_verification_token_hash = None
        user.email_verification_expires = None
        await self._session.commit()
        log.info("email_verified", principal_id=str(user.id))
        return user

    async def validate_credentials(self, identifier: str, secret: str) -> User:
        try:
            return await self._check_credentials(identifier, secret)
        except NotFoundError as e:
            # Unknown identifiers look exactly like a wrong password to the caller.
            raise AuthenticationError(INVALID_CREDENTIALS) from e

    async def _check_credentials(self, identifier: str, secret: str) -> User:
        user = await self._users.get_by_identifier(identifier)
        if user is None:
            log.info("login_failed", reason="unknown_identifier")
            raise NotFoundError(INVALID_CREDENTIALS)

        now = self._clock()
        if user.is_locked(now):
            log.info("login_rejected_locked", principal_id=str(user.id))
            raise AccountLocked()

        if not verify_password(secret, user.password_hash):
            principal_id = str(user.id)
            # Incremented in the database so concurrent failures are all counted.
            attempts, locked_until = await self._users.record_failed_login(
                user.id,
                max_attempts=self._settings.max_login_attempts,
                lock_until=now + self._settings.lockout_window,
            )
            # The counter must survive the failed request.
            await self._session.commit()
            if attempts >= self._settings.max_login_attempts:
                log.warning(
                    "account_locked",
                    principal_id=principal_id,
                    attempts=attempts,
                    locked_until=locked_until.isoformat() if locked_until else None,
                )
            else:
                log.info("login_failed", principal_id=principal_id, attempts=attempts)
            raise AuthenticationError(INVALID_CREDENTIALS)

        user.login_attempts = 0
        user.locked_until = None
        user.last_login = now
        user.last_active = now
        await self._session.flush()
        return user

    async def login(self, *, identifier: str, secret: str) -> tuple[User, TokenPair]:
        user = await self.validate_credentials(identifier, secret)
        pair = await self.mint(user)
        await self._session.commit()
        log.info("login_succeeded", principal_id=str(user.id))
        return user, pair

    # -- tokens ----------------------------------------------------------------

    def _issue_pair(self, user: User) -> TokenPair:
        cfg = JwtConfig.from_settings(self._settings)
        now = self._clock()
        access = issue_token(
            cfg=cfg,
            subject=str(user.id),
            role=user.role.value,
            kind=TokenKind.access,
            issued_at=now,
            ttl=self._settings.access_token_ttl,
        )
        refresh = issue_token(
            cfg=cfg,
            subject=str(user.id),
            role=user.role.value,
            kind=TokenKind.refresh,
            issued_at=now,
            ttl=self._settings.refresh_token_ttl,
        )
        return TokenPair(
            access_token=access.token,
            refresh_token=refresh.token,
            access_expires_at=access.expires_at,
            refresh_expires_at=refresh.expires_at,
        )

    async def mint(self, user: User) -> TokenPair:
        """
        Issue a fresh pair and overwrite the persisted refresh record.
        The caller owns the commit.
        """

        pair = self._issue_pair(user)
        await self._users.store_refresh_token(
            user,
            token_hash=_digest(pair.refresh_token),
            expires_at=pair.refresh_expires_at,
        )
        return pair

    async def rotate(self, presented: str) -> TokenPair:
        now = self._clock()
        try:
            claims = decode_and_validate(
                cfg=JwtConfig.from_settings(self._settings),
                token=presented,
                now=now,
                expected_kind=TokenKind.refresh,
            )
        except JwtValidationError as e:
            log.info("refresh_rejected", reason="invalid_token")
            raise AuthenticationError(INVALID_REFRESH_TOKEN) from e

        user_id = _parse_id(claims.get("sub"))
        user = await self._users.get_for_update(user_id) if user_id is not None else None
        if user is None or user.refresh_token_hash is None:
            log.info("refresh_rejected", reason="no_active_record")
            raise AuthenticationError(INVALID_REFRESH_TOKEN)

        presented_hash = _digest(presented)
        if not hmac.compare_digest(presented_hash, user.refresh_token_hash):
            # A superseded token was replayed; surfaced as an ordinary auth failure.
            log.warning("refresh_rejected", reason="token_mismatch", principal_id=str(user.id))
            raise AuthenticationError(INVALID_REFRESH_TOKEN)

        if user.refresh_token_expires is None or user.refresh_token_expires <= now:
            log.info("refresh_rejected", reason="expired", principal_id=str(user.id))
            raise AuthenticationError(INVALID_REFRESH_TOKEN)

        pair = self._issue_pair(user)
        swapped = await self._users.swap_refresh_token(
            user.id,
            expected_hash=presented_hash,
            token_hash=_digest(pair.refresh_token),
            expires_at=pair.refresh_expires_at,
            now=now,
        )
        if not swapped:
            principal_id = str(user.id)
            # Rollback expires `user`; nothing below may touch its attributes.
            await self._session.rollback()
            log.warning("refresh_rejected", reason="lost_race", principal_id=principal_id)
            raise AuthenticationError(INVALID_REFRESH_TOKEN)

        await self._session.commit()
        log.info("tokens_rotated", principal_id=str(user.id))
        return pair

    async def revoke(self, user: User) -> None:
        # Idempotent: clearing an already-empty record is a no-op.
        if user.refresh_token_hash is None and user.refresh_token_expires is None:
            return
        await self._users.clear_refresh_token(user)
        log.info("refresh_token_revoked", principal_id=str(user.id))

    async def logout(self, principal_id: str) -> None:
        user_id = _parse_id(principal_id)
        user = await self._users.get(user_id) if user_id is not None else None
        if user is not None:
            await self.revoke(user)
        await self._session.commit()

    # -- account ---------------------------------------------------------------

    async def profile(self, principal_id: str) -> User:
        user_id = _parse_id(principal_id)
        user = await self._users.get(user_id) if user_id is not None else None
        if user is None:
            raise AuthenticationError("User not found")
        return user

    async def remove_account(self, principal_id: str) -> None:
        user = await self.profile(principal_id)
        await self._users.soft_delete(user, now=self._clock())
        await self._session.commit()
        log.info("principal_removed", principal_id=principal_id)

    async def request_password_reset(self, email: str) -> str | None:
        """
        Returns the raw reset token (for the notifier) or None when the email is
        unknown. Callers must answer identically in both cases.
        """

        user = await self._users.get_by_identifier(email)
        if user is None or user.email != email:
            return None

        token = secrets.token_hex(32)
        user.password_reset_token_hash = _digest(token)
        user.password_reset_expires = self._clock() + self._settings.password_reset_ttl
        await self._session.commit()

        if self._notifier is not None:
            await self._notifier.password_reset_requested(
                email=user.email,
                username=user.username,
                reset_url=self._link("reset-password", token),
            )
        log.info("password_reset_requested", principal_id=str(user.id))
        return token

    async def reset_password(self, *, token: str, password: str) -> None:
        user = await self._users.get_by_reset_token_hash(_digest(token))
        if user is None:
            raise ValidationError("Invalid or expired password reset token")
        if user.password_reset_expires is None or user.password_reset_expires <= self._clock():
            raise ValidationError("Password reset token has expired")

        problems = password_policy_violations(password)
        if problems:
            raise ValidationError("Password does not meet requirements", {"password": problems})

        user.password_hash = hash_password(password)
        user.password_reset_token_hash = None
        user.password_reset_expires = None
        # Any outstanding session must end with the old password.
        await self.revoke(user)
        await self._session.commit()
        log.info("password_reset_completed", principal_id=str(user.id))


# --- Module Notes -----------------------------------------------------------
# Rotation is read-validate-swap: the conditional UPDATE in `UserRepo.swap_refresh_token`
# is what makes two concurrent rotations of one token resolve to a single winner.
