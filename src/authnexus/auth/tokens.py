"""
authnexus.auth.tokens

JWT issuing and validation helpers.

Responsibilities:
- Issue access and refresh tokens with a stable claim set.
- Decode and validate tokens against an injected clock (strict claim requirements).
- Peek at claims without verification for the client-side expiry pre-check.

Note:
- Tokens are HS256 with a server-held secret; clients can read but never verify them.
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from jwt import InvalidTokenError

from authnexus.clock import epoch_seconds
from authnexus.settings import Settings


class TokenKind(enum.StrEnum):
    access = "access"
    refresh = "refresh"


@dataclass(frozen=True, slots=True)
class JwtConfig:
    # Algorithm/issuer/audience are enforced during decoding.
    alg: str
    issuer: str
    audience: str
    secret: str

    @classmethod
    def from_settings(cls, settings: Settings) -> JwtConfig:
        return cls(
            alg=settings.jwt_alg,
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            secret=settings.jwt_secret,
        )


@dataclass(frozen=True, slots=True)
class IssuedToken:
    token: str
    # Naive UTC, matching how timestamps are persisted.
    expires_at: datetime


class JwtValidationError(Exception):
    pass


def _epoch(moment: datetime) -> int:
    return int(epoch_seconds(moment))


def issue_token(
    *,
    cfg: JwtConfig,
    subject: str,
    role: str,
    kind: TokenKind,
    issued_at: datetime,
    ttl: timedelta,
) -> IssuedToken:
    iat = _epoch(issued_at)
    exp = iat + int(ttl.total_seconds())
    payload: dict[str, Any] = {
        "iss": cfg.issuer,
        "aud": cfg.audience,
        "sub": subject,
        "role": role,
        "token_kind": kind.value,
        "iat": iat,
        "exp": exp,
        # Two tokens minted in the same second for the same principal must still differ.
        "jti": uuid.uuid4().hex,
    }
    token = jwt.encode(payload, cfg.secret, algorithm=cfg.alg)
    expires_at = datetime.fromtimestamp(exp, tz=UTC).replace(tzinfo=None)
    return IssuedToken(token=token, expires_at=expires_at)


def decode_and_validate(
    *,
    cfg: JwtConfig,
    token: str,
    now: datetime,
    expected_kind: TokenKind,
) -> dict[str, Any]:
    try:
        # PyJWT checks signature, issuer and audience; time claims are checked below
        # against the caller's clock so tests and services share one notion of "now".
        payload = jwt.decode(
            token,
            cfg.secret,
            algorithms=[cfg.alg],
            issuer=cfg.issuer,
            audience=cfg.audience,
            options={
                "require": ["exp", "iat", "iss", "aud", "sub", "jti"],
                "verify_exp": False,
                "verify_iat": False,
                "verify_nbf": False,
            },
        )
    except InvalidTokenError as e:
        raise JwtValidationError(str(e)) from e

    if payload.get("token_kind") != expected_kind.value:
        raise JwtValidationError("unexpected token kind")
    now_epoch = _epoch(now)
    if int(payload["iat"]) > now_epoch:
        raise JwtValidationError("token issued in the future")
    if int(payload["exp"]) <= now_epoch:
        raise JwtValidationError("token expired")
    return payload


def read_claims_unverified(token: str) -> dict[str, Any]:
    try:
        return jwt.decode(token, options={"verify_signature": False})
    except InvalidTokenError as e:
        raise JwtValidationError(str(e)) from e


def is_expired(token: str, *, now: float) -> bool:
    """
    Client-side pre-check: True when `exp <= now` (epoch seconds).
    Tokens that cannot be decoded or carry no numeric `exp` count as expired.
    """

    try:
        exp = read_claims_unverified(token).get("exp")
    except JwtValidationError:
        return True
    if not isinstance(exp, (int, float)):
        return True
    return exp <= now


# --- Module Notes -----------------------------------------------------------
# Access tokens are validated with `decode_and_validate` alone (see `auth.deps`);
# refresh tokens additionally require the persisted digest check in the issuer.
