"""
authnexus.auth.deps

FastAPI dependency functions for authentication and authorization.

Responsibilities:
- Convert a bearer access token into a typed `Principal` (stateless check only).
- Enforce roles via reusable dependency factories.
"""

from __future__ import annotations

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from authnexus.api.deps import clock_dep, settings_dep
from authnexus.auth.models import Principal, Role
from authnexus.auth.tokens import JwtConfig, JwtValidationError, TokenKind, decode_and_validate
from authnexus.clock import Clock
from authnexus.errors import AuthenticationError, ForbiddenError
from authnexus.settings import Settings

_bearer = HTTPBearer(auto_error=False)

# A super admin satisfies any admin requirement.
_IMPLIED: dict[Role, frozenset[Role]] = {
    Role.user: frozenset({Role.user}),
    Role.admin: frozenset({Role.user, Role.admin}),
    Role.super_admin: frozenset({Role.user, Role.admin, Role.super_admin}),
}


def verify_access_token(*, settings: Settings, token: str, clock: Clock) -> Principal:
    try:
        # Access tokens are self-verifying: signature + exp + kind, no lookup.
        payload = decode_and_validate(
            cfg=JwtConfig.from_settings(settings),
            token=token,
            now=clock(),
            expected_kind=TokenKind.access,
        )
    except JwtValidationError as e:
        raise AuthenticationError("Invalid or expired access token") from e

    subject = str(payload.get("sub", ""))
    if not subject:
        raise AuthenticationError("Invalid or expired access token")
    try:
        role = Role(payload.get("role"))
    except ValueError as e:
        raise AuthenticationError("Invalid or expired access token") from e
    return Principal(id=subject, role=role)


def get_principal(
    creds: HTTPAuthorizationCredentials | None = Depends(_bearer),
    settings: Settings = Depends(settings_dep),
    clock: Clock = Depends(clock_dep),
) -> Principal:
    if creds is None or not creds.credentials:
        raise AuthenticationError("Missing bearer token")
    return verify_access_token(settings=settings, token=creds.credentials, clock=clock)


def require_roles(*required: Role):
    required_set = frozenset(required)

    def _dep(principal: Principal = Depends(get_principal)) -> Principal:
        if not required_set.issubset(_IMPLIED[principal.role]):
            raise ForbiddenError("Insufficient role")
        return principal

    return _dep


# --- Module Notes -----------------------------------------------------------
# Role checks only read what the token encodes; finer-grained authorization belongs to
# the resource endpoints that consume these dependencies.
