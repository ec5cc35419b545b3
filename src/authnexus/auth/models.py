"""
authnexus.auth.models

Auth domain models.

Responsibilities:
- Define the authenticated identity type (`Principal`) injected into endpoints.
- Define the role enumeration and the token pair handed to callers.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime


class Role(enum.StrEnum):
    # Stored in DB and embedded in tokens; treat as stable API contract.
    user = "USER"
    admin = "ADMIN"
    super_admin = "SUPER_ADMIN"


@dataclass(frozen=True, slots=True)
class Principal:
    """
    Authenticated caller identity, rebuilt from a verified access token.
    """

    id: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role in (Role.admin, Role.super_admin)


@dataclass(frozen=True, slots=True)
class TokenPair:
    access_token: str
    refresh_token: str
    access_expires_at: datetime
    refresh_expires_at: datetime


# --- Module Notes -----------------------------------------------------------
# Keep these models minimal; they cross the API, service and client boundaries.
