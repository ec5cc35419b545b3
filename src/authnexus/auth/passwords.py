"""
authnexus.auth.passwords

Password hashing (argon2id).

Responsibilities:
- Hash new passwords.
- Verify a candidate against a stored hash without leaking timing information.
- Enforce the password policy used at registration and reset.
"""

from __future__ import annotations

import re

from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHash, VerificationError

_hasher = PasswordHasher(type=Type.ID)

_POLICY: tuple[tuple[str, str], ...] = (
    (r"[A-Z]", "Must contain at least one uppercase letter"),
    (r"[a-z]", "Must contain at least one lowercase letter"),
    (r"[0-9]", "Must contain at least one number"),
    (r"[^A-Za-z0-9]", "Must contain at least one special character"),
)

MIN_PASSWORD_LENGTH = 8


def hash_password(password: str) -> str:
    return _hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return _hasher.verify(password_hash, password)
    except (InvalidHash, VerificationError):
        return False


def password_policy_violations(password: str) -> list[str]:
    problems: list[str] = []
    if len(password) < MIN_PASSWORD_LENGTH:
        problems.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    problems.extend(msg for pattern, msg in _POLICY if not re.search(pattern, password))
    return problems
