"""
authnexus.api.schemas

Request/response models for the auth endpoints.

Responsibilities:
- Validate request bodies (malformed input becomes a ValidationError response).
- Serialize with camelCase field names on the wire.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator
from pydantic.alias_generators import to_camel

from authnexus.auth.models import TokenPair
from authnexus.db.models import User


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PrincipalOut(CamelModel):
    id: str
    username: str
    email: str
    role: str
    email_verified: bool = False
    last_login: datetime | None = None
    last_active: datetime | None = None
    created_at: datetime | None = None

    @classmethod
    def from_user(cls, user: User) -> PrincipalOut:
        return cls.model_validate(user.to_safe_dict())


class _PasswordConfirmation(CamelModel):
    password: str = Field(min_length=8, max_length=128)
    confirm_password: str

    @model_validator(mode="after")
    def _passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords don't match")
        return self


class RegisterRequest(_PasswordConfirmation):
    username: str = Field(min_length=3, max_length=20)
    email: EmailStr


class RegisterResponse(CamelModel):
    principal: PrincipalOut
    message: str = "Registration successful. Please check your email to verify your account."


class LoginRequest(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    identifier: str = Field(min_length=1, max_length=100)
    secret: str = Field(min_length=1, max_length=128)


class RefreshRequest(CamelModel):
    refresh_token: str = Field(min_length=1)


class TokenPairOut(CamelModel):
    access_token: str
    refresh_token: str

    @classmethod
    def from_pair(cls, pair: TokenPair) -> TokenPairOut:
        return cls(access_token=pair.access_token, refresh_token=pair.refresh_token)


class LoginResponse(TokenPairOut):
    principal: PrincipalOut


class PasswordResetRequest(CamelModel):
    email: EmailStr


class PasswordResetBody(_PasswordConfirmation):
    pass


class MessageResponse(CamelModel):
    message: str
