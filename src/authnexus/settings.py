"""
authnexus.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide strongly-typed, env-driven settings for the issuer and the client guardian.
- Hide secrets from repr/logging (e.g., JWT secret).
- Offer a cached settings instance for dependency injection.
"""

from __future__ import annotations

from datetime import timedelta
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    One settings object shared by both halves:
    - Issuer: JWT signing, token lifetimes, lockout policy, persistence
    - Guardian: API base url, refresh timeout, failure policy, token cache location
    """

    model_config = SettingsConfigDict(env_prefix="AUTHNEXUS_", case_sensitive=False)

    # Environment controls toggle behavior like auto-init DB tables.
    env: Literal["dev", "test", "prod"] = "dev"
    service_name: str = "authnexus"
    log_level: str = "INFO"

    api_host: str = "0.0.0.0"
    api_port: int = 8800

    # Token signing
    jwt_alg: str = "HS256"
    jwt_issuer: str = "authnexus"
    jwt_audience: str = "authnexus-client"
    jwt_secret: str = Field(default="dev-secret-change-me", repr=False)

    # Token lifetimes
    access_token_ttl_minutes: int = Field(default=24 * 60, ge=1)
    refresh_token_ttl_days: int = Field(default=30, ge=1)

    # Credential checks
    max_login_attempts: int = Field(default=5, ge=1)
    lockout_minutes: int = Field(default=30, ge=1)
    password_reset_ttl_minutes: int = Field(default=60, ge=1)
    email_verification_ttl_hours: int = Field(default=24, ge=1)
    frontend_url: str = "http://localhost:5173"

    # Persistence
    database_url: str = "sqlite+aiosqlite:///./authnexus.db"

    # Client guardian
    api_base_url: str = "http://localhost:8800"
    refresh_timeout_seconds: float = Field(default=10.0, gt=0)
    logout_on_network_error: bool = True
    token_cache_path: str | None = None

    @property
    def access_token_ttl(self) -> timedelta:
        return timedelta(minutes=self.access_token_ttl_minutes)

    @property
    def refresh_token_ttl(self) -> timedelta:
        return timedelta(days=self.refresh_token_ttl_days)

    @property
    def lockout_window(self) -> timedelta:
        return timedelta(minutes=self.lockout_minutes)

    @property
    def password_reset_ttl(self) -> timedelta:
        return timedelta(minutes=self.password_reset_ttl_minutes)

    @property
    def email_verification_ttl(self) -> timedelta:
        return timedelta(hours=self.email_verification_ttl_hours)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Cache avoids re-parsing env vars for each request dependency.
    return Settings()


# --- Module Notes -----------------------------------------------------------
# The guardian only reads the client-side fields; a browser or CLI client can build
# its own Settings from the same AUTHNEXUS_* variables without any server secrets.
