"""
authnexus.services.notifications

Outbound notification boundary for account links (email verification, password reset).

Responsibilities:
- Define the interface the issuer uses to hand off a link carrying a one-time token.
- Provide a log-only default; real delivery (SMTP, queue) plugs in behind the protocol.
"""

from __future__ import annotations

from typing import Protocol

from authnexus.observability.logging import get_logger

log = get_logger(__name__)


class AccountNotifier(Protocol):
    async def email_verification_requested(
        self, *, email: str, username: str, verify_url: str
    ) -> None: ...

    async def password_reset_requested(
        self, *, email: str, username: str, reset_url: str
    ) -> None: ...


def mask_link(url: str) -> str:
    # The trailing path segment is the one-time token.
    base, sep, token = url.rpartition("/")
    return f"{base}/[redacted]" if sep and token else url


class LoggingNotifier:
    """Records that a link was issued without ever logging the token it carries."""

    async def email_verification_requested(
        self, *, email: str, username: str, verify_url: str
    ) -> None:
        log.info("email_verification_link", username=username, link=mask_link(verify_url))

    async def password_reset_requested(self, *, email: str, username: str, reset_url: str) -> None:
        log.info("password_reset_link", username=username, link=mask_link(reset_url))
