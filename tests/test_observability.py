"""
tests.test_observability
"""

from __future__ import annotations

import pytest

from authnexus.observability.logging import redact_credentials
from authnexus.observability.middleware import loggable_path
from authnexus.services import notifications
from authnexus.services.notifications import LoggingNotifier, mask_link


def test_credentials_are_redacted() -> None:
    event = redact_credentials(
        None,
        "info",
        {"event": "refresh_started", "refresh_token": "abc", "principal_id": "u-1", "token": None},
    )
    assert event == {
        "event": "refresh_started",
        "refresh_token": "[redacted]",
        "principal_id": "u-1",
        "token": None,
    }


def test_reset_token_never_reaches_the_log_path() -> None:
    assert loggable_path("/auth/reset-password/abc123") == "/auth/reset-password/[redacted]"
    assert loggable_path("/auth/login") == "/auth/login"


@pytest.mark.asyncio
async def test_request_id_is_propagated(api) -> None:
    r = await api.get("/healthz", headers={"x-request-id": "req-42"})
    assert r.headers["x-request-id"] == "req-42"


def test_verification_token_never_reaches_the_log_path() -> None:
    assert loggable_path("/auth/verify-email/abc123") == "/auth/verify-email/[redacted]"


def test_notifier_links_are_masked() -> None:
    assert mask_link("http://app/reset-password/abc123") == "http://app/reset-password/[redacted]"
    assert mask_link("http://app/verify-email/") == "http://app/verify-email/"


class EventRecorder:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict]] = []

    def info(self, event: str, **fields) -> None:
        self.events.append((event, fields))


@pytest.mark.asyncio
async def test_logging_notifier_never_logs_the_token(monkeypatch) -> None:
    recorder = EventRecorder()
    monkeypatch.setattr(notifications, "log", recorder)
    notifier = LoggingNotifier()

    await notifier.password_reset_requested(
        email="alice@example.com", username="alice", reset_url="http://app/reset-password/abc123"
    )
    await notifier.email_verification_requested(
        email="alice@example.com", username="alice", verify_url="http://app/verify-email/def456"
    )

    assert [event for event, _ in recorder.events] == [
        "password_reset_link",
        "email_verification_link",
    ]
    assert "abc123" not in str(recorder.events)
    assert "def456" not in str(recorder.events)
