"""
authnexus.clock

Time source used by the issuer and guardian.

Responsibilities:
- Provide a naive-UTC "now" for persistence and token claims.
- Give tests a single seam for simulated time.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    # Persist naive UTC timestamps for simplicity; production systems may use tz-aware types.
    return datetime.now(UTC).replace(tzinfo=None)


def epoch_seconds(moment: datetime) -> float:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.timestamp()
