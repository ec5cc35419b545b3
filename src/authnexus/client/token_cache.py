"""
authnexus.client.token_cache

Local persisted copy of the current token pair.

Responsibilities:
- Store/load/clear the access + refresh token strings.
- Offer an in-memory cache (tests, short-lived scripts) and a durable JSON file cache.

Only `TokenGuardian` writes to a cache; everything else reads through the guardian.
"""

from __future__ import annotations

import abc
import json
import os
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class CachedTokens:
    access_token: str
    refresh_token: str


class TokenCache(abc.ABC):
    @abc.abstractmethod
    def load(self) -> CachedTokens | None: ...

    @abc.abstractmethod
    def save(self, tokens: CachedTokens) -> None: ...

    @abc.abstractmethod
    def clear(self) -> None: ...


class MemoryTokenCache(TokenCache):
    def __init__(self, tokens: CachedTokens | None = None) -> None:
        self._tokens = tokens

    def load(self) -> CachedTokens | None:
        return self._tokens

    def save(self, tokens: CachedTokens) -> None:
        self._tokens = tokens

    def clear(self) -> None:
        self._tokens = None


class FileTokenCache(TokenCache):
    """
    JSON file `{"access_token": ..., "refresh_token": ...}` readable only by the owner.
    A missing or unreadable file means "no tokens".
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> CachedTokens | None:
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return None
        if not isinstance(raw, dict):
            return None
        access, refresh = raw.get("access_token"), raw.get("refresh_token")
        if not isinstance(access, str) or not isinstance(refresh, str) or not access or not refresh:
            return None
        return CachedTokens(access_token=access, refresh_token=refresh)

    def save(self, tokens: CachedTokens) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_name(self._path.name + ".tmp")
        fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(
                {"access_token": tokens.access_token, "refresh_token": tokens.refresh_token}, fh
            )
        # Readers never observe a half-written pair.
        os.replace(tmp, self._path)

    def clear(self) -> None:
        self._path.unlink(missing_ok=True)
