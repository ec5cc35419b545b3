"""
authnexus.client.guardian

Client-side token guardian.

Responsibilities:
- Attach the cached access token to outgoing requests, refreshing first when it has expired.
- Serialize concurrent refreshes into one call to `/auth/refresh` (single flight).
- Replay a request once after a 401, and force a logout when the session cannot be renewed.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any

import httpx

from authnexus.auth.tokens import is_expired
from authnexus.client.single_flight import SingleFlight
from authnexus.client.token_cache import CachedTokens, MemoryTokenCache, TokenCache
from authnexus.errors import (
    AuthenticationError,
    AuthNexusError,
    NetworkError,
    RefreshTimeout,
    error_from_payload,
)
from authnexus.observability.logging import get_logger
from authnexus.settings import Settings

log = get_logger(__name__)

# A request is sent at most twice: the original attempt and one replay after a refresh.
MAX_REPLAYS = 1

REFRESH_PATH = "/auth/refresh"


@dataclass(frozen=True, slots=True)
class RequestDescriptor:
    method: str
    url: str
    options: Mapping[str, Any] = field(default_factory=dict)
    token: str | None = None
    attempt: int = 0

    def with_token(self, token: str) -> RequestDescriptor:
        return replace(self, token=token)

    def replay(self, token: str) -> RequestDescriptor:
        return replace(self, token=token, attempt=self.attempt + 1)

    def send_kwargs(self) -> dict[str, Any]:
        kwargs = {k: v for k, v in self.options.items() if k != "headers"}
        headers = dict(self.options.get("headers") or {})
        if self.token is not None:
            headers["Authorization"] = f"Bearer {self.token}"
        kwargs["headers"] = headers
        return kwargs


def response_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def token_pair_from(body: Any) -> tuple[str, str] | None:
    """`(access, refresh)` from an issuer response body, or None when either is missing."""

    if not isinstance(body, dict):
        return None
    access, refresh = body.get("accessToken"), body.get("refreshToken")
    if not isinstance(access, str) or not isinstance(refresh, str) or not access or not refresh:
        return None
    return access, refresh


class TokenGuardian:
    def __init__(
        self,
        *,
        http: httpx.AsyncClient,
        cache: TokenCache | None = None,
        refresh_timeout: float = 10.0,
        logout_on_network_error: bool = True,
        clock: Callable[[], float] = time.time,
        on_logout: Callable[[str], None] | None = None,
    ) -> None:
        # `http` must not route through the guardian itself; refresh calls are sent raw.
        self._http = http
        self._cache = cache if cache is not None else MemoryTokenCache()
        self._refresh_timeout = refresh_timeout
        self._logout_on_network_error = logout_on_network_error
        self._clock = clock
        self._on_logout = on_logout
        self._flight: SingleFlight[str] = SingleFlight()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        http: httpx.AsyncClient,
        cache: TokenCache | None = None,
        clock: Callable[[], float] = time.time,
        on_logout: Callable[[str], None] | None = None,
    ) -> TokenGuardian:
        return cls(
            http=http,
            cache=cache,
            refresh_timeout=settings.refresh_timeout_seconds,
            logout_on_network_error=settings.logout_on_network_error,
            clock=clock,
            on_logout=on_logout,
        )

    @property
    def authenticated(self) -> bool:
        return self._cache.load() is not None

    @property
    def refreshing(self) -> bool:
        return self._flight.in_progress

    @property
    def access_token(self) -> str | None:
        tokens = self._cache.load()
        return tokens.access_token if tokens else None

    def is_expired(self, token: str) -> bool:
        return is_expired(token, now=self._clock())

    def store(self, *, access_token: str, refresh_token: str) -> None:
        if not access_token or not refresh_token:
            raise ValueError("Both tokens are required")
        self._cache.save(CachedTokens(access_token=access_token, refresh_token=refresh_token))

    def clear(self) -> None:
        self._cache.clear()

    async def attach(self, request: RequestDescriptor) -> RequestDescriptor:
        token = self.access_token
        if token is None:
            return request
        if self.is_expired(token):
            token = await self.ensure_fresh_token()
        return request.with_token(token)

    async def ensure_fresh_token(self) -> str:
        """
        Resolve with a new access token. Concurrent callers share one refresh call and
        its outcome; a failure rejects all of them with the same error.
        """

        return await self._flight.run(self._refresh)

    async def on_response(
        self, request: RequestDescriptor, response: httpx.Response
    ) -> RequestDescriptor | None:
        """
        Returns the descriptor to replay, or None when the response stands as is.
        """

        if response.status_code != 401 or request.token is None:
            return None
        if request.attempt >= MAX_REPLAYS:
            log.warning("replay_rejected", url=request.url, attempt=request.attempt)
            raise error_from_payload(401, response_json(response))

        current = self.access_token
        if current is not None and current != request.token and not self.is_expired(current):
            # Another flight already renewed the token this request was sent with.
            return request.replay(current)

        token = await self.ensure_fresh_token()
        return request.replay(token)

    async def _refresh(self) -> str:
        tokens = self._cache.load()
        if tokens is None:
            error: AuthNexusError = AuthenticationError("No refresh token found")
            self._handle_failure(error)
            raise error

        log.info("refresh_started")
        try:
            async with asyncio.timeout(self._refresh_timeout):
                response = await self._http.post(
                    REFRESH_PATH, json={"refreshToken": tokens.refresh_token}
                )
        except (TimeoutError, httpx.TimeoutException) as e:
            error = RefreshTimeout()
            self._handle_failure(error)
            raise error from e
        except httpx.TransportError as e:
            error = NetworkError(f"Token refresh failed: {e.__class__.__name__}")
            self._handle_failure(error)
            raise error from e

        body = response_json(response)
        if response.status_code != 200:
            error = error_from_payload(response.status_code, body)
            self._handle_failure(error)
            raise error

        pair = token_pair_from(body)
        if pair is None:
            error = NetworkError("Invalid token response structure")
            self._handle_failure(error)
            raise error

        access, refresh = pair
        self.store(access_token=access, refresh_token=refresh)
        log.info("refresh_succeeded")
        return access

    def _handle_failure(self, error: AuthNexusError) -> None:
        log.warning("refresh_failed", kind=error.kind, message=error.message)
        if isinstance(error, AuthenticationError) or (
            isinstance(error, NetworkError) and self._logout_on_network_error
        ):
            self._force_logout(reason=error.kind)

    def _force_logout(self, *, reason: str) -> None:
        self.clear()
        log.warning("forced_logout", reason=reason)
        if self._on_logout is not None:
            self._on_logout(reason)


# --- Module Notes -----------------------------------------------------------
# Failed refreshes are never retried here: the caller sees the error and decides
# whether to send the user back to login.
