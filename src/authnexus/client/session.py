"""
authnexus.client.session

Request pipeline built on the token guardian.

Responsibilities:
- Log in and persist the issued token pair.
- Send requests through `TokenGuardian.attach` / `on_response` with at most one replay.
- Log out, always clearing local state even if the server call fails.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

import httpx

from authnexus.client.guardian import (
    RequestDescriptor,
    TokenGuardian,
    response_json,
    token_pair_from,
)
from authnexus.client.token_cache import FileTokenCache, TokenCache
from authnexus.errors import AuthNexusError, NetworkError, error_from_payload
from authnexus.observability.logging import get_logger
from authnexus.settings import Settings

log = get_logger(__name__)


class AuthClient:
    def __init__(self, *, http: httpx.AsyncClient, guardian: TokenGuardian) -> None:
        self._http = http
        self._guardian = guardian
        self._owns_http = False

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        http: httpx.AsyncClient | None = None,
        cache: TokenCache | None = None,
        clock: Callable[[], float] = time.time,
        on_logout: Callable[[str], None] | None = None,
    ) -> AuthClient:
        owns_http = http is None
        if http is None:
            http = httpx.AsyncClient(base_url=settings.api_base_url)
        if cache is None and settings.token_cache_path:
            cache = FileTokenCache(settings.token_cache_path)
        guardian = TokenGuardian.from_settings(
            settings, http=http, cache=cache, clock=clock, on_logout=on_logout
        )
        client = cls(http=http, guardian=guardian)
        client._owns_http = owns_http
        return client

    @property
    def guardian(self) -> TokenGuardian:
        return self._guardian

    async def __aenter__(self) -> AuthClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def login(self, identifier: str, secret: str) -> dict[str, Any]:
        try:
            response = await self._http.post(
                "/auth/login", json={"identifier": identifier, "secret": secret}
            )
        except httpx.TransportError as e:
            raise NetworkError(f"Login failed: {e.__class__.__name__}") from e

        body = response_json(response)
        if response.status_code != 200:
            raise error_from_payload(response.status_code, body)
        pair = token_pair_from(body)
        if pair is None:
            raise NetworkError("Invalid login response structure")

        access, refresh = pair
        self._guardian.store(access_token=access, refresh_token=refresh)
        return body.get("principal") or {}

    async def logout(self) -> None:
        try:
            if self._guardian.authenticated:
                await self.request("POST", "/auth/logout")
        except AuthNexusError as e:
            # Local state is cleared regardless; the server record expires on its own.
            log.info("logout_call_failed", kind=e.kind)
        finally:
            self._guardian.clear()

    async def request(self, method: str, url: str, **options: Any) -> httpx.Response:
        request = await self._guardian.attach(
            RequestDescriptor(method=method, url=url, options=options)
        )
        while True:
            response = await self._send(request)
            replay = await self._guardian.on_response(request, response)
            if replay is None:
                return response
            request = replay

    async def _send(self, request: RequestDescriptor) -> httpx.Response:
        try:
            return await self._http.request(request.method, request.url, **request.send_kwargs())
        except httpx.TransportError as e:
            raise NetworkError(f"Request failed: {e.__class__.__name__}") from e

    async def get(self, url: str, **options: Any) -> httpx.Response:
        return await self.request("GET", url, **options)

    async def post(self, url: str, **options: Any) -> httpx.Response:
        return await self.request("POST", url, **options)

    async def put(self, url: str, **options: Any) -> httpx.Response:
        return await self.request("PUT", url, **options)

    async def patch(self, url: str, **options: Any) -> httpx.Response:
        return await self.request("PATCH", url, **options)

    async def delete(self, url: str, **options: Any) -> httpx.Response:
        return await self.request("DELETE", url, **options)
