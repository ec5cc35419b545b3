"""
tests.test_guardian

Guardian behaviour against a scripted issuer behind `httpx.MockTransport`.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from datetime import UTC, datetime, timedelta

import httpx
import pytest
import pytest_asyncio
from conftest import EpochClock

from authnexus.auth.tokens import JwtConfig, TokenKind, is_expired, issue_token
from authnexus.client import AuthClient, MemoryTokenCache, RequestDescriptor, TokenGuardian
from authnexus.client.token_cache import CachedTokens
from authnexus.errors import AuthenticationError, NetworkError, RefreshTimeout

CFG = JwtConfig(
    alg="HS256",
    issuer="authnexus",
    audience="authnexus-clients",
    secret="guardian-secret-0123456789abcdef0123",
)


class FakeIssuer:
    """Answers `/auth/refresh` and guarded endpoints; knobs switch failure modes."""

    def __init__(self, clock: EpochClock) -> None:
        self.clock = clock
        self.refresh_calls = 0
        self.refresh_delay = 0.01
        self.refresh_status = 200
        self.refresh_body: dict | None = None
        self.refresh_exc: Exception | None = None
        self.reject_all = False
        self.valid: set[str] = set()
        self.seen: list[tuple[str, str | None]] = []

    def mint(self, kind: TokenKind = TokenKind.access, ttl: float = 3600) -> str:
        issued_at = datetime.fromtimestamp(self.clock(), tz=UTC).replace(tzinfo=None)
        token = issue_token(
            cfg=CFG,
            subject="u-1",
            role="USER",
            kind=kind,
            issued_at=issued_at,
            ttl=timedelta(seconds=ttl),
        ).token
        if kind is TokenKind.access:
            self.valid.add(token)
        return token

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        auth = request.headers.get("authorization")
        token = auth.removeprefix("Bearer ") if auth else None

        if request.url.path == "/auth/refresh":
            self.refresh_calls += 1
            await asyncio.sleep(self.refresh_delay)
            if self.refresh_exc is not None:
                raise self.refresh_exc
            if self.refresh_status != 200:
                return httpx.Response(
                    self.refresh_status,
                    json=self.refresh_body
                    or {"message": "Invalid refresh token", "kind": "AuthenticationError"},
                )
            if self.refresh_body is not None:
                return httpx.Response(200, json=self.refresh_body)
            return httpx.Response(
                200,
                json={
                    "accessToken": self.mint(),
                    "refreshToken": self.mint(TokenKind.refresh, ttl=86400),
                },
            )

        self.seen.append((request.url.path, token))
        if token is None:
            return httpx.Response(200, json={"anonymous": True})
        if self.reject_all or token not in self.valid or is_expired(token, now=self.clock()):
            return httpx.Response(
                401,
                json={"message": "Invalid or expired access token", "kind": "AuthenticationError"},
            )
        return httpx.Response(200, json={"ok": True})


class LogoutRecorder:
    def __init__(self) -> None:
        self.reasons: list[str] = []

    def __call__(self, reason: str) -> None:
        self.reasons.append(reason)


@pytest.fixture
def clock() -> EpochClock:
    return EpochClock(1_700_000_000.0)


@pytest.fixture
def issuer(clock: EpochClock) -> FakeIssuer:
    return FakeIssuer(clock)


@pytest.fixture
def recorder() -> LogoutRecorder:
    return LogoutRecorder()


@pytest_asyncio.fixture
async def http(issuer: FakeIssuer) -> AsyncIterator[httpx.AsyncClient]:
    async with httpx.AsyncClient(
        transport=httpx.MockTransport(issuer), base_url="http://issuer"
    ) as client:
        yield client


def _guardian(http, clock, recorder, **kwargs) -> TokenGuardian:
    return TokenGuardian(http=http, clock=clock, on_logout=recorder, **kwargs)


def _seed(guardian: TokenGuardian, issuer: FakeIssuer, *, access_ttl: float = 3600) -> None:
    guardian.store(
        access_token=issuer.mint(ttl=access_ttl),
        refresh_token=issuer.mint(TokenKind.refresh, ttl=86400),
    )


@pytest.mark.asyncio
async def test_concurrent_expired_requests_share_one_refresh(http, issuer, clock, recorder) -> None:
    guardian = _guardian(http, clock, recorder)
    _seed(guardian, issuer, access_ttl=60)
    clock.advance(61)
    client = AuthClient(http=http, guardian=guardian)

    responses = await asyncio.gather(*(client.get(f"/data/{i}") for i in range(5)))

    assert [r.status_code for r in responses] == [200] * 5
    assert issuer.refresh_calls == 1
    tokens = {token for _, token in issuer.seen}
    assert tokens == {guardian.access_token}
    assert not guardian.refreshing


@pytest.mark.asyncio
async def test_unauthorized_response_refreshes_and_replays_once(
    http, issuer, clock, recorder
) -> None:
    guardian = _guardian(http, clock, recorder)
    _seed(guardian, issuer)
    stale = guardian.access_token
    issuer.valid.discard(stale)
    client = AuthClient(http=http, guardian=guardian)

    r = await client.get("/data")

    assert r.status_code == 200
    assert issuer.refresh_calls == 1
    assert [token for _, token in issuer.seen] == [stale, guardian.access_token]


@pytest.mark.asyncio
async def test_unauthorized_replay_is_a_hard_failure(http, issuer, clock, recorder) -> None:
    guardian = _guardian(http, clock, recorder)
    _seed(guardian, issuer)
    issuer.reject_all = True
    client = AuthClient(http=http, guardian=guardian)

    with pytest.raises(AuthenticationError):
        await client.get("/data")

    assert issuer.refresh_calls == 1
    assert len(issuer.seen) == 2


@pytest.mark.asyncio
async def test_rejected_refresh_fails_every_caller_and_logs_out_once(
    http, issuer, clock, recorder
) -> None:
    guardian = _guardian(http, clock, recorder)
    _seed(guardian, issuer, access_ttl=60)
    clock.advance(61)
    issuer.refresh_status = 401
    client = AuthClient(http=http, guardian=guardian)

    results = await asyncio.gather(
        *(client.get("/data") for _ in range(3)), return_exceptions=True
    )

    assert all(isinstance(r, AuthenticationError) for r in results)
    assert results[0].message == "Invalid refresh token"
    assert issuer.refresh_calls == 1
    assert issuer.seen == []
    assert not guardian.authenticated
    assert recorder.reasons == ["AuthenticationError"]


@pytest.mark.asyncio
async def test_network_error_keeps_session_when_configured(http, issuer, clock, recorder) -> None:
    guardian = _guardian(http, clock, recorder, logout_on_network_error=False)
    _seed(guardian, issuer, access_ttl=60)
    clock.advance(61)
    issuer.refresh_exc = httpx.ConnectError("connection refused")

    with pytest.raises(NetworkError):
        await guardian.ensure_fresh_token()

    assert guardian.authenticated
    assert recorder.reasons == []

    # No automatic retry; the next explicit attempt starts a new flight.
    issuer.refresh_exc = None
    token = await guardian.ensure_fresh_token()
    assert token == guardian.access_token
    assert issuer.refresh_calls == 2


@pytest.mark.asyncio
async def test_network_error_logs_out_by_default(http, issuer, clock, recorder) -> None:
    guardian = _guardian(http, clock, recorder)
    _seed(guardian, issuer)
    issuer.refresh_exc = httpx.ConnectError("connection refused")

    with pytest.raises(NetworkError):
        await guardian.ensure_fresh_token()

    assert not guardian.authenticated
    assert recorder.reasons == ["NetworkError"]


@pytest.mark.asyncio
async def test_server_error_during_refresh_is_a_network_error(
    http, issuer, clock, recorder
) -> None:
    guardian = _guardian(http, clock, recorder, logout_on_network_error=False)
    _seed(guardian, issuer)
    issuer.refresh_status = 500
    issuer.refresh_body = {"message": "Internal server error", "kind": "ServerError"}

    with pytest.raises(NetworkError) as exc_info:
        await guardian.ensure_fresh_token()
    assert exc_info.value.message == "Internal server error"


@pytest.mark.asyncio
async def test_slow_refresh_times_out(http, issuer, clock, recorder) -> None:
    guardian = _guardian(http, clock, recorder, refresh_timeout=0.05)
    _seed(guardian, issuer)
    issuer.refresh_delay = 5

    with pytest.raises(RefreshTimeout):
        await guardian.ensure_fresh_token()

    assert recorder.reasons == ["RefreshTimeout"]
    assert not guardian.refreshing


@pytest.mark.asyncio
async def test_malformed_refresh_body_is_rejected(http, issuer, clock, recorder) -> None:
    guardian = _guardian(http, clock, recorder, logout_on_network_error=False)
    _seed(guardian, issuer)
    before = guardian.access_token
    issuer.refresh_body = {"accessToken": "", "refreshToken": "x"}

    with pytest.raises(NetworkError):
        await guardian.ensure_fresh_token()
    assert guardian.access_token == before


@pytest.mark.asyncio
async def test_refresh_without_cached_tokens_forces_logout(http, clock, recorder) -> None:
    guardian = _guardian(http, clock, recorder)

    with pytest.raises(AuthenticationError):
        await guardian.ensure_fresh_token()
    assert recorder.reasons == ["AuthenticationError"]


@pytest.mark.asyncio
async def test_anonymous_requests_carry_no_header(http, issuer, clock, recorder) -> None:
    guardian = _guardian(http, clock, recorder)
    client = AuthClient(http=http, guardian=guardian)

    r = await client.get("/public")

    assert r.json() == {"anonymous": True}
    assert issuer.seen == [("/public", None)]
    assert issuer.refresh_calls == 0


@pytest.mark.asyncio
async def test_superseded_token_is_replayed_without_refresh(http, issuer, clock, recorder) -> None:
    guardian = _guardian(http, clock, recorder)
    _seed(guardian, issuer)
    old = RequestDescriptor(method="GET", url="/data", token=guardian.access_token)
    _seed(guardian, issuer)

    replay = await guardian.on_response(old, httpx.Response(401))

    assert replay is not None
    assert replay.token == guardian.access_token
    assert replay.attempt == 1
    assert issuer.refresh_calls == 0


@pytest.mark.asyncio
async def test_non_auth_failures_pass_through(http, issuer, clock, recorder) -> None:
    guardian = _guardian(http, clock, recorder)
    _seed(guardian, issuer)
    request = RequestDescriptor(method="GET", url="/data", token=guardian.access_token)

    assert await guardian.on_response(request, httpx.Response(403)) is None
    assert await guardian.on_response(request, httpx.Response(500)) is None
    assert issuer.refresh_calls == 0


def test_request_descriptor_merges_caller_headers() -> None:
    request = RequestDescriptor(
        method="POST", url="/data", options={"headers": {"X-Trace": "1"}, "json": {"a": 1}}
    ).with_token("tkn")

    kwargs = request.send_kwargs()
    assert kwargs["json"] == {"a": 1}
    assert kwargs["headers"] == {"X-Trace": "1", "Authorization": "Bearer tkn"}
    assert request.replay("next").attempt == 1


@pytest.mark.asyncio
async def test_store_requires_both_tokens(http, clock, recorder) -> None:
    guardian = _guardian(http, clock, recorder)
    with pytest.raises(ValueError):
        guardian.store(access_token="a", refresh_token="")


@pytest.mark.asyncio
async def test_logout_clears_state_even_when_the_call_fails(
    http, issuer, clock, recorder
) -> None:
    cache = MemoryTokenCache(CachedTokens(access_token=issuer.mint(), refresh_token="r"))
    guardian = TokenGuardian(http=http, cache=cache, clock=clock, on_logout=recorder)
    issuer.reject_all = True
    issuer.refresh_exc = httpx.ConnectError("down")
    client = AuthClient(http=http, guardian=guardian)

    await client.logout()

    assert cache.load() is None
    assert not guardian.authenticated


@pytest.mark.asyncio
async def test_malformed_login_response_is_a_typed_error(clock, recorder) -> None:
    async def issuer(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"accessToken": "a.b.c", "principal": {}})

    async with httpx.AsyncClient(
        transport=httpx.MockTransport(issuer), base_url="http://issuer"
    ) as http:
        client = AuthClient(http=http, guardian=_guardian(http, clock, recorder))
        with pytest.raises(NetworkError) as exc_info:
            await client.login("alice", "secret")

    assert exc_info.value.message == "Invalid login response structure"
    assert not client.guardian.authenticated
