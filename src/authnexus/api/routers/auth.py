"""
authnexus.api.routers.auth

Issuer HTTP surface.

Responsibilities:
- Login, refresh (rotation) and logout.
- Registration, email verification, profile and password reset around the same principal record.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.status import HTTP_201_CREATED

from authnexus.api.deps import clock_dep, db_session, notifier_dep, settings_dep
from authnexus.api.schemas import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    PasswordResetBody,
    PasswordResetRequest,
    PrincipalOut,
    RefreshRequest,
    RegisterRequest,
    RegisterResponse,
    TokenPairOut,
)
from authnexus.auth.deps import get_principal
from authnexus.auth.models import Principal
from authnexus.clock import Clock
from authnexus.services.notifications import AccountNotifier
from authnexus.services.token_issuer import TokenIssuer
from authnexus.settings import Settings

router = APIRouter(prefix="/auth", tags=["auth"])

RESET_REQUESTED = "If the email exists, a password reset link has been sent."


def issuer_dep(
    session: AsyncSession = Depends(db_session),
    settings: Settings = Depends(settings_dep),
    clock: Clock = Depends(clock_dep),
    notifier: AccountNotifier = Depends(notifier_dep),
) -> TokenIssuer:
    return TokenIssuer(session=session, settings=settings, clock=clock, notifier=notifier)


@router.post("/register", response_model=RegisterResponse, status_code=HTTP_201_CREATED)
async def register(
    body: RegisterRequest,
    issuer: TokenIssuer = Depends(issuer_dep),
) -> RegisterResponse:
    user = await issuer.register(username=body.username, email=body.email, password=body.password)
    return RegisterResponse(principal=PrincipalOut.from_user(user))


@router.post("/verify-email/{token}", response_model=MessageResponse)
async def verify_email(
    token: str,
    issuer: TokenIssuer = Depends(issuer_dep),
) -> MessageResponse:
    await issuer.verify_email(token)
    return MessageResponse(message="Email verified successfully")


@router.post("/login", response_model=LoginResponse)
async def login(
    body: LoginRequest,
    issuer: TokenIssuer = Depends(issuer_dep),
) -> LoginResponse:
    user, pair = await issuer.login(identifier=body.identifier, secret=body.secret)
    return LoginResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        principal=PrincipalOut.from_user(user),
    )


@router.post("/refresh", response_model=TokenPairOut)
async def refresh(
    body: RefreshRequest,
    issuer: TokenIssuer = Depends(issuer_dep),
) -> TokenPairOut:
    pair = await issuer.rotate(body.refresh_token)
    return TokenPairOut.from_pair(pair)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    principal: Principal = Depends(get_principal),
    issuer: TokenIssuer = Depends(issuer_dep),
) -> MessageResponse:
    await issuer.logout(principal.id)
    return MessageResponse(message="Logout successful")


@router.get("/profile", response_model=PrincipalOut)
async def get_profile(
    principal: Principal = Depends(get_principal),
    issuer: TokenIssuer = Depends(issuer_dep),
) -> PrincipalOut:
    return PrincipalOut.from_user(await issuer.profile(principal.id))


@router.delete("/profile", response_model=MessageResponse)
async def remove_profile(
    principal: Principal = Depends(get_principal),
    issuer: TokenIssuer = Depends(issuer_dep),
) -> MessageResponse:
    await issuer.remove_account(principal.id)
    return MessageResponse(message="Account removed")


@router.post("/request-password-reset", response_model=MessageResponse)
async def request_password_reset(
    body: PasswordResetRequest,
    issuer: TokenIssuer = Depends(issuer_dep),
) -> MessageResponse:
    # Same answer whether or not the email exists.
    await issuer.request_password_reset(body.email)
    return MessageResponse(message=RESET_REQUESTED)


@router.post("/reset-password/{token}", response_model=MessageResponse)
async def reset_password(
    token: str,
    body: PasswordResetBody,
    issuer: TokenIssuer = Depends(issuer_dep),
) -> MessageResponse:
    await issuer.reset_password(token=token, password=body.password)
    return MessageResponse(message="Password reset successful")


# --- Module Notes -----------------------------------------------------------
# Refresh takes no bearer token: the refresh token in the body is the only credential,
# so an expired access token never blocks renewal.
