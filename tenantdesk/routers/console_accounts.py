"""Console account API: login, token refresh and logout for dashboard users."""

from __future__ import annotations

import datetime as dt
import logging
import uuid
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models import Tenant, User
from ..security import (
    TokenPair,
    hash_password,
    issue_token_pair,
    needs_rehash,
    revoke_all_refresh_tokens,
    revoke_refresh_token,
    verify_password,
    verify_refresh_token,
)
from ..security.auth import get_current_user, get_db_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/console/accounts", tags=["console-accounts"])

SessionDep = Annotated[Session, Depends(get_db_session)]
UserDep = Annotated[User, Depends(get_current_user)]
AUTH_SCHEME_BEARER: Literal["bearer"] = "bearer"


class TenantPayload(BaseModel):
    id: uuid.UUID
    name: str
    subdomain: str | None = None
    domain: str | None = None
    is_active: bool


class UserPayload(BaseModel):
    id: uuid.UUID
    email: EmailStr
    name: str | None = None
    role: str


class TokenEnvelope(BaseModel):
    access_token: str
    refresh_token: str
    token_type: Literal["bearer"] = AUTH_SCHEME_BEARER
    expires_in: int = Field(..., description="Seconds until the access token expires")
    refresh_expires_in: int = Field(
        ..., description="Seconds until the refresh token expires"
    )
    roles: list[str]


class AuthenticatedResponse(BaseModel):
    tenant: TenantPayload
    user: UserPayload
    tokens: TokenEnvelope


class ProfileResponse(BaseModel):
    tenant: TenantPayload
    user: UserPayload


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class RefreshTokenRequest(BaseModel):
    refresh_token: str


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _as_utc(value: dt.datetime) -> dt.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc)


def _token_envelope(user: User, pair: TokenPair) -> TokenEnvelope:
    now = _utcnow()
    return TokenEnvelope(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        expires_in=max(int((_as_utc(pair.access_expires_at) - now).total_seconds()), 0),
        refresh_expires_in=max(
            int((_as_utc(pair.refresh_expires_at) - now).total_seconds()), 0
        ),
        roles=[user.role],
    )


def _tenant_payload(tenant: Tenant) -> TenantPayload:
    return TenantPayload(
        id=tenant.id,
        name=tenant.name,
        subdomain=tenant.subdomain,
        domain=tenant.domain,
        is_active=tenant.is_active,
    )


def _user_payload(user: User) -> UserPayload:
    return UserPayload(id=user.id, email=user.email, name=user.name, role=user.role)


def _authenticated(session: Session, user: User, request: Request) -> AuthenticatedResponse:
    pair = issue_token_pair(session, user, user_agent=request.headers.get("User-Agent"))
    session.commit()
    return AuthenticatedResponse(
        tenant=_tenant_payload(user.tenant),
        user=_user_payload(user),
        tokens=_token_envelope(user, pair),
    )


@router.post("/login", response_model=AuthenticatedResponse)
def login(
    payload: LoginRequest,
    request: Request,
    session: SessionDep,
) -> AuthenticatedResponse:
    """Authenticate a console user via e-mail and password."""

    email = payload.email.lower()
    user = session.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if not user or not verify_password(payload.password, user.password_hash):
        logger.info("Console login failed for %s", email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials."
        )

    if not user.is_active or not user.tenant.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="User is inactive."
        )

    if user.password_hash and needs_rehash(user.password_hash):
        user.password_hash = hash_password(payload.password)

    return _authenticated(session, user, request)


@router.post("/refresh", response_model=AuthenticatedResponse)
def refresh(
    payload: RefreshTokenRequest,
    request: Request,
    session: SessionDep,
) -> AuthenticatedResponse:
    """Exchange a refresh token for a new access/refresh pair."""

    token = verify_refresh_token(session, payload.refresh_token)
    if token is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token."
        )

    user = session.get(User, token.user_id)
    if user is None or not user.is_active or not user.tenant.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="User is inactive."
        )

    revoke_refresh_token(token)
    return _authenticated(session, user, request)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(
    payload: RefreshTokenRequest,
    session: SessionDep,
    current_user: UserDep,
) -> Response:
    """Revoke a single refresh token for the authenticated user."""

    token = verify_refresh_token(session, payload.refresh_token)
    if token is None or token.user_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid refresh token."
        )

    revoke_refresh_token(token)
    session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/rotate-credentials", response_model=AuthenticatedResponse)
def rotate_credentials(
    payload: RefreshTokenRequest,
    request: Request,
    session: SessionDep,
    current_user: UserDep,
) -> AuthenticatedResponse:
    """Invalidate all existing refresh tokens and issue a fresh pair."""

    token = verify_refresh_token(session, payload.refresh_token)
    if token is None or token.user_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token."
        )

    revoked = revoke_all_refresh_tokens(session, current_user)
    logger.info("Revoked %d refresh tokens for user %s", revoked, current_user.id)
    return _authenticated(session, current_user, request)


@router.get("/me", response_model=ProfileResponse)
def me(current_user: UserDep) -> ProfileResponse:
    return ProfileResponse(
        tenant=_tenant_payload(current_user.tenant),
        user=_user_payload(current_user),
    )
