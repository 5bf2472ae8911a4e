"""JWT-backed authentication dependencies for the console routers."""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from typing import Callable

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session, sessionmaker

from tenantdesk.core.auth import TenantTokenPayload, get_tenant_context
from tenantdesk.models import User
from tenantdesk.models.session import get_sessionmaker


ROLE_LEVELS = {"viewer": 0, "operator": 1, "admin": 2, "super_admin": 3}
_SESSION_FACTORY: sessionmaker[Session] | None = None


def _get_session_factory() -> sessionmaker[Session]:
    global _SESSION_FACTORY
    if _SESSION_FACTORY is None:
        _SESSION_FACTORY = get_sessionmaker()
    return _SESSION_FACTORY


def get_db_session() -> Iterator[Session]:
    """Yield a SQLAlchemy session for request-scoped dependencies."""

    session = _get_session_factory()()
    try:
        yield session
    finally:
        session.close()


async def get_current_token_payload(request: Request) -> TenantTokenPayload:
    """Decode the bearer token from ``request`` and insist on an access token."""

    payload = await get_tenant_context(request)
    token_type = payload.get("type")
    if token_type and token_type != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token required.",
        )
    return payload


async def get_current_user(
    payload: TenantTokenPayload = Depends(get_current_token_payload),
    session: Session = Depends(get_db_session),
) -> User:
    """Load the active :class:`~tenantdesk.models.User` the token was issued to."""

    try:
        user_id = uuid.UUID(payload["user_id"])
    except (KeyError, ValueError) as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user identifier in token.",
        ) from exc

    user = session.get(User, user_id)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User is inactive or no longer exists.",
        )
    if not user.tenant.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Tenant is inactive.",
        )

    if str(user.tenant_id) != payload.get("tenant_id"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Token tenant mismatch.",
        )

    return user


def highest_role(roles: list[str]) -> str | None:
    """Return the most privileged known role in ``roles``."""

    ranked = sorted({role for role in roles if role in ROLE_LEVELS}, key=ROLE_LEVELS.get)
    return ranked[-1] if ranked else None


def is_super_admin(user: User) -> bool:
    return user.role == "super_admin"


def ensure_tenant_access(user: User, tenant_id: uuid.UUID) -> None:
    """Reject callers outside ``tenant_id`` unless they are super admins."""

    if is_super_admin(user):
        return
    if user.tenant_id != tenant_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access to this tenant is not allowed.",
        )


def require_role(min_role: str) -> Callable[..., str]:
    """Create a dependency ensuring the caller has at least ``min_role`` privileges."""

    if min_role not in ROLE_LEVELS:
        raise ValueError(f"Unknown role: {min_role}")

    async def dependency(
        user: User = Depends(get_current_user),
        payload: TenantTokenPayload = Depends(get_current_token_payload),
    ) -> str:
        roles = payload.get("roles") or []
        if isinstance(roles, str):
            roles = [roles]
        # The stored role wins over stale token claims when it was lowered.
        token_best = highest_role(list(roles))
        stored = user.role if user.role in ROLE_LEVELS else None
        if stored is not None and token_best is not None:
            best = stored if ROLE_LEVELS[stored] <= ROLE_LEVELS[token_best] else token_best
        else:
            best = stored or token_best
        if best is None:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="No roles assigned to user.",
            )
        if ROLE_LEVELS[best] < ROLE_LEVELS[min_role]:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient role.",
            )
        return best

    return dependency


__all__ = [
    "ROLE_LEVELS",
    "ensure_tenant_access",
    "get_current_token_payload",
    "get_current_user",
    "get_db_session",
    "highest_role",
    "is_super_admin",
    "require_role",
]
