"""Bearer token parsing and validation for console requests."""

from __future__ import annotations

import os
from typing import cast

import jwt
from fastapi import HTTPException, Request, status
from jwt import ExpiredSignatureError, InvalidTokenError
from typing_extensions import TypedDict

__all__ = [
    "TenantTokenPayload",
    "TenantTokenConfigurationError",
    "TenantTokenValidationError",
    "decode_tenant_token",
    "get_tenant_context",
    "split_bearer",
    "token_settings_present",
]

_TOKEN_ENV = ("TENANT_TOKEN_SECRET", "TENANT_TOKEN_AUDIENCE", "TENANT_TOKEN_ISSUER")


class TenantTokenConfigurationError(RuntimeError):
    """Raised when the token environment variables are missing."""


class TenantTokenValidationError(ValueError):
    """Raised when a bearer token is expired, forged or incomplete."""


class _TenantTokenRequiredClaims(TypedDict):
    tenant_id: str
    user_id: str


class TenantTokenPayload(_TenantTokenRequiredClaims, total=False):
    """Claims carried by a console access token."""

    aud: str | list[str]
    email: str
    exp: int
    iat: int
    iss: str
    name: str
    roles: list[str]
    scope: str
    type: str


def _get_env(name: str, *, required: bool = True, default: str | None = None) -> str:
    """Read ``name`` from the environment, stripped.

    Raises:
        TenantTokenConfigurationError: If ``required`` and the variable is
            missing or blank.
    """

    value = os.getenv(name, default)
    if required and (value is None or not value.strip()):
        raise TenantTokenConfigurationError(
            f"Environment variable '{name}' must be set for tenant token validation.",
        )
    return (value or "").strip()


def token_settings_present() -> bool:
    """Return ``True`` when every variable needed to validate tokens is set."""

    return all(os.getenv(name) for name in _TOKEN_ENV)


def split_bearer(authorization: str | None) -> str:
    """Return the credentials of a ``Bearer`` authorization header.

    Raises:
        TenantTokenValidationError: If the header is absent or uses another scheme.
    """

    if not authorization:
        raise TenantTokenValidationError("Missing Authorization header.")
    scheme, _, credentials = authorization.partition(" ")
    credentials = credentials.strip()
    if not credentials or scheme.lower() != "bearer":
        raise TenantTokenValidationError("Authorization header must use Bearer scheme.")
    return credentials


def decode_tenant_token(token: str) -> TenantTokenPayload:
    """Decode ``token`` and check signature, audience, issuer and expiry.

    Raises:
        TenantTokenConfigurationError: If the token settings are incomplete.
        TenantTokenValidationError: If the token cannot be trusted.
    """

    secret_key = _get_env("TENANT_TOKEN_SECRET")
    audience = _get_env("TENANT_TOKEN_AUDIENCE")
    issuer = _get_env("TENANT_TOKEN_ISSUER")
    algorithm = _get_env("TENANT_TOKEN_ALGORITHM", required=False, default="HS256")

    try:
        payload = jwt.decode(
            token,
            secret_key,
            algorithms=[algorithm],
            audience=audience,
            issuer=issuer,
            options={"require": ["exp", "aud", "iss"]},
        )
    except ExpiredSignatureError as exc:
        raise TenantTokenValidationError("Tenant token has expired.") from exc
    except InvalidTokenError as exc:
        raise TenantTokenValidationError("Tenant token is invalid.") from exc

    if "tenant_id" not in payload or "user_id" not in payload:
        raise TenantTokenValidationError(
            "Tenant token payload must include 'tenant_id' and 'user_id'.",
        )
    type_claim = payload.get("type")
    if type_claim and type_claim != "access":
        raise TenantTokenValidationError("Tenant token must be an access token.")

    return cast(TenantTokenPayload, payload)


async def get_tenant_context(request: Request) -> TenantTokenPayload:
    """FastAPI dependency returning the validated claims of the caller.

    Raises:
        HTTPException: ``401`` for a missing or invalid token, ``500`` when
            the server lacks token configuration.
    """

    try:
        return decode_tenant_token(split_bearer(request.headers.get("Authorization")))
    except TenantTokenConfigurationError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        ) from exc
    except TenantTokenValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc),
        ) from exc
