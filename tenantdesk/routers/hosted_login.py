"""Anonymous endpoints backing the hosted zkey login widget."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Annotated, Any, Literal

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..applications.service import ApplicationService, auth_methods_of
from ..core.limits import limiter, otp_rate_limit
from ..models.application import DEFAULT_AUTH_METHODS
from ..phone import resolve_language
from ..security.auth import get_db_session
from ..tenants.settings import tenant_branding_logo
from ..zkey import (
    ActionResult,
    ZkeyActionError,
    ZkeyConfigurationError,
    ZkeyServiceClient,
    ZkeyServiceUnavailableError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/zkey", tags=["hosted-login"])


def get_zkey_client() -> ZkeyServiceClient:
    return ZkeyServiceClient()


SessionDep = Annotated[Session, Depends(get_db_session)]
ZkeyDep = Annotated[ZkeyServiceClient, Depends(get_zkey_client)]


class OtpRequest(BaseModel):
    identifier: str = Field(..., min_length=1)
    type: Literal["email", "phone"] = "email"
    client_id: str = Field(..., min_length=1)


class PasswordLogin(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class OtpLogin(BaseModel):
    identifier: str = Field(..., min_length=1)
    code: str = Field(..., min_length=1)


class WalletLogin(BaseModel):
    address: str = Field(..., min_length=1)
    signature: str = Field(..., min_length=1)


class Registration(BaseModel):
    email: str = Field(..., min_length=1)
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    wallet_address: str | None = None
    signature: str | None = None


@contextmanager
def _upstream_errors() -> Iterator[None]:
    try:
        yield
    except ZkeyConfigurationError as exc:
        logger.error("Hosted login is misconfigured: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    except ZkeyServiceUnavailableError as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except ZkeyActionError as exc:
        raise HTTPException(status_code=exc.status_code or 502, detail=str(exc)) from exc


def _respond(result: ActionResult) -> JSONResponse:
    if result.success:
        return JSONResponse(result.as_dict())
    status_code = result.status_code if result.status_code and result.status_code >= 400 else 400
    return JSONResponse(result.as_dict(), status_code=status_code)


def _client_id(details: dict[str, Any]) -> str | None:
    value = details.get("clientId") or details.get("client_id")
    return str(value) if value else None


def _branding(session: Session, client_id: str | None) -> dict[str, Any]:
    application = ApplicationService(session).find_by_client_id(client_id or "")
    if application is None:
        return {
            "client_name": None,
            "tenant_name": None,
            "logo": None,
            "customization": None,
            "auth_methods": dict(DEFAULT_AUTH_METHODS),
        }
    tenant = application.tenant
    settings = tenant.settings if isinstance(tenant.settings, dict) else {}
    return {
        "client_name": application.name,
        "tenant_name": tenant.name,
        "logo": tenant_branding_logo(settings, tenant.logo_url),
        "customization": settings.get("customization") or None,
        "auth_methods": auth_methods_of(application).model_dump(),
    }


def _ensure_enabled(session: Session, client_id: str | None, method: str) -> None:
    methods = _branding(session, client_id)["auth_methods"]
    if not methods.get(method):
        raise HTTPException(
            status_code=403, detail=f"The {method} sign-in method is disabled for this application."
        )


def _require_method(
    session: Session, zkey: ZkeyServiceClient, interaction_id: str, method: str
) -> None:
    details = zkey.get_interaction_details(interaction_id)
    _ensure_enabled(session, _client_id(details), method)


@router.get("/interaction/{interaction_id}")
def get_interaction(
    interaction_id: str, session: SessionDep, zkey: ZkeyDep, lang: str | None = None
) -> dict[str, Any]:
    """Interaction details plus the branding of the requesting application."""

    with _upstream_errors():
        details = zkey.get_interaction_details(interaction_id)
    return {
        "success": True,
        "data": {
            "interaction": details,
            "branding": _branding(session, _client_id(details)),
            "lang": resolve_language(lang),
        },
    }


@router.post("/otp/request")
@limiter.limit(otp_rate_limit)
def request_otp(
    request: Request, payload: OtpRequest, session: SessionDep, zkey: ZkeyDep
) -> JSONResponse:
    _ensure_enabled(session, payload.client_id, "otp")
    with _upstream_errors():
        result = zkey.request_otp(payload.identifier.strip(), payload.type, payload.client_id)
    return _respond(result)


@router.post("/interaction/{interaction_id}/login/password")
def login_with_password(
    interaction_id: str, payload: PasswordLogin, session: SessionDep, zkey: ZkeyDep
) -> JSONResponse:
    with _upstream_errors():
        _require_method(session, zkey, interaction_id, "password")
        result = zkey.login_with_password(interaction_id, payload.email.strip(), payload.password)
    return _respond(result)


@router.post("/interaction/{interaction_id}/login/otp")
def login_with_otp(
    interaction_id: str, payload: OtpLogin, session: SessionDep, zkey: ZkeyDep
) -> JSONResponse:
    with _upstream_errors():
        _require_method(session, zkey, interaction_id, "otp")
        result = zkey.login_with_otp(interaction_id, payload.identifier.strip(), payload.code.strip())
    return _respond(result)


@router.post("/interaction/{interaction_id}/login/wallet")
def login_with_wallet(
    interaction_id: str, payload: WalletLogin, session: SessionDep, zkey: ZkeyDep
) -> JSONResponse:
    with _upstream_errors():
        _require_method(session, zkey, interaction_id, "wallet")
        result = zkey.login_with_wallet(interaction_id, payload.address, payload.signature)
    return _respond(result)


@router.get("/wallet/nonce/{address}")
def wallet_nonce(address: str, zkey: ZkeyDep) -> JSONResponse:
    with _upstream_errors():
        result = zkey.get_wallet_nonce(address)
    return _respond(result)


@router.post("/interaction/{interaction_id}/register")
def register(interaction_id: str, payload: Registration, zkey: ZkeyDep) -> JSONResponse:
    with _upstream_errors():
        result = zkey.register(
            interaction_id,
            payload.email.strip(),
            payload.first_name.strip(),
            payload.last_name.strip(),
            payload.phone.strip(),
            wallet_address=payload.wallet_address,
            signature=payload.signature,
        )
    return _respond(result)
