"""Tenant administration API router."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Annotated, Any

from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile, status
from sqlalchemy.orm import Session

from ..models import User
from ..security.auth import ensure_tenant_access, get_current_user, get_db_session, require_role
from ..tenants import schemas
from ..tenants.service import (
    ContactNotFoundError,
    LogoValidationError,
    TenantAdminService,
    TenantConflictError,
    TenantNotFoundError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/tenants", tags=["admin-tenants"])

SessionDep = Annotated[Session, Depends(get_db_session)]
UserDep = Annotated[User, Depends(get_current_user)]
SuperAdminRole = Annotated[str, Depends(require_role("super_admin"))]
AdminRole = Annotated[str, Depends(require_role("admin"))]
OperatorRole = Annotated[str, Depends(require_role("operator"))]


@contextmanager
def _service_context(session: Session) -> Iterator[TenantAdminService]:
    service = TenantAdminService(session)
    try:
        yield service
        session.commit()
    except (TenantNotFoundError, ContactNotFoundError) as exc:
        session.rollback()
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except TenantConflictError as exc:
        session.rollback()
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except ValueError as exc:
        # settings, logo and contact validation errors
        session.rollback()
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except HTTPException:
        session.rollback()
        raise
    except Exception as exc:
        session.rollback()
        logger.exception("Tenant administration request failed")
        raise HTTPException(status_code=500, detail="Internal server error") from exc


@router.get("/lookup", response_model=schemas.TenantLookupResponse)
def lookup_tenant(session: SessionDep, key: str | None = None) -> schemas.TenantLookupResponse:
    """Resolve a tenant by subdomain, domain or id for the public login pages."""

    if not key or not key.strip():
        return schemas.TenantLookupResponse(
            success=False, error="Missing tenant key (key parameter required)"
        )
    with _service_context(session) as svc:
        tenant = svc.get_tenant_by_key(key.strip())
    if tenant is None:
        return schemas.TenantLookupResponse(success=False, error="Tenant not found")
    return schemas.TenantLookupResponse(success=True, tenant=tenant)


@router.get("", response_model=list[schemas.TenantSummary])
def list_tenants(session: SessionDep, role: SuperAdminRole) -> list[schemas.TenantSummary]:
    with _service_context(session) as svc:
        return svc.list_tenants()


@router.post("", response_model=schemas.TenantSummary, status_code=status.HTTP_201_CREATED)
def create_tenant(
    payload: schemas.TenantCreate, session: SessionDep, role: SuperAdminRole
) -> schemas.TenantSummary:
    with _service_context(session) as svc:
        return svc.create_tenant(payload)


@router.get("/{tenant_id}/contacts/debug")
def debug_tenant_contacts(
    tenant_id: uuid.UUID, session: SessionDep, user: UserDep, role: AdminRole
) -> dict[str, Any]:
    ensure_tenant_access(user, tenant_id)
    with _service_context(session) as svc:
        return svc.debug_tenant_contacts(tenant_id)


@router.get("/{tenant_id}/contacts", response_model=schemas.ContactList)
def get_tenant_contacts(
    tenant_id: uuid.UUID, session: SessionDep, user: UserDep, role: AdminRole
) -> schemas.ContactList:
    ensure_tenant_access(user, tenant_id)
    # Unread counts are per viewer; a super admin from another tenant has none.
    viewer_id = user.id if user.tenant_id == tenant_id else None
    with _service_context(session) as svc:
        return svc.get_tenant_contacts(tenant_id, user_id=viewer_id)


@router.put("/{tenant_id}/contacts/{contact_id}", response_model=schemas.ContactUpdateResult)
def update_tenant_contact(
    tenant_id: uuid.UUID,
    contact_id: uuid.UUID,
    payload: schemas.ContactUpdate,
    session: SessionDep,
    user: UserDep,
    role: OperatorRole,
) -> schemas.ContactUpdateResult:
    ensure_tenant_access(user, tenant_id)
    with _service_context(session) as svc:
        return svc.update_tenant_contact(tenant_id, contact_id, payload)


@router.get("/{key}/customization", response_model=schemas.TenantCustomization)
def get_tenant_customization(key: str, session: SessionDep) -> schemas.TenantCustomization:
    with _service_context(session) as svc:
        return svc.get_customization(key)


@router.put("/{tenant_id}/customization", response_model=schemas.TenantCustomization)
def update_tenant_customization(
    tenant_id: uuid.UUID,
    payload: schemas.TenantCustomization,
    session: SessionDep,
    user: UserDep,
    role: AdminRole,
) -> schemas.TenantCustomization:
    ensure_tenant_access(user, tenant_id)
    with _service_context(session) as svc:
        return svc.update_customization(tenant_id, payload.customization)


@router.post("/{tenant_id}/logo", response_model=schemas.LogoUploadResult)
async def upload_tenant_logo(
    tenant_id: uuid.UUID,
    session: SessionDep,
    user: UserDep,
    role: AdminRole,
    file: Annotated[UploadFile | None, File()] = None,
) -> schemas.LogoUploadResult:
    ensure_tenant_access(user, tenant_id)
    if file is None:
        raise HTTPException(status_code=400, detail="No file provided")
    content = await file.read()
    with _service_context(session) as svc:
        return svc.upload_logo(tenant_id, content, file.content_type)


@router.get("/{tenant_id}", response_model=schemas.TenantDetail)
def get_tenant(
    tenant_id: uuid.UUID, session: SessionDep, user: UserDep, role: AdminRole
) -> schemas.TenantDetail:
    ensure_tenant_access(user, tenant_id)
    with _service_context(session) as svc:
        return svc.get_tenant(tenant_id)


@router.put("/{tenant_id}", response_model=schemas.TenantSummary)
def update_tenant(
    tenant_id: uuid.UUID,
    payload: schemas.TenantUpdate,
    session: SessionDep,
    user: UserDep,
    role: AdminRole,
) -> schemas.TenantSummary:
    ensure_tenant_access(user, tenant_id)
    with _service_context(session) as svc:
        return svc.update_tenant(tenant_id, payload)


@router.delete("/{tenant_id}", status_code=status.HTTP_204_NO_CONTENT)
def deactivate_tenant(
    tenant_id: uuid.UUID, session: SessionDep, role: SuperAdminRole
) -> Response:
    with _service_context(session) as svc:
        svc.deactivate_tenant(tenant_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
