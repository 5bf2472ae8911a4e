"""OIDC application management API router."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from ..applications import schemas
from ..applications.service import (
    ApplicationNotFoundError,
    ApplicationService,
    ApplicationValidationError,
)
from ..models import User
from ..security.auth import get_current_user, get_db_session, is_super_admin, require_role

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/applications", tags=["applications"])

SessionDep = Annotated[Session, Depends(get_db_session)]
UserDep = Annotated[User, Depends(get_current_user)]
AdminRole = Annotated[str, Depends(require_role("admin"))]


@contextmanager
def _service_context(session: Session, user: User) -> Iterator[ApplicationService]:
    scope = None if is_super_admin(user) else user.tenant_id
    service = ApplicationService(session, tenant_scope=scope)
    try:
        yield service
        session.commit()
    except ApplicationNotFoundError as exc:
        session.rollback()
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ApplicationValidationError as exc:
        session.rollback()
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except HTTPException:
        session.rollback()
        raise
    except Exception as exc:
        session.rollback()
        logger.exception("Application management request failed")
        raise HTTPException(status_code=500, detail="Internal server error") from exc


@router.get("", response_model=schemas.ApplicationList)
def list_applications(
    session: SessionDep,
    user: UserDep,
    role: AdminRole,
    tenant_id: uuid.UUID | None = None,
) -> schemas.ApplicationList:
    with _service_context(session, user) as svc:
        return svc.list_applications(tenant_id)


@router.post("", response_model=schemas.ApplicationDetail, status_code=status.HTTP_201_CREATED)
def create_application(
    payload: schemas.ApplicationPayload, session: SessionDep, user: UserDep, role: AdminRole
) -> schemas.ApplicationDetail:
    if payload.tenant_id is None and not is_super_admin(user):
        payload = payload.model_copy(update={"tenant_id": user.tenant_id})
    with _service_context(session, user) as svc:
        return svc.create_application(payload)


@router.get("/{application_id}", response_model=schemas.ApplicationDetail)
def get_application(
    application_id: uuid.UUID, session: SessionDep, user: UserDep, role: AdminRole
) -> schemas.ApplicationDetail:
    with _service_context(session, user) as svc:
        return svc.get_application(application_id)


@router.put("/{application_id}", response_model=schemas.ApplicationDetail)
def update_application(
    application_id: uuid.UUID,
    payload: schemas.ApplicationPayload,
    session: SessionDep,
    user: UserDep,
    role: AdminRole,
) -> schemas.ApplicationDetail:
    if payload.tenant_id is None and not is_super_admin(user):
        payload = payload.model_copy(update={"tenant_id": user.tenant_id})
    with _service_context(session, user) as svc:
        return svc.update_application(application_id, payload)


@router.delete("/{application_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_application(
    application_id: uuid.UUID, session: SessionDep, user: UserDep, role: AdminRole
) -> Response:
    with _service_context(session, user) as svc:
        svc.delete_application(application_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{application_id}/rotate-secret", response_model=schemas.ApplicationDetail)
def rotate_application_secret(
    application_id: uuid.UUID, session: SessionDep, user: UserDep, role: AdminRole
) -> schemas.ApplicationDetail:
    with _service_context(session, user) as svc:
        return svc.rotate_client_secret(application_id)
