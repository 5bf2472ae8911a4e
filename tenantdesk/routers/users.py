"""Console user administration API router."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from ..models import User
from ..security.auth import get_current_user, get_db_session, is_super_admin, require_role
from ..users import schemas
from ..users.service import (
    UserAdminService,
    UserConflictError,
    UserNotFoundError,
    UserPermissionError,
    UserValidationError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/users", tags=["users"])

SessionDep = Annotated[Session, Depends(get_db_session)]
UserDep = Annotated[User, Depends(get_current_user)]
AdminRole = Annotated[str, Depends(require_role("admin"))]


@contextmanager
def _service_context(session: Session, user: User) -> Iterator[UserAdminService]:
    scope = None if is_super_admin(user) else user.tenant_id
    service = UserAdminService(session, tenant_scope=scope)
    try:
        yield service
        session.commit()
    except UserNotFoundError as exc:
        session.rollback()
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except UserConflictError as exc:
        session.rollback()
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except UserValidationError as exc:
        session.rollback()
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except UserPermissionError as exc:
        session.rollback()
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    except HTTPException:
        session.rollback()
        raise
    except Exception as exc:
        session.rollback()
        logger.exception("User administration request failed")
        raise HTTPException(status_code=500, detail="Internal server error") from exc


@router.get("", response_model=schemas.UserPage)
def list_users(
    session: SessionDep,
    user: UserDep,
    role: AdminRole,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
    search: str | None = None,
    tenant_id: uuid.UUID | None = None,
) -> schemas.UserPage:
    with _service_context(session, user) as svc:
        return svc.list_users(page=page, limit=limit, search=search, tenant_id=tenant_id)


@router.post("", response_model=schemas.UserSummary, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: schemas.UserCreate, session: SessionDep, user: UserDep, role: AdminRole
) -> schemas.UserSummary:
    with _service_context(session, user) as svc:
        return svc.create_user(payload)


@router.get("/{user_id}", response_model=schemas.UserSummary)
def get_user(
    user_id: uuid.UUID, session: SessionDep, user: UserDep, role: AdminRole
) -> schemas.UserSummary:
    with _service_context(session, user) as svc:
        return svc.get_user(user_id)


@router.put("/{user_id}", response_model=schemas.UserSummary)
def update_user(
    user_id: uuid.UUID,
    payload: schemas.UserUpdate,
    session: SessionDep,
    user: UserDep,
    role: AdminRole,
) -> schemas.UserSummary:
    with _service_context(session, user) as svc:
        return svc.update_user(user_id, payload)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: uuid.UUID, session: SessionDep, user: UserDep, role: AdminRole
) -> Response:
    if user_id == user.id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")
    with _service_context(session, user) as svc:
        svc.delete_user(user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{user_id}/verify", response_model=schemas.UserSummary)
def verify_user(
    user_id: uuid.UUID, session: SessionDep, user: UserDep, role: AdminRole
) -> schemas.UserSummary:
    with _service_context(session, user) as svc:
        return svc.verify_user(user_id)
