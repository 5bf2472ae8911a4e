"""Registration and maintenance of OIDC client applications."""

from __future__ import annotations

import logging
import secrets
import uuid
from typing import Any, Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from tenantdesk.models import Application, Tenant
from tenantdesk.models.application import DEFAULT_AUTH_METHODS
from tenantdesk.tenants.settings import clean_optional_text

from . import schemas

logger = logging.getLogger(__name__)

_INTEGRATION_FIELDS = (
    "brevo_api_key",
    "brevo_sender_email",
    "brevo_sender_name",
    "labsmobile_api_key",
    "labsmobile_user",
    "labsmobile_url",
    "labsmobile_sender_id",
)


class ApplicationNotFoundError(RuntimeError):
    """Raised when an application id or client id is unknown."""


class ApplicationValidationError(ValueError):
    """Raised for incomplete application payloads."""


def _clean_list(values: Iterable[Any] | None) -> list[str]:
    return [str(value).strip() for value in values or [] if str(value).strip()]


def generate_client_id() -> str:
    return secrets.token_hex(16)


def generate_client_secret() -> str:
    return secrets.token_urlsafe(48)


def auth_methods_of(application: Application) -> schemas.AuthMethods:
    stored = application.auth_methods if isinstance(application.auth_methods, dict) else {}
    return schemas.AuthMethods(**{**DEFAULT_AUTH_METHODS, **stored})


class ApplicationService:
    """CRUD over :class:`~tenantdesk.models.Application` rows.

    ``tenant_scope`` restricts every operation to one tenant; applications of
    other tenants behave as if they did not exist.
    """

    def __init__(self, session: Session, *, tenant_scope: uuid.UUID | None = None) -> None:
        self.session = session
        self.tenant_scope = tenant_scope

    def _get(self, application_id: uuid.UUID) -> Application:
        application = self.session.get(Application, application_id)
        if application is None or (
            self.tenant_scope is not None and application.tenant_id != self.tenant_scope
        ):
            raise ApplicationNotFoundError("Application not found")
        return application

    def _summary(self, application: Application) -> schemas.ApplicationSummary:
        return schemas.ApplicationSummary(
            id=application.id,
            tenant_id=application.tenant_id,
            tenant_name=application.tenant.name if application.tenant else None,
            name=application.name,
            client_id=application.client_id,
            cors_origins=list(application.cors_origins or []),
            redirect_uris=list(application.redirect_uris or []),
            post_logout_redirect_uris=list(application.post_logout_redirect_uris or []),
            auth_methods=auth_methods_of(application),
            created_at=application.created_at,
            updated_at=application.updated_at,
        )

    def _detail(self, application: Application) -> schemas.ApplicationDetail:
        return schemas.ApplicationDetail(
            **self._summary(application).model_dump(),
            client_secret=application.client_secret,
            **{field: getattr(application, field) for field in _INTEGRATION_FIELDS},
        )

    def _validated(self, payload: schemas.ApplicationPayload) -> tuple[str, uuid.UUID]:
        name = (payload.name or "").strip()
        if not name or payload.tenant_id is None:
            raise ApplicationValidationError("Name and Tenant are required")
        tenant_id = payload.tenant_id
        if self.tenant_scope is not None and tenant_id != self.tenant_scope:
            raise ApplicationValidationError("Applications can only be assigned to your tenant")
        if self.session.get(Tenant, tenant_id) is None:
            raise ApplicationNotFoundError("Tenant not found")
        return name, tenant_id

    def _apply(self, application: Application, payload: schemas.ApplicationPayload) -> None:
        application.cors_origins = _clean_list(payload.cors_origins)
        application.redirect_uris = _clean_list(payload.redirect_uris)
        application.post_logout_redirect_uris = _clean_list(payload.post_logout_redirect_uris)
        for field in _INTEGRATION_FIELDS:
            setattr(application, field, clean_optional_text(getattr(payload, field)))

    def list_applications(self, tenant_id: uuid.UUID | None = None) -> schemas.ApplicationList:
        stmt = select(Application).order_by(Application.created_at.desc())
        scope = self.tenant_scope or tenant_id
        if scope is not None:
            stmt = stmt.where(Application.tenant_id == scope)
        items = [self._summary(app) for app in self.session.execute(stmt).scalars()]
        return schemas.ApplicationList(items=items, total=len(items))

    def get_application(self, application_id: uuid.UUID) -> schemas.ApplicationDetail:
        return self._detail(self._get(application_id))

    def create_application(self, payload: schemas.ApplicationPayload) -> schemas.ApplicationDetail:
        name, tenant_id = self._validated(payload)
        methods = payload.auth_methods.model_dump() if payload.auth_methods else dict(DEFAULT_AUTH_METHODS)
        application = Application(
            tenant_id=tenant_id,
            name=name,
            client_id=generate_client_id(),
            client_secret=generate_client_secret(),
            auth_methods=methods,
        )
        self._apply(application, payload)
        self.session.add(application)
        self.session.flush()
        self.session.refresh(application)
        logger.info("Created application %s for tenant %s", application.client_id, tenant_id)
        return self._detail(application)

    def update_application(
        self, application_id: uuid.UUID, payload: schemas.ApplicationPayload
    ) -> schemas.ApplicationDetail:
        application = self._get(application_id)
        name, tenant_id = self._validated(payload)
        application.name = name
        application.tenant_id = tenant_id
        if payload.auth_methods is not None:
            application.auth_methods = payload.auth_methods.model_dump()
        self._apply(application, payload)
        self.session.flush()
        self.session.refresh(application)
        return self._detail(application)

    def delete_application(self, application_id: uuid.UUID) -> None:
        application = self._get(application_id)
        self.session.delete(application)
        self.session.flush()
        logger.info("Deleted application %s", application.client_id)

    def rotate_client_secret(self, application_id: uuid.UUID) -> schemas.ApplicationDetail:
        application = self._get(application_id)
        application.client_secret = generate_client_secret()
        self.session.flush()
        logger.info("Rotated client secret of application %s", application.client_id)
        return self._detail(application)

    def find_by_client_id(self, client_id: str) -> Application | None:
        if not client_id:
            return None
        return self.session.execute(
            select(Application).where(Application.client_id == client_id)
        ).scalar_one_or_none()


__all__ = [
    "ApplicationNotFoundError",
    "ApplicationService",
    "ApplicationValidationError",
    "auth_methods_of",
    "generate_client_id",
    "generate_client_secret",
]
