"""Pydantic schemas for OIDC application management."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class AuthMethods(BaseModel):
    """Hosted-login flows enabled for an application."""

    password: bool = True
    otp: bool = False
    wallet: bool = False


class ApplicationPayload(BaseModel):
    """Create/update body. Updates replace every field except ``auth_methods``."""

    name: str | None = None
    tenant_id: UUID | None = None
    cors_origins: list[str] = Field(default_factory=list)
    redirect_uris: list[str] = Field(default_factory=list)
    post_logout_redirect_uris: list[str] = Field(default_factory=list)
    auth_methods: AuthMethods | None = None
    brevo_api_key: str | None = None
    brevo_sender_email: str | None = None
    brevo_sender_name: str | None = None
    labsmobile_api_key: str | None = None
    labsmobile_user: str | None = None
    labsmobile_url: str | None = None
    labsmobile_sender_id: str | None = None


class ApplicationSummary(BaseModel):
    """List view: no client secret and no integration API keys."""

    id: UUID
    tenant_id: UUID
    tenant_name: str | None = None
    name: str
    client_id: str
    cors_origins: list[str] = Field(default_factory=list)
    redirect_uris: list[str] = Field(default_factory=list)
    post_logout_redirect_uris: list[str] = Field(default_factory=list)
    auth_methods: AuthMethods = Field(default_factory=AuthMethods)
    created_at: datetime
    updated_at: datetime


class ApplicationDetail(ApplicationSummary):
    client_secret: str
    brevo_api_key: str | None = None
    brevo_sender_email: str | None = None
    brevo_sender_name: str | None = None
    labsmobile_api_key: str | None = None
    labsmobile_user: str | None = None
    labsmobile_url: str | None = None
    labsmobile_sender_id: str | None = None


class ApplicationList(BaseModel):
    items: list[ApplicationSummary]
    total: int


__all__ = [
    "ApplicationDetail",
    "ApplicationList",
    "ApplicationPayload",
    "ApplicationSummary",
    "AuthMethods",
]
