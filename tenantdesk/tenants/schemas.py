"""Pydantic schemas for the tenant administration APIs."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class TenantIntegrations(BaseModel):
    """Messaging provider credentials the identity service uses for OTP delivery."""

    brevo_api_key: str | None = None
    brevo_sender_email: str | None = None
    brevo_sender_name: str | None = None
    labsmobile_api_key: str | None = None
    labsmobile_user: str | None = None
    labsmobile_url: str | None = None
    labsmobile_sender_id: str | None = None


class TenantSessionSettings(BaseModel):
    sso_enabled: bool = True
    session_ttl: int | None = Field(default=None, description="Minutes")


class TenantDashboardUrls(BaseModel):
    development: str | None = None
    production: str | None = None


class TenantCreate(BaseModel):
    name: str
    domain: str | None = None
    subdomain: str | None = None
    settings: dict[str, Any] | None = None
    integrations: TenantIntegrations | None = None
    session_settings: TenantSessionSettings | None = None
    dashboard_urls: TenantDashboardUrls | None = None


class TenantUpdate(BaseModel):
    """Partial update; only the fields present in the request are applied."""

    name: str | None = None
    domain: str | None = None
    subdomain: str | None = None
    is_active: bool | None = None
    settings: dict[str, Any] | None = None
    payment_return_home_url: str | None = None
    display_name: str | None = None
    legal_name: str | None = None
    tagline: str | None = None
    contact_email: str | None = None
    contact_phone: str | None = None
    website_url: str | None = None
    industry: str | None = None
    address_line1: str | None = None
    address_line2: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country: str | None = None
    primary_color: str | None = None
    integrations: TenantIntegrations | None = None
    session_settings: TenantSessionSettings | None = None
    dashboard_urls: TenantDashboardUrls | None = None


class TenantSummary(BaseModel):
    id: UUID
    name: str
    domain: str | None = None
    subdomain: str | None = None
    is_active: bool
    settings: dict[str, Any] | None = None
    user_count: int = 0
    application_count: int = 0
    contact_count: int = 0
    created_at: datetime
    updated_at: datetime


class TenantDetail(BaseModel):
    id: UUID
    name: str
    domain: str | None = None
    subdomain: str | None = None
    is_active: bool
    settings: dict[str, Any] | None = None
    payment_return_home_url: str | None = None
    display_name: str | None = None
    legal_name: str | None = None
    tagline: str | None = None
    contact_email: str | None = None
    contact_phone: str | None = None
    website_url: str | None = None
    industry: str | None = None
    address_line1: str | None = None
    address_line2: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country: str | None = None
    primary_color: str | None = None
    logo_url: str | None = None
    logo_width: int | None = None
    logo_height: int | None = None
    logo_mime_type: str | None = None
    logo_updated_at: datetime | None = None
    integrations: dict[str, Any] | None = None
    session_settings: dict[str, Any] | None = None
    dashboard_urls: dict[str, Any] | None = None
    created_at: datetime
    updated_at: datetime


class TenantLookup(BaseModel):
    id: UUID
    name: str
    logo_url: str | None = None
    subdomain: str | None = None
    domain: str | None = None
    settings: dict[str, Any] | None = None


class TenantLookupResponse(BaseModel):
    success: bool
    tenant: TenantLookup | None = None
    error: str | None = None


class LogoUploadResult(BaseModel):
    logo_url: str
    mime_type: str
    width: int | None = None
    height: int | None = None


class TenantCustomization(BaseModel):
    customization: dict[str, Any] | None = None


class ContactEntry(BaseModel):
    """One row of the merged contact directory."""

    id: UUID
    tenant_id: UUID
    type: str
    display_name: str
    name: str
    phone: str | None = None
    email: str | None = None
    description: str | None = None
    avatar_url: str | None = None
    is_flowbot: bool = False
    metadata: dict[str, Any] | None = None
    unread_count: int = 0
    last_message_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ContactList(BaseModel):
    success: bool = True
    contacts: list[ContactEntry] = Field(default_factory=list)


class ContactUpdate(BaseModel):
    display_name: str | None = None
    phone: str | None = None
    email: str | None = None
    description: str | None = None


class ContactUpdateResult(BaseModel):
    success: bool = True
    contact: ContactEntry


__all__ = [
    "ContactEntry",
    "ContactList",
    "ContactUpdate",
    "ContactUpdateResult",
    "LogoUploadResult",
    "TenantCreate",
    "TenantCustomization",
    "TenantDashboardUrls",
    "TenantDetail",
    "TenantIntegrations",
    "TenantLookup",
    "TenantLookupResponse",
    "TenantSessionSettings",
    "TenantSummary",
    "TenantUpdate",
]
