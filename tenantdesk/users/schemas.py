"""Pydantic schemas for console user administration."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8)
    name: str | None = None
    phone: str | None = None
    wallet_address: str | None = None
    role: str = "viewer"
    tenant_id: UUID | None = None


class UserUpdate(BaseModel):
    """Partial update. Omitted fields keep their value; an empty wallet clears it."""

    name: str | None = None
    phone: str | None = None
    wallet_address: str | None = None
    role: str | None = None


class UserSummary(BaseModel):
    id: UUID
    tenant_id: UUID
    tenant_name: str | None = None
    email: str
    name: str | None = None
    phone: str | None = None
    wallet_address: str | None = None
    role: str
    is_active: bool
    email_verified: bool
    phone_verified: bool
    created_at: datetime
    updated_at: datetime


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int


class UserPage(BaseModel):
    items: list[UserSummary]
    pagination: Pagination
