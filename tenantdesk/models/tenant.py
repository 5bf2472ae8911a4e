"""Tenant, console user and refresh token models.

A :class:`Tenant` is a customer organization. It carries its branding and
profile data, a free-form ``settings`` JSON document (payment gateway config,
customization, branding) and the identity-service configuration used by the
hosted login. :class:`User` rows belong to exactly one tenant. They double as
console accounts when a password hash is set and as "tenant user" entries in
the contact directory.
"""

from __future__ import annotations

import datetime as dt
import uuid
from typing import Any, List

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from . import Base, JSONDocument


def _utcnow() -> dt.datetime:
    """Return the current UTC timestamp with timezone awareness."""

    return dt.datetime.now(dt.timezone.utc)


class Tenant(Base):
    """A customer organization managed from the admin console.

    Attributes:
        id: Primary key generated via ``gen_random_uuid`` in Postgres.
        name: Internal name of the tenant.
        domain: Optional custom domain, unique across tenants.
        subdomain: Optional subdomain key, unique across tenants.
        settings: Free-form JSON settings (``lyraConfig``, ``customization``,
            ``branding``, ``paymentReturnHomeUrl`` ...).
        integrations: Messaging provider credentials for the identity service.
        session_settings: SSO toggle and session TTL (minutes).
        dashboard_urls: Development and production dashboard URLs.
    """

    __tablename__ = "tenants"
    __table_args__ = (
        Index("ix_tenants_domain_unique", "domain", unique=True),
        Index("ix_tenants_subdomain_unique", "subdomain", unique=True),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )
    name: Mapped[str] = mapped_column(String(length=255), nullable=False)
    domain: Mapped[str | None] = mapped_column(String(length=255))
    subdomain: Mapped[str | None] = mapped_column(String(length=255))
    is_active: Mapped[bool] = mapped_column(
        nullable=False,
        default=True,
        server_default=text("true"),
    )
    settings: Mapped[dict[str, Any] | None] = mapped_column(JSONDocument)

    display_name: Mapped[str | None] = mapped_column(String(length=255))
    legal_name: Mapped[str | None] = mapped_column(String(length=255))
    tagline: Mapped[str | None] = mapped_column(String(length=512))
    contact_email: Mapped[str | None] = mapped_column(String(length=320))
    contact_phone: Mapped[str | None] = mapped_column(String(length=64))
    website_url: Mapped[str | None] = mapped_column(String(length=1024))
    industry: Mapped[str | None] = mapped_column(String(length=255))
    address_line1: Mapped[str | None] = mapped_column(String(length=255))
    address_line2: Mapped[str | None] = mapped_column(String(length=255))
    city: Mapped[str | None] = mapped_column(String(length=255))
    state: Mapped[str | None] = mapped_column(String(length=255))
    postal_code: Mapped[str | None] = mapped_column(String(length=32))
    country: Mapped[str | None] = mapped_column(String(length=255))
    primary_color: Mapped[str | None] = mapped_column(String(length=32))

    logo_url: Mapped[str | None] = mapped_column(Text())
    logo_width: Mapped[int | None] = mapped_column(Integer())
    logo_height: Mapped[int | None] = mapped_column(Integer())
    logo_mime_type: Mapped[str | None] = mapped_column(String(length=64))
    logo_updated_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True))

    integrations: Mapped[dict[str, Any] | None] = mapped_column(JSONDocument)
    session_settings: Mapped[dict[str, Any] | None] = mapped_column(JSONDocument)
    dashboard_urls: Mapped[dict[str, Any] | None] = mapped_column(JSONDocument)

    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )

    users: Mapped[List["User"]] = relationship(
        back_populates="tenant",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class User(Base):
    """A person that belongs to a tenant.

    ``password_hash`` is optional: users created for messaging only cannot
    sign in to the console. The ``metadata`` column keeps WhatsApp linkage
    hints (``whatsappSessionId``, ``whatsappJid``) and the role mirror used by
    the contact directory; it is exposed as ``metadata_`` because ``metadata``
    is reserved on declarative classes.
    """

    __tablename__ = "users"
    __table_args__ = (
        Index("ix_users_email_unique", "email", unique=True),
        Index("ix_users_tenant_id", "tenant_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )
    tenant_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
    )
    email: Mapped[str] = mapped_column(String(length=320), nullable=False)
    name: Mapped[str | None] = mapped_column(String(length=255))
    phone: Mapped[str | None] = mapped_column(String(length=64))
    password_hash: Mapped[str | None] = mapped_column(String(length=255))
    role: Mapped[str] = mapped_column(
        String(length=32),
        nullable=False,
        default="viewer",
        server_default=text("'viewer'"),
    )
    is_active: Mapped[bool] = mapped_column(
        nullable=False,
        default=True,
        server_default=text("true"),
    )
    profile_picture_url: Mapped[str | None] = mapped_column(Text())
    wallet_address: Mapped[str | None] = mapped_column(String(length=255))
    email_verified: Mapped[bool] = mapped_column(
        nullable=False,
        default=False,
        server_default=text("false"),
    )
    phone_verified: Mapped[bool] = mapped_column(
        nullable=False,
        default=False,
        server_default=text("false"),
    )
    metadata_: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSONDocument)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )
    # Soft-deleted users keep their row so they can be restored on re-creation.
    deleted_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True))

    tenant: Mapped[Tenant] = relationship(
        back_populates="users",
        lazy="joined",
    )
    refresh_tokens: Mapped[List["RefreshToken"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class RefreshToken(Base):
    """Refresh tokens issued to console users."""

    __tablename__ = "refresh_tokens"
    __table_args__ = (
        Index("ix_refresh_tokens_user_id", "user_id"),
        Index("ix_refresh_tokens_token_hash", "token_hash", unique=True),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    token_hash: Mapped[str] = mapped_column(String(length=255), nullable=False)
    issued_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
    )
    expires_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    revoked_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True))
    user_agent: Mapped[str | None] = mapped_column(String(length=255))

    user: Mapped[User] = relationship(back_populates="refresh_tokens")


__all__ = ["RefreshToken", "Tenant", "User"]
