"""OIDC client registrations served by the identity service."""

from __future__ import annotations

import datetime as dt
import uuid
from typing import Any

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from . import Base, JSONDocument
from .tenant import Tenant

DEFAULT_AUTH_METHODS: dict[str, bool] = {"password": True, "otp": False, "wallet": False}


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class Application(Base):
    """An OAuth/OIDC client belonging to a tenant.

    ``auth_methods`` toggles which hosted-login flows the client accepts.
    The Brevo (e-mail) and LabsMobile (SMS) fields carry per-application
    OTP delivery credentials.
    """

    __tablename__ = "applications"
    __table_args__ = (
        Index("ix_applications_client_id_unique", "client_id", unique=True),
        Index("ix_applications_tenant_id", "tenant_id"),
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
    name: Mapped[str] = mapped_column(String(length=255), nullable=False)
    client_id: Mapped[str] = mapped_column(String(length=64), nullable=False)
    client_secret: Mapped[str] = mapped_column(String(length=128), nullable=False)
    cors_origins: Mapped[list[str]] = mapped_column(JSONDocument, nullable=False, default=list)
    redirect_uris: Mapped[list[str]] = mapped_column(JSONDocument, nullable=False, default=list)
    post_logout_redirect_uris: Mapped[list[str]] = mapped_column(
        JSONDocument, nullable=False, default=list
    )
    auth_methods: Mapped[dict[str, Any]] = mapped_column(
        JSONDocument,
        nullable=False,
        default=lambda: dict(DEFAULT_AUTH_METHODS),
    )

    brevo_api_key: Mapped[str | None] = mapped_column(Text())
    brevo_sender_email: Mapped[str | None] = mapped_column(String(length=320))
    brevo_sender_name: Mapped[str | None] = mapped_column(String(length=255))
    labsmobile_api_key: Mapped[str | None] = mapped_column(Text())
    labsmobile_user: Mapped[str | None] = mapped_column(String(length=255))
    labsmobile_url: Mapped[str | None] = mapped_column(String(length=1024))
    labsmobile_sender_id: Mapped[str | None] = mapped_column(String(length=64))

    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    tenant: Mapped[Tenant] = relationship(lazy="joined")


__all__ = ["Application", "DEFAULT_AUTH_METHODS"]
