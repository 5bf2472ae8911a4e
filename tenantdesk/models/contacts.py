"""Contact directory models: chatbot contacts, WhatsApp links and console chat."""

from __future__ import annotations

import datetime as dt
import uuid
from typing import Any, List

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from . import Base, JSONDocument


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class ChatbotContact(Base):
    """A contact listed in a tenant's chatbot directory.

    ``is_default_flowbot`` marks the tenant's own bot, which is always listed
    first. ``metadata`` may hold ``whatsappSessionId`` and ``whatsappJid``
    when the link to a WhatsApp conversation is known.
    """

    __tablename__ = "chatbot_contacts"
    __table_args__ = (Index("ix_chatbot_contacts_tenant_id", "tenant_id"),)

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
    type: Mapped[str] = mapped_column(
        String(length=32),
        nullable=False,
        default="CONTACT",
        server_default=text("'CONTACT'"),
    )
    display_name: Mapped[str] = mapped_column(String(length=255), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(length=64))
    email: Mapped[str | None] = mapped_column(String(length=320))
    description: Mapped[str | None] = mapped_column(Text())
    avatar_url: Mapped[str | None] = mapped_column(Text())
    is_default_flowbot: Mapped[bool] = mapped_column(
        nullable=False,
        default=False,
        server_default=text("false"),
    )
    metadata_: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSONDocument)
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    whatsapp_contacts: Mapped[List["WhatsAppContact"]] = relationship(
        back_populates="chatbot_contact",
        order_by="WhatsAppContact.created_at",
    )


class WhatsAppContact(Base):
    """A WhatsApp conversation partner seen by one of the tenant's sessions."""

    __tablename__ = "whatsapp_contacts"
    __table_args__ = (
        Index("ix_whatsapp_contacts_tenant_id", "tenant_id"),
        Index("ix_whatsapp_contacts_session_jid", "session_id", "jid"),
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
    session_id: Mapped[str | None] = mapped_column(String(length=255))
    jid: Mapped[str | None] = mapped_column(String(length=255))
    name: Mapped[str | None] = mapped_column(String(length=255))
    phone_number: Mapped[str | None] = mapped_column(String(length=64))
    user_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="SET NULL"),
    )
    chatbot_contact_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("chatbot_contacts.id", ondelete="SET NULL"),
    )
    last_message_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True))
    unread_count: Mapped[int] = mapped_column(
        Integer(), nullable=False, default=0, server_default=text("0")
    )
    metadata_: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSONDocument)
    session_status: Mapped[str | None] = mapped_column(String(length=32))
    session_started_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True))
    last_session_closed_at: Mapped[dt.datetime | None] = mapped_column(
        DateTime(timezone=True)
    )
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    chatbot_contact: Mapped[ChatbotContact | None] = relationship(
        back_populates="whatsapp_contacts"
    )


class TenantUserChatMessage(Base):
    """Direct message between two console users of the same tenant."""

    __tablename__ = "tenant_user_chat_messages"
    __table_args__ = (
        Index("ix_tenant_user_chat_messages_recipient", "tenant_id", "recipient_id"),
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
    sender_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    recipient_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    content: Mapped[str] = mapped_column(Text(), nullable=False)
    read_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )


__all__ = ["ChatbotContact", "TenantUserChatMessage", "WhatsAppContact"]
