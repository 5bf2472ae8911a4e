"""SQLAlchemy declarative base and the tenantdesk domain models.

Every model shares the single declarative ``Base`` defined here, so
``Base.metadata.create_all`` builds the whole schema (the bootstrap tool and
the test-suite both rely on it). Individual models live in dedicated modules
within this package.
"""

from __future__ import annotations

from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy declarative models."""


# JSON documents are stored as JSONB on Postgres and plain JSON elsewhere.
JSONDocument = JSON().with_variant(JSONB(), "postgresql")


# Re-export the models so callers can write ``from tenantdesk.models import Tenant``.
from .tenant import RefreshToken, Tenant, User
from .contacts import ChatbotContact, TenantUserChatMessage, WhatsAppContact
from .application import Application


__all__ = [
    "Application",
    "Base",
    "ChatbotContact",
    "JSONDocument",
    "RefreshToken",
    "Tenant",
    "TenantUserChatMessage",
    "User",
    "WhatsAppContact",
]
