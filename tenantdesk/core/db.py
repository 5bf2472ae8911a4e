"""Per-connection tenant settings for PostgreSQL row level security."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.engine import Connection

from .tenant_context import get_current_tenant_id

logger = logging.getLogger(__name__)


def get_required_tenant_id(tenant_id: str | UUID | None = None) -> UUID:
    """Return ``tenant_id`` (or the one of the current request) as a UUID.

    Raises:
        RuntimeError: If no tenant is known or the identifier is malformed.
    """

    effective = tenant_id or get_current_tenant_id()
    if effective is None:
        raise RuntimeError("Tenant context missing")
    if isinstance(effective, UUID):
        return effective
    try:
        return UUID(str(effective))
    except ValueError as exc:
        raise RuntimeError("Invalid tenant identifier") from exc


def apply_tenant_settings(
    connection: Connection, tenant_id: str | UUID | None = None
) -> bool:
    """Set ``app.tenant_id`` on ``connection`` for the current transaction.

    Only PostgreSQL understands ``set_config``; other dialects are left alone
    and ``False`` is returned.
    """

    if connection.dialect.name != "postgresql":
        return False

    tenant_value = str(get_required_tenant_id(tenant_id))
    try:
        connection.execute(
            text("SELECT set_config('app.tenant_id', :tenant_id, true)"),
            {"tenant_id": tenant_value},
        )
    except Exception:
        logger.exception("Failed to apply tenant settings to connection")
        raise
    return True


def reset_tenant_settings(connection: Connection) -> None:
    if connection.dialect.name == "postgresql":
        connection.execute(text("RESET app.tenant_id"))


__all__ = ["apply_tenant_settings", "get_required_tenant_id", "reset_tenant_settings"]
