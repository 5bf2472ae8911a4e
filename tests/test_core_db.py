"""Tests for tenant-aware database helpers."""

from types import SimpleNamespace
from uuid import uuid4

import pytest

from tenantdesk.core.db import apply_tenant_settings, get_required_tenant_id, reset_tenant_settings
from tenantdesk.core.tenant_context import (
    get_current_tenant_id,
    get_current_user_id,
    reset_tenant_context,
    set_tenant_context,
)


class _Connection:
    def __init__(self, dialect: str) -> None:
        self.dialect = SimpleNamespace(name=dialect)
        self.statements: list[tuple[str, object]] = []

    def execute(self, statement, params=None):
        self.statements.append((str(statement), params))


def test_get_required_tenant_id_from_context():
    tenant = uuid4()
    token = set_tenant_context(str(tenant), "user-123")
    try:
        assert get_required_tenant_id() == tenant
        assert get_current_tenant_id() == str(tenant)
        assert get_current_user_id() == "user-123"
    finally:
        reset_tenant_context(token)
    assert get_current_user_id() is None


def test_explicit_tenant_id_wins():
    tenant = uuid4()
    assert get_required_tenant_id(tenant) is tenant
    assert get_required_tenant_id(str(tenant)) == tenant


def test_get_required_tenant_id_invalid_raises():
    with pytest.raises(RuntimeError):
        get_required_tenant_id()

    with pytest.raises(RuntimeError):
        get_required_tenant_id("not-a-uuid")


def test_apply_tenant_settings_on_postgres():
    tenant = uuid4()
    connection = _Connection("postgresql")

    assert apply_tenant_settings(connection, tenant) is True
    reset_tenant_settings(connection)

    assert connection.statements[0] == (
        "SELECT set_config('app.tenant_id', :tenant_id, true)",
        {"tenant_id": str(tenant)},
    )
    assert connection.statements[1][0] == "RESET app.tenant_id"


def test_apply_tenant_settings_ignores_other_dialects():
    connection = _Connection("sqlite")

    assert apply_tenant_settings(connection, uuid4()) is False
    reset_tenant_settings(connection)

    assert connection.statements == []
