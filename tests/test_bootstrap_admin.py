from __future__ import annotations

import json
import logging

import pytest
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from tenantdesk.models import Base, Tenant, User
from tenantdesk.models.session import get_engine
from tenantdesk.security import verify_password
from tools import bootstrap_admin, print_log_config


def _session_factory() -> sessionmaker:
    engine = get_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False, future=True)


def _messages(caplog) -> list[str]:
    return [record.message for record in caplog.records if record.name == "tools.bootstrap_admin"]


def test_creates_tenant_and_super_admin(caplog):
    factory = _session_factory()
    caplog.set_level(logging.INFO, logger="tools.bootstrap_admin")

    with factory() as session:
        tenant, user, created_tenant, created_user = bootstrap_admin.ensure_admin_entities(
            session,
            admin_password="Sup3r-secret",
            tenant_name=" Acme ",
            tenant_subdomain="ACME",
            admin_email=" Root@Acme.example ",
        )
        session.commit()

    assert created_tenant is True
    assert created_user is True
    assert tenant.name == "Acme"
    assert tenant.subdomain == "acme"
    assert user.email == "root@acme.example"
    assert user.role == "super_admin"
    assert user.tenant_id == tenant.id
    assert verify_password("Sup3r-secret", user.password_hash)

    messages = _messages(caplog)
    assert any("Created tenant" in message for message in messages)
    assert any("Created super_admin" in message for message in messages)


def test_existing_rows_are_reused_and_password_kept(caplog):
    factory = _session_factory()
    with factory() as session:
        _, user, _, _ = bootstrap_admin.ensure_admin_entities(session, admin_password="first-pass")
        session.commit()
        original_hash = user.password_hash

    caplog.set_level(logging.INFO, logger="tools.bootstrap_admin")
    caplog.clear()

    with factory() as session:
        _, user, created_tenant, created_user = bootstrap_admin.ensure_admin_entities(
            session, admin_password="second-pass"
        )
        session.commit()
        assert session.execute(select(Tenant)).scalars().all() == [user.tenant]
        assert len(session.execute(select(User)).scalars().all()) == 1

    assert created_tenant is False
    assert created_user is False
    assert user.password_hash == original_hash
    assert any("already exists" in message for message in _messages(caplog))


def test_main_requires_database_url(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.setattr(bootstrap_admin, "load_dotenv", lambda: None)

    with pytest.raises(RuntimeError, match="DATABASE_URL"):
        bootstrap_admin.main(["--admin-password", "whatever1"])


def test_main_bootstraps_database_file(monkeypatch, tmp_path):
    db_url = f"sqlite+pysqlite:///{tmp_path / 'bootstrap.db'}"
    monkeypatch.setenv("DATABASE_URL", db_url)
    monkeypatch.setattr(bootstrap_admin, "load_dotenv", lambda: None)

    bootstrap_admin.main(["--admin-password", "Sup3r-secret", "--subdomain", "main"])

    factory = sessionmaker(bind=get_engine(db_url), future=True)
    with factory() as session:
        tenant = session.execute(select(Tenant)).scalar_one()
        assert tenant.subdomain == "main"
        assert session.execute(select(User)).scalar_one().email == "admin@example.com"


def test_safe_url_redacts_password():
    redacted = bootstrap_admin._safe_url("postgresql://user:hunter2@db/app")

    assert "hunter2" not in redacted
    assert redacted.startswith("postgresql://user:")
    assert redacted.endswith("@db/app")
    assert bootstrap_admin._safe_url("sqlite:///app.db") == "sqlite:///app.db"


def test_print_log_config(monkeypatch, tmp_path, capsys):
    monkeypatch.setenv("LOG_DIR", str(tmp_path))
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("LOG_JSON", "true")
    monkeypatch.delenv("LOG_RETENTION_DAYS", raising=False)
    monkeypatch.delenv("LOG_REQUEST_BODIES", raising=False)

    assert print_log_config.main([]) == 0

    config = json.loads(capsys.readouterr().out)
    assert config["log_dir"] == str(tmp_path)
    assert config["log_level"] == "DEBUG"
    assert config["log_json"] is True
    assert config["files"]["tenantdesk"].endswith("app.log")
    assert "otp" in config["scrubbed_fields"]
    assert config["retention_days"] == 7
    assert config["log_request_bodies"] is False


def test_print_log_config_falls_back_to_info(monkeypatch, tmp_path, capsys):
    monkeypatch.setenv("LOG_DIR", str(tmp_path))
    monkeypatch.setenv("LOG_LEVEL", "basic_format")

    print_log_config.main([])

    assert json.loads(capsys.readouterr().out)["log_level"] == "INFO"


def test_print_log_config_redacts_payloads(capsys):
    payload = {"email": "a@example.com", "password": "x", "nested": [{"clientSecret": "s"}]}

    assert print_log_config.main(["--redact", json.dumps(payload)]) == 0

    assert json.loads(capsys.readouterr().out) == {
        "email": "a@example.com",
        "password": "***",
        "nested": [{"clientSecret": "***"}],
    }


def test_print_log_config_rejects_invalid_json(capsys):
    assert print_log_config.main(["--redact", "{oops"]) == 1
    assert "Invalid JSON" in capsys.readouterr().err
