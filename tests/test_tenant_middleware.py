"""Integration tests for the tenant context middleware."""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from types import SimpleNamespace
from typing import Any

import jwt
import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.testclient import TestClient

from tenantdesk.core.tenant_context import get_current_tenant_id, get_current_user_id
from tenantdesk.core.tenant_middleware import TenantContextMiddleware


@pytest.fixture(autouse=True)
def tenant_token_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TENANT_TOKEN_SECRET", "secret-key")
    monkeypatch.setenv("TENANT_TOKEN_AUDIENCE", "console")
    monkeypatch.setenv("TENANT_TOKEN_ISSUER", "tenantdesk")
    monkeypatch.setenv("TENANT_TOKEN_ALGORITHM", "HS256")


@dataclass
class RecordingConnection:
    """Collect SQL statements executed by the middleware."""

    dialect_name: str = "postgresql"
    statements: list[tuple[str, dict[str, Any] | None]] = field(default_factory=list)

    @property
    def dialect(self) -> SimpleNamespace:
        return SimpleNamespace(name=self.dialect_name)

    def execute(self, statement: Any, params: dict[str, Any] | None = None) -> None:
        self.statements.append((str(statement), params))

    def close(self) -> None:
        self.statements.append(("CLOSE", None))


@dataclass
class RecordingEngine:
    connection: RecordingConnection

    @property
    def dialect(self) -> SimpleNamespace:
        return self.connection.dialect

    def connect(self) -> RecordingConnection:
        return self.connection


def _create_app(engine: RecordingEngine) -> FastAPI:
    app = FastAPI()
    app.add_middleware(TenantContextMiddleware, engine=engine)

    @app.get("/api/context")
    async def read_context(request: Request) -> JSONResponse:
        return JSONResponse(
            {
                "tenant_id": request.state.tenant_id,
                "user_id": request.state.user_id,
                "context_tenant": get_current_tenant_id(),
                "context_user": get_current_user_id(),
            }
        )

    @app.get("/api/health")
    async def health() -> JSONResponse:
        return JSONResponse({"status": "ok"})

    @app.get("/api/console/accounts/login")
    async def login() -> JSONResponse:
        return JSONResponse({"public": True})

    @app.get("/api/zkey/branding")
    async def branding() -> JSONResponse:
        return JSONResponse({"public": True})

    @app.api_route("/api/admin/tenants/{key}/customization", methods=["GET", "PUT"])
    async def customization(key: str) -> JSONResponse:
        return JSONResponse({"key": key})

    @app.get("/dashboard")
    async def dashboard() -> JSONResponse:
        return JSONResponse({"page": "dashboard"})

    return app


@pytest.fixture
def client_factory() -> Callable[..., tuple[TestClient, RecordingConnection]]:
    def _factory(dialect: str = "postgresql") -> tuple[TestClient, RecordingConnection]:
        connection = RecordingConnection(dialect_name=dialect)
        app = _create_app(RecordingEngine(connection=connection))
        return TestClient(app, raise_server_exceptions=False), connection

    return _factory


def _issue_token(*, tenant_id: str = "tenant-1", user_id: str = "user-1", expires_in: int = 300) -> str:
    payload: dict[str, Any] = {
        "tenant_id": tenant_id,
        "user_id": user_id,
        "aud": "console",
        "iss": "tenantdesk",
        "exp": int(time.time()) + expires_in,
        "type": "access",
        "scope": "tenant",
    }
    return str(jwt.encode(payload, "secret-key", algorithm="HS256"))


def test_middleware_sets_state_and_context(client_factory) -> None:
    client, connection = client_factory()

    response = client.get("/api/context", headers={"Authorization": f"Bearer {_issue_token()}"})

    assert response.status_code == 200
    assert response.json() == {
        "tenant_id": "tenant-1",
        "user_id": "user-1",
        "context_tenant": "tenant-1",
        "context_user": "user-1",
    }
    assert connection.statements[0][0].startswith("SELECT set_config")
    assert connection.statements[0][1] == {"tenant_id": "tenant-1"}
    assert connection.statements[1][0] == "RESET app.tenant_id"
    assert connection.statements[2][0] == "CLOSE"
    assert get_current_tenant_id() is None


def test_other_dialects_skip_set_config(client_factory) -> None:
    client, connection = client_factory(dialect="sqlite")

    response = client.get("/api/context", headers={"Authorization": f"Bearer {_issue_token()}"})

    assert response.status_code == 200
    assert connection.statements == []


@pytest.mark.parametrize(
    "headers",
    [
        {},
        {"Authorization": "Basic abc"},
        {"Authorization": f"Bearer {_issue_token(expires_in=-10)}"},
        {"Authorization": f"Bearer {_issue_token()[:-1]}x"},
    ],
)
def test_rejected_tokens_return_unauthorized(client_factory, headers) -> None:
    client, connection = client_factory()

    response = client.get("/api/context", headers=headers)

    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"
    assert connection.statements == []
    assert get_current_tenant_id() is None


@pytest.mark.parametrize(
    "path",
    [
        "/api/health",
        "/api/console/accounts/login",
        "/api/zkey/branding",
        "/api/admin/tenants/acme/customization",
        "/dashboard",
    ],
)
def test_public_paths_bypass_auth(client_factory, path: str) -> None:
    client, connection = client_factory()

    assert client.get(path).status_code == 200
    assert connection.statements == []


def test_customization_writes_require_a_token(client_factory) -> None:
    client, _ = client_factory()

    assert client.put("/api/admin/tenants/acme/customization").status_code == 401


def test_middleware_is_inert_without_token_settings(
    client_factory, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.delenv("TENANT_TOKEN_SECRET")
    client, _ = client_factory()

    response = client.get("/api/health")

    assert response.status_code == 200
