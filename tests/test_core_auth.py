"""Bearer token parsing and the tenant context dependency."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from tenantdesk.core.auth import (
    TenantTokenConfigurationError,
    TenantTokenPayload,
    TenantTokenValidationError,
    decode_tenant_token,
    get_tenant_context,
    split_bearer,
    token_settings_present,
)

SECRET = "console-secret"


@pytest.fixture()
def token_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TENANT_TOKEN_SECRET", SECRET)
    monkeypatch.setenv("TENANT_TOKEN_AUDIENCE", "console")
    monkeypatch.setenv("TENANT_TOKEN_ISSUER", "tenantdesk")
    monkeypatch.delenv("TENANT_TOKEN_ALGORITHM", raising=False)


def _sign(*, secret: str = SECRET, expires_in: int = 300, **claims: object) -> str:
    payload: dict[str, object] = {
        "aud": "console",
        "iss": "tenantdesk",
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
        "tenant_id": "tenant-1",
        "user_id": "user-1",
    }
    payload.update(claims)
    payload = {key: value for key, value in payload.items() if value is not None}
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.mark.parametrize(
    "header, expected",
    [("Bearer abc", "abc"), ("bearer   abc ", "abc")],
)
def test_split_bearer(header: str, expected: str) -> None:
    assert split_bearer(header) == expected


@pytest.mark.parametrize("header", [None, "", "Bearer", "Bearer   ", "Basic abc"])
def test_split_bearer_rejects_other_headers(header: str | None) -> None:
    with pytest.raises(TenantTokenValidationError):
        split_bearer(header)


def test_token_settings_present(token_env: None, monkeypatch: pytest.MonkeyPatch) -> None:
    assert token_settings_present() is True
    monkeypatch.delenv("TENANT_TOKEN_ISSUER")
    assert token_settings_present() is False


def test_decode_returns_claims(token_env: None) -> None:
    payload = decode_tenant_token(_sign(roles=["operator"], type="access"))

    assert payload["tenant_id"] == "tenant-1"
    assert payload["user_id"] == "user-1"
    assert payload["roles"] == ["operator"]


@pytest.mark.parametrize(
    "claims",
    [
        {"user_id": None},
        {"tenant_id": None},
        {"type": "refresh"},
        {"aud": "someone-else"},
        {"iss": "elsewhere"},
        {"expires_in": -60},
    ],
)
def test_decode_rejects_untrusted_tokens(token_env: None, claims: dict) -> None:
    with pytest.raises(TenantTokenValidationError):
        decode_tenant_token(_sign(**claims))


def test_decode_rejects_foreign_signature(token_env: None) -> None:
    with pytest.raises(TenantTokenValidationError):
        decode_tenant_token(_sign(secret="another-secret"))


def test_decode_without_configuration(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("TENANT_TOKEN_SECRET", "TENANT_TOKEN_AUDIENCE", "TENANT_TOKEN_ISSUER"):
        monkeypatch.delenv(name, raising=False)

    with pytest.raises(TenantTokenConfigurationError):
        decode_tenant_token("token")


def _client() -> TestClient:
    app = FastAPI()

    @app.get("/whoami")
    async def whoami(
        payload: TenantTokenPayload = Depends(get_tenant_context),
    ) -> TenantTokenPayload:
        return payload

    return TestClient(app)


def test_dependency_returns_claims(token_env: None) -> None:
    response = _client().get("/whoami", headers={"Authorization": f"Bearer {_sign()}"})

    assert response.status_code == 200
    assert response.json()["tenant_id"] == "tenant-1"


@pytest.mark.parametrize(
    "headers",
    [{}, {"Authorization": "Token abc"}, {"Authorization": "Bearer not-a-jwt"}],
)
def test_dependency_unauthorized(token_env: None, headers: dict[str, str]) -> None:
    assert _client().get("/whoami", headers=headers).status_code == 401


def test_dependency_reports_missing_configuration(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("TENANT_TOKEN_SECRET", raising=False)
    monkeypatch.setenv("TENANT_TOKEN_AUDIENCE", "console")
    monkeypatch.setenv("TENANT_TOKEN_ISSUER", "tenantdesk")

    response = _client().get("/whoami", headers={"Authorization": "Bearer token"})

    assert response.status_code == 500
