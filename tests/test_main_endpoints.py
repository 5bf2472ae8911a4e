"""Tests for the public endpoints wired in tenantdesk/main.py and the IP helper."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from fastapi import Request

from tenantdesk.__version__ import __build_date__, __commit_sha__, __version__
from tenantdesk.core.limits import get_client_ip, otp_rate_limit


@pytest.fixture
def client(client_factory):
    return client_factory()


class TestHealthEndpoint:
    def test_health_returns_ok_status(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    def test_health_is_not_access_logged_with_request_id(self, client):
        resp = client.get("/api/health")
        assert "X-Request-Id" not in resp.headers


class TestVersionEndpoint:
    def test_version_reports_build_metadata(self, client):
        resp = client.get("/api/version")
        assert resp.status_code == 200
        assert resp.json() == {
            "version": __version__,
            "build_date": __build_date__,
            "commit_sha": __commit_sha__,
        }


class TestConfigEndpoint:
    def test_config_defaults(self, client, monkeypatch):
        monkeypatch.delenv("BRAND_NAME", raising=False)
        monkeypatch.delenv("LOGO_URL", raising=False)

        data = client.get("/api/config").json()

        assert data["BRAND_NAME"] == "Tenantdesk"
        assert data["LOGO_URL"] == ""
        assert data["LOGO_MAX_SIZE"] == 5 * 1024 * 1024
        assert "image/png" in data["LOGO_ALLOWED_MIME_TYPES"]
        assert data["LOGO_ALLOWED_MIME_TYPES"] == sorted(data["LOGO_ALLOWED_MIME_TYPES"])

    def test_config_reads_environment(self, client, monkeypatch):
        monkeypatch.setenv("BRAND_NAME", "Acme Desk")
        monkeypatch.setenv("LOGO_URL", "https://cdn.example/logo.svg")

        data = client.get("/api/config").json()

        assert data["BRAND_NAME"] == "Acme Desk"
        assert data["LOGO_URL"] == "https://cdn.example/logo.svg"


class TestMetricsEndpoint:
    def test_metrics_are_public(self, client):
        client.get("/api/health")
        resp = client.get("/api/metrics")
        assert resp.status_code == 200
        assert "http_request" in resp.text


class TestGetClientIp:
    def _request(self, headers: dict[str, str], host: str | None = "10.0.0.9") -> MagicMock:
        request = MagicMock(spec=Request)
        request.headers = headers
        request.client = SimpleNamespace(host=host) if host else None
        return request

    def test_first_forwarded_hop_wins(self):
        request = self._request({"X-Forwarded-For": " 203.0.113.5 , 10.0.0.1"})
        assert get_client_ip(request) == "203.0.113.5"

    def test_falls_back_to_peer_address(self):
        assert get_client_ip(self._request({})) == "10.0.0.9"

    def test_unknown_without_peer(self):
        assert get_client_ip(self._request({}, host=None)) == "unknown"


def test_otp_rate_limit_default(monkeypatch):
    monkeypatch.delenv("OTP_RATE_LIMIT", raising=False)
    assert otp_rate_limit() == "10/minute"
    monkeypatch.setenv("OTP_RATE_LIMIT", "3/hour")
    assert otp_rate_limit() == "3/hour"
