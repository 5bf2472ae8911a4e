from __future__ import annotations

import json

import pytest

import portal_login
from tenantdesk.portal import (
    PortalAuthError,
    PortalLogin,
    PortalSessionExpiredError,
    PortalSessionStore,
    RegistrationRequiredError,
)


class _FakePortal:
    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.error: Exception | None = None

    def _raise(self) -> None:
        if self.error is not None:
            raise self.error

    def request_email_otp(self, email):
        self.calls.append(("request_email", email))
        self._raise()
        return {}

    def verify_email_otp(self, email, otp):
        self.calls.append(("verify_email", email, otp))
        return PortalLogin(
            access_token="tok",
            user={"name": "Ana", "email": email, "roles": ["INVESTOR"]},
            method="email",
            identifier=email,
        )

    def request_phone_otp(self, country_code, phone):
        self.calls.append(("request_phone", country_code, phone))
        self._raise()
        return {}

    def verify_phone_otp(self, country_code, phone, otp):
        self.calls.append(("verify_phone", country_code, phone, otp))
        return PortalLogin(access_token="tok", user={}, method="phone", identifier=f"{country_code}{phone}")

    def wallet_login(self, address):
        self.calls.append(("wallet", address))
        self._raise()
        return PortalLogin(access_token="w", user={"roles": ["PROJECT_OWNER"]}, method="wallet")

    def get_profile(self, token):
        self.calls.append(("profile", token))
        self._raise()
        return {"name": "Ana"}


@pytest.fixture(autouse=True)
def _no_dotenv(monkeypatch):
    monkeypatch.setattr(portal_login, "load_dotenv", lambda: None)


@pytest.fixture
def session_file(tmp_path):
    return tmp_path / "session.json"


def _run(portal, session_file, *argv, prompt=None):
    kwargs = {"client": portal}
    if prompt is not None:
        kwargs["prompt"] = prompt
    return portal_login.main(["--session-file", str(session_file), *argv], **kwargs)


def test_email_login_prompts_for_code_and_stores_session(session_file, capsys):
    portal = _FakePortal()

    code = _run(portal, session_file, "email", "ana@example.com", prompt=lambda _: " 12-34-56 ")

    assert code == portal_login.EXIT_OK
    assert portal.calls[-1] == ("verify_email", "ana@example.com", "123456")
    stored = json.loads(session_file.read_text(encoding="utf-8"))
    assert stored["investor_token"] == "tok"
    assert stored["investor_email"] == "ana@example.com"
    assert "Logged in as Ana (INVESTOR)" in capsys.readouterr().out


def test_phone_login_uses_otp_option(session_file):
    portal = _FakePortal()

    code = _run(portal, session_file, "phone", "987654321", "--country-code", "+51", "--otp", "654321")

    assert code == portal_login.EXIT_OK
    assert portal.calls == [
        ("request_phone", "+51", "987654321"),
        ("verify_phone", "+51", "987654321", "654321"),
    ]
    assert PortalSessionStore.load(session_file).get("investor_phone") == "+51987654321"


def test_unknown_account_exits_with_registration_code(session_file, capsys):
    portal = _FakePortal()
    portal.error = RegistrationRequiredError("phone", "987654321", "+51")

    code = _run(portal, session_file, "phone", "987654321", "--country-code", "+51", "--otp", "1")

    assert code == portal_login.EXIT_REGISTRATION_REQUIRED
    assert "+51987654321" in capsys.readouterr().out
    assert not session_file.exists()


def test_wallet_login_grants_project_owner_token(session_file):
    portal = _FakePortal()

    assert _run(portal, session_file, "wallet", "GABC") == portal_login.EXIT_OK
    assert PortalSessionStore.load(session_file).get("project_owner_token") == "w"


def test_api_error_exits_with_failure(session_file):
    portal = _FakePortal()
    portal.error = PortalAuthError("Invalid country code", 400)

    assert _run(portal, session_file, "wallet", "GABC") == portal_login.EXIT_ERROR


def test_profile_requires_login(session_file, capsys):
    assert _run(_FakePortal(), session_file, "profile") == portal_login.EXIT_ERROR
    assert "Not logged in." in capsys.readouterr().out


def test_profile_prints_json(session_file, capsys):
    PortalSessionStore({"investor_token": "tok"}).save(session_file)
    portal = _FakePortal()

    assert _run(portal, session_file, "profile") == portal_login.EXIT_OK
    assert portal.calls == [("profile", "tok")]
    assert json.loads(capsys.readouterr().out) == {"name": "Ana"}


def test_expired_session_is_cleared(session_file):
    PortalSessionStore({"investor_token": "tok", "investor_name": "Ana"}).save(session_file)
    portal = _FakePortal()
    portal.error = PortalSessionExpiredError("expired", 401)

    assert _run(portal, session_file, "profile") == portal_login.EXIT_ERROR
    assert PortalSessionStore.load(session_file).storage == {}


def test_logout(session_file):
    PortalSessionStore({"investor_token": "tok"}).save(session_file)

    assert _run(_FakePortal(), session_file, "logout") == portal_login.EXIT_OK
    assert not PortalSessionStore.load(session_file).is_authenticated
