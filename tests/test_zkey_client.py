from __future__ import annotations

from typing import Any, Dict, List

import jwt
import pytest
import requests

from tenantdesk.zkey.client import (
    ActionResult,
    ZkeyActionError,
    ZkeyConfigurationError,
    ZkeyServiceClient,
    ZkeyServiceUnavailableError,
    resolve_service_url,
    subject_from_token,
)

_NO_BODY = object()


class _FakeResponse:
    def __init__(self, payload: Any = _NO_BODY, status_code: int = 200, text: str = ""):
        self._payload = payload
        self.status_code = status_code
        self.text = text

    @property
    def ok(self) -> bool:
        return self.status_code < 400

    def json(self) -> Any:
        if self._payload is _NO_BODY:
            raise ValueError("no JSON body")
        return self._payload


class _FakeSession:
    def __init__(self, responses: List[Any]):
        self._responses = responses
        self.requests: List[Dict[str, Any]] = []

    def request(self, method: str, url: str, **kwargs: Any) -> _FakeResponse:
        self.requests.append({"method": method, "url": url, **kwargs})
        if not self._responses:
            raise AssertionError("no more responses queued")
        item = self._responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def _client(*responses: Any, sleeps: list[float] | None = None, **kwargs: Any):
    session = _FakeSession(list(responses))
    recorded = sleeps if sleeps is not None else []
    client = ZkeyServiceClient(
        "https://id.example/",
        session=session,
        sleep=recorded.append,
        retry_delay=0.5,
        **kwargs,
    )
    return client, session


def _token(sub: str | None = "user-42") -> str:
    claims = {"sub": sub} if sub else {"scope": "x"}
    return jwt.encode(claims, "irrelevant", algorithm="HS256")


def test_request_otp_posts_camel_case_body():
    client, session = _client(_FakeResponse({"sent": True}))

    result = client.request_otp("a@b.example", "email", "client-1")

    assert result == ActionResult(success=True, data={"sent": True}, status_code=200)
    sent = session.requests[0]
    assert sent["method"] == "POST"
    assert sent["url"] == "https://id.example/auth/otp/request"
    assert sent["json"] == {"identifier": "a@b.example", "type": "email", "clientId": "client-1"}
    assert sent["timeout"] == 10.0


@pytest.mark.parametrize(
    "response, message",
    [
        (_FakeResponse({"message": "Invalid code"}, 401), "Invalid code"),
        (_FakeResponse({"message": ["email must be valid", "phone required"]}, 400), "email must be valid; phone required"),
        (_FakeResponse({"error": "boom"}, 500), '{"error": "boom"}'),
        (_FakeResponse(status_code=502, text="Bad gateway"), "Bad gateway"),
        (_FakeResponse(status_code=500), "An error occurred"),
    ],
)
def test_failures_are_reported_with_upstream_message(response, message):
    client, _ = _client(response)

    result = client.verify_otp("a@b.example", "000000")

    assert result.success is False
    assert result.error == message
    assert result.status_code == response.status_code
    assert result.as_dict() == {"success": False, "error": message}


def test_connection_errors_are_retried():
    sleeps: list[float] = []
    client, session = _client(
        requests.ConnectionError("refused"),
        requests.Timeout("slow"),
        _FakeResponse({"nonce": "abc"}),
        sleeps=sleeps,
    )

    result = client.get_wallet_nonce("0xAB/CD")

    assert result.data == {"nonce": "abc"}
    assert sleeps == [0.5, 0.5]
    assert session.requests[-1]["url"] == "https://id.example/auth/nonce/0xAB%2FCD"


def test_unreachable_service_raises_after_retries():
    sleeps: list[float] = []
    client, session = _client(
        *[requests.ConnectionError("down") for _ in range(3)], sleeps=sleeps, max_retries=2
    )

    with pytest.raises(ZkeyServiceUnavailableError):
        client.request_otp("a@b.example", "email", "client-1")

    assert len(session.requests) == 3
    assert len(sleeps) == 2


def test_login_with_otp_finishes_interaction_as_token_subject():
    client, session = _client(
        _FakeResponse({"accessToken": _token("user-42")}),
        _FakeResponse({"redirectTo": "https://app.example/cb"}),
    )

    result = client.login_with_otp("int-1", "+51987654321", "123456")

    assert result.success is True
    assert result.data == {"redirectTo": "https://app.example/cb"}
    assert session.requests[0]["url"] == "https://id.example/auth/otp/verify"
    assert session.requests[1]["json"] == {"interactionId": "int-1", "userId": "user-42"}


def test_login_with_otp_stops_on_rejected_code():
    client, session = _client(_FakeResponse({"message": "Expired"}, 401))

    result = client.login_with_otp("int-1", "a@b.example", "123456")

    assert result.as_dict() == {"success": False, "error": "Expired"}
    assert len(session.requests) == 1


@pytest.mark.parametrize("payload", [{}, {"accessToken": ""}, {"accessToken": "not-a-jwt"}])
def test_login_with_wallet_needs_a_readable_token(payload):
    client, session = _client(_FakeResponse(payload))

    result = client.login_with_wallet("int-1", "0xabc", "0xsig")

    assert result.success is False
    assert result.status_code == 502
    assert len(session.requests) == 1


def test_login_with_password_passes_credentials():
    client, session = _client(_FakeResponse({"redirectTo": "/cb"}))

    client.login_with_password("int-1", "a@b.example", "pw")

    assert session.requests[0]["json"] == {
        "interactionId": "int-1",
        "email": "a@b.example",
        "password": "pw",
    }


def test_interaction_details():
    client, _ = _client(_FakeResponse({"clientId": "client-1", "prompt": "login"}))
    assert client.get_interaction_details("int-1") == {"clientId": "client-1", "prompt": "login"}


def test_interaction_details_error_carries_status():
    client, _ = _client(_FakeResponse({"message": "Interaction not found"}, 404))

    with pytest.raises(ZkeyActionError) as excinfo:
        client.get_interaction_details("int-1")

    assert excinfo.value.status_code == 404


def test_register_includes_wallet_only_when_given():
    client, session = _client(_FakeResponse({"id": "u"}), _FakeResponse({"id": "v"}))

    client.register("int-1", "a@b.example", "Ana", "Diaz", "+51987654321")
    client.register("int-1", "a@b.example", "Ana", "Diaz", "+51987654321", "0xabc", "0xsig")

    assert "walletAddress" not in session.requests[0]["json"]
    assert session.requests[0]["json"]["clientId"] == "int-1"
    assert session.requests[1]["json"]["walletAddress"] == "0xabc"
    assert session.requests[1]["json"]["signature"] == "0xsig"


def test_get_profile_sends_bearer_token():
    client, session = _client(_FakeResponse({"email": "a@b.example"}))

    client.get_profile("tok")

    assert session.requests[0]["headers"] == {"Authorization": "Bearer tok"}


def test_subject_from_token():
    assert subject_from_token(_token("abc")) == "abc"
    with pytest.raises(ZkeyActionError):
        subject_from_token(_token(None))


def test_resolve_service_url(monkeypatch):
    monkeypatch.delenv("APP_ENV", raising=False)
    monkeypatch.setenv("ZKEY_SERVICE_URL", " https://id.example/// ")
    assert resolve_service_url() == "https://id.example"
    assert resolve_service_url("https://other.example/") == "https://other.example"

    monkeypatch.delenv("ZKEY_SERVICE_URL")
    with pytest.raises(ZkeyConfigurationError):
        resolve_service_url()

    monkeypatch.setenv("APP_ENV", "development")
    assert resolve_service_url() == "http://127.0.0.1:3002"


def test_login_with_user_id_completes_interaction():
    client, session = _client(_FakeResponse({"redirectTo": "/cb"}))

    result = client.login_with_user_id("int-1", "user-7")

    assert result.success is True
    assert session.requests[0]["url"] == "https://id.example/auth/interaction/login"
    assert session.requests[0]["json"] == {"interactionId": "int-1", "userId": "user-7"}
