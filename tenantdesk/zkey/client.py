"""HTTP client for the zkey identity service (OIDC provider).

The hosted login pages do not authenticate users themselves: every step
(OTP request and verification, password check, wallet signature check,
registration) is delegated to the identity service, and a successful step
finishes the pending OIDC *interaction* so the provider can redirect the
user back to the application.
"""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Callable
from urllib.parse import quote, urljoin

import jwt
import requests

DEFAULT_DEV_SERVICE_URL = "http://127.0.0.1:3002"
MAX_RETRIES = 5
RETRY_DELAY_SECONDS = 2.0
REQUEST_TIMEOUT_SECONDS = 10.0


class ZkeyError(RuntimeError):
    """Base class for identity service failures."""


class ZkeyConfigurationError(ZkeyError):
    """Raised when no identity service URL is configured."""


class ZkeyServiceUnavailableError(ZkeyError):
    """Raised when the identity service cannot be reached after retries."""


class ZkeyActionError(ZkeyError):
    """Raised when a step that must succeed is rejected by the service."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class ActionResult:
    """Outcome of one identity-service call as reported to the login UI."""

    success: bool
    data: Any = None
    error: str | None = None
    status_code: int | None = None

    @classmethod
    def from_response(cls, response: requests.Response) -> "ActionResult":
        if not response.ok:
            try:
                body = response.json()
            except ValueError:
                message = response.text or "An error occurred"
            else:
                if isinstance(body, dict) and body.get("message"):
                    message = body["message"]
                    if isinstance(message, list):
                        message = "; ".join(str(item) for item in message)
                else:
                    message = json.dumps(body)
            return cls(success=False, error=str(message), status_code=response.status_code)

        try:
            data = response.json()
        except ValueError:
            data = None
        return cls(success=True, data=data, status_code=response.status_code)

    def as_dict(self) -> dict[str, Any]:
        if self.success:
            return {"success": True, "data": self.data}
        return {"success": False, "error": self.error}


def resolve_service_url(raw: str | None = None) -> str:
    """Return the identity service base URL without trailing slashes.

    ``ZKEY_SERVICE_URL`` is used when ``raw`` is not given. A local default
    applies only when ``APP_ENV=development``.
    """

    value = (raw if raw is not None else os.getenv("ZKEY_SERVICE_URL", "")).strip()
    if value:
        return value.rstrip("/")
    if os.getenv("APP_ENV", "").lower() == "development":
        return DEFAULT_DEV_SERVICE_URL
    raise ZkeyConfigurationError("ZKEY_SERVICE_URL is not configured")


def subject_from_token(token: str) -> str:
    """Read the ``sub`` claim of an identity-service token without verifying it."""

    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError as exc:
        raise ZkeyActionError("Identity service returned an unreadable token") from exc
    subject = claims.get("sub")
    if not subject:
        raise ZkeyActionError("Identity service token carries no subject")
    return str(subject)


class ZkeyServiceClient:
    """Thin wrapper over the identity service REST API."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        session: requests.Session | None = None,
        logger: logging.Logger | None = None,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY_SECONDS,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._base_url = base_url
        self.session = session or requests.Session()
        self.logger = logger or logging.getLogger(__name__)
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout
        self._sleep = sleep

    @property
    def base_url(self) -> str:
        return resolve_service_url(self._base_url)

    def _request(self, method: str, path: str, **kwargs: Any) -> requests.Response:
        base = self.base_url
        url = urljoin(base + "/", path.lstrip("/"))
        kwargs.setdefault("timeout", self.timeout)

        for attempt in range(self.max_retries + 1):
            try:
                return self.session.request(method, url, **kwargs)
            except (requests.ConnectionError, requests.Timeout) as exc:
                if attempt >= self.max_retries:
                    raise ZkeyServiceUnavailableError(
                        f"Failed to reach the identity service at {base}"
                    ) from exc
                self.logger.warning(
                    "Identity service call %s %s failed (attempt %d/%d): %s",
                    method,
                    path,
                    attempt + 1,
                    self.max_retries + 1,
                    exc.__class__.__name__,
                )
                self._sleep(self.retry_delay)
        raise ZkeyServiceUnavailableError(f"Failed to reach the identity service at {base}")

    def _post(self, path: str, body: dict[str, Any]) -> ActionResult:
        return ActionResult.from_response(self._request("POST", path, json=body))

    # -- OTP -------------------------------------------------------------

    def request_otp(self, identifier: str, type: str, client_id: str) -> ActionResult:
        return self._post(
            "/auth/otp/request",
            {"identifier": identifier, "type": type, "clientId": client_id},
        )

    def verify_otp(self, identifier: str, code: str) -> ActionResult:
        return self._post("/auth/otp/verify", {"identifier": identifier, "code": code})

    # -- interaction completion -----------------------------------------

    def login_with_password(self, interaction_id: str, email: str, password: str) -> ActionResult:
        return self._post(
            "/auth/interaction/login",
            {"interactionId": interaction_id, "email": email, "password": password},
        )

    def login_with_user_id(self, interaction_id: str, user_id: str) -> ActionResult:
        return self._post(
            "/auth/interaction/login",
            {"interactionId": interaction_id, "userId": user_id},
        )

    def _complete_with_token(self, interaction_id: str, verified: ActionResult) -> ActionResult:
        if not verified.success:
            return verified
        data = verified.data if isinstance(verified.data, dict) else {}
        token = data.get("accessToken")
        if not token:
            return ActionResult(
                success=False,
                error="Identity service did not return an access token",
                status_code=502,
            )
        try:
            user_id = subject_from_token(token)
        except ZkeyActionError as exc:
            return ActionResult(success=False, error=str(exc), status_code=502)
        return self.login_with_user_id(interaction_id, user_id)

    def login_with_otp(self, interaction_id: str, identifier: str, code: str) -> ActionResult:
        """Verify an OTP, then finish the interaction as the verified user."""

        return self._complete_with_token(interaction_id, self.verify_otp(identifier, code))

    def login_with_wallet(self, interaction_id: str, address: str, signature: str) -> ActionResult:
        """Check a wallet signature, then finish the interaction as its owner."""

        verified = self._post("/auth/wallet/login", {"address": address, "signature": signature})
        return self._complete_with_token(interaction_id, verified)

    def get_wallet_nonce(self, address: str) -> ActionResult:
        return ActionResult.from_response(
            self._request("GET", f"/auth/nonce/{quote(address, safe='')}")
        )

    def get_interaction_details(self, interaction_id: str) -> dict[str, Any]:
        """Return the pending interaction (client id, prompt, params).

        Raises:
            ZkeyActionError: If the service rejects the lookup.
        """

        result = ActionResult.from_response(
            self._request("GET", f"/auth/interaction/{quote(interaction_id, safe='')}")
        )
        if not result.success:
            raise ZkeyActionError(result.error or "Interaction not found", result.status_code)
        return result.data if isinstance(result.data, dict) else {}

    def register(
        self,
        interaction_id: str,
        email: str,
        first_name: str,
        last_name: str,
        phone: str,
        wallet_address: str | None = None,
        signature: str | None = None,
    ) -> ActionResult:
        body: dict[str, Any] = {
            "email": email,
            "firstName": first_name,
            "lastName": last_name,
            "phone": phone,
            "clientId": interaction_id,
        }
        if wallet_address:
            body["walletAddress"] = wallet_address
        if signature:
            body["signature"] = signature
        return self._post("/auth/register", body)

    def get_profile(self, token: str) -> ActionResult:
        return ActionResult.from_response(
            self._request("GET", "/auth/profile", headers={"Authorization": f"Bearer {token}"})
        )


__all__ = [
    "ActionResult",
    "DEFAULT_DEV_SERVICE_URL",
    "ZkeyActionError",
    "ZkeyConfigurationError",
    "ZkeyError",
    "ZkeyServiceClient",
    "ZkeyServiceUnavailableError",
    "resolve_service_url",
    "subject_from_token",
]
