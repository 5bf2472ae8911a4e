"""REST client for the investor and project-owner portal API."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any

import requests

from tenantdesk.phone import sanitize_country_code

DEFAULT_PORTAL_URL = "http://localhost:3001"

_WHITESPACE = re.compile(r"\s+")


class PortalAuthError(RuntimeError):
    """Raised when the portal API rejects a request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RegistrationRequiredError(PortalAuthError):
    """Raised when a login identifier has no portal account yet."""

    def __init__(self, method: str, value: str, country_code: str | None = None) -> None:
        super().__init__(f"No account found for this {method}; registration required", 404)
        self.method = method
        self.value = value
        self.country_code = country_code


class PortalSessionExpiredError(PortalAuthError):
    """Raised when the bearer token is no longer accepted."""


@dataclass(frozen=True)
class PortalLogin:
    """Token and user returned by a successful portal login."""

    access_token: str
    user: dict[str, Any] = field(default_factory=dict)
    method: str = "email"
    identifier: str | None = None

    @property
    def roles(self) -> list[str]:
        roles = self.user.get("roles") or []
        return [str(role) for role in roles]

    @classmethod
    def from_payload(
        cls, payload: dict[str, Any], *, method: str, identifier: str | None = None
    ) -> "PortalLogin":
        token = payload.get("access_token")
        if not token:
            raise PortalAuthError("Portal response did not include an access token")
        user = payload.get("user") if isinstance(payload.get("user"), dict) else {}
        return cls(access_token=str(token), user=dict(user), method=method, identifier=identifier)


@dataclass(frozen=True)
class ProfileUpdateResult:
    profile: dict[str, Any]
    pending_verification: bool
    message: str | None = None


def resolve_portal_url(raw: str | None = None) -> str:
    return (raw or os.getenv("PORTAL_API_URL") or DEFAULT_PORTAL_URL).rstrip("/")


def _country(value: str) -> str:
    code = sanitize_country_code(value)
    if code is None:
        raise PortalAuthError("Invalid country code", 400)
    return code


class PortalAuthClient:
    """Login, registration and profile calls against the portal API."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        session: requests.Session | None = None,
        logger: logging.Logger | None = None,
        timeout: float = 15.0,
    ) -> None:
        self.base_url = resolve_portal_url(base_url)
        self.session = session or requests.Session()
        self.logger = logger or logging.getLogger(__name__)
        self.timeout = timeout

    def _call(
        self,
        method: str,
        path: str,
        *,
        body: dict[str, Any] | None = None,
        token: str | None = None,
    ) -> tuple[int, dict[str, Any]]:
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            response = self.session.request(
                method,
                f"{self.base_url}{path}",
                json=body,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            self.logger.warning("Portal API unreachable: %s", exc.__class__.__name__)
            raise PortalAuthError("Portal API is unavailable", 503) from exc

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {"data": data}
        return response.status_code, data

    def _checked(
        self,
        method: str,
        path: str,
        *,
        body: dict[str, Any] | None = None,
        token: str | None = None,
        default_error: str = "Request failed",
    ) -> dict[str, Any]:
        status, data = self._call(method, path, body=body, token=token)
        if status == 401 and token:
            raise PortalSessionExpiredError("Session expired; please log in again", 401)
        if status >= 400:
            raise PortalAuthError(str(data.get("message") or default_error), status)
        return data

    def _login_request(
        self, path: str, body: dict[str, Any], *, method: str, value: str, country_code: str | None = None
    ) -> dict[str, Any]:
        status, data = self._call("POST", path, body=body)
        if status == 404:
            raise RegistrationRequiredError(method, value, country_code)
        if status >= 400:
            raise PortalAuthError(str(data.get("message") or "Login failed"), status)
        return data

    # Investor login
    def request_email_otp(self, email: str) -> dict[str, Any]:
        return self._login_request("/auth/email-login", {"email": email}, method="email", value=email)

    def verify_email_otp(self, email: str, otp: str) -> PortalLogin:
        data = self._checked(
            "POST",
            "/auth/email-verify",
            body={"email": email, "otp": otp},
            default_error="Verification failed",
        )
        return PortalLogin.from_payload(data, method="email", identifier=email)

    def request_phone_otp(self, country_code: str, phone: str) -> dict[str, Any]:
        code = _country(country_code)
        return self._login_request(
            "/auth/login-request",
            {"countryCode": code, "phoneNumber": phone},
            method="phone",
            value=phone,
            country_code=code,
        )

    def verify_phone_otp(self, country_code: str, phone: str, otp: str) -> PortalLogin:
        code = _country(country_code)
        data = self._checked(
            "POST",
            "/auth/verify-otp",
            body={"countryCode": code, "phoneNumber": phone, "otp": otp},
            default_error="Verification failed",
        )
        return PortalLogin.from_payload(data, method="phone", identifier=f"{code}{phone}")

    def wallet_login(self, address: str) -> PortalLogin:
        data = self._login_request(
            "/auth/wallet-login", {"walletAddress": address}, method="wallet", value=address
        )
        return PortalLogin.from_payload(data, method="wallet", identifier=address)

    # Registration
    def register_investor(self, email: str, name: str, country_code: str, phone: str) -> dict[str, Any]:
        return self._checked(
            "POST",
            "/auth/register",
            body={
                "email": email,
                "name": name,
                "countryCode": _country(country_code),
                "phoneNumber": phone,
            },
            default_error="Registration failed",
        )

    def register_project_owner(
        self, email: str, name: str, contact_name: str, country_code: str, phone: str
    ) -> dict[str, Any]:
        return self._checked(
            "POST",
            "/auth/project-owner/register",
            body={
                "email": email,
                "name": name,
                "contactName": contact_name,
                "countryCode": _country(country_code),
                "phoneNumber": phone,
            },
            default_error="Registration failed",
        )

    def request_project_owner_otp(self, country_code: str, phone: str) -> dict[str, Any]:
        return self._checked(
            "POST",
            "/auth/project-owner/login",
            body={"countryCode": _country(country_code), "phoneNumber": phone},
            default_error="Login failed",
        )

    def verify_registration(self, country_code: str, phone: str, otp: str) -> PortalLogin:
        code = _country(country_code)
        data = self._checked(
            "POST",
            "/auth/verify",
            body={"countryCode": code, "phoneNumber": phone, "otp": otp},
            default_error="Verification failed",
        )
        return PortalLogin.from_payload(data, method="phone", identifier=f"{code}{phone}")

    def verify_magic_link(self, token: str, email: str) -> PortalLogin:
        data = self._checked(
            "POST",
            "/auth/magic-link/verify",
            body={"token": token, "email": email},
            default_error="Verification failed",
        )
        return PortalLogin.from_payload(data, method="email", identifier=email)

    # Profile
    def get_profile(self, token: str) -> dict[str, Any]:
        return self._checked("GET", "/auth/profile", token=token, default_error="Failed to fetch profile")

    def update_profile(self, token: str, changes: dict[str, Any]) -> ProfileUpdateResult:
        """Submit KYC/profile changes.

        Some changes (e-mail, phone) are confirmed by e-mail first; the result
        then has ``pending_verification`` set and the stored profile is unchanged.
        """

        body = dict(changes)
        if "phoneNumber" in body:
            body["phoneNumber"] = _WHITESPACE.sub("", str(body.get("phoneNumber") or ""))
        data = self._checked(
            "PATCH", "/auth/kyc", body=body, token=token, default_error="Failed to update profile"
        )
        pending = data.get("status") == "PENDING_VERIFICATION"
        return ProfileUpdateResult(profile=data, pending_verification=pending, message=data.get("message"))

    def update_profile_picture(self, token: str, data_url: str) -> dict[str, Any]:
        return self._checked(
            "PATCH",
            "/auth/profile-picture",
            body={"profilePicture": data_url},
            token=token,
            default_error="Failed to update profile picture",
        )

    def verify_profile_change(self, token: str) -> dict[str, Any]:
        """Confirm a pending profile change with the token from the e-mail link."""

        return self._checked(
            "POST",
            "/auth/verify-profile-change",
            body={"token": token},
            default_error="Verification failed",
        )


__all__ = [
    "DEFAULT_PORTAL_URL",
    "PortalAuthClient",
    "PortalAuthError",
    "PortalLogin",
    "PortalSessionExpiredError",
    "ProfileUpdateResult",
    "RegistrationRequiredError",
    "resolve_portal_url",
]
