"""Helpers for the tenant ``settings`` document and identity-service config.

``settings`` is a free-form JSON object edited from several places (the
payment gateway screen, the chatbot customization editor, the logo upload).
Updates are merged over the stored document so that a screen saving its own
keys never erases another screen's data. The payment gateway block
(``lyraConfig``) needs extra care: toggling a mode on or off must keep its
stored credentials.
"""

from __future__ import annotations

import copy
from typing import Any, Mapping

from .schemas import TenantDashboardUrls, TenantIntegrations, TenantSessionSettings

DEFAULT_SESSION_TTL_MINUTES = 1440

PROFILE_FIELDS = (
    "display_name",
    "legal_name",
    "tagline",
    "contact_email",
    "contact_phone",
    "website_url",
    "industry",
    "address_line1",
    "address_line2",
    "city",
    "state",
    "postal_code",
    "country",
    "primary_color",
)

_LYRA_MODES = ("testMode", "productionMode")


class InvalidTenantSettingsError(ValueError):
    """Raised when a settings update has the wrong shape."""


def clean_optional_text(value: Any) -> str | None:
    """Trim ``value``; anything empty or not a string becomes ``None``."""

    if not isinstance(value, str):
        return None
    return value.strip() or None


def _as_dict(value: Any) -> dict[str, Any]:
    return dict(value) if isinstance(value, Mapping) else {}


def _merge_mode(current: Any, incoming: Any, name: str) -> dict[str, Any]:
    if not isinstance(incoming, Mapping):
        raise InvalidTenantSettingsError(f"lyraConfig.{name} must be an object")
    merged = _as_dict(current)
    if incoming.get("enabled") is not None:
        merged["enabled"] = incoming["enabled"]
    if incoming.get("credentials") is not None:
        merged["credentials"] = incoming["credentials"]
    return merged


def _merge_lyra_config(current: Any, incoming: Any) -> Any:
    if incoming is None:
        return current
    if not isinstance(incoming, Mapping):
        raise InvalidTenantSettingsError("lyraConfig must be an object")

    base = _as_dict(current)
    merged = {**base, **incoming}
    for mode in _LYRA_MODES:
        if mode in incoming:
            merged[mode] = _merge_mode(base.get(mode), incoming[mode], mode)
        elif mode in base:
            merged[mode] = base[mode]
    return merged


def merge_tenant_settings(
    current: Mapping[str, Any] | None, incoming: Mapping[str, Any]
) -> dict[str, Any]:
    """Merge a settings update over the stored document.

    Top-level keys are replaced shallowly. ``customization`` is only touched
    when the update names it. ``lyraConfig`` is merged key by key, and within
    ``testMode``/``productionMode`` only ``enabled`` and non-null
    ``credentials`` are taken from the update.

    Raises:
        InvalidTenantSettingsError: If ``lyraConfig`` or one of its modes is
            not an object.
    """

    stored = copy.deepcopy(_as_dict(current))
    merged: dict[str, Any] = {**stored, **copy.deepcopy(dict(incoming))}

    lyra = _merge_lyra_config(stored.get("lyraConfig"), incoming.get("lyraConfig"))
    if lyra is None:
        merged.pop("lyraConfig", None)
    else:
        merged["lyraConfig"] = lyra

    if "customization" not in incoming and "customization" in stored:
        merged["customization"] = stored["customization"]
    return merged


def tenant_branding_logo(settings: Mapping[str, Any] | None, logo_url: str | None) -> str | None:
    """Logo to show for a tenant: the uploaded data URL first, then the column."""

    branding = _as_dict(settings).get("branding")
    if isinstance(branding, Mapping) and branding.get("logoUrl"):
        return str(branding["logoUrl"])
    return logo_url or None


def build_integrations(payload: TenantIntegrations) -> dict[str, str | None]:
    return {
        "brevoApiKey": clean_optional_text(payload.brevo_api_key),
        "brevoSenderEmail": clean_optional_text(payload.brevo_sender_email),
        "brevoSenderName": clean_optional_text(payload.brevo_sender_name),
        "labsmobileApiKey": clean_optional_text(payload.labsmobile_api_key),
        "labsmobileUser": clean_optional_text(payload.labsmobile_user),
        "labsmobileUrl": clean_optional_text(payload.labsmobile_url),
        "labsmobileSenderId": clean_optional_text(payload.labsmobile_sender_id),
    }


def build_session_settings(payload: TenantSessionSettings) -> dict[str, Any]:
    ttl = payload.session_ttl if payload.session_ttl and payload.session_ttl > 0 else None
    return {
        "ssoEnabled": bool(payload.sso_enabled),
        "sessionTtl": ttl or DEFAULT_SESSION_TTL_MINUTES,
    }


def build_dashboard_urls(payload: TenantDashboardUrls) -> dict[str, str | None]:
    return {
        "development": clean_optional_text(payload.development),
        "production": clean_optional_text(payload.production),
    }


__all__ = [
    "DEFAULT_SESSION_TTL_MINUTES",
    "InvalidTenantSettingsError",
    "PROFILE_FIELDS",
    "build_dashboard_urls",
    "build_integrations",
    "build_session_settings",
    "clean_optional_text",
    "merge_tenant_settings",
    "tenant_branding_logo",
]
