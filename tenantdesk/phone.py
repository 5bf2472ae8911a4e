"""Phone number helpers shared by the contact directory and the portal client.

Numbers are normalized to an E.164-like ``+<digits>`` form. The rules are
deliberately lenient about formatting (spaces, dashes, parentheses, a
leading ``00``) but strict about length: a normalized number carries between
:data:`PHONE_MIN_DIGITS` and :data:`PHONE_MAX_DIGITS` digits.

Matching WhatsApp contacts against stored phones has to cope with numbers
saved with or without a country code, so :func:`phone_match_keys` derives
the trailing 9 and 10 digit tails that are compared when the full number
does not match.
"""

from __future__ import annotations

import logging
import re
import secrets
from dataclasses import dataclass

logger = logging.getLogger(__name__)

PHONE_MIN_DIGITS = 8
PHONE_MAX_DIGITS = 25

_HEX_CODE = re.compile(r"^0x[0-9a-f]+$", re.IGNORECASE)
_LEADING_DIGITS = re.compile(r"^\d+")
_NON_DIGITS = re.compile(r"\D")


class PhoneNumberError(ValueError):
    """Raised when a phone number or country code cannot be normalized."""


@dataclass(frozen=True)
class NormalizedPhone:
    normalized: str
    raw: str
    country_code: str | None = None


def _digits(value: str) -> str:
    return _NON_DIGITS.sub("", value)


def sanitize_country_code(value: str | None) -> str | None:
    """Return ``value`` as ``+<number>`` or ``None`` when it is not usable.

    Some clients send the dialling code as a hex literal (``0x51``). The
    payload is first read as the decimal digits it starts with and only
    parsed as hexadecimal when that yields nothing.
    """

    if not value or not value.strip():
        return None
    trimmed = value.strip()

    if _HEX_CODE.match(trimmed):
        payload = trimmed[2:]
        leading = _LEADING_DIGITS.match(payload)
        if leading and int(leading.group()) > 0:
            return f"+{int(leading.group())}"
        parsed = int(payload, 16)
        return f"+{parsed}" if parsed > 0 else None

    digits = _digits(trimmed)
    if not digits or int(digits) <= 0:
        return None
    return f"+{int(digits)}"


def _check_length(digits: str) -> None:
    if not PHONE_MIN_DIGITS <= len(digits) <= PHONE_MAX_DIGITS:
        raise PhoneNumberError(
            f"Phone number must contain {PHONE_MIN_DIGITS}-{PHONE_MAX_DIGITS} digits"
        )


def normalize_phone_number(phone: str | None, country_code: str | None = None) -> NormalizedPhone:
    """Normalize ``phone``, optionally prefixing ``country_code``.

    Raises:
        PhoneNumberError: For blank input, an invalid country code or a
            digit count outside the accepted range.
    """

    if not isinstance(phone, str) or not phone.strip():
        raise PhoneNumberError("Phone number is required")
    trimmed = phone.strip()

    code = sanitize_country_code(country_code)
    if country_code and code is None:
        raise PhoneNumberError("Invalid country code")

    if trimmed.startswith("00"):
        trimmed = "+" + trimmed[2:]

    if trimmed.startswith("+"):
        digits = _digits(trimmed)
        _check_length(digits)
        return NormalizedPhone(normalized=f"+{digits}", raw=f"+{digits}")

    digits = _digits(trimmed)
    if not digits:
        raise PhoneNumberError("Phone number must contain digits")
    national = digits.lstrip("0") or digits

    if code is not None:
        combined = code[1:] + national
        _check_length(combined)
        return NormalizedPhone(normalized=f"+{combined}", raw=f"+{combined}", country_code=code)

    _check_length(national)
    return NormalizedPhone(normalized=f"+{national}", raw=f"+{national}")


def try_normalize_phone(phone: str | None) -> str | None:
    if not phone or not isinstance(phone, str) or not phone.strip():
        return None
    try:
        return normalize_phone_number(phone).normalized
    except PhoneNumberError:
        logger.warning("Could not normalize phone number")
        return None


def _tails(digits: str) -> set[str]:
    tails: set[str] = set()
    for size in (9, 10):
        if len(digits) >= size:
            tails.add(digits[-size:])
    return tails


def phone_match_keys(phone: str | None) -> set[str]:
    """Lookup keys under which a WhatsApp contact's number is indexed.

    The set holds the normalized number and the last 9 and 10 digits, both of
    the whole number and of the number with a 1 to 3 digit country code
    removed. Unparseable input yields an empty set.
    """

    normalized = try_normalize_phone(phone)
    if normalized is None:
        return set()

    digits = _digits(normalized)
    keys = {normalized} | _tails(digits)
    for prefix in range(1, 4):
        if prefix >= len(digits):
            break
        keys |= _tails(digits[prefix:])
    return keys


def lookup_tails(phone: str) -> list[str]:
    """Last 9 then last 10 digits of ``phone``, as tried during lookups."""

    digits = _digits(phone)
    return [digits[-9:], digits[-10:]] if digits else []


def phone_from_jid(jid: str | None) -> str | None:
    """Extract the phone number part of a WhatsApp JID (``<digits>@s.whatsapp.net``)."""

    if not jid:
        return None
    local = jid.split("@", 1)[0]
    return local if local.isdigit() else None


def strip_country_prefix_tail(phone: str) -> str:
    """Drop up to three leading digits and keep the last nine.

    Used by the diagnostics report for its loose "partial" comparison.
    """

    return re.sub(r"^\d{1,3}", "", _digits(phone))[-9:]


def generate_otp_code() -> str:
    """Six-digit one-time code drawn from :mod:`secrets`."""

    return str(100000 + secrets.randbelow(900000))


def resolve_language(value: str | None) -> str:
    return "en" if value == "en" else "es"


__all__ = [
    "NormalizedPhone",
    "PHONE_MAX_DIGITS",
    "PHONE_MIN_DIGITS",
    "PhoneNumberError",
    "generate_otp_code",
    "lookup_tails",
    "normalize_phone_number",
    "phone_from_jid",
    "phone_match_keys",
    "resolve_language",
    "sanitize_country_code",
    "strip_country_prefix_tail",
    "try_normalize_phone",
]
