"""Shared slowapi limiter keyed by client IP."""

from __future__ import annotations

import os

from fastapi import Request
from slowapi import Limiter


def get_client_ip(request: Request) -> str:
    """Best-effort client IP: first ``X-Forwarded-For`` hop, else the socket peer."""

    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client is None:
        return "unknown"
    return request.client.host


def otp_rate_limit() -> str:
    return os.getenv("OTP_RATE_LIMIT", "10/minute")


limiter = Limiter(key_func=get_client_ip)

__all__ = ["get_client_ip", "limiter", "otp_rate_limit"]
