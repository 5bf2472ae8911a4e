"""Request-scoped record of which tenant and user are being served.

``TenantContextMiddleware`` stores the identifiers from the validated access
token in a :class:`contextvars.ContextVar` and resets it after the response.
Code that has no access to the request (the database helpers, for instance)
reads the values back with :func:`get_current_tenant_id` and
:func:`get_current_user_id`. Both return ``None`` outside an authenticated
request.
"""

from __future__ import annotations

from contextvars import ContextVar, Token

from typing_extensions import TypedDict

__all__ = [
    "TenantRuntimeContext",
    "get_current_tenant_id",
    "get_current_user_id",
    "reset_tenant_context",
    "set_tenant_context",
]


class TenantRuntimeContext(TypedDict):
    tenant_id: str
    user_id: str


_current: ContextVar[TenantRuntimeContext | None] = ContextVar(
    "tenantdesk_request_context", default=None
)


def set_tenant_context(tenant_id: str, user_id: str) -> Token[TenantRuntimeContext | None]:
    """Record the caller; pass the returned token to :func:`reset_tenant_context`."""

    return _current.set({"tenant_id": tenant_id, "user_id": user_id})


def reset_tenant_context(token: Token[TenantRuntimeContext | None]) -> None:
    _current.reset(token)


def get_current_tenant_id() -> str | None:
    context = _current.get()
    return context["tenant_id"] if context else None


def get_current_user_id() -> str | None:
    context = _current.get()
    return context["user_id"] if context else None
