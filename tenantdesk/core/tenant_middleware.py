"""Middleware that authenticates ``/api`` requests and binds their tenant."""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable

from fastapi import Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import Engine
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp

from tenantdesk.models.session import get_engine

from .auth import (
    TenantTokenConfigurationError,
    TenantTokenValidationError,
    decode_tenant_token,
    split_bearer,
    token_settings_present,
)
from .db import apply_tenant_settings, reset_tenant_settings
from .tenant_context import reset_tenant_context, set_tenant_context

__all__ = ["TenantContextMiddleware"]

logger = logging.getLogger(__name__)

PUBLIC_PATHS = frozenset(
    {
        "/api/health",
        "/api/version",
        "/api/config",
        "/api/metrics",
        "/api/console/accounts/login",
        "/api/console/accounts/refresh",
        "/api/admin/tenants/lookup",
    }
)
PUBLIC_PREFIXES = ("/api/zkey/",)
_PUBLIC_CUSTOMIZATION = re.compile(r"^/api/admin/tenants/[^/]+/customization/?$")


def _unauthorized(detail: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content={"detail": detail},
        headers={"WWW-Authenticate": "Bearer"},
    )


class TenantContextMiddleware(BaseHTTPMiddleware):
    """Validate the bearer token and expose its tenant to the request.

    The tenant and user ids are copied to ``request.state`` and to the
    request context variable. On PostgreSQL the tenant is also written to
    ``app.tenant_id`` for the duration of the request. When the token
    settings are absent the middleware stays out of the way.
    """

    def __init__(self, app: ASGIApp, *, engine: Engine | None = None) -> None:
        super().__init__(app)
        self._engine = engine

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:  # type: ignore[override]
        if not token_settings_present() or self._should_bypass(request):
            return await call_next(request)

        try:
            payload = decode_tenant_token(split_bearer(request.headers.get("Authorization")))
        except TenantTokenValidationError as exc:
            return _unauthorized(str(exc))
        except TenantTokenConfigurationError as exc:
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"detail": str(exc)},
            )

        request.state.tenant_id = payload["tenant_id"]
        request.state.user_id = payload["user_id"]
        context_token = set_tenant_context(payload["tenant_id"], payload["user_id"])

        try:
            connection = self._prepare_connection(payload["tenant_id"])
        except SQLAlchemyError:
            reset_tenant_context(context_token)
            logger.exception("Failed to configure tenant context for request.")
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={"detail": "Unable to configure tenant context."},
            )

        try:
            return await call_next(request)
        finally:
            if connection is not None:
                try:
                    reset_tenant_settings(connection)
                except SQLAlchemyError:
                    logger.exception("Failed to reset tenant id configuration.")
                finally:
                    connection.close()
            reset_tenant_context(context_token)

    def _prepare_connection(self, tenant_id: str) -> Connection | None:
        engine = self._resolve_engine()
        if engine is None or engine.dialect.name != "postgresql":
            return None

        connection = engine.connect()
        try:
            apply_tenant_settings(connection, tenant_id)
        except SQLAlchemyError:
            connection.close()
            raise
        return connection

    def _resolve_engine(self) -> Engine | None:
        if self._engine is None:
            try:
                self._engine = get_engine()
            except RuntimeError:
                logger.debug("Database engine not configured; skipping tenant set_config.")
                return None
        return self._engine

    @staticmethod
    def _should_bypass(request: Request) -> bool:
        method = request.method.upper()
        if method == "OPTIONS":
            return True

        path = request.url.path
        if not path.startswith("/api/"):
            return True
        if path.rstrip("/") in PUBLIC_PATHS or path in PUBLIC_PATHS:
            return True
        if path.startswith(PUBLIC_PREFIXES):
            return True
        return method == "GET" and bool(_PUBLIC_CUSTOMIZATION.match(path))
