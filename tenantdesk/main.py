"""FastAPI application wiring for Tenantdesk.

This module bootstraps the HTTP API:

- Configures logging, CORS (optional for the admin UI), Prometheus metrics
  and rate limiting.
- Installs the tenant context middleware that validates console tokens.
- Mounts the console, tenant administration, application, booking and hosted
  login routers, plus health/version/config endpoints.
"""

import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from .__version__ import __build_date__, __commit_sha__, __version__
from .app_logging import init_logging
from .core.limits import limiter
from .core.tenant_middleware import TenantContextMiddleware
from .routers import (
    admin_tenants,
    applications,
    auth_api,
    booking_admin,
    console_accounts,
    hosted_login,
    users,
)
from .tenants.service import ALLOWED_LOGO_TYPES, MAX_LOGO_BYTES

load_dotenv()

logger = logging.getLogger(__name__)

app = FastAPI(title="Tenantdesk", version=__version__)
init_logging(app)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(TenantContextMiddleware)
# Optional CORS for admin UI
admin_ui_origins = os.getenv("ADMIN_UI_ORIGINS")
if admin_ui_origins:
    origins = [o.strip() for o in admin_ui_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
app.include_router(auth_api.router)
app.include_router(console_accounts.router)
app.include_router(admin_tenants.router)
app.include_router(applications.router)
app.include_router(users.router)
app.include_router(booking_admin.router)
app.include_router(hosted_login.router)

# Expose Prometheus metrics
Instrumentator().instrument(app).expose(
    app, include_in_schema=False, endpoint="/api/metrics"
)


@app.get("/api/health")
async def health():
    """Liveness/readiness probe with a minimal JSON body."""
    return {"status": "ok"}


@app.get("/api/version")
async def version():
    """Return version information for the application."""
    return {
        "version": __version__,
        "build_date": __build_date__,
        "commit_sha": __commit_sha__,
    }


@app.get("/api/config")
async def config():
    """Expose selected frontend configuration from environment variables."""
    return {
        "BRAND_NAME": os.getenv("BRAND_NAME", "Tenantdesk"),
        "LOGO_URL": os.getenv("LOGO_URL", ""),
        "LOGO_MAX_SIZE": MAX_LOGO_BYTES,
        "LOGO_ALLOWED_MIME_TYPES": sorted(ALLOWED_LOGO_TYPES),
    }
