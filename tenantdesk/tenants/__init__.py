"""Tenant administration: settings merging, contact directory and service layer."""

from .contacts import ContactDirectory
from .service import (
    ContactNotFoundError,
    LogoValidationError,
    TenantAdminService,
    TenantConflictError,
    TenantNotFoundError,
    TenantValidationError,
)
from .settings import InvalidTenantSettingsError, merge_tenant_settings

__all__ = [
    "ContactDirectory",
    "ContactNotFoundError",
    "InvalidTenantSettingsError",
    "LogoValidationError",
    "TenantAdminService",
    "TenantConflictError",
    "TenantNotFoundError",
    "TenantValidationError",
    "merge_tenant_settings",
]
