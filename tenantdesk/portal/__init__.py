"""Investor and project-owner portal authentication."""

from .client import (
    PortalAuthClient,
    PortalAuthError,
    PortalLogin,
    PortalSessionExpiredError,
    ProfileUpdateResult,
    RegistrationRequiredError,
)
from .session import PortalSessionStore

__all__ = [
    "PortalAuthClient",
    "PortalAuthError",
    "PortalLogin",
    "PortalSessionExpiredError",
    "PortalSessionStore",
    "ProfileUpdateResult",
    "RegistrationRequiredError",
]
