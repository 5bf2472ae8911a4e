"""OIDC client applications registered with the identity service."""

from .service import (
    ApplicationNotFoundError,
    ApplicationService,
    ApplicationValidationError,
)

__all__ = ["ApplicationNotFoundError", "ApplicationService", "ApplicationValidationError"]
