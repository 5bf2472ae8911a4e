"""Console user administration: paging, creation, soft deletion and verification."""

from .service import (
    UserAdminService,
    UserConflictError,
    UserNotFoundError,
    UserPermissionError,
    UserValidationError,
)

__all__ = [
    "UserAdminService",
    "UserConflictError",
    "UserNotFoundError",
    "UserPermissionError",
    "UserValidationError",
]
