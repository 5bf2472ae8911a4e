"""Administration of console users.

Users are never removed from the database by this service: deleting one sets
``deleted_at`` and deactivates the account, and creating a user whose e-mail,
phone or wallet matches a soft-deleted row brings that row back with the new
data instead of inserting a duplicate.
"""

from __future__ import annotations

import datetime as dt
import logging
import math
import uuid

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from tenantdesk.models import Tenant, User
from tenantdesk.security.auth import ROLE_LEVELS
from tenantdesk.security.passwords import hash_password
from tenantdesk.security.tokens import revoke_all_refresh_tokens
from tenantdesk.tenants.settings import clean_optional_text

from . import schemas

logger = logging.getLogger(__name__)


class UserNotFoundError(RuntimeError):
    """Raised when a user id is unknown, soft-deleted or outside the scope."""


class UserValidationError(ValueError):
    """Raised for payloads that cannot be applied."""


class UserConflictError(ValueError):
    """Raised when another active user already owns an e-mail, phone or wallet."""


class UserPermissionError(PermissionError):
    """Raised when a tenant admin tries to manage super admin accounts."""


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class UserAdminService:
    """Paging and maintenance of :class:`~tenantdesk.models.User` rows.

    ``tenant_scope`` restricts every operation to one tenant and forbids
    granting or editing the ``super_admin`` role.
    """

    def __init__(self, session: Session, *, tenant_scope: uuid.UUID | None = None) -> None:
        self.session = session
        self.tenant_scope = tenant_scope

    def _get(self, user_id: uuid.UUID, *, include_deleted: bool = False) -> User:
        user = self.session.get(User, user_id)
        if (
            user is None
            or (user.deleted_at is not None and not include_deleted)
            or (self.tenant_scope is not None and user.tenant_id != self.tenant_scope)
        ):
            raise UserNotFoundError("User not found")
        return user

    def _summary(self, user: User) -> schemas.UserSummary:
        return schemas.UserSummary(
            id=user.id,
            tenant_id=user.tenant_id,
            tenant_name=user.tenant.name if user.tenant else None,
            email=user.email,
            name=user.name,
            phone=user.phone,
            wallet_address=user.wallet_address,
            role=user.role,
            is_active=user.is_active,
            email_verified=user.email_verified,
            phone_verified=user.phone_verified,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )

    def _check_role(self, role: str) -> str:
        role = role.strip()
        if role not in ROLE_LEVELS:
            raise UserValidationError(f"Unknown role: {role}")
        if self.tenant_scope is not None and role == "super_admin":
            raise UserPermissionError("Only a super admin can grant the super_admin role")
        return role

    def _check_manageable(self, user: User) -> None:
        if self.tenant_scope is not None and user.role == "super_admin":
            raise UserPermissionError("Super admin accounts can only be managed by a super admin")

    def _resolve_tenant(self, tenant_id: uuid.UUID | None) -> uuid.UUID:
        if tenant_id is None:
            if self.tenant_scope is None:
                raise UserValidationError("Tenant is required")
            return self.tenant_scope
        if self.tenant_scope is not None and tenant_id != self.tenant_scope:
            raise UserValidationError("Users can only be assigned to your tenant")
        if self.session.get(Tenant, tenant_id) is None:
            raise UserNotFoundError("Tenant not found")
        return tenant_id

    def list_users(
        self,
        *,
        page: int = 1,
        limit: int = 10,
        search: str | None = None,
        tenant_id: uuid.UUID | None = None,
    ) -> schemas.UserPage:
        """Return one page of active and inactive users, newest first."""

        page = max(page, 1)
        limit = max(limit, 1)
        conditions = [User.deleted_at.is_(None)]
        scope = self.tenant_scope or tenant_id
        if scope is not None:
            conditions.append(User.tenant_id == scope)
        term = clean_optional_text(search)
        if term:
            pattern = f"%{term}%"
            conditions.append(
                or_(
                    User.name.ilike(pattern),
                    User.email.ilike(pattern),
                    User.phone.ilike(pattern),
                    User.wallet_address.ilike(pattern),
                )
            )

        total = self.session.execute(
            select(func.count()).select_from(User).where(*conditions)
        ).scalar_one()
        rows = self.session.execute(
            select(User)
            .where(*conditions)
            .order_by(User.created_at.desc(), User.email)
            .offset((page - 1) * limit)
            .limit(limit)
        ).scalars()
        return schemas.UserPage(
            items=[self._summary(user) for user in rows],
            pagination=schemas.Pagination(
                total=total,
                page=page,
                limit=limit,
                total_pages=math.ceil(total / limit),
            ),
        )

    def get_user(self, user_id: uuid.UUID) -> schemas.UserSummary:
        return self._summary(self._get(user_id))

    def _collisions(
        self, tenant_id: uuid.UUID, email: str, phone: str | None, wallet: str | None
    ) -> list[User]:
        # E-mail addresses are unique across tenants; phones and wallets per tenant.
        matches = [func.lower(User.email) == email]
        if phone:
            matches.append((User.tenant_id == tenant_id) & (User.phone == phone))
        if wallet:
            matches.append((User.tenant_id == tenant_id) & (User.wallet_address == wallet))
        found = list(self.session.execute(select(User).where(or_(*matches))).scalars())
        return sorted(found, key=lambda user: user.email.lower() != email)

    def create_user(self, payload: schemas.UserCreate) -> schemas.UserSummary:
        """Create a user, or restore a soft-deleted one owning the same identifiers.

        Raises:
            UserConflictError: If an active user already owns the e-mail, phone
                or wallet address.
        """

        tenant_id = self._resolve_tenant(payload.tenant_id)
        role = self._check_role(payload.role)
        email = str(payload.email).strip().lower()
        phone = clean_optional_text(payload.phone)
        wallet = clean_optional_text(payload.wallet_address)

        existing = self._collisions(tenant_id, email, phone, wallet)
        if any(user.deleted_at is None for user in existing):
            raise UserConflictError("A user with this email, phone, or wallet already exists.")

        if existing:
            user = existing[0]
            user.deleted_at = None
            user.is_active = True
            logger.info("Restoring soft-deleted user %s", user.id)
        else:
            user = User()
            self.session.add(user)

        user.tenant_id = tenant_id
        user.email = email
        user.name = clean_optional_text(payload.name)
        user.phone = phone
        user.wallet_address = wallet
        user.role = role
        user.password_hash = hash_password(payload.password)
        user.email_verified = False
        user.phone_verified = False
        self.session.flush()
        self.session.refresh(user)
        logger.info("Created user %s in tenant %s", user.id, tenant_id)
        return self._summary(user)

    def update_user(self, user_id: uuid.UUID, payload: schemas.UserUpdate) -> schemas.UserSummary:
        user = self._get(user_id)
        self._check_manageable(user)
        if payload.name is not None:
            user.name = clean_optional_text(payload.name)
        if payload.phone is not None:
            user.phone = clean_optional_text(payload.phone)
        if "wallet_address" in payload.model_fields_set:
            user.wallet_address = clean_optional_text(payload.wallet_address)
        if payload.role is not None:
            user.role = self._check_role(payload.role)
        self.session.flush()
        self.session.refresh(user)
        return self._summary(user)

    def delete_user(self, user_id: uuid.UUID) -> None:
        """Soft delete ``user_id`` and revoke its refresh tokens."""

        user = self._get(user_id)
        self._check_manageable(user)
        user.deleted_at = _utcnow()
        user.is_active = False
        revoked = revoke_all_refresh_tokens(self.session, user)
        self.session.flush()
        logger.info("Soft-deleted user %s (%d refresh tokens revoked)", user.id, revoked)

    def verify_user(self, user_id: uuid.UUID) -> schemas.UserSummary:
        """Mark the user's e-mail, and phone when present, as verified."""

        user = self._get(user_id, include_deleted=True)
        if user.deleted_at is not None:
            raise UserValidationError("Cannot verify a deleted user")
        if user.email_verified and (user.phone_verified or not user.phone):
            return self._summary(user)

        matches = [func.lower(User.email) == user.email.lower()]
        if user.phone:
            matches.append(User.phone == user.phone)
        duplicate = self.session.execute(
            select(User.id)
            .where(
                User.id != user.id,
                User.tenant_id == user.tenant_id,
                User.deleted_at.is_(None),
                or_(*matches),
            )
            .limit(1)
        ).scalar_one_or_none()
        if duplicate is not None:
            raise UserConflictError(
                "Another user with this email or phone already exists in this tenant."
            )

        user.email_verified = True
        user.phone_verified = bool(user.phone)
        self.session.flush()
        self.session.refresh(user)
        logger.info("Verified user %s", user.id)
        return self._summary(user)


__all__ = [
    "UserAdminService",
    "UserConflictError",
    "UserNotFoundError",
    "UserPermissionError",
    "UserValidationError",
]
