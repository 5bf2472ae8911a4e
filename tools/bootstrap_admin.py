"""Utility CLI to create the schema, a first tenant and its super admin."""

from __future__ import annotations

import argparse
import logging
import os
from typing import Sequence

from dotenv import load_dotenv
from sqlalchemy import select
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError
from sqlalchemy.orm import Session

from tenantdesk.models import Tenant, User
from tenantdesk.models.session import create_schema, get_sessionmaker
from tenantdesk.security import hash_password

logger = logging.getLogger("tools.bootstrap_admin")

DEFAULT_TENANT_NAME = "Default Tenant"
DEFAULT_TENANT_SUBDOMAIN = "default"
DEFAULT_ADMIN_NAME = "Administrator"
DEFAULT_ADMIN_EMAIL = "admin@example.com"
DEFAULT_ADMIN_ROLE = "super_admin"


def _safe_url(db_url: str) -> str:
    """Return ``db_url`` with any password redacted for logging."""

    try:
        parsed = make_url(db_url)
    except ArgumentError:  # pragma: no cover
        return db_url
    if parsed.password is None:
        return db_url
    return parsed.render_as_string(hide_password=True)


def ensure_admin_entities(
    session: Session,
    *,
    admin_password: str,
    tenant_name: str = DEFAULT_TENANT_NAME,
    tenant_subdomain: str = DEFAULT_TENANT_SUBDOMAIN,
    admin_name: str = DEFAULT_ADMIN_NAME,
    admin_email: str = DEFAULT_ADMIN_EMAIL,
    admin_role: str = DEFAULT_ADMIN_ROLE,
) -> tuple[Tenant, User, bool, bool]:
    """Ensure the bootstrap tenant and its administrator exist in ``session``.

    Existing rows are left untouched; in particular an existing user's
    password is never reset.

    Returns:
        Tuple containing the tenant, the user, and two booleans indicating
        whether each was created.
    """

    subdomain = tenant_subdomain.strip().lower()
    email = admin_email.strip().lower()

    created_tenant = False
    created_user = False

    tenant = session.execute(
        select(Tenant).where(Tenant.subdomain == subdomain)
    ).scalar_one_or_none()
    if tenant is None:
        tenant = Tenant(name=tenant_name.strip(), subdomain=subdomain)
        session.add(tenant)
        session.flush()
        created_tenant = True
        logger.info("Created tenant %s (id=%s)", tenant.subdomain, tenant.id)
    else:
        logger.info("Tenant %s already exists (id=%s)", tenant.subdomain, tenant.id)

    user = session.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if user is None:
        user = User(
            tenant_id=tenant.id,
            email=email,
            name=admin_name.strip(),
            password_hash=hash_password(admin_password),
            role=admin_role,
        )
        session.add(user)
        session.flush()
        created_user = True
        logger.info("Created %s %s (id=%s)", user.role, user.email, user.id)
    else:
        logger.info("User %s already exists (id=%s)", user.email, user.id)

    return tenant, user, created_tenant, created_user


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--tenant-name", default=os.getenv("BOOTSTRAP_TENANT_NAME", DEFAULT_TENANT_NAME))
    parser.add_argument(
        "--subdomain", default=os.getenv("BOOTSTRAP_TENANT_SUBDOMAIN", DEFAULT_TENANT_SUBDOMAIN)
    )
    parser.add_argument("--admin-name", default=os.getenv("BOOTSTRAP_ADMIN_NAME", DEFAULT_ADMIN_NAME))
    parser.add_argument("--admin-email", default=os.getenv("BOOTSTRAP_ADMIN_EMAIL", DEFAULT_ADMIN_EMAIL))
    parser.add_argument(
        "--admin-password",
        default=os.getenv("BOOTSTRAP_ADMIN_PASSWORD"),
        help="Password for a newly created admin (or set BOOTSTRAP_ADMIN_PASSWORD)",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    """Script entrypoint for ensuring the bootstrap tenant and admin exist."""

    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    args = parse_args(argv)

    db_url = os.getenv("DATABASE_URL")
    if not db_url:
        raise RuntimeError("DATABASE_URL environment variable is required")
    if not args.admin_password:
        raise RuntimeError("--admin-password or BOOTSTRAP_ADMIN_PASSWORD is required")

    logger.info("Ensuring schema on %s", _safe_url(db_url))
    create_schema(db_url)

    SessionLocal = get_sessionmaker(database_url=db_url)
    with SessionLocal() as session:
        tenant, user, created_tenant, created_user = ensure_admin_entities(
            session,
            admin_password=args.admin_password,
            tenant_name=args.tenant_name,
            tenant_subdomain=args.subdomain,
            admin_name=args.admin_name,
            admin_email=args.admin_email,
        )
        session.commit()

    logger.info("Tenant %s (%s)", "created" if created_tenant else "existing", tenant.subdomain)
    logger.info("User %s (%s)", "created" if created_user else "existing", user.email)


if __name__ == "__main__":  # pragma: no cover - CLI execution
    main()
