import importlib
import pathlib
import sys
import uuid
from dataclasses import dataclass, field

import pytest
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))
from tenantdesk.app_logging import init_logging
from tenantdesk.models import Base, Tenant, User
from tenantdesk.models.session import get_engine
from tenantdesk.security import create_access_token, hash_password, reset_jwt_settings_cache

ROLES = ("viewer", "operator", "admin", "super_admin")


@dataclass
class AuthContext:
    engine: object
    session_factory: sessionmaker[Session]
    tenant_id: uuid.UUID
    users: dict[str, uuid.UUID]
    tokens: dict[str, str]
    password: str = "Secret123!"
    tenant_tokens: dict[uuid.UUID, dict[str, str]] = field(default_factory=dict)
    tenant_users: dict[uuid.UUID, dict[str, uuid.UUID]] = field(default_factory=dict)

    def token(self, role: str, tenant_id: uuid.UUID | None = None) -> str:
        if tenant_id is None or tenant_id == self.tenant_id:
            return self.tokens[role]
        try:
            return self.tenant_tokens[tenant_id][role]
        except KeyError as exc:  # pragma: no cover
            raise KeyError(f"Unknown tenant {tenant_id} for role {role}") from exc

    def header(self, role: str, tenant_id: uuid.UUID | None = None) -> dict[str, str]:
        token = self.token(role, tenant_id)
        return {"Authorization": f"Bearer {token}"}

    def create_tenant(self, name: str, subdomain: str) -> uuid.UUID:
        """Provision an additional tenant with viewer/operator/admin users."""

        with self.session_factory.begin() as session:
            tenant = Tenant(name=name, subdomain=subdomain)
            session.add(tenant)
            session.flush()

            user_tokens: dict[str, str] = {}
            user_ids: dict[str, uuid.UUID] = {}
            for role in ("viewer", "operator", "admin"):
                user = User(
                    tenant_id=tenant.id,
                    email=f"{role}@{subdomain}.example",
                    name=f"{name} {role.title()}",
                    password_hash=hash_password(self.password),
                    role=role,
                )
                session.add(user)
                session.flush()
                token, _ = create_access_token(user)
                user_tokens[role] = token
                user_ids[role] = user.id

        self.tenant_tokens[tenant.id] = user_tokens
        self.tenant_users[tenant.id] = user_ids
        return tenant.id


@pytest.fixture
def app_factory(monkeypatch):
    def _create_app(log_dir: str, log_request_bodies: bool = False):
        """Create a FastAPI app with logging initialised."""
        monkeypatch.setenv("LOG_DIR", str(log_dir))
        if log_request_bodies:
            monkeypatch.setenv("LOG_REQUEST_BODIES", "true")
        app = FastAPI()

        @app.post("/echo")
        async def echo(request: Request):
            return await request.json()

        init_logging(app)
        return app

    return _create_app


@pytest.fixture
def tenant_auth(monkeypatch: pytest.MonkeyPatch, tmp_path_factory: pytest.TempPathFactory) -> AuthContext:
    db_path = tmp_path_factory.mktemp("tenant-auth") / "auth.db"
    db_url = f"sqlite+pysqlite:///{db_path}"
    monkeypatch.setenv("DATABASE_URL", db_url)
    monkeypatch.setenv("TENANT_TOKEN_SECRET", "super-secret-key")
    monkeypatch.setenv("TENANT_TOKEN_AUDIENCE", "tenantdesk")
    monkeypatch.setenv("TENANT_TOKEN_ISSUER", "auth.tenantdesk")
    monkeypatch.setenv("TENANT_TOKEN_ALGORITHM", "HS256")
    monkeypatch.setenv("LOG_DIR", str(tmp_path_factory.mktemp("logs")))
    reset_jwt_settings_cache()

    engine = get_engine(db_url, future=True)
    Base.metadata.create_all(engine)
    session_factory = sessionmaker(bind=engine, expire_on_commit=False, future=True)

    users: dict[str, uuid.UUID] = {}
    user_objs: dict[str, User] = {}
    with session_factory.begin() as session:
        tenant = Tenant(name="Tenant", subdomain="tenant")
        session.add(tenant)
        session.flush()
        for role in ROLES:
            user = User(
                tenant_id=tenant.id,
                email=f"{role.replace('_', '-')}@tenant.example",
                name=role.replace("_", " ").title(),
                password_hash=hash_password("Secret123!"),
                role=role,
            )
            session.add(user)
            session.flush()
            users[role] = user.id
            user_objs[role] = user
        tenant_id = tenant.id

    tokens: dict[str, str] = {}
    for role, user in user_objs.items():
        token, _ = create_access_token(user)
        tokens[role] = token

    context = AuthContext(
        engine=engine,
        session_factory=session_factory,
        tenant_id=tenant_id,
        users=users,
        tokens=tokens,
    )
    context.tenant_tokens[tenant_id] = tokens
    context.tenant_users[tenant_id] = users

    yield context

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def client_factory(tenant_auth):
    """Build a ``TestClient`` against freshly reloaded routers and app."""

    def _create_client() -> TestClient:
        import tenantdesk.security.auth as security_auth

        importlib.reload(security_auth)
        from tenantdesk.routers import (
            admin_tenants,
            applications,
            auth_api,
            booking_admin,
            console_accounts,
            users,
        )

        # hosted_login is not reloaded: slowapi would register its limits twice.
        for module in (
            auth_api,
            console_accounts,
            admin_tenants,
            applications,
            users,
            booking_admin,
        ):
            importlib.reload(module)
        import tenantdesk.main as main

        importlib.reload(main)
        from tenantdesk.core.limits import limiter

        limiter.reset()
        return TestClient(main.app)

    return _create_client
