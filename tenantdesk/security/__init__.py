"""Console authentication: password hashing, tokens and FastAPI guards."""

from .auth import (
    ensure_tenant_access,
    get_current_token_payload,
    get_current_user,
    is_super_admin,
    require_role,
)
from .passwords import hash_password, needs_rehash, verify_password
from .tokens import (
    JWTSettings,
    TokenPair,
    create_access_token,
    create_refresh_token,
    get_jwt_settings,
    issue_token_pair,
    reset_jwt_settings_cache,
    revoke_all_refresh_tokens,
    revoke_refresh_token,
    verify_refresh_token,
)

__all__ = [
    "JWTSettings",
    "TokenPair",
    "create_access_token",
    "create_refresh_token",
    "ensure_tenant_access",
    "get_current_token_payload",
    "get_current_user",
    "get_jwt_settings",
    "hash_password",
    "is_super_admin",
    "issue_token_pair",
    "needs_rehash",
    "require_role",
    "reset_jwt_settings_cache",
    "revoke_all_refresh_tokens",
    "revoke_refresh_token",
    "verify_password",
    "verify_refresh_token",
]
