"""Client-side persistence of portal login state."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, MutableMapping

from .client import PortalLogin

logger = logging.getLogger(__name__)

SESSION_KEYS = (
    "investor_token",
    "investor_roles",
    "investor_name",
    "investor_id",
    "investor_email",
    "investor_phone",
    "investor_picture",
    "project_owner_token",
    "project_owner_name",
    "admin_token",
)

# Keys describing the signed-in account; reset on every login.
_IDENTITY_KEYS = (
    "investor_name",
    "investor_id",
    "investor_email",
    "investor_phone",
    "investor_picture",
)


class PortalSessionStore:
    """Key/value view of the portal session (``investor_token`` and friends).

    ``storage`` is any mutable mapping; :meth:`load` and :meth:`save` persist
    it as a JSON file.
    """

    def __init__(self, storage: MutableMapping[str, str] | None = None) -> None:
        self.storage: MutableMapping[str, str] = storage if storage is not None else {}

    @classmethod
    def load(cls, path: str | Path) -> "PortalSessionStore":
        file = Path(path)
        if not file.exists():
            return cls()
        try:
            data = json.loads(file.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable portal session file %s", file)
            return cls()
        if not isinstance(data, dict):
            return cls()
        return cls({str(k): str(v) for k, v in data.items() if v is not None})

    def save(self, path: str | Path) -> None:
        file = Path(path)
        file.parent.mkdir(parents=True, exist_ok=True)
        file.write_text(json.dumps(dict(self.storage), indent=2, sort_keys=True), encoding="utf-8")

    def get(self, key: str) -> str | None:
        return self.storage.get(key)

    @property
    def roles(self) -> list[str]:
        raw = self.storage.get("investor_roles")
        if not raw:
            return []
        try:
            roles = json.loads(raw)
        except json.JSONDecodeError:
            return []
        return [str(role) for role in roles] if isinstance(roles, list) else []

    @property
    def is_authenticated(self) -> bool:
        return bool(self.storage.get("investor_token") or self.storage.get("project_owner_token"))

    def _set(self, key: str, value: Any) -> None:
        if value:
            self.storage[key] = str(value)

    def _reset_identity(self) -> None:
        for key in _IDENTITY_KEYS:
            self.storage.pop(key, None)

    def record_login(self, login: PortalLogin) -> None:
        """Store a successful login the way the portal UI does."""

        user = login.user
        roles = login.roles
        self._reset_identity()
        self.storage["investor_token"] = login.access_token
        self.storage["investor_roles"] = json.dumps(roles)
        self._set("investor_name", user.get("name"))
        self._set("investor_id", user.get("id"))

        if login.method == "phone":
            self._set("investor_phone", login.identifier)
            self._set("investor_email", user.get("email"))
        else:
            self._set("investor_email", user.get("email") or (
                login.identifier if login.method == "email" else None
            ))

        if "PROJECT_OWNER" in roles:
            self.storage["project_owner_token"] = login.access_token
            self._set("project_owner_name", user.get("name"))
        if "SYSTEM_ADMIN" in roles:
            self.storage["admin_token"] = login.access_token

    def record_project_owner(self, login: PortalLogin) -> None:
        self.storage["project_owner_token"] = login.access_token
        self._set("project_owner_name", login.user.get("name"))

    def logout(self) -> None:
        for key in SESSION_KEYS:
            self.storage.pop(key, None)


__all__ = ["PortalSessionStore", "SESSION_KEYS"]
