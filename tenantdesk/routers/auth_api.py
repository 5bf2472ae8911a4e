from typing import Annotated

from fastapi import APIRouter, Depends

from ..core.auth import TenantTokenPayload
from ..security.auth import ROLE_LEVELS, get_current_token_payload, require_role

router = APIRouter(prefix="/api/auth", tags=["auth"])

ViewerRole = Annotated[str, Depends(require_role("viewer"))]
TokenPayloadDep = Annotated[TenantTokenPayload, Depends(get_current_token_payload)]


@router.get("/roles")
async def get_roles(role: ViewerRole, payload: TokenPayloadDep):
    """Report the effective role and every role it implies."""

    granted = [name for name, level in ROLE_LEVELS.items() if level <= ROLE_LEVELS[role]]
    return {
        "tenant_id": payload.get("tenant_id"),
        "role": role,
        "roles": sorted(granted, key=ROLE_LEVELS.get),
    }
