# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid
from typing import Annotated

from fastapi import Depends, Header, Path

from leave_engine.exceptions import ForbiddenError
from leave_engine.schemas.auth import AuthContext


def _split_header(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


async def get_auth_context(
    x_org_id: uuid.UUID = Header(),
    x_user_id: uuid.UUID = Header(),
    x_roles: str = Header(default=""),
    x_permissions: str = Header(default=""),
) -> AuthContext:
    """Build the caller identity from the headers set by the authentication gateway."""
    return AuthContext(
        org_id=x_org_id,
        user_id=x_user_id,
        roles=_split_header(x_roles),
        permissions=_split_header(x_permissions),
    )


AuthDep = Annotated[AuthContext, Depends(get_auth_context)]


async def require_admin(
    auth: AuthDep,
) -> AuthContext:
    """Require an admin-tier role for the request."""
    if not auth.is_admin:
        raise ForbiddenError("Admin access required")
    return auth


AdminDep = Annotated[AuthContext, Depends(require_admin)]


async def validate_org_scope(
    org_id: uuid.UUID = Path(),
    auth: AuthContext = Depends(get_auth_context),
) -> AuthContext:
    """Ensure the path org_id matches the caller's org."""
    if org_id != auth.org_id:
        raise ForbiddenError("Organisation ID mismatch")
    return auth
