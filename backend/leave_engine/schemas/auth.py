# ruff: noqa: TC003
from __future__ import annotations

import uuid

from pydantic import BaseModel, Field

ADMIN_ROLES = frozenset({"admin", "super_admin", "superadmin"})


class AuthContext(BaseModel):
    """Caller identity resolved by the (external) authentication layer."""

    org_id: uuid.UUID
    user_id: uuid.UUID
    roles: list[str] = Field(default_factory=list)
    permissions: list[str] = Field(default_factory=list)

    @property
    def is_admin(self) -> bool:
        """Whether the caller holds an admin-tier role."""
        return any(role in ADMIN_ROLES for role in self.roles)

    def has_permission(self, permission: str) -> bool:
        return permission in self.permissions
