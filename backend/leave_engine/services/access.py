"""Authorization predicates shared by review and comp-off operations."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from leave_engine.schemas.auth import AuthContext
    from leave_engine.services.directory import UserInfo

TEAM_VIEW_PERMISSIONS = ("leave:view:team", "leave:approve:team")


def is_direct_manager(auth: AuthContext, subject: UserInfo | None) -> bool:
    """Whether the caller is the manager on file for ``subject``."""
    return subject is not None and subject.manager_id is not None and subject.manager_id == auth.user_id


def can_review(auth: AuthContext, subject: UserInfo | None) -> bool:
    """Admin tier reviews anything in the org; otherwise only the subject's direct manager."""
    return auth.is_admin or is_direct_manager(auth, subject)


def can_manage_comp_off(auth: AuthContext, subject: UserInfo | None) -> bool:
    """Grant and revoke follow the same rule as review."""
    return auth.is_admin or is_direct_manager(auth, subject)


def can_view_comp_off(auth: AuthContext, subject: UserInfo) -> bool:
    if subject.id == auth.user_id:
        return True
    return can_manage_comp_off(auth, subject) or any(auth.has_permission(p) for p in TEAM_VIEW_PERMISSIONS)
