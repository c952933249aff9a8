from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from leave_engine.models.audit import AuditLog
from leave_engine.models.calendar import OrgCalendarDay
from leave_engine.models.comp_off import CompOffCredit
from leave_engine.models.enums import AuditAction, AuditEntityType
from leave_engine.models.request import LeaveRequest

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlmodel import SQLModel

# Actor recorded for changes made by scheduled sweeps rather than a person.
SYSTEM_ACTOR = uuid.UUID(int=0)

_ENTITY_TYPES: dict[type[SQLModel], AuditEntityType] = {
    LeaveRequest: AuditEntityType.LEAVE_REQUEST,
    CompOffCredit: AuditEntityType.COMP_OFF_CREDIT,
    OrgCalendarDay: AuditEntityType.CALENDAR_DAY,
}


def _json_safe(value: Any) -> Any:
    if isinstance(value, uuid.UUID | Decimal):
        return str(value)
    if isinstance(value, datetime | date):
        return value.isoformat()
    return value


def model_to_audit_dict(model: SQLModel) -> dict[str, Any]:
    """Snapshot an entity as JSON-safe primitives (hours keep their exact decimal text)."""
    return {key: _json_safe(value) for key, value in model.model_dump().items()}


async def write_audit_log(
    session: AsyncSession,
    entity: LeaveRequest | CompOffCredit | OrgCalendarDay,
    action: AuditAction,
    *,
    org_id: uuid.UUID,
    actor_id: uuid.UUID,
    before_json: dict[str, Any] | None = None,
    note: str | None = None,
) -> AuditLog:
    """Record a change to ``entity`` within the caller's transaction.

    The after-image is taken from ``entity`` as it stands now, except for
    deletes, which only carry the before-image.
    """
    entry = AuditLog(
        org_id=org_id,
        actor_id=actor_id,
        subject_user_id=getattr(entity, "user_id", None),
        entity_type=_ENTITY_TYPES[type(entity)].value,
        entity_id=entity.id,
        action=action.value,
        note=note,
        before_json=before_json,
        after_json=None if action is AuditAction.DELETE else model_to_audit_dict(entity),
    )
    session.add(entry)
    return entry
