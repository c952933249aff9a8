# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from leave_engine.models.base import UUIDBase, timestamp_field


class AuditLog(UUIDBase, table=True):
    """Append-only trail of leave, comp-off and calendar changes.

    ``subject_user_id`` is the user whose ledger the change touched (None for
    org-wide calendar edits), so a user's history can be read without
    unpacking the JSON snapshots.
    """

    __tablename__ = "audit_log"
    __table_args__ = (
        sa.Index("ix_audit_entity", "entity_type", "entity_id"),
        sa.Index("ix_audit_subject", "org_id", "subject_user_id"),
    )

    org_id: uuid.UUID = Field(index=True)
    actor_id: uuid.UUID
    subject_user_id: uuid.UUID | None = None
    entity_type: str = Field(max_length=50)
    entity_id: uuid.UUID
    action: str = Field(max_length=50)
    note: str | None = Field(default=None, max_length=1000)
    before_json: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    after_json: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)

    created_at: datetime = timestamp_field(index=True)
