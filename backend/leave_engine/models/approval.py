# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime

import sqlalchemy as sa
from sqlmodel import Field

from leave_engine.models.base import TimestampMixin, UUIDBase
from leave_engine.models.enums import ApprovalDecision

LEAVE_REQUEST_SUBJECT = "leave_request"


class Approval(UUIDBase, TimestampMixin, table=True):
    """Approval task addressed to the requester's manager, kept in lockstep with the request."""

    __tablename__ = "approval"
    __table_args__ = (sa.UniqueConstraint("subject_type", "subject_id", name="uq_approval_subject"),)

    org_id: uuid.UUID = Field(index=True)
    subject_type: str = Field(default=LEAVE_REQUEST_SUBJECT, max_length=50)
    subject_id: uuid.UUID = Field(index=True)
    approver_id: uuid.UUID = Field(index=True)
    decision: str = Field(default=ApprovalDecision.PENDING, max_length=20)
    comment: str | None = None
    decided_at: datetime | None = Field(
        default=None,
        sa_type=sa.DateTime(timezone=True),  # ty: ignore[invalid-argument-type]
    )
