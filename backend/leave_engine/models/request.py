# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

import sqlalchemy as sa
from sqlmodel import Field

from leave_engine.models.base import TimestampMixin, UpdatedAtMixin, UUIDBase, hours_field, leave_type_fk
from leave_engine.models.enums import RequestState


class LeaveRequest(UUIDBase, TimestampMixin, UpdatedAtMixin, table=True):
    """An employee's leave request with approval workflow state."""

    __tablename__ = "leave_request"
    __table_args__ = (
        sa.Index("ix_leave_request_user_state", "user_id", "state"),
        sa.Index("ix_leave_request_org_start", "org_id", "start_date"),
    )

    org_id: uuid.UUID = Field(index=True)
    user_id: uuid.UUID = Field(index=True)
    leave_type_id: uuid.UUID = leave_type_fk()
    start_date: date
    end_date: date
    duration_type: str = Field(max_length=20)
    half_day_segment: str | None = Field(default=None, max_length=20)
    hours: Decimal = hours_field()
    reason: str | None = None
    state: str = Field(default=RequestState.PENDING, max_length=20, sa_column_kwargs={"server_default": "pending"})
    decided_by_user_id: uuid.UUID | None = None
