# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

import sqlalchemy as sa
from sqlmodel import Field

from leave_engine.models.base import TimestampMixin, UpdatedAtMixin, UUIDBase, hours_field
from leave_engine.models.enums import CompOffStatus


class CompOffCredit(UUIDBase, TimestampMixin, UpdatedAtMixin, table=True):
    """Compensatory-off hours earned for working a non-working day."""

    __tablename__ = "comp_off_credit"
    __table_args__ = (
        sa.Index("ix_comp_off_user_status", "org_id", "user_id", "status"),
        sa.Index("ix_comp_off_user_work_date", "user_id", "work_date"),
    )

    org_id: uuid.UUID = Field(index=True)
    user_id: uuid.UUID = Field(index=True)
    manager_id: uuid.UUID
    created_by: uuid.UUID
    timesheet_id: uuid.UUID
    work_date: date
    duration_type: str = Field(max_length=20)
    credited_hours: Decimal = hours_field()
    timesheet_hours: Decimal = hours_field()
    status: str = Field(default=CompOffStatus.GRANTED, max_length=20, index=True)
    expires_at: datetime = Field(sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    notes: str | None = None
