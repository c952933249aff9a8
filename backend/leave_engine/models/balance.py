# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

import sqlalchemy as sa
from sqlmodel import Field

from leave_engine.models.base import ZERO_HOURS, UpdatedAtMixin, UUIDBase, hours_field, leave_type_fk


class LeaveBalance(UUIDBase, UpdatedAtMixin, table=True):
    """Three-bucket ledger row for one (user, leave type).

    Only the balance ledger service mutates these rows, always under a row lock.
    """

    __tablename__ = "leave_balance"
    __table_args__ = (sa.UniqueConstraint("user_id", "leave_type_id", name="uq_leave_balance_user_type"),)

    user_id: uuid.UUID = Field(index=True)
    leave_type_id: uuid.UUID = leave_type_fk()
    balance_hours: Decimal = hours_field(ZERO_HOURS)
    pending_hours: Decimal = hours_field(ZERO_HOURS)
    booked_hours: Decimal = hours_field(ZERO_HOURS)
    as_of_date: date
