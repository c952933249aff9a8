# ruff: noqa: TC003
from __future__ import annotations

import uuid
from decimal import Decimal
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from leave_engine.models.base import TimestampMixin, UUIDBase, hours_field, leave_type_fk


class LeaveType(UUIDBase, TimestampMixin, table=True):
    """Catalog entry for a kind of leave within an org (e.g. CASUAL, COMP_OFF)."""

    __tablename__ = "leave_type"
    __table_args__ = (sa.UniqueConstraint("org_id", "code", name="uq_leave_type_org_code"),)

    org_id: uuid.UUID = Field(index=True)
    code: str = Field(max_length=50)
    name: str = Field(max_length=255)
    description: str | None = None
    paid: bool = Field(default=True, sa_column_kwargs={"server_default": sa.true()})
    requires_approval: bool = Field(default=True, sa_column_kwargs={"server_default": sa.true()})
    max_per_request_hours: Decimal | None = hours_field(None)


class LeavePolicy(UUIDBase, TimestampMixin, table=True):
    """Org-level policy for a leave type. Rule payloads are stored, not interpreted."""

    __tablename__ = "leave_policy"
    __table_args__ = (sa.UniqueConstraint("org_id", "leave_type_id", name="uq_leave_policy_org_type"),)

    org_id: uuid.UUID = Field(index=True)
    leave_type_id: uuid.UUID = leave_type_fk()
    accrual_rule: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    carry_forward_rule: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    max_balance: Decimal | None = hours_field(None)
