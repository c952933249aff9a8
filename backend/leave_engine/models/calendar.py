# ruff: noqa: TC003
from __future__ import annotations

import datetime
import uuid

import sqlalchemy as sa
from sqlmodel import Field

from leave_engine.models.base import UUIDBase


class OrgCalendarDay(UUIDBase, table=True):
    """Explicit per-org override of whether a date is a working day."""

    __tablename__ = "org_calendar_day"
    __table_args__ = (sa.UniqueConstraint("org_id", "date", name="uq_calendar_day_org_date"),)

    org_id: uuid.UUID = Field(index=True)
    date: datetime.date
    name: str = Field(max_length=255)
    is_working_day: bool = Field(default=False, sa_column_kwargs={"server_default": sa.false()})
