# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

from pydantic import BaseModel, Field

from leave_engine.models.enums import CompOffDuration, CompOffStatus
from leave_engine.schemas.common import Hours
from leave_engine.schemas.leave import BalanceSnapshotResponse


class GrantCompOffPayload(BaseModel):
    """Request body for granting a comp-off credit."""

    user_id: uuid.UUID
    work_date: date
    duration: CompOffDuration
    notes: str | None = Field(default=None, max_length=1000)


class RevokeCompOffPayload(BaseModel):
    """Request body for revoking a comp-off credit."""

    reason: str | None = Field(default=None, max_length=1000)


class CompOffCreditResponse(BaseModel):
    """Response schema for a comp-off credit."""

    id: uuid.UUID
    user_id: uuid.UUID
    work_date: date
    duration_type: CompOffDuration
    credited_hours: Hours
    timesheet_hours: Hours
    status: CompOffStatus
    expires_at: datetime
    notes: str | None
    created_at: datetime


class CompOffGrantResponse(BaseModel):
    credit: CompOffCreditResponse
    balance: BalanceSnapshotResponse


class CompOffRevokeResponse(BaseModel):
    credit_id: uuid.UUID
    status: CompOffStatus
    balance: BalanceSnapshotResponse


class CompOffUserBrief(BaseModel):
    id: uuid.UUID
    name: str
    manager_id: uuid.UUID | None


class CompOffListResponse(BaseModel):
    """Comp-off credits held by one user."""

    user: CompOffUserBrief
    items: list[CompOffCreditResponse]
    total: int
