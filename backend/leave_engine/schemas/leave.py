# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Self

from pydantic import BaseModel, Field, model_validator

from leave_engine.models.enums import DurationType, HalfDaySegment, RequestState, ReviewAction
from leave_engine.schemas.common import Hours

# ---------------------------------------------------------------------------
# Leave types and balances
# ---------------------------------------------------------------------------


class LeaveTypeResponse(BaseModel):
    """A leave type from the org catalog."""

    id: uuid.UUID
    code: str
    name: str
    description: str | None
    paid: bool
    requires_approval: bool
    max_per_request_hours: Hours | None


class LeaveTypeListResponse(BaseModel):
    items: list[LeaveTypeResponse]
    total: int


class LeaveTypeBrief(BaseModel):
    id: uuid.UUID
    code: str
    name: str


class BalanceResponse(BaseModel):
    """Ledger figures for one leave type."""

    id: uuid.UUID
    leave_type_id: uuid.UUID
    balance_hours: Hours
    pending_hours: Hours
    booked_hours: Hours
    as_of_date: date
    leave_type: LeaveTypeBrief


class BalanceListResponse(BaseModel):
    """All ledger rows for a user."""

    user_id: uuid.UUID
    items: list[BalanceResponse]
    total: int


class BalanceSnapshotResponse(BaseModel):
    """Post-operation ledger figures returned by write endpoints."""

    leave_type_id: uuid.UUID
    balance_hours: Hours
    pending_hours: Hours
    booked_hours: Hours


# ---------------------------------------------------------------------------
# Leave requests
# ---------------------------------------------------------------------------


class CreateLeaveRequestPayload(BaseModel):
    """Request body for creating a leave request."""

    leave_type_id: uuid.UUID
    start_date: date
    end_date: date
    hours: Decimal | None = Field(default=None, max_digits=10, decimal_places=2)
    reason: str | None = Field(default=None, max_length=1000)
    duration_type: DurationType | None = None
    half_day_segment: HalfDaySegment | None = None


class ReviewPayload(BaseModel):
    """Request body for approve/reject actions."""

    comment: str | None = Field(default=None, max_length=1000)


class BulkReviewPayload(BaseModel):
    """Selects the requests of a bulk review: explicit IDs, or a calendar month."""

    request_ids: list[uuid.UUID] | None = Field(default=None, min_length=1)
    year: int | None = Field(default=None, ge=1970, le=9999)
    month: int | None = Field(default=None, ge=1, le=12)
    user_id: uuid.UUID | None = None
    comment: str | None = Field(default=None, max_length=1000)

    @model_validator(mode="after")
    def _validate_month_pairing(self) -> Self:
        if (self.year is None) != (self.month is None):
            msg = "year and month must be given together"
            raise ValueError(msg)
        return self


class LeaveRequestResponse(BaseModel):
    """Response schema for a single leave request."""

    id: uuid.UUID
    org_id: uuid.UUID
    user_id: uuid.UUID
    leave_type_id: uuid.UUID
    start_date: date
    end_date: date
    duration_type: DurationType
    half_day_segment: HalfDaySegment | None
    hours: Hours
    reason: str | None
    state: RequestState
    decided_by_user_id: uuid.UUID | None
    created_at: datetime
    updated_at: datetime


class LeaveRequestListResponse(BaseModel):
    items: list[LeaveRequestResponse]
    total: int


class SkippedRequest(BaseModel):
    """An authorized bulk-review candidate whose state did not allow the action."""

    id: uuid.UUID
    state: RequestState


class BulkReviewResponse(BaseModel):
    """Outcome of a bulk approve/reject."""

    action: ReviewAction
    new_state: RequestState
    updated_count: int
    updated_request_ids: list[uuid.UUID]
    evaluated_request_ids: list[uuid.UUID]
    skipped: list[SkippedRequest]
