# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Depends, Query, status

from leave_engine.api.deps import AuthDep, validate_org_scope
from leave_engine.db import SessionDep
from leave_engine.models.enums import RequestState, ReviewAction
from leave_engine.schemas.leave import (
    BalanceListResponse,
    BulkReviewPayload,
    BulkReviewResponse,
    CreateLeaveRequestPayload,
    LeaveRequestListResponse,
    LeaveRequestResponse,
    LeaveTypeListResponse,
    ReviewPayload,
)
from leave_engine.services import balance as balance_service
from leave_engine.services import bulk_review as bulk_review_service
from leave_engine.services import leave_request as leave_request_service

leaves_router = APIRouter(
    prefix="/orgs/{org_id}/leaves",
    tags=["leaves"],
    dependencies=[Depends(validate_org_scope)],
)


@leaves_router.get("/balances", response_model=BalanceListResponse)
async def list_balances(
    session: SessionDep,
    auth: AuthDep,
) -> BalanceListResponse:
    """The caller's leave balances."""
    return await balance_service.list_balances(session, auth)


@leaves_router.get("/types", response_model=LeaveTypeListResponse)
async def list_leave_types(
    session: SessionDep,
    auth: AuthDep,
) -> LeaveTypeListResponse:
    return await leave_request_service.list_leave_types(session, auth.org_id)


@leaves_router.get("/requests", response_model=LeaveRequestListResponse)
async def list_requests(
    session: SessionDep,
    auth: AuthDep,
    state: RequestState | None = Query(default=None),
) -> LeaveRequestListResponse:
    """List requests the caller can review."""
    return await leave_request_service.list_leave_requests(session, auth, state)


@leaves_router.post("/requests", response_model=LeaveRequestResponse, status_code=status.HTTP_201_CREATED)
async def create_request(
    payload: CreateLeaveRequestPayload,
    session: SessionDep,
    auth: AuthDep,
) -> LeaveRequestResponse:
    """Submit a leave request for the caller."""
    return await leave_request_service.create_leave_request(session, auth, payload)


@leaves_router.get("/history", response_model=LeaveRequestListResponse)
async def leave_history(
    session: SessionDep,
    auth: AuthDep,
    from_date: date | None = Query(default=None, alias="from"),
    to_date: date | None = Query(default=None, alias="to"),
) -> LeaveRequestListResponse:
    """The caller's own leave requests."""
    return await leave_request_service.list_leave_history(session, auth, from_date, to_date)


@leaves_router.post("/requests/bulk/approve", response_model=BulkReviewResponse)
async def bulk_approve(
    payload: BulkReviewPayload,
    session: SessionDep,
    auth: AuthDep,
) -> BulkReviewResponse:
    """Approve every pending request the selector matches."""
    return await bulk_review_service.bulk_review(session, auth, payload, ReviewAction.APPROVE)


@leaves_router.post("/requests/bulk/reject", response_model=BulkReviewResponse)
async def bulk_reject(
    payload: BulkReviewPayload,
    session: SessionDep,
    auth: AuthDep,
) -> BulkReviewResponse:
    """Reject every pending or approved request the selector matches."""
    return await bulk_review_service.bulk_review(session, auth, payload, ReviewAction.REJECT)


@leaves_router.post("/requests/{request_id}/approve", response_model=LeaveRequestResponse)
async def approve_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    payload: ReviewPayload | None = None,
) -> LeaveRequestResponse:
    """Approve a pending request (direct manager or admin)."""
    return await leave_request_service.review_leave_request(
        session, auth, request_id, ReviewAction.APPROVE, payload
    )


@leaves_router.post("/requests/{request_id}/reject", response_model=LeaveRequestResponse)
async def reject_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    payload: ReviewPayload | None = None,
) -> LeaveRequestResponse:
    """Reject a pending or approved request (direct manager or admin)."""
    return await leave_request_service.review_leave_request(
        session, auth, request_id, ReviewAction.REJECT, payload
    )
