# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import select, update
from sqlmodel import col

from leave_engine.db import unit_of_work
from leave_engine.exceptions import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from leave_engine.models.approval import LEAVE_REQUEST_SUBJECT, Approval
from leave_engine.models.enums import (
    ApprovalDecision,
    AuditAction,
    DurationType,
    HalfDaySegment,
    RequestState,
    ReviewAction,
)
from leave_engine.models.leave_type import LeavePolicy, LeaveType
from leave_engine.models.request import LeaveRequest
from leave_engine.schemas.leave import (
    LeaveRequestListResponse,
    LeaveRequestResponse,
    LeaveTypeListResponse,
    LeaveTypeResponse,
)
from leave_engine.services.access import can_review
from leave_engine.services.audit import model_to_audit_dict, write_audit_log
from leave_engine.services.calendar import HALF_DAY_HOURS, get_calendar_oracle
from leave_engine.services.directory import get_user_directory
from leave_engine.services.eligibility import assert_no_overlap
from leave_engine.services.ledger import adjust_balance, apply_delta, fetch_snapshot
from leave_engine.services.timesheet import get_timesheet_ledger
from leave_engine.services.transitions import creation_delta, creation_state, resolve_transition

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_engine.schemas.auth import AuthContext
    from leave_engine.schemas.leave import CreateLeaveRequestPayload, ReviewPayload

logger = logging.getLogger(__name__)

_REVIEW_AUDIT_ACTIONS = {
    ReviewAction.APPROVE: AuditAction.APPROVE,
    ReviewAction.REJECT: AuditAction.REJECT,
}


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_request_response(request: LeaveRequest) -> LeaveRequestResponse:
    """Map a request model to its response schema."""
    return LeaveRequestResponse(
        id=request.id,
        org_id=request.org_id,
        user_id=request.user_id,
        leave_type_id=request.leave_type_id,
        start_date=request.start_date,
        end_date=request.end_date,
        duration_type=DurationType(request.duration_type),
        half_day_segment=HalfDaySegment(request.half_day_segment) if request.half_day_segment else None,
        hours=request.hours,
        reason=request.reason,
        state=RequestState(request.state),
        decided_by_user_id=request.decided_by_user_id,
        created_at=request.created_at,
        updated_at=request.updated_at,
    )


def _build_leave_type_response(leave_type: LeaveType) -> LeaveTypeResponse:
    return LeaveTypeResponse(
        id=leave_type.id,
        code=leave_type.code,
        name=leave_type.name,
        description=leave_type.description,
        paid=leave_type.paid,
        requires_approval=leave_type.requires_approval,
        max_per_request_hours=leave_type.max_per_request_hours,
    )


async def _get_leave_type_or_404(
    session: AsyncSession,
    org_id: uuid.UUID,
    leave_type_id: uuid.UUID,
) -> LeaveType:
    result = await session.execute(
        select(LeaveType).where(
            col(LeaveType.id) == leave_type_id,
            col(LeaveType.org_id) == org_id,
        )
    )
    leave_type = result.scalar_one_or_none()
    if leave_type is None:
        raise NotFoundError("Leave type not found for this organisation")
    return leave_type


async def _assert_policy_exists(session: AsyncSession, org_id: uuid.UUID, leave_type_id: uuid.UUID) -> None:
    result = await session.execute(
        select(col(LeavePolicy.id)).where(
            col(LeavePolicy.org_id) == org_id,
            col(LeavePolicy.leave_type_id) == leave_type_id,
        )
    )
    if result.first() is None:
        raise BadRequestError("No leave policy configured for the selected leave type")


def resolve_requested_hours(
    payload: CreateLeaveRequestPayload,
    working_days: int,
    total_hours: Decimal,
) -> tuple[DurationType, Decimal, HalfDaySegment | None]:
    """Derive (duration type, hours, half-day segment) from the payload and the range's working time."""
    duration_type = payload.duration_type
    if duration_type is None:
        duration_type = DurationType.CUSTOM if payload.hours is not None else DurationType.FULL_DAY

    if payload.half_day_segment is not None and duration_type != DurationType.HALF_DAY:
        raise BadRequestError("Half-day segment can only be provided for half-day requests")

    if duration_type == DurationType.HALF_DAY:
        if working_days != 1:
            raise BadRequestError("Half-day requests must span a single working day")
        if payload.half_day_segment is None:
            raise BadRequestError("Half-day requests must specify whether it is the first or second half")
        return duration_type, HALF_DAY_HOURS, payload.half_day_segment

    if duration_type == DurationType.CUSTOM:
        if payload.hours is None:
            raise BadRequestError("Custom duration requires leave hours to be specified")
        return duration_type, payload.hours, None

    return duration_type, total_hours, None


async def decide_approvals(
    session: AsyncSession,
    request_ids: list[uuid.UUID],
    decision: ApprovalDecision,
    comment: str | None,
    decided_at: datetime,
) -> None:
    """Move the approval rows of the given requests to ``decision`` in one statement."""
    await session.execute(
        update(Approval)
        .where(
            col(Approval.subject_type) == LEAVE_REQUEST_SUBJECT,
            col(Approval.subject_id).in_(request_ids),
        )
        .values(decision=decision.value, comment=comment, decided_at=decided_at)
        .execution_options(synchronize_session=False)
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def list_leave_types(session: AsyncSession, org_id: uuid.UUID) -> LeaveTypeListResponse:
    """List the org's leave type catalog."""
    result = await session.execute(
        select(LeaveType).where(col(LeaveType.org_id) == org_id).order_by(col(LeaveType.code))
    )
    leave_types = list(result.scalars().all())
    return LeaveTypeListResponse(
        items=[_build_leave_type_response(t) for t in leave_types],
        total=len(leave_types),
    )


async def create_leave_request(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateLeaveRequestPayload,
) -> LeaveRequestResponse:
    """Create a leave request for the caller.

    Flow:
    1. Reject an inverted date range
    2. Resolve leave type and require a policy for it
    3. Reject ranges touching a non-working day
    4. Compute working days and hours over the range
    5. Resolve requested hours from the duration type
    6. Bound hours by (0, total working hours] and the type's per-request cap
    7. Reject overlap with the caller's pending/approved requests
    8. Paid types: lock the ledger row and require enough balance
    9. Reject full/custom leave over days that already carry timesheets
    10. Insert the request (pending or approved)
    11. Apply the hold or booking delta; address an approval to the manager
    12. Audit log, commit
    """
    if payload.end_date < payload.start_date:
        raise BadRequestError("End date cannot be before start date")

    calendar = get_calendar_oracle()
    timesheets = get_timesheet_ledger()
    directory = get_user_directory()

    async with unit_of_work(session):
        leave_type = await _get_leave_type_or_404(session, auth.org_id, payload.leave_type_id)
        await _assert_policy_exists(session, auth.org_id, leave_type.id)

        range_info = await calendar.get_range_info(session, auth.org_id, payload.start_date, payload.end_date)
        non_working = range_info.non_working_dates
        if non_working:
            raise BadRequestError(f"Cannot request leave on non-working day {non_working[0].isoformat()}")

        total_hours = range_info.total_hours
        duration_type, hours, half_day_segment = resolve_requested_hours(
            payload, range_info.working_days, total_hours
        )

        if hours <= 0:
            raise BadRequestError("Leave hours must be greater than zero")
        if hours > total_hours:
            raise BadRequestError(f"Requested hours exceed available working hours ({total_hours})")
        cap = leave_type.max_per_request_hours
        if cap is not None and hours > cap:
            raise BadRequestError(f"Requested hours exceed the per-request limit of {cap} for this leave type")

        await assert_no_overlap(session, auth.user_id, payload.start_date, payload.end_date)

        balance_row = None
        if leave_type.paid:
            balance_row = await fetch_snapshot(session, auth.user_id, leave_type.id)
            if balance_row.balance_hours < hours:
                raise ConflictError("Insufficient leave balance for this leave type")

        if duration_type != DurationType.HALF_DAY and await timesheets.has_entries(
            auth.org_id, auth.user_id, payload.start_date, payload.end_date
        ):
            raise BadRequestError("Cannot request leave for dates where timesheets already exist")

        state = creation_state(leave_type.requires_approval)
        leave_request = LeaveRequest(
            org_id=auth.org_id,
            user_id=auth.user_id,
            leave_type_id=leave_type.id,
            start_date=payload.start_date,
            end_date=payload.end_date,
            duration_type=duration_type.value,
            half_day_segment=half_day_segment.value if half_day_segment else None,
            hours=hours,
            reason=payload.reason,
            state=state.value,
        )
        session.add(leave_request)
        await session.flush()

        if balance_row is not None:
            balance_row = await fetch_snapshot(session, auth.user_id, leave_type.id)
            await apply_delta(session, balance_row, creation_delta(leave_type.requires_approval, hours))

        if leave_type.requires_approval:
            requester = await directory.get_user(auth.user_id)
            if requester is not None and requester.manager_id is not None:
                session.add(
                    Approval(
                        org_id=auth.org_id,
                        subject_id=leave_request.id,
                        approver_id=requester.manager_id,
                    )
                )
            else:
                logger.info("No manager on file for user %s; leave request has no approval row", auth.user_id)

        await write_audit_log(
            session,
            leave_request,
            AuditAction.CREATE,
            org_id=auth.org_id,
            actor_id=auth.user_id,
        )

    logger.info(
        "Leave request %s created for user %s: %s hours, state=%s",
        leave_request.id,
        auth.user_id,
        hours,
        state.value,
    )
    return _build_request_response(leave_request)


async def review_leave_request(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
    action: ReviewAction,
    payload: ReviewPayload | None = None,
) -> LeaveRequestResponse:
    """Approve or reject a single request, moving its hours between ledger buckets.

    The request row is locked for the whole transaction so two concurrent
    reviews serialize; the second one observes the new state and fails the
    state-match check.
    """
    directory = get_user_directory()

    async with unit_of_work(session):
        result = await session.execute(
            select(LeaveRequest)
            .where(
                col(LeaveRequest.id) == request_id,
                col(LeaveRequest.org_id) == auth.org_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        leave_request = result.scalar_one_or_none()
        if leave_request is None:
            raise NotFoundError("Leave request not found")

        if leave_request.user_id == auth.user_id:
            logger.warning("User %s attempted to review their own leave request %s", auth.user_id, request_id)
            raise ForbiddenError("You cannot approve or reject your own leave request")

        subject = await directory.get_user(leave_request.user_id)
        if not can_review(auth, subject):
            logger.warning("User %s is not authorized to review leave request %s", auth.user_id, request_id)
            raise ForbiddenError("You can only review leave requests from your direct reports")

        transition = resolve_transition(RequestState(leave_request.state), action)
        leave_type = await session.get(LeaveType, leave_request.leave_type_id)

        before_dict = model_to_audit_dict(leave_request)
        now = datetime.now(UTC)

        leave_request.state = transition.target.value
        leave_request.decided_by_user_id = auth.user_id
        leave_request.updated_at = now

        await decide_approvals(
            session,
            [leave_request.id],
            ApprovalDecision(transition.target.value),
            payload.comment if payload else None,
            now,
        )

        if leave_type is not None and leave_type.paid:
            await adjust_balance(
                session,
                leave_request.user_id,
                leave_request.leave_type_id,
                transition.ledger_delta(leave_request.hours),
            )

        await session.flush()

        await write_audit_log(
            session,
            leave_request,
            _REVIEW_AUDIT_ACTIONS[action],
            org_id=auth.org_id,
            actor_id=auth.user_id,
            before_json=before_dict,
            note=payload.comment if payload else None,
        )

    logger.info(
        "Leave request %s %s -> %s by %s",
        leave_request.id,
        transition.source.value,
        transition.target.value,
        auth.user_id,
    )
    return _build_request_response(leave_request)


async def list_leave_requests(
    session: AsyncSession,
    auth: AuthContext,
    state: RequestState | None = None,
) -> LeaveRequestListResponse:
    """List requests the caller can review, newest first. The caller's own are never included."""
    filters = [
        col(LeaveRequest.org_id) == auth.org_id,
        col(LeaveRequest.user_id) != auth.user_id,
    ]
    if state is not None:
        filters.append(col(LeaveRequest.state) == state.value)

    if not auth.is_admin:
        reports = await get_user_directory().list_reports(auth.user_id)
        report_ids = [u.id for u in reports if u.org_id == auth.org_id]
        if not report_ids:
            return LeaveRequestListResponse(items=[], total=0)
        filters.append(col(LeaveRequest.user_id).in_(report_ids))

    result = await session.execute(
        select(LeaveRequest).where(*filters).order_by(col(LeaveRequest.created_at).desc())
    )
    requests = list(result.scalars().all())
    return LeaveRequestListResponse(
        items=[_build_request_response(r) for r in requests],
        total=len(requests),
    )


async def list_leave_history(
    session: AsyncSession,
    auth: AuthContext,
    from_date: date | None = None,
    to_date: date | None = None,
) -> LeaveRequestListResponse:
    """The caller's own requests, optionally limited to those touching ``[from_date, to_date]``."""
    if to_date is None:
        to_date = from_date

    filters = [
        col(LeaveRequest.org_id) == auth.org_id,
        col(LeaveRequest.user_id) == auth.user_id,
    ]
    if from_date is not None:
        filters.append(col(LeaveRequest.end_date) >= from_date)
    if to_date is not None:
        filters.append(col(LeaveRequest.start_date) <= to_date)

    result = await session.execute(
        select(LeaveRequest).where(*filters).order_by(col(LeaveRequest.created_at).desc())
    )
    requests = list(result.scalars().all())
    return LeaveRequestListResponse(
        items=[_build_request_response(r) for r in requests],
        total=len(requests),
    )
