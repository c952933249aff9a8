"""Bulk Review Engine: approve or reject many leave requests as one unit."""

# ruff: noqa: TC003
from __future__ import annotations

import calendar
import logging
import uuid
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import select, update
from sqlmodel import col

from leave_engine.db import unit_of_work
from leave_engine.exceptions import BadRequestError, ForbiddenError, NotFoundError
from leave_engine.models.enums import ApprovalDecision, AuditAction, RequestState, ReviewAction
from leave_engine.models.leave_type import LeaveType
from leave_engine.models.request import LeaveRequest
from leave_engine.schemas.leave import BulkReviewResponse, SkippedRequest
from leave_engine.services.access import is_direct_manager
from leave_engine.services.audit import model_to_audit_dict, write_audit_log
from leave_engine.services.directory import get_user_directory
from leave_engine.services.leave_request import decide_approvals
from leave_engine.services.ledger import adjust_balance
from leave_engine.services.transitions import TARGET_STATES, eligible_states, resolve_transition

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_engine.schemas.auth import AuthContext
    from leave_engine.schemas.leave import BulkReviewPayload

logger = logging.getLogger(__name__)

_BULK_AUDIT_ACTIONS = {
    ReviewAction.APPROVE: AuditAction.APPROVE,
    ReviewAction.REJECT: AuditAction.REJECT,
}


def _dedupe(ids: list[uuid.UUID]) -> list[uuid.UUID]:
    return list(dict.fromkeys(ids))


def month_window(year: int, month: int) -> tuple[date, date]:
    """Inclusive date window for a calendar month."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


async def _load_candidates(
    session: AsyncSession,
    auth: AuthContext,
    payload: BulkReviewPayload,
) -> list[LeaveRequest]:
    """Lock and load every request the selector matches within the caller's org."""
    filters = [col(LeaveRequest.org_id) == auth.org_id]

    if payload.request_ids:
        filters.append(col(LeaveRequest.id).in_(_dedupe(payload.request_ids)))
    elif payload.year is not None and payload.month is not None:
        window_start, window_end = month_window(payload.year, payload.month)
        filters.append(col(LeaveRequest.start_date) >= window_start)
        filters.append(col(LeaveRequest.start_date) <= window_end)
    else:
        raise BadRequestError("Provide request_ids or a year/month to select leave requests")

    if payload.user_id is not None:
        filters.append(col(LeaveRequest.user_id) == payload.user_id)

    result = await session.execute(
        select(LeaveRequest)
        .where(*filters)
        .order_by(col(LeaveRequest.start_date), col(LeaveRequest.id))
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def _authorized(auth: AuthContext, candidates: list[LeaveRequest]) -> list[LeaveRequest]:
    """Drop the caller's own requests and, for non-admins, anything outside their direct reports."""
    others = [c for c in candidates if c.user_id != auth.user_id]
    if auth.is_admin:
        return others

    directory = get_user_directory()
    managed: dict[uuid.UUID, bool] = {}
    for user_id in {c.user_id for c in others}:
        managed[user_id] = is_direct_manager(auth, await directory.get_user(user_id))
    return [c for c in others if managed[c.user_id]]


async def _paid_leave_type_ids(session: AsyncSession, leave_type_ids: set[uuid.UUID]) -> set[uuid.UUID]:
    result = await session.execute(
        select(col(LeaveType.id)).where(
            col(LeaveType.id).in_(leave_type_ids),
            col(LeaveType.paid).is_(True),
        )
    )
    return set(result.scalars().all())


async def bulk_review(
    session: AsyncSession,
    auth: AuthContext,
    payload: BulkReviewPayload,
    action: ReviewAction,
) -> BulkReviewResponse:
    """Approve or reject every authorized, state-eligible request the selector matches.

    Flow:
    1. Resolve the approver in the User Directory
    2. Lock the candidates matching the selector
    3. Narrow to requests the approver may review (Forbidden if none)
    4. Narrow to states the action accepts (BadRequest if none)
    5. One batched UPDATE for the requests, one for their approvals
    6. One ledger delta per paid request, chosen from its previous state
    7. Audit log per updated request, commit

    Any failure aborts the whole batch.
    """
    directory = get_user_directory()
    new_state = TARGET_STATES[action]
    allowed_states = eligible_states(action)

    async with unit_of_work(session):
        approver = await directory.get_user(auth.user_id)
        if approver is None:
            raise NotFoundError("Approver not found")

        candidates = await _load_candidates(session, auth, payload)
        if not candidates:
            raise NotFoundError("No leave requests matched the selection")

        authorized = await _authorized(auth, candidates)
        if not authorized:
            logger.warning("User %s attempted a bulk %s without authority over any candidate", auth.user_id, action)
            raise ForbiddenError("You are not authorized to review any of the selected leave requests")

        eligible = [r for r in authorized if RequestState(r.state) in allowed_states]
        eligible_ids = [request.id for request in eligible]
        skipped = [SkippedRequest(id=r.id, state=RequestState(r.state)) for r in authorized if r.id not in eligible_ids]
        if not eligible:
            allowed = " or ".join(sorted(s.value for s in allowed_states))
            raise BadRequestError(f"None of the selected leave requests are {allowed}")

        # Transition and before-image are taken before the batched UPDATE rewrites state.
        plan = [
            (request, resolve_transition(RequestState(request.state), action), model_to_audit_dict(request))
            for request in eligible
        ]
        now = datetime.now(UTC)

        await session.execute(
            update(LeaveRequest)
            .where(col(LeaveRequest.id).in_(eligible_ids))
            .values(state=new_state.value, decided_by_user_id=auth.user_id, updated_at=now)
            .execution_options(synchronize_session="evaluate")
        )
        await decide_approvals(session, eligible_ids, ApprovalDecision(new_state.value), payload.comment, now)

        paid_type_ids = await _paid_leave_type_ids(session, {r.leave_type_id for r in eligible})
        for request, transition, _ in plan:
            if request.leave_type_id in paid_type_ids:
                await adjust_balance(
                    session,
                    request.user_id,
                    request.leave_type_id,
                    transition.ledger_delta(request.hours),
                )

        for request, _, before_dict in plan:
            await write_audit_log(
                session,
                request,
                _BULK_AUDIT_ACTIONS[action],
                org_id=auth.org_id,
                actor_id=auth.user_id,
                before_json=before_dict,
                note=payload.comment,
            )

    if payload.request_ids:
        evaluated_ids = _dedupe(payload.request_ids)
    else:
        evaluated_ids = [r.id for r in authorized]

    logger.info(
        "Bulk %s by %s: %d updated, %d skipped",
        action.value,
        auth.user_id,
        len(eligible_ids),
        len(skipped),
    )
    return BulkReviewResponse(
        action=action,
        new_state=new_state,
        updated_count=len(eligible_ids),
        updated_request_ids=eligible_ids,
        evaluated_request_ids=evaluated_ids,
        skipped=skipped,
    )
