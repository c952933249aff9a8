"""Comp-Off Credit Manager: grant, revoke and expire compensatory-off credits.

Every credit funnels into the user's ``COMP_OFF`` ledger row. Expired and
revoked credits claw back at most the hours still available, so a credit
that was partly spent never drives the balance negative.
"""

# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlmodel import col

from leave_engine.db import insert_ignore, unit_of_work
from leave_engine.exceptions import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from leave_engine.models.comp_off import CompOffCredit
from leave_engine.models.enums import AuditAction, CompOffDuration, CompOffStatus
from leave_engine.models.leave_type import LeavePolicy, LeaveType
from leave_engine.schemas.comp_off import (
    CompOffCreditResponse,
    CompOffGrantResponse,
    CompOffListResponse,
    CompOffRevokeResponse,
    CompOffUserBrief,
)
from leave_engine.schemas.leave import BalanceSnapshotResponse
from leave_engine.services.access import can_manage_comp_off, can_view_comp_off
from leave_engine.services.audit import SYSTEM_ACTOR, model_to_audit_dict, write_audit_log
from leave_engine.services.calendar import HALF_DAY_HOURS, HOURS_PER_WORKING_DAY, get_calendar_oracle
from leave_engine.services.directory import get_user_directory
from leave_engine.services.ledger import (
    BalanceDelta,
    BalanceFigures,
    adjust_balance,
    apply_delta,
    ensure_balance_row,
    fetch_snapshot,
    find_snapshot,
)
from leave_engine.services.timesheet import get_timesheet_ledger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_engine.schemas.auth import AuthContext
    from leave_engine.schemas.comp_off import GrantCompOffPayload, RevokeCompOffPayload
    from leave_engine.services.directory import UserInfo

logger = logging.getLogger(__name__)

COMP_OFF_CODE = "COMP_OFF"
COMP_OFF_EXPIRY_DAYS = 30
DAILY_CREDIT_CAP_HOURS = HOURS_PER_WORKING_DAY
CREDIT_HOURS: dict[CompOffDuration, Decimal] = {
    CompOffDuration.HALF_DAY: HALF_DAY_HOURS,
    CompOffDuration.FULL_DAY: HOURS_PER_WORKING_DAY,
}
REVOKE_NOTE_SEPARATOR = " | "


@dataclass
class ExpirySweepResult:
    """Outcome of a periodic comp-off expiry run."""

    as_of: datetime
    users_processed: int = 0
    credits_expired: int = 0
    errors: int = 0


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_credit_response(credit: CompOffCredit) -> CompOffCreditResponse:
    return CompOffCreditResponse(
        id=credit.id,
        user_id=credit.user_id,
        work_date=credit.work_date,
        duration_type=CompOffDuration(credit.duration_type),
        credited_hours=credit.credited_hours,
        timesheet_hours=credit.timesheet_hours,
        status=CompOffStatus(credit.status),
        expires_at=credit.expires_at,
        notes=credit.notes,
        created_at=credit.created_at,
    )


def _build_snapshot_response(leave_type_id: uuid.UUID, figures: BalanceFigures) -> BalanceSnapshotResponse:
    return BalanceSnapshotResponse(
        leave_type_id=leave_type_id,
        balance_hours=figures.balance_hours,
        pending_hours=figures.pending_hours,
        booked_hours=figures.booked_hours,
    )


def credit_expiry(work_date: date) -> datetime:
    """Credits lapse 30 days after the start of the day that earned them."""
    return datetime.combine(work_date, time.min, tzinfo=UTC) + timedelta(days=COMP_OFF_EXPIRY_DAYS)


def append_revocation_note(notes: str | None, reason: str | None) -> str | None:
    if not reason:
        return notes
    entry = f"Revoked: {reason}"
    if not notes:
        return entry
    return f"{notes}{REVOKE_NOTE_SEPARATOR}{entry}"


async def _get_org_user_or_404(auth: AuthContext, user_id: uuid.UUID) -> UserInfo:
    user = await get_user_directory().get_user(user_id)
    if user is None or user.org_id != auth.org_id:
        raise NotFoundError("User not found in this organisation")
    return user


async def _granted_hours_for_day(session: AsyncSession, user_id: uuid.UUID, work_date: date) -> Decimal:
    result = await session.execute(
        select(func.coalesce(func.sum(col(CompOffCredit.credited_hours)), 0)).where(
            col(CompOffCredit.user_id) == user_id,
            col(CompOffCredit.work_date) == work_date,
            col(CompOffCredit.status) == CompOffStatus.GRANTED,
        )
    )
    return Decimal(result.scalar_one())


# ---------------------------------------------------------------------------
# Lazy COMP_OFF leave type
# ---------------------------------------------------------------------------


async def find_comp_off_leave_type_id(session: AsyncSession, org_id: uuid.UUID) -> uuid.UUID | None:
    result = await session.execute(
        select(col(LeaveType.id)).where(
            col(LeaveType.org_id) == org_id,
            col(LeaveType.code) == COMP_OFF_CODE,
        )
    )
    return result.scalar_one_or_none()


async def ensure_comp_off_leave_type(session: AsyncSession, org_id: uuid.UUID) -> uuid.UUID:
    """Create the org's COMP_OFF leave type and policy unless they already exist.

    Both inserts are guarded by unique constraints, so concurrent first grants
    in one org converge on a single leave type.
    """
    now = datetime.now(UTC)
    await insert_ignore(
        session,
        LeaveType,
        {
            "id": uuid.uuid4(),
            "org_id": org_id,
            "code": COMP_OFF_CODE,
            "name": "Comp Off",
            "description": "Compensatory time off earned for working on a non-working day",
            "paid": True,
            "requires_approval": True,
            "created_at": now,
        },
        ["org_id", "code"],
    )
    leave_type_id = await find_comp_off_leave_type_id(session, org_id)
    if leave_type_id is None:
        msg = f"COMP_OFF leave type missing after ensure for org {org_id}"
        raise RuntimeError(msg)

    await insert_ignore(
        session,
        LeavePolicy,
        {
            "id": uuid.uuid4(),
            "org_id": org_id,
            "leave_type_id": leave_type_id,
            "accrual_rule": {"type": "manual", "source": "comp_off"},
            "carry_forward_rule": {"enabled": False, "expires_after_days": COMP_OFF_EXPIRY_DAYS},
            "created_at": now,
        },
        ["org_id", "leave_type_id"],
    )
    return leave_type_id


# ---------------------------------------------------------------------------
# Expiry
# ---------------------------------------------------------------------------


async def expire_stale_credits(
    session: AsyncSession,
    org_id: uuid.UUID,
    user_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    as_of: datetime,
) -> int:
    """Expire every granted credit with ``expires_at < as_of``, clawing back what is still available.

    Runs inside the caller's transaction. A missing ledger row makes this a
    no-op; running it again once nothing is stale changes nothing.
    """
    if await find_snapshot(session, user_id, leave_type_id) is None:
        return 0

    result = await session.execute(
        select(CompOffCredit)
        .where(
            col(CompOffCredit.org_id) == org_id,
            col(CompOffCredit.user_id) == user_id,
            col(CompOffCredit.status) == CompOffStatus.GRANTED,
            col(CompOffCredit.expires_at) < as_of,
        )
        .order_by(col(CompOffCredit.expires_at))
        .with_for_update()
    )
    stale = list(result.scalars().all())

    for credit in stale:
        row = await fetch_snapshot(session, user_id, leave_type_id)
        clawback = min(row.balance_hours, credit.credited_hours)
        await apply_delta(session, row, BalanceDelta(balance=-clawback))

        before_dict = model_to_audit_dict(credit)
        credit.status = CompOffStatus.EXPIRED
        credit.updated_at = datetime.now(UTC)
        await write_audit_log(
            session,
            credit,
            AuditAction.EXPIRE,
            org_id=org_id,
            actor_id=SYSTEM_ACTOR,
            before_json=before_dict,
        )
        logger.info("Comp-off credit %s expired for user %s (clawback %s hours)", credit.id, user_id, clawback)

    if stale:
        await session.flush()
    return len(stale)


async def expire_for_user_if_needed(
    session: AsyncSession,
    org_id: uuid.UUID,
    user_id: uuid.UUID,
    as_of: datetime | None = None,
) -> int:
    """Run the expiry sweep for the user's COMP_OFF row, if the org has one."""
    leave_type_id = await find_comp_off_leave_type_id(session, org_id)
    if leave_type_id is None:
        return 0
    return await expire_stale_credits(session, org_id, user_id, leave_type_id, as_of or datetime.now(UTC))


async def find_users_with_stale_credits(session: AsyncSession, as_of: datetime) -> list[tuple[uuid.UUID, uuid.UUID]]:
    """(org_id, user_id) pairs holding at least one granted credit past its expiry."""
    result = await session.execute(
        select(col(CompOffCredit.org_id), col(CompOffCredit.user_id))
        .where(
            col(CompOffCredit.status) == CompOffStatus.GRANTED,
            col(CompOffCredit.expires_at) < as_of,
        )
        .distinct()
    )
    return [(row[0], row[1]) for row in result.all()]


async def run_expiry_sweep(session: AsyncSession, as_of: datetime | None = None) -> ExpirySweepResult:
    """Expire stale credits across all orgs, one transaction per user.

    A failure for one user is logged and counted; the rest still run.
    """
    if as_of is None:
        as_of = datetime.now(UTC)

    result = ExpirySweepResult(as_of=as_of)
    users = await find_users_with_stale_credits(session, as_of)
    await session.rollback()

    for org_id, user_id in users:
        try:
            async with unit_of_work(session):
                expired = await expire_for_user_if_needed(session, org_id, user_id, as_of)
        except Exception:
            logger.exception("Comp-off expiry failed for org=%s user=%s", org_id, user_id)
            result.errors += 1
            continue
        result.users_processed += 1
        result.credits_expired += expired

    return result


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def grant_comp_off(
    session: AsyncSession,
    auth: AuthContext,
    payload: GrantCompOffPayload,
    now: datetime | None = None,
) -> CompOffGrantResponse:
    """Credit comp-off hours for work done on a non-working day.

    Flow:
    1. Reject a work date in the future
    2. Resolve the target user and check the actor may grant for them
    3. Require the work date to be a non-working day
    4. Require a timesheet covering the credited hours
    5. Ensure the COMP_OFF type, policy and ledger row; lock the row
    6. Cap credits for the work date at one full day
    7. Expire stale credits, then credit the balance
    8. Insert the credit, audit log, commit
    """
    if now is None:
        now = datetime.now(UTC)
    today = now.date()

    if payload.work_date > today:
        raise BadRequestError("Comp-off cannot be granted for a future date")

    subject = await _get_org_user_or_404(auth, payload.user_id)
    if not can_manage_comp_off(auth, subject):
        logger.warning("User %s attempted to grant comp-off to %s without authority", auth.user_id, subject.id)
        raise ForbiddenError("Only the user's manager or an admin can grant comp-off")

    credit_hours = CREDIT_HOURS[payload.duration]
    calendar = get_calendar_oracle()
    timesheets = get_timesheet_ledger()

    async with unit_of_work(session):
        if await calendar.is_working_day(session, auth.org_id, payload.work_date):
            raise BadRequestError("Comp-off can only be granted for work on a non-working day")

        entry = await timesheets.find_entry(auth.org_id, subject.id, payload.work_date)
        if entry is None:
            raise BadRequestError("No timesheet found for the user on the selected work date")
        if entry.total_hours < credit_hours:
            raise BadRequestError(
                f"Timesheet records {entry.total_hours} hours; {credit_hours} are required for a "
                f"{payload.duration.value} comp-off"
            )

        leave_type_id = await ensure_comp_off_leave_type(session, auth.org_id)
        await ensure_balance_row(session, subject.id, leave_type_id, today)
        # Lock before summing so concurrent grants for the same user see each other's credits.
        await fetch_snapshot(session, subject.id, leave_type_id)

        already_granted = await _granted_hours_for_day(session, subject.id, payload.work_date)
        if already_granted + credit_hours > DAILY_CREDIT_CAP_HOURS:
            raise ConflictError(
                f"Comp-off for {payload.work_date.isoformat()} would exceed {DAILY_CREDIT_CAP_HOURS} hours "
                f"({already_granted} already granted)"
            )

        await expire_stale_credits(session, auth.org_id, subject.id, leave_type_id, now)
        figures = await adjust_balance(session, subject.id, leave_type_id, BalanceDelta(balance=credit_hours))

        credit = CompOffCredit(
            org_id=auth.org_id,
            user_id=subject.id,
            manager_id=subject.manager_id or auth.user_id,
            created_by=auth.user_id,
            timesheet_id=entry.id,
            work_date=payload.work_date,
            duration_type=payload.duration.value,
            credited_hours=credit_hours,
            timesheet_hours=entry.total_hours,
            expires_at=credit_expiry(payload.work_date),
            notes=payload.notes,
        )
        session.add(credit)
        await session.flush()

        await write_audit_log(
            session,
            credit,
            AuditAction.GRANT,
            org_id=auth.org_id,
            actor_id=auth.user_id,
        )

    logger.info(
        "Comp-off %s granted to %s for %s: %s hours by %s",
        credit.id,
        subject.id,
        payload.work_date,
        credit_hours,
        auth.user_id,
    )
    return CompOffGrantResponse(
        credit=_build_credit_response(credit),
        balance=_build_snapshot_response(leave_type_id, figures),
    )


async def revoke_comp_off(
    session: AsyncSession,
    auth: AuthContext,
    credit_id: uuid.UUID,
    payload: RevokeCompOffPayload | None = None,
) -> CompOffRevokeResponse:
    """Revoke a granted credit, clawing back at most the hours still available."""
    reason = payload.reason if payload else None

    async with unit_of_work(session):
        result = await session.execute(
            select(CompOffCredit)
            .where(
                col(CompOffCredit.id) == credit_id,
                col(CompOffCredit.org_id) == auth.org_id,
            )
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        credit = result.scalar_one_or_none()
        if credit is None:
            raise NotFoundError("Comp-off credit not found")
        if credit.status != CompOffStatus.GRANTED:
            raise BadRequestError(f"Only granted comp-off credits can be revoked (current status: {credit.status})")

        subject = await get_user_directory().get_user(credit.user_id)
        if not can_manage_comp_off(auth, subject):
            logger.warning("User %s attempted to revoke comp-off %s without authority", auth.user_id, credit_id)
            raise ForbiddenError("Only the user's manager or an admin can revoke comp-off")

        leave_type_id = await find_comp_off_leave_type_id(session, auth.org_id)
        if leave_type_id is None:
            raise NotFoundError("Comp-off leave type not found for this organisation")

        row = await fetch_snapshot(session, credit.user_id, leave_type_id)
        clawback = min(row.balance_hours, credit.credited_hours)
        figures = await apply_delta(session, row, BalanceDelta(balance=-clawback))

        before_dict = model_to_audit_dict(credit)
        credit.status = CompOffStatus.REVOKED
        credit.notes = append_revocation_note(credit.notes, reason)
        credit.updated_at = datetime.now(UTC)
        await session.flush()

        await write_audit_log(
            session,
            credit,
            AuditAction.REVOKE,
            org_id=auth.org_id,
            actor_id=auth.user_id,
            before_json=before_dict,
            note=reason,
        )

    logger.info("Comp-off %s revoked by %s (clawback %s hours)", credit.id, auth.user_id, clawback)
    return CompOffRevokeResponse(
        credit_id=credit.id,
        status=CompOffStatus.REVOKED,
        balance=_build_snapshot_response(leave_type_id, figures),
    )


async def list_comp_off_credits(
    session: AsyncSession,
    auth: AuthContext,
    user_id: uuid.UUID | None = None,
    status: CompOffStatus | None = None,
    now: datetime | None = None,
) -> CompOffListResponse:
    """List a user's credits (the caller's own by default) after expiring stale ones."""
    subject = await _get_org_user_or_404(auth, user_id or auth.user_id)
    if not can_view_comp_off(auth, subject):
        raise ForbiddenError("You are not allowed to view comp-off credits for this user")

    async with unit_of_work(session):
        await expire_for_user_if_needed(session, auth.org_id, subject.id, now)

        filters = [
            col(CompOffCredit.org_id) == auth.org_id,
            col(CompOffCredit.user_id) == subject.id,
        ]
        if status is not None:
            filters.append(col(CompOffCredit.status) == status.value)

        result = await session.execute(
            select(CompOffCredit).where(*filters).order_by(col(CompOffCredit.work_date).desc())
        )
        credits = list(result.scalars().all())

    return CompOffListResponse(
        user=CompOffUserBrief(id=subject.id, name=subject.name, manager_id=subject.manager_id),
        items=[_build_credit_response(c) for c in credits],
        total=len(credits),
    )
