"""Tests for comp-off credits: grant validation, the daily cap, revoke clawback and expiry sweeps."""

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import func, select
from sqlmodel import col

from conftest import ADMIN_ID, EMPLOYEE_ID, MANAGER_ID, ORG_ID, OTHER_ORG_ID, OUTSIDER_ID, PEER_ID, make_auth
from leave_engine.db import unit_of_work
from leave_engine.exceptions import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from leave_engine.models.audit import AuditLog
from leave_engine.models.calendar import OrgCalendarDay
from leave_engine.models.comp_off import CompOffCredit
from leave_engine.models.enums import CompOffDuration, CompOffStatus
from leave_engine.models.leave_type import LeavePolicy, LeaveType
from leave_engine.schemas.comp_off import GrantCompOffPayload, RevokeCompOffPayload
from leave_engine.schemas.leave import CreateLeaveRequestPayload
from leave_engine.services.balance import list_balances
from leave_engine.services.comp_off import (
    COMP_OFF_CODE,
    append_revocation_note,
    credit_expiry,
    ensure_comp_off_leave_type,
    expire_stale_credits,
    grant_comp_off,
    list_comp_off_credits,
    revoke_comp_off,
    run_expiry_sweep,
)
from leave_engine.services.directory import UserInfo
from leave_engine.services.leave_request import create_leave_request
from leave_engine.services.ledger import fetch_snapshot
from leave_engine.services.timesheet import TimesheetEntry

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_engine.services.directory import InMemoryUserDirectory
    from leave_engine.services.timesheet import InMemoryTimesheetLedger

MANAGER = make_auth(MANAGER_ID)
ADMIN = make_auth(ADMIN_ID, "admin")
EMPLOYEE = make_auth(EMPLOYEE_ID)

SUNDAY = date(2025, 3, 16)
EARLIER_SUNDAY = date(2025, 3, 9)
OFFSITE_SATURDAY = date(2025, 3, 15)  # 3rd Saturday: a working day unless overridden
MONDAY = date(2025, 3, 17)
NOW = datetime(2025, 3, 17, 9, 0, tzinfo=UTC)


def _grant(work_date: date = SUNDAY, duration: str = "full_day", **kwargs: object) -> GrantCompOffPayload:
    return GrantCompOffPayload(user_id=EMPLOYEE_ID, work_date=work_date, duration=CompOffDuration(duration), **kwargs)


@pytest.fixture
def worked(timesheets: InMemoryTimesheetLedger) -> None:
    """Nine-hour timesheets for the employee and peer on every non-working day used below."""
    for user_id in (EMPLOYEE_ID, PEER_ID):
        for day in (SUNDAY, EARLIER_SUNDAY, OFFSITE_SATURDAY, date(2025, 3, 2), date(2025, 4, 6)):
            entry = TimesheetEntry(
                id=uuid.uuid4(), org_id=ORG_ID, user_id=user_id, work_date=day, total_hours=Decimal("9")
            )
            timesheets.seed(entry)


async def _comp_off_figures(session: AsyncSession, user_id: uuid.UUID = EMPLOYEE_ID) -> tuple[Decimal, ...]:
    leave_type_id = (
        await session.execute(select(col(LeaveType.id)).where(col(LeaveType.code) == COMP_OFF_CODE))
    ).scalar_one()
    row = await fetch_snapshot(session, user_id, leave_type_id)
    return row.balance_hours, row.pending_hours, row.booked_hours


async def _status(session: AsyncSession, credit_id: uuid.UUID) -> str:
    result = await session.execute(select(col(CompOffCredit.status)).where(col(CompOffCredit.id) == credit_id))
    return result.scalar_one()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def test_credit_expiry_is_thirty_days_after_work_date() -> None:
    assert credit_expiry(SUNDAY) == datetime(2025, 4, 15, tzinfo=UTC)


def test_append_revocation_note() -> None:
    assert append_revocation_note(None, None) is None
    assert append_revocation_note(None, "Mistake") == "Revoked: Mistake"
    assert append_revocation_note("Release weekend", "Mistake") == "Release weekend | Revoked: Mistake"


# ---------------------------------------------------------------------------
# Grant
# ---------------------------------------------------------------------------


async def test_grant_credits_balance_and_creates_comp_off_type(db_session: AsyncSession, worked: None) -> None:
    result = await grant_comp_off(db_session, MANAGER, _grant(notes="Release weekend"), now=NOW)

    assert result.credit.status == CompOffStatus.GRANTED
    assert result.credit.credited_hours == Decimal("8")
    assert result.credit.timesheet_hours == Decimal("9")
    assert result.credit.expires_at == datetime(2025, 4, 15, tzinfo=UTC)
    assert result.balance.balance_hours == Decimal("8")
    assert await _comp_off_figures(db_session) == (Decimal("8"), Decimal("0"), Decimal("0"))

    leave_type = (await db_session.execute(select(LeaveType).where(col(LeaveType.code) == COMP_OFF_CODE))).scalar_one()
    assert leave_type.paid
    assert leave_type.requires_approval
    policies = await db_session.execute(select(func.count()).select_from(LeavePolicy))
    assert policies.scalar_one() == 1

    entry = (await db_session.execute(select(AuditLog).where(col(AuditLog.entity_id) == result.credit.id))).scalar_one()
    assert entry.action == "GRANT"
    assert entry.entity_type == "COMP_OFF_CREDIT"
    assert entry.subject_user_id == EMPLOYEE_ID


async def test_daily_cap_scenario(db_session: AsyncSession, worked: None) -> None:
    db_session.add(OrgCalendarDay(org_id=ORG_ID, date=OFFSITE_SATURDAY, name="Offsite"))
    await db_session.commit()

    await grant_comp_off(db_session, MANAGER, _grant(OFFSITE_SATURDAY, "half_day"), now=NOW)
    second = await grant_comp_off(db_session, MANAGER, _grant(OFFSITE_SATURDAY, "half_day"), now=NOW)
    assert second.balance.balance_hours == Decimal("8")

    with pytest.raises(ConflictError, match="would exceed"):
        await grant_comp_off(db_session, MANAGER, _grant(OFFSITE_SATURDAY, "half_day"), now=NOW)
    assert await _comp_off_figures(db_session) == (Decimal("8"), Decimal("0"), Decimal("0"))


async def test_revoked_credit_frees_the_daily_cap(db_session: AsyncSession, worked: None) -> None:
    granted = await grant_comp_off(db_session, MANAGER, _grant(), now=NOW)
    await revoke_comp_off(db_session, MANAGER, granted.credit.id)

    again = await grant_comp_off(db_session, MANAGER, _grant(), now=NOW)
    assert again.balance.balance_hours == Decimal("8")


async def test_ensure_comp_off_type_is_idempotent(db_session: AsyncSession) -> None:
    async with unit_of_work(db_session):
        first = await ensure_comp_off_leave_type(db_session, ORG_ID)
    async with unit_of_work(db_session):
        second = await ensure_comp_off_leave_type(db_session, ORG_ID)
    assert first == second
    count = await db_session.execute(select(func.count()).select_from(LeaveType))
    assert count.scalar_one() == 1


async def test_grant_for_future_date(db_session: AsyncSession, worked: None) -> None:
    with pytest.raises(BadRequestError, match="future date"):
        await grant_comp_off(db_session, MANAGER, _grant(date(2025, 3, 23)), now=NOW)


async def test_grant_on_working_day(db_session: AsyncSession, worked: None) -> None:
    with pytest.raises(BadRequestError, match="non-working day"):
        await grant_comp_off(db_session, MANAGER, _grant(MONDAY), now=NOW)


async def test_grant_without_timesheet(db_session: AsyncSession) -> None:
    with pytest.raises(BadRequestError, match="No timesheet"):
        await grant_comp_off(db_session, MANAGER, _grant(), now=NOW)


async def test_grant_with_short_timesheet(db_session: AsyncSession, timesheets: InMemoryTimesheetLedger) -> None:
    timesheets.seed(
        TimesheetEntry(id=uuid.uuid4(), org_id=ORG_ID, user_id=EMPLOYEE_ID, work_date=SUNDAY, total_hours=Decimal("6"))
    )
    with pytest.raises(BadRequestError, match="are required for a full_day comp-off"):
        await grant_comp_off(db_session, MANAGER, _grant(), now=NOW)

    half = await grant_comp_off(db_session, MANAGER, _grant(duration="half_day"), now=NOW)
    assert half.credit.credited_hours == Decimal("4")


async def test_grant_to_unknown_or_foreign_user(db_session: AsyncSession, directory: InMemoryUserDirectory) -> None:
    foreign_id = uuid.uuid4()
    directory.seed(UserInfo(id=foreign_id, org_id=OTHER_ORG_ID, name="Far Away", email="far@example.com"))

    for user_id in (uuid.uuid4(), foreign_id):
        payload = GrantCompOffPayload(user_id=user_id, work_date=SUNDAY, duration=CompOffDuration.FULL_DAY)
        with pytest.raises(NotFoundError, match="User not found"):
            await grant_comp_off(db_session, ADMIN, payload, now=NOW)


@pytest.mark.parametrize("actor_id", [OUTSIDER_ID, PEER_ID, EMPLOYEE_ID])
async def test_only_manager_or_admin_grants(db_session: AsyncSession, worked: None, actor_id: uuid.UUID) -> None:
    with pytest.raises(ForbiddenError):
        await grant_comp_off(db_session, make_auth(actor_id), _grant(), now=NOW)


async def test_admin_can_grant(db_session: AsyncSession, worked: None) -> None:
    result = await grant_comp_off(db_session, ADMIN, _grant(), now=NOW)
    assert result.credit.status == CompOffStatus.GRANTED


async def test_grant_expires_stale_credits_first(db_session: AsyncSession, worked: None) -> None:
    await grant_comp_off(db_session, MANAGER, _grant(date(2025, 3, 2)), now=datetime(2025, 3, 3, tzinfo=UTC))

    later = datetime(2025, 4, 7, 9, 0, tzinfo=UTC)
    result = await grant_comp_off(db_session, MANAGER, _grant(date(2025, 4, 6)), now=later)

    assert result.balance.balance_hours == Decimal("8")
    expired = await db_session.execute(
        select(func.count()).select_from(CompOffCredit).where(col(CompOffCredit.status) == CompOffStatus.EXPIRED)
    )
    assert expired.scalar_one() == 1


# ---------------------------------------------------------------------------
# Revoke
# ---------------------------------------------------------------------------


async def test_grant_then_revoke_round_trip(db_session: AsyncSession, worked: None) -> None:
    await grant_comp_off(db_session, MANAGER, _grant(EARLIER_SUNDAY, "half_day"), now=NOW)
    before = await _comp_off_figures(db_session)

    granted = await grant_comp_off(db_session, MANAGER, _grant(notes="Release weekend"), now=NOW)
    result = await revoke_comp_off(db_session, MANAGER, granted.credit.id, RevokeCompOffPayload(reason="Mistake"))

    assert result.status == CompOffStatus.REVOKED
    assert await _comp_off_figures(db_session) == before
    assert result.balance.balance_hours == Decimal("4")

    notes = await db_session.execute(select(col(CompOffCredit.notes)).where(col(CompOffCredit.id) == granted.credit.id))
    assert notes.scalar_one() == "Release weekend | Revoked: Mistake"


async def test_revoke_claws_back_only_what_is_left(db_session: AsyncSession, worked: None) -> None:
    granted = await grant_comp_off(db_session, MANAGER, _grant(), now=NOW)
    comp_off_type_id = granted.balance.leave_type_id

    # Employee spends half of the credit on leave.
    spend = CreateLeaveRequestPayload(
        leave_type_id=comp_off_type_id, start_date=MONDAY, end_date=MONDAY, hours=Decimal("4")
    )
    await create_leave_request(db_session, EMPLOYEE, spend)
    assert await _comp_off_figures(db_session) == (Decimal("4"), Decimal("4"), Decimal("0"))

    result = await revoke_comp_off(db_session, MANAGER, granted.credit.id)

    assert result.balance.balance_hours == Decimal("0")
    assert await _comp_off_figures(db_session) == (Decimal("0"), Decimal("4"), Decimal("0"))


async def test_revoke_twice_is_bad_request(db_session: AsyncSession, worked: None) -> None:
    granted = await grant_comp_off(db_session, MANAGER, _grant(), now=NOW)
    await revoke_comp_off(db_session, MANAGER, granted.credit.id)
    with pytest.raises(BadRequestError, match="current status: revoked"):
        await revoke_comp_off(db_session, MANAGER, granted.credit.id)


async def test_revoke_unknown_credit(db_session: AsyncSession) -> None:
    with pytest.raises(NotFoundError):
        await revoke_comp_off(db_session, MANAGER, uuid.uuid4())


async def test_revoke_requires_manager_or_admin(db_session: AsyncSession, worked: None) -> None:
    granted = await grant_comp_off(db_session, MANAGER, _grant(), now=NOW)
    with pytest.raises(ForbiddenError):
        await revoke_comp_off(db_session, make_auth(OUTSIDER_ID), granted.credit.id)
    assert await _status(db_session, granted.credit.id) == "granted"


# ---------------------------------------------------------------------------
# Expiry
# ---------------------------------------------------------------------------


async def test_expiry_is_idempotent(db_session: AsyncSession, worked: None) -> None:
    granted = await grant_comp_off(db_session, MANAGER, _grant(), now=NOW)
    leave_type_id = granted.balance.leave_type_id
    as_of = datetime(2025, 4, 16, tzinfo=UTC)

    async with unit_of_work(db_session):
        first = await expire_stale_credits(db_session, ORG_ID, EMPLOYEE_ID, leave_type_id, as_of)
    async with unit_of_work(db_session):
        second = await expire_stale_credits(db_session, ORG_ID, EMPLOYEE_ID, leave_type_id, as_of)

    assert (first, second) == (1, 0)
    assert await _status(db_session, granted.credit.id) == "expired"
    assert await _comp_off_figures(db_session) == (Decimal("0"), Decimal("0"), Decimal("0"))


async def test_expiry_before_deadline_changes_nothing(db_session: AsyncSession, worked: None) -> None:
    granted = await grant_comp_off(db_session, MANAGER, _grant(), now=NOW)
    async with unit_of_work(db_session):
        expired = await expire_stale_credits(
            db_session, ORG_ID, EMPLOYEE_ID, granted.balance.leave_type_id, datetime(2025, 4, 14, tzinfo=UTC)
        )
    assert expired == 0
    assert await _comp_off_figures(db_session) == (Decimal("8"), Decimal("0"), Decimal("0"))


async def test_expiry_without_ledger_row_is_a_no_op(db_session: AsyncSession) -> None:
    async with unit_of_work(db_session):
        expired = await expire_stale_credits(db_session, ORG_ID, EMPLOYEE_ID, uuid.uuid4(), NOW)
    assert expired == 0


async def test_run_expiry_sweep_processes_each_user(db_session: AsyncSession, worked: None) -> None:
    await grant_comp_off(db_session, MANAGER, _grant(), now=NOW)
    await grant_comp_off(
        db_session, MANAGER, GrantCompOffPayload(user_id=PEER_ID, work_date=SUNDAY, duration="half_day"), now=NOW
    )

    as_of = datetime(2025, 5, 1, tzinfo=UTC)
    result = await run_expiry_sweep(db_session, as_of)
    assert (result.users_processed, result.credits_expired, result.errors) == (2, 2, 0)

    again = await run_expiry_sweep(db_session, as_of)
    assert (again.users_processed, again.credits_expired) == (0, 0)
    assert await _comp_off_figures(db_session, PEER_ID) == (Decimal("0"), Decimal("0"), Decimal("0"))


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------


async def test_list_credits_for_self_and_manager(db_session: AsyncSession, worked: None) -> None:
    await grant_comp_off(db_session, MANAGER, _grant(EARLIER_SUNDAY), now=NOW)
    revoked = await grant_comp_off(db_session, MANAGER, _grant(), now=NOW)
    await revoke_comp_off(db_session, MANAGER, revoked.credit.id)

    own = await list_comp_off_credits(db_session, EMPLOYEE, now=NOW)
    assert own.total == 2
    assert own.user.manager_id == MANAGER_ID
    assert [c.work_date for c in own.items] == [SUNDAY, EARLIER_SUNDAY]

    granted_only = await list_comp_off_credits(db_session, MANAGER, EMPLOYEE_ID, CompOffStatus.GRANTED, now=NOW)
    assert [c.work_date for c in granted_only.items] == [EARLIER_SUNDAY]


async def test_list_credits_permissions(db_session: AsyncSession, worked: None) -> None:
    await grant_comp_off(db_session, MANAGER, _grant(), now=NOW)

    with pytest.raises(ForbiddenError):
        await list_comp_off_credits(db_session, make_auth(PEER_ID), EMPLOYEE_ID, now=NOW)

    team_viewer = make_auth(PEER_ID, permissions=("leave:view:team",))
    result = await list_comp_off_credits(db_session, team_viewer, EMPLOYEE_ID, now=NOW)
    assert result.total == 1


async def test_listing_runs_the_expiry_sweep(db_session: AsyncSession, worked: None) -> None:
    await grant_comp_off(db_session, MANAGER, _grant(), now=NOW)
    later = datetime(2025, 5, 1, tzinfo=UTC)

    credits = await list_comp_off_credits(db_session, EMPLOYEE, status=CompOffStatus.EXPIRED, now=later)
    assert credits.total == 1

    balances = await list_balances(db_session, EMPLOYEE, now=later)
    assert [b.leave_type.code for b in balances.items] == [COMP_OFF_CODE]
    assert balances.items[0].balance_hours == Decimal("0")
