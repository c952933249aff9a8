# ruff: noqa: TC003
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from leave_engine.db import unit_of_work
from leave_engine.models.balance import LeaveBalance
from leave_engine.models.leave_type import LeaveType
from leave_engine.schemas.leave import BalanceListResponse, BalanceResponse, LeaveTypeBrief
from leave_engine.services.comp_off import expire_for_user_if_needed

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_engine.schemas.auth import AuthContext


def _build_balance_response(row: LeaveBalance, leave_type: LeaveType) -> BalanceResponse:
    return BalanceResponse(
        id=row.id,
        leave_type_id=row.leave_type_id,
        balance_hours=row.balance_hours,
        pending_hours=row.pending_hours,
        booked_hours=row.booked_hours,
        as_of_date=row.as_of_date,
        leave_type=LeaveTypeBrief(id=leave_type.id, code=leave_type.code, name=leave_type.name),
    )


async def list_balances(
    session: AsyncSession,
    auth: AuthContext,
    now: datetime | None = None,
) -> BalanceListResponse:
    """The caller's ledger rows, after expiring stale comp-off credits.

    The expiry sweep is a no-op when the user has no COMP_OFF row yet.
    """
    target_user_id = auth.user_id

    async with unit_of_work(session):
        await expire_for_user_if_needed(session, auth.org_id, target_user_id, now)

        result = await session.execute(
            select(LeaveBalance, LeaveType)
            .join(LeaveType, col(LeaveType.id) == col(LeaveBalance.leave_type_id))
            .where(
                col(LeaveBalance.user_id) == target_user_id,
                col(LeaveType.org_id) == auth.org_id,
            )
            .order_by(col(LeaveType.code))
        )
        rows = list(result.all())

    return BalanceListResponse(
        user_id=target_user_id,
        items=[_build_balance_response(row, leave_type) for row, leave_type in rows],
        total=len(rows),
    )
