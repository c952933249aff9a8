"""Balance Ledger: the only code path that mutates ``leave_balance`` rows.

Every mutation follows the same read-then-write cycle inside the caller's
transaction:

1. Re-fetch the row with ``SELECT ... FOR UPDATE`` (never reuse a snapshot
   read earlier in the operation).
2. Compute the new figures in memory, rounding each field to 2 decimals and
   snapping sub-tolerance values to zero.
3. Refuse the write if any field would drop below zero.
4. Write the figures back and flush.
"""

# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from leave_engine.db import insert_ignore
from leave_engine.exceptions import InvariantViolationError, NotFoundError
from leave_engine.models.balance import LeaveBalance

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

HOURS_TOLERANCE = Decimal("0.000001")
_ZERO = Decimal("0.00")
_CENT = Decimal("0.01")


@dataclass(frozen=True)
class BalanceDelta:
    """Signed change to each bucket of a ledger row."""

    balance: Decimal = _ZERO
    pending: Decimal = _ZERO
    booked: Decimal = _ZERO


@dataclass(frozen=True)
class BalanceFigures:
    """The three buckets of a ledger row."""

    balance_hours: Decimal
    pending_hours: Decimal
    booked_hours: Decimal

    @classmethod
    def of(cls, row: LeaveBalance) -> BalanceFigures:
        return cls(
            balance_hours=Decimal(row.balance_hours),
            pending_hours=Decimal(row.pending_hours),
            booked_hours=Decimal(row.booked_hours),
        )

    @property
    def total_hours(self) -> Decimal:
        return self.balance_hours + self.pending_hours + self.booked_hours


def normalize_hours(value: Decimal) -> Decimal:
    """Round to 2 decimals; values within tolerance of zero become exactly zero."""
    rounded = Decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)
    if abs(rounded) < HOURS_TOLERANCE:
        return _ZERO
    return rounded


def _ensure_non_negative(value: Decimal, label: str) -> None:
    if value < -HOURS_TOLERANCE:
        msg = f"Leave {label} hours cannot be negative after the requested operation"
        raise InvariantViolationError(msg)


def compute_next(current: BalanceFigures, delta: BalanceDelta) -> BalanceFigures:
    """Apply ``delta`` in memory. Raises InvariantViolationError instead of going negative."""
    balance_hours = normalize_hours(current.balance_hours + delta.balance)
    pending_hours = normalize_hours(current.pending_hours + delta.pending)
    booked_hours = normalize_hours(current.booked_hours + delta.booked)

    _ensure_non_negative(balance_hours, "balance")
    _ensure_non_negative(pending_hours, "pending")
    _ensure_non_negative(booked_hours, "booked")

    return BalanceFigures(
        balance_hours=balance_hours,
        pending_hours=pending_hours,
        booked_hours=booked_hours,
    )


async def find_snapshot(
    session: AsyncSession,
    user_id: uuid.UUID,
    leave_type_id: uuid.UUID,
) -> LeaveBalance | None:
    """Read the ledger row with a FOR UPDATE lock, bypassing the identity map."""
    result = await session.execute(
        select(LeaveBalance)
        .where(
            col(LeaveBalance.user_id) == user_id,
            col(LeaveBalance.leave_type_id) == leave_type_id,
        )
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def fetch_snapshot(
    session: AsyncSession,
    user_id: uuid.UUID,
    leave_type_id: uuid.UUID,
) -> LeaveBalance:
    """Like :func:`find_snapshot` but a missing row is an error."""
    row = await find_snapshot(session, user_id, leave_type_id)
    if row is None:
        raise NotFoundError("Leave balance not found for user and leave type")
    return row


async def apply_delta(
    session: AsyncSession,
    row: LeaveBalance,
    delta: BalanceDelta,
) -> BalanceFigures:
    """Write ``delta`` to a row the caller has just locked."""
    try:
        next_figures = compute_next(BalanceFigures.of(row), delta)
    except InvariantViolationError:
        logger.warning(
            "Ledger invariant violation for user %s leave type %s: delta=%s",
            row.user_id,
            row.leave_type_id,
            delta,
        )
        raise

    row.balance_hours = next_figures.balance_hours
    row.pending_hours = next_figures.pending_hours
    row.booked_hours = next_figures.booked_hours
    row.updated_at = datetime.now(UTC)
    await session.flush()
    return next_figures


async def adjust_balance(
    session: AsyncSession,
    user_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    delta: BalanceDelta,
) -> BalanceFigures:
    """Fetch the row fresh under lock, then apply ``delta``."""
    row = await fetch_snapshot(session, user_id, leave_type_id)
    return await apply_delta(session, row, delta)


async def ensure_balance_row(
    session: AsyncSession,
    user_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    as_of: date,
) -> None:
    """Create a zeroed ledger row unless one already exists."""
    await insert_ignore(
        session,
        LeaveBalance,
        {
            "id": uuid.uuid4(),
            "user_id": user_id,
            "leave_type_id": leave_type_id,
            "balance_hours": _ZERO,
            "pending_hours": _ZERO,
            "booked_hours": _ZERO,
            "as_of_date": as_of,
        },
        ["user_id", "leave_type_id"],
    )
