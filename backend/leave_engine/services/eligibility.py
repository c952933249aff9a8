"""Overlap checks between a requested range and the requester's active leave."""

# ruff: noqa: TC003
from __future__ import annotations

import uuid
from collections.abc import Iterable
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from leave_engine.exceptions import ConflictError
from leave_engine.models.enums import RequestState
from leave_engine.models.request import LeaveRequest

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

ACTIVE_STATES = frozenset({RequestState.PENDING, RequestState.APPROVED})


def ranges_overlap(start_a: date, end_a: date, start_b: date, end_b: date) -> bool:
    """Inclusive interval intersection."""
    return start_a <= end_b and start_b <= end_a


def find_overlapping(existing: Iterable[LeaveRequest], start: date, end: date) -> LeaveRequest | None:
    """First pending/approved request in ``existing`` that intersects ``[start, end]``."""
    for request in existing:
        if RequestState(request.state) not in ACTIVE_STATES:
            continue
        if ranges_overlap(request.start_date, request.end_date, start, end):
            return request
    return None


async def assert_no_overlap(
    session: AsyncSession,
    user_id: uuid.UUID,
    start: date,
    end: date,
) -> None:
    """Raise 409 if the user already has active leave touching ``[start, end]``."""
    result = await session.execute(
        select(LeaveRequest).where(
            col(LeaveRequest.user_id) == user_id,
            col(LeaveRequest.state).in_([s.value for s in ACTIVE_STATES]),
            col(LeaveRequest.end_date) >= start,
        )
    )
    if find_overlapping(result.scalars().all(), start, end) is not None:
        raise ConflictError("Overlapping leave request exists for the selected period")
