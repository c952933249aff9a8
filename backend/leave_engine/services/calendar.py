"""Calendar Oracle: working-day determination per org.

The default oracle treats Sundays, the 2nd and 4th Saturday of each month and
the configured fixed holidays as non-working days. An explicit
``OrgCalendarDay`` row for a date always wins over those rules.
"""

# ruff: noqa: TC003
from __future__ import annotations

import logging
import math
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from pydantic import BaseModel
from sqlalchemy import extract, func, select
from sqlalchemy.exc import IntegrityError
from sqlmodel import col

from leave_engine.config import get_settings
from leave_engine.db import unit_of_work
from leave_engine.exceptions import ConflictError, NotFoundError
from leave_engine.models.calendar import OrgCalendarDay
from leave_engine.models.enums import AuditAction
from leave_engine.schemas.calendar import CalendarDayListResponse, CalendarDayResponse
from leave_engine.services.audit import model_to_audit_dict, write_audit_log

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_engine.schemas.auth import AuthContext
    from leave_engine.schemas.calendar import CreateCalendarDayRequest

logger = logging.getLogger(__name__)

HOURS_PER_WORKING_DAY = Decimal(8)
HALF_DAY_HOURS = HOURS_PER_WORKING_DAY / 2

_SATURDAY = 5
_SUNDAY = 6
_OFF_SATURDAY_OCCURRENCES = frozenset({2, 4})


class DayOverride(BaseModel):
    """Explicit calendar entry for a date."""

    is_working_day: bool


class DayInfo(BaseModel):
    """What the calendar says about a single date."""

    date: date
    is_working_day: bool
    is_weekend: bool
    is_holiday: bool


@dataclass(frozen=True)
class RangeInfo:
    """Per-day calendar answers for an inclusive date range."""

    days: list[DayInfo]

    @property
    def working_days(self) -> int:
        return sum(1 for day in self.days if day.is_working_day)

    @property
    def total_hours(self) -> Decimal:
        return self.working_days * HOURS_PER_WORKING_DAY

    @property
    def non_working_dates(self) -> list[date]:
        return [day.date for day in self.days if not day.is_working_day]


@runtime_checkable
class CalendarOracle(Protocol):
    """Interface for working-day determination."""

    async def is_working_day(self, session: AsyncSession, org_id: uuid.UUID, day: date) -> bool: ...

    async def get_holiday_map(
        self, session: AsyncSession, org_id: uuid.UUID, start: date, end: date
    ) -> dict[date, DayOverride]: ...

    async def get_day_info(self, session: AsyncSession, org_id: uuid.UUID, day: date) -> DayInfo: ...

    async def get_range_info(self, session: AsyncSession, org_id: uuid.UUID, start: date, end: date) -> RangeInfo: ...


def is_off_saturday(day: date) -> bool:
    """Whether ``day`` is the 2nd or 4th Saturday of its month."""
    return day.weekday() == _SATURDAY and math.ceil(day.day / 7) in _OFF_SATURDAY_OCCURRENCES


def iter_dates(start: date, end: date) -> Iterable[date]:
    """Yield every date in the inclusive range."""
    current = start
    one_day = timedelta(days=1)
    while current <= end:
        yield current
        current += one_day


class OrgCalendarOracle:
    """Default oracle backed by the ``org_calendar_day`` override table."""

    def __init__(self, fixed_holidays: Iterable[str] | None = None) -> None:
        self._fixed_holidays = frozenset(fixed_holidays) if fixed_holidays is not None else None

    @property
    def fixed_holidays(self) -> frozenset[str]:
        if self._fixed_holidays is None:
            return frozenset(get_settings().fixed_holidays)
        return self._fixed_holidays

    def describe(self, day: date, override: DayOverride | None) -> DayInfo:
        """Apply the default weekly rules, then the explicit override if any."""
        is_weekend = day.weekday() == _SUNDAY or is_off_saturday(day)
        is_fixed_holiday = day.strftime("%m-%d") in self.fixed_holidays

        if override is not None:
            return DayInfo(
                date=day,
                is_working_day=override.is_working_day,
                is_weekend=is_weekend,
                is_holiday=not override.is_working_day,
            )

        return DayInfo(
            date=day,
            is_working_day=not (is_weekend or is_fixed_holiday),
            is_weekend=is_weekend,
            is_holiday=is_fixed_holiday,
        )

    async def get_holiday_map(
        self, session: AsyncSession, org_id: uuid.UUID, start: date, end: date
    ) -> dict[date, DayOverride]:
        """Fetch explicit overrides in the given date range."""
        result = await session.execute(
            select(col(OrgCalendarDay.date), col(OrgCalendarDay.is_working_day)).where(
                col(OrgCalendarDay.org_id) == org_id,
                col(OrgCalendarDay.date) >= start,
                col(OrgCalendarDay.date) <= end,
            )
        )
        return {row[0]: DayOverride(is_working_day=bool(row[1])) for row in result.all()}

    async def get_day_info(self, session: AsyncSession, org_id: uuid.UUID, day: date) -> DayInfo:
        overrides = await self.get_holiday_map(session, org_id, day, day)
        return self.describe(day, overrides.get(day))

    async def is_working_day(self, session: AsyncSession, org_id: uuid.UUID, day: date) -> bool:
        info = await self.get_day_info(session, org_id, day)
        return info.is_working_day

    async def get_range_info(self, session: AsyncSession, org_id: uuid.UUID, start: date, end: date) -> RangeInfo:
        overrides = await self.get_holiday_map(session, org_id, start, end)
        return RangeInfo(days=[self.describe(day, overrides.get(day)) for day in iter_dates(start, end)])


_calendar_oracle: CalendarOracle = OrgCalendarOracle()


def get_calendar_oracle() -> CalendarOracle:
    """FastAPI dependency for the Calendar Oracle."""
    return _calendar_oracle


def set_calendar_oracle(oracle: CalendarOracle) -> None:
    """Override the oracle (for testing or production wiring)."""
    global _calendar_oracle
    _calendar_oracle = oracle


# ---------------------------------------------------------------------------
# Override administration
# ---------------------------------------------------------------------------


def _build_calendar_day_response(day: OrgCalendarDay) -> CalendarDayResponse:
    return CalendarDayResponse(
        id=day.id,
        org_id=day.org_id,
        date=day.date,
        name=day.name,
        is_working_day=day.is_working_day,
    )


async def create_calendar_day(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateCalendarDayRequest,
) -> CalendarDayResponse:
    """Create an explicit working/non-working override for a date."""
    async with unit_of_work(session):
        calendar_day = OrgCalendarDay(
            org_id=auth.org_id,
            date=payload.date,
            name=payload.name,
            is_working_day=payload.is_working_day,
        )
        session.add(calendar_day)

        try:
            await session.flush()
        except IntegrityError:
            raise ConflictError("Calendar override already exists for this date") from None

        await write_audit_log(
            session,
            calendar_day,
            AuditAction.CREATE,
            org_id=auth.org_id,
            actor_id=auth.user_id,
        )

    logger.info("Calendar override %s set for org %s on %s", calendar_day.id, auth.org_id, calendar_day.date)
    return _build_calendar_day_response(calendar_day)


async def list_calendar_days(
    session: AsyncSession,
    org_id: uuid.UUID,
    year: int | None = None,
    offset: int = 0,
    limit: int = 50,
) -> CalendarDayListResponse:
    """List calendar overrides with optional year filter."""
    base_filter = [col(OrgCalendarDay.org_id) == org_id]

    if year is not None:
        base_filter.append(extract("year", col(OrgCalendarDay.date)) == year)

    count_result = await session.execute(select(func.count()).select_from(OrgCalendarDay).where(*base_filter))
    total = count_result.scalar_one()

    result = await session.execute(
        select(OrgCalendarDay).where(*base_filter).order_by(col(OrgCalendarDay.date)).offset(offset).limit(limit)
    )
    days = list(result.scalars().all())

    return CalendarDayListResponse(
        items=[_build_calendar_day_response(d) for d in days],
        total=total,
    )


async def delete_calendar_day(
    session: AsyncSession,
    auth: AuthContext,
    calendar_day_id: uuid.UUID,
) -> None:
    """Delete a calendar override."""
    async with unit_of_work(session):
        result = await session.execute(
            select(OrgCalendarDay).where(
                col(OrgCalendarDay.id) == calendar_day_id,
                col(OrgCalendarDay.org_id) == auth.org_id,
            )
        )
        calendar_day = result.scalar_one_or_none()
        if calendar_day is None:
            raise NotFoundError("Calendar override not found")

        await write_audit_log(
            session,
            calendar_day,
            AuditAction.DELETE,
            org_id=auth.org_id,
            actor_id=auth.user_id,
            before_json=model_to_audit_dict(calendar_day),
        )

        await session.delete(calendar_day)
