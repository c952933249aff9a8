# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query

from leave_engine.api.deps import AdminDep, AuthDep, validate_org_scope
from leave_engine.db import SessionDep
from leave_engine.schemas.calendar import CalendarDayListResponse, CalendarDayResponse, CreateCalendarDayRequest
from leave_engine.services import calendar as calendar_service

calendar_router = APIRouter(
    prefix="/orgs/{org_id}/calendar",
    tags=["calendar"],
    dependencies=[Depends(validate_org_scope)],
)


@calendar_router.post(
    "",
    response_model=CalendarDayResponse,
    status_code=201,
)
async def create_calendar_day(
    payload: CreateCalendarDayRequest,
    session: SessionDep,
    auth: AdminDep,
) -> CalendarDayResponse:
    """Declare a date a holiday or a working day for the org (admin only)."""
    return await calendar_service.create_calendar_day(session, auth, payload)


@calendar_router.get(
    "",
    response_model=CalendarDayListResponse,
)
async def list_calendar_days(
    session: SessionDep,
    auth: AuthDep,
    year: int | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> CalendarDayListResponse:
    """List calendar overrides with optional year filter."""
    return await calendar_service.list_calendar_days(session, auth.org_id, year, offset, limit)


@calendar_router.delete(
    "/{calendar_day_id}",
    status_code=204,
)
async def delete_calendar_day(
    calendar_day_id: uuid.UUID,
    session: SessionDep,
    auth: AdminDep,
) -> None:
    """Delete a calendar override (admin only)."""
    await calendar_service.delete_calendar_day(session, auth, calendar_day_id)
