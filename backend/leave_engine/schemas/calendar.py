# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date

from pydantic import BaseModel, Field


class CreateCalendarDayRequest(BaseModel):
    """Request body for an explicit working/non-working day override."""

    date: date
    name: str = Field(min_length=1, max_length=255)
    is_working_day: bool = False


class CalendarDayResponse(BaseModel):
    """Response schema for a calendar override."""

    id: uuid.UUID
    org_id: uuid.UUID
    date: date
    name: str
    is_working_day: bool


class CalendarDayListResponse(BaseModel):
    """Paginated list of calendar overrides."""

    items: list[CalendarDayResponse]
    total: int
