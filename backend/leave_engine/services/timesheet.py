# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal
from typing import Protocol, runtime_checkable

from pydantic import BaseModel


class TimesheetEntry(BaseModel):
    """Hours a user recorded for one day, as reported by the Timesheet Ledger."""

    id: uuid.UUID
    org_id: uuid.UUID
    user_id: uuid.UUID
    work_date: date
    total_hours: Decimal


@runtime_checkable
class TimesheetLedger(Protocol):
    """Read-only interface to the Timesheet Ledger."""

    async def find_entry(self, org_id: uuid.UUID, user_id: uuid.UUID, work_date: date) -> TimesheetEntry | None:
        """Return the user's timesheet for the date, or None."""
        ...

    async def has_entries(self, org_id: uuid.UUID, user_id: uuid.UUID, start: date, end: date) -> bool:
        """Whether any timesheet exists for the user within [start, end]."""
        ...


class InMemoryTimesheetLedger:
    """In-memory stub implementation for development."""

    def __init__(self) -> None:
        self._entries: dict[tuple[uuid.UUID, uuid.UUID, date], TimesheetEntry] = {}

    def seed(self, entry: TimesheetEntry) -> None:
        """Seed a timesheet entry for testing."""
        self._entries[(entry.org_id, entry.user_id, entry.work_date)] = entry

    async def find_entry(self, org_id: uuid.UUID, user_id: uuid.UUID, work_date: date) -> TimesheetEntry | None:
        return self._entries.get((org_id, user_id, work_date))

    async def has_entries(self, org_id: uuid.UUID, user_id: uuid.UUID, start: date, end: date) -> bool:
        return any(
            key_org == org_id and key_user == user_id and start <= key_date <= end
            for key_org, key_user, key_date in self._entries
        )


_timesheet_ledger: TimesheetLedger = InMemoryTimesheetLedger()


def get_timesheet_ledger() -> TimesheetLedger:
    """FastAPI dependency for the Timesheet Ledger."""
    return _timesheet_ledger


def set_timesheet_ledger(ledger: TimesheetLedger) -> None:
    """Override the ledger (for testing or production wiring)."""
    global _timesheet_ledger
    _timesheet_ledger = ledger
