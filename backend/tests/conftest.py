from __future__ import annotations

import os
import uuid
from collections.abc import Awaitable, Callable
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from leave_engine.db import get_session
from leave_engine.main import app
from leave_engine.models import SQLModel
from leave_engine.models.balance import LeaveBalance
from leave_engine.models.leave_type import LeavePolicy, LeaveType
from leave_engine.schemas.auth import AuthContext
from leave_engine.services.calendar import OrgCalendarOracle, set_calendar_oracle
from leave_engine.services.directory import InMemoryUserDirectory, UserInfo, set_user_directory
from leave_engine.services.timesheet import InMemoryTimesheetLedger, set_timesheet_ledger

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

    from sqlalchemy.ext.asyncio import AsyncEngine

TEST_DATABASE_URL = os.environ.get("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
FIXED_HOLIDAYS = ["01-26", "08-15", "10-02", "12-31"]

ORG_ID = uuid.uuid4()
OTHER_ORG_ID = uuid.uuid4()
ADMIN_ID = uuid.uuid4()
MANAGER_ID = uuid.uuid4()
EMPLOYEE_ID = uuid.uuid4()
PEER_ID = uuid.uuid4()
OUTSIDER_ID = uuid.uuid4()

LeaveTypeFactory = Callable[..., Awaitable[LeaveType]]
BalanceFactory = Callable[..., Awaitable[LeaveBalance]]


def make_auth(user_id: uuid.UUID, *roles: str, permissions: tuple[str, ...] = ()) -> AuthContext:
    return AuthContext(org_id=ORG_ID, user_id=user_id, roles=list(roles), permissions=list(permissions))


def headers_for(user_id: uuid.UUID, *roles: str, org_id: uuid.UUID = ORG_ID) -> dict[str, str]:
    headers = {"X-Org-Id": str(org_id), "X-User-Id": str(user_id)}
    if roles:
        headers["X-Roles"] = ",".join(roles)
    return headers


def is_sqlite(session: AsyncSession) -> bool:
    return session.get_bind().dialect.name == "sqlite"


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    """Per-test async engine with a fresh schema.

    SQLite in memory by default; set TEST_DATABASE_URL to run against PostgreSQL.
    """
    if TEST_DATABASE_URL.startswith("sqlite"):
        _engine = create_async_engine(
            TEST_DATABASE_URL,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        _engine = create_async_engine(TEST_DATABASE_URL)
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield _engine
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
    await _engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    """Session whose commits are real; isolation comes from the per-test schema."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def async_client(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncClient]:
    """Async HTTP client with the database session dependency overridden."""

    async def _override_get_session() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# External collaborators
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def directory() -> Iterator[InMemoryUserDirectory]:
    """An org with an admin, a manager with two reports, and a manager of nobody."""
    users = InMemoryUserDirectory()
    users.seed(UserInfo(id=ADMIN_ID, org_id=ORG_ID, name="Ada Admin", email="ada@example.com", roles=["admin"]))
    users.seed(UserInfo(id=MANAGER_ID, org_id=ORG_ID, name="Max Manager", email="max@example.com"))
    users.seed(
        UserInfo(id=EMPLOYEE_ID, org_id=ORG_ID, name="Eve Employee", email="eve@example.com", manager_id=MANAGER_ID)
    )
    users.seed(UserInfo(id=PEER_ID, org_id=ORG_ID, name="Pat Peer", email="pat@example.com", manager_id=MANAGER_ID))
    users.seed(UserInfo(id=OUTSIDER_ID, org_id=ORG_ID, name="Oz Outsider", email="oz@example.com"))
    set_user_directory(users)
    yield users
    set_user_directory(InMemoryUserDirectory())


@pytest.fixture(autouse=True)
def timesheets() -> Iterator[InMemoryTimesheetLedger]:
    ledger = InMemoryTimesheetLedger()
    set_timesheet_ledger(ledger)
    yield ledger
    set_timesheet_ledger(InMemoryTimesheetLedger())


@pytest.fixture(autouse=True)
def _calendar_oracle() -> Iterator[None]:
    set_calendar_oracle(OrgCalendarOracle(fixed_holidays=FIXED_HOLIDAYS))
    yield
    set_calendar_oracle(OrgCalendarOracle())


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_leave_type(db_session: AsyncSession) -> LeaveTypeFactory:
    """Create (and commit) a leave type, with a policy unless ``with_policy=False``."""

    async def _make(
        code: str = "CASUAL",
        *,
        paid: bool = True,
        requires_approval: bool = True,
        max_per_request_hours: Decimal | None = None,
        with_policy: bool = True,
        org_id: uuid.UUID = ORG_ID,
    ) -> LeaveType:
        leave_type = LeaveType(
            org_id=org_id,
            code=code,
            name=code.title(),
            paid=paid,
            requires_approval=requires_approval,
            max_per_request_hours=max_per_request_hours,
        )
        db_session.add(leave_type)
        await db_session.flush()
        if with_policy:
            db_session.add(LeavePolicy(org_id=org_id, leave_type_id=leave_type.id))
        await db_session.commit()
        return leave_type

    return _make


@pytest.fixture
def make_balance(db_session: AsyncSession) -> BalanceFactory:
    """Create (and commit) a ledger row."""

    async def _make(
        user_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        balance: str = "0",
        pending: str = "0",
        booked: str = "0",
    ) -> LeaveBalance:
        row = LeaveBalance(
            user_id=user_id,
            leave_type_id=leave_type_id,
            balance_hours=Decimal(balance),
            pending_hours=Decimal(pending),
            booked_hours=Decimal(booked),
            as_of_date=date(2026, 1, 1),
        )
        db_session.add(row)
        await db_session.commit()
        return row

    return _make
