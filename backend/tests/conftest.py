from __future__ import annotations

import uuid
from datetime import date
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from leave_ledger.db import get_session
from leave_ledger.main import app
from leave_ledger.models import LeaveType, SQLModel
from leave_ledger.models.enums import AccrualPolicy
from leave_ledger.services.clock import FixedClock, SystemClock, set_clock
from leave_ledger.services.employee import EmployeeInfo, InMemoryEmployeeService, set_employee_service

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

    from sqlalchemy.ext.asyncio import AsyncEngine

TODAY = date(2025, 2, 10)

ADMIN_ID = uuid.UUID("00000000-0000-0000-0000-0000000000aa")
MANAGER_ID = uuid.UUID("00000000-0000-0000-0000-0000000000bb")
EMPLOYEE_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")
OTHER_EMPLOYEE_ID = uuid.UUID("00000000-0000-0000-0000-000000000002")

ADMIN_HEADERS = {"X-User-Id": str(ADMIN_ID), "X-Role": "admin"}
MANAGER_HEADERS = {"X-User-Id": str(MANAGER_ID), "X-Role": "manager"}
EMPLOYEE_HEADERS = {"X-User-Id": str(EMPLOYEE_ID), "X-Role": "employee"}
OTHER_EMPLOYEE_HEADERS = {"X-User-Id": str(OTHER_EMPLOYEE_ID), "X-Role": "employee"}


def make_employee(
    employee_id: uuid.UUID = EMPLOYEE_ID,
    hire_date: date | None = date(2023, 1, 15),
    **kwargs: object,
) -> EmployeeInfo:
    return EmployeeInfo(
        id=employee_id,
        first_name=str(kwargs.pop("first_name", "Test")),
        last_name=str(kwargs.pop("last_name", "Employee")),
        email=str(kwargs.pop("email", f"{employee_id.hex[:8]}@example.com")),
        hire_date=hire_date,
        **kwargs,  # type: ignore[arg-type]
    )


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    """A fresh in-memory SQLite database per test."""
    _engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield _engine
    await _engine.dispose()


@pytest.fixture
async def db_session(engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    async with AsyncSession(engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
async def async_client(engine: AsyncEngine) -> AsyncIterator[AsyncClient]:
    """Async HTTP client with the database session dependency overridden.

    Every request gets its own session on the test engine, as in production.
    """

    async def _override_get_session() -> AsyncIterator[AsyncSession]:
        async with AsyncSession(engine, expire_on_commit=False) as session:
            yield session

    app.dependency_overrides[get_session] = _override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def clock() -> Iterator[FixedClock]:
    """Pin the ledger clock to TODAY for every test."""
    fixed = FixedClock(TODAY)
    set_clock(fixed)
    yield fixed
    set_clock(SystemClock())


@pytest.fixture(autouse=True)
def employees() -> Iterator[InMemoryEmployeeService]:
    """Seed the in-memory profile service with two employees."""
    svc = InMemoryEmployeeService()
    svc.seed(make_employee(EMPLOYEE_ID))
    svc.seed(make_employee(OTHER_EMPLOYEE_ID, hire_date=date(2024, 6, 3), first_name="Other"))
    set_employee_service(svc)
    yield svc
    set_employee_service(InMemoryEmployeeService())


@pytest.fixture
async def annual_type(db_session: AsyncSession) -> LeaveType:
    leave_type = LeaveType(
        name="Annual",
        accrual_policy=AccrualPolicy.MONTHLY_ACCRUAL.value,
        accrual_rate_days=2.0,
        annual_cap_days=24.0,
    )
    db_session.add(leave_type)
    await db_session.commit()
    return leave_type


@pytest.fixture
async def sick_type(db_session: AsyncSession) -> LeaveType:
    leave_type = LeaveType(name="Sick", accrual_policy=AccrualPolicy.FLAT.value, max_days=10)
    db_session.add(leave_type)
    await db_session.commit()
    return leave_type
