"""Tests for per-employee ledger serialization."""

from __future__ import annotations

import asyncio
import uuid
from datetime import date
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from leave_ledger.exceptions import InsufficientBalanceError, LedgerBusyError
from leave_ledger.models.enums import RequestStatus
from leave_ledger.models.request import LeaveRequest
from leave_ledger.services.locking import advisory_key, employee_ledger_lock
from leave_ledger.services.request import approve_leave
from tests.conftest import EMPLOYEE_ID, MANAGER_ID, OTHER_EMPLOYEE_ID

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

    from leave_ledger.models.leave_type import LeaveType


async def test_same_employee_is_serialized(db_session: AsyncSession) -> None:
    events: list[str] = []

    async def _critical(name: str) -> None:
        async with employee_ledger_lock(db_session, EMPLOYEE_ID):
            events.append(f"{name}:enter")
            await asyncio.sleep(0.01)
            events.append(f"{name}:exit")

    await asyncio.gather(_critical("a"), _critical("b"))
    assert events == ["a:enter", "a:exit", "b:enter", "b:exit"]


async def test_different_employees_do_not_block(db_session: AsyncSession) -> None:
    async with employee_ledger_lock(db_session, EMPLOYEE_ID):
        async with employee_ledger_lock(db_session, OTHER_EMPLOYEE_ID, timeout=0.1):
            pass


async def test_busy_lock_times_out(db_session: AsyncSession) -> None:
    async with employee_ledger_lock(db_session, EMPLOYEE_ID):
        with pytest.raises(LedgerBusyError) as exc_info:
            async with employee_ledger_lock(db_session, EMPLOYEE_ID, timeout=0.05):
                pass
    assert exc_info.value.retryable is True


async def test_lock_released_after_error(db_session: AsyncSession) -> None:
    with pytest.raises(RuntimeError):
        async with employee_ledger_lock(db_session, EMPLOYEE_ID):
            raise RuntimeError("boom")

    async with employee_ledger_lock(db_session, EMPLOYEE_ID, timeout=0.1):
        pass


def test_advisory_key_is_stable_signed_64_bit() -> None:
    employee_id = uuid.UUID("12345678-1234-5678-1234-567812345678")
    key = advisory_key(employee_id)
    assert key == advisory_key(employee_id)
    assert -(2**63) <= key < 2**63
    assert key != advisory_key(uuid.uuid4())


async def test_concurrent_approvals_cannot_overdraw(engine: AsyncEngine, annual_type: LeaveType) -> None:
    """Two approvals of 15 days each race for a balance of 24; one must fail."""
    async with AsyncSession(engine, expire_on_commit=False) as setup:
        first = LeaveRequest(
            employee_id=EMPLOYEE_ID,
            leave_type_id=annual_type.id,
            start_date=date(2025, 3, 3),
            end_date=date(2025, 3, 17),
            status=RequestStatus.PENDING.value,
        )
        second = LeaveRequest(
            employee_id=EMPLOYEE_ID,
            leave_type_id=annual_type.id,
            start_date=date(2025, 4, 1),
            end_date=date(2025, 4, 15),
            status=RequestStatus.PENDING.value,
        )
        setup.add_all([first, second])
        await setup.commit()
        request_ids = [first.id, second.id]

    async def _approve(request_id: uuid.UUID) -> str:
        async with AsyncSession(engine, expire_on_commit=False) as session:
            try:
                await approve_leave(session, request_id, MANAGER_ID)
            except InsufficientBalanceError:
                return "rejected"
            return "approved"

    outcomes = await asyncio.gather(*(_approve(rid) for rid in request_ids))
    assert sorted(outcomes) == ["approved", "rejected"]
