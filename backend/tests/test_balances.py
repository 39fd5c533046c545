"""Tests for balances: flat allowances, accrual ledger balances, projection and history."""

from __future__ import annotations

import uuid
from datetime import date
from typing import TYPE_CHECKING

import pytest

from leave_ledger.exceptions import EmployeeNotFoundError
from leave_ledger.models.enums import AccrualPolicy, RequestStatus
from leave_ledger.models.request import LeaveRequest
from leave_ledger.services.balance import (
    booked_ahead_days,
    current_balance,
    get_accrual_history,
    get_balance,
    get_employee_balances,
    get_projected_balance,
    projected_balance,
)
from tests.conftest import (
    EMPLOYEE_HEADERS,
    EMPLOYEE_ID,
    MANAGER_HEADERS,
    OTHER_EMPLOYEE_HEADERS,
    OTHER_EMPLOYEE_ID,
)

if TYPE_CHECKING:
    from httpx import AsyncClient
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_ledger.models.leave_type import LeaveType


async def _insert_request(
    session: AsyncSession,
    leave_type: LeaveType,
    start: date,
    end: date,
    status: RequestStatus = RequestStatus.APPROVED,
    employee_id: uuid.UUID = EMPLOYEE_ID,
) -> None:
    session.add(
        LeaveRequest(
            employee_id=employee_id,
            leave_type_id=leave_type.id,
            start_date=start,
            end_date=end,
            status=status.value,
        )
    )
    await session.commit()


def _balances_url(employee_id: uuid.UUID = EMPLOYEE_ID) -> str:
    return f"/employees/{employee_id}/balances"


# ---------------------------------------------------------------------------
# Flat allowance
# ---------------------------------------------------------------------------


class TestFlatBalance:
    async def test_full_allowance_without_usage(self, db_session: AsyncSession, sick_type: LeaveType) -> None:
        balance = await get_balance(db_session, EMPLOYEE_ID, sick_type.id)
        assert balance.accrual_policy == AccrualPolicy.FLAT
        assert balance.max_days == 10
        assert balance.accrued_to_date is None
        assert balance.used_days == 0.0
        assert balance.balance == 10.0

    async def test_only_approved_usage_counts(self, db_session: AsyncSession, sick_type: LeaveType) -> None:
        await _insert_request(db_session, sick_type, date(2025, 1, 6), date(2025, 1, 8))
        await _insert_request(db_session, sick_type, date(2025, 1, 20), date(2025, 1, 20), RequestStatus.PENDING)
        await _insert_request(db_session, sick_type, date(2025, 1, 21), date(2025, 1, 21), RequestStatus.REJECTED)
        await _insert_request(db_session, sick_type, date(2024, 12, 2), date(2024, 12, 3))

        balance = await get_balance(db_session, EMPLOYEE_ID, sick_type.id)
        assert balance.used_days == 5.0
        assert balance.balance == 5.0

    async def test_floored_at_zero(self, db_session: AsyncSession, sick_type: LeaveType) -> None:
        await _insert_request(db_session, sick_type, date(2025, 1, 1), date(2025, 1, 15))
        balance = await get_balance(db_session, EMPLOYEE_ID, sick_type.id)
        assert balance.balance == 0.0

    async def test_allowance_does_not_reset_by_year(self, db_session: AsyncSession, sick_type: LeaveType) -> None:
        await _insert_request(db_session, sick_type, date(2024, 3, 1), date(2024, 3, 10))
        assert await current_balance(db_session, EMPLOYEE_ID, sick_type) == 0.0

        balance = await get_balance(db_session, EMPLOYEE_ID, sick_type.id)
        assert balance.used_days == 10.0
        assert balance.balance == 0.0


# ---------------------------------------------------------------------------
# Accrual balance
# ---------------------------------------------------------------------------


class TestAccrualBalance:
    async def test_capped_balance_after_catch_up(self, db_session: AsyncSession, annual_type: LeaveType) -> None:
        balance = await get_balance(db_session, EMPLOYEE_ID, annual_type.id)
        assert balance.accrual_policy == AccrualPolicy.MONTHLY_ACCRUAL
        assert balance.max_days is None
        assert balance.accrued_to_date == 24.0
        assert balance.used_days == 0.0
        assert balance.balance == 24.0

    async def test_reflects_monthly_consumption(self, db_session: AsyncSession, annual_type: LeaveType) -> None:
        await _insert_request(db_session, annual_type, date(2025, 2, 3), date(2025, 2, 5))
        balance = await get_balance(db_session, EMPLOYEE_ID, annual_type.id)
        assert balance.used_days == 3.0
        assert balance.balance == 21.0

    async def test_balance_persists_catch_up(self, db_session: AsyncSession, annual_type: LeaveType) -> None:
        await get_balance(db_session, OTHER_EMPLOYEE_ID, annual_type.id)
        await db_session.rollback()
        history = await get_accrual_history(db_session, OTHER_EMPLOYEE_ID)
        assert len(history.accruals) == 8

    async def test_employee_balances_cover_every_type(
        self, db_session: AsyncSession, annual_type: LeaveType, sick_type: LeaveType
    ) -> None:
        balances = await get_employee_balances(db_session, EMPLOYEE_ID)
        assert balances.total == 2
        assert [b.leave_type_name for b in balances.items] == ["Annual", "Sick"]

    async def test_unknown_employee(self, db_session: AsyncSession, annual_type: LeaveType) -> None:
        with pytest.raises(EmployeeNotFoundError):
            await get_balance(db_session, uuid.uuid4(), annual_type.id)


# ---------------------------------------------------------------------------
# Projection
# ---------------------------------------------------------------------------


class TestProjectedBalance:
    async def test_past_or_present_target_returns_current(
        self, db_session: AsyncSession, annual_type: LeaveType
    ) -> None:
        assert await projected_balance(db_session, OTHER_EMPLOYEE_ID, annual_type, date(2025, 2, 10)) == 16.0
        assert await projected_balance(db_session, OTHER_EMPLOYEE_ID, annual_type, date(2024, 12, 1)) == 16.0

    async def test_future_months_accrue(self, db_session: AsyncSession, annual_type: LeaveType) -> None:
        assert await projected_balance(db_session, OTHER_EMPLOYEE_ID, annual_type, date(2025, 5, 20)) == 22.0

    async def test_projection_respects_cap(self, db_session: AsyncSession, annual_type: LeaveType) -> None:
        assert await projected_balance(db_session, OTHER_EMPLOYEE_ID, annual_type, date(2025, 12, 1)) == 24.0

    async def test_pending_and_unposted_approved_leave_deducted(
        self, db_session: AsyncSession, annual_type: LeaveType
    ) -> None:
        other = OTHER_EMPLOYEE_ID
        await _insert_request(db_session, annual_type, date(2025, 4, 1), date(2025, 4, 3), RequestStatus.PENDING, other)
        await _insert_request(db_session, annual_type, date(2025, 3, 10), date(2025, 3, 11), employee_id=other)
        # Starts after the target date, so not counted.
        await _insert_request(db_session, annual_type, date(2025, 6, 2), date(2025, 6, 6), RequestStatus.PENDING, other)

        assert await projected_balance(db_session, other, annual_type, date(2025, 5, 20)) == 17.0

    async def test_posted_usage_not_double_counted(self, db_session: AsyncSession, annual_type: LeaveType) -> None:
        other = OTHER_EMPLOYEE_ID
        await _insert_request(db_session, annual_type, date(2025, 2, 3), date(2025, 2, 4), employee_id=other)
        # The two February days are already posted (balance 14); March adds 2.
        assert await projected_balance(db_session, other, annual_type, date(2025, 3, 20)) == 16.0

    async def test_projection_floors_at_zero(self, db_session: AsyncSession, annual_type: LeaveType) -> None:
        other = OTHER_EMPLOYEE_ID
        await _insert_request(db_session, annual_type, date(2025, 3, 3), date(2025, 4, 30), RequestStatus.PENDING, other)
        assert await projected_balance(db_session, other, annual_type, date(2025, 5, 1)) == 0.0

    async def test_flat_type_returns_current(self, db_session: AsyncSession, sick_type: LeaveType) -> None:
        assert await projected_balance(db_session, EMPLOYEE_ID, sick_type, date(2025, 9, 1)) == 10.0

    async def test_projection_response(self, db_session: AsyncSession, annual_type: LeaveType) -> None:
        response = await get_projected_balance(db_session, OTHER_EMPLOYEE_ID, annual_type.id, date(2025, 5, 20))
        assert response.current_balance == 16.0
        assert response.projected_balance == 22.0


class TestBookedAheadDays:
    async def test_counts_only_days_after_month(self, db_session: AsyncSession, annual_type: LeaveType) -> None:
        await _insert_request(db_session, annual_type, date(2025, 2, 27), date(2025, 3, 4))
        await _insert_request(db_session, annual_type, date(2025, 4, 1), date(2025, 4, 1), RequestStatus.PENDING)
        assert await booked_ahead_days(db_session, EMPLOYEE_ID, annual_type.id, date(2025, 2, 1)) == 4.0


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


class TestAccrualHistory:
    async def test_newest_first_with_totals(self, db_session: AsyncSession, annual_type: LeaveType) -> None:
        await _insert_request(db_session, annual_type, date(2025, 1, 6), date(2025, 1, 7))
        await _insert_request(db_session, annual_type, date(2025, 3, 3), date(2025, 3, 4))
        await _insert_request(db_session, annual_type, date(2025, 4, 7), date(2025, 4, 7), RequestStatus.PENDING)

        history = await get_accrual_history(db_session, EMPLOYEE_ID)
        assert history.employee_name == "Test Employee"
        assert history.accruals[0].month == "2025-02"
        assert history.accruals[-1].month == "2023-02"
        assert history.total_used == 2.0
        assert history.current_balance == 24.0
        assert history.pending_requests == 1
        assert history.upcoming_leaves == 1


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


class TestBalanceEndpoints:
    async def test_employee_reads_own_balances(
        self, async_client: AsyncClient, annual_type: LeaveType, sick_type: LeaveType
    ) -> None:
        resp = await async_client.get(_balances_url(), headers=EMPLOYEE_HEADERS)
        assert resp.status_code == 200
        data = resp.json()
        assert data["total"] == 2
        by_name = {item["leave_type_name"]: item for item in data["items"]}
        assert by_name["Annual"]["balance"] == 24.0
        assert by_name["Sick"]["balance"] == 10.0

    async def test_employee_cannot_read_others(self, async_client: AsyncClient, annual_type: LeaveType) -> None:
        resp = await async_client.get(_balances_url(), headers=OTHER_EMPLOYEE_HEADERS)
        assert resp.status_code == 403

    async def test_manager_reads_any_employee(self, async_client: AsyncClient, annual_type: LeaveType) -> None:
        resp = await async_client.get(f"{_balances_url()}/{annual_type.id}", headers=MANAGER_HEADERS)
        assert resp.status_code == 200
        assert resp.json()["accrued_to_date"] == 24.0

    async def test_projected_endpoint(self, async_client: AsyncClient, annual_type: LeaveType) -> None:
        resp = await async_client.get(
            f"{_balances_url(OTHER_EMPLOYEE_ID)}/{annual_type.id}/projected",
            params={"date": "2025-05-20"},
            headers=OTHER_EMPLOYEE_HEADERS,
        )
        assert resp.status_code == 200
        assert resp.json()["projected_balance"] == 22.0

    async def test_unknown_employee_is_404(self, async_client: AsyncClient, annual_type: LeaveType) -> None:
        resp = await async_client.get(_balances_url(uuid.uuid4()), headers=MANAGER_HEADERS)
        assert resp.status_code == 404
        assert resp.json()["code"] == "EMPLOYEE_NOT_FOUND"
