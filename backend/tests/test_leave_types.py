"""Integration tests for the leave type registry API."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import pytest

from leave_ledger.exceptions import InvalidLeaveTypeError
from leave_ledger.schemas.auth import AuthContext
from leave_ledger.schemas.leave_type import UpdateLeaveTypeRequest
from leave_ledger.services.leave_type import update_leave_type
from tests.conftest import ADMIN_HEADERS, ADMIN_ID, EMPLOYEE_HEADERS, MANAGER_HEADERS

if TYPE_CHECKING:
    from httpx import AsyncClient
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_ledger.models.leave_type import LeaveType

LEAVE_TYPES_URL = "/leave-types"


async def test_create_flat_leave_type(async_client: AsyncClient) -> None:
    resp = await async_client.post(
        LEAVE_TYPES_URL,
        json={"name": "Compassionate", "accrual_policy": "FLAT", "max_days": 5},
        headers=ADMIN_HEADERS,
    )
    assert resp.status_code == 201
    data = resp.json()
    assert data["name"] == "Compassionate"
    assert data["accrual_policy"] == "FLAT"
    assert data["max_days"] == 5
    assert data["accrual_rate_days"] is None


async def test_flat_leave_type_requires_max_days(async_client: AsyncClient) -> None:
    resp = await async_client.post(
        LEAVE_TYPES_URL, json={"name": "Sick", "accrual_policy": "FLAT"}, headers=ADMIN_HEADERS
    )
    assert resp.status_code == 422


async def test_flat_leave_type_rejects_accrual_settings(async_client: AsyncClient) -> None:
    resp = await async_client.post(
        LEAVE_TYPES_URL,
        json={"name": "Sick", "accrual_policy": "FLAT", "max_days": 10, "accrual_rate_days": 1.0},
        headers=ADMIN_HEADERS,
    )
    assert resp.status_code == 422


async def test_accrual_leave_type_uses_default_schedule(async_client: AsyncClient) -> None:
    resp = await async_client.post(
        LEAVE_TYPES_URL, json={"name": "Annual", "accrual_policy": "MONTHLY_ACCRUAL"}, headers=ADMIN_HEADERS
    )
    assert resp.status_code == 201
    data = resp.json()
    assert data["accrual_rate_days"] == 2.0
    assert data["annual_cap_days"] == 24.0


async def test_accrual_leave_type_custom_schedule(async_client: AsyncClient) -> None:
    resp = await async_client.post(
        LEAVE_TYPES_URL,
        json={"name": "Study", "accrual_policy": "MONTHLY_ACCRUAL", "accrual_rate_days": 1.5, "annual_cap_days": 9},
        headers=ADMIN_HEADERS,
    )
    assert resp.status_code == 201
    assert resp.json()["accrual_rate_days"] == 1.5
    assert resp.json()["annual_cap_days"] == 9.0


async def test_duplicate_name_conflicts(async_client: AsyncClient, sick_type: LeaveType) -> None:
    resp = await async_client.post(
        LEAVE_TYPES_URL, json={"name": "Sick", "accrual_policy": "FLAT", "max_days": 3}, headers=ADMIN_HEADERS
    )
    assert resp.status_code == 409
    assert resp.json()["code"] == "DUPLICATE_LEAVE_TYPE"


async def test_only_admin_can_create(async_client: AsyncClient) -> None:
    payload = {"name": "Sick", "accrual_policy": "FLAT", "max_days": 10}
    assert (await async_client.post(LEAVE_TYPES_URL, json=payload, headers=EMPLOYEE_HEADERS)).status_code == 403
    assert (await async_client.post(LEAVE_TYPES_URL, json=payload, headers=MANAGER_HEADERS)).status_code == 403


async def test_list_sorted_by_name(async_client: AsyncClient, annual_type: LeaveType, sick_type: LeaveType) -> None:
    resp = await async_client.get(LEAVE_TYPES_URL, headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 200
    data = resp.json()
    assert data["total"] == 2
    assert [item["name"] for item in data["items"]] == ["Annual", "Sick"]


async def test_get_unknown_leave_type(async_client: AsyncClient) -> None:
    resp = await async_client.get(f"{LEAVE_TYPES_URL}/{uuid.uuid4()}", headers=EMPLOYEE_HEADERS)
    assert resp.status_code == 404
    assert resp.json()["code"] == "UNKNOWN_LEAVE_TYPE"


async def test_rename_and_change_allowance(async_client: AsyncClient, sick_type: LeaveType) -> None:
    resp = await async_client.patch(
        f"{LEAVE_TYPES_URL}/{sick_type.id}", json={"name": "Sick & Care", "max_days": 12}, headers=ADMIN_HEADERS
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["name"] == "Sick & Care"
    assert data["max_days"] == 12
    assert data["accrual_policy"] == "FLAT"


async def test_max_days_not_applicable_to_accrual_type(async_client: AsyncClient, annual_type: LeaveType) -> None:
    resp = await async_client.patch(
        f"{LEAVE_TYPES_URL}/{annual_type.id}", json={"max_days": 30}, headers=ADMIN_HEADERS
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "INVALID_LEAVE_TYPE"


async def test_rejected_update_leaves_name_unchanged(db_session: AsyncSession, annual_type: LeaveType) -> None:
    admin = AuthContext(user_id=ADMIN_ID, role="admin")
    payload = UpdateLeaveTypeRequest(name="Vacation", max_days=30)

    with pytest.raises(InvalidLeaveTypeError):
        await update_leave_type(db_session, admin, annual_type.id, payload)

    assert annual_type.name == "Annual"
    assert annual_type not in db_session.dirty


async def test_rename_to_existing_name_conflicts(
    async_client: AsyncClient, annual_type: LeaveType, sick_type: LeaveType
) -> None:
    resp = await async_client.patch(f"{LEAVE_TYPES_URL}/{sick_type.id}", json={"name": "Annual"}, headers=ADMIN_HEADERS)
    assert resp.status_code == 409
