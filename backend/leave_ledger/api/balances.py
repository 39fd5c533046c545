# ruff: noqa: B008, TC003
from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Query

from leave_ledger.api.deps import AuthDep, ensure_self_or_staff
from leave_ledger.db import SessionDep
from leave_ledger.schemas.balance import BalanceListResponse, BalanceResponse, ProjectedBalanceResponse
from leave_ledger.services import balance as balance_service

employee_balance_router = APIRouter(
    prefix="/employees/{employee_id}/balances",
    tags=["balances"],
)


@employee_balance_router.get("", response_model=BalanceListResponse)
async def get_employee_balances(
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> BalanceListResponse:
    """Balances of every leave type for an employee."""
    ensure_self_or_staff(auth, employee_id)
    return await balance_service.get_employee_balances(session, employee_id)


@employee_balance_router.get("/{leave_type_id}", response_model=BalanceResponse)
async def get_balance(
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> BalanceResponse:
    """Balance of one leave type for an employee."""
    ensure_self_or_staff(auth, employee_id)
    return await balance_service.get_balance(session, employee_id, leave_type_id)


@employee_balance_router.get("/{leave_type_id}/projected", response_model=ProjectedBalanceResponse)
async def get_projected_balance(
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    target_date: date = Query(alias="date"),
) -> ProjectedBalanceResponse:
    """Forecast balance of one leave type on a target date."""
    ensure_self_or_staff(auth, employee_id)
    return await balance_service.get_projected_balance(session, employee_id, leave_type_id, target_date)
