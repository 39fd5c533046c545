# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date

from pydantic import BaseModel

from leave_ledger.models.enums import AccrualPolicy


class BalanceResponse(BaseModel):
    """Balance for one leave type.

    ``max_days`` is set for FLAT types, ``accrued_to_date`` for accrual-bearing ones.
    """

    leave_type_id: uuid.UUID
    leave_type_name: str
    accrual_policy: AccrualPolicy
    max_days: int | None
    accrued_to_date: float | None
    used_days: float
    balance: float


class BalanceListResponse(BaseModel):
    """Balances across every leave type for an employee."""

    employee_id: uuid.UUID
    items: list[BalanceResponse]
    total: int


class ProjectedBalanceResponse(BaseModel):
    """Forecast balance on a target date."""

    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    target_date: date
    current_balance: float
    projected_balance: float
