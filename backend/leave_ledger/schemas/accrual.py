# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

from pydantic import BaseModel, Field


class AccrualRecordResponse(BaseModel):
    """A single monthly ledger record."""

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type_id: uuid.UUID
    month: str
    accrual_month: date
    days_accrued: float
    days_used: float
    days_adjusted: float
    days_balance: float
    is_processed: bool
    processed_at: datetime | None
    notes: str | None


class AccrualHistoryResponse(BaseModel):
    """Ledger history and totals for an employee's accrual-bearing leave."""

    employee_id: uuid.UUID
    employee_name: str
    leave_type_id: uuid.UUID
    total_accrued: float
    total_used: float
    current_balance: float
    pending_requests: int
    upcoming_leaves: int
    accruals: list[AccrualRecordResponse]


class AdjustBalancePayload(BaseModel):
    """Request body for a manual balance adjustment."""

    days: float = Field(description="Signed number of days: positive to add, negative to deduct")
    reason: str = Field(min_length=1, max_length=1000)
    leave_type_id: uuid.UUID | None = None


class ManualAccrualPayload(BaseModel):
    """Request body for posting extra accrued days to a specific month."""

    month: str = Field(pattern=r"^\d{4}-\d{2}$", examples=["2025-12"])
    days: float = Field(gt=0)
    reason: str = Field(min_length=1, max_length=1000)
    leave_type_id: uuid.UUID | None = None


class AccrualRunResponse(BaseModel):
    """Response from the monthly batch trigger."""

    month: str
    processed: int
    skipped: int
    errors: int
