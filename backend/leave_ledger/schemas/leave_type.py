# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Self

from pydantic import BaseModel, Field, model_validator

from leave_ledger.models.enums import AccrualPolicy


class CreateLeaveTypeRequest(BaseModel):
    """Request body for registering a leave type."""

    name: str = Field(min_length=1, max_length=50)
    accrual_policy: AccrualPolicy = AccrualPolicy.FLAT
    max_days: int | None = Field(default=None, ge=0)
    accrual_rate_days: float | None = Field(default=None, gt=0)
    annual_cap_days: float | None = Field(default=None, gt=0)

    @model_validator(mode="after")
    def _validate_policy_fields(self) -> Self:
        if self.accrual_policy == AccrualPolicy.FLAT:
            if self.max_days is None:
                msg = "max_days is required for FLAT leave types"
                raise ValueError(msg)
            if self.accrual_rate_days is not None or self.annual_cap_days is not None:
                msg = "accrual settings are only valid for MONTHLY_ACCRUAL leave types"
                raise ValueError(msg)
        return self


class UpdateLeaveTypeRequest(BaseModel):
    """Administrative edit: name and allowance only."""

    name: str | None = Field(default=None, min_length=1, max_length=50)
    max_days: int | None = Field(default=None, ge=0)


class LeaveTypeResponse(BaseModel):
    """Response schema for a leave type."""

    id: uuid.UUID
    name: str
    accrual_policy: AccrualPolicy
    max_days: int | None
    accrual_rate_days: float | None
    annual_cap_days: float | None
    created_at: datetime


class LeaveTypeListResponse(BaseModel):
    """All registered leave types."""

    items: list[LeaveTypeResponse]
    total: int
