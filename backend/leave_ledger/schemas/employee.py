# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date

from pydantic import BaseModel, Field


class UpsertEmployeeRequest(BaseModel):
    """Request body for upserting an employee in the profile service stub."""

    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=1, max_length=255)
    department: str | None = Field(default=None, max_length=100)
    hire_date: date | None = None
    employment_start_date: date | None = None


class EmployeeResponse(BaseModel):
    """Response schema for an employee."""

    id: uuid.UUID
    first_name: str
    last_name: str
    email: str
    department: str | None
    hire_date: date | None
    employment_start_date: date | None
    accrual_start_date: date | None


class EmployeeListResponse(BaseModel):
    """List of employees."""

    items: list[EmployeeResponse]
    total: int
