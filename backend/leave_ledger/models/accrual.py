# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

import sqlalchemy as sa
from sqlmodel import Field

from leave_ledger.models.base import TimestampMixin, UpdatedAtMixin, UUIDBase


class LeaveAccrualRecord(UUIDBase, TimestampMixin, UpdatedAtMixin, table=True):
    """One month of accrual, usage and running balance for an employee and leave type."""

    __tablename__ = "leave_accrual_record"
    __table_args__ = (
        sa.UniqueConstraint("employee_id", "leave_type_id", "accrual_month", name="uq_accrual_month"),
        sa.Index("ix_accrual_employee_type", "employee_id", "leave_type_id"),
    )

    employee_id: uuid.UUID = Field(index=True)
    leave_type_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_type.id"), nullable=False, index=True),
    )
    accrual_month: date
    days_accrued: float = Field(default=0.0, sa_column_kwargs={"server_default": "0"})
    days_used: float = Field(default=0.0, sa_column_kwargs={"server_default": "0"})
    days_adjusted: float = Field(default=0.0, sa_column_kwargs={"server_default": "0"})
    days_balance: float = Field(default=0.0, sa_column_kwargs={"server_default": "0"})
    is_processed: bool = Field(default=False, sa_column_kwargs={"server_default": sa.false()})
    processed_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    notes: str | None = Field(default=None, sa_type=sa.Text)

    @property
    def month_key(self) -> str:
        """Return the accrual month as YYYY-MM."""
        return self.accrual_month.strftime("%Y-%m")
