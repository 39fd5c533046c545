# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

import sqlalchemy as sa
from sqlmodel import Field

from leave_ledger.models.base import TimestampMixin, UUIDBase
from leave_ledger.models.enums import RequestStatus


class LeaveRequest(UUIDBase, TimestampMixin, table=True):
    """An employee's leave request with approval workflow state."""

    __tablename__ = "leave_request"
    __table_args__ = (
        sa.Index("ix_request_employee_status", "employee_id", "status"),
        sa.Index("ix_request_employee_dates", "employee_id", "start_date", "end_date"),
    )

    employee_id: uuid.UUID = Field(index=True)
    leave_type_id: uuid.UUID = Field(
        sa_column=sa.Column(sa.Uuid, sa.ForeignKey("leave_type.id"), nullable=False, index=True),
    )
    start_date: date
    end_date: date
    reason: str | None = Field(default=None, sa_type=sa.Text)
    status: str = Field(
        default=RequestStatus.PENDING, max_length=50, index=True, sa_column_kwargs={"server_default": "PENDING"}
    )
    approved_by: uuid.UUID | None = None
    approved_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    rejection_reason: str | None = Field(default=None, sa_type=sa.Text)
    cancelled_at: datetime | None = Field(default=None, sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]

    @property
    def duration_days(self) -> int:
        """Inclusive number of calendar days covered by the request."""
        if self.end_date < self.start_date:
            return 0
        return (self.end_date - self.start_date).days + 1
