from __future__ import annotations

import sqlalchemy as sa
from sqlmodel import Field

from leave_ledger.models.base import TimestampMixin, UpdatedAtMixin, UUIDBase
from leave_ledger.models.enums import AccrualPolicy


class LeaveType(UUIDBase, TimestampMixin, UpdatedAtMixin, table=True):
    """A leave category with either a flat annual allowance or a monthly accrual schedule."""

    __tablename__ = "leave_type"
    __table_args__ = (sa.UniqueConstraint("name", name="uq_leave_type_name"),)

    name: str = Field(max_length=50)
    accrual_policy: str = Field(
        default=AccrualPolicy.FLAT, max_length=50, sa_column_kwargs={"server_default": "FLAT"}
    )
    max_days: int | None = None
    accrual_rate_days: float | None = None
    annual_cap_days: float | None = None

    @property
    def is_accrual_bearing(self) -> bool:
        return self.accrual_policy == AccrualPolicy.MONTHLY_ACCRUAL
