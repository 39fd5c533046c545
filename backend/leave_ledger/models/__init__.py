from sqlmodel import SQLModel

from leave_ledger.models.accrual import LeaveAccrualRecord
from leave_ledger.models.audit import AuditEvent
from leave_ledger.models.base import TimestampMixin, UpdatedAtMixin, UUIDBase
from leave_ledger.models.enums import (
    AccrualPolicy,
    AuditAction,
    AuditEntityType,
    RequestStatus,
)
from leave_ledger.models.leave_type import LeaveType
from leave_ledger.models.request import LeaveRequest

__all__ = [
    "AccrualPolicy",
    "AuditAction",
    "AuditEntityType",
    "AuditEvent",
    "LeaveAccrualRecord",
    "LeaveRequest",
    "LeaveType",
    "RequestStatus",
    "SQLModel",
    "TimestampMixin",
    "UUIDBase",
    "UpdatedAtMixin",
]
