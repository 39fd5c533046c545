from __future__ import annotations

import enum


class AccrualPolicy(enum.StrEnum):
    """How a leave type grants entitlement."""

    FLAT = "FLAT"
    MONTHLY_ACCRUAL = "MONTHLY_ACCRUAL"


class RequestStatus(enum.StrEnum):
    """State machine for leave requests."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


ACTIVE_REQUEST_STATUSES = (RequestStatus.PENDING, RequestStatus.APPROVED)


class AuditEntityType(enum.StrEnum):
    """Entity type recorded in the audit log."""

    LEAVE_TYPE = "LEAVE_TYPE"
    LEAVE_REQUEST = "LEAVE_REQUEST"
    ACCRUAL_RECORD = "ACCRUAL_RECORD"
    EMPLOYEE = "EMPLOYEE"


class AuditAction(enum.StrEnum):
    """Action recorded in the audit log."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    CANCEL = "CANCEL"
    ADJUST = "ADJUST"
