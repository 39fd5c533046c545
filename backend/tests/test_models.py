from __future__ import annotations

import uuid
from datetime import date

from leave_ledger.models import (
    AuditEvent,
    LeaveAccrualRecord,
    LeaveRequest,
    LeaveType,
    SQLModel,
)
from leave_ledger.models.enums import AccrualPolicy, RequestStatus

EXPECTED_TABLES = {
    "audit_event",
    "leave_accrual_record",
    "leave_request",
    "leave_type",
}


def test_all_tables_registered() -> None:
    table_names = set(SQLModel.metadata.tables.keys())
    assert EXPECTED_TABLES.issubset(table_names)


def test_leave_type_defaults_to_flat() -> None:
    leave_type = LeaveType(name="Sick", max_days=10)
    assert leave_type.accrual_policy == AccrualPolicy.FLAT
    assert not leave_type.is_accrual_bearing
    assert leave_type.id is not None


def test_accrual_leave_type_is_accrual_bearing() -> None:
    leave_type = LeaveType(name="Annual", accrual_policy=AccrualPolicy.MONTHLY_ACCRUAL.value)
    assert leave_type.is_accrual_bearing


def test_leave_request_defaults() -> None:
    request = LeaveRequest(
        employee_id=uuid.uuid4(),
        leave_type_id=uuid.uuid4(),
        start_date=date(2025, 7, 1),
        end_date=date(2025, 7, 2),
    )
    assert request.status == RequestStatus.PENDING
    assert request.reason is None
    assert request.approved_by is None
    assert request.cancelled_at is None


def test_leave_request_duration_is_inclusive() -> None:
    request = LeaveRequest(
        employee_id=uuid.uuid4(),
        leave_type_id=uuid.uuid4(),
        start_date=date(2025, 2, 27),
        end_date=date(2025, 3, 2),
    )
    assert request.duration_days == 4

    request.end_date = request.start_date
    assert request.duration_days == 1


def test_accrual_record_defaults() -> None:
    record = LeaveAccrualRecord(
        employee_id=uuid.uuid4(),
        leave_type_id=uuid.uuid4(),
        accrual_month=date(2025, 3, 1),
    )
    assert record.days_accrued == 0.0
    assert record.days_used == 0.0
    assert record.days_adjusted == 0.0
    assert record.days_balance == 0.0
    assert record.is_processed is False
    assert record.month_key == "2025-03"


def test_audit_event_instantiation() -> None:
    event = AuditEvent(
        entity_type="LEAVE_REQUEST",
        entity_id=uuid.uuid4(),
        action="CREATE",
        performed_by=uuid.uuid4(),
    )
    assert event.before_json is None
    assert event.after_json is None
    assert event.created_at is not None
