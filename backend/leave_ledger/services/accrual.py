# ruff: noqa: TC003
"""Accrual engine: monthly ledger records, catch-up, reposting and manual corrections.

Every accrual-bearing (employee, leave type) pair owns a chain of monthly
``LeaveAccrualRecord`` rows. Each record starts from the previous month's
balance, adds the month's accrual (clamped by the annual cap) and any manual
adjustments, and subtracts the approved leave days falling in that month.
Every posted month is closed (``is_processed``) and is only recomputed when
forced. Approving or cancelling leave and manual accruals repost the affected
months.
"""

from __future__ import annotations

import logging
import re
import uuid
from calendar import monthrange
from dataclasses import dataclass
from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from leave_ledger.exceptions import EmployeeNotFoundError, InvalidMonthError
from leave_ledger.models.accrual import LeaveAccrualRecord
from leave_ledger.models.enums import AuditAction, AuditEntityType, RequestStatus
from leave_ledger.models.request import LeaveRequest
from leave_ledger.schemas.accrual import AccrualRecordResponse
from leave_ledger.services.audit import model_to_audit_dict, record_audit_event
from leave_ledger.services.clock import get_clock
from leave_ledger.services.employee import get_employee_service
from leave_ledger.services.leave_type import (
    AccrualSchedule,
    get_accrual_leave_type,
    get_leave_type,
    list_accrual_schedules,
)
from leave_ledger.services.locking import employee_ledger_lock

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_ledger.schemas.auth import AuthContext
    from leave_ledger.services.employee import EmployeeInfo

logger = logging.getLogger(__name__)

_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")

# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------


@dataclass
class AccrualRunResult:
    """Summary of a monthly batch run."""

    month: date
    processed: int = 0
    skipped: int = 0
    errors: int = 0


# ---------------------------------------------------------------------------
# Pure computation helpers (no DB)
# ---------------------------------------------------------------------------


def month_start(value: date) -> date:
    """Normalize a date to the first day of its month."""
    return value.replace(day=1)


def month_end(month: date) -> date:
    """Return the last day of the month containing ``month``."""
    _, days_in_month = monthrange(month.year, month.month)
    return month.replace(day=days_in_month)


def add_months(month: date, count: int) -> date:
    """Shift a first-of-month date by ``count`` calendar months."""
    index = month.year * 12 + (month.month - 1) + count
    return date(index // 12, index % 12 + 1, 1)


def iter_months(first: date, last: date) -> list[date]:
    """First-of-month dates from ``first`` through ``last`` inclusive."""
    months: list[date] = []
    current = month_start(first)
    last = month_start(last)
    while current <= last:
        months.append(current)
        current = add_months(current, 1)
    return months


def parse_month(value: str) -> date:
    """Parse a YYYY-MM string into the first day of that month."""
    match = _MONTH_RE.match(value.strip())
    if match is None:
        msg = "Invalid month format. Use YYYY-MM"
        raise InvalidMonthError(msg)
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        msg = "Invalid month format. Use YYYY-MM"
        raise InvalidMonthError(msg)
    return date(year, month, 1)


def first_accrual_month(start_date: date) -> date:
    """The first calendar month of employment does not accrue."""
    return add_months(month_start(start_date), 1)


def overlap_days(start_date: date, end_date: date, window_start: date, window_end: date) -> int:
    """Inclusive number of days shared by two date ranges."""
    lo = max(start_date, window_start)
    hi = min(end_date, window_end)
    if lo > hi:
        return 0
    return (hi - lo).days + 1


def apply_annual_cap(prev_balance: float, rate: float, annual_cap: float) -> float:
    """Clamp a monthly accrual so the balance does not grow past the annual cap.

    Returns the clamped amount (0 if the balance is already at or above the cap).
    """
    headroom = annual_cap - prev_balance
    if headroom <= 0:
        return 0.0
    return min(rate, headroom)


def compute_balance(prev_balance: float, accrued: float, adjusted: float, used: float) -> float:
    """Running balance after one month, floored at zero."""
    return max(0.0, prev_balance + accrued + adjusted - used)


# ---------------------------------------------------------------------------
# Ledger store queries
# ---------------------------------------------------------------------------


async def get_record(
    session: AsyncSession,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    month: date,
) -> LeaveAccrualRecord | None:
    """Fetch the ledger record of one month."""
    result = await session.execute(
        select(LeaveAccrualRecord).where(
            col(LeaveAccrualRecord.employee_id) == employee_id,
            col(LeaveAccrualRecord.leave_type_id) == leave_type_id,
            col(LeaveAccrualRecord.accrual_month) == month_start(month),
        )
    )
    return result.scalar_one_or_none()


async def get_latest_record(
    session: AsyncSession,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
) -> LeaveAccrualRecord | None:
    """Fetch the most recent ledger record."""
    result = await session.execute(
        select(LeaveAccrualRecord)
        .where(
            col(LeaveAccrualRecord.employee_id) == employee_id,
            col(LeaveAccrualRecord.leave_type_id) == leave_type_id,
        )
        .order_by(col(LeaveAccrualRecord.accrual_month).desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def list_records(
    session: AsyncSession,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    *,
    newest_first: bool = False,
) -> list[LeaveAccrualRecord]:
    """All ledger records of an employee and leave type, ordered by month."""
    order = col(LeaveAccrualRecord.accrual_month)
    result = await session.execute(
        select(LeaveAccrualRecord)
        .where(
            col(LeaveAccrualRecord.employee_id) == employee_id,
            col(LeaveAccrualRecord.leave_type_id) == leave_type_id,
        )
        .order_by(order.desc() if newest_first else order)
    )
    return list(result.scalars().all())


async def days_used_in_month(
    session: AsyncSession,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    month: date,
) -> float:
    """Approved leave days of the type that fall inside the month.

    A request straddling a month boundary contributes only its days within
    the month.
    """
    first = month_start(month)
    last = month_end(first)
    result = await session.execute(
        select(LeaveRequest).where(
            col(LeaveRequest.employee_id) == employee_id,
            col(LeaveRequest.leave_type_id) == leave_type_id,
            col(LeaveRequest.status) == RequestStatus.APPROVED.value,
            col(LeaveRequest.start_date) <= last,
            col(LeaveRequest.end_date) >= first,
        )
    )
    return float(sum(overlap_days(r.start_date, r.end_date, first, last) for r in result.scalars().all()))


def build_record_response(record: LeaveAccrualRecord) -> AccrualRecordResponse:
    """Map a ledger record to its response schema."""
    return AccrualRecordResponse(
        id=record.id,
        employee_id=record.employee_id,
        leave_type_id=record.leave_type_id,
        month=record.month_key,
        accrual_month=record.accrual_month,
        days_accrued=record.days_accrued,
        days_used=record.days_used,
        days_adjusted=record.days_adjusted,
        days_balance=record.days_balance,
        is_processed=record.is_processed,
        processed_at=record.processed_at,
        notes=record.notes,
    )


# ---------------------------------------------------------------------------
# Ledger context
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerContext:
    """Everything needed to post months for one employee and accrual schedule."""

    employee_id: uuid.UUID
    schedule: AccrualSchedule
    start_month: date | None
    current_month: date
    now: datetime

    @property
    def first_month(self) -> date | None:
        if self.start_month is None:
            return None
        return add_months(self.start_month, 1)

    def accrues_in(self, month: date) -> bool:
        first = self.first_month
        return first is not None and month >= first


def context_for(employee: EmployeeInfo, schedule: AccrualSchedule) -> LedgerContext:
    """Build a ledger context from employee metadata and the active clock."""
    clock = get_clock()
    start = employee.accrual_start_date()
    return LedgerContext(
        employee_id=employee.id,
        schedule=schedule,
        start_month=month_start(start) if start is not None else None,
        current_month=month_start(clock.today()),
        now=clock.now(),
    )


async def require_employee(employee_id: uuid.UUID) -> EmployeeInfo:
    """Fetch employee metadata from the profile service or raise EmployeeNotFoundError."""
    employee = await get_employee_service().get_employee(employee_id)
    if employee is None:
        raise EmployeeNotFoundError
    return employee


async def build_context(session: AsyncSession, employee_id: uuid.UUID, leave_type_id: uuid.UUID) -> LedgerContext:
    """Resolve the employee and accrual schedule for a ledger operation."""
    leave_type = await get_leave_type(session, leave_type_id)
    schedule = AccrualSchedule.from_leave_type(leave_type)
    employee = await require_employee(employee_id)
    return context_for(employee, schedule)


# ---------------------------------------------------------------------------
# Posting
# ---------------------------------------------------------------------------


async def _post_month(
    session: AsyncSession,
    ctx: LedgerContext,
    month: date,
    record: LeaveAccrualRecord | None,
    prev_balance: float,
) -> LeaveAccrualRecord:
    """Compute and persist one month's record, chaining from ``prev_balance``."""
    leave_type_id = ctx.schedule.leave_type_id
    used = await days_used_in_month(session, ctx.employee_id, leave_type_id, month)
    accrued = apply_annual_cap(prev_balance, ctx.schedule.rate, ctx.schedule.annual_cap) if ctx.accrues_in(month) else 0.0
    adjusted = record.days_adjusted if record is not None else 0.0
    balance = compute_balance(prev_balance, accrued, adjusted, used)

    if record is None:
        record = LeaveAccrualRecord(
            employee_id=ctx.employee_id,
            leave_type_id=leave_type_id,
            accrual_month=month,
        )
        session.add(record)

    record.days_accrued = accrued
    record.days_used = used
    record.days_balance = balance
    record.is_processed = True
    record.processed_at = ctx.now
    record.updated_at = ctx.now
    await session.flush()
    return record


async def _process(
    session: AsyncSession,
    ctx: LedgerContext,
    month: date,
    *,
    force: bool = False,
) -> LeaveAccrualRecord:
    record = await get_record(session, ctx.employee_id, ctx.schedule.leave_type_id, month)
    if record is not None and record.is_processed and not force:
        return record
    prev_month = add_months(month, -1)
    prev = await get_record(session, ctx.employee_id, ctx.schedule.leave_type_id, prev_month)
    if prev is None and ctx.accrues_in(prev_month):
        prev = await _catch_up(session, ctx, prev_month)
    return await _post_month(session, ctx, month, record, prev.days_balance if prev is not None else 0.0)


async def _catch_up(
    session: AsyncSession,
    ctx: LedgerContext,
    through: date,
) -> LeaveAccrualRecord | None:
    """Post every missing or unprocessed month from the first accruable month through ``through``."""
    first = ctx.first_month
    if first is None or first > through:
        return None

    existing = {
        r.accrual_month: r for r in await list_records(session, ctx.employee_id, ctx.schedule.leave_type_id)
    }
    prev = existing.get(add_months(first, -1))
    for month in iter_months(first, through):
        record = existing.get(month)
        if record is None or not record.is_processed:
            record = await _post_month(session, ctx, month, record, prev.days_balance if prev is not None else 0.0)
        prev = record
    return prev


async def _repost(session: AsyncSession, ctx: LedgerContext, from_month: date) -> int:
    """Force-recompute every existing record from ``from_month`` onward, in order."""
    records = await list_records(session, ctx.employee_id, ctx.schedule.leave_type_id)
    by_month = {r.accrual_month: r for r in records}
    reposted = 0
    for record in records:
        if record.accrual_month < from_month:
            continue
        prev = by_month.get(add_months(record.accrual_month, -1))
        await _post_month(session, ctx, record.accrual_month, record, prev.days_balance if prev is not None else 0.0)
        reposted += 1
    return reposted


# ---------------------------------------------------------------------------
# Public API (caller holds the employee ledger lock and commits)
# ---------------------------------------------------------------------------


async def process_month(
    session: AsyncSession,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    month: date,
    *,
    force: bool = False,
) -> LeaveAccrualRecord:
    """Compute and persist one month's accrual record.

    Every posted month is closed, so a second call returns the record
    unchanged unless ``force`` is set. Later usage changes reach closed
    months through ``repost_from``. Missing earlier accruable months are
    posted first so the balance chains from the real prior balance.
    """
    ctx = await build_context(session, employee_id, leave_type_id)
    target = month_start(month)
    if target > ctx.current_month:
        msg = "Cannot process accruals for a future month"
        raise InvalidMonthError(msg)
    return await _process(session, ctx, target, force=force)


async def ensure_up_to_date(
    session: AsyncSession,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
) -> LeaveAccrualRecord | None:
    """Catch the ledger up through the current month.

    Months from the one after the employee's start month through the
    current month (inclusive) are posted. Returns the current month's record,
    or None when the leave type does not accrue or nothing is accruable yet.
    """
    leave_type = await get_leave_type(session, leave_type_id)
    if not leave_type.is_accrual_bearing:
        return None
    ctx = await build_context(session, employee_id, leave_type_id)
    return await _catch_up(session, ctx, ctx.current_month)


async def repost_from(
    session: AsyncSession,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    month: date,
) -> int:
    """Recompute ledger records from ``month`` onward after approved usage changed.

    No-op for leave types that do not accrue. Returns the number of records
    recomputed.
    """
    leave_type = await get_leave_type(session, leave_type_id)
    if not leave_type.is_accrual_bearing:
        return 0
    ctx = await build_context(session, employee_id, leave_type_id)
    return await _repost(session, ctx, month_start(month))


# ---------------------------------------------------------------------------
# Manual corrections
# ---------------------------------------------------------------------------


def _append_note(existing: str | None, note: str) -> str:
    if existing:
        return f"{existing}\n{note}"
    return note


async def adjust_balance(
    session: AsyncSession,
    auth: AuthContext,
    employee_id: uuid.UUID,
    days: float,
    reason: str,
    leave_type_id: uuid.UUID | None = None,
) -> AccrualRecordResponse:
    """Post a signed manual adjustment on the latest ledger record.

    The ledger is caught up first. Without any record, the current month's
    record is created. The balance is floored at zero and a note describing
    the adjustment is appended to the record.
    """
    leave_type = await get_accrual_leave_type(session, leave_type_id)
    schedule = AccrualSchedule.from_leave_type(leave_type)
    employee = await require_employee(employee_id)

    async with employee_ledger_lock(session, employee_id):
        ctx = context_for(employee, schedule)
        await _catch_up(session, ctx, ctx.current_month)

        latest = await get_latest_record(session, employee_id, schedule.leave_type_id)
        if latest is None:
            latest = await _post_month(session, ctx, ctx.current_month, None, 0.0)

        before = model_to_audit_dict(latest)
        old_balance = latest.days_balance
        latest.days_adjusted += days
        prev = await get_record(session, employee_id, schedule.leave_type_id, add_months(latest.accrual_month, -1))
        latest = await _post_month(
            session, ctx, latest.accrual_month, latest, prev.days_balance if prev is not None else 0.0
        )
        latest.notes = _append_note(
            latest.notes,
            f"Manual adjustment: {days:+.2f} days. Previous balance: {old_balance:.2f}, "
            f"New balance: {latest.days_balance:.2f}. Reason: {reason}",
        )
        latest.updated_at = ctx.now
        await session.flush()
        await session.commit()

    await session.refresh(latest)
    response = build_record_response(latest)

    await record_audit_event(
        session,
        entity_type=AuditEntityType.ACCRUAL_RECORD,
        entity_id=response.id,
        action=AuditAction.ADJUST,
        performed_by=auth.user_id,
        before_json=before,
        after_json={
            "balance": response.days_balance,
            "adjustment": days,
            "reason": reason,
            "employee_id": str(employee_id),
        },
    )
    return response


async def add_manual_accrual(
    session: AsyncSession,
    auth: AuthContext,
    employee_id: uuid.UUID,
    month: str,
    days: float,
    reason: str,
    leave_type_id: uuid.UUID | None = None,
) -> AccrualRecordResponse:
    """Credit extra accrued days to a specific month and repost the months after it."""
    target = parse_month(month)
    leave_type = await get_accrual_leave_type(session, leave_type_id)
    schedule = AccrualSchedule.from_leave_type(leave_type)
    employee = await require_employee(employee_id)

    async with employee_ledger_lock(session, employee_id):
        ctx = context_for(employee, schedule)
        if target > ctx.current_month:
            msg = "Cannot post accrual to a future month"
            raise InvalidMonthError(msg)
        if ctx.start_month is None or target < ctx.start_month:
            msg = "Cannot post accrual before the employee's start month"
            raise InvalidMonthError(msg)

        await _catch_up(session, ctx, ctx.current_month)
        record = await _process(session, ctx, target)
        before = model_to_audit_dict(record)
        record.days_adjusted += days
        record.notes = _append_note(record.notes, f"Manual accrual added: {days:+.2f} days. Reason: {reason}")
        record.updated_at = ctx.now
        await session.flush()
        await _repost(session, ctx, target)
        await session.commit()

    await session.refresh(record)
    response = build_record_response(record)

    await record_audit_event(
        session,
        entity_type=AuditEntityType.ACCRUAL_RECORD,
        entity_id=response.id,
        action=AuditAction.CREATE,
        performed_by=auth.user_id,
        before_json=before,
        after_json={"accrual": days, "month": month, "reason": reason, "employee_id": str(employee_id)},
    )
    return response


# ---------------------------------------------------------------------------
# Monthly batch
# ---------------------------------------------------------------------------


async def process_accruals_for_month(
    session: AsyncSession,
    month: date | None = None,
) -> AccrualRunResult:
    """Run the monthly accrual batch for every employee and accrual-bearing leave type.

    Each employee is caught up through ``month`` (the current month by default)
    under its ledger lock and committed on its own; a failure is logged and
    counted without aborting the batch. Re-running is safe.
    """
    current = month_start(get_clock().today())
    target = month_start(month) if month is not None else current
    if target > current:
        msg = "Cannot process accruals for a future month"
        raise InvalidMonthError(msg)

    result = AccrualRunResult(month=target)
    schedules = await list_accrual_schedules(session)
    employees = await get_employee_service().list_employees()

    for employee in employees:
        for schedule in schedules:
            ctx = context_for(employee, schedule)
            if not ctx.accrues_in(target):
                result.skipped += 1
                continue
            try:
                async with employee_ledger_lock(session, employee.id):
                    await _catch_up(session, ctx, target)
                    await session.commit()
            except Exception:
                logger.exception(
                    "Error processing accrual for employee=%s leave_type=%s month=%s",
                    employee.id,
                    schedule.leave_type_id,
                    target.isoformat(),
                )
                await session.rollback()
                result.errors += 1
            else:
                result.processed += 1

    logger.info(
        "Accrual run complete for %s: processed=%d skipped=%d errors=%d",
        target.strftime("%Y-%m"),
        result.processed,
        result.skipped,
        result.errors,
    )
    return result

