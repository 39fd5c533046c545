# ruff: noqa: TC003
"""Balance calculator: current, per-type and projected leave balances."""

from __future__ import annotations

import uuid
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlmodel import col

from leave_ledger.models.enums import AccrualPolicy, RequestStatus
from leave_ledger.models.leave_type import LeaveType
from leave_ledger.models.request import LeaveRequest
from leave_ledger.schemas.accrual import AccrualHistoryResponse
from leave_ledger.schemas.balance import BalanceListResponse, BalanceResponse, ProjectedBalanceResponse
from leave_ledger.services.accrual import (
    add_months,
    apply_annual_cap,
    build_context,
    build_record_response,
    ensure_up_to_date,
    get_latest_record,
    iter_months,
    list_records,
    month_start,
    overlap_days,
    require_employee,
)
from leave_ledger.services.clock import get_clock
from leave_ledger.services.leave_type import get_accrual_leave_type, get_leave_type
from leave_ledger.services.locking import employee_ledger_lock

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


async def _requests_of_type(
    session: AsyncSession,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    status: RequestStatus,
    *filters: object,
) -> list[LeaveRequest]:
    result = await session.execute(
        select(LeaveRequest).where(
            col(LeaveRequest.employee_id) == employee_id,
            col(LeaveRequest.leave_type_id) == leave_type_id,
            col(LeaveRequest.status) == status.value,
            *filters,
        )
    )
    return list(result.scalars().all())


async def flat_used_days(session: AsyncSession, employee_id: uuid.UUID, leave_type_id: uuid.UUID) -> float:
    """Total days of every approved request of a FLAT type."""
    approved = await _requests_of_type(session, employee_id, leave_type_id, RequestStatus.APPROVED)
    return float(sum(r.duration_days for r in approved))


async def _last_posted_month(session: AsyncSession, employee_id: uuid.UUID, leave_type_id: uuid.UUID) -> date:
    latest = await get_latest_record(session, employee_id, leave_type_id)
    if latest is not None:
        return latest.accrual_month
    return month_start(get_clock().today())


# ---------------------------------------------------------------------------
# Public API (no locking; callers that write hold the employee ledger lock)
# ---------------------------------------------------------------------------


async def current_balance(
    session: AsyncSession,
    employee_id: uuid.UUID,
    leave_type: LeaveType,
) -> float:
    """Current balance of one leave type.

    FLAT: the allowance minus every approved day of the type. MONTHLY_ACCRUAL:
    the ledger is caught up and the latest record's balance is returned (0
    without any record).
    """
    if not leave_type.is_accrual_bearing:
        used = await flat_used_days(session, employee_id, leave_type.id)
        return max(0.0, float(leave_type.max_days or 0) - used)

    await ensure_up_to_date(session, employee_id, leave_type.id)
    latest = await get_latest_record(session, employee_id, leave_type.id)
    return latest.days_balance if latest is not None else 0.0


async def booked_ahead_days(
    session: AsyncSession,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    after_month: date,
    *,
    start_on_or_before: date | None = None,
) -> float:
    """Approved days falling after ``after_month`` that the ledger has not posted yet."""
    window_start = add_months(month_start(after_month), 1)
    filters: list[object] = [col(LeaveRequest.end_date) >= window_start]
    if start_on_or_before is not None:
        filters.append(col(LeaveRequest.start_date) <= start_on_or_before)
    approved = await _requests_of_type(session, employee_id, leave_type_id, RequestStatus.APPROVED, *filters)
    return float(sum(overlap_days(r.start_date, r.end_date, window_start, date.max) for r in approved))


async def available_balance(session: AsyncSession, employee_id: uuid.UUID, leave_type: LeaveType) -> float:
    """Current balance less approved days not yet reflected in the ledger."""
    balance = await current_balance(session, employee_id, leave_type)
    if not leave_type.is_accrual_bearing:
        return balance
    last_posted = await _last_posted_month(session, employee_id, leave_type.id)
    return balance - await booked_ahead_days(session, employee_id, leave_type.id, last_posted)


async def projected_balance(
    session: AsyncSession,
    employee_id: uuid.UUID,
    leave_type: LeaveType,
    target_date: date,
) -> float:
    """Forecast balance on ``target_date``.

    Future monthly accruals (cap applied) are added to the current balance,
    then pending requests starting on or before the target date (assumed
    granted) and approved days not yet posted are subtracted. A past or
    present target returns the current balance. Floored at zero.
    """
    current = await current_balance(session, employee_id, leave_type)
    today = get_clock().today()
    if target_date <= today or not leave_type.is_accrual_bearing:
        return current

    ctx = await build_context(session, employee_id, leave_type.id)
    last_posted = await _last_posted_month(session, employee_id, leave_type.id)

    projected = current
    for month in iter_months(add_months(last_posted, 1), target_date):
        if ctx.accrues_in(month):
            projected += apply_annual_cap(projected, ctx.schedule.rate, ctx.schedule.annual_cap)

    pending = await _requests_of_type(
        session,
        employee_id,
        leave_type.id,
        RequestStatus.PENDING,
        col(LeaveRequest.start_date) <= target_date,
    )
    projected -= sum(r.duration_days for r in pending)
    projected -= await booked_ahead_days(
        session, employee_id, leave_type.id, last_posted, start_on_or_before=target_date
    )
    return max(0.0, projected)


async def _build_balance(session: AsyncSession, employee_id: uuid.UUID, leave_type: LeaveType) -> BalanceResponse:
    if not leave_type.is_accrual_bearing:
        used = await flat_used_days(session, employee_id, leave_type.id)
        return BalanceResponse(
            leave_type_id=leave_type.id,
            leave_type_name=leave_type.name,
            accrual_policy=AccrualPolicy.FLAT,
            max_days=leave_type.max_days,
            accrued_to_date=None,
            used_days=used,
            balance=max(0.0, float(leave_type.max_days or 0) - used),
        )

    await ensure_up_to_date(session, employee_id, leave_type.id)
    records = await list_records(session, employee_id, leave_type.id)
    return BalanceResponse(
        leave_type_id=leave_type.id,
        leave_type_name=leave_type.name,
        accrual_policy=AccrualPolicy.MONTHLY_ACCRUAL,
        max_days=None,
        accrued_to_date=sum(r.days_accrued + r.days_adjusted for r in records),
        used_days=sum(r.days_used for r in records),
        balance=records[-1].days_balance if records else 0.0,
    )


# ---------------------------------------------------------------------------
# Read endpoints (catch-up may write, so these lock and commit)
# ---------------------------------------------------------------------------


async def get_balance(session: AsyncSession, employee_id: uuid.UUID, leave_type_id: uuid.UUID) -> BalanceResponse:
    """Balance of one leave type for an employee."""
    await require_employee(employee_id)
    leave_type = await get_leave_type(session, leave_type_id)
    async with employee_ledger_lock(session, employee_id):
        response = await _build_balance(session, employee_id, leave_type)
        await session.commit()
    return response


async def get_employee_balances(session: AsyncSession, employee_id: uuid.UUID) -> BalanceListResponse:
    """Balances of every registered leave type for an employee."""
    await require_employee(employee_id)
    result = await session.execute(select(LeaveType).order_by(col(LeaveType.name)))
    leave_types = list(result.scalars().all())

    async with employee_ledger_lock(session, employee_id):
        items = [await _build_balance(session, employee_id, lt) for lt in leave_types]
        await session.commit()
    return BalanceListResponse(employee_id=employee_id, items=items, total=len(items))


async def get_projected_balance(
    session: AsyncSession,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    target_date: date,
) -> ProjectedBalanceResponse:
    """Current and forecast balance of one leave type."""
    await require_employee(employee_id)
    leave_type = await get_leave_type(session, leave_type_id)
    async with employee_ledger_lock(session, employee_id):
        current = await current_balance(session, employee_id, leave_type)
        projected = await projected_balance(session, employee_id, leave_type, target_date)
        await session.commit()
    return ProjectedBalanceResponse(
        employee_id=employee_id,
        leave_type_id=leave_type_id,
        target_date=target_date,
        current_balance=current,
        projected_balance=projected,
    )


async def get_accrual_history(
    session: AsyncSession,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID | None = None,
) -> AccrualHistoryResponse:
    """Ledger records (newest first) with totals and request counts."""
    employee = await require_employee(employee_id)
    leave_type = await get_accrual_leave_type(session, leave_type_id)
    today = get_clock().today()

    async with employee_ledger_lock(session, employee_id):
        await ensure_up_to_date(session, employee_id, leave_type.id)
        await session.commit()

    records = await list_records(session, employee_id, leave_type.id, newest_first=True)

    pending_result = await session.execute(
        select(func.count())
        .select_from(LeaveRequest)
        .where(
            col(LeaveRequest.employee_id) == employee_id,
            col(LeaveRequest.leave_type_id) == leave_type.id,
            col(LeaveRequest.status) == RequestStatus.PENDING.value,
        )
    )
    upcoming_result = await session.execute(
        select(func.count())
        .select_from(LeaveRequest)
        .where(
            col(LeaveRequest.employee_id) == employee_id,
            col(LeaveRequest.leave_type_id) == leave_type.id,
            col(LeaveRequest.status) == RequestStatus.APPROVED.value,
            col(LeaveRequest.start_date) > today,
        )
    )

    return AccrualHistoryResponse(
        employee_id=employee_id,
        employee_name=employee.full_name,
        leave_type_id=leave_type.id,
        total_accrued=sum(r.days_accrued + r.days_adjusted for r in records),
        total_used=sum(r.days_used for r in records),
        current_balance=records[0].days_balance if records else 0.0,
        pending_requests=pending_result.scalar_one(),
        upcoming_leaves=upcoming_result.scalar_one(),
        accruals=[build_record_response(r) for r in records],
    )
