# ruff: noqa: TC003
"""Leave request lifecycle: apply, approve, reject and cancel.

Every balance-affecting transition runs under the employee's ledger lock:
catch up the ledger, decide, write, then commit once. Audit events are
recorded after the commit and never affect the transition's outcome.
"""

from __future__ import annotations

import uuid
from datetime import date, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlmodel import col

from leave_ledger.exceptions import (
    AlreadyStartedError,
    InsufficientBalanceError,
    InvalidDateRangeError,
    NotCancellableError,
    NotOwnerError,
    NotPendingError,
    OverlapError,
    PastDateError,
    RejectionReasonRequiredError,
    RequestNotFoundError,
)
from leave_ledger.models.enums import ACTIVE_REQUEST_STATUSES, AuditAction, AuditEntityType, RequestStatus
from leave_ledger.models.request import LeaveRequest
from leave_ledger.schemas.request import LeaveRequestListResponse, LeaveRequestResponse
from leave_ledger.services.accrual import repost_from, require_employee
from leave_ledger.services.audit import model_to_audit_dict, record_audit_event
from leave_ledger.services.balance import available_balance, current_balance, projected_balance
from leave_ledger.services.clock import get_clock
from leave_ledger.services.leave_type import get_leave_type
from leave_ledger.services.locking import employee_ledger_lock
from leave_ledger.services.overlap import has_overlap

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_ledger.schemas.auth import AuthContext
    from leave_ledger.schemas.request import ApplyLeavePayload

# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_request_response(request: LeaveRequest) -> LeaveRequestResponse:
    """Map a request model to its response schema."""
    return LeaveRequestResponse(
        id=request.id,
        employee_id=request.employee_id,
        leave_type_id=request.leave_type_id,
        start_date=request.start_date,
        end_date=request.end_date,
        duration_days=request.duration_days,
        reason=request.reason,
        status=RequestStatus(request.status),
        approved_by=request.approved_by,
        approved_at=request.approved_at,
        rejection_reason=request.rejection_reason,
        cancelled_at=request.cancelled_at,
        created_at=request.created_at,
    )


async def _get_request_or_404(session: AsyncSession, request_id: uuid.UUID) -> LeaveRequest:
    request = await session.get(LeaveRequest, request_id)
    if request is None:
        raise RequestNotFoundError
    return request


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


async def apply_leave(
    session: AsyncSession,
    employee_id: uuid.UUID,
    payload: ApplyLeavePayload,
) -> LeaveRequestResponse:
    """Create a PENDING leave request.

    1. Validate the date range and reject past start dates.
    2. Resolve the leave type and the employee.
    3. Under the ledger lock, reject overlaps with any active request.
    4. Check the duration against the projected balance (future start,
       accrual-bearing type) or the current balance otherwise.
    5. Persist, commit, audit CREATE.
    """
    today = get_clock().today()
    if payload.start_date > payload.end_date:
        raise InvalidDateRangeError
    if payload.start_date < today:
        raise PastDateError

    leave_type = await get_leave_type(session, payload.leave_type_id)
    await require_employee(employee_id)
    duration = (payload.end_date - payload.start_date).days + 1

    async with employee_ledger_lock(session, employee_id):
        if await has_overlap(session, employee_id, payload.start_date, payload.end_date):
            raise OverlapError

        if leave_type.is_accrual_bearing and payload.start_date > today:
            balance = await projected_balance(session, employee_id, leave_type, payload.start_date)
        else:
            balance = await current_balance(session, employee_id, leave_type)
        if duration > balance:
            raise InsufficientBalanceError(balance, duration)

        leave_request = LeaveRequest(
            employee_id=employee_id,
            leave_type_id=leave_type.id,
            start_date=payload.start_date,
            end_date=payload.end_date,
            reason=payload.reason,
            status=RequestStatus.PENDING.value,
        )
        session.add(leave_request)
        await session.commit()

    await session.refresh(leave_request)
    response = _build_request_response(leave_request)

    await record_audit_event(
        session,
        entity_type=AuditEntityType.LEAVE_REQUEST,
        entity_id=response.id,
        action=AuditAction.CREATE,
        performed_by=employee_id,
        after_json=response.model_dump(mode="json"),
    )
    return response


async def approve_leave(
    session: AsyncSession,
    request_id: uuid.UUID,
    approver_id: uuid.UUID,
) -> LeaveRequestResponse:
    """Approve a PENDING request after re-validating the current balance.

    The check uses the up-to-date ledger, less approved days the ledger has
    not posted yet. Approved usage inside posted months is reposted so the
    ledger reflects it immediately.
    """
    leave_request = await _get_request_or_404(session, request_id)
    leave_type = await get_leave_type(session, leave_request.leave_type_id)

    async with employee_ledger_lock(session, leave_request.employee_id):
        await session.refresh(leave_request)
        if leave_request.status != RequestStatus.PENDING.value:
            raise NotPendingError

        balance = await available_balance(session, leave_request.employee_id, leave_type)
        if leave_request.duration_days > balance:
            raise InsufficientBalanceError(balance, leave_request.duration_days)

        before = model_to_audit_dict(leave_request)
        leave_request.status = RequestStatus.APPROVED.value
        leave_request.approved_by = approver_id
        leave_request.approved_at = get_clock().now()
        await session.flush()

        await repost_from(session, leave_request.employee_id, leave_type.id, leave_request.start_date)
        await session.commit()

    await session.refresh(leave_request)
    response = _build_request_response(leave_request)

    await record_audit_event(
        session,
        entity_type=AuditEntityType.LEAVE_REQUEST,
        entity_id=response.id,
        action=AuditAction.APPROVE,
        performed_by=approver_id,
        before_json=before,
        after_json=response.model_dump(mode="json"),
    )
    return response


async def reject_leave(
    session: AsyncSession,
    request_id: uuid.UUID,
    approver_id: uuid.UUID,
    reason: str,
) -> LeaveRequestResponse:
    """Reject a PENDING request with a mandatory reason. Balances are unaffected."""
    if not reason or not reason.strip():
        raise RejectionReasonRequiredError

    leave_request = await _get_request_or_404(session, request_id)

    async with employee_ledger_lock(session, leave_request.employee_id):
        await session.refresh(leave_request)
        if leave_request.status != RequestStatus.PENDING.value:
            raise NotPendingError

        before = model_to_audit_dict(leave_request)
        leave_request.status = RequestStatus.REJECTED.value
        leave_request.rejection_reason = reason.strip()
        leave_request.approved_by = approver_id
        leave_request.approved_at = get_clock().now()
        await session.commit()

    await session.refresh(leave_request)
    response = _build_request_response(leave_request)

    await record_audit_event(
        session,
        entity_type=AuditEntityType.LEAVE_REQUEST,
        entity_id=response.id,
        action=AuditAction.REJECT,
        performed_by=approver_id,
        before_json=before,
        after_json=response.model_dump(mode="json"),
    )
    return response


async def cancel_leave(
    session: AsyncSession,
    request_id: uuid.UUID,
    employee_id: uuid.UUID,
) -> LeaveRequestResponse:
    """Cancel a request on behalf of its owner.

    PENDING requests can always be cancelled. APPROVED requests only while
    their start date is still in the future; cancelling one restores the
    ledger months it had consumed.
    """
    leave_request = await _get_request_or_404(session, request_id)
    if leave_request.employee_id != employee_id:
        raise NotOwnerError

    async with employee_ledger_lock(session, employee_id):
        await session.refresh(leave_request)
        if leave_request.status not in {s.value for s in ACTIVE_REQUEST_STATUSES}:
            raise NotCancellableError

        clock = get_clock()
        was_approved = leave_request.status == RequestStatus.APPROVED.value
        if was_approved and leave_request.start_date <= clock.today():
            raise AlreadyStartedError

        before = model_to_audit_dict(leave_request)
        leave_request.status = RequestStatus.CANCELLED.value
        leave_request.cancelled_at = clock.now()
        await session.flush()

        if was_approved:
            await repost_from(session, employee_id, leave_request.leave_type_id, leave_request.start_date)
        await session.commit()

    await session.refresh(leave_request)
    response = _build_request_response(leave_request)

    await record_audit_event(
        session,
        entity_type=AuditEntityType.LEAVE_REQUEST,
        entity_id=response.id,
        action=AuditAction.CANCEL,
        performed_by=employee_id,
        before_json=before,
        after_json=response.model_dump(mode="json"),
    )
    return response


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def get_request(session: AsyncSession, auth: AuthContext, request_id: uuid.UUID) -> LeaveRequestResponse:
    """Get a single request. Employees only see their own."""
    leave_request = await _get_request_or_404(session, request_id)
    if not auth.is_staff and leave_request.employee_id != auth.user_id:
        raise RequestNotFoundError
    return _build_request_response(leave_request)


async def list_requests(
    session: AsyncSession,
    auth: AuthContext,
    status_filter: RequestStatus | None = None,
    leave_type_id: uuid.UUID | None = None,
    employee_id: uuid.UUID | None = None,
    offset: int = 0,
    limit: int = 50,
) -> LeaveRequestListResponse:
    """List requests with optional filters, newest first.

    Non-staff callers are restricted to their own requests.
    """
    if not auth.is_staff:
        employee_id = auth.user_id

    filters = []
    if status_filter is not None:
        filters.append(col(LeaveRequest.status) == status_filter.value)
    if leave_type_id is not None:
        filters.append(col(LeaveRequest.leave_type_id) == leave_type_id)
    if employee_id is not None:
        filters.append(col(LeaveRequest.employee_id) == employee_id)

    count_result = await session.execute(select(func.count()).select_from(LeaveRequest).where(*filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(LeaveRequest)
        .where(*filters)
        .order_by(col(LeaveRequest.created_at).desc(), col(LeaveRequest.id))
        .offset(offset)
        .limit(limit)
    )
    return LeaveRequestListResponse(
        items=[_build_request_response(r) for r in result.scalars().all()],
        total=total,
    )


async def list_upcoming(
    session: AsyncSession,
    auth: AuthContext,
    days: int = 30,
) -> LeaveRequestListResponse:
    """Approved leave starting within the next ``days`` days, soonest first."""
    today = get_clock().today()
    horizon: date = today + timedelta(days=days)

    filters = [
        col(LeaveRequest.status) == RequestStatus.APPROVED.value,
        col(LeaveRequest.start_date) >= today,
        col(LeaveRequest.start_date) <= horizon,
    ]
    if not auth.is_staff:
        filters.append(col(LeaveRequest.employee_id) == auth.user_id)

    result = await session.execute(
        select(LeaveRequest).where(*filters).order_by(col(LeaveRequest.start_date), col(LeaveRequest.id))
    )
    items = [_build_request_response(r) for r in result.scalars().all()]
    return LeaveRequestListResponse(items=items, total=len(items))
