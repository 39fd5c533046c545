# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status

from leave_ledger.api.deps import AuthDep, StaffDep
from leave_ledger.db import SessionDep
from leave_ledger.models.enums import RequestStatus
from leave_ledger.schemas.request import (
    ApplyLeavePayload,
    LeaveRequestListResponse,
    LeaveRequestResponse,
    RejectPayload,
)
from leave_ledger.services import request as request_service

requests_router = APIRouter(prefix="/leave-requests", tags=["leave-requests"])


@requests_router.post("", response_model=LeaveRequestResponse, status_code=status.HTTP_201_CREATED)
async def apply_leave(
    payload: ApplyLeavePayload,
    session: SessionDep,
    auth: AuthDep,
) -> LeaveRequestResponse:
    """Apply for leave as the authenticated employee."""
    return await request_service.apply_leave(session, auth.user_id, payload)


@requests_router.get("", response_model=LeaveRequestListResponse)
async def list_requests(
    session: SessionDep,
    auth: AuthDep,
    status_filter: RequestStatus | None = Query(default=None, alias="status"),
    leave_type_id: uuid.UUID | None = Query(default=None),
    employee_id: uuid.UUID | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> LeaveRequestListResponse:
    """List leave requests with optional filters."""
    return await request_service.list_requests(
        session, auth, status_filter, leave_type_id, employee_id, offset, limit
    )


@requests_router.get("/upcoming", response_model=LeaveRequestListResponse)
async def list_upcoming(
    session: SessionDep,
    auth: AuthDep,
    days: int = Query(default=30, ge=1, le=365),
) -> LeaveRequestListResponse:
    """Approved leave starting within the next ``days`` days."""
    return await request_service.list_upcoming(session, auth, days)


@requests_router.get("/{request_id}", response_model=LeaveRequestResponse)
async def get_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> LeaveRequestResponse:
    """Get a single leave request."""
    return await request_service.get_request(session, auth, request_id)


@requests_router.post("/{request_id}/approve", response_model=LeaveRequestResponse)
async def approve_leave(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: StaffDep,
) -> LeaveRequestResponse:
    """Approve a pending request (admin or manager)."""
    return await request_service.approve_leave(session, request_id, auth.user_id)


@requests_router.post("/{request_id}/reject", response_model=LeaveRequestResponse)
async def reject_leave(
    request_id: uuid.UUID,
    payload: RejectPayload,
    session: SessionDep,
    auth: StaffDep,
) -> LeaveRequestResponse:
    """Reject a pending request with a reason (admin or manager)."""
    return await request_service.reject_leave(session, request_id, auth.user_id, payload.reason)


@requests_router.post("/{request_id}/cancel", response_model=LeaveRequestResponse)
async def cancel_leave(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> LeaveRequestResponse:
    """Cancel one of the authenticated employee's own requests."""
    return await request_service.cancel_leave(session, request_id, auth.user_id)
