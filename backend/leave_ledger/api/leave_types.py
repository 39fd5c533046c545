# ruff: noqa: TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, status

from leave_ledger.api.deps import AdminDep, AuthDep
from leave_ledger.db import SessionDep
from leave_ledger.schemas.leave_type import (
    CreateLeaveTypeRequest,
    LeaveTypeListResponse,
    LeaveTypeResponse,
    UpdateLeaveTypeRequest,
)
from leave_ledger.services import leave_type as leave_type_service
from leave_ledger.services.leave_type import build_leave_type_response

leave_types_router = APIRouter(prefix="/leave-types", tags=["leave-types"])


@leave_types_router.post("", response_model=LeaveTypeResponse, status_code=status.HTTP_201_CREATED)
async def create_leave_type(
    payload: CreateLeaveTypeRequest,
    session: SessionDep,
    auth: AdminDep,
) -> LeaveTypeResponse:
    """Register a leave type (admin only)."""
    return await leave_type_service.create_leave_type(session, auth, payload)


@leave_types_router.get("", response_model=LeaveTypeListResponse)
async def list_leave_types(
    session: SessionDep,
    _auth: AuthDep,
) -> LeaveTypeListResponse:
    """List all leave types."""
    return await leave_type_service.list_leave_types(session)


@leave_types_router.get("/{leave_type_id}", response_model=LeaveTypeResponse)
async def get_leave_type(
    leave_type_id: uuid.UUID,
    session: SessionDep,
    _auth: AuthDep,
) -> LeaveTypeResponse:
    """Get a single leave type."""
    leave_type = await leave_type_service.get_leave_type(session, leave_type_id)
    return build_leave_type_response(leave_type)


@leave_types_router.patch("/{leave_type_id}", response_model=LeaveTypeResponse)
async def update_leave_type(
    leave_type_id: uuid.UUID,
    payload: UpdateLeaveTypeRequest,
    session: SessionDep,
    auth: AdminDep,
) -> LeaveTypeResponse:
    """Rename a leave type or change its flat allowance (admin only)."""
    return await leave_type_service.update_leave_type(session, auth, leave_type_id, payload)
