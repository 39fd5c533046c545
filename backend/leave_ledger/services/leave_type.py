# ruff: noqa: TC003
"""Leave type registry: the catalog of leave categories and their entitlement model."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlmodel import col

from leave_ledger.config import get_settings
from leave_ledger.exceptions import (
    DuplicateLeaveTypeError,
    InvalidLeaveTypeError,
    UnknownLeaveTypeError,
)
from leave_ledger.models.enums import AccrualPolicy, AuditAction, AuditEntityType
from leave_ledger.models.leave_type import LeaveType
from leave_ledger.schemas.leave_type import LeaveTypeListResponse, LeaveTypeResponse
from leave_ledger.services.audit import model_to_audit_dict, record_audit_event

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from leave_ledger.schemas.auth import AuthContext
    from leave_ledger.schemas.leave_type import CreateLeaveTypeRequest, UpdateLeaveTypeRequest


@dataclass(frozen=True)
class AccrualSchedule:
    """Accrual parameters of a MONTHLY_ACCRUAL leave type, detached from the session."""

    leave_type_id: uuid.UUID
    rate: float
    annual_cap: float

    @classmethod
    def from_leave_type(cls, leave_type: LeaveType) -> AccrualSchedule:
        if not leave_type.is_accrual_bearing:
            msg = f"Leave type {leave_type.name} does not accrue"
            raise InvalidLeaveTypeError(msg)
        settings = get_settings()
        rate = leave_type.accrual_rate_days
        cap = leave_type.annual_cap_days
        return cls(
            leave_type_id=leave_type.id,
            rate=rate if rate is not None else settings.default_accrual_rate_days,
            annual_cap=cap if cap is not None else settings.default_annual_cap_days,
        )


def build_leave_type_response(leave_type: LeaveType) -> LeaveTypeResponse:
    """Map a leave type model to its response schema."""
    return LeaveTypeResponse(
        id=leave_type.id,
        name=leave_type.name,
        accrual_policy=AccrualPolicy(leave_type.accrual_policy),
        max_days=leave_type.max_days,
        accrual_rate_days=leave_type.accrual_rate_days,
        annual_cap_days=leave_type.annual_cap_days,
        created_at=leave_type.created_at,
    )


async def get_leave_type(session: AsyncSession, leave_type_id: uuid.UUID) -> LeaveType:
    """Fetch a leave type. Raises UnknownLeaveTypeError if absent."""
    leave_type = await session.get(LeaveType, leave_type_id)
    if leave_type is None:
        raise UnknownLeaveTypeError
    return leave_type


async def get_accrual_leave_type(session: AsyncSession, leave_type_id: uuid.UUID | None = None) -> LeaveType:
    """Resolve the accrual-bearing leave type.

    With an explicit id, that type must be MONTHLY_ACCRUAL. Without one, the
    oldest MONTHLY_ACCRUAL type is used.
    """
    if leave_type_id is not None:
        leave_type = await get_leave_type(session, leave_type_id)
        if not leave_type.is_accrual_bearing:
            msg = f"Leave type {leave_type.name} is not accrual-bearing"
            raise InvalidLeaveTypeError(msg)
        return leave_type

    result = await session.execute(
        select(LeaveType)
        .where(col(LeaveType.accrual_policy) == AccrualPolicy.MONTHLY_ACCRUAL.value)
        .order_by(col(LeaveType.created_at), col(LeaveType.name))
        .limit(1)
    )
    leave_type = result.scalar_one_or_none()
    if leave_type is None:
        raise UnknownLeaveTypeError("No accrual-bearing leave type is configured")
    return leave_type


async def list_accrual_schedules(session: AsyncSession) -> list[AccrualSchedule]:
    """Return the schedule of every accrual-bearing leave type."""
    result = await session.execute(
        select(LeaveType).where(col(LeaveType.accrual_policy) == AccrualPolicy.MONTHLY_ACCRUAL.value)
    )
    return [AccrualSchedule.from_leave_type(lt) for lt in result.scalars().all()]


async def _ensure_unique_name(session: AsyncSession, name: str, exclude_id: uuid.UUID | None = None) -> None:
    query = select(LeaveType).where(col(LeaveType.name) == name)
    if exclude_id is not None:
        query = query.where(col(LeaveType.id) != exclude_id)
    existing = await session.execute(query)
    if existing.scalar_one_or_none() is not None:
        raise DuplicateLeaveTypeError


async def create_leave_type(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateLeaveTypeRequest,
) -> LeaveTypeResponse:
    """Register a new leave type."""
    await _ensure_unique_name(session, payload.name)

    settings = get_settings()
    if payload.accrual_policy == AccrualPolicy.MONTHLY_ACCRUAL:
        leave_type = LeaveType(
            name=payload.name,
            accrual_policy=AccrualPolicy.MONTHLY_ACCRUAL.value,
            max_days=payload.max_days,
            accrual_rate_days=payload.accrual_rate_days or settings.default_accrual_rate_days,
            annual_cap_days=payload.annual_cap_days or settings.default_annual_cap_days,
        )
    else:
        leave_type = LeaveType(
            name=payload.name,
            accrual_policy=AccrualPolicy.FLAT.value,
            max_days=payload.max_days,
        )

    session.add(leave_type)
    await session.commit()
    await session.refresh(leave_type)
    response = build_leave_type_response(leave_type)

    await record_audit_event(
        session,
        entity_type=AuditEntityType.LEAVE_TYPE,
        entity_id=response.id,
        action=AuditAction.CREATE,
        performed_by=auth.user_id,
        after_json=response.model_dump(mode="json"),
    )
    return response


async def update_leave_type(
    session: AsyncSession,
    auth: AuthContext,
    leave_type_id: uuid.UUID,
    payload: UpdateLeaveTypeRequest,
) -> LeaveTypeResponse:
    """Administrative edit of a leave type's name or allowance.

    The accrual policy cannot change once ledger records may reference the type.
    """
    leave_type = await get_leave_type(session, leave_type_id)
    before = model_to_audit_dict(leave_type)

    if payload.max_days is not None and leave_type.is_accrual_bearing:
        msg = "max_days does not apply to accrual-bearing leave types"
        raise InvalidLeaveTypeError(msg)
    if payload.name is not None and payload.name != leave_type.name:
        await _ensure_unique_name(session, payload.name, exclude_id=leave_type.id)

    if payload.name is not None:
        leave_type.name = payload.name
    if payload.max_days is not None:
        leave_type.max_days = payload.max_days

    await session.commit()
    await session.refresh(leave_type)
    response = build_leave_type_response(leave_type)

    await record_audit_event(
        session,
        entity_type=AuditEntityType.LEAVE_TYPE,
        entity_id=response.id,
        action=AuditAction.UPDATE,
        performed_by=auth.user_id,
        before_json=before,
        after_json=response.model_dump(mode="json"),
    )
    return response


async def list_leave_types(session: AsyncSession) -> LeaveTypeListResponse:
    """List every registered leave type by name."""
    result = await session.execute(select(LeaveType).order_by(col(LeaveType.name)))
    items = [build_leave_type_response(lt) for lt in result.scalars().all()]
    return LeaveTypeListResponse(items=items, total=len(items))
