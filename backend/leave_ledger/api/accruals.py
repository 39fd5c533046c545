# ruff: noqa: B008, TC003
"""API endpoints for the accrual ledger: history, manual corrections and the monthly batch."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status

from leave_ledger.api.deps import AdminDep, AuthDep, StaffDep, ensure_self_or_staff
from leave_ledger.db import SessionDep
from leave_ledger.schemas.accrual import (
    AccrualHistoryResponse,
    AccrualRecordResponse,
    AccrualRunResponse,
    AdjustBalancePayload,
    ManualAccrualPayload,
)
from leave_ledger.services.accrual import add_manual_accrual, adjust_balance, parse_month, process_accruals_for_month
from leave_ledger.services.balance import get_accrual_history

# ---------------------------------------------------------------------------
# Employee ledger: /employees/{employee_id}/accruals
# ---------------------------------------------------------------------------

employee_accruals_router = APIRouter(
    prefix="/employees/{employee_id}/accruals",
    tags=["accruals"],
)


@employee_accruals_router.get("", response_model=AccrualHistoryResponse)
async def get_history(
    employee_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    leave_type_id: uuid.UUID | None = Query(default=None),
) -> AccrualHistoryResponse:
    """Monthly ledger records (newest first) with totals."""
    ensure_self_or_staff(auth, employee_id)
    return await get_accrual_history(session, employee_id, leave_type_id)


@employee_accruals_router.post("/adjust", response_model=AccrualRecordResponse)
async def adjust(
    employee_id: uuid.UUID,
    payload: AdjustBalancePayload,
    session: SessionDep,
    auth: StaffDep,
) -> AccrualRecordResponse:
    """Post a signed manual adjustment on the latest ledger record."""
    return await adjust_balance(session, auth, employee_id, payload.days, payload.reason, payload.leave_type_id)


@employee_accruals_router.post("/manual", response_model=AccrualRecordResponse, status_code=status.HTTP_201_CREATED)
async def manual_accrual(
    employee_id: uuid.UUID,
    payload: ManualAccrualPayload,
    session: SessionDep,
    auth: StaffDep,
) -> AccrualRecordResponse:
    """Credit extra accrued days to a specific month."""
    return await add_manual_accrual(
        session, auth, employee_id, payload.month, payload.days, payload.reason, payload.leave_type_id
    )


# ---------------------------------------------------------------------------
# Admin trigger: POST /accruals/process
# ---------------------------------------------------------------------------

accrual_run_router = APIRouter(prefix="/accruals", tags=["accruals"])


@accrual_run_router.post("/process", response_model=AccrualRunResponse)
async def process_accruals(
    session: SessionDep,
    _auth: AdminDep,
    month: str | None = Query(default=None, examples=["2025-01"]),
) -> AccrualRunResponse:
    """Run the monthly accrual batch for every employee (admin only).

    Defaults to the current month. Safe to re-run.
    """
    result = await process_accruals_for_month(session, parse_month(month) if month is not None else None)
    return AccrualRunResponse(
        month=result.month.strftime("%Y-%m"),
        processed=result.processed,
        skipped=result.skipped,
        errors=result.errors,
    )
