# ruff: noqa: TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter

from leave_ledger.api.deps import AdminDep, AuthDep, StaffDep, ensure_self_or_staff
from leave_ledger.schemas.employee import EmployeeListResponse, EmployeeResponse, UpsertEmployeeRequest
from leave_ledger.services.accrual import require_employee
from leave_ledger.services.clock import get_clock
from leave_ledger.services.employee import EmployeeInfo, get_employee_service

employees_router = APIRouter(prefix="/employees", tags=["employees"])


def _build_employee_response(employee: EmployeeInfo) -> EmployeeResponse:
    return EmployeeResponse(
        id=employee.id,
        first_name=employee.first_name,
        last_name=employee.last_name,
        email=employee.email,
        department=employee.department,
        hire_date=employee.hire_date,
        employment_start_date=employee.employment_start_date,
        accrual_start_date=employee.accrual_start_date(),
    )


@employees_router.put("/{employee_id}", response_model=EmployeeResponse)
async def upsert_employee(
    employee_id: uuid.UUID,
    payload: UpsertEmployeeRequest,
    _auth: AdminDep,
) -> EmployeeResponse:
    """Create or update an employee in the stub profile service (admin only)."""
    svc = get_employee_service()
    existing = await svc.get_employee(employee_id)
    employee = EmployeeInfo(
        id=employee_id,
        first_name=payload.first_name,
        last_name=payload.last_name,
        email=payload.email,
        department=payload.department,
        hire_date=payload.hire_date,
        employment_start_date=payload.employment_start_date,
        created_at=existing.created_at if existing is not None else get_clock().now(),
    )
    svc.seed(employee)  # ty: ignore[unresolved-attribute]
    return _build_employee_response(employee)


@employees_router.get("/{employee_id}", response_model=EmployeeResponse)
async def get_employee(
    employee_id: uuid.UUID,
    auth: AuthDep,
) -> EmployeeResponse:
    """Get employee info from the profile service."""
    ensure_self_or_staff(auth, employee_id)
    return _build_employee_response(await require_employee(employee_id))


@employees_router.get("", response_model=EmployeeListResponse)
async def list_employees(
    _auth: StaffDep,
) -> EmployeeListResponse:
    """List all employees known to the profile service."""
    employees = await get_employee_service().list_employees()
    items = [_build_employee_response(e) for e in employees]
    return EmployeeListResponse(items=items, total=len(items))
