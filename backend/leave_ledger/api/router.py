from fastapi import APIRouter

from leave_ledger.api.accruals import accrual_run_router, employee_accruals_router
from leave_ledger.api.audit import audit_router
from leave_ledger.api.balances import employee_balance_router
from leave_ledger.api.employees import employees_router
from leave_ledger.api.leave_types import leave_types_router
from leave_ledger.api.requests import requests_router

api_router = APIRouter()
api_router.include_router(leave_types_router)
api_router.include_router(requests_router)
api_router.include_router(employee_balance_router)
api_router.include_router(employee_accruals_router)
api_router.include_router(accrual_run_router)
api_router.include_router(employees_router)
api_router.include_router(audit_router)
