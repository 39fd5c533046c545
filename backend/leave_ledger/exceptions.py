from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """Standard error response schema."""

    error: str
    code: str
    detail: str | None = None
    status_code: int
    retryable: bool = False
    context: dict[str, Any] | None = None


class AppError(Exception):
    """Base application exception."""

    code = "APP_ERROR"
    retryable = False

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        context: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.context = context
        super().__init__(self.message)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class InvalidDateRangeError(AppError):
    code = "INVALID_DATE_RANGE"

    def __init__(self, message: str = "start date must be before or equal to end date") -> None:
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST)


class PastDateError(AppError):
    code = "PAST_DATE"

    def __init__(self, message: str = "cannot apply for leave in the past") -> None:
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST)


class InvalidMonthError(AppError):
    code = "INVALID_MONTH"

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST)


class InvalidLeaveTypeError(AppError):
    """Leave type definition is inconsistent with its accrual policy."""

    code = "INVALID_LEAVE_TYPE"

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST)


# ---------------------------------------------------------------------------
# Not found
# ---------------------------------------------------------------------------


class UnknownLeaveTypeError(AppError):
    code = "UNKNOWN_LEAVE_TYPE"

    def __init__(self, message: str = "Leave type not found") -> None:
        super().__init__(message, status_code=status.HTTP_404_NOT_FOUND)


class RequestNotFoundError(AppError):
    code = "NOT_FOUND"

    def __init__(self, message: str = "Leave request not found") -> None:
        super().__init__(message, status_code=status.HTTP_404_NOT_FOUND)


class EmployeeNotFoundError(AppError):
    code = "EMPLOYEE_NOT_FOUND"

    def __init__(self, message: str = "Employee not found") -> None:
        super().__init__(message, status_code=status.HTTP_404_NOT_FOUND)


# ---------------------------------------------------------------------------
# Conflicts
# ---------------------------------------------------------------------------


class OverlapError(AppError):
    code = "OVERLAP"

    def __init__(self, message: str = "overlapping leave request exists") -> None:
        super().__init__(message, status_code=status.HTTP_409_CONFLICT)


class InsufficientBalanceError(AppError):
    code = "INSUFFICIENT_BALANCE"

    def __init__(self, current_balance: float, requested_days: float) -> None:
        super().__init__(
            f"Insufficient leave balance. You have {current_balance:g} days available, "
            f"but requested {requested_days:g} days.",
            status_code=status.HTTP_409_CONFLICT,
            context={"current_balance": current_balance, "requested_days": requested_days},
        )


class DuplicateLeaveTypeError(AppError):
    code = "DUPLICATE_LEAVE_TYPE"

    def __init__(self, message: str = "Leave type with this name already exists") -> None:
        super().__init__(message, status_code=status.HTTP_409_CONFLICT)


# ---------------------------------------------------------------------------
# Lifecycle state
# ---------------------------------------------------------------------------


class NotPendingError(AppError):
    code = "NOT_PENDING"

    def __init__(self, message: str = "Leave is not in pending status") -> None:
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST)


class NotOwnerError(AppError):
    code = "NOT_OWNER"

    def __init__(self, message: str = "You can only cancel your own leave requests") -> None:
        super().__init__(message, status_code=status.HTTP_403_FORBIDDEN)


class NotCancellableError(AppError):
    code = "NOT_CANCELLABLE"

    def __init__(self, message: str = "Only pending or approved leaves can be cancelled") -> None:
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST)


class AlreadyStartedError(AppError):
    code = "ALREADY_STARTED"

    def __init__(self, message: str = "Cannot cancel leave that has already started") -> None:
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST)


class RejectionReasonRequiredError(AppError):
    code = "REJECTION_REASON_REQUIRED"

    def __init__(self, message: str = "Rejection reason is required") -> None:
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST)


# ---------------------------------------------------------------------------
# Infrastructure (retryable)
# ---------------------------------------------------------------------------


class LedgerUnavailableError(AppError):
    code = "LEDGER_UNAVAILABLE"
    retryable = True

    def __init__(self, message: str = "Leave ledger is temporarily unavailable") -> None:
        super().__init__(message, status_code=status.HTTP_503_SERVICE_UNAVAILABLE)


class LedgerBusyError(AppError):
    code = "LEDGER_BUSY"
    retryable = True

    def __init__(self, message: str = "Leave ledger is busy for this employee, retry shortly") -> None:
        super().__init__(message, status_code=status.HTTP_503_SERVICE_UNAVAILABLE)


async def _app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=type(exc).__name__,
            code=exc.code,
            detail=exc.message,
            status_code=exc.status_code,
            retryable=exc.retryable,
            context=exc.context,
        ).model_dump(),
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=ErrorResponse(
            error="ValidationError",
            code="VALIDATION_ERROR",
            detail=str(exc.errors()),
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        ).model_dump(),
    )


async def _store_unavailable_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Store unavailable while handling %s %s", request.method, request.url.path)
    return await _app_exception_handler(request, LedgerUnavailableError())


def setup_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers on the application."""
    app.add_exception_handler(AppError, _app_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(OperationalError, _store_unavailable_handler)
    app.add_exception_handler(PoolTimeoutError, _store_unavailable_handler)
