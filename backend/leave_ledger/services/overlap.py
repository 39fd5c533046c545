# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import col

from leave_ledger.exceptions import LedgerUnavailableError
from leave_ledger.models.enums import ACTIVE_REQUEST_STATUSES
from leave_ledger.models.request import LeaveRequest

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


def ranges_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    """Inclusive interval intersection."""
    return a_start <= b_end and a_end >= b_start


async def has_overlap(
    session: AsyncSession,
    employee_id: uuid.UUID,
    start_date: date,
    end_date: date,
    exclude_request_id: uuid.UUID | None = None,
) -> bool:
    """Return True if a pending or approved request of the employee intersects the range.

    Every leave type is considered. A store failure raises
    LedgerUnavailableError so the caller never mistakes it for "no overlap".
    """
    query = select(func.count()).select_from(LeaveRequest).where(
        col(LeaveRequest.employee_id) == employee_id,
        col(LeaveRequest.status).in_([s.value for s in ACTIVE_REQUEST_STATUSES]),
        col(LeaveRequest.start_date) <= end_date,
        col(LeaveRequest.end_date) >= start_date,
    )
    if exclude_request_id is not None:
        query = query.where(col(LeaveRequest.id) != exclude_request_id)

    try:
        result = await session.execute(query)
    except SQLAlchemyError as exc:
        logger.exception("Overlap check failed for employee=%s", employee_id)
        raise LedgerUnavailableError("Could not verify overlapping leave requests") from exc
    return result.scalar_one() > 0
