"""Audit recorder: append-only events written after the business transaction commits."""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select
from sqlmodel import col

from leave_ledger.config import get_settings
from leave_ledger.models.audit import AuditEvent
from leave_ledger.schemas.audit import AuditEventListResponse, AuditEventResponse

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlmodel import SQLModel

    from leave_ledger.models.enums import AuditAction, AuditEntityType

logger = logging.getLogger(__name__)


def model_to_audit_dict(model: SQLModel) -> dict[str, Any]:
    """Serialize a SQLModel instance to a JSON-safe dict for audit logging."""
    data: dict[str, Any] = {}
    for key, value in model.model_dump().items():
        if isinstance(value, uuid.UUID):
            data[key] = str(value)
        elif isinstance(value, (datetime, date)):
            data[key] = value.isoformat()
        else:
            data[key] = value
    return data


async def record_audit_event(
    session: AsyncSession,
    *,
    entity_type: AuditEntityType,
    entity_id: uuid.UUID,
    action: AuditAction,
    performed_by: uuid.UUID,
    before_json: dict[str, Any] | None = None,
    after_json: dict[str, Any] | None = None,
) -> AuditEvent | None:
    """Append an audit event in its own transaction.

    Call only after the triggering operation has committed. Failures are
    logged and rolled back; they never propagate to the caller. Objects
    loaded in ``session`` are expired by that rollback, so callers build
    their responses before recording.
    """
    if not get_settings().audit_enabled:
        return None

    try:
        event = AuditEvent(
            entity_type=entity_type.value,
            entity_id=entity_id,
            action=action.value,
            performed_by=performed_by,
            before_json=before_json,
            after_json=after_json,
        )
        session.add(event)
        await session.commit()
    except Exception:
        logger.exception("Failed to record audit event %s on %s=%s", action.value, entity_type.value, entity_id)
        await session.rollback()
        return None
    return event


def _build_event_response(event: AuditEvent) -> AuditEventResponse:
    return AuditEventResponse(
        id=event.id,
        entity_type=event.entity_type,
        entity_id=event.entity_id,
        action=event.action,
        performed_by=event.performed_by,
        before_json=event.before_json,
        after_json=event.after_json,
        created_at=event.created_at,
    )


async def list_audit_events(
    session: AsyncSession,
    *,
    entity_type: str | None = None,
    entity_id: uuid.UUID | None = None,
    performed_by: uuid.UUID | None = None,
    offset: int = 0,
    limit: int = 50,
) -> AuditEventListResponse:
    """List audit events in chronological order with optional filters."""
    filters = []
    if entity_type is not None:
        filters.append(col(AuditEvent.entity_type) == entity_type)
    if entity_id is not None:
        filters.append(col(AuditEvent.entity_id) == entity_id)
    if performed_by is not None:
        filters.append(col(AuditEvent.performed_by) == performed_by)

    count_result = await session.execute(select(func.count()).select_from(AuditEvent).where(*filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(AuditEvent)
        .where(*filters)
        .order_by(col(AuditEvent.created_at), col(AuditEvent.id))
        .offset(offset)
        .limit(limit)
    )
    return AuditEventListResponse(
        items=[_build_event_response(e) for e in result.scalars().all()],
        total=total,
    )
