# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query

from leave_ledger.api.deps import StaffDep
from leave_ledger.db import SessionDep
from leave_ledger.models.enums import AuditEntityType
from leave_ledger.schemas.audit import AuditEventListResponse
from leave_ledger.services.audit import list_audit_events

audit_router = APIRouter(prefix="/audit-events", tags=["audit"])


@audit_router.get("", response_model=AuditEventListResponse)
async def get_audit_events(
    session: SessionDep,
    _auth: StaffDep,
    entity_type: AuditEntityType | None = Query(default=None),
    entity_id: uuid.UUID | None = Query(default=None),
    performed_by: uuid.UUID | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
) -> AuditEventListResponse:
    """List audit events with optional filters (admin or manager)."""
    return await list_audit_events(
        session,
        entity_type=entity_type.value if entity_type is not None else None,
        entity_id=entity_id,
        performed_by=performed_by,
        offset=offset,
        limit=limit,
    )
