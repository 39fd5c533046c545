# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel


class AuditEventResponse(BaseModel):
    """A single audit event."""

    id: uuid.UUID
    entity_type: str
    entity_id: uuid.UUID
    action: str
    performed_by: uuid.UUID
    before_json: dict[str, Any] | None
    after_json: dict[str, Any] | None
    created_at: datetime


class AuditEventListResponse(BaseModel):
    """Paginated audit events, oldest first."""

    items: list[AuditEventResponse]
    total: int
