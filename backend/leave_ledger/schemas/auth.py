# ruff: noqa: TC003
from __future__ import annotations

import uuid

from pydantic import BaseModel

STAFF_ROLES = frozenset({"admin", "manager"})


class AuthContext(BaseModel):
    """Dev auth context extracted from request headers."""

    user_id: uuid.UUID
    role: str = "employee"

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES
