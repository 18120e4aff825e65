# ruff: noqa: TC003
from __future__ import annotations

import uuid

from pydantic import BaseModel

from leave_tracker.models.enums import UserRole


class Principal(BaseModel):
    """Authenticated caller supplied by the identity collaborator."""

    id: uuid.UUID
    role: UserRole = UserRole.MEMBER
    email: str | None = None
    name: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
