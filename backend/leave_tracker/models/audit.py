# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

import sqlalchemy as sa
from sqlmodel import Field

from leave_tracker.models.base import UUIDBase, timestamp_field


class AuditLog(UUIDBase, table=True):
    """Append-only trail of leave and TOIL transitions.

    Also holds named inconsistencies such as ``TOIL_CREDIT_FAILED`` that need
    manual reconciliation. ``actor_id`` is empty for system-initiated rows.
    """

    __tablename__ = "audit_log"
    __table_args__ = (sa.Index("ix_audit_entity", "entity_type", "entity_id"),)

    entity_type: str = Field(max_length=50)
    entity_id: uuid.UUID
    action: str = Field(max_length=50, index=True)
    actor_id: uuid.UUID | None = None
    before_json: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    after_json: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    created_at: datetime = timestamp_field(index=True)
