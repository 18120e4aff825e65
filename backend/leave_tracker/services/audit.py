"""Append-only audit trail of leave and TOIL transitions."""

from __future__ import annotations

import enum
import logging
import uuid
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from leave_tracker.models.audit import AuditLog

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlmodel import SQLModel

    from leave_tracker.models.enums import AuditAction, AuditEntityType
    from leave_tracker.repositories.base import LeaveRepository


logger = logging.getLogger(__name__)


def _jsonable(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def snapshot(model: SQLModel) -> dict[str, Any]:
    """Row state as stored in the before/after audit columns."""
    return {key: _jsonable(value) for key, value in model.model_dump().items()}


async def record_transition(
    repository: LeaveRepository,
    entity_type: AuditEntityType,
    entity_id: uuid.UUID,
    action: AuditAction,
    *,
    actor_id: uuid.UUID | None = None,
    before: Mapping[str, Any] | None = None,
    after: Mapping[str, Any] | None = None,
) -> AuditLog:
    entry = await repository.add_audit_log(
        AuditLog(
            actor_id=actor_id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            before_json=None if before is None else {k: _jsonable(v) for k, v in before.items()},
            after_json=None if after is None else {k: _jsonable(v) for k, v in after.items()},
        )
    )
    logger.debug("Audit %s %s %s by %s", entity_type, entity_id, action, actor_id)
    return entry
