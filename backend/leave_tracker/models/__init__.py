from sqlmodel import SQLModel

from leave_tracker.models.audit import AuditLog
from leave_tracker.models.base import TimestampMixin, UUIDBase
from leave_tracker.models.enums import (
    AuditAction,
    AuditEntityType,
    LeaveStatus,
    LeaveType,
    ToilEntryStatus,
    ToilType,
    UserRole,
)
from leave_tracker.models.request import LeaveRequest
from leave_tracker.models.toil import ToilEntry
from leave_tracker.models.user import User

__all__ = [
    "AuditAction",
    "AuditEntityType",
    "AuditLog",
    "LeaveRequest",
    "LeaveStatus",
    "LeaveType",
    "SQLModel",
    "TimestampMixin",
    "ToilEntry",
    "ToilEntryStatus",
    "ToilType",
    "UUIDBase",
    "User",
    "UserRole",
]
