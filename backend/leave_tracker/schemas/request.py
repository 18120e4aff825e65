# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime

from pydantic import BaseModel, Field

from leave_tracker.models.enums import LeaveStatus, LeaveType

# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class SubmitLeavePayload(BaseModel):
    """Request body for submitting a leave request."""

    start_date: date
    end_date: date
    type: LeaveType = LeaveType.ANNUAL
    reason: str | None = Field(default=None, max_length=1000)
    hours: float | None = Field(default=None, description="TOIL hours claimed; TOIL requests only")


class RejectPayload(BaseModel):
    """Request body for rejecting a leave request."""

    reason: str = Field(default="", max_length=1000)


class BulkDecisionPayload(BaseModel):
    """Request body for bulk approve/reject."""

    request_ids: list[uuid.UUID] = Field(min_length=1, max_length=200)
    reason: str | None = Field(default=None, max_length=1000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class LeaveRequestResponse(BaseModel):
    """Response schema for a single leave request."""

    id: uuid.UUID
    user_id: uuid.UUID
    start_date: date
    end_date: date
    type: LeaveType
    status: LeaveStatus
    hours: float | None
    comments: str | None
    approved_by: uuid.UUID | None
    approved_at: datetime | None
    created_at: datetime
    updated_at: datetime


class LeaveRequestListResponse(BaseModel):
    """List of leave requests."""

    items: list[LeaveRequestResponse]
    total: int


class ConflictResult(BaseModel):
    """Advisory coverage check among the protected user set."""

    has_conflict: bool
    conflicting_users: list[str] = Field(default_factory=list)


class SubmitResult(BaseModel):
    """Outcome of a successful submission."""

    request: LeaveRequestResponse
    working_days: int
    remaining_after: float | None = None
    conflict: ConflictResult | None = None


class BulkItemResult(BaseModel):
    """Per-item outcome of a bulk decision."""

    request_id: uuid.UUID
    success: bool
    status: LeaveStatus | None = None
    error: str | None = None


class BulkResult(BaseModel):
    """Aggregated outcome of a bulk decision."""

    items: list[BulkItemResult]
    succeeded: int
    failed: int
