# ruff: noqa: TC001, TC003
from __future__ import annotations

import datetime
import uuid

from pydantic import BaseModel, Field

from leave_tracker.models.enums import ToilEntryStatus, ToilType


class CreateToilEntryPayload(BaseModel):
    """Request body for recording earned TOIL."""

    user_id: uuid.UUID | None = None
    date: datetime.date
    type: ToilType = ToilType.OVERTIME
    hours: float | None = None
    return_time: str | None = Field(default=None, pattern=r"^([01]?[0-9]|2[0-3]):[0-5][0-9]$")
    reason: str = Field(min_length=1, max_length=1000)


class ToilDecisionPayload(BaseModel):
    """Request body for rejecting a TOIL entry."""

    reason: str | None = Field(default=None, max_length=1000)


class ToilEntryResponse(BaseModel):
    """Response schema for a TOIL entry."""

    id: uuid.UUID
    user_id: uuid.UUID
    date: datetime.date
    type: ToilType
    hours: float
    reason: str
    status: ToilEntryStatus
    approved: bool
    leave_request_id: uuid.UUID | None
    approved_by: uuid.UUID | None
    approved_at: datetime.datetime | None
    rejection_reason: str | None
    previous_balance: float | None
    new_balance: float | None
    created_at: datetime.datetime


class ToilEntryListResponse(BaseModel):
    """List of TOIL entries."""

    items: list[ToilEntryResponse]
    total: int


class ToilBalanceResponse(BaseModel):
    """Stored TOIL balance compared with the sum of approved entries."""

    user_id: uuid.UUID
    stored_hours: float
    derived_hours: float
    in_sync: bool
