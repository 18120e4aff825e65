# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date

from pydantic import BaseModel

from leave_tracker.models.enums import LeaveType

# ---------------------------------------------------------------------------
# Balance response schemas
# ---------------------------------------------------------------------------


class BalanceHistoryItem(BaseModel):
    """An approved request that contributed to the balance."""

    request_id: uuid.UUID
    type: LeaveType
    start_date: date
    end_date: date
    working_days: int
    hours: float | None = None


class BalanceResponse(BaseModel):
    """Leave usage for one user in one calendar year, derived from approved requests."""

    user_id: uuid.UUID
    year: int
    allowance: int
    used: int
    remaining: int
    toil_hours: float
    toil_hours_earned: float
    toil_hours_used: float
    sick_allowance: int
    sick_used: int
    sick_remaining: int
    unpaid_used: int
    history: list[BalanceHistoryItem]


class BalanceListResponse(BaseModel):
    """Balances for several users."""

    items: list[BalanceResponse]
    total: int


# ---------------------------------------------------------------------------
# Team calendar
# ---------------------------------------------------------------------------


class CalendarEntry(BaseModel):
    """A PENDING or APPROVED absence shown on the team calendar."""

    request_id: uuid.UUID
    user_id: uuid.UUID
    user_name: str
    type: LeaveType
    status: str
    start_date: date
    end_date: date


class TeamCalendarResponse(BaseModel):
    """Absences overlapping a date range, also indexed by day."""

    start_date: date
    end_date: date
    entries: list[CalendarEntry]
    by_date: dict[date, list[uuid.UUID]]
