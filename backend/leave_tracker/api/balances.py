# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Query

from leave_tracker.api.deps import AdminDep, PrincipalDep, ServicesDep
from leave_tracker.exceptions import AuthorizationError
from leave_tracker.schemas.balance import BalanceListResponse, BalanceResponse, TeamCalendarResponse
from leave_tracker.schemas.request import ConflictResult

balances_router = APIRouter(tags=["balances"])


@balances_router.get("/users/{user_id}/balance", response_model=BalanceResponse)
async def get_user_balance(
    user_id: uuid.UUID,
    services: ServicesDep,
    principal: PrincipalDep,
    year: int | None = Query(default=None, ge=1900, le=9999),
) -> BalanceResponse:
    """Leave balance for one user and year (defaults to the current year)."""
    if not principal.is_admin and user_id != principal.id:
        raise AuthorizationError("Not authorized to view this balance")
    return await services.balances.get_balance(user_id, year or date.today().year)


@balances_router.get("/balances", response_model=BalanceListResponse)
async def get_balances(
    services: ServicesDep,
    _admin: AdminDep,
    user_ids: list[uuid.UUID] | None = Query(default=None, alias="user_id"),
    year: int | None = Query(default=None, ge=1900, le=9999),
) -> BalanceListResponse:
    """Balances for many users at once; every user when none are given (admin only)."""
    if not user_ids:
        user_ids = [user.id for user in await services.repository.list_users()]
    items = await services.balances.get_balances(user_ids, year or date.today().year)
    return BalanceListResponse(items=items, total=len(items))


calendar_router = APIRouter(tags=["calendar"])


@calendar_router.get("/conflicts", response_model=ConflictResult)
async def check_conflicts(
    services: ServicesDep,
    principal: PrincipalDep,
    start_date: date = Query(),
    end_date: date = Query(),
    exclude_user_id: uuid.UUID | None = Query(default=None),
) -> ConflictResult:
    """Pre-submission coverage check among the protected users."""
    return await services.conflicts.check_conflict(start_date, end_date, exclude_user_id or principal.id)


@calendar_router.get("/calendar", response_model=TeamCalendarResponse)
async def get_team_calendar(
    services: ServicesDep,
    _principal: PrincipalDep,
    start_date: date = Query(),
    end_date: date = Query(),
) -> TeamCalendarResponse:
    """Who is off, day by day, over a date range."""
    return await services.calendar.get_team_calendar(start_date, end_date)
