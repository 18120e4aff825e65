# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status

from leave_tracker.api.deps import AdminDep, PrincipalDep, ServicesDep
from leave_tracker.exceptions import AuthorizationError
from leave_tracker.models.enums import ToilEntryStatus
from leave_tracker.schemas.toil import (
    CreateToilEntryPayload,
    ToilBalanceResponse,
    ToilDecisionPayload,
    ToilEntryListResponse,
    ToilEntryResponse,
)
from leave_tracker.services.toil import calculate_toil_hours

toil_router = APIRouter(tags=["toil"])


@toil_router.post("/toil", response_model=ToilEntryResponse, status_code=status.HTTP_201_CREATED)
async def credit_toil(
    payload: CreateToilEntryPayload,
    services: ServicesDep,
    admin: AdminDep,
) -> ToilEntryResponse:
    """Record earned TOIL as a pending entry (admin only)."""
    hours = calculate_toil_hours(payload.type, return_time=payload.return_time, hours=payload.hours)
    return await services.toil.credit(
        admin,
        payload.user_id or admin.id,
        hours,
        payload.reason,
        payload.type,
        payload.date,
    )


@toil_router.get("/toil", response_model=ToilEntryListResponse)
async def list_toil_entries(
    services: ServicesDep,
    principal: PrincipalDep,
    user_id: uuid.UUID | None = Query(default=None),
    status_filter: ToilEntryStatus | None = Query(default=None, alias="status"),
) -> ToilEntryListResponse:
    """List TOIL entries. Members only see their own."""
    if not principal.is_admin:
        user_id = principal.id
    return await services.toil.list_entries(user_id, status_filter)


@toil_router.post("/toil/{entry_id}/approve", response_model=ToilEntryResponse)
async def approve_toil_entry(
    entry_id: uuid.UUID,
    services: ServicesDep,
    admin: AdminDep,
) -> ToilEntryResponse:
    """Approve a pending TOIL entry and credit the user's balance (admin only)."""
    return await services.toil.approve(entry_id, admin)


@toil_router.post("/toil/{entry_id}/reject", response_model=ToilEntryResponse)
async def reject_toil_entry(
    entry_id: uuid.UUID,
    services: ServicesDep,
    admin: AdminDep,
    payload: ToilDecisionPayload | None = None,
) -> ToilEntryResponse:
    """Reject a pending TOIL entry (admin only)."""
    return await services.toil.reject(entry_id, admin, payload.reason if payload else None)


@toil_router.get("/users/{user_id}/toil-balance", response_model=ToilBalanceResponse)
async def get_toil_balance(
    user_id: uuid.UUID,
    services: ServicesDep,
    principal: PrincipalDep,
) -> ToilBalanceResponse:
    """Stored TOIL balance next to the sum of approved entries."""
    if not principal.is_admin and user_id != principal.id:
        raise AuthorizationError("Not authorized to view this balance")
    return await services.toil.get_toil_balance(user_id)
