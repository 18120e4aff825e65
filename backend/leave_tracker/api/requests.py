# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid

from fastapi import APIRouter, Query, status

from leave_tracker.api.deps import AdminDep, PrincipalDep, ServicesDep
from leave_tracker.exceptions import AuthorizationError
from leave_tracker.models.enums import LeaveStatus
from leave_tracker.schemas.request import (
    BulkDecisionPayload,
    BulkResult,
    LeaveRequestListResponse,
    LeaveRequestResponse,
    RejectPayload,
    SubmitLeavePayload,
    SubmitResult,
)

requests_router = APIRouter(prefix="/requests", tags=["requests"])


@requests_router.post("", response_model=SubmitResult, status_code=status.HTTP_201_CREATED)
async def submit_request(
    payload: SubmitLeavePayload,
    services: ServicesDep,
    principal: PrincipalDep,
) -> SubmitResult:
    """Submit a new leave request for the acting user."""
    return await services.workflow.submit(principal, payload)


@requests_router.get("", response_model=LeaveRequestListResponse)
async def list_requests(
    services: ServicesDep,
    principal: PrincipalDep,
    status_filter: LeaveStatus | None = Query(default=None, alias="status"),
    user_id: uuid.UUID | None = Query(default=None),
) -> LeaveRequestListResponse:
    """List leave requests. Members only see their own."""
    if not principal.is_admin:
        user_id = principal.id
    return await services.workflow.list_requests(status_filter, user_id)


@requests_router.post("/bulk-approve", response_model=BulkResult)
async def bulk_approve(
    payload: BulkDecisionPayload,
    services: ServicesDep,
    admin: AdminDep,
) -> BulkResult:
    """Approve many pending requests (admin only)."""
    return await services.workflow.bulk_approve(payload.request_ids, admin)


@requests_router.post("/bulk-reject", response_model=BulkResult)
async def bulk_reject(
    payload: BulkDecisionPayload,
    services: ServicesDep,
    admin: AdminDep,
) -> BulkResult:
    """Reject many pending requests with one reason (admin only)."""
    return await services.workflow.bulk_reject(payload.request_ids, admin, payload.reason)


@requests_router.get("/{request_id}", response_model=LeaveRequestResponse)
async def get_request(
    request_id: uuid.UUID,
    services: ServicesDep,
    principal: PrincipalDep,
) -> LeaveRequestResponse:
    """Get a single leave request."""
    leave_request = await services.workflow.get_request(request_id)
    if not principal.is_admin and leave_request.user_id != principal.id:
        raise AuthorizationError("Not authorized to view this request")
    return leave_request


@requests_router.post("/{request_id}/approve", response_model=LeaveRequestResponse)
async def approve_request(
    request_id: uuid.UUID,
    services: ServicesDep,
    admin: AdminDep,
) -> LeaveRequestResponse:
    """Approve a pending leave request (admin only)."""
    return await services.workflow.approve(request_id, admin)


@requests_router.post("/{request_id}/reject", response_model=LeaveRequestResponse)
async def reject_request(
    request_id: uuid.UUID,
    payload: RejectPayload,
    services: ServicesDep,
    admin: AdminDep,
) -> LeaveRequestResponse:
    """Reject a pending leave request with a reason (admin only)."""
    return await services.workflow.reject(request_id, admin, payload.reason)


@requests_router.post("/{request_id}/cancel", response_model=LeaveRequestResponse)
async def cancel_request(
    request_id: uuid.UUID,
    services: ServicesDep,
    principal: PrincipalDep,
) -> LeaveRequestResponse:
    """Cancel a pending leave request (requester or admin)."""
    return await services.workflow.cancel(request_id, principal)
