# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from collections.abc import Awaitable, Callable, Iterable
from datetime import date, timedelta
from typing import TYPE_CHECKING

from leave_tracker.exceptions import (
    AppError,
    AuthorizationError,
    ConflictError,
    InsufficientBalanceError,
    NotFoundError,
    ValidationError,
)
from leave_tracker.models.base import now_utc
from leave_tracker.models.enums import (
    AuditAction,
    AuditEntityType,
    LeaveStatus,
    LeaveType,
    UserRole,
    can_transition,
)
from leave_tracker.models.request import LeaveRequest
from leave_tracker.schemas.request import (
    BulkItemResult,
    BulkResult,
    ConflictResult,
    LeaveRequestListResponse,
    LeaveRequestResponse,
    SubmitLeavePayload,
    SubmitResult,
)
from leave_tracker.services.audit import record_transition, snapshot
from leave_tracker.services.duration import clip_to_range, count_working_days, year_bounds, years_spanned
from leave_tracker.services.notifications import NotificationKind

if TYPE_CHECKING:
    from leave_tracker.config import Settings
    from leave_tracker.models.user import User
    from leave_tracker.repositories.base import LeaveRepository
    from leave_tracker.schemas.auth import Principal
    from leave_tracker.services.balance import BalanceLedger
    from leave_tracker.services.calendar import TeamCalendar
    from leave_tracker.services.conflict import ConflictDetector
    from leave_tracker.services.notifications import NotificationDispatcher
    from leave_tracker.services.toil import ToilLedger

logger = logging.getLogger(__name__)

_ACTIVE_STATUSES = (LeaveStatus.PENDING, LeaveStatus.APPROVED)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _build_request_response(leave_request: LeaveRequest) -> LeaveRequestResponse:
    """Map a leave request model to its response schema."""
    return LeaveRequestResponse(
        id=leave_request.id,
        user_id=leave_request.user_id,
        start_date=leave_request.start_date,
        end_date=leave_request.end_date,
        type=LeaveType(leave_request.type),
        status=LeaveStatus(leave_request.status),
        hours=leave_request.hours,
        comments=leave_request.comments,
        approved_by=leave_request.approved_by,
        approved_at=leave_request.approved_at,
        created_at=leave_request.created_at,
        updated_at=leave_request.updated_at,
    )


def _append_comment(existing: str | None, addition: str) -> str:
    return f"{existing}\n{addition}" if existing else addition


def _is_toil_claim(leave_request: LeaveRequest | SubmitLeavePayload) -> bool:
    """A TOIL request carrying positive hours claims earned time rather than spending it."""
    return leave_request.type == LeaveType.TOIL and leave_request.hours is not None and leave_request.hours > 0


class ApprovalWorkflow:
    """State machine driving a leave request from PENDING to a terminal state.

    PENDING -> APPROVED | REJECTED | CANCELLED. Terminal states never change.
    Every decision re-reads the status just before writing and the write itself
    is conditional on the row still being PENDING, so of two concurrent
    decisions exactly one wins and the other gets a ConflictError.
    Decision writes are never retried.
    """

    def __init__(
        self,
        repository: LeaveRepository,
        balance_ledger: BalanceLedger,
        conflict_detector: ConflictDetector,
        toil_ledger: ToilLedger,
        team_calendar: TeamCalendar,
        notifications: NotificationDispatcher,
        settings: Settings,
        clock: Callable[[], date] = date.today,
    ) -> None:
        self._repository = repository
        self._balance_ledger = balance_ledger
        self._conflict_detector = conflict_detector
        self._toil_ledger = toil_ledger
        self._team_calendar = team_calendar
        self._notifications = notifications
        self._settings = settings
        self._clock = clock

    # -- helpers -------------------------------------------------------------

    async def _get_request_or_404(self, request_id: uuid.UUID) -> LeaveRequest:
        leave_request = await self._repository.get_leave_request(request_id)
        if leave_request is None:
            raise NotFoundError("Leave request", request_id)
        return leave_request

    async def _get_user_or_404(self, user_id: uuid.UUID) -> User:
        user = await self._repository.get_user(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    @staticmethod
    def _require_admin(principal: Principal) -> None:
        if not principal.is_admin:
            raise AuthorizationError()

    @staticmethod
    def _guard_transition(leave_request: LeaveRequest, target: LeaveStatus) -> None:
        current = LeaveStatus(leave_request.status)
        if not can_transition(current, target):
            raise ConflictError(f"Leave request is already {current.value}; cannot move to {target.value}")

    async def _decide(
        self,
        request_id: uuid.UUID,
        target: LeaveStatus,
        values: Callable[[LeaveRequest], dict[str, object]],
    ) -> tuple[LeaveRequest, LeaveRequest]:
        """Guard, re-check and conditionally write a transition out of PENDING.

        Returns the request as read before the write and as written.
        """
        leave_request = await self._get_request_or_404(request_id)
        self._guard_transition(leave_request, target)

        # Optimistic re-check right before the write.
        current = await self._get_request_or_404(request_id)
        self._guard_transition(current, target)

        updated = await self._repository.transition_leave_request(
            request_id, LeaveStatus.PENDING, {"status": target, **values(current)}
        )
        if updated is None:
            raise ConflictError(f"Leave request {request_id} was decided concurrently")
        return current, updated

    async def _audit(
        self,
        principal: Principal,
        action: AuditAction,
        before: LeaveRequest | None,
        after: LeaveRequest,
    ) -> None:
        await record_transition(
            self._repository,
            actor_id=principal.id,
            entity_type=AuditEntityType.LEAVE_REQUEST,
            entity_id=after.id,
            action=action,
            before=snapshot(before) if before is not None else None,
            after=snapshot(after),
        )

    async def _notify_owner(self, leave_request: LeaveRequest, kind: NotificationKind, **extra: object) -> None:
        try:
            user = await self._repository.get_user(leave_request.user_id)
        except Exception:
            logger.exception("Skipping %s notification for request %s: owner lookup failed", kind, leave_request.id)
            return
        if user is None:
            return
        self._notifications.dispatch(
            kind,
            [user.email],
            {
                "request_id": str(leave_request.id),
                "name": user.display_name,
                "type": leave_request.type,
                "start_date": leave_request.start_date.isoformat(),
                "end_date": leave_request.end_date.isoformat(),
                **extra,
            },
        )

    async def _notify_admins_of_conflict(self, user: User, payload: SubmitLeavePayload, conflict: ConflictResult) -> None:
        try:
            users = await self._repository.list_users()
        except Exception:
            logger.exception("Skipping conflict warning for user %s: admin lookup failed", user.id)
            return
        admins = [u for u in users if u.role == UserRole.ADMIN]
        self._notifications.dispatch(
            NotificationKind.CONFLICT_WARNING,
            [admin.email for admin in admins],
            {
                "requester": user.display_name,
                "start_date": payload.start_date.isoformat(),
                "end_date": payload.end_date.isoformat(),
                "conflicting_users": conflict.conflicting_users,
            },
        )

    def _validate_submission(self, payload: SubmitLeavePayload) -> None:
        fields: dict[str, str] = {}
        if payload.start_date > payload.end_date:
            fields["end_date"] = "must be on or after start_date"
        today = self._clock()
        if payload.start_date < today:
            fields["start_date"] = "must not be in the past"
        elif payload.start_date > today + timedelta(days=self._settings.max_request_days_ahead):
            fields["start_date"] = f"must be within {self._settings.max_request_days_ahead} days"
        if payload.hours is not None:
            if payload.type != LeaveType.TOIL:
                fields["hours"] = "only allowed for TOIL requests"
            elif payload.hours <= 0:
                fields["hours"] = "must be greater than 0"
        if fields:
            raise ValidationError("Invalid leave request", fields=fields)

    async def _apply_toil(self, leave_request: LeaveRequest, principal: Principal) -> None:
        """Post the TOIL entry matching an approved TOIL request.

        Failure here does not undo the approval. It is logged and recorded as a
        TOIL_CREDIT_FAILED audit entry for manual reconciliation.
        """
        entry_id: uuid.UUID | None = None
        if _is_toil_claim(leave_request):
            hours = float(leave_request.hours or 0)
        else:
            hours = -float(
                count_working_days(leave_request.start_date, leave_request.end_date) * self._settings.toil_hours_per_day
            )
        try:
            if hours > 0:
                entry = await self._toil_ledger.credit(
                    principal,
                    leave_request.user_id,
                    hours,
                    leave_request.comments or f"TOIL claim {leave_request.id}",
                    entry_date=leave_request.start_date,
                    leave_request_id=leave_request.id,
                )
            else:
                entry = await self._toil_ledger.debit(
                    principal,
                    leave_request.user_id,
                    -hours,
                    f"TOIL leave {leave_request.start_date.isoformat()}..{leave_request.end_date.isoformat()}",
                    leave_request.start_date,
                    leave_request_id=leave_request.id,
                )
            entry_id = entry.id
            await self._toil_ledger.approve(entry.id, principal)
        except Exception as exc:
            logger.exception(
                "TOIL credit failed for approved request %s (user %s, %+.2fh); approval stands",
                leave_request.id,
                leave_request.user_id,
                hours,
            )
            await self._record_toil_inconsistency(leave_request, principal, hours, entry_id, exc)

    async def _record_toil_inconsistency(
        self,
        leave_request: LeaveRequest,
        principal: Principal,
        hours: float,
        entry_id: uuid.UUID | None,
        exc: Exception,
    ) -> None:
        try:
            await record_transition(
                self._repository,
                actor_id=principal.id,
                entity_type=AuditEntityType.LEAVE_REQUEST,
                entity_id=leave_request.id,
                action=AuditAction.TOIL_CREDIT_FAILED,
                after={
                    "request_id": leave_request.id,
                    "user_id": leave_request.user_id,
                    "hours": hours,
                    "toil_entry_id": entry_id,
                    "error": f"{type(exc).__name__}: {exc}",
                },
            )
        except Exception:
            logger.critical(
                "Could not record TOIL inconsistency for request %s (user %s, %+.2fh)",
                leave_request.id,
                leave_request.user_id,
                hours,
                exc_info=True,
            )

    def _invalidate(self, leave_request: LeaveRequest, *, balances: bool) -> None:
        if balances:
            self._balance_ledger.invalidate_user(
                leave_request.user_id, years_spanned(leave_request.start_date, leave_request.end_date)
            )
        self._team_calendar.invalidate_range(leave_request.start_date, leave_request.end_date)

    @staticmethod
    def _working_days_in_year(start_date: date, end_date: date, year: int) -> int:
        clipped = clip_to_range(start_date, end_date, *year_bounds(year))
        return count_working_days(*clipped) if clipped is not None else 0

    async def _check_annual_per_year(self, user_id: uuid.UUID, start_date: date, end_date: date) -> float:
        """Check each calendar year's allowance against the working days falling in it.

        Returns the start year's remaining balance after the request.
        """
        remaining_after = 0.0
        for index, year in enumerate(years_spanned(start_date, end_date)):
            days = self._working_days_in_year(start_date, end_date, year)
            balance = await self._balance_ledger.get_balance(user_id, year)
            if balance.remaining < days:
                msg = f"Insufficient annual leave for {year}: {balance.remaining} days remaining, {days} requested"
                raise InsufficientBalanceError(msg, current=balance.remaining, required=days)
            if index == 0:
                remaining_after = balance.remaining - days
        return remaining_after

    async def _bulk(
        self,
        request_ids: Iterable[uuid.UUID],
        decide: Callable[[uuid.UUID], Awaitable[LeaveRequestResponse]],
    ) -> BulkResult:
        items: list[BulkItemResult] = []
        for request_id in dict.fromkeys(request_ids):
            try:
                decided = await decide(request_id)
            except AppError as exc:
                items.append(BulkItemResult(request_id=request_id, success=False, error=exc.message))
            except Exception:
                logger.exception("Bulk decision failed for request %s", request_id)
                items.append(BulkItemResult(request_id=request_id, success=False, error="Internal error"))
            else:
                items.append(BulkItemResult(request_id=request_id, success=True, status=decided.status))
        succeeded = sum(1 for item in items if item.success)
        return BulkResult(items=items, succeeded=succeeded, failed=len(items) - succeeded)

    # -- public API ----------------------------------------------------------

    async def submit(self, principal: Principal, payload: SubmitLeavePayload) -> SubmitResult:
        """Create a PENDING request for the principal. Balances are not touched.

        Flow:
        1. Validate the range, horizon and TOIL hours.
        2. Count working days; only TOIL claims may cover none.
        3. Refuse overlap with the user's own PENDING/APPROVED requests.
        4. Check the balance for the request's type.
        5. For protected users, run the advisory coverage check.
        6. Store the request, audit, invalidate calendars, notify.
        """
        self._validate_submission(payload)
        user = await self._get_user_or_404(principal.id)

        working_days = count_working_days(payload.start_date, payload.end_date)
        toil_claim = _is_toil_claim(payload)
        if working_days == 0 and not toil_claim:
            raise ValidationError(
                "Request covers no working days",
                fields={"start_date": "range contains only weekend days"},
            )

        overlapping = await self._repository.find_leave_requests(
            user_ids=[user.id],
            statuses=_ACTIVE_STATUSES,
            overlapping=(payload.start_date, payload.end_date),
        )
        if overlapping:
            raise ConflictError("Request overlaps with an existing pending or approved request")

        remaining_after: float | None = None
        if payload.type == LeaveType.ANNUAL:
            remaining_after = await self._check_annual_per_year(user.id, payload.start_date, payload.end_date)
        elif payload.type == LeaveType.SICK:
            start_year_days = self._working_days_in_year(payload.start_date, payload.end_date, payload.start_date.year)
            balance = await self._balance_ledger.get_balance(user.id, payload.start_date.year)
            remaining_after = balance.sick_remaining - start_year_days
        elif payload.type == LeaveType.TOIL and not toil_claim:
            # TOIL hours are not bound to a year.
            balance = await self._balance_ledger.get_balance(user.id, payload.start_date.year)
            required_hours = working_days * self._settings.toil_hours_per_day
            if balance.toil_hours < required_hours:
                msg = f"Insufficient TOIL: {balance.toil_hours:g} hours available, {required_hours} required"
                raise InsufficientBalanceError(msg, current=balance.toil_hours, required=required_hours)
            remaining_after = balance.toil_hours - required_hours

        conflict: ConflictResult | None = None
        if await self._conflict_detector.is_protected(user.id):
            conflict = await self._conflict_detector.check_conflict(
                payload.start_date, payload.end_date, exclude_user_id=user.id
            )

        leave_request = await self._repository.add_leave_request(
            LeaveRequest(
                user_id=user.id,
                start_date=payload.start_date,
                end_date=payload.end_date,
                type=payload.type.value,
                status=LeaveStatus.PENDING,
                hours=payload.hours,
                comments=payload.reason,
            )
        )
        await self._audit(principal, AuditAction.SUBMIT, None, leave_request)
        self._invalidate(leave_request, balances=False)
        logger.info(
            "Submitted %s request %s for user %s: %s..%s (%d working days)",
            leave_request.type,
            leave_request.id,
            user.id,
            leave_request.start_date,
            leave_request.end_date,
            working_days,
        )

        await self._notify_owner(leave_request, NotificationKind.LEAVE_SUBMITTED, working_days=working_days)
        if conflict is not None and conflict.has_conflict:
            await self._notify_admins_of_conflict(user, payload, conflict)

        return SubmitResult(
            request=_build_request_response(leave_request),
            working_days=working_days,
            remaining_after=remaining_after,
            conflict=conflict,
        )

    async def approve(self, request_id: uuid.UUID, principal: Principal) -> LeaveRequestResponse:
        """Approve a PENDING request.

        1. Fetch; refuse anything not PENDING.
        2. Re-read and conditionally write APPROVED.
        3. Invalidate the user's balances and overlapping calendars, before
           anything else can fail.
        4. Audit; for TOIL requests post and approve the matching TOIL entry.
        5. Notify the requester without waiting.
        """
        self._require_admin(principal)
        approved_at = now_utc()
        before, approved = await self._decide(
            request_id,
            LeaveStatus.APPROVED,
            lambda _: {"approved_by": principal.id, "approved_at": approved_at},
        )
        self._invalidate(approved, balances=True)
        await self._audit(principal, AuditAction.APPROVE, before, approved)
        logger.info("Approved leave request %s for user %s by %s", request_id, approved.user_id, principal.id)

        if approved.type == LeaveType.TOIL:
            await self._apply_toil(approved, principal)

        await self._notify_owner(approved, NotificationKind.LEAVE_APPROVED)
        return _build_request_response(approved)

    async def reject(self, request_id: uuid.UUID, principal: Principal, reason: str | None) -> LeaveRequestResponse:
        """Reject a PENDING request with a mandatory reason appended to its comments."""
        self._require_admin(principal)
        cleaned = (reason or "").strip()
        if len(cleaned) < self._settings.rejection_reason_min_length:
            raise ValidationError(
                "A rejection reason is required",
                fields={"reason": f"must be at least {self._settings.rejection_reason_min_length} characters"},
            )

        decided_at = now_utc()
        before, rejected = await self._decide(
            request_id,
            LeaveStatus.REJECTED,
            lambda current: {
                "approved_by": principal.id,
                "approved_at": decided_at,
                "comments": _append_comment(current.comments, f"Rejection reason: {cleaned}"),
            },
        )
        self._invalidate(rejected, balances=False)
        await self._audit(principal, AuditAction.REJECT, before, rejected)
        logger.info("Rejected leave request %s for user %s by %s", request_id, rejected.user_id, principal.id)

        await self._notify_owner(rejected, NotificationKind.LEAVE_REJECTED, reason=cleaned)
        return _build_request_response(rejected)

    async def cancel(self, request_id: uuid.UUID, principal: Principal) -> LeaveRequestResponse:
        """Cancel a PENDING request. The requester or an admin may cancel."""
        leave_request = await self._get_request_or_404(request_id)
        if leave_request.user_id != principal.id and not principal.is_admin:
            raise AuthorizationError("Not authorized to cancel this request")

        before, cancelled = await self._decide(request_id, LeaveStatus.CANCELLED, lambda _: {})
        self._invalidate(cancelled, balances=False)
        await self._audit(principal, AuditAction.CANCEL, before, cancelled)
        logger.info("Cancelled leave request %s for user %s", request_id, cancelled.user_id)

        await self._notify_owner(cancelled, NotificationKind.LEAVE_CANCELLED)
        return _build_request_response(cancelled)

    async def bulk_approve(self, request_ids: Iterable[uuid.UUID], principal: Principal) -> BulkResult:
        """Approve each request independently; one failure never stops the rest."""
        self._require_admin(principal)
        result = await self._bulk(request_ids, lambda request_id: self.approve(request_id, principal))
        logger.info("Bulk approve by %s: %d succeeded, %d failed", principal.id, result.succeeded, result.failed)
        return result

    async def bulk_reject(
        self,
        request_ids: Iterable[uuid.UUID],
        principal: Principal,
        reason: str | None,
    ) -> BulkResult:
        """Reject each request independently with the same reason."""
        self._require_admin(principal)
        result = await self._bulk(request_ids, lambda request_id: self.reject(request_id, principal, reason))
        logger.info("Bulk reject by %s: %d succeeded, %d failed", principal.id, result.succeeded, result.failed)
        return result

    async def get_request(self, request_id: uuid.UUID) -> LeaveRequestResponse:
        return _build_request_response(await self._get_request_or_404(request_id))

    async def list_requests(
        self,
        status: LeaveStatus | None = None,
        user_id: uuid.UUID | None = None,
    ) -> LeaveRequestListResponse:
        """List requests, optionally filtered by status and user."""
        requests = await self._repository.find_leave_requests(
            user_ids=[user_id] if user_id is not None else None,
            statuses=[status] if status is not None else None,
        )
        return LeaveRequestListResponse(items=[_build_request_response(r) for r in requests], total=len(requests))

    async def pending_requests(self) -> LeaveRequestListResponse:
        return await self.list_requests(status=LeaveStatus.PENDING)

    async def wait_for_notifications(self) -> None:
        """Wait for every notification dispatched so far to finish."""
        await self._notifications.drain()
