from __future__ import annotations

import logging
import uuid
from datetime import date
from typing import TYPE_CHECKING

from leave_tracker.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from leave_tracker.models.base import now_utc
from leave_tracker.models.enums import AuditAction, AuditEntityType, ToilEntryStatus, ToilType, can_transition_toil
from leave_tracker.models.toil import ToilEntry
from leave_tracker.schemas.toil import ToilBalanceResponse, ToilEntryListResponse, ToilEntryResponse
from leave_tracker.services.audit import record_transition, snapshot
from leave_tracker.services.notifications import NotificationKind
from leave_tracker.services.saga import Saga

if TYPE_CHECKING:
    from leave_tracker.models.user import User
    from leave_tracker.repositories.base import LeaveRepository
    from leave_tracker.schemas.auth import Principal
    from leave_tracker.services.balance import BalanceLedger
    from leave_tracker.services.notifications import NotificationDispatcher

logger = logging.getLogger(__name__)

# Contract rules for earned TOIL.
WEEKEND_TRAVEL_HOURS = 4.0
# A late return or panel day entitles the employee to start at 13:00 the next day.
NEXT_DAY_LATE_START_HOURS = 4.0
_LATE_RETURN_THRESHOLDS = (
    (22, NEXT_DAY_LATE_START_HOURS),
    (21, 3.0),
    (20, 2.0),
    (19, 1.0),
)


def _build_entry_response(entry: ToilEntry) -> ToilEntryResponse:
    """Map a TOIL entry model to its response schema."""
    return ToilEntryResponse(
        id=entry.id,
        user_id=entry.user_id,
        date=entry.date,
        type=ToilType(entry.type),
        hours=entry.hours,
        reason=entry.reason,
        status=ToilEntryStatus(entry.status),
        approved=entry.approved,
        leave_request_id=entry.leave_request_id,
        approved_by=entry.approved_by,
        approved_at=entry.approved_at,
        rejection_reason=entry.rejection_reason,
        previous_balance=entry.previous_balance,
        new_balance=entry.new_balance,
        created_at=entry.created_at,
    )


def calculate_toil_hours(
    toil_type: ToilType,
    *,
    return_time: str | None = None,
    hours: float | None = None,
) -> float:
    """Hours earned for a TOIL event under the contract rules.

    OVERTIME is credited 1:1 and needs the worked ``hours``; TRAVEL_LATE_RETURN
    needs the ``return_time`` as ``HH:MM``.
    """
    if toil_type == ToilType.LEAVE_TAKEN:
        raise ValidationError("LEAVE_TAKEN entries are not earned", fields={"type": "not an earning type"})
    if toil_type == ToilType.WEEKEND_TRAVEL:
        return WEEKEND_TRAVEL_HOURS
    if toil_type == ToilType.AGENT_PANEL_DAY:
        return NEXT_DAY_LATE_START_HOURS
    if toil_type == ToilType.TRAVEL_LATE_RETURN:
        if not return_time:
            raise ValidationError("Return time required for late travel", fields={"return_time": "required"})
        try:
            hour = int(return_time.split(":", 1)[0])
        except ValueError:
            raise ValidationError("Return time must be HH:MM", fields={"return_time": "invalid"}) from None
        for threshold, earned in _LATE_RETURN_THRESHOLDS:
            if hour >= threshold:
                return earned
        return 0.0
    if hours is None:
        raise ValidationError("Hours required for overtime", fields={"hours": "required"})
    return hours


class ToilLedger:
    """Append-only log of TOIL earn/spend entries backing ``User.toil_balance_hours``.

    Approving an entry writes two rows, the entry and the user, and the store
    offers no transaction across them. The approval is therefore run as a saga:

    1. mark the entry APPROVED with its balance snapshot
       (compensation: put the entry back to PENDING and clear the snapshot);
    2. compare-and-set the user's balance from ``previous_balance`` to ``new_balance``.

    If step 2 fails the entry is reverted, so an approved entry never exists
    without its hours on the user.
    """

    def __init__(
        self,
        repository: LeaveRepository,
        balance_ledger: BalanceLedger,
        notifications: NotificationDispatcher,
    ) -> None:
        self._repository = repository
        self._balance_ledger = balance_ledger
        self._notifications = notifications

    # -- helpers -------------------------------------------------------------

    async def _get_entry_or_404(self, entry_id: uuid.UUID) -> ToilEntry:
        entry = await self._repository.get_toil_entry(entry_id)
        if entry is None:
            raise NotFoundError("TOIL entry", entry_id)
        return entry

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
    def _require_pending(entry: ToilEntry, target: ToilEntryStatus) -> None:
        if not can_transition_toil(ToilEntryStatus(entry.status), target):
            raise ConflictError(f"TOIL entry is already {entry.status}")

    async def _record(
        self,
        principal: Principal,
        user_id: uuid.UUID,
        hours: float,
        reason: str,
        toil_type: ToilType,
        entry_date: date,
        leave_request_id: uuid.UUID | None,
    ) -> ToilEntry:
        self._require_admin(principal)
        if not reason or not reason.strip():
            raise ValidationError("A reason is required", fields={"reason": "required"})
        await self._get_user_or_404(user_id)

        entry = await self._repository.add_toil_entry(
            ToilEntry(
                user_id=user_id,
                date=entry_date,
                type=toil_type.value,
                hours=hours,
                reason=reason.strip(),
                leave_request_id=leave_request_id,
            )
        )
        await record_transition(
            self._repository,
            actor_id=principal.id,
            entity_type=AuditEntityType.TOIL_ENTRY,
            entity_id=entry.id,
            action=AuditAction.CREDIT,
            after=snapshot(entry),
        )
        logger.info("Recorded TOIL entry %s: %+.2fh for user %s", entry.id, hours, user_id)
        return entry

    # -- public API ----------------------------------------------------------

    async def credit(
        self,
        principal: Principal,
        user_id: uuid.UUID,
        hours: float,
        reason: str,
        toil_type: ToilType = ToilType.OVERTIME,
        entry_date: date | None = None,
        *,
        leave_request_id: uuid.UUID | None = None,
    ) -> ToilEntryResponse:
        """Record earned hours as a PENDING entry; the balance moves only on approval."""
        if toil_type == ToilType.LEAVE_TAKEN:
            raise ValidationError("LEAVE_TAKEN entries are recorded by debit", fields={"type": "not an earning type"})
        if hours <= 0:
            raise ValidationError("TOIL hours must be positive", fields={"hours": "must be greater than 0"})
        entry = await self._record(
            principal, user_id, hours, reason, toil_type, entry_date or date.today(), leave_request_id
        )
        return _build_entry_response(entry)

    async def debit(
        self,
        principal: Principal,
        user_id: uuid.UUID,
        hours: float,
        reason: str,
        entry_date: date,
        *,
        leave_request_id: uuid.UUID | None = None,
    ) -> ToilEntryResponse:
        """Record hours spent as TOIL leave as a PENDING negative entry."""
        if hours <= 0:
            raise ValidationError("TOIL hours must be positive", fields={"hours": "must be greater than 0"})
        entry = await self._record(
            principal, user_id, -hours, reason, ToilType.LEAVE_TAKEN, entry_date, leave_request_id
        )
        return _build_entry_response(entry)

    async def approve(self, entry_id: uuid.UUID, principal: Principal) -> ToilEntryResponse:
        """Approve an entry and move its hours onto the user's balance."""
        self._require_admin(principal)
        entry = await self._get_entry_or_404(entry_id)
        self._require_pending(entry, ToilEntryStatus.APPROVED)
        user = await self._get_user_or_404(entry.user_id)

        previous_balance = user.toil_balance_hours
        new_balance = previous_balance + entry.hours
        approved_at = now_utc()

        async def mark_entry_approved() -> ToilEntry:
            updated = await self._repository.transition_toil_entry(
                entry_id,
                ToilEntryStatus.PENDING,
                {
                    "status": ToilEntryStatus.APPROVED,
                    "approved_by": principal.id,
                    "approved_at": approved_at,
                    "previous_balance": previous_balance,
                    "new_balance": new_balance,
                },
            )
            if updated is None:
                raise ConflictError("TOIL entry was decided concurrently")
            return updated

        async def revert_entry(_: ToilEntry) -> None:
            reverted = await self._repository.transition_toil_entry(
                entry_id,
                ToilEntryStatus.APPROVED,
                {
                    "status": ToilEntryStatus.PENDING,
                    "approved_by": None,
                    "approved_at": None,
                    "previous_balance": None,
                    "new_balance": None,
                },
            )
            if reverted is None:
                msg = f"TOIL entry {entry_id} was not APPROVED when reverting"
                raise ConflictError(msg)

        async def credit_user_balance() -> None:
            written = await self._repository.compare_and_set_toil_balance(user.id, previous_balance, new_balance)
            if not written:
                raise ConflictError("TOIL balance changed concurrently; re-read and approve again")

        saga = (
            Saga(f"toil-approve:{entry_id}")
            .step("mark-entry-approved", mark_entry_approved, compensate=revert_entry)
            .step("credit-user-balance", credit_user_balance)
        )
        approved_entry, _ = await saga.run()

        self._balance_ledger.invalidate_user(user.id)
        await record_transition(
            self._repository,
            actor_id=principal.id,
            entity_type=AuditEntityType.TOIL_ENTRY,
            entity_id=entry_id,
            action=AuditAction.APPROVE,
            before=snapshot(entry),
            after=snapshot(approved_entry),
        )
        logger.info(
            "Approved TOIL entry %s for user %s: %.2fh -> %.2fh",
            entry_id,
            user.id,
            previous_balance,
            new_balance,
        )
        if approved_entry.leave_request_id is None:
            self._notifications.dispatch(
                NotificationKind.TOIL_APPROVED,
                [user.email],
                {"entry_id": str(entry_id), "hours": entry.hours, "new_balance": new_balance},
            )
        return _build_entry_response(approved_entry)

    async def reject(self, entry_id: uuid.UUID, principal: Principal, reason: str | None = None) -> ToilEntryResponse:
        """Reject a pending entry; the balance is untouched."""
        self._require_admin(principal)
        entry = await self._get_entry_or_404(entry_id)
        self._require_pending(entry, ToilEntryStatus.REJECTED)

        rejected = await self._repository.transition_toil_entry(
            entry_id,
            ToilEntryStatus.PENDING,
            {
                "status": ToilEntryStatus.REJECTED,
                "approved_by": principal.id,
                "approved_at": now_utc(),
                "rejection_reason": (reason or "").strip() or "Rejected by admin",
            },
        )
        if rejected is None:
            raise ConflictError("TOIL entry was decided concurrently")

        await record_transition(
            self._repository,
            actor_id=principal.id,
            entity_type=AuditEntityType.TOIL_ENTRY,
            entity_id=entry_id,
            action=AuditAction.REJECT,
            before=snapshot(entry),
            after=snapshot(rejected),
        )
        logger.info("Rejected TOIL entry %s", entry_id)
        user = await self._repository.get_user(entry.user_id)
        if user is not None:
            self._notifications.dispatch(
                NotificationKind.TOIL_REJECTED,
                [user.email],
                {"entry_id": str(entry_id), "reason": rejected.rejection_reason},
            )
        return _build_entry_response(rejected)

    async def get_entry(self, entry_id: uuid.UUID) -> ToilEntryResponse:
        return _build_entry_response(await self._get_entry_or_404(entry_id))

    async def list_entries(
        self,
        user_id: uuid.UUID | None = None,
        status: ToilEntryStatus | None = None,
    ) -> ToilEntryListResponse:
        entries = await self._repository.find_toil_entries(
            user_id=user_id,
            statuses=[status] if status is not None else None,
        )
        return ToilEntryListResponse(items=[_build_entry_response(e) for e in entries], total=len(entries))

    async def pending_entries(self) -> ToilEntryListResponse:
        return await self.list_entries(status=ToilEntryStatus.PENDING)

    async def get_toil_balance(self, user_id: uuid.UUID) -> ToilBalanceResponse:
        """Stored balance next to the sum of approved entries; they must agree."""
        user = await self._get_user_or_404(user_id)
        approved = await self._repository.find_toil_entries(user_id=user_id, statuses=[ToilEntryStatus.APPROVED])
        derived = sum(entry.hours for entry in approved)
        in_sync = abs(derived - user.toil_balance_hours) < 1e-9
        if not in_sync:
            logger.error(
                "TOIL balance drift for user %s: stored=%.2f derived=%.2f",
                user_id,
                user.toil_balance_hours,
                derived,
            )
        return ToilBalanceResponse(
            user_id=user_id,
            stored_hours=user.toil_balance_hours,
            derived_hours=derived,
            in_sync=in_sync,
        )

    async def verify_balance(self, user_id: uuid.UUID) -> bool:
        """True when the stored TOIL balance equals the sum of approved entries."""
        return (await self.get_toil_balance(user_id)).in_sync
