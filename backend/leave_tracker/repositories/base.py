# ruff: noqa: TC003
"""Persistence port shared by every ledger and workflow service.

Adapters promise per-row atomic writes and nothing more: no operation here
spans two rows or two collections in one transaction. The ``transition_*`` and
``compare_and_set_*`` methods are conditional single-row writes that return
``None``/``False`` when the row no longer holds the expected value.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Sequence
from datetime import date
from typing import Any, Protocol, runtime_checkable

from leave_tracker.models.audit import AuditLog
from leave_tracker.models.enums import LeaveStatus, LeaveType, ToilEntryStatus
from leave_tracker.models.request import LeaveRequest
from leave_tracker.models.toil import ToilEntry
from leave_tracker.models.user import User


@runtime_checkable
class LeaveRepository(Protocol):
    """CRUD and range-filtered reads over users, leave requests, TOIL entries and audit logs."""

    async def ping(self) -> None:
        """Raise ``InfrastructureError`` when the store is unreachable."""
        ...

    # Users

    async def get_user(self, user_id: uuid.UUID) -> User | None: ...

    async def get_users(self, user_ids: Iterable[uuid.UUID]) -> list[User]: ...

    async def get_users_by_email(self, emails: Iterable[str]) -> list[User]: ...

    async def list_users(self) -> list[User]: ...

    async def add_user(self, user: User) -> User: ...

    async def compare_and_set_toil_balance(self, user_id: uuid.UUID, expected: float, new: float) -> bool:
        """Write ``new`` only if the stored balance still equals ``expected``."""
        ...

    # Leave requests

    async def get_leave_request(self, request_id: uuid.UUID) -> LeaveRequest | None: ...

    async def find_leave_requests(
        self,
        *,
        user_ids: Sequence[uuid.UUID] | None = None,
        statuses: Sequence[LeaveStatus] | None = None,
        leave_type: LeaveType | None = None,
        overlapping: tuple[date, date] | None = None,
    ) -> list[LeaveRequest]:
        """Filtered read; ``overlapping`` keeps requests intersecting the inclusive range."""
        ...

    async def add_leave_request(self, leave_request: LeaveRequest) -> LeaveRequest: ...

    async def transition_leave_request(
        self,
        request_id: uuid.UUID,
        expected_status: LeaveStatus,
        values: dict[str, Any],
    ) -> LeaveRequest | None:
        """Apply ``values`` only if the row is still in ``expected_status``."""
        ...

    async def delete_leave_request(self, request_id: uuid.UUID) -> bool: ...

    # TOIL entries

    async def get_toil_entry(self, entry_id: uuid.UUID) -> ToilEntry | None: ...

    async def find_toil_entries(
        self,
        *,
        user_id: uuid.UUID | None = None,
        statuses: Sequence[ToilEntryStatus] | None = None,
    ) -> list[ToilEntry]: ...

    async def add_toil_entry(self, entry: ToilEntry) -> ToilEntry: ...

    async def transition_toil_entry(
        self,
        entry_id: uuid.UUID,
        expected_status: ToilEntryStatus,
        values: dict[str, Any],
    ) -> ToilEntry | None: ...

    async def delete_toil_entry(self, entry_id: uuid.UUID) -> bool: ...

    # Audit

    async def add_audit_log(self, entry: AuditLog) -> AuditLog: ...

    async def find_audit_logs(
        self,
        *,
        entity_id: uuid.UUID | None = None,
        action: str | None = None,
    ) -> list[AuditLog]: ...
