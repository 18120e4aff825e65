# ruff: noqa: TC003
from __future__ import annotations

import uuid
from collections.abc import Iterable, Sequence
from datetime import date
from typing import Any, TypeVar

from sqlmodel import SQLModel

from leave_tracker.models.audit import AuditLog
from leave_tracker.models.base import now_utc
from leave_tracker.models.enums import LeaveStatus, LeaveType, ToilEntryStatus
from leave_tracker.models.request import LeaveRequest
from leave_tracker.models.toil import ToilEntry
from leave_tracker.models.user import User
from leave_tracker.services.duration import ranges_overlap

_ModelT = TypeVar("_ModelT", bound=SQLModel)


def _clone(model: _ModelT) -> _ModelT:
    """Detached copy, so callers never hold a reference into the store."""
    return type(model).model_validate(model.model_dump())


class InMemoryRepository:
    """In-memory implementation of the persistence port for development and tests.

    Each method completes without awaiting anything else, so on a single event
    loop every call behaves as one atomic per-row operation.
    """

    def __init__(self) -> None:
        self._users: dict[uuid.UUID, User] = {}
        self._requests: dict[uuid.UUID, LeaveRequest] = {}
        self._toil_entries: dict[uuid.UUID, ToilEntry] = {}
        self._audit_logs: list[AuditLog] = []

    async def ping(self) -> None:
        return None

    # -- users ---------------------------------------------------------------

    async def get_user(self, user_id: uuid.UUID) -> User | None:
        user = self._users.get(user_id)
        return _clone(user) if user is not None else None

    async def get_users(self, user_ids: Iterable[uuid.UUID]) -> list[User]:
        return [_clone(self._users[uid]) for uid in dict.fromkeys(user_ids) if uid in self._users]

    async def get_users_by_email(self, emails: Iterable[str]) -> list[User]:
        wanted = {email.lower() for email in emails}
        return [_clone(u) for u in self._users.values() if u.email.lower() in wanted]

    async def list_users(self) -> list[User]:
        return [_clone(u) for u in self._users.values()]

    async def add_user(self, user: User) -> User:
        self._users[user.id] = _clone(user)
        return _clone(user)

    async def compare_and_set_toil_balance(self, user_id: uuid.UUID, expected: float, new: float) -> bool:
        user = self._users.get(user_id)
        if user is None or user.toil_balance_hours != expected:
            return False
        user.toil_balance_hours = new
        user.updated_at = now_utc()
        return True

    # -- leave requests ------------------------------------------------------

    async def get_leave_request(self, request_id: uuid.UUID) -> LeaveRequest | None:
        leave_request = self._requests.get(request_id)
        return _clone(leave_request) if leave_request is not None else None

    async def find_leave_requests(
        self,
        *,
        user_ids: Sequence[uuid.UUID] | None = None,
        statuses: Sequence[LeaveStatus] | None = None,
        leave_type: LeaveType | None = None,
        overlapping: tuple[date, date] | None = None,
    ) -> list[LeaveRequest]:
        matches = []
        for leave_request in self._requests.values():
            if user_ids is not None and leave_request.user_id not in user_ids:
                continue
            if statuses is not None and leave_request.status not in statuses:
                continue
            if leave_type is not None and leave_request.type != leave_type:
                continue
            if overlapping is not None and not ranges_overlap(
                leave_request.start_date, leave_request.end_date, overlapping[0], overlapping[1]
            ):
                continue
            matches.append(_clone(leave_request))
        matches.sort(key=lambda r: (r.start_date, r.created_at))
        return matches

    async def add_leave_request(self, leave_request: LeaveRequest) -> LeaveRequest:
        self._requests[leave_request.id] = _clone(leave_request)
        return _clone(leave_request)

    async def transition_leave_request(
        self,
        request_id: uuid.UUID,
        expected_status: LeaveStatus,
        values: dict[str, Any],
    ) -> LeaveRequest | None:
        leave_request = self._requests.get(request_id)
        if leave_request is None or leave_request.status != expected_status:
            return None
        for field, value in values.items():
            setattr(leave_request, field, value)
        leave_request.updated_at = now_utc()
        return _clone(leave_request)

    async def delete_leave_request(self, request_id: uuid.UUID) -> bool:
        return self._requests.pop(request_id, None) is not None

    # -- TOIL entries --------------------------------------------------------

    async def get_toil_entry(self, entry_id: uuid.UUID) -> ToilEntry | None:
        entry = self._toil_entries.get(entry_id)
        return _clone(entry) if entry is not None else None

    async def find_toil_entries(
        self,
        *,
        user_id: uuid.UUID | None = None,
        statuses: Sequence[ToilEntryStatus] | None = None,
    ) -> list[ToilEntry]:
        matches = [
            _clone(entry)
            for entry in self._toil_entries.values()
            if (user_id is None or entry.user_id == user_id) and (statuses is None or entry.status in statuses)
        ]
        matches.sort(key=lambda e: (e.date, e.created_at))
        return matches

    async def add_toil_entry(self, entry: ToilEntry) -> ToilEntry:
        self._toil_entries[entry.id] = _clone(entry)
        return _clone(entry)

    async def transition_toil_entry(
        self,
        entry_id: uuid.UUID,
        expected_status: ToilEntryStatus,
        values: dict[str, Any],
    ) -> ToilEntry | None:
        entry = self._toil_entries.get(entry_id)
        if entry is None or entry.status != expected_status:
            return None
        for field, value in values.items():
            setattr(entry, field, value)
        entry.updated_at = now_utc()
        return _clone(entry)

    async def delete_toil_entry(self, entry_id: uuid.UUID) -> bool:
        return self._toil_entries.pop(entry_id, None) is not None

    # -- audit ---------------------------------------------------------------

    async def add_audit_log(self, entry: AuditLog) -> AuditLog:
        self._audit_logs.append(_clone(entry))
        return entry

    async def find_audit_logs(
        self,
        *,
        entity_id: uuid.UUID | None = None,
        action: str | None = None,
    ) -> list[AuditLog]:
        return [
            _clone(entry)
            for entry in self._audit_logs
            if (entity_id is None or entry.entity_id == entity_id) and (action is None or entry.action == action)
        ]
