# ruff: noqa: TC003
from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator, Iterable, Sequence
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, TypeVar

from sqlalchemy import func, select, text, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import SQLModel, col

from leave_tracker.exceptions import InfrastructureError
from leave_tracker.models.audit import AuditLog
from leave_tracker.models.base import now_utc
from leave_tracker.models.enums import LeaveStatus, LeaveType, ToilEntryStatus
from leave_tracker.models.request import LeaveRequest
from leave_tracker.models.toil import ToilEntry
from leave_tracker.models.user import User

logger = logging.getLogger(__name__)

_ModelT = TypeVar("_ModelT", bound=SQLModel)


class SqlRepository:
    """SQLModel/SQLAlchemy implementation of the persistence port.

    Every method opens its own short session and commits at most one row
    change, so the adapter never relies on multi-statement transactions.
    Conditional writes are ``UPDATE ... WHERE <expected>`` checked by rowcount.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except (SQLAlchemyError, OSError) as exc:
            logger.exception("Persistence failure during %s", operation)
            raise InfrastructureError(f"Persistence failure during {operation}", operation=operation) from exc

    async def _insert(self, model: _ModelT, operation: str) -> _ModelT:
        async with self._session(operation) as session:
            session.add(model)
            await session.commit()
            await session.refresh(model)
            return model

    async def _conditional_update(
        self,
        model_cls: type[LeaveRequest] | type[ToilEntry],
        row_id: uuid.UUID,
        expected_status: str,
        values: dict[str, Any],
        operation: str,
    ) -> Any:
        async with self._session(operation) as session:
            result = await session.execute(
                update(model_cls)
                .where(col(model_cls.id) == row_id, col(model_cls.status) == expected_status)
                .values(**values, updated_at=now_utc())
            )
            await session.commit()
            if result.rowcount == 0:  # type: ignore[attr-defined]
                return None
            return await session.get(model_cls, row_id, populate_existing=True)

    async def _delete(self, model_cls: type[SQLModel], row_id: uuid.UUID, operation: str) -> bool:
        async with self._session(operation) as session:
            row = await session.get(model_cls, row_id)
            if row is None:
                return False
            await session.delete(row)
            await session.commit()
            return True

    async def ping(self) -> None:
        async with self._session("ping") as session:
            await session.execute(text("SELECT 1"))

    # -- users ---------------------------------------------------------------

    async def get_user(self, user_id: uuid.UUID) -> User | None:
        async with self._session("get_user") as session:
            return await session.get(User, user_id)

    async def get_users(self, user_ids: Iterable[uuid.UUID]) -> list[User]:
        ids = list(user_ids)
        if not ids:
            return []
        async with self._session("get_users") as session:
            result = await session.execute(select(User).where(col(User.id).in_(ids)))
            return list(result.scalars().all())

    async def get_users_by_email(self, emails: Iterable[str]) -> list[User]:
        wanted = [email.lower() for email in emails]
        if not wanted:
            return []
        async with self._session("get_users_by_email") as session:
            result = await session.execute(select(User).where(func.lower(col(User.email)).in_(wanted)))
            return list(result.scalars().all())

    async def list_users(self) -> list[User]:
        async with self._session("list_users") as session:
            result = await session.execute(select(User).order_by(col(User.email)))
            return list(result.scalars().all())

    async def add_user(self, user: User) -> User:
        return await self._insert(user, "add_user")

    async def compare_and_set_toil_balance(self, user_id: uuid.UUID, expected: float, new: float) -> bool:
        async with self._session("compare_and_set_toil_balance") as session:
            result = await session.execute(
                update(User)
                .where(col(User.id) == user_id, col(User.toil_balance_hours) == expected)
                .values(toil_balance_hours=new, updated_at=now_utc())
            )
            await session.commit()
            return bool(result.rowcount)  # type: ignore[attr-defined]

    # -- leave requests ------------------------------------------------------

    async def get_leave_request(self, request_id: uuid.UUID) -> LeaveRequest | None:
        async with self._session("get_leave_request") as session:
            return await session.get(LeaveRequest, request_id)

    async def find_leave_requests(
        self,
        *,
        user_ids: Sequence[uuid.UUID] | None = None,
        statuses: Sequence[LeaveStatus] | None = None,
        leave_type: LeaveType | None = None,
        overlapping: tuple[date, date] | None = None,
    ) -> list[LeaveRequest]:
        filters = []
        if user_ids is not None:
            filters.append(col(LeaveRequest.user_id).in_(list(user_ids)))
        if statuses is not None:
            filters.append(col(LeaveRequest.status).in_([s.value for s in statuses]))
        if leave_type is not None:
            filters.append(col(LeaveRequest.type) == leave_type.value)
        if overlapping is not None:
            range_start, range_end = overlapping
            filters.append(col(LeaveRequest.start_date) <= range_end)
            filters.append(col(LeaveRequest.end_date) >= range_start)

        async with self._session("find_leave_requests") as session:
            result = await session.execute(
                select(LeaveRequest)
                .where(*filters)
                .order_by(col(LeaveRequest.start_date), col(LeaveRequest.created_at))
            )
            return list(result.scalars().all())

    async def add_leave_request(self, leave_request: LeaveRequest) -> LeaveRequest:
        return await self._insert(leave_request, "add_leave_request")

    async def transition_leave_request(
        self,
        request_id: uuid.UUID,
        expected_status: LeaveStatus,
        values: dict[str, Any],
    ) -> LeaveRequest | None:
        return await self._conditional_update(
            LeaveRequest, request_id, expected_status.value, values, "transition_leave_request"
        )

    async def delete_leave_request(self, request_id: uuid.UUID) -> bool:
        return await self._delete(LeaveRequest, request_id, "delete_leave_request")

    # -- TOIL entries --------------------------------------------------------

    async def get_toil_entry(self, entry_id: uuid.UUID) -> ToilEntry | None:
        async with self._session("get_toil_entry") as session:
            return await session.get(ToilEntry, entry_id)

    async def find_toil_entries(
        self,
        *,
        user_id: uuid.UUID | None = None,
        statuses: Sequence[ToilEntryStatus] | None = None,
    ) -> list[ToilEntry]:
        filters = []
        if user_id is not None:
            filters.append(col(ToilEntry.user_id) == user_id)
        if statuses is not None:
            filters.append(col(ToilEntry.status).in_([s.value for s in statuses]))

        async with self._session("find_toil_entries") as session:
            result = await session.execute(
                select(ToilEntry).where(*filters).order_by(col(ToilEntry.date), col(ToilEntry.created_at))
            )
            return list(result.scalars().all())

    async def add_toil_entry(self, entry: ToilEntry) -> ToilEntry:
        return await self._insert(entry, "add_toil_entry")

    async def transition_toil_entry(
        self,
        entry_id: uuid.UUID,
        expected_status: ToilEntryStatus,
        values: dict[str, Any],
    ) -> ToilEntry | None:
        return await self._conditional_update(ToilEntry, entry_id, expected_status.value, values, "transition_toil_entry")

    async def delete_toil_entry(self, entry_id: uuid.UUID) -> bool:
        return await self._delete(ToilEntry, entry_id, "delete_toil_entry")

    # -- audit ---------------------------------------------------------------

    async def add_audit_log(self, entry: AuditLog) -> AuditLog:
        return await self._insert(entry, "add_audit_log")

    async def find_audit_logs(
        self,
        *,
        entity_id: uuid.UUID | None = None,
        action: str | None = None,
    ) -> list[AuditLog]:
        filters = []
        if entity_id is not None:
            filters.append(col(AuditLog.entity_id) == entity_id)
        if action is not None:
            filters.append(col(AuditLog.action) == action)

        async with self._session("find_audit_logs") as session:
            result = await session.execute(select(AuditLog).where(*filters).order_by(col(AuditLog.created_at)))
            return list(result.scalars().all())
