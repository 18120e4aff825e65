from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from leave_tracker.exceptions import ValidationError
from leave_tracker.models.enums import LeaveStatus
from leave_tracker.schemas.request import ConflictResult

if TYPE_CHECKING:
    import uuid
    from collections.abc import Iterable, Sequence
    from datetime import date

    from leave_tracker.repositories.base import LeaveRepository

logger = logging.getLogger(__name__)

_BLOCKING_STATUSES = (LeaveStatus.PENDING, LeaveStatus.APPROVED)


class ConflictDetector:
    """Reports overlapping absences among the protected coverage set.

    The result is advisory: it never blocks a submission.
    """

    def __init__(
        self,
        repository: LeaveRepository,
        protected_user_emails: Sequence[str] = (),
        *,
        enabled: bool = True,
    ) -> None:
        self._repository = repository
        self._protected_user_emails = list(protected_user_emails)
        self._enabled = enabled

    async def protected_user_ids(self) -> set[uuid.UUID]:
        """Resolve the configured protected emails to user ids."""
        if not self._enabled or not self._protected_user_emails:
            return set()
        users = await self._repository.get_users_by_email(self._protected_user_emails)
        return {user.id for user in users}

    async def is_protected(self, user_id: uuid.UUID) -> bool:
        return user_id in await self.protected_user_ids()

    async def check_conflict(
        self,
        start_date: date,
        end_date: date,
        exclude_user_id: uuid.UUID | None = None,
        protected_user_ids: Iterable[uuid.UUID] | None = None,
    ) -> ConflictResult:
        """Find PENDING/APPROVED requests of other protected users overlapping the range."""
        if start_date > end_date:
            raise ValidationError(
                "Start date must be on or before end date",
                fields={"start_date": "must be on or before end_date"},
            )

        candidates = set(protected_user_ids) if protected_user_ids is not None else await self.protected_user_ids()
        if exclude_user_id is not None:
            candidates.discard(exclude_user_id)
        if not candidates:
            return ConflictResult(has_conflict=False)

        overlapping = await self._repository.find_leave_requests(
            user_ids=sorted(candidates),
            statuses=_BLOCKING_STATUSES,
            overlapping=(start_date, end_date),
        )
        if not overlapping:
            return ConflictResult(has_conflict=False)

        conflicting_ids = list(dict.fromkeys(r.user_id for r in overlapping))
        users = {user.id: user for user in await self._repository.get_users(conflicting_ids)}
        names = list(
            dict.fromkeys(users[uid].display_name if uid in users else str(uid) for uid in conflicting_ids)
        )
        logger.info("Coverage conflict for %s..%s with %s", start_date, end_date, ", ".join(names))
        return ConflictResult(has_conflict=True, conflicting_users=names)
