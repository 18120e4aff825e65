from __future__ import annotations

import logging
from collections import defaultdict
from typing import TYPE_CHECKING

from leave_tracker.exceptions import ValidationError
from leave_tracker.models.enums import LeaveStatus, LeaveType
from leave_tracker.schemas.balance import CalendarEntry, TeamCalendarResponse
from leave_tracker.services.cache import MISS, calendar_key, is_calendar_key_overlapping
from leave_tracker.services.duration import clip_to_range, iter_days

if TYPE_CHECKING:
    import uuid
    from datetime import date

    from leave_tracker.repositories.base import LeaveRepository
    from leave_tracker.services.cache import CacheLayer

logger = logging.getLogger(__name__)


class TeamCalendar:
    """Who is off when: PENDING and APPROVED requests over a date range, cached per range."""

    def __init__(self, repository: LeaveRepository, cache: CacheLayer, *, ttl_seconds: float = 60) -> None:
        self._repository = repository
        self._cache = cache
        self._ttl_seconds = ttl_seconds

    async def get_team_calendar(self, start_date: date, end_date: date) -> TeamCalendarResponse:
        if start_date > end_date:
            raise ValidationError(
                "Start date must be on or before end date",
                fields={"start_date": "must be on or before end_date"},
            )

        key = calendar_key(start_date, end_date)
        cached = self._cache.get(key)
        if cached is not MISS:
            logger.debug("Calendar cache hit for %s", key)
            return cached.model_copy(deep=True)

        logger.debug("Calendar cache miss for %s", key)
        requests = await self._repository.find_leave_requests(
            statuses=[LeaveStatus.PENDING, LeaveStatus.APPROVED],
            overlapping=(start_date, end_date),
        )
        users = {user.id: user for user in await self._repository.get_users({r.user_id for r in requests})}

        entries: list[CalendarEntry] = []
        by_date: dict[date, list[uuid.UUID]] = defaultdict(list)
        for leave_request in requests:
            user = users.get(leave_request.user_id)
            entries.append(
                CalendarEntry(
                    request_id=leave_request.id,
                    user_id=leave_request.user_id,
                    user_name=user.display_name if user else str(leave_request.user_id),
                    type=LeaveType(leave_request.type),
                    status=leave_request.status,
                    start_date=leave_request.start_date,
                    end_date=leave_request.end_date,
                )
            )
            visible = clip_to_range(leave_request.start_date, leave_request.end_date, start_date, end_date)
            if visible is not None:
                for day in iter_days(*visible):
                    by_date[day].append(leave_request.id)

        calendar = TeamCalendarResponse(
            start_date=start_date,
            end_date=end_date,
            entries=entries,
            by_date=dict(by_date),
        )
        self._cache.set(key, calendar, ttl=self._ttl_seconds)
        return calendar.model_copy(deep=True)

    def invalidate_range(self, start_date: date, end_date: date) -> int:
        """Drop every cached calendar whose range overlaps ``[start_date, end_date]``."""
        removed = self._cache.delete_matching(is_calendar_key_overlapping(start_date, end_date))
        if removed:
            logger.debug("Invalidated %d calendar range(s) overlapping %s..%s", removed, start_date, end_date)
        return removed
