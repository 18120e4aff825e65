from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from typing import TYPE_CHECKING

from leave_tracker.exceptions import NotFoundError
from leave_tracker.models.enums import LeaveStatus, LeaveType
from leave_tracker.schemas.balance import BalanceHistoryItem, BalanceResponse
from leave_tracker.services.cache import MISS, balance_key, is_user_balance_key
from leave_tracker.services.duration import clip_to_range, count_working_days, year_bounds

if TYPE_CHECKING:
    from collections.abc import Iterable

    from leave_tracker.models.request import LeaveRequest
    from leave_tracker.models.user import User
    from leave_tracker.repositories.base import LeaveRepository
    from leave_tracker.services.cache import CacheLayer

logger = logging.getLogger(__name__)

DEFAULT_TOIL_HOURS_PER_DAY = 8


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def compute_balance(
    user: User,
    approved_requests: Iterable[LeaveRequest],
    year: int,
    toil_hours_per_day: int = DEFAULT_TOIL_HOURS_PER_DAY,
) -> BalanceResponse:
    """Derive a user's usage for ``year`` from their APPROVED requests.

    Only the working days that fall inside the year are counted, so a request
    spanning New Year contributes to both years without double counting.
    """
    first_day, last_day = year_bounds(year)
    used = sick_used = unpaid_used = 0
    toil_hours_earned = toil_hours_used = 0.0
    history: list[BalanceHistoryItem] = []

    for leave_request in approved_requests:
        if leave_request.status != LeaveStatus.APPROVED:
            continue
        clipped = clip_to_range(leave_request.start_date, leave_request.end_date, first_day, last_day)
        if clipped is None:
            continue
        working_days = count_working_days(*clipped)
        leave_type = LeaveType(leave_request.type)

        if leave_type == LeaveType.ANNUAL:
            used += working_days
        elif leave_type == LeaveType.SICK:
            sick_used += working_days
        elif leave_type == LeaveType.UNPAID:
            unpaid_used += working_days
        elif leave_request.hours is not None and leave_request.hours > 0:
            toil_hours_earned += leave_request.hours
        else:
            toil_hours_used += working_days * toil_hours_per_day

        history.append(
            BalanceHistoryItem(
                request_id=leave_request.id,
                type=leave_type,
                start_date=leave_request.start_date,
                end_date=leave_request.end_date,
                working_days=working_days,
                hours=leave_request.hours,
            )
        )

    return BalanceResponse(
        user_id=user.id,
        year=year,
        allowance=user.annual_leave_allowance,
        used=used,
        remaining=user.annual_leave_allowance - used,
        toil_hours=user.toil_balance_hours,
        toil_hours_earned=toil_hours_earned,
        toil_hours_used=toil_hours_used,
        sick_allowance=user.sick_leave_allowance,
        sick_used=sick_used,
        sick_remaining=user.sick_leave_allowance - sick_used,
        unpaid_used=unpaid_used,
        history=history,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


class BalanceLedger:
    """Read-side ledger: balances are recomputed from approved requests and cached.

    The TTL is only a safety net. The approval workflow invalidates the
    affected keys synchronously on every write that could change a balance.
    """

    def __init__(
        self,
        repository: LeaveRepository,
        cache: CacheLayer,
        *,
        ttl_seconds: float = 300,
        toil_hours_per_day: int = DEFAULT_TOIL_HOURS_PER_DAY,
    ) -> None:
        self._repository = repository
        self._cache = cache
        self._ttl_seconds = ttl_seconds
        self._toil_hours_per_day = toil_hours_per_day

    async def get_balance(self, user_id: uuid.UUID, year: int) -> BalanceResponse:
        """Balance for one user and year, served from cache when possible."""
        key = balance_key(user_id, year)
        cached = self._cache.get(key)
        if cached is not MISS:
            logger.debug("Balance cache hit for %s", key)
            return cached.model_copy(deep=True)

        logger.debug("Balance cache miss for %s", key)
        user = await self._repository.get_user(user_id)
        if user is None:
            raise NotFoundError("User", user_id)

        approved = await self._repository.find_leave_requests(
            user_ids=[user_id],
            statuses=[LeaveStatus.APPROVED],
            overlapping=year_bounds(year),
        )
        balance = compute_balance(user, approved, year, self._toil_hours_per_day)
        self._cache.set(key, balance, ttl=self._ttl_seconds)
        return balance.model_copy(deep=True)

    async def get_balances(self, user_ids: Iterable[uuid.UUID], year: int) -> list[BalanceResponse]:
        """Balances for many users with one user fetch and one request fetch for all misses."""
        ordered_ids = list(dict.fromkeys(user_ids))
        found: dict[uuid.UUID, BalanceResponse] = {}
        missing: list[uuid.UUID] = []

        for user_id in ordered_ids:
            cached = self._cache.get(balance_key(user_id, year))
            if cached is MISS:
                missing.append(user_id)
            else:
                found[user_id] = cached.model_copy(deep=True)

        if missing:
            users = {user.id: user for user in await self._repository.get_users(missing)}
            unknown = [user_id for user_id in missing if user_id not in users]
            if unknown:
                raise NotFoundError("User", unknown[0])

            approved = await self._repository.find_leave_requests(
                user_ids=missing,
                statuses=[LeaveStatus.APPROVED],
                overlapping=year_bounds(year),
            )
            by_user: dict[uuid.UUID, list[LeaveRequest]] = defaultdict(list)
            for leave_request in approved:
                by_user[leave_request.user_id].append(leave_request)

            for user_id in missing:
                balance = compute_balance(users[user_id], by_user[user_id], year, self._toil_hours_per_day)
                self._cache.set(balance_key(user_id, year), balance, ttl=self._ttl_seconds)
                found[user_id] = balance.model_copy(deep=True)

            logger.debug("Computed %d of %d balances for %d", len(missing), len(ordered_ids), year)

        return [found[user_id] for user_id in ordered_ids]

    def invalidate_user(self, user_id: uuid.UUID, years: Iterable[int] | None = None) -> int:
        """Drop cached balances for a user, for the given years or all of them."""
        if years is None:
            return self._cache.delete_matching(is_user_balance_key(user_id))
        return sum(1 for year in years if self._cache.delete(balance_key(user_id, year)))
