from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Literal

from leave_tracker.exceptions import ConflictError, ValidationError
from leave_tracker.models.enums import UserRole
from leave_tracker.models.user import User
from leave_tracker.schemas.cache import CacheClearResponse, CacheStatsResponse
from leave_tracker.services.balance import BalanceLedger
from leave_tracker.services.cache import BALANCE_PREFIX, CALENDAR_PREFIX, CacheLayer
from leave_tracker.services.calendar import TeamCalendar
from leave_tracker.services.conflict import ConflictDetector
from leave_tracker.services.notifications import LoggingNotifier, NotificationDispatcher
from leave_tracker.services.request import ApprovalWorkflow
from leave_tracker.services.toil import ToilLedger

if TYPE_CHECKING:
    from collections.abc import Callable

    from leave_tracker.config import Settings
    from leave_tracker.repositories.base import LeaveRepository
    from leave_tracker.services.notifications import Notifier

logger = logging.getLogger(__name__)

CacheScope = Literal["all", "balances", "calendar"]


@dataclass
class LeaveServices:
    """Every core component wired around one repository and one cache instance."""

    settings: Settings
    repository: LeaveRepository
    cache: CacheLayer
    notifications: NotificationDispatcher
    balances: BalanceLedger
    conflicts: ConflictDetector
    toil: ToilLedger
    calendar: TeamCalendar
    workflow: ApprovalWorkflow

    def clear_cache(self, scope: CacheScope = "all") -> CacheClearResponse:
        """Drop cached balances, calendars or everything."""
        if scope == "all":
            removed = self.cache.clear()
        elif scope == "balances":
            removed = self.cache.delete_matching(lambda key: key[0] == BALANCE_PREFIX)
        elif scope == "calendar":
            removed = self.cache.delete_matching(lambda key: key[0] == CALENDAR_PREFIX)
        else:
            raise ValidationError(f"Unknown cache scope: {scope}", fields={"scope": "must be all, balances or calendar"})
        logger.info("Cleared %d cache entries (scope=%s)", removed, scope)
        return CacheClearResponse(scope=scope, removed=removed)

    def cache_stats(self) -> CacheStatsResponse:
        stats = self.cache.stats()
        return CacheStatsResponse(
            hits=stats.hits,
            misses=stats.misses,
            evictions=stats.evictions,
            invalidations=stats.invalidations,
            size=stats.size,
            max_size=stats.max_size,
            hit_rate=stats.hit_rate,
        )

    async def create_user(
        self,
        email: str,
        name: str | None = None,
        role: UserRole = UserRole.MEMBER,
        annual_leave_allowance: int | None = None,
        sick_leave_allowance: int | None = None,
    ) -> User:
        """Create a user, falling back to the configured default allowances."""
        normalized = email.strip().lower()
        if await self.repository.get_users_by_email([normalized]):
            raise ConflictError(f"User with email {normalized} already exists")
        user = await self.repository.add_user(
            User(
                email=normalized,
                name=name,
                role=role,
                annual_leave_allowance=(
                    annual_leave_allowance
                    if annual_leave_allowance is not None
                    else self.settings.default_annual_leave_allowance
                ),
                sick_leave_allowance=(
                    sick_leave_allowance
                    if sick_leave_allowance is not None
                    else self.settings.default_sick_leave_allowance
                ),
            )
        )
        logger.info("Created user %s (%s)", user.id, user.email)
        return user


def build_services(
    settings: Settings,
    repository: LeaveRepository,
    notifier: Notifier | None = None,
    cache: CacheLayer | None = None,
    clock: Callable[[], date] = date.today,
) -> LeaveServices:
    """Assemble the core components. Pass ``cache`` to substitute a deterministic fake."""
    cache = cache if cache is not None else CacheLayer(
        default_ttl=settings.balance_cache_ttl_seconds,
        max_size=settings.cache_max_size,
    )
    notifications = NotificationDispatcher(notifier or LoggingNotifier())
    balances = BalanceLedger(
        repository,
        cache,
        ttl_seconds=settings.balance_cache_ttl_seconds,
        toil_hours_per_day=settings.toil_hours_per_day,
    )
    conflicts = ConflictDetector(
        repository,
        settings.protected_user_emails,
        enabled=settings.require_coverage_check,
    )
    toil = ToilLedger(repository, balances, notifications)
    calendar = TeamCalendar(repository, cache, ttl_seconds=settings.calendar_cache_ttl_seconds)
    workflow = ApprovalWorkflow(
        repository,
        balances,
        conflicts,
        toil,
        calendar,
        notifications,
        settings,
        clock=clock,
    )
    return LeaveServices(
        settings=settings,
        repository=repository,
        cache=cache,
        notifications=notifications,
        balances=balances,
        conflicts=conflicts,
        toil=toil,
        calendar=calendar,
        workflow=workflow,
    )
