"""Tests for the balance ledger: derivation from approved requests, caching, batch reads."""

from __future__ import annotations

import uuid
from datetime import date
from typing import TYPE_CHECKING, Any

import pytest

from leave_tracker.exceptions import NotFoundError
from leave_tracker.models.enums import LeaveStatus, LeaveType
from leave_tracker.models.request import LeaveRequest
from leave_tracker.repositories.memory import InMemoryRepository
from leave_tracker.services.balance import compute_balance
from leave_tracker.services.cache import balance_key

if TYPE_CHECKING:
    from conftest import Team

    from leave_tracker.models.user import User
    from leave_tracker.services.container import LeaveServices


class CountingRepository(InMemoryRepository):
    """Counts round trips so batch reads can be checked."""

    def __init__(self) -> None:
        super().__init__()
        self.find_calls = 0
        self.get_users_calls = 0

    async def find_leave_requests(self, **kwargs: Any) -> list[LeaveRequest]:
        self.find_calls += 1
        return await super().find_leave_requests(**kwargs)

    async def get_users(self, user_ids: Any) -> list[User]:
        self.get_users_calls += 1
        return await super().get_users(user_ids)


@pytest.fixture
def repository() -> CountingRepository:
    return CountingRepository()


async def _add_request(
    services: LeaveServices,
    user: User,
    start: date,
    end: date,
    leave_type: LeaveType = LeaveType.ANNUAL,
    status: LeaveStatus = LeaveStatus.APPROVED,
    hours: float | None = None,
) -> LeaveRequest:
    return await services.repository.add_leave_request(
        LeaveRequest(
            user_id=user.id,
            start_date=start,
            end_date=end,
            type=leave_type,
            status=status,
            hours=hours,
        )
    )


# ---------------------------------------------------------------------------
# Derivation
# ---------------------------------------------------------------------------


async def test_balance_with_no_leave(services: LeaveServices, team: Team) -> None:
    balance = await services.balances.get_balance(team.carol.id, 2025)
    assert balance.allowance == 25
    assert balance.used == 0
    assert balance.remaining == 25
    assert balance.sick_allowance == 10
    assert balance.sick_remaining == 10
    assert balance.history == []


async def test_only_approved_requests_count(services: LeaveServices, team: Team) -> None:
    await _add_request(services, team.carol, date(2025, 6, 16), date(2025, 6, 18))
    for status in (LeaveStatus.PENDING, LeaveStatus.REJECTED, LeaveStatus.CANCELLED):
        await _add_request(services, team.carol, date(2025, 7, 7), date(2025, 7, 8), status=status)

    balance = await services.balances.get_balance(team.carol.id, 2025)

    assert balance.used == 3
    assert balance.remaining == 22
    assert len(balance.history) == 1


async def test_leave_types_are_classified(services: LeaveServices, team: Team) -> None:
    await _add_request(services, team.alice, date(2025, 3, 3), date(2025, 3, 4), LeaveType.SICK)
    await _add_request(services, team.alice, date(2025, 3, 10), date(2025, 3, 14), LeaveType.UNPAID)
    await _add_request(services, team.alice, date(2025, 3, 17), date(2025, 3, 17), LeaveType.TOIL, hours=6)
    await _add_request(services, team.alice, date(2025, 3, 18), date(2025, 3, 19), LeaveType.TOIL)

    balance = await services.balances.get_balance(team.alice.id, 2025)

    assert balance.used == 0
    assert balance.sick_used == 2
    assert balance.sick_remaining == 8
    assert balance.unpaid_used == 5
    assert balance.toil_hours_earned == 6
    assert balance.toil_hours_used == 16


async def test_weekend_only_request_counts_zero(services: LeaveServices, team: Team) -> None:
    await _add_request(services, team.carol, date(2025, 6, 14), date(2025, 6, 15))
    balance = await services.balances.get_balance(team.carol.id, 2025)
    assert balance.used == 0
    assert balance.history[0].working_days == 0


async def test_year_straddling_request_splits_working_days(services: LeaveServices, team: Team) -> None:
    # Mon 2024-12-30 .. Fri 2025-01-03: two days in 2024, three in 2025.
    await _add_request(services, team.carol, date(2024, 12, 30), date(2025, 1, 3))

    assert (await services.balances.get_balance(team.carol.id, 2024)).used == 2
    assert (await services.balances.get_balance(team.carol.id, 2025)).used == 3
    assert (await services.balances.get_balance(team.carol.id, 2026)).used == 0


async def test_unknown_user_raises_not_found(services: LeaveServices) -> None:
    with pytest.raises(NotFoundError):
        await services.balances.get_balance(uuid.uuid4(), 2025)


async def test_compute_balance_ignores_non_approved(team: Team) -> None:
    pending = LeaveRequest(
        user_id=team.carol.id,
        start_date=date(2025, 6, 16),
        end_date=date(2025, 6, 18),
        type=LeaveType.ANNUAL,
        status=LeaveStatus.PENDING,
    )
    assert compute_balance(team.carol, [pending], 2025).used == 0


# ---------------------------------------------------------------------------
# Caching
# ---------------------------------------------------------------------------


async def test_recomputation_is_idempotent_and_cached(
    services: LeaveServices,
    team: Team,
    repository: CountingRepository,
) -> None:
    await _add_request(services, team.carol, date(2025, 6, 16), date(2025, 6, 18))

    first = await services.balances.get_balance(team.carol.id, 2025)
    calls_after_first = repository.find_calls
    second = await services.balances.get_balance(team.carol.id, 2025)

    assert first == second
    assert repository.find_calls == calls_after_first
    assert services.cache.stats().hits >= 1


async def test_cached_balance_is_not_shared_with_callers(services: LeaveServices, team: Team) -> None:
    first = await services.balances.get_balance(team.carol.id, 2025)
    first.used = 99
    second = await services.balances.get_balance(team.carol.id, 2025)
    assert second.used == 0


async def test_stale_until_invalidated(services: LeaveServices, team: Team) -> None:
    assert (await services.balances.get_balance(team.carol.id, 2025)).used == 0
    # A write that bypasses the workflow is invisible until the key is invalidated.
    await _add_request(services, team.carol, date(2025, 6, 16), date(2025, 6, 18))
    assert (await services.balances.get_balance(team.carol.id, 2025)).used == 0

    assert services.balances.invalidate_user(team.carol.id, [2025]) == 1
    assert (await services.balances.get_balance(team.carol.id, 2025)).used == 3


async def test_invalidate_user_without_years_drops_every_year(services: LeaveServices, team: Team) -> None:
    await services.balances.get_balance(team.carol.id, 2024)
    await services.balances.get_balance(team.carol.id, 2025)
    await services.balances.get_balance(team.alice.id, 2025)

    assert services.balances.invalidate_user(team.carol.id) == 2
    assert balance_key(team.alice.id, 2025) in services.cache


# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------


async def test_get_balances_fetches_requests_once(
    services: LeaveServices,
    team: Team,
    repository: CountingRepository,
) -> None:
    await _add_request(services, team.alice, date(2025, 6, 16), date(2025, 6, 16))
    await _add_request(services, team.bob, date(2025, 6, 16), date(2025, 6, 17))
    await _add_request(services, team.carol, date(2025, 6, 16), date(2025, 6, 18))
    repository.find_calls = 0
    repository.get_users_calls = 0

    balances = await services.balances.get_balances([team.carol.id, team.alice.id, team.bob.id], 2025)

    assert [b.user_id for b in balances] == [team.carol.id, team.alice.id, team.bob.id]
    assert [b.used for b in balances] == [3, 1, 2]
    assert repository.find_calls == 1
    assert repository.get_users_calls == 1


async def test_get_balances_matches_single_reads(services: LeaveServices, team: Team) -> None:
    await _add_request(services, team.alice, date(2025, 2, 3), date(2025, 2, 7))
    await _add_request(services, team.alice, date(2025, 4, 1), date(2025, 4, 1), LeaveType.SICK)

    batch = await services.balances.get_balances([team.alice.id, team.bob.id], 2025)
    services.cache.clear()
    singles = [
        await services.balances.get_balance(team.alice.id, 2025),
        await services.balances.get_balance(team.bob.id, 2025),
    ]

    assert batch == singles


async def test_get_balances_uses_cache_for_hits(
    services: LeaveServices,
    team: Team,
    repository: CountingRepository,
) -> None:
    await services.balances.get_balances([team.alice.id, team.bob.id], 2025)
    repository.find_calls = 0

    await services.balances.get_balances([team.alice.id, team.bob.id], 2025)

    assert repository.find_calls == 0


async def test_get_balances_unknown_user(services: LeaveServices, team: Team) -> None:
    with pytest.raises(NotFoundError):
        await services.balances.get_balances([team.alice.id, uuid.uuid4()], 2025)
