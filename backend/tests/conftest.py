from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient

from leave_tracker.config import Settings
from leave_tracker.main import app
from leave_tracker.models.enums import UserRole
from leave_tracker.repositories.memory import InMemoryRepository
from leave_tracker.schemas.auth import Principal
from leave_tracker.services.cache import CacheLayer
from leave_tracker.services.container import build_services
from leave_tracker.services.notifications import InMemoryNotifier

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from leave_tracker.models.user import User
    from leave_tracker.services.container import LeaveServices

# A Monday; every workflow test runs "today" on this date.
TODAY = date(2025, 6, 2)
PROTECTED_EMAILS = ["alice@example.com", "bob@example.com"]


class FakeClock:
    """Monotonic clock for the cache that only moves when told to."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@dataclass
class Team:
    admin: User
    alice: User
    bob: User
    carol: User


def as_principal(user: User) -> Principal:
    return Principal(id=user.id, role=user.role, email=user.email, name=user.name)


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from any local .env file."""
    return Settings(
        _env_file=None,
        persistence_backend="memory",
        protected_user_emails=PROTECTED_EMAILS,
        default_annual_leave_allowance=32,
        default_sick_leave_allowance=10,
    )


@pytest.fixture
def repository() -> InMemoryRepository:
    return InMemoryRepository()


@pytest.fixture
def notifier() -> InMemoryNotifier:
    return InMemoryNotifier()


@pytest.fixture
def cache_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(cache_clock: FakeClock) -> CacheLayer:
    return CacheLayer(default_ttl=300, max_size=500, clock=cache_clock)


@pytest.fixture
async def services(
    settings: Settings,
    repository: InMemoryRepository,
    notifier: InMemoryNotifier,
    cache: CacheLayer,
) -> AsyncIterator[LeaveServices]:
    """Fully wired services over the in-memory repository with a fixed 'today'."""
    built = build_services(settings, repository, notifier, cache, clock=lambda: TODAY)
    yield built
    await built.workflow.wait_for_notifications()


@pytest.fixture
async def team(services: LeaveServices) -> Team:
    """One admin, two protected members and one member with a 25-day allowance."""
    return Team(
        admin=await services.create_user("admin@example.com", "Ada Admin", role=UserRole.ADMIN),
        alice=await services.create_user("alice@example.com", "Alice"),
        bob=await services.create_user("bob@example.com", "Bob"),
        carol=await services.create_user("carol@example.com", "Carol", annual_leave_allowance=25),
    )


@pytest.fixture
def admin(team: Team) -> Principal:
    return as_principal(team.admin)


@pytest.fixture
async def async_client(services: LeaveServices) -> AsyncIterator[AsyncClient]:
    """Async HTTP client bound to the test services."""
    app.state.services = services
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.state.services = None
