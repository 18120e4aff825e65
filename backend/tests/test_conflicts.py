"""Tests for the coverage conflict detector among protected users."""

from __future__ import annotations

import uuid
from datetime import date
from typing import TYPE_CHECKING

import pytest

from conftest import as_principal
from leave_tracker.exceptions import ValidationError
from leave_tracker.models.enums import LeaveType
from leave_tracker.schemas.request import SubmitLeavePayload
from leave_tracker.services.conflict import ConflictDetector
from leave_tracker.services.notifications import NotificationKind

if TYPE_CHECKING:
    from conftest import Team

    from leave_tracker.models.user import User
    from leave_tracker.schemas.auth import Principal
    from leave_tracker.services.container import LeaveServices
    from leave_tracker.services.notifications import InMemoryNotifier


async def _submit(services: LeaveServices, user: User, start: date, end: date) -> uuid.UUID:
    result = await services.workflow.submit(
        as_principal(user),
        SubmitLeavePayload(start_date=start, end_date=end, type=LeaveType.ANNUAL),
    )
    return result.request.id


async def test_no_conflict_when_nobody_is_off(services: LeaveServices, team: Team) -> None:
    result = await services.conflicts.check_conflict(date(2025, 6, 16), date(2025, 6, 20), team.bob.id)
    assert result.has_conflict is False
    assert result.conflicting_users == []


async def test_approved_overlap_is_a_conflict(services: LeaveServices, team: Team, admin: Principal) -> None:
    request_id = await _submit(services, team.alice, date(2025, 6, 16), date(2025, 6, 18))
    await services.workflow.approve(request_id, admin)

    result = await services.conflicts.check_conflict(date(2025, 6, 18), date(2025, 6, 20), team.bob.id)

    assert result.has_conflict is True
    assert result.conflicting_users == ["Alice"]


async def test_pending_overlap_clears_once_rejected(services: LeaveServices, team: Team, admin: Principal) -> None:
    request_id = await _submit(services, team.alice, date(2025, 6, 16), date(2025, 6, 18))
    assert (await services.conflicts.check_conflict(date(2025, 6, 17), date(2025, 6, 17), team.bob.id)).has_conflict

    await services.workflow.reject(request_id, admin, "Coverage needed that week")

    result = await services.conflicts.check_conflict(date(2025, 6, 17), date(2025, 6, 17), team.bob.id)
    assert result.has_conflict is False


async def test_adjacent_ranges_do_not_conflict(services: LeaveServices, team: Team) -> None:
    await _submit(services, team.alice, date(2025, 6, 16), date(2025, 6, 18))
    result = await services.conflicts.check_conflict(date(2025, 6, 19), date(2025, 6, 20), team.bob.id)
    assert result.has_conflict is False


async def test_excluded_user_is_ignored(services: LeaveServices, team: Team) -> None:
    await _submit(services, team.alice, date(2025, 6, 16), date(2025, 6, 18))
    result = await services.conflicts.check_conflict(date(2025, 6, 16), date(2025, 6, 18), team.alice.id)
    assert result.has_conflict is False


async def test_unprotected_users_are_ignored(services: LeaveServices, team: Team) -> None:
    await _submit(services, team.carol, date(2025, 6, 16), date(2025, 6, 18))
    result = await services.conflicts.check_conflict(date(2025, 6, 16), date(2025, 6, 18), team.bob.id)
    assert result.has_conflict is False


async def test_explicit_protected_set(services: LeaveServices, team: Team) -> None:
    await _submit(services, team.carol, date(2025, 6, 16), date(2025, 6, 18))
    result = await services.conflicts.check_conflict(
        date(2025, 6, 16),
        date(2025, 6, 18),
        exclude_user_id=team.bob.id,
        protected_user_ids={team.bob.id, team.carol.id},
    )
    assert result.conflicting_users == ["Carol"]


async def test_conflicting_users_are_distinct(services: LeaveServices, team: Team) -> None:
    await _submit(services, team.alice, date(2025, 6, 16), date(2025, 6, 16))
    await _submit(services, team.alice, date(2025, 6, 18), date(2025, 6, 18))
    result = await services.conflicts.check_conflict(date(2025, 6, 16), date(2025, 6, 20), team.bob.id)
    assert result.conflicting_users == ["Alice"]


async def test_inverted_range_is_rejected(services: LeaveServices, team: Team) -> None:
    with pytest.raises(ValidationError):
        await services.conflicts.check_conflict(date(2025, 6, 20), date(2025, 6, 16), team.bob.id)


async def test_disabled_detector_never_reports(services: LeaveServices, team: Team) -> None:
    await _submit(services, team.alice, date(2025, 6, 16), date(2025, 6, 18))
    detector = ConflictDetector(services.repository, ["alice@example.com", "bob@example.com"], enabled=False)
    result = await detector.check_conflict(date(2025, 6, 16), date(2025, 6, 18), team.bob.id)
    assert result.has_conflict is False


async def test_protected_submission_reports_conflict_and_warns_admins(
    services: LeaveServices,
    team: Team,
    notifier: InMemoryNotifier,
) -> None:
    await _submit(services, team.alice, date(2025, 6, 16), date(2025, 6, 18))

    result = await services.workflow.submit(
        as_principal(team.bob),
        SubmitLeavePayload(start_date=date(2025, 6, 17), end_date=date(2025, 6, 19)),
    )
    await services.workflow.wait_for_notifications()

    assert result.conflict is not None
    assert result.conflict.conflicting_users == ["Alice"]
    warnings = notifier.of_kind(NotificationKind.CONFLICT_WARNING)
    assert len(warnings) == 1
    assert warnings[0].recipients == ["admin@example.com"]


async def test_unprotected_submission_skips_conflict_check(services: LeaveServices, team: Team) -> None:
    await _submit(services, team.alice, date(2025, 6, 16), date(2025, 6, 18))
    result = await services.workflow.submit(
        as_principal(team.carol),
        SubmitLeavePayload(start_date=date(2025, 6, 16), end_date=date(2025, 6, 18)),
    )
    assert result.conflict is None
