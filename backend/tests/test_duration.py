"""Tests for working-day counting and date range helpers."""

from __future__ import annotations

from datetime import date

import pytest

from leave_tracker.services.duration import (
    clip_to_range,
    count_working_days,
    is_weekend,
    iter_days,
    ranges_overlap,
    years_spanned,
)


@pytest.mark.parametrize(
    ("start", "end", "expected"),
    [
        (date(2025, 6, 16), date(2025, 6, 18), 3),  # Mon..Wed
        (date(2025, 6, 16), date(2025, 6, 16), 1),  # single weekday
        (date(2025, 6, 14), date(2025, 6, 14), 0),  # single Saturday
        (date(2025, 6, 14), date(2025, 6, 15), 0),  # weekend only
        (date(2025, 6, 13), date(2025, 6, 16), 2),  # Fri..Mon
        (date(2025, 6, 2), date(2025, 6, 29), 20),  # four full weeks
        (date(2025, 6, 2), date(2025, 6, 30), 21),
        (date(2025, 1, 1), date(2025, 12, 31), 261),
    ],
)
def test_count_working_days(start: date, end: date, expected: int) -> None:
    assert count_working_days(start, end) == expected


def test_count_working_days_inverted_range_is_zero() -> None:
    assert count_working_days(date(2025, 6, 18), date(2025, 6, 16)) == 0


def test_is_weekend() -> None:
    assert is_weekend(date(2025, 6, 14))
    assert is_weekend(date(2025, 6, 15))
    assert not is_weekend(date(2025, 6, 16))


def test_ranges_overlap_is_inclusive() -> None:
    assert ranges_overlap(date(2025, 6, 1), date(2025, 6, 10), date(2025, 6, 10), date(2025, 6, 20))
    assert not ranges_overlap(date(2025, 6, 1), date(2025, 6, 9), date(2025, 6, 10), date(2025, 6, 20))


def test_clip_to_range() -> None:
    clipped = clip_to_range(date(2024, 12, 30), date(2025, 1, 3), date(2025, 1, 1), date(2025, 12, 31))
    assert clipped == (date(2025, 1, 1), date(2025, 1, 3))
    assert clip_to_range(date(2024, 12, 1), date(2024, 12, 5), date(2025, 1, 1), date(2025, 12, 31)) is None


def test_years_spanned() -> None:
    assert list(years_spanned(date(2024, 12, 30), date(2025, 1, 2))) == [2024, 2025]
    assert list(years_spanned(date(2025, 3, 1), date(2025, 3, 2))) == [2025]


def test_iter_days() -> None:
    assert list(iter_days(date(2025, 6, 30), date(2025, 7, 2))) == [
        date(2025, 6, 30),
        date(2025, 7, 1),
        date(2025, 7, 2),
    ]
