from __future__ import annotations

from datetime import date, timedelta
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

_SATURDAY = 5


def is_weekend(day: date) -> bool:
    """Saturday or Sunday."""
    return day.weekday() >= _SATURDAY


def count_working_days(start_date: date, end_date: date) -> int:
    """Count weekdays in the inclusive range ``[start_date, end_date]``.

    Returns 0 for an inverted range or a range that only covers a weekend.
    """
    if end_date < start_date:
        return 0

    total_days = (end_date - start_date).days + 1
    full_weeks, remainder = divmod(total_days, 7)
    working_days = full_weeks * 5

    current_date = start_date + timedelta(days=full_weeks * 7)
    one_day = timedelta(days=1)
    for _ in range(remainder):
        if not is_weekend(current_date):
            working_days += 1
        current_date += one_day

    return working_days


def year_bounds(year: int) -> tuple[date, date]:
    """First and last day of a calendar year."""
    return date(year, 1, 1), date(year, 12, 31)


def ranges_overlap(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    """Inclusive interval overlap."""
    return a_start <= b_end and b_start <= a_end


def clip_to_range(start_date: date, end_date: date, lower: date, upper: date) -> tuple[date, date] | None:
    """Intersect ``[start_date, end_date]`` with ``[lower, upper]``; None when disjoint."""
    clipped_start = max(start_date, lower)
    clipped_end = min(end_date, upper)
    if clipped_start > clipped_end:
        return None
    return clipped_start, clipped_end


def years_spanned(start_date: date, end_date: date) -> range:
    """Calendar years touched by an inclusive date range."""
    return range(start_date.year, end_date.year + 1)


def iter_days(start_date: date, end_date: date) -> Iterator[date]:
    """Yield each date in the inclusive range."""
    current_date = start_date
    one_day = timedelta(days=1)
    while current_date <= end_date:
        yield current_date
        current_date += one_day
