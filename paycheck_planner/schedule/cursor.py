"""
Date Cursor Arithmetic

Pure calendar helpers shared by the projector, the populator and the
planning queries. No I/O, no timezones: every date here is a plain
calendar date and every date string is built from its calendar fields.
"""

from calendar import monthrange
from datetime import date, timedelta
from typing import Optional, Union

from paycheck_planner.models.planning import Frequency


WEEKLY_DAYS = 7
BI_WEEKLY_DAYS = 14


def validate_month(month: int) -> int:
    if not 1 <= month <= 12:
        raise ValueError(f"Month must be between 1 and 12, got {month}")
    return month


def clip_day(year: int, month: int, day: int) -> date:
    """The given day in (year, month), clipped to the month length."""
    last_day = monthrange(year, month)[1]
    return date(year, month, min(day, last_day))


def shift_month(year: int, month: int, offset: int) -> tuple[int, int]:
    """
    Move (year, month) by offset months, carrying into the year.

    >>> shift_month(2025, 11, 3)
    (2026, 2)
    """
    validate_month(month)
    total_month = month - 1 + offset
    return year + total_month // 12, total_month % 12 + 1


def add_months(start: date, months: int, anchor_day: Optional[int] = None) -> date:
    """
    Same day-of-month, months later.

    The day is anchor_day (start.day when omitted), clipped to the length
    of the target month: Jan 31 + 1 month is Feb 28 (or 29).
    """
    year, month = shift_month(start.year, start.month, months)
    return clip_day(year, month, anchor_day or start.day)


def advance(
    current: date,
    frequency: Union[Frequency, str],
    anchor_day: Optional[int] = None,
) -> date:
    """
    Next occurrence after current.

    Monthly steps target anchor_day when given, so a cursor clipped to
    Feb 28 lands back on the 31st in March.

    Raises:
        ValueError: If the frequency is unknown
    """
    frequency = Frequency(frequency)
    if frequency == Frequency.WEEKLY:
        return current + timedelta(days=WEEKLY_DAYS)
    if frequency == Frequency.BI_WEEKLY:
        return current + timedelta(days=BI_WEEKLY_DAYS)
    return add_months(current, 1, anchor_day)


def first_on_or_after(
    start: date,
    frequency: Union[Frequency, str],
    minimum: date,
) -> date:
    """
    First occurrence of a schedule starting at start that is >= minimum.

    Equivalent to calling advance() until the cursor reaches minimum,
    without walking every intermediate step.
    """
    frequency = Frequency(frequency)
    if start >= minimum:
        return start

    if frequency == Frequency.MONTHLY:
        months_between = (minimum.year - start.year) * 12 + (minimum.month - start.month)
        candidate = add_months(start, months_between, start.day)
        if candidate < minimum:
            candidate = add_months(start, months_between + 1, start.day)
        return candidate

    interval = WEEKLY_DAYS if frequency == Frequency.WEEKLY else BI_WEEKLY_DAYS
    days_between = (minimum - start).days
    intervals = (days_between + interval - 1) // interval
    return start + timedelta(days=interval * intervals)


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last day of a month."""
    validate_month(month)
    return date(year, month, 1), clip_day(year, month, 31)


def window_bounds(year: int, month: int, window: int = 0) -> tuple[date, date]:
    """
    Inclusive date range of a planning window.

    From the first day of (year, month) through the last day of the
    month `window` months later.
    """
    if window < 0:
        raise ValueError(f"Planning window cannot be negative, got {window}")
    start, _ = month_bounds(year, month)
    end_year, end_month = shift_month(year, month, window)
    _, end = month_bounds(end_year, end_month)
    return start, end


def to_date_string(value: date) -> str:
    """YYYY-MM-DD from calendar fields."""
    return f"{value.year:04d}-{value.month:02d}-{value.day:02d}"


def to_month_string(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def parse_date_string(value: str) -> date:
    """
    Parse YYYY-MM-DD into a calendar date.

    Raises:
        ValueError: If the string is not a valid YYYY-MM-DD date
    """
    parts = value.strip().split("-")
    if len(parts) != 3 or not all(part.isdigit() for part in parts):
        raise ValueError(f"Expected a YYYY-MM-DD date, got {value!r}")
    year, month, day = (int(part) for part in parts)
    return date(year, month, day)
