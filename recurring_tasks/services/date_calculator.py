"""
Date Calculator

Pure date arithmetic for recurring tasks: next occurrence, chained future
dates and calendar-day comparison. No I/O and no collaborators.
"""

import calendar
from datetime import date, datetime, timedelta
from typing import List, Union

from recurring_tasks.exceptions import InvalidArgument
from recurring_tasks.models.recurrence_rule import RepeatType
from recurring_tasks.utils.dates import date_only

REPEATING_TYPES = (RepeatType.DAILY, RepeatType.WEEKLY, RepeatType.MONTHLY)
MAX_FUTURE_DATES = 100
MAX_PERIOD_ITERATIONS = 1000

_DESCRIPTIONS = {
    RepeatType.NONE: "No recurrence",
    RepeatType.DAILY: "Repeats daily",
    RepeatType.WEEKLY: "Repeats weekly",
    RepeatType.MONTHLY: "Repeats monthly",
}


def parse_repeat_type(kind: Union[str, RepeatType, None]) -> RepeatType:
    """
    Validate a repeat type that must actually repeat.

    Raises:
        InvalidArgument: for None, empty strings, "none" or unknown values
    """
    if not kind or not isinstance(kind, str):
        raise InvalidArgument("Valid repeat type is required", {"repeat_type": kind})
    try:
        repeat_type = RepeatType(kind)
    except ValueError:
        raise InvalidArgument(
            "Invalid repeat type. Must be one of: daily, weekly, monthly",
            {"repeat_type": kind},
        ) from None
    if repeat_type not in REPEATING_TYPES:
        raise InvalidArgument(
            "Invalid repeat type. Must be one of: daily, weekly, monthly",
            {"repeat_type": kind},
        )
    return repeat_type


def _add_month(base: datetime) -> datetime:
    next_month = base.month + 1
    next_year = base.year
    if next_month > 12:
        next_month = 1
        next_year += 1

    # Clamp to the last day when the target month is shorter (Jan 31 -> Feb 28/29)
    max_day = calendar.monthrange(next_year, next_month)[1]
    return base.replace(year=next_year, month=next_month, day=min(base.day, max_day))


def calculate_next(base: datetime, kind: Union[str, RepeatType]) -> datetime:
    """
    Calculate the next occurrence after ``base``.

    Time of day and tzinfo are preserved exactly.

    Args:
        base: Date and time to advance from
        kind: daily, weekly or monthly

    Returns:
        The next occurrence, always strictly later than ``base``

    Raises:
        InvalidArgument: if base is not a datetime, kind does not repeat, or the
            next occurrence would fall after datetime.max
    """
    if not isinstance(base, datetime):
        raise InvalidArgument("Valid base date is required", {"base": repr(base)})
    repeat_type = parse_repeat_type(kind)

    try:
        if repeat_type == RepeatType.DAILY:
            return base + timedelta(days=1)
        if repeat_type == RepeatType.WEEKLY:
            return base + timedelta(weeks=1)
        return _add_month(base)
    except (OverflowError, ValueError) as exc:
        # Past datetime.max
        raise InvalidArgument(
            "Next occurrence is out of the supported date range",
            {"base": base.isoformat(), "repeat_type": repeat_type.value},
        ) from exc


def calculate_future_dates(
    base: datetime, kind: Union[str, RepeatType], count: int
) -> List[datetime]:
    """
    Calculate ``count`` chained occurrences after ``base``.

    Each date is computed from the previous one, not from ``base``, so a
    monthly series that clamps to Feb 29 continues from Feb 29.

    Raises:
        InvalidArgument: if count is not a positive integer up to 100
    """
    if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
        raise InvalidArgument("Count must be greater than 0", {"count": count})
    if count > MAX_FUTURE_DATES:
        raise InvalidArgument(
            f"Count cannot exceed {MAX_FUTURE_DATES} occurrences", {"count": count}
        )

    future_dates = []
    current = base
    for _ in range(count):
        current = calculate_next(current, kind)
        future_dates.append(current)
    return future_dates


def occurrences_in_period(
    start: datetime, end: datetime, kind: Union[str, RepeatType]
) -> List[datetime]:
    """Occurrences from ``start`` (inclusive) through ``end`` (inclusive)."""
    if not isinstance(start, datetime) or not isinstance(end, datetime):
        raise InvalidArgument("Valid start and end dates are required")
    if end <= start:
        raise InvalidArgument("End date must be after start date")

    occurrences = []
    current = start
    iterations = 0
    while current <= end and iterations < MAX_PERIOD_ITERATIONS:
        occurrences.append(current)
        current = calculate_next(current, kind)
        iterations += 1
    return occurrences


def compare_dates_only(first: Union[date, datetime], second: Union[date, datetime]) -> int:
    """Compare two values by calendar day only: -1, 0 or 1."""
    first_day = date_only(first)
    second_day = date_only(second)
    if first_day < second_day:
        return -1
    if first_day > second_day:
        return 1
    return 0


def describe_repeat_type(kind: Union[str, RepeatType, None]) -> str:
    """Human-readable label for a repeat type."""
    try:
        return _DESCRIPTIONS[RepeatType(kind)]
    except ValueError:
        return "Unknown recurrence pattern"
