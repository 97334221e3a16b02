"""Date helpers shared by the models and the recurrence services.

All datetimes are persisted as naive UTC, the same convention as
``datetime.utcnow()``. Aware values are converted on the way in.
"""
from datetime import date, datetime

import pytz


def utc_now() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(pytz.utc).replace(tzinfo=None)


def to_utc_naive(value: datetime) -> datetime:
    """Normalize an aware datetime to naive UTC; naive values are assumed UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(pytz.utc).replace(tzinfo=None)


def date_only(value) -> date:
    """Calendar day of a datetime (in UTC) or a plain date."""
    if isinstance(value, datetime):
        return to_utc_naive(value).date()
    if isinstance(value, date):
        return value
    raise TypeError(f"Expected date or datetime, got {type(value).__name__}")
