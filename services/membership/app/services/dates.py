"""Calendar helpers shared by the lifecycle rules."""

from __future__ import annotations

import calendar
import math
from datetime import datetime, timedelta, timezone
from typing import Optional

from app.models.types import utcnow

_SECONDS_PER_DAY = 86400


def add_months(value: datetime, months: int) -> datetime:
    """Calendar-month arithmetic clamped to the last day of the target month.

    ``add_months(Jan 31, 1)`` is Feb 28 (or 29), never March 2/3.
    """

    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return value.replace(year=year, month=month, day=min(value.day, last_day))


def add_days(value: datetime, days: int) -> datetime:
    return value + timedelta(days=days)


def days_until(target: datetime, now: datetime) -> int:
    """Whole days from ``now`` to ``target``, rounded up. Negative when past."""

    seconds = (target - now).total_seconds()
    return math.ceil(seconds / _SECONDS_PER_DAY)


def as_utc(value: datetime) -> datetime:
    """Naive values are taken to be UTC already."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def resolve_now(now: Optional[datetime]) -> datetime:
    return as_utc(now) if now is not None else utcnow()


def earliest(*values: Optional[datetime]) -> Optional[datetime]:
    present = [value for value in values if value is not None]
    return min(present) if present else None


__all__ = ["add_months", "add_days", "days_until", "as_utc", "resolve_now", "earliest"]
