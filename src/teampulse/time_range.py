"""Reporting window helpers for daily, weekly and sprint snapshots."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional


@dataclass(frozen=True)
class TimeRange:
    start: datetime
    end: datetime


def _now(now: Optional[datetime]) -> datetime:
    return now if now is not None else datetime.now(timezone.utc)


def daily_time_range(now: Optional[datetime] = None) -> TimeRange:
    """Last 24 hours ending at ``now``."""
    end = _now(now)
    return TimeRange(start=end - timedelta(days=1), end=end)


def weekly_time_range(weeks_ago: int = 0, now: Optional[datetime] = None) -> TimeRange:
    """Seven days ending ``weeks_ago`` weeks before ``now``.

    ``weeks_ago=0`` is the current week, ``weeks_ago=1`` the week before.
    """
    end = _now(now) - timedelta(weeks=weeks_ago)
    return TimeRange(start=end - timedelta(weeks=1), end=end)


def sprint_time_range(start: datetime, end: datetime, now: Optional[datetime] = None) -> TimeRange:
    """Sprint window from its planned dates; an end in the future is capped at ``now``."""
    current = _now(now)
    return TimeRange(start=start, end=min(end, current))
