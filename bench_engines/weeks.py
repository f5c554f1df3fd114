"""
Week arithmetic (``bench_engines.weeks``).

Timesheets cover one ISO week, Monday through Sunday.  Any day a caller
passes is normalised to the Monday of its week before it is stored or
compared.  Pure functions, no clock reads.
"""

from __future__ import annotations

from datetime import date, timedelta


def normalize_week_start(day: date) -> date:
    """Monday of the ISO week containing ``day``."""
    return day - timedelta(days=day.weekday())


def week_end(week_start: date) -> date:
    """Sunday closing the week that starts on ``week_start``.

    Raises:
        ValueError: week_start is not a Monday.
    """
    if week_start.weekday() != 0:
        raise ValueError(f"week_start must be a Monday, got {week_start.isoformat()}")
    return week_start + timedelta(days=6)


def week_bounds(day: date) -> tuple[date, date]:
    start = normalize_week_start(day)
    return start, week_end(start)


def is_within_week(day: date, week_start: date) -> bool:
    return week_start <= day <= week_end(week_start)
