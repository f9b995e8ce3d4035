# app/utils/week.py
"""
Business week numbering (NOT ISO-8601).

Week 1 of a year starts on the first Monday on/after 1 January. Weeks run
Monday–Sunday, so a year has 52 or 53 weeks, and the days before the first
Monday belong to the last week of the previous year.

Years whose first week starts elsewhere can be pinned in
settings.WEEK_START_OVERRIDES (year -> Monday of week 1).
"""

from datetime import date, datetime, timedelta
from typing import Union

from app.config import settings

DateLike = Union[date, datetime, str]


def _as_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def first_monday(year: int) -> date:
    """Monday that starts week 1 of `year`."""
    override = settings.WEEK_START_OVERRIDES.get(year)
    if override:
        return _as_date(override)
    jan1 = date(year, 1, 1)
    return jan1 + timedelta(days=(7 - jan1.weekday()) % 7)


def monday_of(value: DateLike) -> date:
    d = _as_date(value)
    return d - timedelta(days=d.weekday())


def week_of(value: DateLike) -> tuple[int, int]:
    """Map a date to its (year, week_number)."""
    monday = monday_of(value)
    # An override may pull week 1 of next year into late December
    for year in (monday.year + 1, monday.year, monday.year - 1):
        start = first_monday(year)
        if start <= monday:
            return year, (monday - start).days // 7 + 1
    raise ValueError(f"No week start found for {monday}")


def week_id(value: DateLike) -> str:
    """'YYYY-WW' label used by the dashboard."""
    year, week = week_of(value)
    return f"{year}-{week:02d}"


def week_bounds(year: int, week: int) -> tuple[date, date]:
    """(Monday, Sunday) of the given business week."""
    monday = first_monday(year) + timedelta(weeks=week - 1)
    return monday, monday + timedelta(days=6)
