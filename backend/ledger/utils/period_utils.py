"""Calendar helpers; every boundary is an inclusive calendar date."""

import calendar
from datetime import date, timedelta


def month_bounds(year: int, month: int):
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def shift_month(year: int, month: int, delta: int):
    """Return ``(year, month)`` moved by ``delta`` months."""
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def add_days(day: date, days: int) -> date:
    return day + timedelta(days=days)
