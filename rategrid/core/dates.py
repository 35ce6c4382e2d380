"""
Calendar arithmetic for the rate grid.

All grid keys are ISO calendar dates ("YYYY-MM-DD"). Windows and ranges
are inclusive on both ends.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Iterator, List, Optional


@dataclass(frozen=True)
class DateWindow:
    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def clip(self, start: date, end: date) -> Optional["DateWindow"]:
        """Intersect [start, end] with this window. None when they do not overlap."""
        lo = max(start, self.start)
        hi = min(end, self.end)
        if lo > hi:
            return None
        return DateWindow(lo, hi)

    @property
    def debut(self) -> str:
        return format_date(self.start)

    @property
    def fin(self) -> str:
        return format_date(self.end)


def format_date(d: date) -> str:
    return d.strftime("%Y-%m-%d")


def parse_date(value: Any) -> Optional[date]:
    """
    Parse a calendar date from a date, datetime or ISO string.

    Strings may carry a time suffix ("2025-03-01T00:00:00"); only the date
    part is used. Returns None for anything unparsable.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()[:10]
    try:
        return datetime.strptime(text, "%Y-%m-%d").date()
    except ValueError:
        return None


def add_days(d: date, n: int) -> date:
    return d + timedelta(days=n)


def add_months(d: date, n: int) -> date:
    # Day is clamped to the end of the target month (Jan 31 + 1 -> Feb 28/29).
    month_index = d.month - 1 + n
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(d.day, last_day))


def iter_days(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def days_in_range(start: date, end: date) -> List[date]:
    """Every day in [start, end], ascending. Empty when end < start."""
    return list(iter_days(start, end))


def date_range_strings(a: str, b: str) -> List[str]:
    """
    Inclusive ISO dates between two ISO dates given in either order.
    """
    first = parse_date(a)
    second = parse_date(b)
    if first is None or second is None:
        return []
    lo, hi = (first, second) if first <= second else (second, first)
    return [format_date(d) for d in iter_days(lo, hi)]


def window_for(start: date, months: int) -> DateWindow:
    return DateWindow(start, add_months(start, months))


def weeks_in_range(start: date, months: int) -> List[List[date]]:
    """
    Split [start, start + months) into display rows.

    The first row begins exactly at start and runs through the following
    Sunday; every later row starts on a Monday.
    """
    end = add_months(start, months)
    weeks: List[List[date]] = []
    current = start
    while current < end:
        row: List[date] = []
        while current < end:
            row.append(current)
            current += timedelta(days=1)
            if current.weekday() == 0:
                break
        weeks.append(row)
    return weeks
