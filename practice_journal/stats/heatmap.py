"""
Activity heatmap - year calendar aggregation.

Turns a sparse list of (date, count) entries into a dense, week-bucketed
grid for one calendar year. Weeks run Sunday to Saturday: the first week
is left-padded with None for the days before January 1st, the last week
simply stops at December 31st.
"""

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

from practice_journal.core.dates import parse_iso_date

DAYS_PER_WEEK = 7

# Upper bound (inclusive) of the daily count for buckets 0-3; anything above is 4
# [0, 1-2, 3-4, 5-7, 8+]
BUCKET_UPPER_BOUNDS = [0, 2, 4, 7]

TOP_BUCKET = len(BUCKET_UPPER_BOUNDS)

ActivityEntry = Union[Mapping[str, object], Tuple[Union[str, date], int]]


@dataclass
class HeatmapDay:
    """One calendar day of the grid."""
    date: date
    count: int
    bucket: int


@dataclass
class MonthLabel:
    """Month label and the week column it renders above."""
    month: str
    week_index: int


@dataclass
class YearCalendar:
    """Rendering-ready heatmap for one year."""
    year: int
    days: List[HeatmapDay]
    weeks: List[List[Optional[HeatmapDay]]]
    months: List[MonthLabel]
    total: int
    first_day_offset: int = 0
    max_count: int = 0


def bucket_for_count(count: int) -> int:
    """
    Color bucket (0-4) for a daily count.

    >>> [bucket_for_count(n) for n in (0, 1, 2, 3, 4, 5, 7, 8, 30)]
    [0, 1, 1, 2, 2, 3, 3, 4, 4]
    """
    for bucket, upper in enumerate(BUCKET_UPPER_BOUNDS):
        if count <= upper:
            return bucket
    return TOP_BUCKET


def sunday_offset(day: date) -> int:
    """Column of a day in a Sunday-first week (Sunday = 0)."""
    return (day.weekday() + 1) % DAYS_PER_WEEK


def year_days(year: int) -> List[date]:
    """Every calendar day of a year, January 1st to December 31st."""
    start = date(year, 1, 1)
    length = 366 if calendar.isleap(year) else 365
    return [start + timedelta(days=i) for i in range(length)]


def _normalize(entries: Iterable[ActivityEntry], year: int) -> Tuple[Dict[date, int], int]:
    counts: Dict[date, int] = {}
    total = 0
    for entry in entries:
        if isinstance(entry, Mapping):
            raw_date, count = entry["date"], entry["count"]
        else:
            raw_date, count = entry
        day = parse_iso_date(raw_date)
        count = int(count)
        total += count
        if day.year == year:
            counts[day] = counts.get(day, 0) + count
    return counts, total


def build_year_calendar(entries: Iterable[ActivityEntry], year: int) -> YearCalendar:
    """
    Build the heatmap grid for a year.

    Args:
        entries: Sparse activity, each {"date": "YYYY-MM-DD", "count": n}
            or a (date, count) pair. Dates repeated in the input are summed.
        year: Target calendar year

    Returns:
        YearCalendar with one HeatmapDay per calendar day (zero-filled),
        the days grouped into Sunday-first weeks, a label for the first
        week each month appears in, and the sum of all provided counts.

    Raises:
        InvalidInputError: If an entry date is malformed
    """
    counts, total = _normalize(entries, year)
    days = [
        HeatmapDay(date=d, count=counts.get(d, 0), bucket=bucket_for_count(counts.get(d, 0)))
        for d in year_days(year)
    ]

    offset = sunday_offset(days[0].date)
    weeks: List[List[Optional[HeatmapDay]]] = []
    current: List[Optional[HeatmapDay]] = [None] * offset
    for day in days:
        current.append(day)
        if len(current) == DAYS_PER_WEEK:
            weeks.append(current)
            current = []
    if current:
        weeks.append(current)

    months: List[MonthLabel] = []
    last_month = None
    for index, day in enumerate(days):
        if day.date.month != last_month:
            months.append(
                MonthLabel(
                    month=calendar.month_abbr[day.date.month],
                    week_index=(offset + index) // DAYS_PER_WEEK,
                )
            )
            last_month = day.date.month

    return YearCalendar(
        year=year,
        days=days,
        weeks=weeks,
        months=months,
        total=total,
        first_day_offset=offset,
        max_count=max((d.count for d in days), default=0),
    )
