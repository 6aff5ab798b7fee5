"""
Stats service - activity data and the yearly heatmap.
"""

import logging
from datetime import date
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from practice_journal.core.dates import today_in_app_timezone
from practice_journal.core.exceptions import InvalidInputError
from practice_journal.stats.heatmap import YearCalendar, build_year_calendar
from practice_journal.stats.repository import ActivityRepository
from practice_journal.stats.schemas import ActivityEntry

logger = logging.getLogger(__name__)

MIN_YEAR = 1900
MAX_YEAR = 9999


def default_heatmap_year() -> int:
    """Current year in the application timezone."""
    return today_in_app_timezone().year


class ActivityService:
    """Service for practice activity statistics."""

    def __init__(self, db: AsyncSession):
        self.repository = ActivityRepository(db)

    async def get_activity(self, user_id: Optional[str], year: Optional[int] = None) -> List[ActivityEntry]:
        """
        Sparse per-day log counts for a year (days without logs omitted).

        Raises:
            InvalidInputError: If year is out of range
        """
        if user_id is None:
            return []

        year = _check_year(year)
        rows = await self.repository.count_logs_per_day(user_id, date(year, 1, 1), date(year, 12, 31))
        return [ActivityEntry(date=day, count=count) for day, count in rows]

    async def get_year_calendar(self, user_id: Optional[str], year: Optional[int] = None) -> YearCalendar:
        """Heatmap grid for a year, built from get_activity."""
        year = _check_year(year)
        activity = await self.get_activity(user_id, year)
        calendar = build_year_calendar(((a.date, a.count) for a in activity), year)

        logger.info(f"[ActivityService] Built {year} calendar for user {user_id}: {calendar.total} logs")
        return calendar


def _check_year(year: Optional[int]) -> int:
    if year is None:
        return default_heatmap_year()
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise InvalidInputError(f"Year out of range: {year}")
    return year


def get_activity_service(db: AsyncSession) -> ActivityService:
    """Factory function for ActivityService."""
    return ActivityService(db)
