"""
Stats router - activity data and the yearly heatmap.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Query

from practice_journal.dependencies import CurrentUserId, DBSession
from practice_journal.stats.schemas import ActivityList, YearCalendarRead
from practice_journal.stats.service import default_heatmap_year, get_activity_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/stats", tags=["Stats"])


@router.get(
    "/activity",
    response_model=ActivityList,
    summary="Logs per day",
    description="Sparse per-day log counts for a year. Defaults to the current year in the application timezone.",
)
async def get_activity(
        user_id: CurrentUserId,
        db: DBSession,
        year: Optional[int] = Query(None, description="Calendar year"),
) -> ActivityList:
    year = year or default_heatmap_year()
    service = get_activity_service(db)
    return ActivityList(year=year, activity=await service.get_activity(user_id, year))


@router.get(
    "/calendar",
    response_model=YearCalendarRead,
    summary="Activity heatmap",
    description=(
        "Every day of the year with its log count and color bucket (0, 1-2, 3-4, 5-7, 8+), "
        "grouped into Sunday-first weeks, with month labels."
    ),
)
async def get_year_calendar(
        user_id: CurrentUserId,
        db: DBSession,
        year: Optional[int] = Query(None, description="Calendar year"),
) -> YearCalendarRead:
    logger.info(f"[StatsRouter] Building calendar for {year or 'current year'}, user: {user_id}")

    service = get_activity_service(db)
    calendar = await service.get_year_calendar(user_id, year)
    return YearCalendarRead.model_validate(calendar)
