"""
Stats repository - activity aggregation queries over logs.
"""

import logging
from datetime import date
from typing import List, Tuple

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from practice_journal.logs.models import Log

logger = logging.getLogger(__name__)


class ActivityRepository:
    """Repository for per-day log counts."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def count_logs_per_day(self, user_id: str, start: date, end: date) -> List[Tuple[date, int]]:
        """
        Number of logs per practice date with start <= date <= end.

        Days without logs are not returned.
        """
        stmt = (
            select(Log.date, func.count(Log.id))
            .where(Log.user_id == user_id)
            .where(Log.date >= start)
            .where(Log.date <= end)
            .group_by(Log.date)
            .order_by(Log.date.asc())
        )
        result = await self.db.execute(stmt)
        return [(day, count) for day, count in result.all()]
