"""
Pydantic schemas for stats module.
"""

from datetime import date as date_type
from typing import List, Optional

from pydantic import BaseModel, Field


class ActivityEntry(BaseModel):
    """Number of logs on one day."""

    date: date_type
    count: int


class ActivityList(BaseModel):
    year: int
    activity: List[ActivityEntry]


class HeatmapDayRead(BaseModel):
    date: date_type
    count: int
    bucket: int = Field(..., ge=0, le=4, description="Color bucket 0-4")

    model_config = {"from_attributes": True}


class MonthLabelRead(BaseModel):
    month: str
    week_index: int

    model_config = {"from_attributes": True}


class YearCalendarRead(BaseModel):
    """Heatmap for one year. Weeks are Sunday-first; the last week may be short."""

    year: int
    total: int
    max_count: int
    first_day_offset: int
    days: List[HeatmapDayRead]
    weeks: List[List[Optional[HeatmapDayRead]]]
    months: List[MonthLabelRead]

    model_config = {"from_attributes": True}
