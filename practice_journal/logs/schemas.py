"""
Pydantic schemas for logs module.
DTOs for API input/output validation.
"""

from datetime import date as date_type, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from practice_journal.library.schemas import ContentRef, RepertoireRef


class LogCreate(BaseModel):
    """DTO for logging practice on a goal."""

    goal_id: str = Field(..., description="Goal the practice was for")
    entry: str = Field(..., min_length=1, description="What was practiced")
    date: Optional[date_type] = Field(None, description="Day practiced (defaults to today)")
    content_ids: List[str] = Field(default_factory=list)
    repertoire_ids: List[str] = Field(default_factory=list)

    model_config = {
        "json_schema_extra": {
            "example": {
                "goal_id": "3f0b6c1e-0000-0000-0000-000000000000",
                "entry": "Major scales hands together at 90 bpm",
                "date": "2025-03-14",
                "repertoire_ids": [],
            }
        }
    }


class LogUpdate(BaseModel):
    """DTO for editing a log. Changing date recomputes repertoire stats."""

    entry: Optional[str] = Field(None, min_length=1)
    date: Optional[date_type] = None


class LogRead(BaseModel):
    """DTO for reading a log row."""

    id: str
    goal_id: str
    entry: str
    date: date_type
    created_at: datetime

    model_config = {"from_attributes": True}


class LogView(LogRead):
    """Log with its linked content and repertoire."""

    is_today: bool = False
    content: List[ContentRef] = Field(default_factory=list)
    repertoire: List[RepertoireRef] = Field(default_factory=list)


class GoalRef(BaseModel):
    id: str
    goal_number: str
    description: str

    model_config = {"from_attributes": True}


class TopicRef(BaseModel):
    id: str
    topic_number: int
    title: str

    model_config = {"from_attributes": True}


class LogWithGoal(LogView):
    """Log entry as listed by date range, with its goal and topic."""

    goal: Optional[GoalRef] = None
    topic: Optional[TopicRef] = None


class LogList(BaseModel):
    logs: List[LogWithGoal]
    total: int


class WriteResult(BaseModel):
    """Outcome of a multi-step write."""

    success: bool
    stats_updated: bool = False
    recomputed_repertoire_ids: List[str] = Field(default_factory=list)
    secondary_failures: List[str] = Field(default_factory=list)


class LogWriteResult(WriteResult):
    log: Optional[LogRead] = None


class LinkRequest(BaseModel):
    """Body for linking a content or repertoire item."""

    id: str = Field(..., description="Content or repertoire ID")


class LogError(BaseModel):
    """Error response for log operations."""

    error: str = Field(..., description="Error message")
    code: str = Field(..., description="Error code")
