"""
Pydantic schemas for topics module.
DTOs for API input/output validation.
"""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from practice_journal.library.schemas import ContentRef, RepertoireRef
from practice_journal.logs.schemas import LogView, TopicRef


class TopicCreate(BaseModel):
    """DTO for creating a new topic. The topic number is assigned by the server."""

    title: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Topic title",
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "title": "Scales",
            }
        }
    }


class TopicUpdate(BaseModel):
    """DTO for updating a topic. topic_number never changes."""

    title: Optional[str] = Field(
        None,
        min_length=1,
        max_length=200,
        description="New topic title",
    )


class TopicRead(BaseModel):
    """DTO for reading a topic (without goals)."""

    id: str = Field(..., description="Topic ID")
    topic_number: int = Field(..., description="Sequential number per user")
    title: str = Field(..., description="Topic title")
    created_at: datetime = Field(..., description="Creation timestamp")

    model_config = {"from_attributes": True}


class GoalCreate(BaseModel):
    """DTO for adding a goal to a topic. The goal number is assigned by the server."""

    description: str = Field(..., min_length=1, description="What to achieve")
    repertoire_id: Optional[str] = Field(None, description="Piece this goal is about")
    content_ids: List[str] = Field(default_factory=list)

    model_config = {
        "json_schema_extra": {
            "example": {
                "description": "Major scales, two octaves, hands together",
            }
        }
    }


class GoalUpdate(BaseModel):
    """
    DTO for updating a goal.

    Completing a goal without date_completed stamps today's date;
    un-completing it clears the date.
    """

    description: Optional[str] = Field(None, min_length=1)
    is_complete: Optional[bool] = None
    date_completed: Optional[date] = None


class GoalRead(BaseModel):
    """DTO for reading a goal row."""

    id: str
    topic_id: str
    goal_number: str
    description: str
    is_complete: bool
    date_completed: Optional[date] = None
    repertoire_id: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class GoalDetail(GoalRead):
    """Goal with its topic, linked content and repertoire, and logs (newest first)."""

    topic: Optional[TopicRef] = None
    content: List[ContentRef] = Field(default_factory=list)
    repertoire: List[RepertoireRef] = Field(default_factory=list)
    logs: List[LogView] = Field(default_factory=list)


class TopicWithGoals(TopicRead):
    """Topic with goals ordered by sub-number, highest first."""

    goals: List[GoalDetail] = Field(default_factory=list)


class TopicTree(BaseModel):
    """DTO for listing topics with their goals."""

    topics: List[TopicWithGoals]
    total: int


class GoalWriteResult(BaseModel):
    """Outcome of a goal write that may recompute repertoire stats."""

    success: bool
    goal: Optional[GoalRead] = None
    stats_updated: bool = False
    recomputed_repertoire_ids: List[str] = Field(default_factory=list)
    secondary_failures: List[str] = Field(default_factory=list)


class TopicError(BaseModel):
    """Error response for topic operations."""

    error: str = Field(..., description="Error message")
    code: str = Field(..., description="Error code")

    model_config = {
        "json_schema_extra": {
            "example": {
                "error": "Topic not found",
                "code": "TOPIC_NOT_FOUND",
            }
        }
    }
