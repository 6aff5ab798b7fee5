"""
Pydantic schemas for sessions module.
DTOs for API input/output validation.
"""

from datetime import date, datetime
from typing import List

from pydantic import BaseModel, Field

from practice_journal.topics.schemas import GoalDetail


class SessionRead(BaseModel):
    """A day's session and the ids of its goals in insertion order."""

    id: str
    session_date: date
    goal_ids: List[str] = Field(default_factory=list)


class SessionGoalDetail(GoalDetail):
    """Goal planned in a session."""

    session_goal_id: str
    added_at: datetime


class SessionView(BaseModel):
    """Practice view for one day."""

    id: str
    session_date: date
    is_today: bool = False
    goals: List[SessionGoalDetail] = Field(default_factory=list)


class SessionGoalAdd(BaseModel):
    goal_id: str = Field(..., description="Goal to plan for the day")


class SessionActionResult(BaseModel):
    success: bool
    goal_ids: List[str] = Field(default_factory=list)
    removed: int = 0


class SessionError(BaseModel):
    """Error response for session operations."""

    error: str = Field(..., description="Error message")
    code: str = Field(..., description="Error code")
