"""
Sessions repository - Data Access Layer for practice sessions.
All session lookups filter by user_id for security.
"""

import logging
from datetime import date
from typing import Optional, Sequence
from uuid import uuid4

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from practice_journal.sessions.models import PracticeSession, SessionGoal

logger = logging.getLogger(__name__)


class SessionRepository:
    """Repository for PracticeSession and SessionGoal operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find(self, user_id: str, session_date: date) -> Optional[PracticeSession]:
        """Get the user's session for a date, if it exists."""
        stmt = (
            select(PracticeSession)
            .where(PracticeSession.user_id == user_id)
            .where(PracticeSession.session_date == session_date)
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def get_by_id(self, session_id: str) -> Optional[PracticeSession]:
        result = await self.db.execute(select(PracticeSession).where(PracticeSession.id == session_id))
        return result.scalar_one_or_none()

    async def create(self, user_id: str, session_date: date) -> PracticeSession:
        """
        Insert the session row for a date.

        Raises:
            IntegrityError: If the user already has a session for that date
        """
        session = PracticeSession(id=str(uuid4()), user_id=user_id, session_date=session_date)

        async with self.db.begin_nested():
            self.db.add(session)
            await self.db.flush()

        logger.info(f"[SessionRepository] Created session: {session.id} on {session_date} for user: {user_id}")
        return session

    async def get_entries(self, session_id: str) -> Sequence[SessionGoal]:
        """Session goals in the order they were added."""
        stmt = (
            select(SessionGoal)
            .where(SessionGoal.session_id == session_id)
            .order_by(SessionGoal.added_at.asc(), SessionGoal.id.asc())
        )
        result = await self.db.execute(stmt)
        return result.scalars().all()

    async def has_goal(self, session_id: str, goal_id: str) -> bool:
        stmt = select(SessionGoal.id).where(
            SessionGoal.session_id == session_id, SessionGoal.goal_id == goal_id
        )
        result = await self.db.execute(stmt)
        return result.first() is not None

    async def add_goal(self, session_id: str, goal_id: str) -> SessionGoal:
        """
        Raises:
            IntegrityError: If the goal is already in the session
        """
        entry = SessionGoal(id=str(uuid4()), session_id=session_id, goal_id=goal_id)

        async with self.db.begin_nested():
            self.db.add(entry)
            await self.db.flush()
        return entry

    async def remove_goal(self, session_id: str, goal_id: str) -> bool:
        stmt = (
            delete(SessionGoal)
            .where(SessionGoal.session_id == session_id)
            .where(SessionGoal.goal_id == goal_id)
        )
        result = await self.db.execute(stmt)
        return result.rowcount > 0

    async def clear(self, session_id: str) -> int:
        """Remove every goal from a session; the session row stays."""
        result = await self.db.execute(delete(SessionGoal).where(SessionGoal.session_id == session_id))
        return result.rowcount
