"""
Sessions service - one practice session per user and calendar day.

resolve_session maps (user_id, date) to exactly one session row, creating
it on first access. Creation is read-then-insert; when two first accesses
race, the unique (user_id, session_date) index rejects the second insert
and the existing row is re-read instead.

Resolved ids can be kept in a SessionCache owned by the caller. There is
no module-level session state.
"""

import logging
from collections import OrderedDict
from datetime import date
from typing import Optional, Set, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from practice_journal.core.dates import parse_iso_date, today_in_app_timezone
from practice_journal.sessions.models import PracticeSession
from practice_journal.sessions.repository import SessionRepository
from practice_journal.sessions.schemas import SessionGoalDetail, SessionRead, SessionView
from practice_journal.topics.repository import GoalRepository
from practice_journal.topics.service import GoalService

logger = logging.getLogger(__name__)


DEFAULT_CACHE_SIZE = 1024


class SessionCache:
    """
    Caller-owned map of (user_id, date) to resolved session id.

    Bounded: once max_entries ids are held, the least recently used entry
    is dropped. A dropped entry only costs one extra lookup on next access.
    """

    def __init__(self, max_entries: int = DEFAULT_CACHE_SIZE):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._ids: "OrderedDict[Tuple[str, date], str]" = OrderedDict()

    def get(self, user_id: str, session_date: date) -> Optional[str]:
        key = (user_id, session_date)
        session_id = self._ids.get(key)
        if session_id is not None:
            self._ids.move_to_end(key)
        return session_id

    def put(self, user_id: str, session_date: date, session_id: str) -> None:
        key = (user_id, session_date)
        self._ids[key] = session_id
        self._ids.move_to_end(key)
        while len(self._ids) > self.max_entries:
            self._ids.popitem(last=False)

    def invalidate(self, user_id: str, session_date: date) -> None:
        self._ids.pop((user_id, session_date), None)

    def clear(self) -> None:
        self._ids.clear()

    def __len__(self) -> int:
        return len(self._ids)


class SessionService:
    """Service for resolving sessions and editing their goal sets."""

    def __init__(self, db: AsyncSession, cache: Optional[SessionCache] = None):
        self.repository = SessionRepository(db)
        self.goals = GoalRepository(db)
        self.goal_service = GoalService(db)
        self.cache = cache

    async def resolve_session(self, user_id: Optional[str], session_date) -> Optional[PracticeSession]:
        """
        Get the user's session for a date, creating it if absent.

        Args:
            user_id: Owner user ID (None returns None)
            session_date: date or YYYY-MM-DD

        Returns:
            The session row, or None when not authenticated

        Raises:
            InvalidInputError: If the date is malformed
        """
        if user_id is None:
            logger.warning("[SessionService] resolve_session without user, skipping")
            return None

        session_date = parse_iso_date(session_date)

        if self.cache is not None:
            cached_id = self.cache.get(user_id, session_date)
            if cached_id is not None:
                session = await self.repository.get_by_id(cached_id)
                if session is not None:
                    return session
                self.cache.invalidate(user_id, session_date)

        session = await self.repository.find(user_id, session_date)
        if session is None:
            try:
                session = await self.repository.create(user_id, session_date)
            except IntegrityError:
                logger.info(
                    f"[SessionService] Session for {session_date} created concurrently, re-reading"
                )
                session = await self.repository.find(user_id, session_date)
                if session is None:
                    raise

        if self.cache is not None:
            self.cache.put(user_id, session_date, session.id)
        return session

    async def get_or_create_session(self, user_id: Optional[str], session_date) -> Optional[SessionRead]:
        """Resolve the session for a date and return it with its goal ids."""
        session = await self.resolve_session(user_id, session_date)
        if session is None:
            return None
        entries = await self.repository.get_entries(session.id)
        return SessionRead(
            id=session.id,
            session_date=session.session_date,
            goal_ids=[e.goal_id for e in entries],
        )

    async def get_session_for_date(self, user_id: Optional[str], session_date) -> Optional[SessionRead]:
        """Like get_or_create_session, but returns None instead of creating."""
        if user_id is None:
            return None
        session = await self.repository.find(user_id, parse_iso_date(session_date))
        if session is None:
            return None
        entries = await self.repository.get_entries(session.id)
        return SessionRead(
            id=session.id,
            session_date=session.session_date,
            goal_ids=[e.goal_id for e in entries],
        )

    async def add_goal_to_session(self, user_id: Optional[str], session_date, goal_id: str) -> bool:
        """
        Plan a goal for a day. Adding a goal that is already planned succeeds
        without creating a second entry.

        Returns:
            True on success, False when not authenticated

        Raises:
            GoalNotFoundError: If the goal does not exist
            PermissionError: If the goal belongs to another user
        """
        if user_id is None:
            return False

        goal = await self.goals.get_by_id(goal_id, user_id=user_id)
        session = await self.resolve_session(user_id, session_date)

        if await self.repository.has_goal(session.id, goal.id):
            logger.debug(f"[SessionService] Goal {goal.id} already in session {session.id}")
            return True

        try:
            await self.repository.add_goal(session.id, goal.id)
            logger.info(f"[SessionService] Added goal {goal.goal_number} to session {session.session_date}")
        except IntegrityError:
            logger.info(f"[SessionService] Goal {goal.id} added to session {session.id} concurrently")
        return True

    async def remove_goal_from_session(self, user_id: Optional[str], session_date, goal_id: str) -> bool:
        """
        Unplan a goal. No session for the date, or a goal that was not
        planned, is still a success; no session row is created.
        """
        if user_id is None:
            return False

        session = await self.repository.find(user_id, parse_iso_date(session_date))
        if session is None:
            return True

        if await self.repository.remove_goal(session.id, goal_id):
            logger.info(f"[SessionService] Removed goal {goal_id} from session {session.session_date}")
        return True

    async def list_session_goal_ids(self, user_id: Optional[str], session_date) -> Set[str]:
        """Ids of the goals planned for a day."""
        session = await self.resolve_session(user_id, session_date)
        if session is None:
            return set()
        return {e.goal_id for e in await self.repository.get_entries(session.id)}

    async def clear_session(self, user_id: Optional[str], session_date) -> int:
        """
        Remove every goal from a day's session. The session row is kept.

        Returns:
            Number of goals removed
        """
        if user_id is None:
            return 0

        session = await self.repository.find(user_id, parse_iso_date(session_date))
        if session is None:
            return 0

        removed = await self.repository.clear(session.id)
        logger.info(f"[SessionService] Cleared {removed} goals from session {session.session_date}")
        return removed

    async def get_session_view(self, user_id: Optional[str], session_date) -> Optional[SessionView]:
        """
        The practice view for a day: planned goals in the order they were
        added, each with topic, content, repertoire and logs.
        """
        session = await self.resolve_session(user_id, session_date)
        if session is None:
            return None

        entries = await self.repository.get_entries(session.id)
        goals = await self.goals.get_many(e.goal_id for e in entries)
        ordered = [goals[e.goal_id] for e in entries if e.goal_id in goals]

        today = today_in_app_timezone()
        details = await self.goal_service.build_goal_details(ordered, today=today)
        by_goal = {d.id: d for d in details}

        view_goals = []
        for entry in entries:
            detail = by_goal.get(entry.goal_id)
            if detail is None:
                continue
            view_goals.append(
                SessionGoalDetail(
                    **detail.model_dump(),
                    session_goal_id=entry.id,
                    added_at=entry.added_at,
                )
            )

        return SessionView(
            id=session.id,
            session_date=session.session_date,
            is_today=session.session_date == today,
            goals=view_goals,
        )


def get_session_service(db: AsyncSession, cache: Optional[SessionCache] = None) -> SessionService:
    """Factory function for SessionService."""
    return SessionService(db, cache=cache)
