"""
Logs repository - Data Access Layer for practice logs and their links.
All operations filter by user_id for security.
"""

import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple
from uuid import uuid4

from sqlalchemy import delete, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from practice_journal.core.exceptions import LogNotFoundError
from practice_journal.library.models import Content, Repertoire
from practice_journal.logs.models import Log, LogContent, LogRepertoire

logger = logging.getLogger(__name__)


class LogRepository:
    """Repository for Log CRUD operations and log link tables."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, user_id: str, goal_id: str, entry: str, log_date: date) -> Log:
        """
        Create a log entry for a goal.

        Args:
            user_id: Owner user ID
            goal_id: Goal the practice was for
            entry: Entry text
            log_date: Calendar day practiced

        Returns:
            Created Log entity
        """
        log = Log(
            id=str(uuid4()),
            goal_id=goal_id,
            entry=entry,
            date=log_date,
            user_id=user_id,
        )

        self.db.add(log)
        await self.db.flush()
        await self.db.refresh(log)

        logger.info(f"[LogRepository] Created log: {log.id} on {log_date} for goal: {goal_id}")
        return log

    async def get_by_id(
            self,
            log_id: str,
            user_id: Optional[str] = None,
            verify_ownership: bool = True,
    ) -> Log:
        """
        Get a log by its ID.

        Raises:
            LogNotFoundError: If log not found
            PermissionError: If log doesn't belong to user
        """
        result = await self.db.execute(select(Log).where(Log.id == log_id))
        log = result.scalar_one_or_none()

        if log is None:
            raise LogNotFoundError(f"Log not found: {log_id}")

        if verify_ownership and user_id is not None and log.user_id != user_id:
            raise PermissionError(f"Log {log_id} does not belong to user {user_id}")

        return log

    async def get_for_goals(self, goal_ids: Iterable[str]) -> Sequence[Log]:
        """Get the logs of several goals, newest first."""
        ids = list(goal_ids)
        if not ids:
            return []
        stmt = (
            select(Log)
            .where(Log.goal_id.in_(ids))
            .order_by(Log.date.desc(), Log.created_at.desc())
        )
        result = await self.db.execute(stmt)
        return result.scalars().all()

    async def get_by_date_range(self, user_id: str, start: date, end: date) -> Sequence[Log]:
        """Get a user's logs with start <= date <= end, newest first."""
        stmt = (
            select(Log)
            .where(Log.user_id == user_id)
            .where(Log.date >= start)
            .where(Log.date <= end)
            .order_by(Log.date.desc(), Log.created_at.desc())
        )
        result = await self.db.execute(stmt)
        return result.scalars().all()

    async def update(self, log: Log, **fields: Any) -> Log:
        """Apply the given column values to a log."""
        for name, value in fields.items():
            setattr(log, name, value)

        await self.db.flush()
        await self.db.refresh(log)

        logger.info(f"[LogRepository] Updated log: {log.id}")
        return log

    async def delete(self, log_id: str) -> bool:
        """
        Delete a log and its link rows.

        The link rows are removed explicitly rather than left to the
        foreign key cascade.

        Returns:
            True if the log row was removed
        """
        await self.db.execute(delete(LogContent).where(LogContent.log_id == log_id))
        await self.db.execute(delete(LogRepertoire).where(LogRepertoire.log_id == log_id))
        result = await self.db.execute(delete(Log).where(Log.id == log_id))
        deleted = result.rowcount > 0

        if deleted:
            logger.info(f"[LogRepository] Deleted log: {log_id}")
        return deleted

    # ═══════════════════════════════════════════════════════════════════════
    # LINKS
    # ═══════════════════════════════════════════════════════════════════════

    async def add_content_link(self, log_id: str, content_id: str) -> None:
        """
        Raises:
            IntegrityError: If the link exists or content_id is unknown
        """
        async with self.db.begin_nested():
            await self.db.execute(insert(LogContent).values(log_id=log_id, content_id=content_id))

    async def add_repertoire_link(self, log_id: str, repertoire_id: str) -> None:
        """
        Raises:
            IntegrityError: If the link exists or repertoire_id is unknown
        """
        async with self.db.begin_nested():
            await self.db.execute(insert(LogRepertoire).values(log_id=log_id, repertoire_id=repertoire_id))

    async def remove_content_link(self, log_id: str, content_id: str) -> bool:
        stmt = (
            delete(LogContent)
            .where(LogContent.log_id == log_id)
            .where(LogContent.content_id == content_id)
        )
        result = await self.db.execute(stmt)
        return result.rowcount > 0

    async def remove_repertoire_link(self, log_id: str, repertoire_id: str) -> bool:
        stmt = (
            delete(LogRepertoire)
            .where(LogRepertoire.log_id == log_id)
            .where(LogRepertoire.repertoire_id == repertoire_id)
        )
        result = await self.db.execute(stmt)
        return result.rowcount > 0

    async def has_content_link(self, log_id: str, content_id: str) -> bool:
        stmt = select(LogContent.log_id).where(
            LogContent.log_id == log_id, LogContent.content_id == content_id
        )
        result = await self.db.execute(stmt)
        return result.first() is not None

    async def has_repertoire_link(self, log_id: str, repertoire_id: str) -> bool:
        stmt = select(LogRepertoire.log_id).where(
            LogRepertoire.log_id == log_id, LogRepertoire.repertoire_id == repertoire_id
        )
        result = await self.db.execute(stmt)
        return result.first() is not None

    async def get_content_ids(self, log_id: str) -> Set[str]:
        """Content ids linked to one log."""
        stmt = select(LogContent.content_id).where(LogContent.log_id == log_id)
        result = await self.db.execute(stmt)
        return set(result.scalars().all())

    async def get_repertoire_ids(self, log_id: str) -> Set[str]:
        """Repertoire ids linked to one log through log_repertoire."""
        stmt = select(LogRepertoire.repertoire_id).where(LogRepertoire.log_id == log_id)
        result = await self.db.execute(stmt)
        return set(result.scalars().all())

    async def get_repertoire_ids_for_goals(self, goal_ids: Iterable[str]) -> Set[str]:
        """Repertoire ids linked to any log of the given goals."""
        ids = list(goal_ids)
        if not ids:
            return set()
        stmt = (
            select(LogRepertoire.repertoire_id)
            .join(Log, Log.id == LogRepertoire.log_id)
            .where(Log.goal_id.in_(ids))
            .distinct()
        )
        result = await self.db.execute(stmt)
        return set(result.scalars().all())

    async def get_content_by_log(self, log_ids: Iterable[str]) -> Dict[str, List[Content]]:
        """Content items per log id, by title."""
        rows = await self._linked(Content, LogContent, LogContent.content_id, log_ids)
        return _group(rows)

    async def get_repertoire_by_log(self, log_ids: Iterable[str]) -> Dict[str, List[Repertoire]]:
        """Repertoire items per log id, by title."""
        rows = await self._linked(Repertoire, LogRepertoire, LogRepertoire.repertoire_id, log_ids)
        return _group(rows)

    async def _linked(self, model, link, link_column, log_ids: Iterable[str]) -> List[Tuple[str, Any]]:
        ids = list(log_ids)
        if not ids:
            return []
        stmt = (
            select(link.log_id, model)
            .join(model, model.id == link_column)
            .where(link.log_id.in_(ids))
            .order_by(model.title.asc())
        )
        result = await self.db.execute(stmt)
        return [(log_id, item) for log_id, item in result.all()]


def _group(rows: Iterable[Tuple[str, Any]]) -> Dict[str, List[Any]]:
    grouped: Dict[str, List[Any]] = {}
    for key, item in rows:
        grouped.setdefault(key, []).append(item)
    return grouped
