"""
Logs service - practice log writes and repertoire stats fan-out.

A log touches repertoire stats along two paths: the direct repertoire_id of
its goal, and the log_repertoire join. Every write that can change which
logs are linked to a repertoire item (or their dates) recomputes the stats
of each affected item once, after the primary write.

Writes follow a partial-failure policy. Only the primary row decides
success; a failed link or recompute afterwards is recorded in the returned
WriteOutcome and never rolls the primary row back.
"""

import logging
from datetime import date
from typing import Iterable, List, Optional, Sequence, Set

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from practice_journal.core.dates import parse_iso_date, require_text, today_in_app_timezone
from practice_journal.core.exceptions import InvalidInputError
from practice_journal.core.results import WriteOutcome
from practice_journal.library.models import Content, Repertoire
from practice_journal.library.repository import ContentRepository, RepertoireRepository
from practice_journal.library.schemas import ContentRef, RepertoireRef
from practice_journal.library.stats import RepertoireStatsGateway, get_stats_gateway, recompute_into
from practice_journal.logs.models import Log
from practice_journal.logs.repository import LogRepository
from practice_journal.logs.schemas import GoalRef, LogView, LogWithGoal, TopicRef
from practice_journal.topics.models import Goal
from practice_journal.topics.repository import GoalRepository, TopicRepository

logger = logging.getLogger(__name__)


class LogService:
    """Service for practice logs and the stats recompute they trigger."""

    def __init__(self, db: AsyncSession, stats_gateway: Optional[RepertoireStatsGateway] = None):
        self.db = db
        self.repository = LogRepository(db)
        self.goals = GoalRepository(db)
        self.topics = TopicRepository(db)
        self.content = ContentRepository(db)
        self.repertoire = RepertoireRepository(db)
        self.stats = stats_gateway or get_stats_gateway(db)

    # ═══════════════════════════════════════════════════════════════════════
    # WRITES
    # ═══════════════════════════════════════════════════════════════════════

    async def create_log(
            self,
            user_id: Optional[str],
            goal_id: str,
            entry: str,
            log_date=None,
            content_ids: Iterable[str] = (),
            repertoire_ids: Iterable[str] = (),
    ) -> Optional[WriteOutcome[Log]]:
        """
        Log practice on a goal, link content and repertoire, recompute stats.

        Steps run in order: insert the log, link each content item, link
        each repertoire item, then recompute stats for the goal's direct
        repertoire_id plus every repertoire id passed in.

        Args:
            user_id: Owner user ID (None returns None)
            goal_id: Goal the practice was for
            entry: Entry text (required)
            log_date: Day practiced, date or YYYY-MM-DD (defaults to today
                in the application timezone)
            content_ids: Content items to link
            repertoire_ids: Repertoire items to link

        Returns:
            WriteOutcome with the created log, or None when not authenticated
            or when the log row itself could not be inserted

        Raises:
            InvalidInputError: If entry is empty or log_date is malformed
            GoalNotFoundError: If the goal does not exist
            PermissionError: If the goal belongs to another user
        """
        if user_id is None:
            logger.warning("[LogService] create_log without user, skipping")
            return None

        entry = require_text(entry, "entry")
        log_date = today_in_app_timezone() if log_date is None else parse_iso_date(log_date)
        goal = await self.goals.get_by_id(goal_id, user_id=user_id)

        try:
            async with self.db.begin_nested():
                log = await self.repository.create(user_id, goal.id, entry, log_date)
        except SQLAlchemyError as e:
            logger.error(f"[LogService] Failed to create log for goal {goal_id}: {e}")
            return None

        outcome: WriteOutcome[Log] = WriteOutcome(primary=log)

        content_ids = _unique(content_ids)
        owned_content = {c.id for c in await self.content.get_many(content_ids, user_id)}
        for content_id in content_ids:
            if content_id not in owned_content:
                outcome.secondary_failures.append(f"link content {content_id}: content not found")
                continue
            await self._link_content(outcome, log.id, content_id)

        repertoire_ids = _unique(repertoire_ids)
        owned_repertoire = {r.id for r in await self.repertoire.get_many(repertoire_ids, user_id)}
        for repertoire_id in repertoire_ids:
            if repertoire_id not in owned_repertoire:
                outcome.secondary_failures.append(f"link repertoire {repertoire_id}: repertoire not found")
                continue
            await self._link_repertoire(outcome, log.id, repertoire_id)

        affected = _affected(goal, owned_repertoire)
        await recompute_into(outcome, self.stats, affected)

        logger.info(
            f"[LogService] Created log {log.id} for goal {goal.goal_number}, "
            f"recomputed {len(outcome.recomputed_repertoire_ids)} repertoire, "
            f"{len(outcome.secondary_failures)} secondary failures"
        )
        return outcome

    async def update_log(
            self,
            user_id: Optional[str],
            log_id: str,
            entry: Optional[str] = None,
            log_date=None,
    ) -> Optional[WriteOutcome[Log]]:
        """
        Edit a log's text and optionally move it to another day.

        Editing the text alone does not recompute anything. Moving the log
        recomputes every repertoire item it counts towards, since
        last_practiced may change.

        Raises:
            InvalidInputError: If entry is given but empty, or log_date is malformed
            LogNotFoundError: If the log does not exist
            PermissionError: If the log belongs to another user
        """
        if user_id is None:
            return None

        fields = {}
        if entry is not None:
            fields["entry"] = require_text(entry, "entry")
        new_date = parse_iso_date(log_date) if log_date is not None else None

        log = await self.repository.get_by_id(log_id, user_id=user_id)
        date_changed = new_date is not None and new_date != log.date
        if date_changed:
            fields["date"] = new_date

        if fields:
            log = await self.repository.update(log, **fields)

        outcome: WriteOutcome[Log] = WriteOutcome(primary=log)
        if date_changed:
            goal = await self.goals.get_by_id(log.goal_id, verify_ownership=False)
            linked = await self.repository.get_repertoire_ids(log.id)
            await recompute_into(outcome, self.stats, _affected(goal, linked))

        return outcome

    async def delete_log(self, user_id: Optional[str], log_id: str) -> Optional[WriteOutcome[bool]]:
        """
        Delete a log and recompute the stats it counted towards.

        The affected set is read before the delete: the goal's direct
        repertoire_id plus every repertoire item linked to the log.

        Raises:
            LogNotFoundError: If the log does not exist
            PermissionError: If the log belongs to another user
        """
        if user_id is None:
            logger.warning("[LogService] delete_log without user, skipping")
            return None

        log = await self.repository.get_by_id(log_id, user_id=user_id)
        goal = await self.goals.get_by_id(log.goal_id, verify_ownership=False)
        affected = _affected(goal, await self.repository.get_repertoire_ids(log.id))

        deleted = await self.repository.delete(log.id)
        outcome: WriteOutcome[bool] = WriteOutcome(primary=deleted)
        await recompute_into(outcome, self.stats, affected)

        logger.info(f"[LogService] Deleted log {log_id}, recomputed: {outcome.recomputed_repertoire_ids}")
        return outcome

    async def link_repertoire_to_log(
            self,
            user_id: Optional[str],
            log_id: str,
            repertoire_id: str,
    ) -> Optional[WriteOutcome[bool]]:
        """
        Link a repertoire item to a log and recompute its stats.

        Returns:
            WriteOutcome whose primary is True if a link was created and
            False if it already existed (nothing is recomputed then)
        """
        if user_id is None:
            return None

        log = await self.repository.get_by_id(log_id, user_id=user_id)
        await self.repertoire.get_by_id(repertoire_id, user_id=user_id)

        if await self.repository.has_repertoire_link(log.id, repertoire_id):
            return WriteOutcome(primary=False)

        await self.repository.add_repertoire_link(log.id, repertoire_id)
        outcome: WriteOutcome[bool] = WriteOutcome(primary=True)
        await recompute_into(outcome, self.stats, {repertoire_id})
        return outcome

    async def unlink_repertoire_from_log(
            self,
            user_id: Optional[str],
            log_id: str,
            repertoire_id: str,
    ) -> Optional[WriteOutcome[bool]]:
        """Remove a log/repertoire link; the item's stats are recomputed if it existed."""
        if user_id is None:
            return None

        log = await self.repository.get_by_id(log_id, user_id=user_id)
        removed = await self.repository.remove_repertoire_link(log.id, repertoire_id)

        outcome: WriteOutcome[bool] = WriteOutcome(primary=removed)
        if removed:
            await recompute_into(outcome, self.stats, {repertoire_id})
        return outcome

    async def link_content_to_log(self, user_id: Optional[str], log_id: str, content_id: str) -> bool:
        """
        Link a content item to a log. An existing link counts as success.
        """
        if user_id is None:
            return False

        log = await self.repository.get_by_id(log_id, user_id=user_id)
        await self.content.get_by_id(content_id, user_id=user_id)

        if await self.repository.has_content_link(log.id, content_id):
            return True
        await self.repository.add_content_link(log.id, content_id)
        return True

    async def unlink_content_from_log(self, user_id: Optional[str], log_id: str, content_id: str) -> bool:
        """Remove a log/content link. A missing link is not an error."""
        if user_id is None:
            return False

        log = await self.repository.get_by_id(log_id, user_id=user_id)
        await self.repository.remove_content_link(log.id, content_id)
        return True

    # ═══════════════════════════════════════════════════════════════════════
    # READS
    # ═══════════════════════════════════════════════════════════════════════

    async def get_log_content(self, user_id: str, log_id: str) -> List[Content]:
        log = await self.repository.get_by_id(log_id, user_id=user_id)
        return (await self.repository.get_content_by_log([log.id])).get(log.id, [])

    async def get_log_repertoire(self, user_id: str, log_id: str) -> List[Repertoire]:
        log = await self.repository.get_by_id(log_id, user_id=user_id)
        return (await self.repository.get_repertoire_by_log([log.id])).get(log.id, [])

    async def list_logs_by_date_range(
            self,
            user_id: Optional[str],
            start,
            end,
    ) -> List[LogWithGoal]:
        """
        List logs with start <= date <= end, newest first, each with its goal,
        topic, content and repertoire.

        Raises:
            InvalidInputError: If a date is malformed or start is after end
        """
        if user_id is None:
            return []

        start = parse_iso_date(start, "start")
        end = parse_iso_date(end, "end")
        if start > end:
            raise InvalidInputError(f"start {start} is after end {end}")

        logs = await self.repository.get_by_date_range(user_id, start, end)
        views = await self.build_log_views(logs)

        goals = await self.goals.get_many({log.goal_id for log in logs})
        topics = await self.topics.get_many({goal.topic_id for goal in goals.values()})

        result = []
        for view in views:
            goal = goals.get(view.goal_id)
            topic = topics.get(goal.topic_id) if goal else None
            result.append(
                LogWithGoal(
                    **view.model_dump(),
                    goal=GoalRef.model_validate(goal) if goal else None,
                    topic=TopicRef.model_validate(topic) if topic else None,
                )
            )
        return result

    async def build_log_views(self, logs: Sequence[Log], today: Optional[date] = None) -> List[LogView]:
        """Attach content, repertoire and the is_today flag to logs, keeping their order."""
        today = today or today_in_app_timezone()
        log_ids = [log.id for log in logs]
        content = await self.repository.get_content_by_log(log_ids)
        repertoire = await self.repository.get_repertoire_by_log(log_ids)

        views = []
        for log in logs:
            view = LogView.model_validate(log)
            view.is_today = log.date == today
            view.content = [ContentRef.model_validate(c) for c in content.get(log.id, [])]
            view.repertoire = [RepertoireRef.model_validate(r) for r in repertoire.get(log.id, [])]
            views.append(view)
        return views

    # ═══════════════════════════════════════════════════════════════════════
    # HELPERS
    # ═══════════════════════════════════════════════════════════════════════

    async def _link_content(self, outcome: WriteOutcome, log_id: str, content_id: str) -> None:
        if await self.repository.has_content_link(log_id, content_id):
            return
        try:
            await self.repository.add_content_link(log_id, content_id)
        except IntegrityError as e:
            if not await self.repository.has_content_link(log_id, content_id):
                logger.warning(f"[LogService] Failed to link content {content_id} to log {log_id}: {e}")
                outcome.record_failure(f"link content {content_id}", e)

    async def _link_repertoire(self, outcome: WriteOutcome, log_id: str, repertoire_id: str) -> None:
        if await self.repository.has_repertoire_link(log_id, repertoire_id):
            return
        try:
            await self.repository.add_repertoire_link(log_id, repertoire_id)
        except IntegrityError as e:
            if not await self.repository.has_repertoire_link(log_id, repertoire_id):
                logger.warning(f"[LogService] Failed to link repertoire {repertoire_id} to log {log_id}: {e}")
                outcome.record_failure(f"link repertoire {repertoire_id}", e)


def _unique(ids: Iterable[str]) -> List[str]:
    """Drop blanks and duplicates, keeping first-seen order."""
    return list(dict.fromkeys(i for i in ids if i))


def _affected(goal: Goal, linked: Iterable[str]) -> Set[str]:
    """The goal's direct repertoire_id (if any) plus the linked repertoire ids."""
    affected = set(linked)
    if goal.repertoire_id:
        affected.add(goal.repertoire_id)
    return affected


def get_log_service(db: AsyncSession) -> LogService:
    """Factory function for LogService."""
    return LogService(db)
