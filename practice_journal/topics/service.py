"""
Topics service - topics, goals and their hierarchical numbers.
All operations are scoped to the authenticated user.

Numbers are allocated as max + 1 from the rows read just before the insert.
Two concurrent creations can compute the same number; the unique index
rejects the second insert, which is reported as NumberingConflictError.
"""

import logging
from datetime import date
from typing import Iterable, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from practice_journal.core.dates import require_text, today_in_app_timezone
from practice_journal.core.exceptions import (
    ContentNotFoundError,
    InvalidInputError,
    NumberingConflictError,
)
from practice_journal.core.results import WriteOutcome
from practice_journal.library.models import Content, Repertoire
from practice_journal.library.repository import ContentRepository, RepertoireRepository
from practice_journal.library.schemas import ContentRef, RepertoireRef
from practice_journal.library.stats import RepertoireStatsGateway, get_stats_gateway, recompute_into
from practice_journal.logs.repository import LogRepository
from practice_journal.logs.schemas import TopicRef
from practice_journal.logs.service import LogService
from practice_journal.topics.models import Goal, Topic
from practice_journal.topics.numbering import (
    format_goal_number,
    next_goal_sub_number,
    next_topic_number,
    parse_sub_number,
)
from practice_journal.topics.repository import GoalRepository, TopicRepository
from practice_journal.topics.schemas import GoalDetail, TopicTree, TopicWithGoals

logger = logging.getLogger(__name__)


class TopicService:
    """Service for topic business logic with user scoping."""

    def __init__(self, db: AsyncSession, stats_gateway: Optional[RepertoireStatsGateway] = None):
        self.repository = TopicRepository(db)
        self.goals = GoalRepository(db)
        self.logs = LogRepository(db)
        self.stats = stats_gateway or get_stats_gateway(db)
        self.goal_service = GoalService(db, stats_gateway=self.stats)

    async def create_topic(self, user_id: Optional[str], title: str) -> Optional[Topic]:
        """
        Create a topic with the next topic number for the user.

        Returns:
            Created topic, or None when not authenticated

        Raises:
            InvalidInputError: If title is empty
            NumberingConflictError: If a concurrent creation took the number
        """
        if user_id is None:
            logger.warning("[TopicService] create_topic without user, skipping")
            return None

        title = require_text(title, "title")
        number = next_topic_number(await self.repository.get_max_topic_number(user_id))

        try:
            return await self.repository.create(user_id, number, title)
        except IntegrityError as e:
            logger.warning(f"[TopicService] Topic number {number} already taken for user {user_id}")
            raise NumberingConflictError(f"Topic number {number} is already taken") from e

    async def get_topic(self, user_id: str, topic_id: str) -> Topic:
        """
        Raises:
            TopicNotFoundError: If topic not found
            PermissionError: If topic doesn't belong to user
        """
        return await self.repository.get_by_id(topic_id, user_id=user_id)

    async def update_topic(self, user_id: Optional[str], topic_id: str, title: Optional[str]) -> Optional[Topic]:
        """Rename a topic. The topic number is never changed."""
        if user_id is None:
            return None

        topic = await self.repository.get_by_id(topic_id, user_id=user_id)
        if title is None:
            return topic
        return await self.repository.update(topic, title=require_text(title, "title"))

    async def delete_topic(self, user_id: Optional[str], topic_id: str) -> Optional[WriteOutcome[bool]]:
        """
        Delete a topic with its goals and logs, then recompute the stats of
        every repertoire item those goals and logs counted towards.

        Raises:
            TopicNotFoundError: If topic not found
            PermissionError: If topic doesn't belong to user
        """
        if user_id is None:
            return None

        topic = await self.repository.get_by_id(topic_id, user_id=user_id)
        goals = await self.goals.get_for_topic(topic.id)

        affected = {g.repertoire_id for g in goals if g.repertoire_id}
        affected |= await self.logs.get_repertoire_ids_for_goals(g.id for g in goals)

        deleted = await self.repository.delete(topic.id, user_id)
        outcome: WriteOutcome[bool] = WriteOutcome(primary=deleted)
        await recompute_into(outcome, self.stats, affected)

        logger.info(
            f"[TopicService] Deleted topic {topic.topic_number} ({len(goals)} goals), "
            f"recomputed: {outcome.recomputed_repertoire_ids}"
        )
        return outcome

    async def list_topics_with_goals(self, user_id: Optional[str]) -> TopicTree:
        """
        List topics by topic number, each with its goals (highest sub-number
        first) and every goal's content, repertoire and logs.
        """
        if user_id is None:
            return TopicTree(topics=[], total=0)

        topics = await self.repository.get_all(user_id)
        goals = await self.goals.get_for_topics(t.id for t in topics)
        details = await self.goal_service.build_goal_details(goals, with_topic=False)

        by_topic = {}
        for detail in details:
            by_topic.setdefault(detail.topic_id, []).append(detail)

        tree = []
        for topic in topics:
            item = TopicWithGoals.model_validate(topic)
            item.goals = sorted(
                by_topic.get(topic.id, []),
                key=lambda d: parse_sub_number(d.goal_number) or 0,
                reverse=True,
            )
            tree.append(item)

        return TopicTree(topics=tree, total=len(tree))


class GoalService:
    """Service for goals, their links and the stats they feed."""

    def __init__(self, db: AsyncSession, stats_gateway: Optional[RepertoireStatsGateway] = None):
        self.repository = GoalRepository(db)
        self.topics = TopicRepository(db)
        self.logs = LogRepository(db)
        self.content = ContentRepository(db)
        self.repertoire = RepertoireRepository(db)
        self.stats = stats_gateway or get_stats_gateway(db)
        self.log_service = LogService(db, stats_gateway=self.stats)

    async def create_goal(
            self,
            user_id: Optional[str],
            topic_id: str,
            description: str,
            repertoire_id: Optional[str] = None,
            content_ids: Iterable[str] = (),
    ) -> Optional[Goal]:
        """
        Add a goal to a topic with the next "{topic_number}.{sub}" number.

        The sub-number is max(existing sub-numbers) + 1 over the topic's
        goals, so numbers freed by deletions are not reused.

        Returns:
            Created goal, or None when not authenticated

        Raises:
            InvalidInputError: If description is empty
            TopicNotFoundError: If topic not found
            PermissionError: If the topic or a linked item belongs to another user
            RepertoireNotFoundError, ContentNotFoundError: If a linked item is unknown
            NumberingConflictError: If a concurrent creation took the number
        """
        if user_id is None:
            logger.warning("[GoalService] create_goal without user, skipping")
            return None

        description = require_text(description, "description")
        topic = await self.topics.get_by_id(topic_id, user_id=user_id)

        if repertoire_id:
            await self.repertoire.get_by_id(repertoire_id, user_id=user_id)

        content_ids = list(dict.fromkeys(c for c in content_ids if c))
        owned = {c.id for c in await self.content.get_many(content_ids, user_id)}
        missing = [c for c in content_ids if c not in owned]
        if missing:
            raise ContentNotFoundError(f"Content not found: {', '.join(missing)}")

        existing = await self.repository.get_for_topic(topic.id)
        sub = next_goal_sub_number(g.goal_number for g in existing)
        goal_number = format_goal_number(topic.topic_number, sub)

        try:
            goal = await self.repository.create(
                user_id,
                topic.id,
                goal_number,
                description,
                repertoire_id=repertoire_id or None,
            )
        except IntegrityError as e:
            logger.warning(f"[GoalService] Goal number {goal_number} already taken in topic {topic.id}")
            raise NumberingConflictError(f"Goal number {goal_number} is already taken") from e

        for content_id in content_ids:
            await self._add_content_link(goal.id, content_id)

        return goal

    async def get_goal(self, user_id: str, goal_id: str) -> Goal:
        return await self.repository.get_by_id(goal_id, user_id=user_id)

    async def update_goal(
            self,
            user_id: Optional[str],
            goal_id: str,
            description: Optional[str] = None,
            is_complete: Optional[bool] = None,
            date_completed: Optional[date] = None,
    ) -> Optional[Goal]:
        """
        Update a goal's description and completion.

        Completing a goal without an explicit date stamps today's date in the
        application timezone (an already completed goal keeps its date).
        Un-completing clears date_completed.

        Raises:
            InvalidInputError: If description is empty, or a completion date
                is given for a goal that stays incomplete
        """
        if user_id is None:
            return None

        goal = await self.repository.get_by_id(goal_id, user_id=user_id)
        fields = {}

        if description is not None:
            fields["description"] = require_text(description, "description")

        if is_complete is True:
            fields["is_complete"] = True
            if date_completed is not None:
                fields["date_completed"] = date_completed
            elif not goal.is_complete or goal.date_completed is None:
                fields["date_completed"] = today_in_app_timezone()
        elif is_complete is False:
            if date_completed is not None:
                raise InvalidInputError("date_completed requires is_complete")
            fields["is_complete"] = False
            fields["date_completed"] = None
        elif date_completed is not None:
            if not goal.is_complete:
                raise InvalidInputError("date_completed requires is_complete")
            fields["date_completed"] = date_completed

        if not fields:
            return goal
        return await self.repository.update(goal, **fields)

    async def delete_goal(self, user_id: Optional[str], goal_id: str) -> Optional[WriteOutcome[bool]]:
        """
        Delete a goal with its logs, then recompute stats for its direct
        repertoire_id and every repertoire item linked to its logs.

        stats_updated on the outcome reports whether any recompute ran.

        Raises:
            GoalNotFoundError: If goal not found
            PermissionError: If goal doesn't belong to user
        """
        if user_id is None:
            return None

        goal = await self.repository.get_by_id(goal_id, user_id=user_id)

        affected = await self.logs.get_repertoire_ids_for_goals([goal.id])
        if goal.repertoire_id:
            affected.add(goal.repertoire_id)

        deleted = await self.repository.delete(goal.id)
        outcome: WriteOutcome[bool] = WriteOutcome(primary=deleted)
        await recompute_into(outcome, self.stats, affected)

        logger.info(f"[GoalService] Deleted goal {goal.goal_number}, recomputed: {outcome.recomputed_repertoire_ids}")
        return outcome

    async def link_content_to_goal(self, user_id: Optional[str], goal_id: str, content_id: str) -> bool:
        """Link a content item to a goal. An existing link counts as success."""
        if user_id is None:
            return False

        goal = await self.repository.get_by_id(goal_id, user_id=user_id)
        await self.content.get_by_id(content_id, user_id=user_id)
        await self._add_content_link(goal.id, content_id)
        return True

    async def unlink_content_from_goal(self, user_id: Optional[str], goal_id: str, content_id: str) -> bool:
        """Remove a goal/content link. A missing link is not an error."""
        if user_id is None:
            return False

        goal = await self.repository.get_by_id(goal_id, user_id=user_id)
        await self.repository.remove_content_link(goal.id, content_id)
        return True

    async def link_repertoire_to_goal(
            self,
            user_id: Optional[str],
            goal_id: str,
            repertoire_id: str,
    ) -> Optional[WriteOutcome[Goal]]:
        """
        Set the goal's direct repertoire item.

        Recomputes stats for the new item and for the item it replaces, since
        the goal's logs move from one to the other.
        """
        if user_id is None:
            return None

        goal = await self.repository.get_by_id(goal_id, user_id=user_id)
        await self.repertoire.get_by_id(repertoire_id, user_id=user_id)

        previous = goal.repertoire_id
        if previous == repertoire_id:
            return WriteOutcome(primary=goal)

        goal = await self.repository.update(goal, repertoire_id=repertoire_id)
        outcome: WriteOutcome[Goal] = WriteOutcome(primary=goal)
        await recompute_into(outcome, self.stats, {repertoire_id, previous})
        return outcome

    async def unlink_repertoire_from_goal(
            self,
            user_id: Optional[str],
            goal_id: str,
    ) -> Optional[WriteOutcome[Goal]]:
        """Clear the goal's direct repertoire item and recompute its stats."""
        if user_id is None:
            return None

        goal = await self.repository.get_by_id(goal_id, user_id=user_id)
        previous = goal.repertoire_id
        if previous is None:
            return WriteOutcome(primary=goal)

        goal = await self.repository.update(goal, repertoire_id=None)
        outcome: WriteOutcome[Goal] = WriteOutcome(primary=goal)
        await recompute_into(outcome, self.stats, {previous})
        return outcome

    async def get_goal_content(self, user_id: str, goal_id: str) -> List[Content]:
        goal = await self.repository.get_by_id(goal_id, user_id=user_id)
        return (await self.repository.get_content_by_goal([goal.id])).get(goal.id, [])

    async def get_goal_repertoire(self, user_id: str, goal_id: str) -> List[Repertoire]:
        """The goal's direct repertoire item as a list (empty if none)."""
        goal = await self.repository.get_by_id(goal_id, user_id=user_id)
        if goal.repertoire_id is None:
            return []
        return list(await self.repertoire.get_many([goal.repertoire_id], user_id))

    async def build_goal_details(
            self,
            goals: Sequence[Goal],
            with_topic: bool = True,
            today: Optional[date] = None,
    ) -> List[GoalDetail]:
        """
        Attach topic, content, repertoire and logs (newest first) to goals,
        keeping the order of goals.
        """
        goal_ids = [g.id for g in goals]
        content = await self.repository.get_content_by_goal(goal_ids)

        repertoire_ids = {g.repertoire_id for g in goals if g.repertoire_id}
        repertoire = {}
        if repertoire_ids:
            # Goals only ever reference their owner's repertoire
            repertoire = {r.id: r for r in await self.repertoire.get_many(repertoire_ids, goals[0].user_id)}

        topics = await self.topics.get_many({g.topic_id for g in goals}) if with_topic else {}

        logs = await self.logs.get_for_goals(goal_ids)
        log_views = await self.log_service.build_log_views(logs, today=today)
        logs_by_goal = {}
        for view in log_views:
            logs_by_goal.setdefault(view.goal_id, []).append(view)

        details = []
        for goal in goals:
            detail = GoalDetail.model_validate(goal)
            topic = topics.get(goal.topic_id)
            detail.topic = TopicRef.model_validate(topic) if topic else None
            detail.content = [ContentRef.model_validate(c) for c in content.get(goal.id, [])]
            item = repertoire.get(goal.repertoire_id) if goal.repertoire_id else None
            detail.repertoire = [RepertoireRef.model_validate(item)] if item else []
            detail.logs = logs_by_goal.get(goal.id, [])
            details.append(detail)
        return details

    async def _add_content_link(self, goal_id: str, content_id: str) -> None:
        try:
            await self.repository.add_content_link(goal_id, content_id)
        except IntegrityError:
            logger.debug(f"[GoalService] Content {content_id} already linked to goal {goal_id}")


def get_topic_service(db: AsyncSession) -> TopicService:
    """Factory function for TopicService."""
    return TopicService(db)


def get_goal_service(db: AsyncSession) -> GoalService:
    """Factory function for GoalService."""
    return GoalService(db)
