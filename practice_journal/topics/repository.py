"""
Topics repository - Data Access Layer for topics and goals.
All operations filter by user_id for security.

Topic and goal inserts run inside a SAVEPOINT: a number already taken by a
concurrent creation raises IntegrityError without aborting the outer
transaction.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence
from uuid import uuid4

from sqlalchemy import delete, func, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from practice_journal.core.exceptions import GoalNotFoundError, TopicNotFoundError
from practice_journal.library.models import Content
from practice_journal.topics.models import Goal, GoalContent, Topic

logger = logging.getLogger(__name__)


class TopicRepository:
    """Repository for Topic CRUD operations with user filtering."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_max_topic_number(self, user_id: str) -> Optional[int]:
        """Highest topic_number of a user, None if the user has no topics."""
        stmt = select(func.max(Topic.topic_number)).where(Topic.user_id == user_id)
        result = await self.db.execute(stmt)
        return result.scalar()

    async def create(self, user_id: str, topic_number: int, title: str) -> Topic:
        """
        Create a topic with an already allocated number.

        Raises:
            IntegrityError: If topic_number is taken for this user
        """
        topic = Topic(
            id=str(uuid4()),
            topic_number=topic_number,
            title=title,
            user_id=user_id,
        )

        async with self.db.begin_nested():
            self.db.add(topic)
            await self.db.flush()
        await self.db.refresh(topic)

        logger.info(f"[TopicRepository] Created topic {topic_number}: {topic.id} - {title} for user: {user_id}")
        return topic

    async def get_by_id(
            self,
            topic_id: str,
            user_id: Optional[str] = None,
            verify_ownership: bool = True,
    ) -> Topic:
        """
        Get a topic by its ID.

        Raises:
            TopicNotFoundError: If topic not found
            PermissionError: If topic doesn't belong to user
        """
        result = await self.db.execute(select(Topic).where(Topic.id == topic_id))
        topic = result.scalar_one_or_none()

        if topic is None:
            raise TopicNotFoundError(f"Topic not found: {topic_id}")

        if verify_ownership and user_id is not None and topic.user_id != user_id:
            raise PermissionError(f"Topic {topic_id} does not belong to user {user_id}")

        return topic

    async def get_all(self, user_id: str) -> Sequence[Topic]:
        """Get all topics for a user ordered by topic_number."""
        stmt = (
            select(Topic)
            .where(Topic.user_id == user_id)
            .order_by(Topic.topic_number.asc())
        )
        result = await self.db.execute(stmt)
        return result.scalars().all()

    async def get_many(self, topic_ids: Iterable[str]) -> Dict[str, Topic]:
        """Get topics by id."""
        ids = list(topic_ids)
        if not ids:
            return {}
        result = await self.db.execute(select(Topic).where(Topic.id.in_(ids)))
        return {topic.id: topic for topic in result.scalars().all()}

    async def update(self, topic: Topic, **fields: Any) -> Topic:
        """Apply the given column values to a topic."""
        for name, value in fields.items():
            setattr(topic, name, value)

        await self.db.flush()
        await self.db.refresh(topic)

        logger.info(f"[TopicRepository] Updated topic: {topic.id}")
        return topic

    async def delete(self, topic_id: str, user_id: str) -> bool:
        """
        Delete a topic. Goals, their logs and link rows cascade.

        Returns:
            True if deleted, False if not found
        """
        stmt = (
            delete(Topic)
            .where(Topic.id == topic_id)
            .where(Topic.user_id == user_id)
        )
        result = await self.db.execute(stmt)
        deleted = result.rowcount > 0

        if deleted:
            logger.info(f"[TopicRepository] Deleted topic: {topic_id}")
        return deleted


class GoalRepository:
    """Repository for Goal CRUD operations and the goal/content link."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_for_topic(self, topic_id: str) -> Sequence[Goal]:
        """Get all goals of a topic."""
        result = await self.db.execute(select(Goal).where(Goal.topic_id == topic_id))
        return result.scalars().all()

    async def get_for_topics(self, topic_ids: Iterable[str]) -> Sequence[Goal]:
        ids = list(topic_ids)
        if not ids:
            return []
        result = await self.db.execute(select(Goal).where(Goal.topic_id.in_(ids)))
        return result.scalars().all()

    async def get_many(self, goal_ids: Iterable[str]) -> Dict[str, Goal]:
        """Get goals by id."""
        ids = list(goal_ids)
        if not ids:
            return {}
        result = await self.db.execute(select(Goal).where(Goal.id.in_(ids)))
        return {goal.id: goal for goal in result.scalars().all()}

    async def create(
            self,
            user_id: str,
            topic_id: str,
            goal_number: str,
            description: str,
            repertoire_id: Optional[str] = None,
    ) -> Goal:
        """
        Create a goal with an already allocated number.

        Raises:
            IntegrityError: If goal_number is taken within the topic
        """
        goal = Goal(
            id=str(uuid4()),
            topic_id=topic_id,
            goal_number=goal_number,
            description=description,
            is_complete=False,
            repertoire_id=repertoire_id,
            user_id=user_id,
        )

        async with self.db.begin_nested():
            self.db.add(goal)
            await self.db.flush()
        await self.db.refresh(goal)

        logger.info(f"[GoalRepository] Created goal {goal_number}: {goal.id} in topic: {topic_id}")
        return goal

    async def get_by_id(
            self,
            goal_id: str,
            user_id: Optional[str] = None,
            verify_ownership: bool = True,
    ) -> Goal:
        """
        Get a goal by its ID.

        Raises:
            GoalNotFoundError: If goal not found
            PermissionError: If goal doesn't belong to user
        """
        result = await self.db.execute(select(Goal).where(Goal.id == goal_id))
        goal = result.scalar_one_or_none()

        if goal is None:
            raise GoalNotFoundError(f"Goal not found: {goal_id}")

        if verify_ownership and user_id is not None and goal.user_id != user_id:
            raise PermissionError(f"Goal {goal_id} does not belong to user {user_id}")

        return goal

    async def update(self, goal: Goal, **fields: Any) -> Goal:
        """Apply the given column values to a goal."""
        for name, value in fields.items():
            setattr(goal, name, value)

        await self.db.flush()
        await self.db.refresh(goal)

        logger.info(f"[GoalRepository] Updated goal: {goal.id}")
        return goal

    async def delete(self, goal_id: str) -> bool:
        """Delete a goal. Its logs, link rows and session entries cascade."""
        result = await self.db.execute(delete(Goal).where(Goal.id == goal_id))
        deleted = result.rowcount > 0

        if deleted:
            logger.info(f"[GoalRepository] Deleted goal: {goal_id}")
        return deleted

    async def add_content_link(self, goal_id: str, content_id: str) -> None:
        """
        Raises:
            IntegrityError: If the link already exists
        """
        async with self.db.begin_nested():
            await self.db.execute(insert(GoalContent).values(goal_id=goal_id, content_id=content_id))

    async def remove_content_link(self, goal_id: str, content_id: str) -> bool:
        stmt = (
            delete(GoalContent)
            .where(GoalContent.goal_id == goal_id)
            .where(GoalContent.content_id == content_id)
        )
        result = await self.db.execute(stmt)
        return result.rowcount > 0

    async def get_content_by_goal(self, goal_ids: Iterable[str]) -> Dict[str, List[Content]]:
        """Content items per goal id, by title."""
        ids = list(goal_ids)
        if not ids:
            return {}
        stmt = (
            select(GoalContent.goal_id, Content)
            .join(Content, Content.id == GoalContent.content_id)
            .where(GoalContent.goal_id.in_(ids))
            .order_by(Content.title.asc())
        )
        result = await self.db.execute(stmt)

        grouped: Dict[str, List[Content]] = {}
        for goal_id, content in result.all():
            grouped.setdefault(goal_id, []).append(content)
        return grouped
