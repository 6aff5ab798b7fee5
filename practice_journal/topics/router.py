"""
Topics router - API endpoints for topics and goals.
All routes require authentication and filter by user.

Domain errors (not found, invalid input, numbering conflicts) propagate to
the application exception handlers, which map them to {"error", "code"}.
"""

import logging
from typing import List

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse

from practice_journal.core.exceptions import NumberingConflictError
from practice_journal.dependencies import CurrentUserId, DBSession
from practice_journal.library.schemas import ContentRef, RepertoireRef
from practice_journal.logs.schemas import LinkRequest, WriteResult
from practice_journal.topics.schemas import (
    GoalCreate,
    GoalDetail,
    GoalRead,
    GoalUpdate,
    GoalWriteResult,
    TopicCreate,
    TopicError,
    TopicRead,
    TopicTree,
    TopicUpdate,
)
from practice_journal.topics.service import get_goal_service, get_topic_service

logger = logging.getLogger(__name__)

topics_router = APIRouter(prefix="/topics", tags=["Topics"])
goals_router = APIRouter(prefix="/goals", tags=["Goals"])


def _write_result(outcome) -> WriteResult:
    return WriteResult(
        success=outcome is not None and outcome.succeeded and bool(outcome.primary),
        stats_updated=outcome.stats_updated if outcome else False,
        recomputed_repertoire_ids=outcome.recomputed_repertoire_ids if outcome else [],
        secondary_failures=outcome.secondary_failures if outcome else [],
    )


def _goal_write_result(outcome) -> GoalWriteResult:
    return GoalWriteResult(
        success=outcome is not None and outcome.succeeded,
        goal=GoalRead.model_validate(outcome.primary) if outcome and outcome.primary else None,
        stats_updated=outcome.stats_updated if outcome else False,
        recomputed_repertoire_ids=outcome.recomputed_repertoire_ids if outcome else [],
        secondary_failures=outcome.secondary_failures if outcome else [],
    )


# ═══════════════════════════════════════════════════════════════════════════
# TOPICS
# ═══════════════════════════════════════════════════════════════════════════


@topics_router.post(
    "",
    response_model=TopicRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new topic",
    description="Create a practice topic. The next topic number for the user is assigned.",
    responses={
        201: {"model": TopicRead, "description": "Topic created"},
        401: {"description": "Not authenticated"},
        409: {"model": TopicError, "description": "Topic number taken by a concurrent request"},
    },
)
async def create_topic(
        topic_data: TopicCreate,
        user_id: CurrentUserId,
        db: DBSession,
) -> TopicRead:
    """
    Create a new topic.

    Args:
        topic_data: Topic creation data
        user_id: Authenticated user (injected by dependency)

    Returns:
        Created topic with its number
    """
    logger.info(f"[TopicsRouter] Creating topic: {topic_data.title}, user: {user_id}")

    try:
        service = get_topic_service(db)
        topic = await service.create_topic(user_id, topic_data.title)
        return TopicRead.model_validate(topic)

    except NumberingConflictError as e:
        logger.warning(f"[TopicsRouter] Numbering conflict creating topic for user {user_id}")
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"error": e.message, "code": "NUMBERING_CONFLICT"},
        )


@topics_router.get(
    "",
    response_model=TopicTree,
    summary="List topics with goals",
    description="Topics by number, each with goals (highest sub-number first), their content, repertoire and logs.",
)
async def list_topics(user_id: CurrentUserId, db: DBSession) -> TopicTree:
    logger.info(f"[TopicsRouter] Listing topics, user: {user_id}")

    service = get_topic_service(db)
    return await service.list_topics_with_goals(user_id)


@topics_router.get(
    "/{topic_id}",
    response_model=TopicRead,
    summary="Get topic by ID",
    responses={
        403: {"description": "Access denied - topic does not belong to user"},
        404: {"model": TopicError, "description": "Topic not found"},
    },
)
async def get_topic(topic_id: str, user_id: CurrentUserId, db: DBSession) -> TopicRead:
    service = get_topic_service(db)
    return TopicRead.model_validate(await service.get_topic(user_id, topic_id))


@topics_router.patch(
    "/{topic_id}",
    response_model=TopicRead,
    summary="Rename topic",
    description="Update a topic's title. The topic number never changes.",
    responses={
        403: {"description": "Access denied - topic does not belong to user"},
        404: {"model": TopicError, "description": "Topic not found"},
    },
)
async def update_topic(
        topic_id: str,
        topic_data: TopicUpdate,
        user_id: CurrentUserId,
        db: DBSession,
) -> TopicRead:
    logger.info(f"[TopicsRouter] Updating topic: {topic_id}, user: {user_id}")

    service = get_topic_service(db)
    topic = await service.update_topic(user_id, topic_id, topic_data.title)
    return TopicRead.model_validate(topic)


@topics_router.delete(
    "/{topic_id}",
    response_model=WriteResult,
    summary="Delete topic",
    description="Delete a topic with its goals and logs and recompute the affected repertoire stats.",
    responses={
        403: {"description": "Access denied - topic does not belong to user"},
        404: {"model": TopicError, "description": "Topic not found"},
    },
)
async def delete_topic(topic_id: str, user_id: CurrentUserId, db: DBSession) -> WriteResult:
    logger.info(f"[TopicsRouter] Deleting topic: {topic_id}, user: {user_id}")

    service = get_topic_service(db)
    return _write_result(await service.delete_topic(user_id, topic_id))


@topics_router.post(
    "/{topic_id}/goals",
    response_model=GoalRead,
    status_code=status.HTTP_201_CREATED,
    summary="Add a goal to a topic",
    description="Create a goal numbered '{topic_number}.{next sub-number}'.",
    responses={
        404: {"model": TopicError, "description": "Topic, repertoire or content not found"},
        409: {"model": TopicError, "description": "Goal number taken by a concurrent request"},
    },
)
async def create_goal(
        topic_id: str,
        goal_data: GoalCreate,
        user_id: CurrentUserId,
        db: DBSession,
) -> GoalRead:
    logger.info(f"[TopicsRouter] Creating goal in topic: {topic_id}, user: {user_id}")

    try:
        service = get_goal_service(db)
        goal = await service.create_goal(
            user_id,
            topic_id,
            goal_data.description,
            repertoire_id=goal_data.repertoire_id,
            content_ids=goal_data.content_ids,
        )
        return GoalRead.model_validate(goal)

    except NumberingConflictError as e:
        logger.warning(f"[TopicsRouter] Numbering conflict creating goal in topic {topic_id}")
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"error": e.message, "code": "NUMBERING_CONFLICT"},
        )


# ═══════════════════════════════════════════════════════════════════════════
# GOALS
# ═══════════════════════════════════════════════════════════════════════════


@goals_router.get(
    "/{goal_id}",
    response_model=GoalDetail,
    summary="Get goal with topic, links and logs",
)
async def get_goal(goal_id: str, user_id: CurrentUserId, db: DBSession) -> GoalDetail:
    service = get_goal_service(db)
    goal = await service.get_goal(user_id, goal_id)
    return (await service.build_goal_details([goal]))[0]


@goals_router.patch(
    "/{goal_id}",
    response_model=GoalRead,
    summary="Update goal",
    description="Update description or completion. Completing without a date stamps today's date.",
)
async def update_goal(
        goal_id: str,
        goal_data: GoalUpdate,
        user_id: CurrentUserId,
        db: DBSession,
) -> GoalRead:
    logger.info(f"[GoalsRouter] Updating goal: {goal_id}, user: {user_id}")

    service = get_goal_service(db)
    goal = await service.update_goal(
        user_id,
        goal_id,
        description=goal_data.description,
        is_complete=goal_data.is_complete,
        date_completed=goal_data.date_completed,
    )
    return GoalRead.model_validate(goal)


@goals_router.delete(
    "/{goal_id}",
    response_model=WriteResult,
    summary="Delete goal",
    description="Delete a goal with its logs and recompute the affected repertoire stats.",
)
async def delete_goal(goal_id: str, user_id: CurrentUserId, db: DBSession) -> WriteResult:
    logger.info(f"[GoalsRouter] Deleting goal: {goal_id}, user: {user_id}")

    service = get_goal_service(db)
    return _write_result(await service.delete_goal(user_id, goal_id))


@goals_router.get("/{goal_id}/content", response_model=List[ContentRef], summary="Content linked to a goal")
async def get_goal_content(goal_id: str, user_id: CurrentUserId, db: DBSession) -> List[ContentRef]:
    service = get_goal_service(db)
    return [ContentRef.model_validate(c) for c in await service.get_goal_content(user_id, goal_id)]


@goals_router.post(
    "/{goal_id}/content",
    response_model=WriteResult,
    summary="Link content to a goal",
    description="Linking an already linked item succeeds.",
)
async def link_goal_content(
        goal_id: str,
        link: LinkRequest,
        user_id: CurrentUserId,
        db: DBSession,
) -> WriteResult:
    service = get_goal_service(db)
    return WriteResult(success=await service.link_content_to_goal(user_id, goal_id, link.id))


@goals_router.delete("/{goal_id}/content/{content_id}", response_model=WriteResult, summary="Unlink content")
async def unlink_goal_content(
        goal_id: str,
        content_id: str,
        user_id: CurrentUserId,
        db: DBSession,
) -> WriteResult:
    service = get_goal_service(db)
    return WriteResult(success=await service.unlink_content_from_goal(user_id, goal_id, content_id))


@goals_router.get(
    "/{goal_id}/repertoire",
    response_model=List[RepertoireRef],
    summary="Repertoire linked to a goal",
)
async def get_goal_repertoire(goal_id: str, user_id: CurrentUserId, db: DBSession) -> List[RepertoireRef]:
    service = get_goal_service(db)
    return [RepertoireRef.model_validate(r) for r in await service.get_goal_repertoire(user_id, goal_id)]


@goals_router.put(
    "/{goal_id}/repertoire",
    response_model=GoalWriteResult,
    summary="Set the goal's repertoire item",
    description="Recomputes stats for the new item and the item it replaces.",
)
async def link_goal_repertoire(
        goal_id: str,
        link: LinkRequest,
        user_id: CurrentUserId,
        db: DBSession,
) -> GoalWriteResult:
    logger.info(f"[GoalsRouter] Linking repertoire {link.id} to goal: {goal_id}, user: {user_id}")

    service = get_goal_service(db)
    return _goal_write_result(await service.link_repertoire_to_goal(user_id, goal_id, link.id))


@goals_router.delete(
    "/{goal_id}/repertoire",
    response_model=GoalWriteResult,
    summary="Clear the goal's repertoire item",
)
async def unlink_goal_repertoire(goal_id: str, user_id: CurrentUserId, db: DBSession) -> GoalWriteResult:
    service = get_goal_service(db)
    return _goal_write_result(await service.unlink_repertoire_from_goal(user_id, goal_id))
