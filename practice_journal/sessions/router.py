"""
Sessions router - API endpoints for the daily practice session.
All routes require authentication and filter by user.

Dates are YYYY-MM-DD; "today" is resolved in the application timezone.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Request

from practice_journal.core.dates import today_in_app_timezone
from practice_journal.dependencies import CurrentUserId, DBSession
from practice_journal.sessions.schemas import (
    SessionActionResult,
    SessionError,
    SessionGoalAdd,
    SessionRead,
    SessionView,
)
from practice_journal.sessions.service import SessionCache, get_session_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["Sessions"])


def _cache(request: Request) -> Optional[SessionCache]:
    return getattr(request.app.state, "session_cache", None)


@router.get(
    "/today",
    response_model=SessionView,
    summary="Today's practice session",
    description="Resolve (creating if needed) the session for today in the application timezone.",
)
async def get_today_session(request: Request, user_id: CurrentUserId, db: DBSession) -> SessionView:
    service = get_session_service(db, cache=_cache(request))
    return await service.get_session_view(user_id, today_in_app_timezone())


@router.get(
    "/{session_date}",
    response_model=SessionView,
    summary="Practice session for a day",
    description="Planned goals in the order they were added, with topic, content, repertoire and logs.",
    responses={422: {"model": SessionError, "description": "Malformed date"}},
)
async def get_session(
        session_date: str,
        request: Request,
        user_id: CurrentUserId,
        db: DBSession,
) -> SessionView:
    logger.info(f"[SessionsRouter] Getting session {session_date}, user: {user_id}")

    service = get_session_service(db, cache=_cache(request))
    return await service.get_session_view(user_id, session_date)


@router.get(
    "/{session_date}/goals",
    response_model=SessionRead,
    summary="Goal ids planned for a day",
)
async def get_session_goal_ids(
        session_date: str,
        request: Request,
        user_id: CurrentUserId,
        db: DBSession,
) -> SessionRead:
    service = get_session_service(db, cache=_cache(request))
    return await service.get_or_create_session(user_id, session_date)


@router.post(
    "/{session_date}/goals",
    response_model=SessionActionResult,
    summary="Plan a goal for a day",
    description="Adding a goal that is already planned succeeds without a duplicate entry.",
    responses={404: {"model": SessionError, "description": "Goal not found"}},
)
async def add_session_goal(
        session_date: str,
        body: SessionGoalAdd,
        request: Request,
        user_id: CurrentUserId,
        db: DBSession,
) -> SessionActionResult:
    logger.info(f"[SessionsRouter] Adding goal {body.goal_id} to session {session_date}, user: {user_id}")

    service = get_session_service(db, cache=_cache(request))
    success = await service.add_goal_to_session(user_id, session_date, body.goal_id)
    goal_ids = await service.list_session_goal_ids(user_id, session_date)
    return SessionActionResult(success=success, goal_ids=sorted(goal_ids))


@router.delete(
    "/{session_date}/goals/{goal_id}",
    response_model=SessionActionResult,
    summary="Unplan a goal",
)
async def remove_session_goal(
        session_date: str,
        goal_id: str,
        request: Request,
        user_id: CurrentUserId,
        db: DBSession,
) -> SessionActionResult:
    logger.info(f"[SessionsRouter] Removing goal {goal_id} from session {session_date}, user: {user_id}")

    service = get_session_service(db, cache=_cache(request))
    success = await service.remove_goal_from_session(user_id, session_date, goal_id)
    return SessionActionResult(success=success)


@router.delete(
    "/{session_date}/goals",
    response_model=SessionActionResult,
    summary="Clear a day's session",
    description="Remove every planned goal. The session itself is kept.",
)
async def clear_session(
        session_date: str,
        request: Request,
        user_id: CurrentUserId,
        db: DBSession,
) -> SessionActionResult:
    logger.info(f"[SessionsRouter] Clearing session {session_date}, user: {user_id}")

    service = get_session_service(db, cache=_cache(request))
    removed = await service.clear_session(user_id, session_date)
    return SessionActionResult(success=True, removed=removed)
