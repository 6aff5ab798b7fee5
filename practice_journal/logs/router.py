"""
Logs router - API endpoints for practice logs.
All routes require authentication and filter by user.
"""

import logging
from datetime import date
from typing import List

from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse

from practice_journal.dependencies import CurrentUserId, DBSession
from practice_journal.library.schemas import ContentRef, RepertoireRef
from practice_journal.logs.schemas import (
    LinkRequest,
    LogCreate,
    LogError,
    LogList,
    LogRead,
    LogUpdate,
    LogWriteResult,
    WriteResult,
)
from practice_journal.logs.service import get_log_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/logs", tags=["Logs"])


def _log_write_result(outcome) -> LogWriteResult:
    return LogWriteResult(
        success=outcome.succeeded,
        log=LogRead.model_validate(outcome.primary) if outcome.primary else None,
        stats_updated=outcome.stats_updated,
        recomputed_repertoire_ids=outcome.recomputed_repertoire_ids,
        secondary_failures=outcome.secondary_failures,
    )


def _write_result(outcome) -> WriteResult:
    return WriteResult(
        success=bool(outcome.primary),
        stats_updated=outcome.stats_updated,
        recomputed_repertoire_ids=outcome.recomputed_repertoire_ids,
        secondary_failures=outcome.secondary_failures,
    )


@router.post(
    "",
    response_model=LogWriteResult,
    status_code=status.HTTP_201_CREATED,
    summary="Log practice on a goal",
    description=(
        "Create a log, link content and repertoire, and recompute stats for every "
        "repertoire item the log counts towards. Link or recompute failures are "
        "reported in secondary_failures; the log is kept."
    ),
    responses={
        201: {"model": LogWriteResult, "description": "Log created"},
        404: {"model": LogError, "description": "Goal not found"},
        422: {"model": LogError, "description": "Empty entry or malformed date"},
        500: {"model": LogError, "description": "Log could not be created"},
    },
)
async def create_log(log_data: LogCreate, user_id: CurrentUserId, db: DBSession) -> LogWriteResult:
    """
    Log practice on a goal.

    Args:
        log_data: Goal, entry text, optional date and linked items
        user_id: Authenticated user (injected by dependency)

    Returns:
        Created log with the stats recompute outcome
    """
    logger.info(f"[LogsRouter] Creating log for goal: {log_data.goal_id}, user: {user_id}")

    service = get_log_service(db)
    outcome = await service.create_log(
        user_id,
        log_data.goal_id,
        log_data.entry,
        log_date=log_data.date,
        content_ids=log_data.content_ids,
        repertoire_ids=log_data.repertoire_ids,
    )

    if outcome is None:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Log could not be created", "code": "CREATE_FAILED"},
        )
    return _log_write_result(outcome)


@router.get(
    "",
    response_model=LogList,
    summary="List logs by date range",
    description="Logs with start <= date <= end, newest first, with goal, topic, content and repertoire.",
)
async def list_logs(
        user_id: CurrentUserId,
        db: DBSession,
        start: date = Query(..., description="First day (YYYY-MM-DD)"),
        end: date = Query(..., description="Last day (YYYY-MM-DD)"),
) -> LogList:
    logger.info(f"[LogsRouter] Listing logs {start}..{end}, user: {user_id}")

    service = get_log_service(db)
    logs = await service.list_logs_by_date_range(user_id, start, end)
    return LogList(logs=logs, total=len(logs))


@router.patch(
    "/{log_id}",
    response_model=LogWriteResult,
    summary="Edit log",
    description="Edit the entry text or move the log to another day. A date change recomputes stats.",
)
async def update_log(
        log_id: str,
        log_data: LogUpdate,
        user_id: CurrentUserId,
        db: DBSession,
) -> LogWriteResult:
    logger.info(f"[LogsRouter] Updating log: {log_id}, user: {user_id}")

    service = get_log_service(db)
    outcome = await service.update_log(user_id, log_id, entry=log_data.entry, log_date=log_data.date)
    return _log_write_result(outcome)


@router.delete(
    "/{log_id}",
    response_model=WriteResult,
    summary="Delete log",
    description="Delete a log and recompute stats for its goal's repertoire item and its linked items.",
)
async def delete_log(log_id: str, user_id: CurrentUserId, db: DBSession) -> WriteResult:
    logger.info(f"[LogsRouter] Deleting log: {log_id}, user: {user_id}")

    service = get_log_service(db)
    return _write_result(await service.delete_log(user_id, log_id))


@router.get("/{log_id}/content", response_model=List[ContentRef], summary="Content linked to a log")
async def get_log_content(log_id: str, user_id: CurrentUserId, db: DBSession) -> List[ContentRef]:
    service = get_log_service(db)
    return [ContentRef.model_validate(c) for c in await service.get_log_content(user_id, log_id)]


@router.post("/{log_id}/content", response_model=WriteResult, summary="Link content to a log")
async def link_log_content(
        log_id: str,
        link: LinkRequest,
        user_id: CurrentUserId,
        db: DBSession,
) -> WriteResult:
    service = get_log_service(db)
    return WriteResult(success=await service.link_content_to_log(user_id, log_id, link.id))


@router.delete("/{log_id}/content/{content_id}", response_model=WriteResult, summary="Unlink content from a log")
async def unlink_log_content(
        log_id: str,
        content_id: str,
        user_id: CurrentUserId,
        db: DBSession,
) -> WriteResult:
    service = get_log_service(db)
    return WriteResult(success=await service.unlink_content_from_log(user_id, log_id, content_id))


@router.get("/{log_id}/repertoire", response_model=List[RepertoireRef], summary="Repertoire linked to a log")
async def get_log_repertoire(log_id: str, user_id: CurrentUserId, db: DBSession) -> List[RepertoireRef]:
    service = get_log_service(db)
    return [RepertoireRef.model_validate(r) for r in await service.get_log_repertoire(user_id, log_id)]


@router.post(
    "/{log_id}/repertoire",
    response_model=WriteResult,
    summary="Link repertoire to a log",
    description="Recomputes the item's stats. Linking an already linked item succeeds without a recompute.",
)
async def link_log_repertoire(
        log_id: str,
        link: LinkRequest,
        user_id: CurrentUserId,
        db: DBSession,
) -> WriteResult:
    logger.info(f"[LogsRouter] Linking repertoire {link.id} to log: {log_id}, user: {user_id}")

    service = get_log_service(db)
    outcome = await service.link_repertoire_to_log(user_id, log_id, link.id)
    result = _write_result(outcome)
    result.success = outcome.succeeded
    return result


@router.delete(
    "/{log_id}/repertoire/{repertoire_id}",
    response_model=WriteResult,
    summary="Unlink repertoire from a log",
)
async def unlink_log_repertoire(
        log_id: str,
        repertoire_id: str,
        user_id: CurrentUserId,
        db: DBSession,
) -> WriteResult:
    service = get_log_service(db)
    outcome = await service.unlink_repertoire_from_log(user_id, log_id, repertoire_id)
    result = _write_result(outcome)
    result.success = outcome.succeeded
    return result
