"""
Library router - API endpoints for content, repertoire and tags.
All routes require authentication and filter by user.
"""

import logging
from typing import List

from fastapi import APIRouter, Query, status

from practice_journal.dependencies import CurrentUserId, DBSession
from practice_journal.library.schemas import (
    ContentCreate,
    ContentList,
    ContentRead,
    ContentUpdate,
    LibraryError,
    RecomputeSummary,
    RepertoireCreate,
    RepertoireList,
    RepertoireRead,
    RepertoireUpdate,
    TagAdd,
    TagList,
    TagRead,
)
from practice_journal.library.service import get_content_service, get_repertoire_service
from practice_journal.logs.schemas import WriteResult
from practice_journal.tags.service import get_tag_service

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════
# CONTENT ROUTER
# ═══════════════════════════════════════════════════════════════════════════

content_router = APIRouter(prefix="/content", tags=["Content"])


@content_router.post(
    "",
    response_model=ContentRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a content item",
    description="Create a video, article or other resource and link its tags.",
    responses={
        201: {"model": ContentRead, "description": "Content created"},
        401: {"description": "Not authenticated"},
    },
)
async def create_content(
        content_data: ContentCreate,
        user_id: CurrentUserId,
        db: DBSession,
) -> ContentRead:
    logger.info(f"[ContentRouter] Creating content: {content_data.title}, user: {user_id}")

    service = get_content_service(db)
    return await service.create_content(content_data, user_id)


@content_router.get(
    "",
    response_model=ContentList,
    summary="List content",
)
async def list_content(
        user_id: CurrentUserId,
        db: DBSession,
        skip: int = Query(0, ge=0, description="Number of records to skip"),
        limit: int = Query(100, ge=1, le=1000, description="Maximum records to return"),
) -> ContentList:
    service = get_content_service(db)
    return await service.list_content(user_id, skip=skip, limit=limit)


@content_router.get(
    "/search",
    response_model=List[ContentRead],
    summary="Search content by title",
    description="Case-insensitive title search. Terms shorter than two characters return nothing.",
)
async def search_content(
        user_id: CurrentUserId,
        db: DBSession,
        q: str = Query("", description="Search term"),
) -> List[ContentRead]:
    service = get_content_service(db)
    return await service.search_content(user_id, q)


@content_router.get(
    "/{content_id}",
    response_model=ContentRead,
    summary="Get content by ID",
    responses={
        403: {"description": "Access denied - content does not belong to user"},
        404: {"model": LibraryError, "description": "Content not found"},
    },
)
async def get_content(content_id: str, user_id: CurrentUserId, db: DBSession) -> ContentRead:
    service = get_content_service(db)
    return await service.get_content(content_id, user_id)


@content_router.patch(
    "/{content_id}",
    response_model=ContentRead,
    summary="Update content",
    description="Partial update. When tags is given the item's tag set is replaced by it.",
    responses={404: {"model": LibraryError, "description": "Content not found"}},
)
async def update_content(
        content_id: str,
        content_data: ContentUpdate,
        user_id: CurrentUserId,
        db: DBSession,
) -> ContentRead:
    logger.info(f"[ContentRouter] Updating content: {content_id}, user: {user_id}")

    service = get_content_service(db)
    return await service.update_content(content_id, content_data, user_id)


@content_router.delete(
    "/{content_id}",
    response_model=WriteResult,
    summary="Delete content",
    responses={404: {"model": LibraryError, "description": "Content not found"}},
)
async def delete_content(content_id: str, user_id: CurrentUserId, db: DBSession) -> WriteResult:
    logger.info(f"[ContentRouter] Deleting content: {content_id}, user: {user_id}")

    service = get_content_service(db)
    return WriteResult(success=await service.delete_content(content_id, user_id))


@content_router.post(
    "/{content_id}/tags",
    response_model=ContentRead,
    summary="Tag a content item",
    description="Find or create the tag by its normalized name and link it.",
)
async def add_content_tag(
        content_id: str,
        tag_data: TagAdd,
        user_id: CurrentUserId,
        db: DBSession,
) -> ContentRead:
    service = get_content_service(db)
    return await service.add_tag(content_id, tag_data.name, user_id)


@content_router.delete(
    "/{content_id}/tags/{tag_id}",
    response_model=ContentRead,
    summary="Untag a content item",
)
async def remove_content_tag(
        content_id: str,
        tag_id: str,
        user_id: CurrentUserId,
        db: DBSession,
) -> ContentRead:
    service = get_content_service(db)
    return await service.remove_tag(content_id, tag_id, user_id)


# ═══════════════════════════════════════════════════════════════════════════
# REPERTOIRE ROUTER
# ═══════════════════════════════════════════════════════════════════════════

repertoire_router = APIRouter(prefix="/repertoire", tags=["Repertoire"])


@repertoire_router.post(
    "",
    response_model=RepertoireRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a repertoire item",
    responses={
        201: {"model": RepertoireRead, "description": "Repertoire item created"},
        401: {"description": "Not authenticated"},
    },
)
async def create_repertoire(
        repertoire_data: RepertoireCreate,
        user_id: CurrentUserId,
        db: DBSession,
) -> RepertoireRead:
    logger.info(f"[RepertoireRouter] Creating repertoire: {repertoire_data.title}, user: {user_id}")

    service = get_repertoire_service(db)
    return await service.create_repertoire(repertoire_data, user_id)


@repertoire_router.get("", response_model=RepertoireList, summary="List repertoire")
async def list_repertoire(
        user_id: CurrentUserId,
        db: DBSession,
        skip: int = Query(0, ge=0, description="Number of records to skip"),
        limit: int = Query(100, ge=1, le=1000, description="Maximum records to return"),
) -> RepertoireList:
    service = get_repertoire_service(db)
    return await service.list_repertoire(user_id, skip=skip, limit=limit)


@repertoire_router.get(
    "/search",
    response_model=List[RepertoireRead],
    summary="Search repertoire by title or composer",
)
async def search_repertoire(
        user_id: CurrentUserId,
        db: DBSession,
        q: str = Query("", description="Search term"),
) -> List[RepertoireRead]:
    service = get_repertoire_service(db)
    return await service.search_repertoire(user_id, q)


@repertoire_router.post(
    "/recompute-all",
    response_model=RecomputeSummary,
    summary="Recompute stats for every repertoire item",
    description="Maintenance endpoint. Failures are counted and listed, they do not stop the run.",
)
async def recompute_all_repertoire_stats(user_id: CurrentUserId, db: DBSession) -> RecomputeSummary:
    logger.info(f"[RepertoireRouter] Recomputing all repertoire stats, user: {user_id}")

    service = get_repertoire_service(db)
    return await service.recompute_all_repertoire_stats(user_id)


@repertoire_router.get(
    "/{repertoire_id}",
    response_model=RepertoireRead,
    summary="Get repertoire item by ID",
    responses={
        403: {"description": "Access denied - item does not belong to user"},
        404: {"model": LibraryError, "description": "Repertoire item not found"},
    },
)
async def get_repertoire(repertoire_id: str, user_id: CurrentUserId, db: DBSession) -> RepertoireRead:
    service = get_repertoire_service(db)
    return await service.get_repertoire(repertoire_id, user_id)


@repertoire_router.patch(
    "/{repertoire_id}",
    response_model=RepertoireRead,
    summary="Update repertoire item",
    description="Partial update. practice_count and last_practiced are derived and cannot be set.",
)
async def update_repertoire(
        repertoire_id: str,
        repertoire_data: RepertoireUpdate,
        user_id: CurrentUserId,
        db: DBSession,
) -> RepertoireRead:
    logger.info(f"[RepertoireRouter] Updating repertoire: {repertoire_id}, user: {user_id}")

    service = get_repertoire_service(db)
    return await service.update_repertoire(repertoire_id, repertoire_data, user_id)


@repertoire_router.delete("/{repertoire_id}", response_model=WriteResult, summary="Delete repertoire item")
async def delete_repertoire(repertoire_id: str, user_id: CurrentUserId, db: DBSession) -> WriteResult:
    logger.info(f"[RepertoireRouter] Deleting repertoire: {repertoire_id}, user: {user_id}")

    service = get_repertoire_service(db)
    return WriteResult(success=await service.delete_repertoire(repertoire_id, user_id))


@repertoire_router.post(
    "/{repertoire_id}/recompute",
    response_model=RepertoireRead,
    summary="Recompute practice stats",
    description="Recompute practice_count and last_practiced from the current log linkage.",
    responses={500: {"model": LibraryError, "description": "Recompute failed"}},
)
async def recompute_repertoire_stats(
        repertoire_id: str,
        user_id: CurrentUserId,
        db: DBSession,
) -> RepertoireRead:
    service = get_repertoire_service(db)
    return await service.recompute_repertoire_stats(repertoire_id, user_id)


@repertoire_router.post("/{repertoire_id}/tags", response_model=RepertoireRead, summary="Tag a repertoire item")
async def add_repertoire_tag(
        repertoire_id: str,
        tag_data: TagAdd,
        user_id: CurrentUserId,
        db: DBSession,
) -> RepertoireRead:
    service = get_repertoire_service(db)
    return await service.add_tag(repertoire_id, tag_data.name, user_id)


@repertoire_router.delete(
    "/{repertoire_id}/tags/{tag_id}",
    response_model=RepertoireRead,
    summary="Untag a repertoire item",
)
async def remove_repertoire_tag(
        repertoire_id: str,
        tag_id: str,
        user_id: CurrentUserId,
        db: DBSession,
) -> RepertoireRead:
    service = get_repertoire_service(db)
    return await service.remove_tag(repertoire_id, tag_id, user_id)


# ═══════════════════════════════════════════════════════════════════════════
# TAGS ROUTER
# ═══════════════════════════════════════════════════════════════════════════

tags_router = APIRouter(prefix="/tags", tags=["Tags"])


@tags_router.get("", response_model=TagList, summary="List tags", description="All tags of the user, alphabetical.")
async def list_tags(user_id: CurrentUserId, db: DBSession) -> TagList:
    service = get_tag_service(db)
    tags = [TagRead.model_validate(t) for t in await service.list_tags(user_id)]
    return TagList(tags=tags, total=len(tags))


@tags_router.get("/search", response_model=TagList, summary="Search tags")
async def search_tags(
        user_id: CurrentUserId,
        db: DBSession,
        q: str = Query("", description="Search term"),
) -> TagList:
    service = get_tag_service(db)
    tags = [TagRead.model_validate(t) for t in await service.search_tags(user_id, q)]
    return TagList(tags=tags, total=len(tags))
