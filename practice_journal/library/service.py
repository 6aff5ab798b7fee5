"""
Library service - content and repertoire management.
All operations are scoped to the authenticated user; a missing user id
makes writes return None/False without touching the database.
"""

import logging
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from practice_journal.core.exceptions import StatsRecomputeError
from practice_journal.library.models import Content, Repertoire
from practice_journal.library.repository import ContentRepository, RepertoireRepository
from practice_journal.library.schemas import (
    ContentCreate,
    ContentList,
    ContentRead,
    ContentUpdate,
    RecomputeSummary,
    RepertoireCreate,
    RepertoireList,
    RepertoireRead,
    RepertoireUpdate,
)
from practice_journal.library.stats import RepertoireStatsGateway, get_stats_gateway
from practice_journal.tags.models import TaggableEntity
from practice_journal.tags.service import TagService

logger = logging.getLogger(__name__)

MIN_SEARCH_LENGTH = 2
SEARCH_LIMIT = 10


class ContentService:
    """Service for content items and their tags."""

    def __init__(self, db: AsyncSession):
        self.repository = ContentRepository(db)
        self.tags = TagService(db)

    async def create_content(self, data: ContentCreate, user_id: Optional[str]) -> Optional[ContentRead]:
        """
        Create a content item and link its tags.

        Returns:
            Created content, or None when not authenticated
        """
        if user_id is None:
            logger.warning("[ContentService] create_content without user, skipping")
            return None

        logger.info(f"[ContentService] Creating content: {data.title} for user: {user_id}")

        content = await self.repository.create(
            user_id,
            title=data.title.strip(),
            url=data.url,
            type=data.type,
            tempo=data.tempo,
        )
        if data.tags:
            await self.tags.sync_tags(user_id, TaggableEntity.CONTENT, content.id, data.tags)

        return await self._to_read_dto(content)

    async def get_content(self, content_id: str, user_id: str) -> ContentRead:
        """
        Raises:
            ContentNotFoundError: If content not found
            PermissionError: If content doesn't belong to user
        """
        content = await self.repository.get_by_id(content_id, user_id=user_id)
        return await self._to_read_dto(content)

    async def list_content(self, user_id: str, skip: int = 0, limit: int = 100) -> ContentList:
        """List content with tag names attached."""
        items = await self.repository.get_all(user_id, skip=skip, limit=limit)
        total = await self.repository.count(user_id)
        return ContentList(content=await self._to_read_dtos(items), total=total)

    async def update_content(
            self,
            content_id: str,
            data: ContentUpdate,
            user_id: Optional[str],
    ) -> Optional[ContentRead]:
        """
        Update a content item; when tags is given the tag set is synced to it.

        Raises:
            ContentNotFoundError: If content not found
            PermissionError: If content doesn't belong to user
        """
        if user_id is None:
            return None

        content = await self.repository.get_by_id(content_id, user_id=user_id)
        fields = data.model_dump(exclude_unset=True, exclude={"tags"})
        if fields:
            content = await self.repository.update(content, **fields)

        if data.tags is not None:
            await self.tags.sync_tags(user_id, TaggableEntity.CONTENT, content.id, data.tags)

        return await self._to_read_dto(content)

    async def delete_content(self, content_id: str, user_id: Optional[str]) -> bool:
        """
        Delete a content item and its tag links.

        Raises:
            ContentNotFoundError: If content not found
            PermissionError: If content doesn't belong to user
        """
        if user_id is None:
            return False

        await self.repository.get_by_id(content_id, user_id=user_id)
        await self.tags.remove_entity(TaggableEntity.CONTENT, content_id)
        return await self.repository.delete(content_id, user_id)

    async def add_tag(self, content_id: str, name: str, user_id: Optional[str]) -> Optional[ContentRead]:
        """Find or create a tag by name and link it to a content item."""
        if user_id is None:
            return None

        content = await self.repository.get_by_id(content_id, user_id=user_id)
        tag = await self.tags.find_or_create_tag(user_id, name)
        await self.tags.link_tag(TaggableEntity.CONTENT, content.id, tag.id)
        return await self._to_read_dto(content)

    async def remove_tag(self, content_id: str, tag_id: str, user_id: Optional[str]) -> Optional[ContentRead]:
        """Unlink a tag from a content item. A tag that was not linked is ignored."""
        if user_id is None:
            return None

        content = await self.repository.get_by_id(content_id, user_id=user_id)
        tag = await self.tags.get_tag(user_id, tag_id)
        await self.tags.unlink_tag(TaggableEntity.CONTENT, content.id, tag.id)
        return await self._to_read_dto(content)

    async def search_content(self, user_id: Optional[str], term: str) -> List[ContentRead]:
        """Title search; terms shorter than two characters return nothing."""
        term = (term or "").strip()
        if user_id is None or len(term) < MIN_SEARCH_LENGTH:
            return []
        items = await self.repository.search(user_id, term, limit=SEARCH_LIMIT)
        return await self._to_read_dtos(items)

    async def _to_read_dto(self, content: Content) -> ContentRead:
        tags = await self.tags.get_entity_tag_names(TaggableEntity.CONTENT, content.id)
        return ContentRead(
            id=content.id,
            title=content.title,
            url=content.url,
            type=content.type,
            tempo=content.tempo,
            tags=tags,
            created_at=content.created_at,
        )

    async def _to_read_dtos(self, items) -> List[ContentRead]:
        names = await self.tags.repository.get_tag_names_for_entities(
            TaggableEntity.CONTENT.value, [c.id for c in items]
        )
        return [
            ContentRead(
                id=c.id,
                title=c.title,
                url=c.url,
                type=c.type,
                tempo=c.tempo,
                tags=names.get(c.id, []),
                created_at=c.created_at,
            )
            for c in items
        ]


class RepertoireService:
    """Service for repertoire items, their tags and their practice stats."""

    def __init__(self, db: AsyncSession, stats_gateway: Optional[RepertoireStatsGateway] = None):
        self.repository = RepertoireRepository(db)
        self.tags = TagService(db)
        self.stats = stats_gateway or get_stats_gateway(db)

    async def create_repertoire(
            self,
            data: RepertoireCreate,
            user_id: Optional[str],
    ) -> Optional[RepertoireRead]:
        """
        Create a repertoire item and link its tags.

        Returns:
            Created item, or None when not authenticated
        """
        if user_id is None:
            logger.warning("[RepertoireService] create_repertoire without user, skipping")
            return None

        logger.info(f"[RepertoireService] Creating repertoire: {data.title} for user: {user_id}")

        item = await self.repository.create(
            user_id,
            title=data.title.strip(),
            composer=data.composer,
            key=data.key,
            progress=data.progress,
            notes=data.notes,
        )
        if data.tags:
            await self.tags.sync_tags(user_id, TaggableEntity.REPERTOIRE, item.id, data.tags)

        return await self._to_read_dto(item)

    async def get_repertoire(self, repertoire_id: str, user_id: str) -> RepertoireRead:
        """
        Raises:
            RepertoireNotFoundError: If the item is not found
            PermissionError: If the item doesn't belong to user
        """
        item = await self.repository.get_by_id(repertoire_id, user_id=user_id)
        return await self._to_read_dto(item)

    async def list_repertoire(self, user_id: str, skip: int = 0, limit: int = 100) -> RepertoireList:
        """List repertoire with tag names attached."""
        items = await self.repository.get_all(user_id, skip=skip, limit=limit)
        total = await self.repository.count(user_id)
        return RepertoireList(repertoire=await self._to_read_dtos(items), total=total)

    async def update_repertoire(
            self,
            repertoire_id: str,
            data: RepertoireUpdate,
            user_id: Optional[str],
    ) -> Optional[RepertoireRead]:
        """
        Update a repertoire item. practice_count and last_practiced are not
        writable here; they only change through the stats recompute.
        """
        if user_id is None:
            return None

        item = await self.repository.get_by_id(repertoire_id, user_id=user_id)
        fields = data.model_dump(exclude_unset=True, exclude={"tags"})
        if fields:
            item = await self.repository.update(item, **fields)

        if data.tags is not None:
            await self.tags.sync_tags(user_id, TaggableEntity.REPERTOIRE, item.id, data.tags)

        return await self._to_read_dto(item)

    async def delete_repertoire(self, repertoire_id: str, user_id: Optional[str]) -> bool:
        """Delete a repertoire item and its tag links."""
        if user_id is None:
            return False

        await self.repository.get_by_id(repertoire_id, user_id=user_id)
        await self.tags.remove_entity(TaggableEntity.REPERTOIRE, repertoire_id)
        return await self.repository.delete(repertoire_id, user_id)

    async def add_tag(self, repertoire_id: str, name: str, user_id: Optional[str]) -> Optional[RepertoireRead]:
        """Find or create a tag by name and link it to a repertoire item."""
        if user_id is None:
            return None

        item = await self.repository.get_by_id(repertoire_id, user_id=user_id)
        tag = await self.tags.find_or_create_tag(user_id, name)
        await self.tags.link_tag(TaggableEntity.REPERTOIRE, item.id, tag.id)
        return await self._to_read_dto(item)

    async def remove_tag(self, repertoire_id: str, tag_id: str, user_id: Optional[str]) -> Optional[RepertoireRead]:
        """Unlink a tag from a repertoire item. A tag that was not linked is ignored."""
        if user_id is None:
            return None

        item = await self.repository.get_by_id(repertoire_id, user_id=user_id)
        tag = await self.tags.get_tag(user_id, tag_id)
        await self.tags.unlink_tag(TaggableEntity.REPERTOIRE, item.id, tag.id)
        return await self._to_read_dto(item)

    async def search_repertoire(self, user_id: Optional[str], term: str) -> List[RepertoireRead]:
        """Search title or composer; terms shorter than two characters return nothing."""
        term = (term or "").strip()
        if user_id is None or len(term) < MIN_SEARCH_LENGTH:
            return []
        items = await self.repository.search(user_id, term, limit=SEARCH_LIMIT)
        return await self._to_read_dtos(items)

    async def recompute_repertoire_stats(
            self,
            repertoire_id: str,
            user_id: Optional[str],
    ) -> Optional[RepertoireRead]:
        """
        Recompute one item's stats and return the refreshed item.

        Raises:
            StatsRecomputeError: If the recompute fails
        """
        if user_id is None:
            return None

        item = await self.repository.get_by_id(repertoire_id, user_id=user_id)
        await self.stats.recompute(repertoire_id)
        await self.repository.db.refresh(item)
        return await self._to_read_dto(item)

    async def recompute_all_repertoire_stats(self, user_id: Optional[str]) -> RecomputeSummary:
        """
        Maintenance: recompute stats for every item of the user.

        Failures do not stop the run; they are counted and reported.
        """
        if user_id is None:
            return RecomputeSummary(total=0, successful=0, failed=0)

        ids = await self.repository.get_all_ids(user_id)
        errors: List[str] = []
        successful = 0

        for repertoire_id in ids:
            try:
                await self.stats.recompute(repertoire_id)
                successful += 1
            except StatsRecomputeError as e:
                errors.append(f"{repertoire_id}: {e.message}")

        logger.info(
            f"[RepertoireService] Recomputed stats for user {user_id}: "
            f"{successful}/{len(ids)} successful"
        )
        return RecomputeSummary(
            total=len(ids),
            successful=successful,
            failed=len(errors),
            errors=errors,
        )

    async def _to_read_dto(self, item: Repertoire) -> RepertoireRead:
        dto = RepertoireRead.model_validate(item)
        dto.tags = await self.tags.get_entity_tag_names(TaggableEntity.REPERTOIRE, item.id)
        return dto

    async def _to_read_dtos(self, items) -> List[RepertoireRead]:
        names = await self.tags.repository.get_tag_names_for_entities(
            TaggableEntity.REPERTOIRE.value, [r.id for r in items]
        )
        dtos = []
        for item in items:
            dto = RepertoireRead.model_validate(item)
            dto.tags = names.get(item.id, [])
            dtos.append(dto)
        return dtos


def get_content_service(db: AsyncSession) -> ContentService:
    """Factory function for ContentService."""
    return ContentService(db)


def get_repertoire_service(db: AsyncSession) -> RepertoireService:
    """Factory function for RepertoireService."""
    return RepertoireService(db)
