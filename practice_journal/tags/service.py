"""
Tags service - tag registry for content and repertoire.

Tag names are normalized (trimmed, lower-cased) and unique per owner.
find_or_create_tag and link_tag are idempotent: losing an insert race or
re-linking an existing pair is absorbed instead of reported.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from practice_journal.core.exceptions import InvalidInputError, TagNotFoundError
from practice_journal.tags.models import Tag, TaggableEntity
from practice_journal.tags.repository import TagRepository

logger = logging.getLogger(__name__)

EntityKind = Union[TaggableEntity, str]

MIN_SEARCH_LENGTH = 1


def normalize_tag_name(name: Optional[str]) -> str:
    """Trim and lower-case a tag name."""
    return (name or "").strip().lower()


def _entity_type(kind: EntityKind) -> str:
    return TaggableEntity(kind).value


@dataclass
class TagSyncResult:
    """Tag ids linked and unlinked by a sync."""
    linked: List[str] = field(default_factory=list)
    unlinked: List[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.linked or self.unlinked)


class TagService:
    """Service for tag registry operations."""

    def __init__(self, db: AsyncSession):
        self.repository = TagRepository(db)

    async def find_or_create_tag(self, user_id: Optional[str], name: str) -> Optional[Tag]:
        """
        Return the owner's tag with this normalized name, creating it if needed.

        If the insert hits the unique index because a concurrent caller
        created the same tag first, the existing row is re-read and returned.

        Args:
            user_id: Owner user ID (None returns None)
            name: Free-text tag name

        Returns:
            The Tag, or None when not authenticated

        Raises:
            InvalidInputError: If the name is empty after normalization
        """
        if user_id is None:
            logger.warning("[TagService] find_or_create_tag without user, skipping")
            return None

        normalized = normalize_tag_name(name)
        if not normalized:
            raise InvalidInputError("Tag name must not be empty")

        existing = await self.repository.get_by_name(user_id, normalized)
        if existing is not None:
            return existing

        try:
            return await self.repository.create(user_id, normalized)
        except IntegrityError:
            logger.info(f"[TagService] Tag '{normalized}' created concurrently, re-reading")
            existing = await self.repository.get_by_name(user_id, normalized)
            if existing is None:
                raise
            return existing

    async def get_tag(self, user_id: str, tag_id: str) -> Tag:
        """
        Raises:
            TagNotFoundError: If the tag does not exist
            PermissionError: If the tag belongs to another user
        """
        tag = await self.repository.get_by_id(tag_id)
        if tag is None:
            raise TagNotFoundError(f"Tag not found: {tag_id}")
        if tag.user_id != user_id:
            raise PermissionError(f"Tag {tag_id} does not belong to user {user_id}")
        return tag

    async def link_tag(self, entity: EntityKind, entity_id: str, tag_id: str) -> bool:
        """
        Link a tag to an entity.

        Returns:
            True if a link was created, False if it already existed
        """
        try:
            await self.repository.create_link(_entity_type(entity), entity_id, tag_id)
            return True
        except IntegrityError:
            logger.debug(f"[TagService] Tag {tag_id} already linked to {entity_id}")
            return False

    async def unlink_tag(self, entity: EntityKind, entity_id: str, tag_id: str) -> bool:
        """
        Unlink a tag from an entity. A missing link is not an error.

        Returns:
            True if a link was removed
        """
        return await self.repository.delete_link(_entity_type(entity), entity_id, tag_id)

    async def sync_tags(
            self,
            user_id: Optional[str],
            entity: EntityKind,
            entity_id: str,
            desired_names: Iterable[str],
    ) -> TagSyncResult:
        """
        Make an entity's tag set equal to desired_names.

        Unlinks tags that are present but not desired and links tags that
        are desired but not present. Blank names are skipped and duplicates
        collapse after normalization, so the result only depends on the set
        of names; a second call with the same names changes nothing.
        """
        result = TagSyncResult()
        if user_id is None:
            logger.warning("[TagService] sync_tags without user, skipping")
            return result

        entity_type = _entity_type(entity)
        current = await self.repository.get_entity_tags(entity_type, entity_id)
        current_ids = {tag.id for tag in current}

        desired_ids = set()
        for name in sorted({normalize_tag_name(n) for n in desired_names} - {""}):
            tag = await self.find_or_create_tag(user_id, name)
            if tag is not None:
                desired_ids.add(tag.id)

        for tag_id in sorted(current_ids - desired_ids):
            if await self.unlink_tag(entity_type, entity_id, tag_id):
                result.unlinked.append(tag_id)

        for tag_id in sorted(desired_ids - current_ids):
            if await self.link_tag(entity_type, entity_id, tag_id):
                result.linked.append(tag_id)

        if result.changed:
            logger.info(
                f"[TagService] Synced tags for {entity_type} {entity_id}: "
                f"+{len(result.linked)} -{len(result.unlinked)}"
            )
        return result

    async def get_entity_tag_names(self, entity: EntityKind, entity_id: str) -> List[str]:
        """Get the tag names currently linked to an entity."""
        tags = await self.repository.get_entity_tags(_entity_type(entity), entity_id)
        return [tag.name for tag in tags]

    async def remove_entity(self, entity: EntityKind, entity_id: str) -> int:
        """Drop every tag link of a deleted entity."""
        return await self.repository.delete_links_for_entity(_entity_type(entity), entity_id)

    async def list_tags(self, user_id: Optional[str]) -> Sequence[Tag]:
        """List all of the owner's tags alphabetically."""
        if user_id is None:
            return []
        return await self.repository.get_all(user_id)

    async def search_tags(self, user_id: Optional[str], term: str) -> Sequence[Tag]:
        """Search the owner's tags by normalized substring (max 10)."""
        normalized = normalize_tag_name(term)
        if user_id is None or len(normalized) < MIN_SEARCH_LENGTH:
            return []
        return await self.repository.search(user_id, normalized)


def get_tag_service(db: AsyncSession) -> TagService:
    """Factory function for TagService."""
    return TagService(db)
