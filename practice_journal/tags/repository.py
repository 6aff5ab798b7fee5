"""
Tags repository - Data Access Layer for tags and entity/tag links.
All tag lookups filter by user_id.

Inserts run inside a SAVEPOINT so a unique-constraint violation only rolls
back that insert and leaves the surrounding transaction usable.
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence
from uuid import uuid4

from sqlalchemy import delete, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from practice_journal.tags.models import EntityTag, Tag

logger = logging.getLogger(__name__)


class TagRepository:
    """Repository for Tag and EntityTag operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_name(self, user_id: str, name: str) -> Optional[Tag]:
        """Get a tag by its normalized name for a user."""
        stmt = (
            select(Tag)
            .where(Tag.user_id == user_id)
            .where(Tag.name == name)
        )
        result = await self.db.execute(stmt)
        return result.scalars().first()

    async def get_by_id(self, tag_id: str) -> Optional[Tag]:
        result = await self.db.execute(select(Tag).where(Tag.id == tag_id))
        return result.scalar_one_or_none()

    async def create(self, user_id: str, name: str) -> Tag:
        """
        Insert a tag.

        Raises:
            IntegrityError: If (user_id, name) already exists
        """
        tag = Tag(id=str(uuid4()), name=name, user_id=user_id)

        async with self.db.begin_nested():
            self.db.add(tag)
            await self.db.flush()

        logger.info(f"[TagRepository] Created tag: {tag.id} - {tag.name} for user: {user_id}")
        return tag

    async def get_all(self, user_id: str) -> Sequence[Tag]:
        """Get all tags for a user, alphabetically."""
        stmt = select(Tag).where(Tag.user_id == user_id).order_by(Tag.name.asc())
        result = await self.db.execute(stmt)
        return result.scalars().all()

    async def search(self, user_id: str, term: str, limit: int = 10) -> Sequence[Tag]:
        """Get tags whose name contains term."""
        stmt = (
            select(Tag)
            .where(Tag.user_id == user_id)
            .where(Tag.name.ilike(f"%{term}%"))
            .order_by(Tag.name.asc())
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return result.scalars().all()

    async def get_entity_tags(self, entity_type: str, entity_id: str) -> Sequence[Tag]:
        """Get the tags currently linked to one entity."""
        stmt = (
            select(Tag)
            .join(EntityTag, EntityTag.tag_id == Tag.id)
            .where(EntityTag.entity_type == entity_type)
            .where(EntityTag.entity_id == entity_id)
            .order_by(Tag.name.asc())
        )
        result = await self.db.execute(stmt)
        return result.scalars().all()

    async def get_tag_names_for_entities(
            self,
            entity_type: str,
            entity_ids: Iterable[str],
    ) -> Dict[str, List[str]]:
        """
        Get tag names for many entities in one query.

        Returns:
            Dict mapping entity_id to its sorted tag names
        """
        ids = list(entity_ids)
        if not ids:
            return {}

        stmt = (
            select(EntityTag.entity_id, Tag.name)
            .join(Tag, Tag.id == EntityTag.tag_id)
            .where(EntityTag.entity_type == entity_type)
            .where(EntityTag.entity_id.in_(ids))
            .order_by(Tag.name.asc())
        )
        result = await self.db.execute(stmt)

        names: Dict[str, List[str]] = {}
        for entity_id, name in result.all():
            names.setdefault(entity_id, []).append(name)
        return names

    async def create_link(self, entity_type: str, entity_id: str, tag_id: str) -> None:
        """
        Insert an entity/tag link.

        Raises:
            IntegrityError: If the link already exists
        """
        async with self.db.begin_nested():
            await self.db.execute(
                insert(EntityTag).values(entity_type=entity_type, entity_id=entity_id, tag_id=tag_id)
            )

    async def delete_link(self, entity_type: str, entity_id: str, tag_id: str) -> bool:
        """
        Delete an entity/tag link.

        Returns:
            True if a row was removed
        """
        stmt = (
            delete(EntityTag)
            .where(EntityTag.entity_type == entity_type)
            .where(EntityTag.entity_id == entity_id)
            .where(EntityTag.tag_id == tag_id)
        )
        result = await self.db.execute(stmt)
        return result.rowcount > 0

    async def delete_links_for_entity(self, entity_type: str, entity_id: str) -> int:
        """Remove every tag link of an entity (used when the entity is deleted)."""
        stmt = (
            delete(EntityTag)
            .where(EntityTag.entity_type == entity_type)
            .where(EntityTag.entity_id == entity_id)
        )
        result = await self.db.execute(stmt)
        return result.rowcount
