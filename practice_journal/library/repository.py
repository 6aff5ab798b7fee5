"""
Library repository - Data Access Layer for content and repertoire.
All operations filter by user_id for security.
"""

import logging
from typing import Any, Iterable, Optional, Sequence
from uuid import uuid4

from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from practice_journal.core.exceptions import ContentNotFoundError, RepertoireNotFoundError
from practice_journal.library.models import Content, Repertoire

logger = logging.getLogger(__name__)


class ContentRepository:
    """Repository for Content CRUD operations with user filtering."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, user_id: str, **fields: Any) -> Content:
        """
        Create a content item for a user.

        Args:
            user_id: Owner user ID
            **fields: Column values (title, url, type, tempo)

        Returns:
            Created Content entity
        """
        content = Content(id=str(uuid4()), user_id=user_id, **fields)

        self.db.add(content)
        await self.db.flush()
        await self.db.refresh(content)

        logger.info(f"[ContentRepository] Created content: {content.id} - {content.title} for user: {user_id}")
        return content

    async def get_by_id(
            self,
            content_id: str,
            user_id: Optional[str] = None,
            verify_ownership: bool = True,
    ) -> Content:
        """
        Get a content item by its ID.

        Raises:
            ContentNotFoundError: If content not found
            PermissionError: If content doesn't belong to user
        """
        result = await self.db.execute(select(Content).where(Content.id == content_id))
        content = result.scalar_one_or_none()

        if content is None:
            raise ContentNotFoundError(f"Content not found: {content_id}")

        if verify_ownership and user_id is not None and content.user_id != user_id:
            raise PermissionError(f"Content {content_id} does not belong to user {user_id}")

        return content

    async def get_many(self, content_ids: Iterable[str], user_id: str) -> Sequence[Content]:
        """Get the user's content items among content_ids, by title."""
        ids = list(content_ids)
        if not ids:
            return []
        stmt = (
            select(Content)
            .where(Content.id.in_(ids))
            .where(Content.user_id == user_id)
            .order_by(Content.title.asc())
        )
        result = await self.db.execute(stmt)
        return result.scalars().all()

    async def get_all(self, user_id: str, skip: int = 0, limit: int = 100) -> Sequence[Content]:
        """Get all content for a user, newest first."""
        stmt = (
            select(Content)
            .where(Content.user_id == user_id)
            .order_by(Content.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return result.scalars().all()

    async def count(self, user_id: str) -> int:
        """Count content items for a user."""
        stmt = select(func.count(Content.id)).where(Content.user_id == user_id)
        result = await self.db.execute(stmt)
        return result.scalar() or 0

    async def search(self, user_id: str, term: str, limit: int = 10) -> Sequence[Content]:
        """Case-insensitive title search."""
        stmt = (
            select(Content)
            .where(Content.user_id == user_id)
            .where(Content.title.ilike(f"%{term}%"))
            .order_by(Content.title.asc())
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return result.scalars().all()

    async def update(self, content: Content, **fields: Any) -> Content:
        """Apply the given column values to a content item."""
        for name, value in fields.items():
            setattr(content, name, value)

        await self.db.flush()
        await self.db.refresh(content)

        logger.info(f"[ContentRepository] Updated content: {content.id}")
        return content

    async def delete(self, content_id: str, user_id: str) -> bool:
        """
        Delete a content item; its goal and log links cascade.

        Returns:
            True if deleted, False if not found or not owned
        """
        stmt = (
            delete(Content)
            .where(Content.id == content_id)
            .where(Content.user_id == user_id)
        )
        result = await self.db.execute(stmt)
        deleted = result.rowcount > 0

        if deleted:
            logger.info(f"[ContentRepository] Deleted content: {content_id}")
        return deleted


class RepertoireRepository:
    """Repository for Repertoire CRUD operations with user filtering."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, user_id: str, **fields: Any) -> Repertoire:
        """
        Create a repertoire item for a user. Stats start at zero.
        """
        item = Repertoire(
            id=str(uuid4()),
            user_id=user_id,
            practice_count=0,
            last_practiced=None,
            **fields,
        )

        self.db.add(item)
        await self.db.flush()
        await self.db.refresh(item)

        logger.info(f"[RepertoireRepository] Created repertoire: {item.id} - {item.title} for user: {user_id}")
        return item

    async def get_by_id(
            self,
            repertoire_id: str,
            user_id: Optional[str] = None,
            verify_ownership: bool = True,
    ) -> Repertoire:
        """
        Get a repertoire item by its ID.

        Raises:
            RepertoireNotFoundError: If the item is not found
            PermissionError: If the item doesn't belong to user
        """
        result = await self.db.execute(select(Repertoire).where(Repertoire.id == repertoire_id))
        item = result.scalar_one_or_none()

        if item is None:
            raise RepertoireNotFoundError(f"Repertoire not found: {repertoire_id}")

        if verify_ownership and user_id is not None and item.user_id != user_id:
            raise PermissionError(f"Repertoire {repertoire_id} does not belong to user {user_id}")

        return item

    async def get_many(self, repertoire_ids: Iterable[str], user_id: str) -> Sequence[Repertoire]:
        """Get the user's repertoire items among repertoire_ids, by title."""
        ids = list(repertoire_ids)
        if not ids:
            return []
        stmt = (
            select(Repertoire)
            .where(Repertoire.id.in_(ids))
            .where(Repertoire.user_id == user_id)
            .order_by(Repertoire.title.asc())
        )
        result = await self.db.execute(stmt)
        return result.scalars().all()

    async def get_all(self, user_id: str, skip: int = 0, limit: int = 100) -> Sequence[Repertoire]:
        """Get all repertoire for a user, alphabetically."""
        stmt = (
            select(Repertoire)
            .where(Repertoire.user_id == user_id)
            .order_by(Repertoire.title.asc())
            .offset(skip)
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return result.scalars().all()

    async def get_all_ids(self, user_id: str) -> Sequence[str]:
        """Get every repertoire id for a user."""
        stmt = select(Repertoire.id).where(Repertoire.user_id == user_id).order_by(Repertoire.id)
        result = await self.db.execute(stmt)
        return result.scalars().all()

    async def count(self, user_id: str) -> int:
        """Count repertoire items for a user."""
        stmt = select(func.count(Repertoire.id)).where(Repertoire.user_id == user_id)
        result = await self.db.execute(stmt)
        return result.scalar() or 0

    async def search(self, user_id: str, term: str, limit: int = 10) -> Sequence[Repertoire]:
        """Case-insensitive search over title or composer."""
        pattern = f"%{term}%"
        stmt = (
            select(Repertoire)
            .where(Repertoire.user_id == user_id)
            .where(or_(Repertoire.title.ilike(pattern), Repertoire.composer.ilike(pattern)))
            .order_by(Repertoire.title.asc())
            .limit(limit)
        )
        result = await self.db.execute(stmt)
        return result.scalars().all()

    async def update(self, item: Repertoire, **fields: Any) -> Repertoire:
        """Apply the given column values to a repertoire item."""
        for name, value in fields.items():
            setattr(item, name, value)

        await self.db.flush()
        await self.db.refresh(item)

        logger.info(f"[RepertoireRepository] Updated repertoire: {item.id}")
        return item

    async def delete(self, repertoire_id: str, user_id: str) -> bool:
        """
        Delete a repertoire item. Log links cascade, goals keep the goal
        with repertoire_id set to NULL.
        """
        stmt = (
            delete(Repertoire)
            .where(Repertoire.id == repertoire_id)
            .where(Repertoire.user_id == user_id)
        )
        result = await self.db.execute(stmt)
        deleted = result.rowcount > 0

        if deleted:
            logger.info(f"[RepertoireRepository] Deleted repertoire: {repertoire_id}")
        return deleted
