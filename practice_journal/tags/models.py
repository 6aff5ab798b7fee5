"""
SQLAlchemy models for tags module.
Defines the Tag table and the polymorphic EntityTag join.
"""

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from practice_journal.database import Base


class TaggableEntity(str, Enum):
    """Entity kinds that can carry tags."""
    CONTENT = "content"
    REPERTOIRE = "repertoire"


class Tag(Base):
    """
    Tag model. Names are stored normalized (trimmed, lower-cased) and are
    unique per owner.
    """

    __tablename__ = "tags"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_tags_user_name"),
    )

    def __repr__(self) -> str:
        return f"<Tag(id={self.id}, name={self.name}, user_id={self.user_id})>"


class EntityTag(Base):
    """
    Polymorphic join between a tag and a content or repertoire item.
    entity_id is not a foreign key; the owning item removes its rows on delete.
    """

    __tablename__ = "entity_tags"

    entity_type: Mapped[str] = mapped_column(String(20), primary_key=True)
    entity_id: Mapped[str] = mapped_column(String(36), primary_key=True, index=True)
    tag_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("tags.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<EntityTag({self.entity_type}:{self.entity_id} -> {self.tag_id})>"
