"""
SQLAlchemy models for the library module.
Defines Content (videos, articles, ...) and Repertoire (pieces) tables.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import CheckConstraint, Date, DateTime, Enum as SQLEnum, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from practice_journal.database import Base


class ContentType(str, Enum):
    """Kind of reference material."""
    YOUTUBE = "youtube"
    ARTICLE = "article"
    VIDEO = "video"
    PDF = "pdf"
    IMAGE = "image"
    OTHER = "other"


# Ordinal learning stages for a piece, 1 (just started) to 6 (performance ready)
MIN_PROGRESS = 1
MAX_PROGRESS = 6


class Content(Base):
    """
    Content model representing a reusable resource.
    Linked N:M to goals (goal_content) and to logs (log_content).
    """

    __tablename__ = "content"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    title: Mapped[str] = mapped_column(String(300), nullable=False, index=True)
    url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    type: Mapped[ContentType] = mapped_column(
        SQLEnum(ContentType),
        default=ContentType.OTHER,
        nullable=False,
    )
    tempo: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Content(id={self.id}, title={self.title}, type={self.type})>"


class Repertoire(Base):
    """
    Repertoire model representing a piece being learned.

    practice_count and last_practiced are derived from log linkage and are
    only ever written by the stats recompute.
    """

    __tablename__ = "repertoire"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    title: Mapped[str] = mapped_column(String(300), nullable=False, index=True)
    composer: Mapped[Optional[str]] = mapped_column(String(200), nullable=True, index=True)
    key: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    progress: Mapped[int] = mapped_column(Integer, default=MIN_PROGRESS, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Derived stats
    practice_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_practiced: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint(
            f"progress BETWEEN {MIN_PROGRESS} AND {MAX_PROGRESS}",
            name="ck_repertoire_progress",
        ),
    )

    def __repr__(self) -> str:
        return f"<Repertoire(id={self.id}, title={self.title}, count={self.practice_count})>"
