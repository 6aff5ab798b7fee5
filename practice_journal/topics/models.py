"""
SQLAlchemy models for topics module.
Defines the Topic and Goal tables and the goal/content link.

Relationships are not mapped; children are read with explicit queries in
the repositories to stay clear of async lazy loading.
"""

from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from practice_journal.database import Base
from practice_journal.topics.numbering import parse_sub_number


class Topic(Base):
    """
    Topic model representing a practice area.
    topic_number is assigned sequentially per owner and never changes.
    """

    __tablename__ = "topics"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    topic_number: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("user_id", "topic_number", name="uq_topics_user_number"),
    )

    def __repr__(self) -> str:
        return f"<Topic(id={self.id}, number={self.topic_number}, title={self.title})>"


class Goal(Base):
    """
    Goal model representing an objective under a topic.
    goal_number is "{topic_number}.{sub}" with sub unique within the topic.
    """

    __tablename__ = "goals"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    topic_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("topics.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    goal_number: Mapped[str] = mapped_column(String(20), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    is_complete: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    date_completed: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # Legacy 1:1 link to a piece
    repertoire_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("repertoire.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("topic_id", "goal_number", name="uq_goals_topic_number"),
    )

    @property
    def sub_number(self) -> int:
        """Sub-number part of goal_number (0 if unparseable)."""
        return parse_sub_number(self.goal_number) or 0

    def __repr__(self) -> str:
        return f"<Goal(id={self.id}, number={self.goal_number}, topic_id={self.topic_id})>"


class GoalContent(Base):
    """Link between a goal and a content item."""

    __tablename__ = "goal_content"

    goal_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("goals.id", ondelete="CASCADE"),
        primary_key=True,
    )
    content_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("content.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
