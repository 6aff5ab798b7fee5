"""
SQLAlchemy models for logs module.
Defines the Log table and its content/repertoire link tables.
"""

from datetime import date as date_type, datetime, timezone

from sqlalchemy import Date, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from practice_journal.database import Base


class Log(Base):
    """
    Log model representing a dated practice entry for a goal.
    date is the calendar day practiced, independent of created_at.
    """

    __tablename__ = "logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    goal_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("goals.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    entry: Mapped[str] = mapped_column(Text, nullable=False)
    date: Mapped[date_type] = mapped_column(Date, nullable=False)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # Activity heatmap and date range queries
    __table_args__ = (
        Index("ix_logs_user_date", "user_id", "date"),
    )

    def __repr__(self) -> str:
        return f"<Log(id={self.id}, goal_id={self.goal_id}, date={self.date})>"


class LogContent(Base):
    """Link between a log and a content item."""

    __tablename__ = "log_content"

    log_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("logs.id", ondelete="CASCADE"),
        primary_key=True,
    )
    content_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("content.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )


class LogRepertoire(Base):
    """Link between a log and a repertoire item."""

    __tablename__ = "log_repertoire"

    log_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("logs.id", ondelete="CASCADE"),
        primary_key=True,
    )
    repertoire_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("repertoire.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
