"""
SQLAlchemy models for sessions module.
A practice session is the set of goals planned for one calendar day.
"""

from datetime import date, datetime, timezone

from sqlalchemy import Date, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from practice_journal.database import Base


class PracticeSession(Base):
    """At most one row per (user_id, session_date)."""

    __tablename__ = "sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    session_date: Mapped[date] = mapped_column(Date, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("user_id", "session_date", name="uq_sessions_user_date"),
    )

    def __repr__(self) -> str:
        return f"<PracticeSession(id={self.id}, user_id={self.user_id}, date={self.session_date})>"


class SessionGoal(Base):
    """A goal planned in a session; a goal appears at most once per session."""

    __tablename__ = "session_goals"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    session_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    goal_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("goals.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    added_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("session_id", "goal_id", name="uq_session_goals_session_goal"),
    )
