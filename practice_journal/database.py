"""
Async database setup with SQLAlchemy 2.0.
Provides the declarative Base, the engine/session factory and the
FastAPI session dependency.
"""

import logging
import os
from typing import AsyncGenerator, Optional

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from practice_journal.config import get_settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""

    pass


engine: Optional[AsyncEngine] = None
AsyncSessionLocal: Optional[async_sessionmaker[AsyncSession]] = None


def _enable_sqlite_features(async_engine: AsyncEngine, begin_statement: str = "BEGIN") -> None:
    """
    Turn on foreign keys and let SQLAlchemy drive BEGIN/SAVEPOINT itself.

    The sqlite driver manages transactions on its own by default, which
    breaks begin_nested(); the tag, link and session inserts rely on
    savepoints to absorb unique-constraint conflicts.

    File databases pass "BEGIN IMMEDIATE" so that every transaction takes
    the write lock up front. A second writer then waits on the busy
    timeout and reads the first writer's committed rows, instead of
    failing to upgrade a read lock halfway through.
    """

    @event.listens_for(async_engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(async_engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql(begin_statement)


def init_db(database_url: Optional[str] = None) -> AsyncEngine:
    """
    Create the engine and session factory.

    Args:
        database_url: Override for settings.database_url (used by tests)

    Returns:
        The configured async engine
    """
    global engine, AsyncSessionLocal

    settings = get_settings()
    url = database_url or settings.database_url

    if url.startswith("sqlite:///"):
        url = url.replace("sqlite:///", "sqlite+aiosqlite:///")

    if url.startswith("sqlite"):
        db_path = url.split(":///", 1)[-1]
        in_memory = db_path == ":memory:"
        db_dir = os.path.dirname(db_path)
        if not in_memory and db_dir and not os.path.exists(db_dir):
            os.makedirs(db_dir, exist_ok=True)

        if in_memory:
            # One shared connection, otherwise each session sees an empty database
            engine = create_async_engine(
                url,
                echo=settings.sql_echo,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
            _enable_sqlite_features(engine)
        else:
            # Pooled: each session gets its own connection and transaction
            engine = create_async_engine(
                url,
                echo=settings.sql_echo,
                connect_args={
                    "check_same_thread": False,
                    "timeout": settings.sqlite_busy_timeout,
                },
            )
            _enable_sqlite_features(engine, begin_statement="BEGIN IMMEDIATE")
        logger.info(f"[Database] sqlite engine ready (in_memory={in_memory})")
    else:
        engine = create_async_engine(
            url,
            echo=settings.sql_echo,
            pool_pre_ping=True,
        )

    AsyncSessionLocal = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    return engine


async def create_tables() -> None:
    """Create all tables registered on Base.metadata."""
    if engine is None:
        init_db()

    # Import models so they register with Base.metadata
    from practice_journal.tags import models as tag_models  # noqa: F401
    from practice_journal.library import models as library_models  # noqa: F401
    from practice_journal.topics import models as topic_models  # noqa: F401
    from practice_journal.logs import models as log_models  # noqa: F401
    from practice_journal.sessions import models as session_models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    """Close all pooled connections."""
    if engine is not None:
        await engine.dispose()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency yielding a session.

    Commits when the request handler finishes cleanly, rolls back otherwise.
    """
    if AsyncSessionLocal is None:
        init_db()

    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
