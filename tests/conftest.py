"""
Shared Test Fixtures

Every test gets a fresh in-memory SQLite database; file_db provides an
on-disk one for tests that need independent connections. Services are exercised
through a real AsyncSession; the stats gateway is wrapped so tests can see
which repertoire ids were recomputed.
"""

from datetime import datetime, timedelta, timezone
from typing import Iterable, List

import pytest
import pytest_asyncio
from jose import jwt

from practice_journal import database
from practice_journal.config import get_settings
from practice_journal.core.exceptions import StatsRecomputeError
from practice_journal.library.models import Content, Repertoire
from practice_journal.library.stats import RepertoireStatsGateway

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

OWNER = "user-owner"
OTHER_OWNER = "user-other"


def issue_token(user_id: str, token_type: str = "access", expires_in: timedelta = timedelta(hours=1)) -> str:
    """Sign a token the way the identity provider does, with the shared secret."""
    settings = get_settings()
    payload = {
        "sub": user_id,
        "exp": datetime.now(timezone.utc) + expires_in,
        "type": token_type,
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


class RecordingStatsGateway(RepertoireStatsGateway):
    """Stats gateway that records every recompute and can be told to fail."""

    def __init__(self, db, fail_ids: Iterable[str] = ()):
        super().__init__(db)
        self.calls: List[str] = []
        self.fail_ids = set(fail_ids)

    async def recompute(self, repertoire_id: str) -> None:
        self.calls.append(repertoire_id)
        if repertoire_id in self.fail_ids:
            raise StatsRecomputeError(f"procedure unavailable for {repertoire_id}")
        await super().recompute(repertoire_id)

    def reset(self) -> None:
        self.calls.clear()


@pytest_asyncio.fixture
async def db():
    """A session on a fresh in-memory database with all tables created."""
    database.init_db(TEST_DATABASE_URL)
    await database.create_tables()

    async with database.AsyncSessionLocal() as session:
        yield session
        await session.rollback()

    await database.dispose_engine()


@pytest.fixture
def stats(db) -> RecordingStatsGateway:
    return RecordingStatsGateway(db)


@pytest.fixture
def make_repertoire(db):
    """Insert a repertoire item directly."""

    async def _make(title: str = "Clair de Lune", user_id: str = OWNER, **fields) -> Repertoire:
        item = Repertoire(id=f"rep-{title.lower().replace(' ', '-')}", title=title, user_id=user_id, **fields)
        db.add(item)
        await db.flush()
        return item

    return _make


@pytest.fixture
def make_content(db):
    """Insert a content item directly."""

    async def _make(title: str = "Scale video", user_id: str = OWNER, **fields) -> Content:
        item = Content(id=f"content-{title.lower().replace(' ', '-')}", title=title, user_id=user_id, **fields)
        db.add(item)
        await db.flush()
        return item

    return _make


@pytest_asyncio.fixture
async def file_db(tmp_path):
    """
    A fresh on-disk database. Unlike the in-memory one, every session opened
    from database.AsyncSessionLocal gets its own connection and transaction.
    """
    database.init_db(f"sqlite+aiosqlite:///{tmp_path}/journal.db")
    await database.create_tables()
    yield database.AsyncSessionLocal
    await database.dispose_engine()
