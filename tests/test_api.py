"""HTTP tests through the FastAPI application."""

from datetime import timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from practice_journal import database
from practice_journal.auth.service import AuthService
from practice_journal.main import app

from tests.conftest import OTHER_OWNER, OWNER, TEST_DATABASE_URL, issue_token

API = "/api/v1"


def _auth(user_id: str) -> dict:
    return {"Authorization": f"Bearer {issue_token(user_id)}"}


@pytest_asyncio.fixture
async def client():
    database.init_db(TEST_DATABASE_URL)
    await database.create_tables()
    app.state.session_cache.clear()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    await database.dispose_engine()


@pytest.fixture
def owner():
    return _auth(OWNER)


@pytest.mark.asyncio
async def test_health_endpoints(client):
    assert (await client.get("/health")).json() == {"status": "healthy"}
    assert (await client.get(f"{API}/health")).json()["status"] == "healthy"
    assert (await client.get("/")).json()["status"] == "running"


@pytest.mark.asyncio
async def test_missing_or_invalid_token_is_rejected(client):
    assert (await client.get(f"{API}/topics")).status_code == 401
    bad = {"Authorization": "Bearer not-a-token"}
    assert (await client.get(f"{API}/topics", headers=bad)).status_code == 401


def test_token_subject_becomes_owner_id():
    auth = AuthService()

    assert auth.get_user_id(issue_token(OWNER)) == OWNER
    assert auth.get_user_id(issue_token(OWNER, expires_in=timedelta(minutes=-5))) is None
    assert auth.get_user_id(issue_token(OWNER, token_type="refresh")) is None
    assert auth.get_user_id(None) is None


@pytest.mark.asyncio
async def test_topic_goal_log_flow(client, owner):
    piece = await client.post(f"{API}/repertoire", json={"title": "Clair de Lune", "composer": "Debussy"}, headers=owner)
    assert piece.status_code == 201
    piece_id = piece.json()["id"]

    topic = await client.post(f"{API}/topics", json={"title": "Repertoire"}, headers=owner)
    assert topic.status_code == 201
    assert topic.json()["topic_number"] == 1

    goal = await client.post(
        f"{API}/topics/{topic.json()['id']}/goals",
        json={"description": "Memorize", "repertoire_id": piece_id},
        headers=owner,
    )
    assert goal.status_code == 201
    assert goal.json()["goal_number"] == "1.1"
    goal_id = goal.json()["id"]

    log = await client.post(
        f"{API}/logs",
        json={"goal_id": goal_id, "entry": "Bars 1-16", "date": "2025-03-14"},
        headers=owner,
    )
    assert log.status_code == 201
    body = log.json()
    assert body["success"] is True
    assert body["stats_updated"] is True
    assert body["recomputed_repertoire_ids"] == [piece_id]
    assert body["log"]["date"] == "2025-03-14"

    refreshed = await client.get(f"{API}/repertoire/{piece_id}", headers=owner)
    assert refreshed.json()["practice_count"] == 1
    assert refreshed.json()["last_practiced"] == "2025-03-14"

    listed = await client.get(f"{API}/logs", params={"start": "2025-03-01", "end": "2025-03-31"}, headers=owner)
    assert listed.json()["total"] == 1
    assert listed.json()["logs"][0]["goal"]["goal_number"] == "1.1"

    tree = await client.get(f"{API}/topics", headers=owner)
    assert tree.json()["total"] == 1
    assert tree.json()["topics"][0]["goals"][0]["logs"][0]["entry"] == "Bars 1-16"

    deleted = await client.delete(f"{API}/logs/{body['log']['id']}", headers=owner)
    assert deleted.json()["success"] is True
    assert deleted.json()["recomputed_repertoire_ids"] == [piece_id]
    refreshed = await client.get(f"{API}/repertoire/{piece_id}", headers=owner)
    assert refreshed.json()["practice_count"] == 0


@pytest.mark.asyncio
async def test_domain_errors_use_error_body(client, owner):
    missing = await client.get(f"{API}/topics/missing", headers=owner)
    assert missing.status_code == 404
    assert missing.json() == {"error": "Topic not found: missing", "code": "TOPIC_NOT_FOUND"}

    topic = await client.post(f"{API}/topics", json={"title": "Technique"}, headers=owner)
    goal = await client.post(f"{API}/topics/{topic.json()['id']}/goals", json={"description": "Scales"}, headers=owner)
    bad_range = await client.get(
        f"{API}/logs", params={"start": "2025-02-01", "end": "2025-01-01"}, headers=owner
    )
    assert bad_range.status_code == 422
    assert bad_range.json()["code"] == "INVALID_INPUT"

    blank = await client.post(f"{API}/logs", json={"goal_id": goal.json()["id"], "entry": "  "}, headers=owner)
    assert blank.status_code == 422


@pytest.mark.asyncio
async def test_rows_of_another_owner_are_forbidden(client, owner):
    topic = await client.post(f"{API}/topics", json={"title": "Private"}, headers=_auth(OTHER_OWNER))

    response = await client.get(f"{API}/topics/{topic.json()['id']}", headers=owner)

    assert response.status_code == 403
    assert response.json() == {"error": "Access denied", "code": "ACCESS_DENIED"}


@pytest.mark.asyncio
async def test_session_endpoints(client, owner):
    topic = await client.post(f"{API}/topics", json={"title": "Technique"}, headers=owner)
    topic_id = topic.json()["id"]
    first = await client.post(f"{API}/topics/{topic_id}/goals", json={"description": "Scales"}, headers=owner)
    second = await client.post(f"{API}/topics/{topic_id}/goals", json={"description": "Arpeggios"}, headers=owner)

    for goal in (second, first, second):
        added = await client.post(
            f"{API}/sessions/2025-03-14/goals", json={"goal_id": goal.json()["id"]}, headers=owner
        )
        assert added.json()["success"] is True

    session = await client.get(f"{API}/sessions/2025-03-14/goals", headers=owner)
    assert session.json()["goal_ids"] == [second.json()["id"], first.json()["id"]]

    view = await client.get(f"{API}/sessions/2025-03-14", headers=owner)
    assert [g["goal_number"] for g in view.json()["goals"]] == ["1.2", "1.1"]

    removed = await client.delete(f"{API}/sessions/2025-03-14/goals/{second.json()['id']}", headers=owner)
    assert removed.json()["success"] is True

    cleared = await client.delete(f"{API}/sessions/2025-03-14/goals", headers=owner)
    assert cleared.json()["removed"] == 1

    malformed = await client.get(f"{API}/sessions/14-03-2025", headers=owner)
    assert malformed.status_code == 422


@pytest.mark.asyncio
async def test_stats_endpoints(client, owner):
    topic = await client.post(f"{API}/topics", json={"title": "Technique"}, headers=owner)
    goal = await client.post(f"{API}/topics/{topic.json()['id']}/goals", json={"description": "Scales"}, headers=owner)
    for day in ("2024-02-29", "2024-02-29", "2024-12-31"):
        await client.post(f"{API}/logs", json={"goal_id": goal.json()["id"], "entry": "Practice", "date": day}, headers=owner)

    activity = await client.get(f"{API}/stats/activity", params={"year": 2024}, headers=owner)
    assert activity.json()["activity"] == [
        {"date": "2024-02-29", "count": 2},
        {"date": "2024-12-31", "count": 1},
    ]

    calendar = await client.get(f"{API}/stats/calendar", params={"year": 2024}, headers=owner)
    body = calendar.json()
    assert body["year"] == 2024
    assert body["total"] == 3
    assert len(body["days"]) == 366
    assert body["first_day_offset"] == 1
    assert body["weeks"][0][0] is None
    assert body["months"][0] == {"month": "Jan", "week_index": 0}
