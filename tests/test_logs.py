"""Tests for practice logs and the repertoire stats fan-out."""

from datetime import date

import pytest
from sqlalchemy import func, select

from practice_journal.core.exceptions import InvalidInputError, LogNotFoundError
from practice_journal.logs.models import Log, LogRepertoire
from practice_journal.logs.service import LogService
from practice_journal.topics.service import GoalService, TopicService

from tests.conftest import OTHER_OWNER, OWNER, RecordingStatsGateway


@pytest.fixture
def services(db, stats):
    return (
        TopicService(db, stats_gateway=stats),
        GoalService(db, stats_gateway=stats),
        LogService(db, stats_gateway=stats),
    )


async def _goal(services, repertoire_id=None, owner=OWNER):
    topics, goals, _ = services
    topic = await topics.create_topic(owner, "Technique")
    return await goals.create_goal(owner, topic.id, "Scales", repertoire_id=repertoire_id)


@pytest.mark.asyncio
async def test_create_log_links_and_recomputes_every_affected_item(db, stats, services, make_repertoire, make_content):
    r1 = await make_repertoire("Goal piece")
    r2 = await make_repertoire("Linked piece")
    content = await make_content()
    goal = await _goal(services, repertoire_id=r1.id)
    _, _, logs = services

    outcome = await logs.create_log(
        OWNER,
        goal.id,
        "  Slow practice ",
        log_date="2025-03-01",
        content_ids=[content.id],
        repertoire_ids=[r2.id, r2.id],
    )

    assert outcome.fully_succeeded
    assert outcome.primary.entry == "Slow practice"
    assert outcome.primary.date == date(2025, 3, 1)
    assert outcome.stats_updated is True
    assert outcome.recomputed_repertoire_ids == sorted([r1.id, r2.id])
    assert sorted(stats.calls) == sorted([r1.id, r2.id])
    assert [c.id for c in await logs.get_log_content(OWNER, outcome.primary.id)] == [content.id]
    assert [r.id for r in await logs.get_log_repertoire(OWNER, outcome.primary.id)] == [r2.id]

    for item in (r1, r2):
        await db.refresh(item)
        assert item.practice_count == 1
        assert item.last_practiced == date(2025, 3, 1)


@pytest.mark.asyncio
async def test_log_linked_both_ways_counts_once(db, services, make_repertoire):
    r1 = await make_repertoire()
    goal = await _goal(services, repertoire_id=r1.id)
    _, _, logs = services

    await logs.create_log(OWNER, goal.id, "Run through", log_date=date(2025, 1, 1), repertoire_ids=[r1.id])
    await logs.create_log(OWNER, goal.id, "Hands apart", log_date=date(2025, 1, 3))

    await db.refresh(r1)
    assert r1.practice_count == 2
    assert r1.last_practiced == date(2025, 1, 3)


@pytest.mark.asyncio
async def test_delete_log_recomputes_goal_and_linked_repertoire_only(db, stats, services, make_repertoire):
    r1 = await make_repertoire("R1")
    r2 = await make_repertoire("R2")
    r3 = await make_repertoire("R3")
    goal = await _goal(services, repertoire_id=r1.id)
    _, _, logs = services
    created = await logs.create_log(OWNER, goal.id, "Practice", repertoire_ids=[r2.id])
    stats.reset()

    outcome = await logs.delete_log(OWNER, created.primary.id)

    assert outcome.primary is True
    assert sorted(stats.calls) == sorted([r1.id, r2.id])
    assert r3.id not in stats.calls
    assert (await db.execute(select(func.count(LogRepertoire.log_id)))).scalar_one() == 0
    await db.refresh(r2)
    assert r2.practice_count == 0


@pytest.mark.asyncio
async def test_secondary_failures_keep_the_log(db, services, make_repertoire, make_content):
    r1 = await make_repertoire("Goal piece")
    r2 = await make_repertoire("Linked piece")
    foreign = await make_content("Not mine", user_id=OTHER_OWNER)
    goal = await _goal(services, repertoire_id=r1.id)
    failing = RecordingStatsGateway(db, fail_ids=[r2.id])
    logs = LogService(db, stats_gateway=failing)

    outcome = await logs.create_log(
        OWNER,
        goal.id,
        "Practice",
        content_ids=[foreign.id],
        repertoire_ids=[r2.id, "missing-piece"],
    )

    assert outcome.succeeded
    assert not outcome.fully_succeeded
    assert outcome.recomputed_repertoire_ids == [r1.id]
    assert outcome.stats_updated is True
    assert len(outcome.secondary_failures) == 3
    assert any(foreign.id in f for f in outcome.secondary_failures)
    assert any("missing-piece" in f for f in outcome.secondary_failures)
    assert any(r2.id in f for f in outcome.secondary_failures)
    assert sorted(failing.calls) == sorted([r1.id, r2.id])

    # The log and its valid link survived
    assert (await db.execute(select(func.count(Log.id)))).scalar_one() == 1
    assert [r.id for r in await logs.get_log_repertoire(OWNER, outcome.primary.id)] == [r2.id]


@pytest.mark.asyncio
async def test_create_log_validation(db, services):
    goal = await _goal(services)
    _, _, logs = services

    assert await logs.create_log(None, goal.id, "Practice") is None
    with pytest.raises(InvalidInputError):
        await logs.create_log(OWNER, goal.id, "   ")
    with pytest.raises(InvalidInputError):
        await logs.create_log(OWNER, goal.id, "Practice", log_date="2025-02-30")
    with pytest.raises(PermissionError):
        await logs.create_log(OTHER_OWNER, goal.id, "Practice")
    assert (await db.execute(select(func.count(Log.id)))).scalar_one() == 0


@pytest.mark.asyncio
async def test_update_log_text_does_not_recompute(db, stats, services, make_repertoire):
    r1 = await make_repertoire()
    goal = await _goal(services, repertoire_id=r1.id)
    _, _, logs = services
    created = await logs.create_log(OWNER, goal.id, "Practice", log_date=date(2025, 4, 1))
    stats.reset()

    outcome = await logs.update_log(OWNER, created.primary.id, entry="Better practice")

    assert outcome.primary.entry == "Better practice"
    assert stats.calls == []
    assert outcome.stats_updated is False


@pytest.mark.asyncio
async def test_moving_log_to_another_day_recomputes(db, stats, services, make_repertoire):
    r1 = await make_repertoire("Goal piece")
    r2 = await make_repertoire("Linked piece")
    goal = await _goal(services, repertoire_id=r1.id)
    _, _, logs = services
    created = await logs.create_log(OWNER, goal.id, "Practice", log_date=date(2025, 4, 1), repertoire_ids=[r2.id])
    stats.reset()

    outcome = await logs.update_log(OWNER, created.primary.id, log_date="2025-04-10")

    assert outcome.primary.date == date(2025, 4, 10)
    assert sorted(stats.calls) == sorted([r1.id, r2.id])
    await db.refresh(r2)
    assert r2.last_practiced == date(2025, 4, 10)

    # Same date again is not a move
    stats.reset()
    await logs.update_log(OWNER, created.primary.id, log_date=date(2025, 4, 10))
    assert stats.calls == []


@pytest.mark.asyncio
async def test_link_and_unlink_repertoire(db, stats, services, make_repertoire):
    r1 = await make_repertoire()
    goal = await _goal(services)
    _, _, logs = services
    created = await logs.create_log(OWNER, goal.id, "Practice", log_date=date(2025, 5, 5))
    stats.reset()

    linked = await logs.link_repertoire_to_log(OWNER, created.primary.id, r1.id)
    assert linked.primary is True
    assert stats.calls == [r1.id]
    await db.refresh(r1)
    assert r1.practice_count == 1

    again = await logs.link_repertoire_to_log(OWNER, created.primary.id, r1.id)
    assert again.primary is False
    assert stats.calls == [r1.id]

    unlinked = await logs.unlink_repertoire_from_log(OWNER, created.primary.id, r1.id)
    assert unlinked.primary is True
    assert stats.calls == [r1.id, r1.id]
    await db.refresh(r1)
    assert r1.practice_count == 0

    missing = await logs.unlink_repertoire_from_log(OWNER, created.primary.id, r1.id)
    assert missing.primary is False
    assert stats.calls == [r1.id, r1.id]


@pytest.mark.asyncio
async def test_link_and_unlink_content(db, services, make_content):
    content = await make_content()
    goal = await _goal(services)
    _, _, logs = services
    created = await logs.create_log(OWNER, goal.id, "Practice")

    assert await logs.link_content_to_log(OWNER, created.primary.id, content.id) is True
    assert await logs.link_content_to_log(OWNER, created.primary.id, content.id) is True
    assert len(await logs.get_log_content(OWNER, created.primary.id)) == 1

    assert await logs.unlink_content_from_log(OWNER, created.primary.id, content.id) is True
    assert await logs.get_log_content(OWNER, created.primary.id) == []


@pytest.mark.asyncio
async def test_list_logs_by_date_range(db, services):
    goal = await _goal(services)
    _, _, logs = services
    for day in (date(2025, 1, 1), date(2025, 1, 15), date(2025, 2, 1)):
        await logs.create_log(OWNER, goal.id, f"Practice {day}", log_date=day)

    result = await logs.list_logs_by_date_range(OWNER, "2025-01-01", "2025-01-31")

    assert [log.date for log in result] == [date(2025, 1, 15), date(2025, 1, 1)]
    assert result[0].goal.goal_number == "1.1"
    assert result[0].topic.title == "Technique"
    assert await logs.list_logs_by_date_range(OTHER_OWNER, "2025-01-01", "2025-12-31") == []

    with pytest.raises(InvalidInputError):
        await logs.list_logs_by_date_range(OWNER, "2025-02-01", "2025-01-01")


@pytest.mark.asyncio
async def test_delete_goal_recomputes_direct_and_log_links(db, stats, services, make_repertoire):
    r1 = await make_repertoire("Direct")
    r2 = await make_repertoire("Via log")
    goal = await _goal(services, repertoire_id=r1.id)
    _, goals, logs = services
    await logs.create_log(OWNER, goal.id, "Practice", repertoire_ids=[r2.id])
    stats.reset()

    outcome = await goals.delete_goal(OWNER, goal.id)

    assert outcome.primary is True
    assert outcome.stats_updated is True
    assert sorted(stats.calls) == sorted([r1.id, r2.id])


@pytest.mark.asyncio
async def test_delete_unknown_log(db, services):
    _, _, logs = services

    with pytest.raises(LogNotFoundError):
        await logs.delete_log(OWNER, "missing")
    assert await logs.delete_log(None, "missing") is None


@pytest.mark.asyncio
async def test_delete_goal_without_repertoire_reports_no_stats_update(db, stats, services):
    goal = await _goal(services)
    _, goals, _ = services

    outcome = await goals.delete_goal(OWNER, goal.id)

    assert outcome.primary is True
    assert outcome.stats_updated is False
    assert stats.calls == []
