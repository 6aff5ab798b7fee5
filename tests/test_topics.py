"""Tests for topics, goals and their numbering."""

from datetime import date

import pytest
from sqlalchemy import func, select

from practice_journal.core.dates import today_in_app_timezone
from practice_journal.core.exceptions import (
    ContentNotFoundError,
    InvalidInputError,
    NumberingConflictError,
    TopicNotFoundError,
)
from practice_journal.logs.models import Log
from practice_journal.logs.service import LogService
from practice_journal.topics.models import Goal
from practice_journal.topics.service import GoalService, TopicService

from tests.conftest import OTHER_OWNER, OWNER


@pytest.mark.asyncio
async def test_topics_are_numbered_sequentially_per_owner(db):
    service = TopicService(db)

    first = await service.create_topic(OWNER, "Scales")
    second = await service.create_topic(OWNER, "Arpeggios")
    other = await service.create_topic(OTHER_OWNER, "Chords")

    assert (first.topic_number, second.topic_number) == (1, 2)
    assert other.topic_number == 1


@pytest.mark.asyncio
async def test_topic_numbers_are_not_reused_after_delete(db):
    service = TopicService(db)
    await service.create_topic(OWNER, "One")
    two = await service.create_topic(OWNER, "Two")
    await service.create_topic(OWNER, "Three")

    await service.delete_topic(OWNER, two.id)
    four = await service.create_topic(OWNER, "Four")

    assert four.topic_number == 4


@pytest.mark.asyncio
async def test_create_topic_without_user_or_title(db):
    service = TopicService(db)

    assert await service.create_topic(None, "Scales") is None
    with pytest.raises(InvalidInputError):
        await service.create_topic(OWNER, "   ")


@pytest.mark.asyncio
async def test_concurrent_topic_number_is_reported_as_conflict(db, monkeypatch):
    service = TopicService(db)
    await service.create_topic(OWNER, "Scales")

    async def stale_max(user_id):
        return None

    monkeypatch.setattr(service.repository, "get_max_topic_number", stale_max)

    with pytest.raises(NumberingConflictError):
        await service.create_topic(OWNER, "Arpeggios")

    # The outer transaction is still usable
    topics = await service.repository.get_all(OWNER)
    assert [t.title for t in topics] == ["Scales"]


@pytest.mark.asyncio
async def test_goal_numbers_use_max_sub_number(db):
    topics = TopicService(db)
    goals = GoalService(db)
    topic = await topics.create_topic(OWNER, "Scales")
    topic = await topics.create_topic(OWNER, "Modes")

    numbers = []
    for description in ["Dorian", "Phrygian", "Lydian"]:
        goal = await goals.create_goal(OWNER, topic.id, description)
        numbers.append(goal.goal_number)
    assert numbers == ["2.1", "2.2", "2.3"]

    # Delete 2.3, add 2.4 by hand: the next goal is 2.5, not count + 1
    third = await goals.repository.get_for_topic(topic.id)
    third = next(g for g in third if g.goal_number == "2.3")
    await goals.delete_goal(OWNER, third.id)
    await goals.repository.create(OWNER, topic.id, "2.4", "Mixolydian")

    goal = await goals.create_goal(OWNER, topic.id, "Locrian")
    assert goal.goal_number == "2.5"


@pytest.mark.asyncio
async def test_create_goal_validates_links(db, make_repertoire, make_content):
    topics = TopicService(db)
    goals = GoalService(db)
    topic = await topics.create_topic(OWNER, "Pieces")
    item = await make_repertoire("Nocturne")
    content = await make_content("Masterclass")

    goal = await goals.create_goal(
        OWNER, topic.id, "Learn nocturne", repertoire_id=item.id, content_ids=[content.id, content.id]
    )
    assert goal.repertoire_id == item.id
    assert [c.id for c in await goals.get_goal_content(OWNER, goal.id)] == [content.id]
    assert [r.id for r in await goals.get_goal_repertoire(OWNER, goal.id)] == [item.id]

    with pytest.raises(ContentNotFoundError):
        await goals.create_goal(OWNER, topic.id, "Broken", content_ids=["missing"])

    foreign = await make_content("Not mine", user_id=OTHER_OWNER)
    with pytest.raises(ContentNotFoundError):
        await goals.create_goal(OWNER, topic.id, "Foreign", content_ids=[foreign.id])


@pytest.mark.asyncio
async def test_create_goal_in_foreign_topic(db):
    topic = await TopicService(db).create_topic(OTHER_OWNER, "Theirs")

    with pytest.raises(PermissionError):
        await GoalService(db).create_goal(OWNER, topic.id, "Sneaky")
    with pytest.raises(TopicNotFoundError):
        await GoalService(db).create_goal(OWNER, "missing", "Nowhere")


@pytest.mark.asyncio
async def test_completing_goal_stamps_today(db):
    topics = TopicService(db)
    goals = GoalService(db)
    topic = await topics.create_topic(OWNER, "Scales")
    goal = await goals.create_goal(OWNER, topic.id, "Major scales")

    goal = await goals.update_goal(OWNER, goal.id, is_complete=True)
    assert goal.is_complete is True
    assert goal.date_completed == today_in_app_timezone()

    goal = await goals.update_goal(OWNER, goal.id, date_completed=date(2024, 5, 1))
    assert goal.date_completed == date(2024, 5, 1)

    # Completing again keeps the existing date
    goal = await goals.update_goal(OWNER, goal.id, is_complete=True)
    assert goal.date_completed == date(2024, 5, 1)

    goal = await goals.update_goal(OWNER, goal.id, is_complete=False)
    assert goal.is_complete is False
    assert goal.date_completed is None


@pytest.mark.asyncio
async def test_completion_date_requires_complete_goal(db):
    topics = TopicService(db)
    goals = GoalService(db)
    topic = await topics.create_topic(OWNER, "Scales")
    goal = await goals.create_goal(OWNER, topic.id, "Major scales")

    with pytest.raises(InvalidInputError):
        await goals.update_goal(OWNER, goal.id, date_completed=date(2024, 5, 1))
    with pytest.raises(InvalidInputError):
        await goals.update_goal(OWNER, goal.id, is_complete=False, date_completed=date(2024, 5, 1))
    with pytest.raises(InvalidInputError):
        await goals.update_goal(OWNER, goal.id, description=" ")


@pytest.mark.asyncio
async def test_list_topics_with_goals(db):
    topics = TopicService(db)
    goals = GoalService(db)
    logs = LogService(db)
    scales = await topics.create_topic(OWNER, "Scales")
    await topics.create_topic(OWNER, "Empty")
    first = await goals.create_goal(OWNER, scales.id, "Major")
    await goals.create_goal(OWNER, scales.id, "Minor")
    await logs.create_log(OWNER, first.id, "C major", log_date=date(2025, 1, 2))
    await logs.create_log(OWNER, first.id, "G major", log_date=date(2025, 1, 5))

    tree = await topics.list_topics_with_goals(OWNER)

    assert tree.total == 2
    assert [t.title for t in tree.topics] == ["Scales", "Empty"]
    assert [g.goal_number for g in tree.topics[0].goals] == ["1.2", "1.1"]
    assert tree.topics[1].goals == []
    major = tree.topics[0].goals[1]
    assert [log.entry for log in major.logs] == ["G major", "C major"]
    assert all(not log.is_today for log in major.logs)


@pytest.mark.asyncio
async def test_update_topic_keeps_number(db):
    service = TopicService(db)
    topic = await service.create_topic(OWNER, "Scales")

    renamed = await service.update_topic(OWNER, topic.id, "  Scales & modes ")

    assert renamed.title == "Scales & modes"
    assert renamed.topic_number == 1


@pytest.mark.asyncio
async def test_delete_topic_cascades_and_recomputes(db, stats, make_repertoire):
    topics = TopicService(db, stats_gateway=stats)
    goals = GoalService(db, stats_gateway=stats)
    logs = LogService(db, stats_gateway=stats)
    r1 = await make_repertoire("Etude")
    r2 = await make_repertoire("Prelude")
    r3 = await make_repertoire("Unrelated")

    topic = await topics.create_topic(OWNER, "Chopin")
    goal = await goals.create_goal(OWNER, topic.id, "Etude op. 10", repertoire_id=r1.id)
    await logs.create_log(OWNER, goal.id, "Slow practice", repertoire_ids=[r2.id])
    stats.reset()

    outcome = await topics.delete_topic(OWNER, topic.id)

    assert outcome.primary is True
    assert sorted(stats.calls) == sorted([r1.id, r2.id])
    assert r3.id not in stats.calls
    assert outcome.stats_updated is True
    assert (await db.execute(select(func.count(Goal.id)))).scalar_one() == 0
    assert (await db.execute(select(func.count(Log.id)))).scalar_one() == 0

    await db.refresh(r1)
    await db.refresh(r2)
    assert r1.practice_count == 0
    assert r2.practice_count == 0


@pytest.mark.asyncio
async def test_link_repertoire_to_goal_recomputes_old_and_new(db, stats, make_repertoire):
    topics = TopicService(db, stats_gateway=stats)
    goals = GoalService(db, stats_gateway=stats)
    logs = LogService(db, stats_gateway=stats)
    r1 = await make_repertoire("Old piece")
    r2 = await make_repertoire("New piece")
    topic = await topics.create_topic(OWNER, "Pieces")
    goal = await goals.create_goal(OWNER, topic.id, "Learn", repertoire_id=r1.id)
    await logs.create_log(OWNER, goal.id, "Run through", log_date=date(2025, 2, 1))
    await db.refresh(r1)
    assert r1.practice_count == 1
    stats.reset()

    outcome = await goals.link_repertoire_to_goal(OWNER, goal.id, r2.id)

    assert outcome.primary.repertoire_id == r2.id
    assert sorted(stats.calls) == sorted([r1.id, r2.id])
    await db.refresh(r1)
    await db.refresh(r2)
    assert r1.practice_count == 0
    assert r2.practice_count == 1
    assert r2.last_practiced == date(2025, 2, 1)

    stats.reset()
    outcome = await goals.unlink_repertoire_from_goal(OWNER, goal.id)
    assert outcome.primary.repertoire_id is None
    assert stats.calls == [r2.id]


@pytest.mark.asyncio
async def test_goal_content_links_are_idempotent(db, make_content):
    topics = TopicService(db)
    goals = GoalService(db)
    content = await make_content()
    topic = await topics.create_topic(OWNER, "Scales")
    goal = await goals.create_goal(OWNER, topic.id, "Major")

    assert await goals.link_content_to_goal(OWNER, goal.id, content.id) is True
    assert await goals.link_content_to_goal(OWNER, goal.id, content.id) is True
    assert len(await goals.get_goal_content(OWNER, goal.id)) == 1

    assert await goals.unlink_content_from_goal(OWNER, goal.id, content.id) is True
    assert await goals.unlink_content_from_goal(OWNER, goal.id, content.id) is True
    assert await goals.get_goal_content(OWNER, goal.id) == []


@pytest.mark.asyncio
async def test_end_to_end_practice_flow(db, stats, make_repertoire):
    topics = TopicService(db, stats_gateway=stats)
    goals = GoalService(db, stats_gateway=stats)
    logs = LogService(db, stats_gateway=stats)
    r1 = await make_repertoire("Scale etude")

    topic = await topics.create_topic(OWNER, "Scales")
    assert topic.topic_number == 1

    major = await goals.create_goal(OWNER, topic.id, "Major scales")
    assert major.goal_number == "1.1"
    minor = await goals.create_goal(OWNER, topic.id, "Minor scales")
    assert minor.goal_number == "1.2"

    created = await logs.create_log(
        OWNER, major.id, "All keys, hands together", log_date=today_in_app_timezone(), repertoire_ids=[r1.id]
    )
    assert created.fully_succeeded
    assert stats.calls == [r1.id]
    await db.refresh(r1)
    assert r1.practice_count == 1
    assert r1.last_practiced == today_in_app_timezone()

    deleted = await logs.delete_log(OWNER, created.primary.id)
    assert deleted.primary is True
    assert stats.calls == [r1.id, r1.id]
    await db.refresh(r1)
    assert r1.practice_count == 0
    assert r1.last_practiced is None

    goal = await goals.get_goal(OWNER, major.id)
    assert goal.goal_number == "1.1"
    details = await goals.build_goal_details([goal])
    assert details[0].logs == []
    assert details[0].topic.title == "Scales"
