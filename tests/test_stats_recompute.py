"""Tests for the repertoire stats gateway."""

from datetime import date

import pytest

from practice_journal.core.exceptions import StatsRecomputeError
from practice_journal.core.results import WriteOutcome
from practice_journal.library.stats import RepertoireStatsGateway, recompute_into
from practice_journal.logs.service import LogService
from practice_journal.topics.service import GoalService, TopicService

from tests.conftest import OWNER, RecordingStatsGateway


async def _goal(db, stats, repertoire_id=None, description="Learn"):
    topic = await TopicService(db, stats_gateway=stats).create_topic(OWNER, "Pieces")
    return await GoalService(db, stats_gateway=stats).create_goal(
        OWNER, topic.id, description, repertoire_id=repertoire_id
    )


@pytest.mark.parametrize("name", ["recompute_stats", "journal.recompute_stats", "_proc2"])
def test_procedure_name_accepted(name):
    assert RepertoireStatsGateway(None, procedure=name).procedure == name


@pytest.mark.parametrize("name", ["", "1proc", "proc; DROP TABLE logs", "a.b.c", "proc()"])
def test_procedure_name_rejected(name):
    with pytest.raises(ValueError):
        RepertoireStatsGateway(None, procedure=name)


@pytest.mark.asyncio
async def test_compute_without_logs(db, make_repertoire):
    piece = await make_repertoire()
    assert await RepertoireStatsGateway(db).compute(piece.id) == (0, None)


@pytest.mark.asyncio
async def test_compute_counts_both_paths_once(db, stats, make_repertoire):
    piece = await make_repertoire()
    direct = await _goal(db, stats, repertoire_id=piece.id)
    other = await _goal(db, stats, description="Sight read")
    logs = LogService(db, stats_gateway=stats)

    await logs.create_log(OWNER, direct.id, "Direct only", log_date=date(2025, 1, 1))
    await logs.create_log(OWNER, direct.id, "Both ways", log_date=date(2025, 1, 5), repertoire_ids=[piece.id])
    await logs.create_log(OWNER, other.id, "Join only", log_date=date(2025, 2, 1), repertoire_ids=[piece.id])
    await logs.create_log(OWNER, other.id, "Unrelated", log_date=date(2025, 3, 1))

    assert await RepertoireStatsGateway(db).compute(piece.id) == (3, date(2025, 2, 1))


@pytest.mark.asyncio
async def test_recompute_missing_item_is_a_no_op(db):
    await RepertoireStatsGateway(db).recompute("missing")


@pytest.mark.asyncio
async def test_recompute_is_idempotent(db, stats, make_repertoire):
    piece = await make_repertoire()
    goal = await _goal(db, stats, repertoire_id=piece.id)
    await LogService(db, stats_gateway=stats).create_log(OWNER, goal.id, "Practice", log_date=date(2025, 4, 4))
    gateway = RepertoireStatsGateway(db)

    await gateway.recompute(piece.id)
    await gateway.recompute(piece.id)

    await db.refresh(piece)
    assert piece.practice_count == 1
    assert piece.last_practiced == date(2025, 4, 4)


@pytest.mark.asyncio
async def test_recompute_with_missing_procedure_raises(db, make_repertoire):
    piece = await make_repertoire()
    gateway = RepertoireStatsGateway(db, procedure="no_such_function")

    with pytest.raises(StatsRecomputeError):
        await gateway.recompute(piece.id)

    # The savepoint was rolled back; the outer transaction still works
    assert await RepertoireStatsGateway(db).compute(piece.id) == (0, None)


@pytest.mark.asyncio
async def test_recompute_many_sorts_and_deduplicates(db):
    gateway = RecordingStatsGateway(db, fail_ids=["b"])

    done, failures = await gateway.recompute_many(["c", "b", "a", "c", "", None])

    assert gateway.calls == ["a", "b", "c"]
    assert done == ["a", "c"]
    assert len(failures) == 1
    assert failures[0].startswith("recompute b:")


@pytest.mark.asyncio
async def test_recompute_into_records_results(db):
    gateway = RecordingStatsGateway(db, fail_ids=["b"])
    outcome = WriteOutcome(primary=True)

    await recompute_into(outcome, gateway, {"a", "b"})

    assert outcome.recomputed_repertoire_ids == ["a"]
    assert outcome.stats_updated is True
    assert outcome.succeeded
    assert not outcome.fully_succeeded


@pytest.mark.asyncio
async def test_recompute_into_with_nothing_to_do(db):
    outcome = WriteOutcome(primary=True)

    await recompute_into(outcome, RecordingStatsGateway(db), [])

    assert outcome.stats_updated is False
    assert outcome.fully_succeeded


def test_write_outcome_without_primary():
    outcome = WriteOutcome()
    outcome.record_failure("link content c1", RuntimeError("boom"))

    assert not outcome.succeeded
    assert not outcome.fully_succeeded
    assert outcome.secondary_failures == ["link content c1: boom"]
