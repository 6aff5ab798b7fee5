"""
Repertoire stats recompute.

practice_count and last_practiced of a repertoire item are derived from
every log linked to it, either through the log_repertoire join or through
the log's goal carrying the item as its direct repertoire_id. A log linked
both ways is counted once.

The recompute is idempotent, so calling it more than once for the same id
is always safe. When settings.stats_procedure names a backend SQL function
it is called instead of running the aggregation here.
"""

import logging
import re
from datetime import date
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import func, or_, select, text, update
from sqlalchemy.ext.asyncio import AsyncSession

from practice_journal.config import get_settings
from practice_journal.core.exceptions import StatsRecomputeError
from practice_journal.core.results import WriteOutcome
from practice_journal.library.models import Repertoire
from practice_journal.logs.models import Log, LogRepertoire
from practice_journal.topics.models import Goal

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$")


class RepertoireStatsGateway:
    """Runs the stats recompute for one repertoire id at a time."""

    def __init__(self, db: AsyncSession, procedure: Optional[str] = None):
        self.db = db
        self.procedure = procedure

        if procedure is not None and not _IDENTIFIER.match(procedure):
            raise ValueError(f"Invalid stats procedure name: {procedure!r}")

    async def compute(self, repertoire_id: str) -> Tuple[int, Optional[date]]:
        """
        Aggregate (count, most recent date) over the logs linked to an item.

        Returns:
            Tuple of practice count and last practiced date (None if no logs)
        """
        via_join = select(LogRepertoire.log_id).where(
            LogRepertoire.repertoire_id == repertoire_id
        )
        via_goal = select(Goal.id).where(Goal.repertoire_id == repertoire_id)

        stmt = select(func.count(Log.id), func.max(Log.date)).where(
            or_(Log.id.in_(via_join), Log.goal_id.in_(via_goal))
        )
        result = await self.db.execute(stmt)
        count, last = result.one()
        return count or 0, last

    async def recompute(self, repertoire_id: str) -> None:
        """
        Recompute and persist the stats of one repertoire item.

        A missing item is skipped; there is nothing to update. The work runs
        in a SAVEPOINT so a failure leaves the caller's transaction usable.

        Raises:
            StatsRecomputeError: If the backend call or update fails
        """
        try:
            async with self.db.begin_nested():
                if self.procedure:
                    await self.db.execute(
                        text(f"SELECT {self.procedure}(:repertoire_id)"),
                        {"repertoire_id": repertoire_id},
                    )
                    logger.debug(
                        f"[RepertoireStatsGateway] Called {self.procedure} for {repertoire_id}"
                    )
                    return

                count, last = await self.compute(repertoire_id)
                await self.db.execute(
                    update(Repertoire)
                    .where(Repertoire.id == repertoire_id)
                    .values(practice_count=count, last_practiced=last)
                    .execution_options(synchronize_session="fetch")
                )
                logger.debug(
                    f"[RepertoireStatsGateway] Repertoire {repertoire_id}: count={count}, last={last}"
                )
        except Exception as e:
            logger.error(f"[RepertoireStatsGateway] Recompute failed for {repertoire_id}: {e}")
            raise StatsRecomputeError(f"Stats recompute failed for {repertoire_id}: {e}") from e

    async def recompute_many(self, repertoire_ids: Iterable[str]) -> Tuple[List[str], List[str]]:
        """
        Recompute each id once, in sorted order, continuing past failures.

        Returns:
            Tuple of (recomputed ids, failure messages)
        """
        done: List[str] = []
        failures: List[str] = []
        for repertoire_id in sorted({r for r in repertoire_ids if r}):
            try:
                await self.recompute(repertoire_id)
                done.append(repertoire_id)
            except StatsRecomputeError as e:
                failures.append(f"recompute {repertoire_id}: {e.message}")
        return done, failures


def get_stats_gateway(db: AsyncSession) -> RepertoireStatsGateway:
    """Factory function for RepertoireStatsGateway."""
    return RepertoireStatsGateway(db, procedure=get_settings().stats_procedure)


async def recompute_into(
        outcome: WriteOutcome,
        gateway: RepertoireStatsGateway,
        repertoire_ids: Iterable[str],
) -> None:
    """Recompute the given ids and record the result on a write outcome."""
    done, failures = await gateway.recompute_many(repertoire_ids)
    outcome.recomputed_repertoire_ids.extend(done)
    outcome.secondary_failures.extend(failures)
    outcome.stats_updated = outcome.stats_updated or bool(done)
    for failure in failures:
        logger.warning(f"[RepertoireStatsGateway] {failure}")
