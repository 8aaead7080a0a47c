# corgi_buddy/jobs/scheduler.py
"""Background reconciliation sweep."""
from __future__ import annotations

import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from corgi_buddy.core.container import ServiceContainer
from corgi_buddy.services.reconciliation_service import SweepReport

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "reconciliation_sweep"


class ReconciliationScheduler:
    """
    Runs the sweep on an interval with its own session per run.

    Overlapping runs are prevented by max_instances=1; a stop request is
    observed between items so shutdown never abandons a half-written row.
    """

    def __init__(self, container: ServiceContainer):
        self.container = container
        self._stopping = False
        self.scheduler = AsyncIOScheduler(
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": 60,
            },
            timezone="UTC",
        )

    def _should_stop(self) -> bool:
        return self._stopping

    async def run_once(self) -> Optional[SweepReport]:
        db = self.container.session_factory()
        try:
            return await self.container.reconciliation.run_sweep(db, should_stop=self._should_stop)
        except Exception:
            db.rollback()
            logger.exception("[scheduler] reconciliation sweep crashed")
            return None
        finally:
            db.close()

    def start(self) -> None:
        interval = self.container.settings.reconciliation_interval_seconds
        self.scheduler.add_job(
            self.run_once,
            trigger=IntervalTrigger(seconds=interval),
            id=SWEEP_JOB_ID,
            name="Reconciliation Sweep",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self._stopping = False
        self.scheduler.start()
        logger.info("[scheduler] reconciliation sweep every %ss", interval)

    def shutdown(self) -> None:
        self._stopping = True
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        logger.info("[scheduler] stopped")
