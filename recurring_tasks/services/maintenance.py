"""
Maintenance Trigger

Entry point for the daily reconciliation sweep and the APScheduler job that
runs it.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.ext.asyncio import async_sessionmaker

from recurring_tasks.config import SWEEP_CRON_HOUR, SWEEP_CRON_MINUTE, SWEEP_TIMEZONE
from recurring_tasks.db.config import async_session_factory
from recurring_tasks.repositories.sql_task_repository import SQLTaskRepository
from recurring_tasks.services.occurrence_materializer import OccurrenceMaterializer
from recurring_tasks.services.reconciliation_sweep import JOB_NAME, ReconciliationSweep, SweepLease
from recurring_tasks.utils.logger import log_cron_job

logger = logging.getLogger(__name__)


async def run_maintenance_sweep(
    session_factory: Optional[async_sessionmaker] = None,
    sweep_time: Optional[datetime] = None,
    lease: Optional[SweepLease] = None,
) -> Dict[str, Any]:
    """
    Run one reconciliation sweep on a fresh database session.

    Args:
        session_factory: Session factory (defaults to the application's)
        sweep_time: Reference time for the look-ahead window (defaults to now)
        lease: Overlap guard (defaults to the process-wide lease)

    Returns:
        The sweep summary
    """
    async with (session_factory or async_session_factory)() as session:
        repository = SQLTaskRepository(session)
        sweep = ReconciliationSweep(repository, OccurrenceMaterializer(repository), lease=lease)
        return await sweep.run(sweep_time)


class MaintenanceScheduler:
    """Runs the reconciliation sweep once a day on an asyncio scheduler."""

    JOB_ID = "recurring-task-maintenance"

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        hour: int = SWEEP_CRON_HOUR,
        minute: int = SWEEP_CRON_MINUTE,
        timezone=SWEEP_TIMEZONE,
    ):
        self.session_factory = session_factory
        self.trigger = CronTrigger(hour=hour, minute=minute, timezone=timezone)
        self._scheduler = AsyncIOScheduler(timezone=timezone)
        self._started = False

    @property
    def running(self) -> bool:
        return self._started

    def start(self) -> None:
        """Register the daily job and start the scheduler. Must be called inside a running event loop."""
        if self._started:
            return
        self._scheduler.add_job(
            self._run_job,
            trigger=self.trigger,
            id=self.JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=3600,
        )
        self._scheduler.start()
        self._started = True
        logger.info(f"Maintenance scheduler started; next sweep at {self.next_run_time()}")

    def shutdown(self) -> None:
        if not self._started:
            return
        self._scheduler.shutdown(wait=False)
        self._started = False
        logger.info("Maintenance scheduler stopped")

    def next_run_time(self) -> Optional[datetime]:
        job = self._scheduler.get_job(self.JOB_ID)
        return job.next_run_time if job is not None else None

    async def _run_job(self) -> None:
        try:
            result = await run_maintenance_sweep(self.session_factory)
        except Exception as exc:
            # Keep the scheduler alive for tomorrow's run
            logger.exception(f"Maintenance sweep crashed: {exc}")
            log_cron_job(JOB_NAME, "ERROR", error=str(exc))
            return
        if not result.get("success"):
            logger.warning(f"Maintenance sweep did not complete: {result.get('error')}")
