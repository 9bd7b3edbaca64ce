"""Periodic auto-completion of past appointments."""

from datetime import datetime

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from app.services.scheduling_service import SchedulingService

logger = structlog.get_logger()

SWEEP_JOB_ID = "appointment_status_sweep"


class StatusSweeper:
    """Runs ``SchedulingService.refresh_statuses`` on a fixed interval."""

    def __init__(self, scheduling: SchedulingService, interval_minutes: int = 60):
        """Initialize the sweeper; nothing runs until ``start``."""
        self.scheduling = scheduling
        self.interval_minutes = interval_minutes
        self.scheduler = AsyncIOScheduler()

    async def run_once(self) -> int:
        """Run one sweep, logging rather than raising on failure."""
        logger.info("status_sweep_started")
        try:
            return await self.scheduling.refresh_statuses()
        except Exception as e:
            logger.error("status_sweep_failed", error=str(e), exc_info=True)
            return 0

    def start(self) -> None:
        """Schedule the sweep, with its first run right away."""
        self.scheduler.add_job(
            self.run_once,
            trigger="interval",
            minutes=self.interval_minutes,
            id=SWEEP_JOB_ID,
            replace_existing=True,
            next_run_time=datetime.now(),
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.start()
        logger.info("status_sweep_scheduled", interval_minutes=self.interval_minutes)

    def shutdown(self) -> None:
        """Stop the scheduler without waiting for a running sweep."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
