"""
Scheduler module for recurring ingestion.

Uses APScheduler to run an ingestion cycle at a fixed interval.
"""

import asyncio
from datetime import datetime
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .config import get_settings
from .logging_conf import get_logger, setup_logging
from .main import IngestionRunner, get_runner

logger = get_logger(__name__)

JOB_ID = "news_ingestion"


class IngestionScheduler:
    """
    Runs the shared ingestion runner on an interval.

    The runner's own lock keeps cycles single-flight; max_instances and
    coalesce stop APScheduler from piling up missed runs.
    """

    def __init__(self, runner: Optional[IngestionRunner] = None):
        """Initialize scheduler."""
        self.settings = get_settings()
        self.runner = runner or get_runner()
        self.scheduler = AsyncIOScheduler()
        self._running = False

        logger.info("scheduler_initialized")

    def _create_job(self) -> None:
        """Create the recurring job."""
        seconds = self.settings.ingestion_interval_seconds

        self.scheduler.add_job(
            self._run_job,
            IntervalTrigger(seconds=seconds),
            id=JOB_ID,
            name="News Ingestion",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(self.scheduler.timezone),
        )

        logger.info("job_scheduled", interval_seconds=seconds)

    async def _run_job(self) -> None:
        """Execute a single ingestion cycle."""
        report = await self.runner.run()
        if report is None:
            logger.info("scheduled_run_skipped")
            return
        logger.info("scheduled_run_completed", status=report.status, run_id=report.run_id)

    def start(self) -> None:
        """Start the scheduler."""
        if self._running:
            logger.warning("scheduler_already_running")
            return

        self._create_job()
        self.scheduler.start()
        self._running = True

        logger.info("scheduler_started")

    def stop(self) -> None:
        """Stop the scheduler."""
        if not self._running:
            return

        self.scheduler.shutdown(wait=False)
        self._running = False

        logger.info("scheduler_stopped")

    def get_next_run(self) -> Optional[datetime]:
        """Get the next scheduled run time."""
        job = self.scheduler.get_job(JOB_ID)
        if job:
            return job.next_run_time
        return None


async def run_scheduler():
    """
    Run the scheduler indefinitely.

    Called from the CLI when running as a worker process.
    """
    settings = get_settings()

    setup_logging(
        level=settings.log_level,
        json_output=settings.log_json,
    )

    scheduler = IngestionScheduler()
    scheduler.start()

    try:
        while True:
            next_run = scheduler.get_next_run()
            if next_run:
                logger.info("scheduler_waiting", next_run=next_run.isoformat())
            await asyncio.sleep(max(60.0, settings.ingestion_interval_seconds))
    except (KeyboardInterrupt, SystemExit):
        logger.info("scheduler_shutting_down")
        scheduler.stop()


def run_scheduler_sync():
    """Synchronous wrapper for run_scheduler."""
    asyncio.run(run_scheduler())
