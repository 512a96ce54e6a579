"""APScheduler-based maintenance scheduler.

Runs the daily quota retention purge and, when a batch runner is
supplied, the periodic re-search of tracked books.
"""

from datetime import datetime, timezone
from typing import Dict, Optional

import structlog
from apscheduler.job import Job
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from booktracker.config import settings
from booktracker.services.batch_service import BatchSearchRunner
from booktracker.services.quota_service import QuotaTracker, get_quota_tracker

logger = structlog.get_logger(__name__)

QUOTA_PURGE_JOB_ID = "quota_purge"
BATCH_SEARCH_JOB_ID = "batch_search"


class MaintenanceScheduler:
    """Manages background jobs using APScheduler.

    Job failures are logged and never stop the scheduler.
    """

    def __init__(
        self,
        quota_tracker: Optional[QuotaTracker] = None,
        timezone_name: Optional[str] = None,
    ):
        """Initialize maintenance scheduler.

        Args:
            quota_tracker: Tracker to purge (default: process-wide tracker)
            timezone_name: Zone for cron triggers (default: QUOTA_TIMEZONE)
        """
        self._quota_tracker = quota_tracker
        self.timezone_name = timezone_name or settings.QUOTA_TIMEZONE
        self.scheduler = AsyncIOScheduler(timezone=self.timezone_name)
        self.logger = logger.bind(service="maintenance_scheduler")

    @property
    def quota_tracker(self) -> QuotaTracker:
        if self._quota_tracker is None:
            self._quota_tracker = get_quota_tracker()
        return self._quota_tracker

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()
            self.logger.info("scheduler_started")
        else:
            self.logger.warning("scheduler_already_running")

    def stop(self) -> None:
        """Stop the scheduler, waiting for running jobs to finish."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=True)
            self.logger.info("scheduler_stopped")
        else:
            self.logger.warning("scheduler_not_running")

    def add_quota_purge_job(self, hour: Optional[int] = None) -> Job:
        """Purge expired quota records once a day at ``hour`` local time."""
        hour = hour if hour is not None else settings.QUOTA_PURGE_HOUR
        job = self.scheduler.add_job(
            func=self.run_quota_purge,
            trigger=CronTrigger(hour=hour, minute=0, timezone=self.timezone_name),
            id=QUOTA_PURGE_JOB_ID,
            name="Purge expired quota records",
            replace_existing=True,
            max_instances=1,
        )
        self.logger.info("quota_purge_job_added", hour=hour, timezone=self.timezone_name)
        return job

    def add_batch_search_job(
        self,
        runner: BatchSearchRunner,
        interval_hours: Optional[int] = None,
    ) -> Job:
        """Run ``runner`` every ``interval_hours`` (default: re-search interval)."""
        interval_hours = interval_hours or settings.BATCH_RESEARCH_INTERVAL_HOURS
        job = self.scheduler.add_job(
            func=self._run_batch_search,
            trigger=IntervalTrigger(
                hours=interval_hours,
                start_date=datetime.now(timezone.utc),
                timezone="UTC",
            ),
            args=[runner],
            id=BATCH_SEARCH_JOB_ID,
            name="Re-search tracked books",
            replace_existing=True,
            max_instances=1,  # A slow pass must not overlap the next one
        )
        self.logger.info("batch_search_job_added", interval_hours=interval_hours)
        return job

    async def run_quota_purge(self) -> int:
        """Job body for the retention purge. Returns records removed (0 on error)."""
        try:
            return await self.quota_tracker.purge_expired()
        except Exception as e:
            self.logger.error("quota_purge_failed", error=str(e), exc_info=True)
            return 0

    async def _run_batch_search(self, runner: BatchSearchRunner) -> Optional[Dict[str, int]]:
        try:
            return await runner.run()
        except Exception as e:
            self.logger.error("batch_search_job_failed", error=str(e), exc_info=True)
            return None

    def get_jobs_status(self) -> Dict[str, dict]:
        """Job information keyed by job id."""
        jobs = {}
        for job in self.scheduler.get_jobs():
            next_run = getattr(job, "next_run_time", None)
            jobs[job.id] = {
                "name": job.name,
                "next_run": next_run.isoformat() if next_run else None,
                "trigger": str(job.trigger),
            }
        return jobs

    def is_running(self) -> bool:
        return self.scheduler.running
