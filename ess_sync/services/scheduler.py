from __future__ import annotations

import logging
from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

DAILY_SYNC_JOB_ID = "daily_sync"


class SyncScheduler:
    """Calls the scheduled-sync entry point on a cron expression.

    The sync itself knows nothing about schedules; this is only a timer.
    """

    def __init__(
        self,
        run_scheduled_sync: Callable[[], object],
        cron: str,
        timezone: str,
        scheduler: BackgroundScheduler | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._run = run_scheduled_sync
        self._trigger = CronTrigger.from_crontab(cron, timezone=timezone)
        self._scheduler = scheduler or BackgroundScheduler(timezone=timezone)
        self._logger = logger or logging.getLogger(__name__)
        self.cron = cron
        self.timezone = timezone

    def start(self) -> None:
        self._scheduler.add_job(
            self._run,
            trigger=self._trigger,
            id=DAILY_SYNC_JOB_ID,
            name="Daily EDM to ESS sync",
            replace_existing=True,
            coalesce=True,  # one run for any number of missed fire times
            max_instances=1,  # never overlap with itself
        )
        if not self._scheduler.running:
            self._scheduler.start()
        self._logger.info("Scheduled daily sync with cron '%s' (%s)", self.cron, self.timezone)

    def shutdown(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            self._logger.info("Sync scheduler stopped")

    def next_run_time(self):
        job = self._scheduler.get_job(DAILY_SYNC_JOB_ID)
        # pending jobs (scheduler not started yet) have no next_run_time
        return getattr(job, "next_run_time", None) if job else None
