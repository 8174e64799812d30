from __future__ import annotations

from apscheduler.schedulers.background import BackgroundScheduler

from ess_sync.services.scheduler import DAILY_SYNC_JOB_ID, SyncScheduler


def test_daily_job_is_registered_once() -> None:
    calls: list[int] = []
    scheduler = SyncScheduler(lambda: calls.append(1), "0 1 * * *", "Asia/Ulaanbaatar")

    scheduler.start()
    try:
        scheduler.start()
        job = scheduler._scheduler.get_job(DAILY_SYNC_JOB_ID)
        assert job is not None
        assert job.max_instances == 1
        assert job.coalesce is True

        next_run = scheduler.next_run_time()
        assert next_run is not None
        assert (next_run.hour, next_run.minute) == (1, 0)
        assert calls == []
    finally:
        scheduler.shutdown()


def test_not_started_scheduler_has_no_next_run() -> None:
    scheduler = SyncScheduler(lambda: None, "30 2 * * *", "UTC", scheduler=BackgroundScheduler(timezone="UTC"))

    assert scheduler.next_run_time() is None
    scheduler.shutdown()
