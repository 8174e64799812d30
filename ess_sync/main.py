from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ess_sync.api.routes import sync
from ess_sync.core.config import get_settings
from ess_sync.core.logging_config import configure_logging
from ess_sync.db.session import init_db
from ess_sync.services.job_manager import get_job_manager
from ess_sync.services.scheduler import SyncScheduler

logger = logging.getLogger("ess_sync")

settings = get_settings()

app = FastAPI(title="EDM to ESS Sync Service")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_scheduler: SyncScheduler | None = None


@app.on_event("startup")
def on_startup() -> None:
    global _scheduler

    configure_logging(settings.log_level)
    settings.validate_for_production()
    init_db(settings.internal_db_path)

    manager = get_job_manager()
    recovered = manager.recover_interrupted_jobs()
    if recovered:
        logger.warning("Recovered %s interrupted sync job(s)", recovered)

    _scheduler = SyncScheduler(
        manager.run_scheduled_sync,
        cron=settings.scheduled_sync_cron,
        timezone=settings.scheduled_sync_timezone,
        logger=logger,
    )
    _scheduler.start()


@app.on_event("shutdown")
def on_shutdown() -> None:
    if _scheduler is not None:
        _scheduler.shutdown()


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


app.include_router(sync.router)
