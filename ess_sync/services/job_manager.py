"""
Job Manager: the only entry point for starting, observing and cancelling syncs.

Owns the SyncJob state machine (PENDING -> RUNNING -> COMPLETED | FAILED |
CANCELLED). A trigger blocks until the run is finished; progress is observed
by reading the job row from another thread or process.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from functools import lru_cache

from ess_sync.core.config import Settings, get_settings
from ess_sync.models.run_config import RunConfiguration
from ess_sync.models.sync_job import SyncJob, SyncJobStatus, SyncJobType, SyncResult
from ess_sync.models.sync_log import SyncLogEntry
from ess_sync.services.audit_service import AuditService
from ess_sync.services.backup_service import BackupService
from ess_sync.services.edm_store import EdmStore
from ess_sync.services.ess_store import EssStore
from ess_sync.services.job_repository import JobRepository
from ess_sync.services.notification_service import NotificationService
from ess_sync.services.sync_engine import SyncEngine
from ess_sync.services.sync_errors import (
    InvalidTransition,
    JobNotFound,
    SyncCancelled,
    SyncInProgressError,
)

MANUAL_SYNC_NAME = "Manual Sync"
SCHEDULED_SYNC_NAME = "Daily Scheduled Sync"
SYSTEM_INITIATOR = "system"
PRE_SYNC_BACKUP_TAG = "auto_pre_sync"


class JobManager:
    def __init__(
        self,
        repository: JobRepository,
        engine: SyncEngine,
        backup_service: BackupService,
        audit_service: AuditService,
        notification_service: NotificationService,
        settings: Settings,
        logger: logging.Logger | None = None,
    ) -> None:
        self._repository = repository
        self._engine = engine
        self._backup = backup_service
        self._audit = audit_service
        self._notifications = notification_service
        self._settings = settings
        self._logger = logger or logging.getLogger(__name__)
        self._run_lock = threading.Lock()

    # -------------------------
    # Triggers
    # -------------------------

    def trigger_sync(
        self,
        config: RunConfiguration | None = None,
        initiator: str | None = None,
        job_type: SyncJobType = SyncJobType.MANUAL,
        name: str = MANUAL_SYNC_NAME,
    ) -> SyncResult:
        config = config or RunConfiguration()
        config.validate()

        if not self._run_lock.acquire(blocking=False):
            raise SyncInProgressError("A sync job is already running in this process")
        try:
            job = self._repository.create_job(name, job_type, initiator, config.to_dict())
            self._logger.info("%s triggered by %s (job %s)", name, initiator, job.id)
            result = self._perform_sync(job.id, config)
        finally:
            self._run_lock.release()

        self._record_audit(
            initiator,
            "sync",
            result.job_id,
            {
                "type": job_type.value,
                "success": result.success,
                "recordsProcessed": result.records_processed,
                "recordsFailed": result.records_failed,
            },
        )
        return result

    def run_scheduled_sync(self) -> SyncResult | None:
        if not self._settings.scheduled_sync_enabled:
            self._logger.info("Scheduled sync is disabled")
            return None

        self._logger.info("Daily scheduled sync triggered")
        config = RunConfiguration(
            page_size=self._settings.sync_page_size,
            backup_before_sync=self._settings.auto_backup_before_sync,
            validate_data=True,
            sync_employees=True,
            sync_employments=True,
            exclude_deleted=True,
        )

        try:
            result = self.trigger_sync(config, SYSTEM_INITIATOR, SyncJobType.SCHEDULED, SCHEDULED_SYNC_NAME)
        except Exception as exc:
            self._logger.exception("Scheduled sync could not run")
            self._notifications.notify_sync_failed(None, str(exc))
            return None

        if result.success:
            self._notifications.notify_sync_completed(result)
        else:
            self._notifications.notify_sync_failed(result.job_id, "; ".join(result.errors) or "Sync failed")
        return result

    # -------------------------
    # Run
    # -------------------------

    def _perform_sync(self, job_id: int, config: RunConfiguration) -> SyncResult:
        started = time.monotonic()

        def elapsed_ms() -> int:
            return int((time.monotonic() - started) * 1000)

        try:
            self._repository.transition(job_id, SyncJobStatus.RUNNING)

            if config.backup_before_sync:
                self._logger.info("Creating backup before sync (job %s)", job_id)
                self._backup.create_backup(PRE_SYNC_BACKUP_TAG, SYSTEM_INITIATOR)

            tracker = self._engine.run(job_id, config, cancel_requested=lambda: self._is_cancelled(job_id))
        except SyncCancelled:
            job = self._repository.get_job(job_id)
            message = (job.error_message if job else None) or f"Sync job {job_id} was cancelled"
            self._logger.warning("Sync job %s cancelled; destination changes rolled back", job_id)
            return SyncResult(job_id, False, 0, 0, 0, [message], elapsed_ms())
        except Exception as exc:
            message = str(exc) or type(exc).__name__
            self._logger.exception("Sync job %s failed", job_id)
            self._fail(job_id, message)
            return SyncResult(job_id, False, 0, 0, 0, [message], elapsed_ms())

        processed, success, failed = tracker.counters()
        try:
            self._repository.transition(job_id, SyncJobStatus.COMPLETED, counters=tracker.counters())
        except InvalidTransition as exc:
            # Cancelled after the last batch; the destination transaction had already committed.
            self._logger.warning("Sync job %s finished but could not be completed: %s", job_id, exc)
            return SyncResult(job_id, False, processed, success, failed, [*tracker.errors, str(exc)], elapsed_ms())

        duration = elapsed_ms()
        self._logger.info(
            "Sync job %s completed: processed=%s success=%s failed=%s duration=%sms",
            job_id,
            processed,
            success,
            failed,
            duration,
        )
        return SyncResult(job_id, True, processed, success, failed, list(tracker.errors), duration)

    def _is_cancelled(self, job_id: int) -> bool:
        return self._repository.get_status(job_id) is SyncJobStatus.CANCELLED

    def _fail(self, job_id: int, message: str) -> None:
        try:
            # FAILED is only reachable from RUNNING
            if self._repository.get_status(job_id) is SyncJobStatus.PENDING:
                self._repository.transition(job_id, SyncJobStatus.RUNNING)
            self._repository.transition(job_id, SyncJobStatus.FAILED, error_message=message)
        except (InvalidTransition, sqlite3.Error) as exc:
            self._logger.error("Could not mark sync job %s as failed: %s", job_id, exc)

    def _record_audit(self, initiator: str | None, action: str, job_id: int, metadata: dict) -> None:
        """Audit a job action that has already taken effect; a failed write is only logged."""
        try:
            self._audit.record_action(initiator, action, "sync_job", str(job_id), metadata)
        except sqlite3.Error as exc:
            self._logger.error("Could not audit %s of sync job %s: %s", action, job_id, exc)

    # -------------------------
    # Queries
    # -------------------------

    def list_jobs(self, limit: int = 50, offset: int = 0) -> list[SyncJob]:
        return self._repository.list_jobs(limit, offset)

    def get_job(self, job_id: int) -> SyncJob:
        job = self._repository.get_job(job_id)
        if job is None:
            raise JobNotFound(job_id)
        return job

    def list_logs(self, job_id: int, limit: int = 100, offset: int = 0) -> list[SyncLogEntry]:
        self.get_job(job_id)
        return self._repository.list_logs(job_id, limit, offset)

    # -------------------------
    # Control
    # -------------------------

    def cancel_job(self, job_id: int, initiator: str) -> SyncJob:
        job = self.get_job(job_id)
        if job.status is not SyncJobStatus.RUNNING:
            raise InvalidTransition(f"Can only cancel running jobs (job {job_id} is {job.status.value})")

        cancelled = self._repository.transition(
            job_id,
            SyncJobStatus.CANCELLED,
            error_message=f"Cancelled by user: {initiator}",
        )
        self._record_audit(initiator, "cancel_sync", job_id, {"jobId": job_id})
        self._logger.info("Sync job %s cancelled by %s", job_id, initiator)
        return cancelled

    def recover_interrupted_jobs(self) -> int:
        """Fail jobs a previous process left pending or running."""
        recovered = 0
        for job in self._repository.list_jobs_in_status(SyncJobStatus.PENDING, SyncJobStatus.RUNNING):
            try:
                if job.status is SyncJobStatus.PENDING:
                    self._repository.transition(job.id, SyncJobStatus.RUNNING)
                self._repository.transition(
                    job.id,
                    SyncJobStatus.FAILED,
                    error_message="Interrupted before completion",
                )
            except InvalidTransition as exc:
                self._logger.warning("Could not recover sync job %s: %s", job.id, exc)
                continue
            recovered += 1
            self._logger.warning("Marked interrupted sync job %s as failed", job.id)
        return recovered


def build_job_manager(settings: Settings, logger: logging.Logger | None = None) -> JobManager:
    logger = logger or logging.getLogger("ess_sync")
    repository = JobRepository(settings.internal_db_path)
    ess_store = EssStore(settings.ess_database_url, logger)
    engine = SyncEngine(EdmStore(settings.edm_database_url, logger), ess_store, repository, logger)
    return JobManager(
        repository=repository,
        engine=engine,
        backup_service=BackupService(ess_store, settings.backup_dir, settings.internal_db_path, logger),
        audit_service=AuditService(settings.internal_db_path, logger),
        notification_service=NotificationService(
            settings.notification_webhook_url,
            settings.notification_timeout_seconds,
            logger=logger,
        ),
        settings=settings,
        logger=logger,
    )


@lru_cache()
def get_job_manager() -> JobManager:
    return build_job_manager(get_settings())
