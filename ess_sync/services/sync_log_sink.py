from __future__ import annotations

import logging
from typing import Any

from ess_sync.models.sync_log import SyncLogLevel
from ess_sync.services.job_repository import JobRepository


class SyncLogSink:
    """Appends one sync_log entry per record outcome of a job."""

    def __init__(self, job_id: int, repository: JobRepository, logger: logging.Logger | None = None) -> None:
        self.job_id = job_id
        self._repository = repository
        self._logger = logger or logging.getLogger(__name__)

    def write(
        self,
        level: SyncLogLevel,
        message: str,
        erp_code: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self._repository.append_log(self.job_id, level, message, erp_code, metadata)

    def info(self, message: str, erp_code: str | None = None) -> None:
        self.write(SyncLogLevel.INFO, message, erp_code)

    def error(self, message: str, erp_code: str | None = None, metadata: dict[str, Any] | None = None) -> None:
        self._logger.warning("job %s: %s", self.job_id, message)
        self.write(SyncLogLevel.ERROR, message, erp_code, metadata)
