from __future__ import annotations

import logging

from ess_sync.services.job_repository import JobRepository


class ProgressTracker:
    """Cumulative record counters for one running job.

    ``processed`` is derived, so ``processed == success + failed`` holds at
    every observation point.
    """

    def __init__(self, job_id: int, repository: JobRepository, logger: logging.Logger | None = None) -> None:
        self.job_id = job_id
        self._repository = repository
        self._logger = logger or logging.getLogger(__name__)
        self.success = 0
        self.failed = 0
        self.errors: list[str] = []

    @property
    def processed(self) -> int:
        return self.success + self.failed

    def counters(self) -> tuple[int, int, int]:
        return self.processed, self.success, self.failed

    def record_success(self) -> None:
        self.success += 1

    def record_failure(self, message: str) -> None:
        self.failed += 1
        self.errors.append(message)

    def checkpoint(self) -> None:
        """Persist the counters so observers can follow a long run."""
        if not self._repository.update_progress(self.job_id, *self.counters()):
            self._logger.debug("Progress checkpoint skipped for job %s (no longer running)", self.job_id)
