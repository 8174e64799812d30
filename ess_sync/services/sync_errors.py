from __future__ import annotations

from typing import Any


class SyncError(Exception):
    pass


# -------------------------
# Per-record errors (counted, logged, never abort the run)
# -------------------------

class RecordError(SyncError):
    def __init__(self, message: str, erp_code: str | None = None) -> None:
        super().__init__(message)
        self.erp_code = erp_code


class ValidationError(RecordError):
    def __init__(self, field: str, message: str, erp_code: str | None = None) -> None:
        super().__init__(message, erp_code)
        self.field = field


class RecordWriteError(RecordError):
    def __init__(
        self,
        message: str,
        erp_code: str | None = None,
        detail: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, erp_code)
        self.detail = detail or {}


# -------------------------
# Per-run errors (roll back the destination, fail the job)
# -------------------------

class SystemicError(SyncError):
    pass


class SourceStoreError(SystemicError):
    pass


class DestinationStoreError(SystemicError):
    pass


class BackupError(SystemicError):
    pass


class SyncCancelled(SyncError):
    """Raised by the engine when it observes a cancel request between batches."""

    def __init__(self, job_id: int) -> None:
        super().__init__(f"Sync job {job_id} was cancelled")
        self.job_id = job_id


# -------------------------
# Control-plane errors (no job state is mutated)
# -------------------------

class InvalidTransition(SyncError):
    pass


class InvalidRunConfiguration(InvalidTransition):
    pass


class SyncInProgressError(InvalidTransition):
    pass


class JobNotFound(SyncError):
    def __init__(self, job_id: int) -> None:
        super().__init__(f"Sync job {job_id} not found")
        self.job_id = job_id
