from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class SyncJobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL


class SyncJobType(str, Enum):
    MANUAL = "manual"
    SCHEDULED = "scheduled"
    AUTO = "auto"


_TERMINAL = {SyncJobStatus.COMPLETED, SyncJobStatus.FAILED, SyncJobStatus.CANCELLED}

LEGAL_TRANSITIONS: dict[SyncJobStatus, frozenset[SyncJobStatus]] = {
    SyncJobStatus.PENDING: frozenset({SyncJobStatus.RUNNING}),
    SyncJobStatus.RUNNING: frozenset(
        {SyncJobStatus.COMPLETED, SyncJobStatus.FAILED, SyncJobStatus.CANCELLED}
    ),
    SyncJobStatus.COMPLETED: frozenset(),
    SyncJobStatus.FAILED: frozenset(),
    SyncJobStatus.CANCELLED: frozenset(),
}


def can_transition(current: SyncJobStatus, target: SyncJobStatus) -> bool:
    return target in LEGAL_TRANSITIONS[current]


@dataclass
class SyncJob:
    id: int
    job_name: str
    type: SyncJobType
    status: SyncJobStatus
    started_by: str | None
    created_at: datetime
    updated_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None
    records_processed: int = 0
    records_success: int = 0
    records_failed: int = 0
    error_message: str | None = None
    sync_config: dict[str, Any] = field(default_factory=dict)


@dataclass
class SyncResult:
    job_id: int
    success: bool
    records_processed: int
    records_success: int
    records_failed: int
    errors: list[str]
    duration: int  # milliseconds

    def to_dict(self) -> dict[str, Any]:
        return {
            "jobId": self.job_id,
            "success": self.success,
            "recordsProcessed": self.records_processed,
            "recordsSuccess": self.records_success,
            "recordsFailed": self.records_failed,
            "errors": list(self.errors),
            "duration": self.duration,
        }
