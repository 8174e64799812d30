from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class SyncLogLevel(str, Enum):
    INFO = "info"
    WARN = "warn"
    ERROR = "error"
    DEBUG = "debug"


@dataclass(frozen=True)
class SyncLogEntry:
    id: int
    sync_job_id: int
    level: SyncLogLevel
    message: str
    created_at: datetime
    employee_erp_code: str | None = None
    metadata: dict[str, Any] | None = None
