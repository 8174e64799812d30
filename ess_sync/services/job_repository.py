from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ess_sync.db.session import connection_scope
from ess_sync.models.sync_job import SyncJob, SyncJobStatus, SyncJobType, can_transition
from ess_sync.models.sync_log import SyncLogEntry, SyncLogLevel
from ess_sync.services.sync_errors import InvalidTransition, JobNotFound, SyncInProgressError

_JOB_COLUMNS = """
    id, job_name, type, status, started_by, started_at, completed_at,
    records_processed, records_success, records_failed, error_message,
    sync_config, created_at, updated_at
"""

_ACTIVE_STATUSES = (SyncJobStatus.PENDING.value, SyncJobStatus.RUNNING.value)


def _utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _parse_dt(raw: str | None) -> datetime | None:
    return datetime.fromisoformat(raw) if raw else None


def _parse_json(raw: str | None) -> dict[str, Any] | None:
    if not raw:
        return None
    try:
        parsed = json.loads(raw)
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


def _row_to_job(row: sqlite3.Row) -> SyncJob:
    return SyncJob(
        id=row["id"],
        job_name=row["job_name"],
        type=SyncJobType(row["type"]),
        status=SyncJobStatus(row["status"]),
        started_by=row["started_by"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
        started_at=_parse_dt(row["started_at"]),
        completed_at=_parse_dt(row["completed_at"]),
        records_processed=row["records_processed"],
        records_success=row["records_success"],
        records_failed=row["records_failed"],
        error_message=row["error_message"],
        sync_config=_parse_json(row["sync_config"]) or {},
    )


def _row_to_log(row: sqlite3.Row) -> SyncLogEntry:
    return SyncLogEntry(
        id=row["id"],
        sync_job_id=row["sync_job_id"],
        level=SyncLogLevel(row["level"]),
        message=row["message"],
        created_at=datetime.fromisoformat(row["created_at"]),
        employee_erp_code=row["employee_erp_code"],
        metadata=_parse_json(row["metadata"]),
    )


class JobRepository:
    """Durable sync_job and sync_log rows in the internal SQLite database."""

    def __init__(self, db_path: Path | None = None) -> None:
        self.db_path = db_path

    # -------------------------
    # Jobs
    # -------------------------

    def create_job(
        self,
        name: str,
        job_type: SyncJobType,
        started_by: str | None,
        config: dict[str, Any],
    ) -> SyncJob:
        """Insert a PENDING job unless another job is pending or running."""
        ts = _utc_now().isoformat()
        with connection_scope(self.db_path) as connection:
            cursor = connection.execute(
                """
                INSERT INTO sync_job (job_name, type, status, started_by, sync_config, created_at, updated_at)
                SELECT ?, ?, ?, ?, ?, ?, ?
                WHERE NOT EXISTS (SELECT 1 FROM sync_job WHERE status IN (?, ?))
                """,
                (
                    name,
                    job_type.value,
                    SyncJobStatus.PENDING.value,
                    started_by,
                    json.dumps(config, ensure_ascii=False),
                    ts,
                    ts,
                    *_ACTIVE_STATUSES,
                ),
            )
            if cursor.rowcount == 0:
                raise SyncInProgressError("Another sync job is already pending or running")
            job_id = cursor.lastrowid

        job = self.get_job(job_id)
        assert job is not None
        return job

    def get_job(self, job_id: int) -> SyncJob | None:
        with connection_scope(self.db_path) as connection:
            row = connection.execute(
                f"SELECT {_JOB_COLUMNS} FROM sync_job WHERE id = ?",
                (job_id,),
            ).fetchone()
        return _row_to_job(row) if row else None

    def get_status(self, job_id: int) -> SyncJobStatus | None:
        with connection_scope(self.db_path) as connection:
            row = connection.execute("SELECT status FROM sync_job WHERE id = ?", (job_id,)).fetchone()
        return SyncJobStatus(row["status"]) if row else None

    def list_jobs(self, limit: int = 50, offset: int = 0) -> list[SyncJob]:
        with connection_scope(self.db_path) as connection:
            rows = connection.execute(
                f"""
                SELECT {_JOB_COLUMNS}
                FROM sync_job
                ORDER BY created_at DESC, id DESC
                LIMIT ? OFFSET ?
                """,
                (limit, offset),
            ).fetchall()
        return [_row_to_job(r) for r in rows]

    def list_jobs_in_status(self, *statuses: SyncJobStatus) -> list[SyncJob]:
        placeholders = ", ".join("?" for _ in statuses)
        with connection_scope(self.db_path) as connection:
            rows = connection.execute(
                f"SELECT {_JOB_COLUMNS} FROM sync_job WHERE status IN ({placeholders}) ORDER BY id",
                tuple(s.value for s in statuses),
            ).fetchall()
        return [_row_to_job(r) for r in rows]

    def transition(
        self,
        job_id: int,
        target: SyncJobStatus,
        *,
        error_message: str | None = None,
        counters: tuple[int, int, int] | None = None,
    ) -> SyncJob:
        """Compare-and-set status change; raises InvalidTransition on an illegal move."""
        job = self.get_job(job_id)
        if job is None:
            raise JobNotFound(job_id)
        if not can_transition(job.status, target):
            raise InvalidTransition(
                f"Sync job {job_id} cannot move from {job.status.value} to {target.value}"
            )

        ts = _utc_now().isoformat()
        assignments = ["status = ?", "updated_at = ?"]
        params: list[Any] = [target.value, ts]
        if target is SyncJobStatus.RUNNING:
            assignments.append("started_at = ?")
            params.append(ts)
        if target.is_terminal:
            assignments.append("completed_at = ?")
            params.append(ts)
        if error_message is not None:
            assignments.append("error_message = ?")
            params.append(error_message)
        if counters is not None:
            assignments.append("records_processed = ?")
            assignments.append("records_success = ?")
            assignments.append("records_failed = ?")
            params.extend(counters)

        with connection_scope(self.db_path) as connection:
            cursor = connection.execute(
                f"UPDATE sync_job SET {', '.join(assignments)} WHERE id = ? AND status = ?",
                (*params, job_id, job.status.value),
            )
            changed = cursor.rowcount

        if changed == 0:
            current = self.get_status(job_id)
            raise InvalidTransition(
                f"Sync job {job_id} changed to {current.value if current else 'unknown'} "
                f"before it could move to {target.value}"
            )
        updated = self.get_job(job_id)
        assert updated is not None
        return updated

    def update_progress(self, job_id: int, processed: int, success: int, failed: int) -> bool:
        """Checkpoint counters on a running job. Counters never move backwards."""
        with connection_scope(self.db_path) as connection:
            cursor = connection.execute(
                """
                UPDATE sync_job
                SET records_processed = ?, records_success = ?, records_failed = ?, updated_at = ?
                WHERE id = ? AND status = ? AND records_processed <= ?
                """,
                (
                    processed,
                    success,
                    failed,
                    _utc_now().isoformat(),
                    job_id,
                    SyncJobStatus.RUNNING.value,
                    processed,
                ),
            )
            return cursor.rowcount > 0

    # -------------------------
    # Logs
    # -------------------------

    def append_log(
        self,
        job_id: int,
        level: SyncLogLevel,
        message: str,
        erp_code: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        with connection_scope(self.db_path) as connection:
            connection.execute(
                """
                INSERT INTO sync_log (sync_job_id, level, message, employee_erp_code, metadata, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    job_id,
                    level.value,
                    message,
                    erp_code,
                    json.dumps(metadata, ensure_ascii=False, default=str) if metadata is not None else None,
                    _utc_now().isoformat(),
                ),
            )

    def list_logs(self, job_id: int, limit: int = 100, offset: int = 0) -> list[SyncLogEntry]:
        with connection_scope(self.db_path) as connection:
            rows = connection.execute(
                """
                SELECT id, sync_job_id, level, message, employee_erp_code, metadata, created_at
                FROM sync_log
                WHERE sync_job_id = ?
                ORDER BY id DESC
                LIMIT ? OFFSET ?
                """,
                (job_id, limit, offset),
            ).fetchall()
        return [_row_to_log(r) for r in rows]
