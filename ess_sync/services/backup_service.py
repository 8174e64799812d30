from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Protocol

from ess_sync.db.session import connection_scope
from ess_sync.services.sync_errors import BackupError


class RowExporter(Protocol):
    def export_rows(self) -> Iterable[dict[str, Any]]: ...


def _utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


class BackupService:
    """Snapshots the ESS employee table to a JSON-lines file before a sync."""

    def __init__(
        self,
        exporter: RowExporter,
        backup_dir: Path,
        db_path: Path | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._exporter = exporter
        self.backup_dir = Path(backup_dir)
        self.db_path = db_path
        self._logger = logger or logging.getLogger(__name__)

    def create_backup(self, tag: str, initiator: str) -> Path:
        started = _utc_now()
        name = f"{tag}_{started.strftime('%Y%m%dT%H%M%S%fZ')}"
        path = self.backup_dir / f"{name}.jsonl"
        backup_id = self._start_record(name, path, initiator, started)

        self._logger.info("Creating backup %s", path)
        count = 0
        try:
            self.backup_dir.mkdir(parents=True, exist_ok=True)
            with path.open("w", encoding="utf-8") as fh:
                for row in self._exporter.export_rows():
                    fh.write(json.dumps(row, ensure_ascii=False, default=str))
                    fh.write("\n")
                    count += 1
        except Exception as exc:
            self._finish_record(backup_id, "failed", count, None, str(exc))
            raise BackupError(f"Backup '{name}' failed: {exc}") from exc

        self._finish_record(backup_id, "completed", count, path.stat().st_size, None)
        self._logger.info("Backup %s completed (%s rows)", name, count)
        return path

    def _start_record(self, name: str, path: Path, initiator: str, started: datetime) -> int:
        with connection_scope(self.db_path) as connection:
            cursor = connection.execute(
                """
                INSERT INTO backup_record (backup_name, type, status, file_path, record_count, created_by, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (name, "full", "in_progress", str(path), 0, initiator, started.isoformat()),
            )
            return cursor.lastrowid

    def _finish_record(
        self,
        backup_id: int,
        status: str,
        record_count: int,
        file_size: int | None,
        error_message: str | None,
    ) -> None:
        with connection_scope(self.db_path) as connection:
            connection.execute(
                """
                UPDATE backup_record
                SET status = ?, record_count = ?, file_size = ?, error_message = ?, completed_at = ?
                WHERE id = ?
                """,
                (status, record_count, file_size, error_message, _utc_now().isoformat(), backup_id),
            )
