from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from ess_sync.core.config import get_settings


def get_connection(db_path: Path | None = None) -> sqlite3.Connection:
    path = db_path or get_settings().internal_db_path
    connection = sqlite3.connect(path, timeout=30)
    connection.row_factory = sqlite3.Row
    return connection


@contextmanager
def connection_scope(db_path: Path | None = None) -> Iterator[sqlite3.Connection]:
    """Commit on success, roll back on error, always close."""
    connection = get_connection(db_path)
    try:
        with connection:
            yield connection
    finally:
        connection.close()


def _column_exists(conn: sqlite3.Connection, table: str, column: str) -> bool:
    rows = conn.execute(f"PRAGMA table_info({table})").fetchall()
    return any(r["name"] == column for r in rows)


def init_db(db_path: Path | None = None) -> None:
    path = db_path or get_settings().internal_db_path
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    with connection_scope(path) as connection:
        connection.execute(
            """
            CREATE TABLE IF NOT EXISTS sync_job (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                job_name TEXT NOT NULL,
                type TEXT NOT NULL DEFAULT 'manual',
                status TEXT NOT NULL DEFAULT 'pending',
                started_by TEXT,
                started_at TEXT,
                completed_at TEXT,
                records_processed INTEGER NOT NULL DEFAULT 0,
                records_success INTEGER NOT NULL DEFAULT 0,
                records_failed INTEGER NOT NULL DEFAULT 0,
                error_message TEXT,
                sync_config TEXT DEFAULT '{}',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )

        # Add sync_config column if missing (migration)
        if not _column_exists(connection, "sync_job", "sync_config"):
            connection.execute("ALTER TABLE sync_job ADD COLUMN sync_config TEXT DEFAULT '{}'")

        connection.execute("CREATE INDEX IF NOT EXISTS ix_sync_job_status ON sync_job (status)")

        connection.execute(
            """
            CREATE TABLE IF NOT EXISTS sync_log (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                sync_job_id INTEGER NOT NULL REFERENCES sync_job (id),
                level TEXT NOT NULL DEFAULT 'info',
                message TEXT NOT NULL,
                employee_erp_code TEXT,
                metadata TEXT,
                created_at TEXT NOT NULL
            )
            """
        )
        connection.execute("CREATE INDEX IF NOT EXISTS ix_sync_log_job ON sync_log (sync_job_id)")

        connection.execute(
            """
            CREATE TABLE IF NOT EXISTS audit_log (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT,
                action TEXT NOT NULL,
                resource_type TEXT NOT NULL,
                resource_id TEXT,
                metadata TEXT,
                created_at TEXT NOT NULL
            )
            """
        )

        connection.execute(
            """
            CREATE TABLE IF NOT EXISTS backup_record (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                backup_name TEXT NOT NULL,
                type TEXT NOT NULL DEFAULT 'manual',
                status TEXT NOT NULL DEFAULT 'in_progress',
                file_path TEXT NOT NULL,
                file_size INTEGER,
                record_count INTEGER NOT NULL DEFAULT 0,
                created_by TEXT NOT NULL,
                completed_at TEXT,
                error_message TEXT,
                created_at TEXT NOT NULL
            )
            """
        )
        connection.commit()
