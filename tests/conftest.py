from __future__ import annotations

from pathlib import Path

import pytest

from ess_sync.core.config import Settings
from ess_sync.db.session import init_db
from ess_sync.services.audit_service import AuditService
from ess_sync.services.backup_service import BackupService
from ess_sync.services.job_manager import JobManager
from ess_sync.services.job_repository import JobRepository
from ess_sync.services.sync_engine import SyncEngine

from fakes import RecordingNotifications


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    path = tmp_path / "internal.db"
    init_db(path)
    return path


@pytest.fixture
def repository(db_path: Path) -> JobRepository:
    return JobRepository(db_path)


@pytest.fixture
def settings(tmp_path: Path, db_path: Path) -> Settings:
    return Settings(
        _env_file=None,
        internal_db_path=db_path,
        backup_dir=tmp_path / "backups",
        sync_page_size=100,
        auto_backup_before_sync=True,
        scheduled_sync_enabled=True,
        notification_webhook_url="",
    )


@pytest.fixture
def notifications() -> RecordingNotifications:
    return RecordingNotifications()


@pytest.fixture
def make_manager(repository, settings, db_path, tmp_path, notifications):
    def _make(
        edm,
        ess,
        backup_exporter=None,
        settings_override: Settings | None = None,
        repository_override: JobRepository | None = None,
        audit_override: AuditService | None = None,
    ) -> JobManager:
        repo = repository_override or repository
        return JobManager(
            repository=repo,
            engine=SyncEngine(edm, ess, repo),
            backup_service=BackupService(backup_exporter or ess, tmp_path / "backups", db_path),
            audit_service=audit_override or AuditService(db_path),
            notification_service=notifications,
            settings=settings_override or settings,
        )

    return _make
