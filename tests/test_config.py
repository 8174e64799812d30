from __future__ import annotations

import pytest
from pydantic import ValidationError

from ess_sync.core.config import Settings


def test_defaults() -> None:
    settings = Settings(_env_file=None)

    assert settings.sync_page_size == 500
    assert settings.scheduled_sync_cron == "0 1 * * *"
    assert settings.scheduled_sync_timezone == "Asia/Ulaanbaatar"
    assert settings.auto_backup_before_sync is True


def test_environment_overrides(monkeypatch) -> None:
    monkeypatch.setenv("SYNC_PAGE_SIZE", "1000")
    monkeypatch.setenv("LOG_LEVEL", " debug ")
    monkeypatch.setenv("CORS_ORIGINS", "http://a.example, http://b.example,")

    settings = Settings(_env_file=None)

    assert settings.sync_page_size == 1000
    assert settings.log_level == "DEBUG"
    assert settings.cors_origins_list == ["http://a.example", "http://b.example"]


def test_page_size_bounds(monkeypatch) -> None:
    monkeypatch.setenv("SYNC_PAGE_SIZE", "50")
    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_missing_connection_strings_are_named() -> None:
    with pytest.raises(ValueError) as info:
        Settings(_env_file=None, ess_database_url="postgresql://ess").validate_for_production()

    assert "EDM_DATABASE_URL" in str(info.value)
    assert "ESS_DATABASE_URL" not in str(info.value)
