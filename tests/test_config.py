from __future__ import annotations

from pathlib import Path

import allure
import pytest

from newsdesk.config import SchedulerSettings, ServerSettings, Settings

pytestmark = [
    allure.epic("Configuration"),
    allure.feature("Environment settings"),
]


def test_from_env_uses_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "NEWSDESK_DB_PATH",
        "NEWSDESK_REFRESH_MINUTES",
        "NEWSDESK_SCHEDULER_ENABLED",
        "NEWSDESK_CONTENT_FETCH_ENABLED",
        "NEWSDESK_PORT",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings.db_path == Path(".newsdesk.db")
    assert settings.scheduler.refresh_minutes == 10
    assert settings.scheduler.enabled is True
    assert settings.fetch.content_fetch_enabled is True
    assert settings.server.port == 3000
    settings.validate()


def test_from_env_reads_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("NEWSDESK_DB_PATH", str(tmp_path / "reader.db"))
    monkeypatch.setenv("NEWSDESK_REFRESH_MINUTES", "3")
    monkeypatch.setenv("NEWSDESK_SCHEDULER_ENABLED", "off")
    monkeypatch.setenv("NEWSDESK_CONTENT_FETCH_ENABLED", "0")
    monkeypatch.setenv("NEWSDESK_FETCH_TIMEOUT_SECONDS", "2.5")

    settings = Settings.from_env()

    assert settings.db_path == tmp_path / "reader.db"
    assert settings.scheduler.refresh_minutes == 3
    assert settings.scheduler.enabled is False
    assert settings.fetch.content_fetch_enabled is False
    assert settings.fetch.timeout_seconds == 2.5


def test_explicit_db_path_wins_over_environment(
    monkeypatch: pytest.MonkeyPatch,
    tmp_path: Path,
) -> None:
    monkeypatch.setenv("NEWSDESK_DB_PATH", str(tmp_path / "env.db"))

    assert Settings.from_env(tmp_path / "cli.db").db_path == tmp_path / "cli.db"


def test_invalid_boolean_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NEWSDESK_SCHEDULER_ENABLED", "maybe")

    with pytest.raises(ValueError, match="NEWSDESK_SCHEDULER_ENABLED"):
        Settings.from_env()


@pytest.mark.parametrize(
    ("settings", "message"),
    [
        (Settings(scheduler=SchedulerSettings(refresh_minutes=0)), "NEWSDESK_REFRESH_MINUTES"),
        (
            Settings(scheduler=SchedulerSettings(retention_sweep_minutes=0)),
            "NEWSDESK_RETENTION_SWEEP_MINUTES",
        ),
        (Settings(server=ServerSettings(port=70000)), "NEWSDESK_PORT"),
        (Settings(server=ServerSettings(max_upload_mb=0)), "NEWSDESK_MAX_UPLOAD_MB"),
    ],
)
def test_validate_rejects_out_of_range_values(settings: Settings, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        settings.validate()
