from __future__ import annotations

import allure
import pytest
from sqlalchemy import text

from newsdesk.errors import ValidationError
from newsdesk.reader.settings_store import ReaderSettings, SettingsStore
from newsdesk.storage.database import Database

pytestmark = [
    allure.epic("Reader"),
    allure.feature("Settings"),
]


def test_defaults_when_nothing_stored(settings_store: SettingsStore) -> None:
    settings = settings_store.get()

    assert settings == ReaderSettings(refresh_minutes=10)
    assert settings.retention_horizon is None
    assert settings.to_wire()["refreshMinutes"] == 10
    assert settings.to_wire()["articleRetention"] == "off"


def test_patch_persists_and_returns_merged_settings(
    settings_store: SettingsStore,
    db: Database,
) -> None:
    updated = settings_store.patch({"refreshMinutes": 5, "theme": "dark"})

    assert updated.refresh_minutes == 5
    assert updated.theme == "dark"
    assert SettingsStore(db).get().refresh_minutes == 5


def test_unknown_key_rejects_whole_patch(settings_store: SettingsStore) -> None:
    with pytest.raises(ValidationError) as error:
        settings_store.patch({"theme": "dark", "fontSize": 12})

    assert error.value.code == "unknown_setting"
    assert settings_store.get().theme == "default"


@pytest.mark.parametrize(
    "changes",
    [
        {"refreshMinutes": 0},
        {"refreshMinutes": "10"},
        {"refreshMinutes": True},
        {"markReadOnOpen": 1},
        {"articleRetention": "2w"},
        {"defaultViewMode": "grid"},
        {"contentFetchMaxPerRefresh": -1},
    ],
)
def test_invalid_values_are_rejected(settings_store: SettingsStore, changes: dict) -> None:
    with pytest.raises(ValidationError):
        settings_store.patch(changes)

    assert settings_store.get() == ReaderSettings(refresh_minutes=10)


def test_unparsable_stored_value_falls_back_to_default(
    settings_store: SettingsStore,
    db: Database,
) -> None:
    settings_store.patch({"theme": "light"})
    with db.engine.begin() as connection:
        connection.execute(
            text(
                "INSERT INTO settings (key, value, updated_at) "
                "VALUES ('refreshMinutes', 'not json', '2026-01-01 00:00:00')",
            ),
        )

    settings = settings_store.get()

    assert settings.refresh_minutes == 10
    assert settings.theme == "light"
