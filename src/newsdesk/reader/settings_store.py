"""Typed view over the flat ``settings`` key/value table."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, fields, replace
from datetime import timedelta

from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlmodel import select

from newsdesk.config import DEFAULT_REFRESH_MINUTES
from newsdesk.errors import ValidationError
from newsdesk.storage.common import to_db_datetime, utc_now
from newsdesk.storage.database import Database
from newsdesk.storage.sqlmodel_models import SettingEntry

logger = logging.getLogger(__name__)

VIEW_MODES = ("list", "card", "magazine")
THEMES = ("default", "light", "dark")
RETENTION_HORIZONS: dict[str, timedelta | None] = {
    "off": None,
    "1w": timedelta(weeks=1),
    "1m": timedelta(days=30),
    "1y": timedelta(days=365),
}


@dataclass(slots=True)
class ReaderSettings:
    """Process-wide reader preferences; wire names are the camelCase keys."""

    refresh_minutes: int = DEFAULT_REFRESH_MINUTES
    article_retention: str = "off"
    mark_read_on_open: bool = True
    unread_first_default: bool = False
    default_view_mode: str = "list"
    content_fetch_enabled: bool = True
    content_fetch_max_per_refresh: int = 0
    theme: str = "default"

    def to_wire(self) -> dict[str, object]:
        return {WIRE_NAMES[item.name]: getattr(self, item.name) for item in fields(self)}

    @property
    def retention_horizon(self) -> timedelta | None:
        return RETENTION_HORIZONS.get(self.article_retention)


def _bool(value: object) -> bool:
    if not isinstance(value, bool):
        raise ValueError("must be a boolean")
    return value


def _int_at_least(minimum: int) -> Callable[[object], int]:
    def check(value: object) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueError("must be an integer")
        if value < minimum:
            raise ValueError(f"must be >= {minimum}")
        return value

    return check


def _choice(options: tuple[str, ...]) -> Callable[[object], str]:
    def check(value: object) -> str:
        if value not in options:
            raise ValueError(f"must be one of {', '.join(options)}")
        return str(value)

    return check


WIRE_NAMES = {
    "refresh_minutes": "refreshMinutes",
    "article_retention": "articleRetention",
    "mark_read_on_open": "markReadOnOpen",
    "unread_first_default": "unreadFirstDefault",
    "default_view_mode": "defaultViewMode",
    "content_fetch_enabled": "contentFetchEnabled",
    "content_fetch_max_per_refresh": "contentFetchMaxPerRefresh",
    "theme": "theme",
}
ATTRIBUTE_NAMES = {wire: attribute for attribute, wire in WIRE_NAMES.items()}
VALIDATORS: dict[str, Callable[[object], object]] = {
    "refreshMinutes": _int_at_least(1),
    "articleRetention": _choice(tuple(RETENTION_HORIZONS)),
    "markReadOnOpen": _bool,
    "unreadFirstDefault": _bool,
    "defaultViewMode": _choice(VIEW_MODES),
    "contentFetchEnabled": _bool,
    "contentFetchMaxPerRefresh": _int_at_least(0),
    "theme": _choice(THEMES),
}


class SettingsStore:
    """Reads and patches reader settings stored as JSON values per key."""

    def __init__(
        self,
        db: Database,
        *,
        default_refresh_minutes: int = DEFAULT_REFRESH_MINUTES,
    ) -> None:
        self.db = db
        self.defaults = ReaderSettings(refresh_minutes=default_refresh_minutes)

    def get(self) -> ReaderSettings:
        with self.db.session() as session:
            rows = session.exec(select(SettingEntry)).all()
        settings = replace(self.defaults)
        for row in rows:
            validator = VALIDATORS.get(row.key)
            if validator is None:
                continue
            try:
                value = validator(json.loads(row.value))
            except (json.JSONDecodeError, ValueError):
                logger.warning("Ignoring unparsable stored setting %s=%r", row.key, row.value)
                continue
            setattr(settings, ATTRIBUTE_NAMES[row.key], value)
        return settings

    def patch(self, changes: Mapping[str, object]) -> ReaderSettings:
        """Validate every key first; nothing is written if any key is rejected."""

        validated: dict[str, object] = {}
        for key, value in changes.items():
            validator = VALIDATORS.get(key)
            if validator is None:
                raise ValidationError(message=f"Unknown setting: {key}", code="unknown_setting")
            try:
                validated[key] = validator(value)
            except ValueError as error:
                raise ValidationError(message=f"{key} {error}") from error

        if validated:
            now = to_db_datetime(utc_now())
            with self.db.session() as session:
                for key, value in validated.items():
                    statement = sqlite_insert(SettingEntry).values(
                        key=key,
                        value=json.dumps(value),
                        updated_at=now,
                    )
                    session.exec(
                        statement.on_conflict_do_update(
                            index_elements=["key"],
                            set_={
                                "value": statement.excluded.value,
                                "updated_at": statement.excluded.updated_at,
                            },
                        ),
                    )
                session.commit()
            logger.info("Updated settings: %s", ", ".join(sorted(validated)))
        return self.get()
