"""Runtime configuration for the aggregator process."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_REFRESH_MINUTES = 10


@dataclass(slots=True)
class FetchSettings:
    """Network settings for feed and readable-content downloads."""

    timeout_seconds: float = 15.0
    max_retries: int = 2
    content_fetch_enabled: bool = True


@dataclass(slots=True)
class SchedulerSettings:
    """Background refresh and retention sweep settings."""

    enabled: bool = True
    refresh_minutes: int = DEFAULT_REFRESH_MINUTES
    retention_sweep_minutes: int = 360
    retention_unsave_grace_hours: int = 168


@dataclass(slots=True)
class ServerSettings:
    """HTTP listener settings."""

    host: str = "127.0.0.1"
    port: int = 3000
    max_upload_mb: int = 5


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    db_path: Path = Path(".newsdesk.db")
    fetch: FetchSettings = field(default_factory=FetchSettings)
    scheduler: SchedulerSettings = field(default_factory=SchedulerSettings)
    server: ServerSettings = field(default_factory=ServerSettings)

    @classmethod
    def from_env(cls, db_path: Path | None = None) -> Settings:
        """Load settings from environment with sane defaults for local development."""

        return cls(
            db_path=db_path or Path(os.getenv("NEWSDESK_DB_PATH", ".newsdesk.db")),
            fetch=FetchSettings(
                timeout_seconds=float(os.getenv("NEWSDESK_FETCH_TIMEOUT_SECONDS", "15")),
                max_retries=int(os.getenv("NEWSDESK_FETCH_MAX_RETRIES", "2")),
                content_fetch_enabled=_env_bool("NEWSDESK_CONTENT_FETCH_ENABLED", default=True),
            ),
            scheduler=SchedulerSettings(
                enabled=_env_bool("NEWSDESK_SCHEDULER_ENABLED", default=True),
                refresh_minutes=int(
                    os.getenv("NEWSDESK_REFRESH_MINUTES", str(DEFAULT_REFRESH_MINUTES)),
                ),
                retention_sweep_minutes=int(
                    os.getenv("NEWSDESK_RETENTION_SWEEP_MINUTES", "360"),
                ),
                retention_unsave_grace_hours=int(
                    os.getenv("NEWSDESK_RETENTION_UNSAVE_GRACE_HOURS", "168"),
                ),
            ),
            server=ServerSettings(
                host=os.getenv("NEWSDESK_HOST", "127.0.0.1"),
                port=int(os.getenv("NEWSDESK_PORT", "3000")),
                max_upload_mb=int(os.getenv("NEWSDESK_MAX_UPLOAD_MB", "5")),
            ),
        )

    def validate(self) -> None:
        """Raise configuration error if intervals or limits are out of range."""

        if self.fetch.timeout_seconds <= 0:
            raise ValueError("NEWSDESK_FETCH_TIMEOUT_SECONDS must be > 0.")
        if self.fetch.max_retries < 0:
            raise ValueError("NEWSDESK_FETCH_MAX_RETRIES must be >= 0.")
        if self.scheduler.refresh_minutes <= 0:
            raise ValueError("NEWSDESK_REFRESH_MINUTES must be > 0.")
        if self.scheduler.retention_sweep_minutes <= 0:
            raise ValueError("NEWSDESK_RETENTION_SWEEP_MINUTES must be > 0.")
        if self.scheduler.retention_unsave_grace_hours < 0:
            raise ValueError("NEWSDESK_RETENTION_UNSAVE_GRACE_HOURS must be >= 0.")
        if not 0 < self.server.port < 65536:
            raise ValueError(f"NEWSDESK_PORT is out of range: {self.server.port}")
        if self.server.max_upload_mb <= 0:
            raise ValueError("NEWSDESK_MAX_UPLOAD_MB must be > 0.")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
