"""Shared database handle used by every repository."""

from __future__ import annotations

from pathlib import Path

from sqlmodel import Session

from newsdesk.storage.alembic_runner import upgrade_head
from newsdesk.storage.common import build_sqlite_engine

DEFAULT_BUSY_TIMEOUT_MS = 5000


class Database:
    """Owns the SQLite engine and schema lifecycle."""

    def __init__(self, db_path: Path, *, busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS) -> None:
        self.db_path = db_path
        self.engine = build_sqlite_engine(db_path=db_path, busy_timeout_ms=busy_timeout_ms)

    def init_schema(self) -> None:
        if self.db_path.parent != Path():
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        upgrade_head(self.db_path)

    def session(self) -> Session:
        return Session(self.engine, expire_on_commit=False)

    def close(self) -> None:
        self.engine.dispose()
