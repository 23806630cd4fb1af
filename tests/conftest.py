"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Iterator
from datetime import UTC, datetime
from pathlib import Path

import pytest

from newsdesk.ingestion.models import FeedEntry, FeedView, NormalizedItem, ParsedFeed
from newsdesk.ingestion.repository import FeedRepository
from newsdesk.ingestion.sources.base import SourceError
from newsdesk.reader.folders import FolderRepository
from newsdesk.reader.query import ItemQueryEngine
from newsdesk.reader.repository import ItemStateRepository
from newsdesk.reader.settings_store import SettingsStore
from newsdesk.reader.tags import TagRepository
from newsdesk.storage.database import Database


class FakeSource:
    """Feed source returning canned documents per URL, in call order."""

    def __init__(self) -> None:
        self.responses: dict[str, list[ParsedFeed | SourceError]] = {}
        self.calls: list[str] = []

    def queue(self, url: str, *responses: ParsedFeed | SourceError) -> None:
        self.responses.setdefault(url, []).extend(responses)

    def fetch(self, url: str) -> ParsedFeed:
        self.calls.append(url)
        pending = self.responses.get(url) or []
        if not pending:
            return ParsedFeed(title=None, site_url=None, entries=[])
        response = pending.pop(0) if len(pending) > 1 else pending[0]
        if isinstance(response, SourceError):
            raise response
        return response


def entry(guid: str | None, *, title: str | None = None, **fields: object) -> FeedEntry:
    fields.setdefault("link", f"https://example.com/{guid}")
    return FeedEntry(guid=guid, title=title or f"Entry {guid}", **fields)  # type: ignore[arg-type]


def parsed(*entries: FeedEntry) -> ParsedFeed:
    return ParsedFeed(title="Example", site_url="https://example.com", entries=list(entries))


def item(
    guid: str,
    *,
    published_at: datetime | None = None,
    title: str | None = None,
    content: str | None = None,
) -> NormalizedItem:
    return NormalizedItem(
        guid=guid,
        title=title or f"Item {guid}",
        link=f"https://example.com/{guid}",
        published_at=published_at,
        published_raw=published_at.isoformat() if published_at else None,
        author=None,
        snippet=content,
        content=content,
        image_url=None,
    )


def at(day: int, hour: int = 12) -> datetime:
    return datetime(2026, 1, day, hour, tzinfo=UTC)


@pytest.fixture()
def db(tmp_path: Path) -> Iterator[Database]:
    database = Database(tmp_path / "newsdesk.db")
    database.init_schema()
    yield database
    database.close()


@pytest.fixture()
def feeds(db: Database) -> FeedRepository:
    return FeedRepository(db)


@pytest.fixture()
def folders(db: Database) -> FolderRepository:
    return FolderRepository(db)


@pytest.fixture()
def tags(db: Database) -> TagRepository:
    return TagRepository(db)


@pytest.fixture()
def queries(db: Database) -> ItemQueryEngine:
    return ItemQueryEngine(db)


@pytest.fixture()
def state(db: Database) -> ItemStateRepository:
    return ItemStateRepository(db)


@pytest.fixture()
def settings_store(db: Database) -> SettingsStore:
    return SettingsStore(db, default_refresh_minutes=10)


@pytest.fixture()
def fake_source() -> FakeSource:
    return FakeSource()


@pytest.fixture()
def seed_feed(feeds: FeedRepository):
    """Create a source and store the given items for it."""

    counter = iter(range(1, 10_000))

    def _seed(
        *items: NormalizedItem,
        folder_id: str | None = None,
        muted: bool = False,
        title: str | None = None,
    ) -> FeedView:
        feed = feeds.create_feed(
            url=f"https://feeds.example.com/{next(counter)}.xml",
            title=title,
            folder_id=folder_id,
        )
        if muted:
            feeds.update_feed(feed.id, {"muted": True})
        feeds.upsert_items(feed.id, list(items))
        return feeds.get_feed(feed.id)

    return _seed
