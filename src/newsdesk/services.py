"""Wiring of repositories and services shared by the HTTP app and the CLI."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import timedelta

from newsdesk.config import Settings
from newsdesk.http.fetcher import HttpFetcher
from newsdesk.ingestion.repository import FeedRepository
from newsdesk.ingestion.retention import RetentionService
from newsdesk.ingestion.services.fetch_service import FeedRefreshService
from newsdesk.ingestion.sources.base import FeedSource
from newsdesk.ingestion.sources.rss import RssSource
from newsdesk.opml import OpmlService
from newsdesk.reader.content_service import ReadableContentService
from newsdesk.reader.folders import FolderRepository
from newsdesk.reader.query import ItemQueryEngine
from newsdesk.reader.repository import ItemStateRepository
from newsdesk.reader.settings_store import SettingsStore
from newsdesk.reader.tags import TagRepository
from newsdesk.storage.database import Database


@dataclass(slots=True)
class Services:
    """Everything a request handler or CLI command needs, over one database."""

    settings: Settings
    db: Database
    fetcher: HttpFetcher
    feeds: FeedRepository
    folders: FolderRepository
    tags: TagRepository
    queries: ItemQueryEngine
    state: ItemStateRepository
    reader_settings: SettingsStore
    refresher: FeedRefreshService
    retention: RetentionService
    content: ReadableContentService
    opml: OpmlService

    def close(self) -> None:
        self.fetcher.close()
        self.db.close()


def build_services(
    settings: Settings,
    *,
    fetcher: HttpFetcher | None = None,
    source: FeedSource | None = None,
) -> Services:
    """Open the database, apply migrations, and assemble the services."""

    db = Database(settings.db_path)
    db.init_schema()
    http = fetcher or HttpFetcher(
        timeout_seconds=settings.fetch.timeout_seconds,
        max_retries=settings.fetch.max_retries,
    )
    feeds = FeedRepository(db)
    folders = FolderRepository(db)
    queries = ItemQueryEngine(db)
    state = ItemStateRepository(db)
    reader_settings = SettingsStore(
        db,
        default_refresh_minutes=settings.scheduler.refresh_minutes,
    )

    def content_fetch_enabled() -> bool:
        if not settings.fetch.content_fetch_enabled:
            return False
        return reader_settings.get().content_fetch_enabled

    return Services(
        settings=settings,
        db=db,
        fetcher=http,
        feeds=feeds,
        folders=folders,
        tags=TagRepository(db),
        queries=queries,
        state=state,
        reader_settings=reader_settings,
        refresher=FeedRefreshService(source=source or RssSource(http), repository=feeds),
        retention=RetentionService(
            repository=feeds,
            settings=reader_settings,
            unsave_grace=timedelta(hours=settings.scheduler.retention_unsave_grace_hours),
        ),
        content=ReadableContentService(
            fetcher=http,
            queries=queries,
            state=state,
            enabled=content_fetch_enabled,
        ),
        opml=OpmlService(feeds=feeds, folders=folders),
    )


@contextmanager
def open_services(settings: Settings) -> Iterator[Services]:
    services = build_services(settings)
    try:
        yield services
    finally:
        services.close()
