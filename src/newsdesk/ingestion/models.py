"""Domain models for feed parsing, normalization, and refresh outcomes."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class FetchStatus(str, Enum):
    """Outcome recorded on a source after a fetch attempt."""

    OK = "ok"
    ERROR = "error"


@dataclass(slots=True)
class FeedEntry:
    """One entry as read from an RSS/Atom/RDF document, before normalization."""

    guid: str | None = None
    link: str | None = None
    title: str | None = None
    author: str | None = None
    published_raw: str | None = None
    summary: str | None = None
    content: str | None = None
    enclosure_url: str | None = None
    media_content_url: str | None = None
    media_thumbnail_url: str | None = None
    raw_payload: dict[str, object] = field(default_factory=dict)


@dataclass(slots=True)
class ParsedFeed:
    """Feed-level metadata plus its entries."""

    title: str | None
    site_url: str | None
    entries: list[FeedEntry]


@dataclass(slots=True)
class NormalizedItem:
    """Canonical item record ready for the deduplicating store."""

    guid: str | None
    title: str
    link: str | None
    published_at: datetime | None
    published_raw: str | None
    author: str | None
    snippet: str | None
    content: str | None
    image_url: str | None
    raw_json: str | None = None


@dataclass(slots=True)
class UpsertResult:
    """Counts from one per-source insert-if-absent batch."""

    inserted: int
    skipped: int


@dataclass(slots=True)
class FeedRefreshResult:
    """Outcome of refreshing one source."""

    feed_id: int
    status: FetchStatus
    inserted: int = 0
    skipped_entries: int = 0
    error: str | None = None


@dataclass(slots=True)
class RefreshSummary:
    """Aggregated outcome of one poll across all sources."""

    results: list[FeedRefreshResult] = field(default_factory=list)

    @property
    def ok_count(self) -> int:
        return sum(1 for result in self.results if result.status == FetchStatus.OK)

    @property
    def error_count(self) -> int:
        return sum(1 for result in self.results if result.status == FetchStatus.ERROR)

    @property
    def inserted_count(self) -> int:
        return sum(result.inserted for result in self.results)


@dataclass(slots=True)
class FeedView:
    """Source row plus its unread counter."""

    id: int
    title: str
    url: str
    enabled: bool
    muted: bool
    folder_id: str | None
    position: int
    created_at: datetime
    updated_at: datetime
    last_fetched_at: datetime | None
    last_fetch_status: str | None
    last_fetch_error: str | None
    unread_count: int = 0
