"""Read-side models: query inputs, item pages, folders, and tags."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

MAX_PAGE_SIZE = 1000


class Scope(str, Enum):
    """Breadth selector for queries and bulk mutations."""

    NEWSFEED = "newsfeed"
    FEED = "feed"
    FOLDER = "folder"


class SearchMode(str, Enum):
    """Substring matching or the FTS5 token index."""

    BASIC = "basic"
    FTS = "fts"


class SortOrder(str, Enum):
    NEWEST = "newest"
    OLDEST = "oldest"


@dataclass(slots=True)
class ItemQuery:
    """All filters accepted by the item query engine."""

    scope: Scope = Scope.NEWSFEED
    feed_id: int | None = None
    folder_id: str | None = None
    unread_only: bool = False
    muted_included: bool = False
    search: str | None = None
    search_mode: SearchMode = SearchMode.FTS
    tag_ids: tuple[int, ...] = ()
    sort: SortOrder = SortOrder.NEWEST
    unread_first: bool = False
    limit: int | None = None
    cursor: str | None = None


@dataclass(slots=True)
class TagView:
    id: int
    name: str
    created_at: datetime
    updated_at: datetime
    usage_count: int | None = None


@dataclass(slots=True)
class ItemView:
    """One item with its per-user state and tag set."""

    id: int
    feed_id: int
    guid: str | None
    title: str
    link: str | None
    published_at: datetime | None
    author: str | None
    snippet: str | None
    content: str | None
    readable_content: str | None
    content_fetched_at: datetime | None
    image_url: str | None
    created_at: datetime
    feed_title: str | None = None
    is_read: bool = False
    saved: bool = False
    saved_at: datetime | None = None
    unsaved_at: datetime | None = None
    tags: list[TagView] = field(default_factory=list)


@dataclass(slots=True)
class ItemPage:
    items: list[ItemView]
    next_cursor: str | None


@dataclass(slots=True)
class FolderView:
    """Folder with unread totals aggregated over its whole subtree."""

    id: str
    name: str
    parent_id: str | None
    position: int
    created_at: datetime
    updated_at: datetime
    unread_count: int = 0


@dataclass(slots=True)
class FeedSummary:
    """Unread totals for badge-style clients."""

    total_unread: int
    unread_by_feed: dict[int, int]
