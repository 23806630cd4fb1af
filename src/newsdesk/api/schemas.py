"""Wire models for the HTTP API; field names are camelCase on the wire."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr
from pydantic.alias_generators import to_camel

from newsdesk.reader.models import Scope


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class RequestModel(ApiModel):
    model_config = ConfigDict(extra="forbid")


class ErrorResponse(ApiModel):
    message: str
    code: str


class FeedOut(ApiModel):
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
    unread_count: int


class FeedCreate(RequestModel):
    url: StrictStr
    title: StrictStr | None = None
    folder_id: StrictStr | None = None


class FeedPatch(RequestModel):
    title: StrictStr | None = None
    url: StrictStr | None = None
    enabled: StrictBool | None = None
    muted: StrictBool | None = None
    folder_id: StrictStr | None = None


class FeedMove(RequestModel):
    feed_ids: list[StrictInt]
    folder_id: StrictStr | None = None


class CreatedId(ApiModel):
    id: int | str


class RefreshOut(ApiModel):
    feed_id: int
    status: str
    inserted: int
    skipped_entries: int


class TagOut(ApiModel):
    id: int
    name: str
    created_at: datetime
    updated_at: datetime
    usage_count: int | None = None


class ItemOut(ApiModel):
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
    feed_title: str | None
    is_read: bool
    saved: bool
    saved_at: datetime | None
    unsaved_at: datetime | None
    tags: list[TagOut]


class ItemPageOut(ApiModel):
    items: list[ItemOut]
    next_cursor: str | None


class ReadBody(RequestModel):
    is_read: StrictBool


class SaveBody(RequestModel):
    saved: StrictBool


class MarkAllReadBody(RequestModel):
    scope: Scope = Scope.NEWSFEED
    feed_id: StrictInt | None = None
    folder_id: StrictStr | None = None
    before_published_at: datetime | None = None


class MarkedOut(ApiModel):
    marked: int


class TagsBody(RequestModel):
    add: list[StrictInt | StrictStr] = Field(default_factory=list)
    remove: list[StrictInt | StrictStr] = Field(default_factory=list)


class ContentOut(ApiModel):
    ok: bool
    readable_content: str | None
    message: str | None = None


class FolderOut(ApiModel):
    id: str
    name: str
    parent_id: str | None
    position: int
    created_at: datetime
    updated_at: datetime
    unread_count: int


class FolderCreate(RequestModel):
    name: StrictStr
    parent_id: StrictStr | None = None


class FolderPatch(RequestModel):
    name: StrictStr | None = None
    parent_id: StrictStr | None = None
    position: StrictInt | None = None


class FolderDeleted(ApiModel):
    moved_feeds: int


class TagCreate(RequestModel):
    name: StrictStr


class TagPatch(RequestModel):
    name: StrictStr


class TagMerge(RequestModel):
    from_tag_ids: list[StrictInt]
    into_tag_id: StrictInt


class SummaryOut(ApiModel):
    total_unread: int
    unread_by_feed: dict[int, int]


class OpmlImportOut(ApiModel):
    discovered: int
    created: int
    created_ids: list[int]
