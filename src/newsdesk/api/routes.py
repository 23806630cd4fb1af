"""HTTP routes; handlers are thin adapters over the repositories and services."""

from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Query, Request, Response, status
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from newsdesk.api.schemas import (
    ContentOut,
    CreatedId,
    FeedCreate,
    FeedMove,
    FeedOut,
    FeedPatch,
    FolderCreate,
    FolderDeleted,
    FolderOut,
    FolderPatch,
    ItemOut,
    ItemPageOut,
    MarkAllReadBody,
    MarkedOut,
    OpmlImportOut,
    ReadBody,
    RefreshOut,
    SaveBody,
    SummaryOut,
    TagCreate,
    TagMerge,
    TagOut,
    TagPatch,
    TagsBody,
)
from newsdesk.errors import ValidationError
from newsdesk.ingestion.scheduler import RefreshScheduler
from newsdesk.ingestion.sources.base import SourceError
from newsdesk.reader.models import ItemQuery, Scope, SearchMode, SortOrder
from newsdesk.reader.tags import tag_ref
from newsdesk.services import Services

logger = logging.getLogger(__name__)

router = APIRouter()


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_scheduler(request: Request) -> RefreshScheduler:
    return request.app.state.scheduler


ServicesDep = Annotated[Services, Depends(get_services)]
SchedulerDep = Annotated[RefreshScheduler, Depends(get_scheduler)]


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


# Feeds


@router.get("/feeds", response_model=list[FeedOut])
def list_feeds(services: ServicesDep) -> list[FeedOut]:
    return [FeedOut.model_validate(feed) for feed in services.feeds.list_feeds()]


@router.post("/feeds", response_model=CreatedId, status_code=status.HTTP_201_CREATED)
def create_feed(body: FeedCreate, services: ServicesDep) -> CreatedId:
    feed = services.feeds.create_feed(url=body.url, title=body.title, folder_id=body.folder_id)
    return CreatedId(id=feed.id)


@router.post("/feeds/move")
def move_feeds(body: FeedMove, services: ServicesDep) -> dict[str, int]:
    return {"moved": services.feeds.move_feeds(body.feed_ids, body.folder_id)}


@router.patch("/feeds/{feed_id}", response_model=FeedOut)
def update_feed(feed_id: int, body: FeedPatch, services: ServicesDep) -> FeedOut:
    feed = services.feeds.update_feed(feed_id, body.model_dump(exclude_unset=True))
    return FeedOut.model_validate(feed)


@router.delete("/feeds/{feed_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_feed(feed_id: int, services: ServicesDep) -> Response:
    services.feeds.delete_feed(feed_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/feeds/{feed_id}/refresh", response_model=RefreshOut)
def refresh_feed(feed_id: int, services: ServicesDep) -> RefreshOut | JSONResponse:
    try:
        result = services.refresher.refresh_feed_by_id(feed_id)
    except SourceError as error:
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"message": error.message, "code": error.code},
        )
    return RefreshOut(
        feed_id=result.feed_id,
        status=result.status.value,
        inserted=result.inserted,
        skipped_entries=result.skipped_entries,
    )


@router.post("/refresh", status_code=status.HTTP_202_ACCEPTED)
def refresh_all(scheduler: SchedulerDep) -> dict[str, str]:
    scheduler.trigger_poll()
    return {"status": "accepted"}


# Items


@router.get("/items", response_model=ItemPageOut)
def list_items(
    services: ServicesDep,
    scope: Scope = Scope.NEWSFEED,
    feed_id: Annotated[int | None, Query(alias="feedId")] = None,
    folder_id: Annotated[str | None, Query(alias="folderId")] = None,
    unread_only: Annotated[bool, Query(alias="unreadOnly")] = False,
    muted_included: Annotated[bool, Query(alias="mutedIncluded")] = False,
    search: str | None = None,
    search_mode: Annotated[SearchMode, Query(alias="searchMode")] = SearchMode.FTS,
    tag_ids: Annotated[str | None, Query(alias="tagIds")] = None,
    sort: SortOrder = SortOrder.NEWEST,
    unread_first: Annotated[bool, Query(alias="unreadFirst")] = False,
    limit: int | None = None,
    cursor: str | None = None,
) -> ItemPageOut:
    page = services.queries.query(
        ItemQuery(
            scope=scope,
            feed_id=feed_id,
            folder_id=folder_id,
            unread_only=unread_only,
            muted_included=muted_included,
            search=search,
            search_mode=search_mode,
            tag_ids=_parse_tag_ids(tag_ids),
            sort=sort,
            unread_first=unread_first,
            limit=limit,
            cursor=cursor,
        ),
    )
    return ItemPageOut.model_validate(page)


@router.post("/items/markAllRead", response_model=MarkedOut)
def mark_all_read(body: MarkAllReadBody, services: ServicesDep) -> MarkedOut:
    marked = services.state.mark_all_read(
        scope=body.scope,
        feed_id=body.feed_id,
        folder_id=body.folder_id,
        published_before=body.before_published_at,
    )
    return MarkedOut(marked=marked)


@router.get("/items/{item_id}", response_model=ItemOut)
def get_item(item_id: int, services: ServicesDep) -> ItemOut:
    return ItemOut.model_validate(services.queries.get_item(item_id))


@router.post("/items/{item_id}/read", response_model=ItemOut)
def mark_read(item_id: int, body: ReadBody, services: ServicesDep) -> ItemOut:
    services.state.mark_read(item_id, body.is_read)
    return ItemOut.model_validate(services.queries.get_item(item_id))


@router.post("/items/{item_id}/save", response_model=ItemOut)
def save_item(item_id: int, body: SaveBody, services: ServicesDep) -> ItemOut:
    services.state.set_saved(item_id, body.saved)
    return ItemOut.model_validate(services.queries.get_item(item_id))


@router.post("/items/{item_id}/tags", response_model=ItemOut)
def update_item_tags(item_id: int, body: TagsBody, services: ServicesDep) -> ItemOut:
    services.state.update_tags(
        item_id,
        add=[tag_ref(value) for value in body.add],
        remove=[tag_ref(value) for value in body.remove],
    )
    return ItemOut.model_validate(services.queries.get_item(item_id))


@router.post("/items/{item_id}/fetchContent", response_model=ContentOut)
def fetch_content(item_id: int, services: ServicesDep) -> ContentOut:
    return ContentOut.model_validate(services.content.fetch_for_item(item_id))


# Folders


@router.get("/folders", response_model=list[FolderOut])
def list_folders(services: ServicesDep) -> list[FolderOut]:
    return [FolderOut.model_validate(folder) for folder in services.folders.list_folders()]


@router.post("/folders", response_model=FolderOut, status_code=status.HTTP_201_CREATED)
def create_folder(body: FolderCreate, services: ServicesDep) -> FolderOut:
    folder = services.folders.create_folder(name=body.name, parent_id=body.parent_id)
    return FolderOut.model_validate(folder)


@router.patch("/folders/{folder_id}", response_model=FolderOut)
def update_folder(folder_id: str, body: FolderPatch, services: ServicesDep) -> FolderOut:
    folder = services.folders.update_folder(folder_id, body.model_dump(exclude_unset=True))
    return FolderOut.model_validate(folder)


@router.delete("/folders/{folder_id}", response_model=FolderDeleted)
def delete_folder(folder_id: str, services: ServicesDep) -> FolderDeleted:
    return FolderDeleted(moved_feeds=services.folders.delete_folder(folder_id))


# Tags


@router.get("/tags", response_model=list[TagOut])
def list_tags(services: ServicesDep) -> list[TagOut]:
    return [TagOut.model_validate(tag) for tag in services.tags.list_tags()]


@router.post("/tags", response_model=TagOut, status_code=status.HTTP_201_CREATED)
def create_tag(body: TagCreate, services: ServicesDep) -> TagOut:
    return TagOut.model_validate(services.tags.create_tag(body.name))


@router.post("/tags/merge", response_model=TagOut)
def merge_tags(body: TagMerge, services: ServicesDep) -> TagOut:
    return TagOut.model_validate(services.tags.merge_tags(body.from_tag_ids, body.into_tag_id))


@router.patch("/tags/{tag_id}", response_model=TagOut)
def rename_tag(tag_id: int, body: TagPatch, services: ServicesDep) -> TagOut:
    return TagOut.model_validate(services.tags.rename_tag(tag_id, body.name))


@router.delete("/tags/{tag_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_tag(tag_id: int, services: ServicesDep) -> Response:
    services.tags.delete_tag(tag_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Settings and summary


@router.get("/settings")
def get_settings(services: ServicesDep) -> dict[str, object]:
    return services.reader_settings.get().to_wire()


@router.patch("/settings")
def patch_settings(
    services: ServicesDep,
    scheduler: SchedulerDep,
    changes: Annotated[dict[str, Any], Body()],
) -> dict[str, object]:
    updated = services.reader_settings.patch(changes)
    if "refreshMinutes" in changes:
        scheduler.reconfigure(updated.refresh_minutes)
    return updated.to_wire()


@router.get("/summary", response_model=SummaryOut)
def summary(services: ServicesDep) -> SummaryOut:
    return SummaryOut.model_validate(services.state.summary())


# OPML


@router.post("/opml/import", response_model=OpmlImportOut)
async def import_opml(request: Request) -> OpmlImportOut:
    services: Services = request.app.state.services
    payload = await request.body()
    max_bytes = services.settings.server.max_upload_mb * 1024 * 1024
    if len(payload) > max_bytes:
        raise ValidationError(
            message=f"OPML payload exceeds {services.settings.server.max_upload_mb} MB",
            code="payload_too_large",
        )
    if not payload.strip():
        raise ValidationError(message="OPML payload required (text/xml)")
    result = await run_in_threadpool(services.opml.import_document, payload)
    return OpmlImportOut.model_validate(result)


@router.get("/opml/export")
def export_opml(services: ServicesDep) -> Response:
    return Response(
        content=services.opml.export_document(),
        media_type="text/xml",
        headers={"Content-Disposition": 'attachment; filename="newsdesk.opml"'},
    )


def _parse_tag_ids(raw: str | None) -> tuple[int, ...]:
    if not raw:
        return ()
    try:
        return tuple(int(part) for part in raw.split(",") if part.strip())
    except ValueError as error:
        raise ValidationError(message="tagIds must be comma-separated integers") from error
