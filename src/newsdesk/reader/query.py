"""Item query engine: scope, filters, search, ordering, and cursor pagination."""

from __future__ import annotations

import base64
import binascii
import json
import re
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import DateTime, Integer, and_, case, column, false, func, literal, or_, text
from sqlalchemy.sql.elements import ColumnElement
from sqlmodel import Session, col, select

from newsdesk.errors import NotFoundError, ValidationError
from newsdesk.reader.folders import descendant_folder_ids
from newsdesk.reader.models import (
    MAX_PAGE_SIZE,
    ItemPage,
    ItemQuery,
    ItemView,
    Scope,
    SearchMode,
    SortOrder,
    TagView,
)
from newsdesk.reader.tags import tag_view
from newsdesk.storage.common import NULL_PUBLISHED_FLOOR, from_db_datetime
from newsdesk.storage.database import Database
from newsdesk.storage.sqlmodel_models import Feed, Folder, Item, ItemTag, ReadState, Tag

CURSOR_VERSION = 1
_TOKEN_RE = re.compile(r"\w+", re.UNICODE)


@dataclass(frozen=True, slots=True)
class Cursor:
    """Position after the last row of a page.

    ``published_at`` is the sort key with missing dates already mapped to
    the floor value, so both sides of the comparison agree on nulls.
    """

    published_at: datetime
    item_id: int
    sort: SortOrder
    read_rank: int | None = None

    def encode(self) -> str:
        payload = {
            "v": CURSOR_VERSION,
            "p": self.published_at.isoformat(),
            "i": self.item_id,
            "s": self.sort.value,
        }
        if self.read_rank is not None:
            payload["r"] = self.read_rank
        raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
        return base64.urlsafe_b64encode(raw).decode("ascii")

    @classmethod
    def decode(cls, token: str) -> Cursor:
        try:
            raw = base64.urlsafe_b64decode(token.encode("ascii") + b"=" * (-len(token) % 4))
            payload = json.loads(raw.decode("utf-8"))
            if not isinstance(payload, dict) or payload.get("v") != CURSOR_VERSION:
                raise ValueError("unsupported cursor version")
            item_id = payload["i"]
            if not isinstance(item_id, int) or isinstance(item_id, bool):
                raise ValueError("cursor id must be an integer")
            read_rank = payload.get("r")
            if read_rank is not None and read_rank not in (0, 1):
                raise ValueError("cursor read rank must be 0 or 1")
            return cls(
                published_at=datetime.fromisoformat(str(payload["p"])),
                item_id=item_id,
                sort=SortOrder(payload["s"]),
                read_rank=read_rank,
            )
        except (binascii.Error, UnicodeError, ValueError, KeyError, TypeError) as error:
            raise ValidationError(message="Invalid cursor", code="invalid_cursor") from error


def sort_key_column() -> ColumnElement[datetime]:
    return func.coalesce(col(Item.published_at), literal(NULL_PUBLISHED_FLOOR, DateTime()))


def read_rank_column() -> ColumnElement[int]:
    return case((col(ReadState.is_read).is_(True), 1), else_=0)


def scope_condition(
    session: Session,
    *,
    scope: Scope,
    feed_id: int | None,
    folder_id: str | None,
) -> ColumnElement[bool] | None:
    """Predicate over Item/Feed for a scope, or None for the whole newsfeed."""

    if scope == Scope.FEED:
        if feed_id is None:
            raise ValidationError(message="feedId is required when scope is 'feed'")
        if session.get(Feed, feed_id) is None:
            raise NotFoundError(message=f"Feed {feed_id} not found")
        return col(Item.feed_id) == feed_id
    if scope == Scope.FOLDER:
        if not folder_id:
            raise ValidationError(message="folderId is required when scope is 'folder'")
        if session.get(Folder, folder_id) is None:
            raise NotFoundError(message=f"Folder {folder_id} not found")
        return col(Feed.folder_id).in_(descendant_folder_ids(session, folder_id))
    return None


def fts_match_expression(search: str) -> str | None:
    """Turn free text into an FTS5 query of quoted prefix terms (implicit AND)."""

    tokens = _TOKEN_RE.findall(search)
    if not tokens:
        return None
    return " ".join(f'"{token}"*' for token in tokens)


class ItemQueryEngine:
    """Resolves an ``ItemQuery`` into one ordered page plus a continuation cursor."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def query(self, request: ItemQuery) -> ItemPage:
        limit = _effective_limit(request.limit)
        cursor = Cursor.decode(request.cursor) if request.cursor else None
        if cursor is not None:
            if cursor.sort != request.sort:
                raise ValidationError(
                    message="Cursor was issued for a different sort order",
                    code="invalid_cursor",
                )
            if (cursor.read_rank is not None) != request.unread_first:
                raise ValidationError(
                    message="Cursor was issued for a different unreadFirst setting",
                    code="invalid_cursor",
                )

        sort_key = sort_key_column()
        read_rank = read_rank_column()
        with self.db.session() as session:
            conditions: list[ColumnElement[bool]] = []
            scoped = scope_condition(
                session,
                scope=request.scope,
                feed_id=request.feed_id,
                folder_id=request.folder_id,
            )
            if scoped is not None:
                conditions.append(scoped)
            if not request.muted_included:
                conditions.append(col(Feed.muted).is_(False))
            if request.unread_only:
                conditions.append(
                    or_(col(ReadState.item_id).is_(None), col(ReadState.is_read).is_(False)),
                )
            search = (request.search or "").strip()
            if search:
                conditions.append(_search_condition(search, request.search_mode))
            if request.tag_ids:
                tagged = select(ItemTag.item_id).where(col(ItemTag.tag_id).in_(list(request.tag_ids)))
                conditions.append(col(Item.id).in_(tagged))
            if cursor is not None:
                conditions.append(_after_cursor(cursor, sort_key=sort_key, read_rank=read_rank))

            ordering = []
            if request.unread_first:
                ordering.append(read_rank.asc())
            if request.sort == SortOrder.NEWEST:
                ordering.extend([sort_key.desc(), col(Item.id).desc()])
            else:
                ordering.extend([sort_key.asc(), col(Item.id).asc()])

            statement = (
                select(Item, Feed.title, ReadState.is_read)
                .join(Feed, col(Feed.id) == col(Item.feed_id))
                .outerjoin(ReadState, col(ReadState.item_id) == col(Item.id))
                .where(*conditions)
                .order_by(*ordering)
                .limit(limit + 1)
            )
            rows = session.exec(statement).all()

            next_cursor: str | None = None
            if len(rows) > limit:
                rows = rows[:limit]
                last_item, _, last_is_read = rows[-1]
                next_cursor = Cursor(
                    published_at=last_item.published_at or NULL_PUBLISHED_FLOOR,
                    item_id=last_item.id or 0,
                    sort=request.sort,
                    read_rank=(1 if last_is_read else 0) if request.unread_first else None,
                ).encode()

            tags = load_tags(session, [item.id for item, _, _ in rows if item.id is not None])
            items = [
                item_view(item, feed_title=feed_title, is_read=bool(is_read), tags=tags)
                for item, feed_title, is_read in rows
            ]
        return ItemPage(items=items, next_cursor=next_cursor)

    def get_item(self, item_id: int) -> ItemView:
        with self.db.session() as session:
            row = session.exec(
                select(Item, Feed.title, ReadState.is_read)
                .join(Feed, col(Feed.id) == col(Item.feed_id))
                .outerjoin(ReadState, col(ReadState.item_id) == col(Item.id))
                .where(col(Item.id) == item_id),
            ).first()
            if row is None:
                raise NotFoundError(message=f"Item {item_id} not found")
            item, feed_title, is_read = row
            tags = load_tags(session, [item_id])
            return item_view(item, feed_title=feed_title, is_read=bool(is_read), tags=tags)


def load_tags(session: Session, item_ids: list[int]) -> dict[int, list[TagView]]:
    """Bulk-load tag sets for a page in one query."""

    if not item_ids:
        return {}
    rows = session.exec(
        select(ItemTag.item_id, Tag)
        .join(Tag, col(Tag.id) == col(ItemTag.tag_id))
        .where(col(ItemTag.item_id).in_(item_ids))
        .order_by(col(Tag.name)),
    ).all()
    result: dict[int, list[TagView]] = defaultdict(list)
    for item_id, tag in rows:
        result[int(item_id)].append(tag_view(tag))
    return result


def item_view(
    item: Item,
    *,
    feed_title: str | None,
    is_read: bool,
    tags: dict[int, list[TagView]],
) -> ItemView:
    item_id = item.id or 0
    return ItemView(
        id=item_id,
        feed_id=item.feed_id,
        guid=item.guid,
        title=item.title,
        link=item.link,
        published_at=from_db_datetime(item.published_at),
        author=item.author,
        snippet=item.snippet,
        content=item.content,
        readable_content=item.readable_content,
        content_fetched_at=from_db_datetime(item.content_fetched_at),
        image_url=item.image_url,
        created_at=from_db_datetime(item.created_at) or item.created_at,
        feed_title=feed_title,
        is_read=is_read,
        saved=item.saved,
        saved_at=from_db_datetime(item.saved_at),
        unsaved_at=from_db_datetime(item.unsaved_at),
        tags=list(tags.get(item_id, [])),
    )


def _effective_limit(limit: int | None) -> int:
    if limit is None:
        return MAX_PAGE_SIZE
    if limit <= 0:
        raise ValidationError(message="limit must be a positive integer")
    return min(limit, MAX_PAGE_SIZE)


def _search_condition(search: str, mode: SearchMode) -> ColumnElement[bool]:
    if mode == SearchMode.BASIC:
        return or_(
            col(Item.title).icontains(search, autoescape=True),
            col(Item.snippet).icontains(search, autoescape=True),
            col(Item.content).icontains(search, autoescape=True),
            col(Feed.title).icontains(search, autoescape=True),
        )
    expression = fts_match_expression(search)
    if expression is None:
        return false()
    matches = (
        text("SELECT rowid FROM items_fts WHERE items_fts MATCH :fts_query")
        .bindparams(fts_query=expression)
        .columns(column("rowid", Integer))
    )
    return col(Item.id).in_(matches)


def _after_cursor(
    cursor: Cursor,
    *,
    sort_key: ColumnElement[datetime],
    read_rank: ColumnElement[int],
) -> ColumnElement[bool]:
    position = literal(cursor.published_at, DateTime())
    if cursor.sort == SortOrder.NEWEST:
        within_rank = or_(
            sort_key < position,
            and_(sort_key == position, col(Item.id) < cursor.item_id),
        )
    else:
        within_rank = or_(
            sort_key > position,
            and_(sort_key == position, col(Item.id) > cursor.item_id),
        )
    if cursor.read_rank is None:
        return within_rank
    return or_(
        read_rank > cursor.read_rank,
        and_(read_rank == cursor.read_rank, within_rank),
    )
