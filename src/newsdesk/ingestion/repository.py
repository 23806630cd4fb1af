"""SQLModel-backed storage for sources and their ingested items."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime
from urllib.parse import urlsplit

from sqlalchemy import and_, func, or_
from sqlalchemy import update as sa_update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, delete, select

from newsdesk.errors import NotFoundError, ValidationError
from newsdesk.ingestion.models import FeedView, FetchStatus, NormalizedItem, UpsertResult
from newsdesk.storage.common import from_db_datetime, to_db_datetime, utc_now
from newsdesk.storage.database import Database
from newsdesk.storage.sqlmodel_models import Feed, Folder, Item, ReadState

logger = logging.getLogger(__name__)

FEED_UPDATE_FIELDS = frozenset({"title", "url", "enabled", "folder_id", "muted"})


class FeedRepository:
    """Persists sources, fetch status, and the per-source item batches."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def list_feeds(self) -> list[FeedView]:
        with self.db.session() as session:
            feeds = session.exec(
                select(Feed).order_by(
                    col(Feed.position),
                    col(Feed.created_at).desc(),
                    col(Feed.id).desc(),
                ),
            ).all()
            unread = _unread_counts_by_feed(session)
        return [_feed_view(feed, unread.get(feed.id or 0, 0)) for feed in feeds]

    def get_feed(self, feed_id: int) -> FeedView:
        with self.db.session() as session:
            feed = _require_feed(session, feed_id)
            unread = _unread_counts_by_feed(session, feed_ids=[feed_id])
        return _feed_view(feed, unread.get(feed_id, 0))

    def list_feed_urls(self) -> set[str]:
        with self.db.session() as session:
            return set(session.exec(select(Feed.url)).all())

    def create_feed(
        self,
        *,
        url: str,
        title: str | None = None,
        folder_id: str | None = None,
    ) -> FeedView:
        clean_url = _validate_feed_url(url)
        now = to_db_datetime(utc_now())
        with self.db.session() as session:
            if folder_id is not None:
                _require_folder(session, folder_id)
            feed = Feed(
                title=(title or "").strip() or clean_url,
                url=clean_url,
                enabled=True,
                muted=False,
                folder_id=folder_id,
                created_at=now,
                updated_at=now,
            )
            session.add(feed)
            try:
                session.commit()
            except IntegrityError as error:
                session.rollback()
                raise ValidationError(
                    message=f"Feed already exists: {clean_url}",
                    code="duplicate_feed",
                ) from error
            session.refresh(feed)
        logger.info("Created feed %s (%s)", feed.id, clean_url)
        return _feed_view(feed, 0)

    def create_missing_feeds(self, candidates: Iterable[tuple[str, str | None]]) -> list[int]:
        """Create root-level sources for unseen URLs in one transaction.

        ``candidates`` are ``(url, title)`` pairs; URLs that are invalid or already
        known are skipped. Returns the new ids.
        """

        now = to_db_datetime(utc_now())
        created: list[int] = []
        with self.db.session() as session:
            seen = set(session.exec(select(Feed.url)).all())
            for url, title in candidates:
                try:
                    clean_url = _validate_feed_url(url)
                except ValidationError:
                    logger.warning("Skipping feed with invalid URL %r", url)
                    continue
                if clean_url in seen:
                    continue
                seen.add(clean_url)
                feed = Feed(
                    title=(title or "").strip() or clean_url,
                    url=clean_url,
                    enabled=True,
                    muted=False,
                    folder_id=None,
                    created_at=now,
                    updated_at=now,
                )
                session.add(feed)
                session.flush()
                created.append(feed.id or 0)
            session.commit()
        if created:
            logger.info("Created %s feeds from import", len(created))
        return created

    def update_feed(self, feed_id: int, changes: Mapping[str, object]) -> FeedView:
        """Apply a partial update; keys outside title/url/enabled/folder_id/muted are rejected."""

        unknown = set(changes) - FEED_UPDATE_FIELDS
        if unknown:
            raise ValidationError(message=f"Unknown feed fields: {', '.join(sorted(unknown))}")

        with self.db.session() as session:
            feed = _require_feed(session, feed_id)
            if "title" in changes:
                title = changes["title"]
                if not isinstance(title, str) or not title.strip():
                    raise ValidationError(message="title must be a non-empty string")
                feed.title = title.strip()
            if "url" in changes:
                url = changes["url"]
                if not isinstance(url, str):
                    raise ValidationError(message="url must be a string")
                feed.url = _validate_feed_url(url)
            for flag in ("enabled", "muted"):
                if flag in changes:
                    value = changes[flag]
                    if not isinstance(value, bool):
                        raise ValidationError(message=f"{flag} must be a boolean")
                    setattr(feed, flag, value)
            if "folder_id" in changes:
                folder_id = changes["folder_id"]
                if folder_id is not None:
                    if not isinstance(folder_id, str):
                        raise ValidationError(message="folderId must be a string or null")
                    _require_folder(session, folder_id)
                feed.folder_id = folder_id
            feed.updated_at = to_db_datetime(utc_now())
            session.add(feed)
            try:
                session.commit()
            except IntegrityError as error:
                session.rollback()
                raise ValidationError(
                    message=f"Feed already exists: {feed.url}",
                    code="duplicate_feed",
                ) from error
        return self.get_feed(feed_id)

    def delete_feed(self, feed_id: int) -> None:
        with self.db.session() as session:
            feed = _require_feed(session, feed_id)
            session.delete(feed)
            session.commit()
        logger.info("Deleted feed %s", feed_id)

    def move_feeds(self, feed_ids: Iterable[int], folder_id: str | None) -> int:
        ids = sorted(set(feed_ids))
        if not ids:
            return 0
        with self.db.session() as session:
            if folder_id is not None:
                _require_folder(session, folder_id)
            result = session.exec(
                sa_update(Feed)
                .where(col(Feed.id).in_(ids))
                .values(folder_id=folder_id, updated_at=to_db_datetime(utc_now())),
            )
            session.commit()
            return int(result.rowcount or 0)

    def touch_fetch(self, feed_id: int, status: FetchStatus, error: str | None) -> None:
        with self.db.session() as session:
            session.exec(
                sa_update(Feed)
                .where(col(Feed.id) == feed_id)
                .values(
                    last_fetched_at=to_db_datetime(utc_now()),
                    last_fetch_status=status.value,
                    last_fetch_error=error,
                ),
            )
            session.commit()

    def upsert_items(self, feed_id: int, items: list[NormalizedItem]) -> UpsertResult:
        """Insert-if-absent on (feed_id, guid) inside one transaction.

        The first stored copy of an entry wins; later duplicates are dropped,
        never overwritten. Rows without a guid are always inserted.
        """

        if not items:
            return UpsertResult(inserted=0, skipped=0)
        now = to_db_datetime(utc_now())
        inserted = 0
        with self.db.session() as session:
            for item in items:
                statement = (
                    sqlite_insert(Item)
                    .values(
                        feed_id=feed_id,
                        guid=item.guid,
                        title=item.title,
                        link=item.link,
                        published_at=(
                            to_db_datetime(item.published_at) if item.published_at else None
                        ),
                        published_raw=item.published_raw,
                        author=item.author,
                        snippet=item.snippet,
                        content=item.content,
                        image_url=item.image_url,
                        raw_json=item.raw_json,
                        saved=False,
                        created_at=now,
                    )
                    .on_conflict_do_nothing(index_elements=["feed_id", "guid"])
                )
                result = session.exec(statement)
                inserted += int(result.rowcount or 0)
            session.commit()
        return UpsertResult(inserted=inserted, skipped=len(items) - inserted)

    def count_items(self, feed_id: int | None = None) -> int:
        with self.db.session() as session:
            statement = select(func.count()).select_from(Item)
            if feed_id is not None:
                statement = statement.where(col(Item.feed_id) == feed_id)
            return int(session.exec(statement).one())

    def prune_items(
        self,
        *,
        published_before: datetime,
        unsaved_before: datetime,
        dry_run: bool = False,
    ) -> int:
        """Delete read, unsaved items older than ``published_before``.

        Items unsaved after ``unsaved_before`` are kept. Age is measured from
        the publish date, or the creation date when the feed gave none.
        """

        published_cutoff = to_db_datetime(published_before)
        unsaved_cutoff = to_db_datetime(unsaved_before)
        read_items = select(ReadState.item_id).where(col(ReadState.is_read).is_(True))
        conditions = and_(
            col(Item.saved).is_(False),
            col(Item.id).in_(read_items),
            or_(col(Item.unsaved_at).is_(None), col(Item.unsaved_at) < unsaved_cutoff),
            func.coalesce(col(Item.published_at), col(Item.created_at)) < published_cutoff,
        )
        with self.db.session() as session:
            candidates = int(
                session.exec(select(func.count()).select_from(Item).where(conditions)).one(),
            )
            if not dry_run and candidates > 0:
                session.exec(delete(Item).where(conditions))
                session.commit()
        return candidates


def _unread_counts_by_feed(
    session: Session,
    *,
    feed_ids: list[int] | None = None,
) -> dict[int, int]:
    statement = (
        select(Item.feed_id, func.count(col(Item.id)))
        .outerjoin(ReadState, col(ReadState.item_id) == col(Item.id))
        .where(or_(col(ReadState.item_id).is_(None), col(ReadState.is_read).is_(False)))
        .group_by(col(Item.feed_id))
    )
    if feed_ids is not None:
        statement = statement.where(col(Item.feed_id).in_(feed_ids))
    return {int(feed_id): int(count) for feed_id, count in session.exec(statement).all()}


def _require_feed(session: Session, feed_id: int) -> Feed:
    feed = session.get(Feed, feed_id)
    if feed is None:
        raise NotFoundError(message=f"Feed {feed_id} not found")
    return feed


def _require_folder(session: Session, folder_id: str) -> Folder:
    folder = session.get(Folder, folder_id)
    if folder is None:
        raise NotFoundError(message=f"Folder {folder_id} not found")
    return folder


def _validate_feed_url(url: str) -> str:
    candidate = url.strip()
    try:
        parts = urlsplit(candidate)
    except ValueError as error:
        raise ValidationError(message=f"Invalid feed URL: {url!r}") from error
    if parts.scheme.lower() not in {"http", "https"} or not parts.netloc:
        raise ValidationError(message=f"Feed URL must be an absolute http(s) URL: {url!r}")
    return candidate


def _feed_view(feed: Feed, unread_count: int) -> FeedView:
    return FeedView(
        id=feed.id or 0,
        title=feed.title,
        url=feed.url,
        enabled=feed.enabled,
        muted=feed.muted,
        folder_id=feed.folder_id,
        position=feed.position,
        created_at=from_db_datetime(feed.created_at) or feed.created_at,
        updated_at=from_db_datetime(feed.updated_at) or feed.updated_at,
        last_fetched_at=from_db_datetime(feed.last_fetched_at),
        last_fetch_status=feed.last_fetch_status,
        last_fetch_error=feed.last_fetch_error,
        unread_count=unread_count,
    )
