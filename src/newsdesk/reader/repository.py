"""Per-item read, saved, tag, and readable-content state."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import func, or_
from sqlalchemy import update as sa_update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlmodel import Session, col, delete, select

from newsdesk.errors import NotFoundError
from newsdesk.reader.models import FeedSummary, Scope
from newsdesk.reader.query import scope_condition
from newsdesk.reader.tags import TagRef, resolve_tag_ids
from newsdesk.storage.common import to_db_datetime, utc_now
from newsdesk.storage.database import Database
from newsdesk.storage.sqlmodel_models import Feed, Item, ItemTag, ReadState

logger = logging.getLogger(__name__)

MARK_ALL_READ_CHUNK = 500


class ItemStateRepository:
    """Mutations over existing items; never creates or removes an item."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def mark_read(self, item_id: int, is_read: bool) -> None:
        """Mark one item read or unread; repeating either call is a no-op."""

        with self.db.session() as session:
            _require_item(session, item_id)
            if is_read:
                session.exec(
                    sqlite_insert(ReadState)
                    .values(item_id=item_id, is_read=True, read_at=to_db_datetime(utc_now()))
                    .on_conflict_do_update(
                        index_elements=["item_id"],
                        set_={"is_read": True},
                    ),
                )
            else:
                session.exec(delete(ReadState).where(col(ReadState.item_id) == item_id))
            session.commit()

    def mark_all_read(
        self,
        *,
        scope: Scope,
        feed_id: int | None = None,
        folder_id: str | None = None,
        published_before: datetime | None = None,
    ) -> int:
        """Mark every item in scope read, optionally only those published at or before a cutoff.

        Items without a publish date count as the earliest possible and are
        always included. Returns the number of items that were unread.
        """

        now = to_db_datetime(utc_now())
        with self.db.session() as session:
            conditions = [
                or_(col(ReadState.item_id).is_(None), col(ReadState.is_read).is_(False)),
            ]
            scoped = scope_condition(session, scope=scope, feed_id=feed_id, folder_id=folder_id)
            if scoped is not None:
                conditions.append(scoped)
            if published_before is not None:
                conditions.append(
                    or_(
                        col(Item.published_at).is_(None),
                        col(Item.published_at) <= to_db_datetime(published_before),
                    ),
                )
            item_ids = list(
                session.exec(
                    select(Item.id)
                    .join(Feed, col(Feed.id) == col(Item.feed_id))
                    .outerjoin(ReadState, col(ReadState.item_id) == col(Item.id))
                    .where(*conditions),
                ).all(),
            )
            for start in range(0, len(item_ids), MARK_ALL_READ_CHUNK):
                chunk = item_ids[start : start + MARK_ALL_READ_CHUNK]
                statement = sqlite_insert(ReadState).values(
                    [{"item_id": item_id, "is_read": True, "read_at": now} for item_id in chunk],
                )
                session.exec(
                    statement.on_conflict_do_update(
                        index_elements=["item_id"],
                        set_={"is_read": True, "read_at": statement.excluded.read_at},
                    ),
                )
            session.commit()
        logger.info("Marked %s items read (scope=%s)", len(item_ids), scope.value)
        return len(item_ids)

    def set_saved(self, item_id: int, saved: bool) -> None:
        """Save or unsave; unsaving stamps ``unsaved_at`` for the retention grace period."""

        now = to_db_datetime(utc_now())
        with self.db.session() as session:
            item = _require_item(session, item_id)
            if saved and not item.saved:
                item.saved = True
                item.saved_at = now
            elif not saved and item.saved:
                item.saved = False
                item.unsaved_at = now
            session.add(item)
            session.commit()

    def set_readable_content(self, item_id: int, readable_content: str | None) -> None:
        with self.db.session() as session:
            result = session.exec(
                sa_update(Item)
                .where(col(Item.id) == item_id)
                .values(
                    readable_content=readable_content,
                    content_fetched_at=to_db_datetime(utc_now()),
                ),
            )
            if not result.rowcount:
                raise NotFoundError(message=f"Item {item_id} not found")
            session.commit()

    def update_tags(
        self,
        item_id: int,
        *,
        add: Iterable[TagRef] = (),
        remove: Iterable[TagRef] = (),
    ) -> None:
        """Apply tag additions then removals in one transaction.

        Names in ``add`` are created when unknown (case-insensitive match);
        names in ``remove`` only resolve existing tags; unknown ids are
        ignored. A tag present in both lists ends up removed.
        """

        with self.db.session() as session:
            _require_item(session, item_id)
            add_ids = resolve_tag_ids(session, add, create=True)
            remove_ids = resolve_tag_ids(session, remove, create=False)
            for tag_id in add_ids:
                session.exec(
                    sqlite_insert(ItemTag)
                    .values(item_id=item_id, tag_id=tag_id)
                    .on_conflict_do_nothing(index_elements=["item_id", "tag_id"]),
                )
            if remove_ids:
                session.exec(
                    delete(ItemTag).where(
                        col(ItemTag.item_id) == item_id,
                        col(ItemTag.tag_id).in_(remove_ids),
                    ),
                )
            session.commit()

    def summary(self) -> FeedSummary:
        """Unread totals over non-muted sources, plus per-source counts."""

        with self.db.session() as session:
            rows = session.exec(
                select(Feed.id, Feed.muted, func.count(col(Item.id)))
                .join(Item, col(Item.feed_id) == col(Feed.id))
                .outerjoin(ReadState, col(ReadState.item_id) == col(Item.id))
                .where(or_(col(ReadState.item_id).is_(None), col(ReadState.is_read).is_(False)))
                .group_by(col(Feed.id), col(Feed.muted)),
            ).all()
            feed_ids = session.exec(select(Feed.id)).all()
        unread_by_feed = {int(feed_id): 0 for feed_id in feed_ids if feed_id is not None}
        total = 0
        for feed_id, muted, count in rows:
            unread_by_feed[int(feed_id)] = int(count)
            if not muted:
                total += int(count)
        return FeedSummary(total_unread=total, unread_by_feed=unread_by_feed)


def _require_item(session: Session, item_id: int) -> Item:
    item = session.get(Item, item_id)
    if item is None:
        raise NotFoundError(message=f"Item {item_id} not found")
    return item
