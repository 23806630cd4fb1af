"""Tag storage: case-insensitive names, usage counts, rename, and merge."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy import func
from sqlalchemy import update as sa_update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, delete, select

from newsdesk.errors import NotFoundError, ValidationError
from newsdesk.reader.models import TagView
from newsdesk.storage.common import from_db_datetime, to_db_datetime, utc_now
from newsdesk.storage.database import Database
from newsdesk.storage.sqlmodel_models import ItemTag, Tag

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TagById:
    """Reference to an existing tag; unknown ids are ignored."""

    id: int


@dataclass(frozen=True, slots=True)
class TagByName:
    """Reference by name; created on add when no tag matches case-insensitively."""

    name: str


TagRef = TagById | TagByName


def tag_ref(value: int | str) -> TagRef:
    """Wire values: integers are ids, strings are always names."""

    if isinstance(value, bool):
        raise ValidationError(message="Tag references must be integers or strings")
    if isinstance(value, int):
        return TagById(value)
    if isinstance(value, str):
        return TagByName(value)
    raise ValidationError(message="Tag references must be integers or strings")


def find_tag_by_name(session: Session, name: str) -> Tag | None:
    # The column is declared NOCASE, so equality ignores case.
    return session.exec(select(Tag).where(col(Tag.name) == name.strip())).first()


def get_or_create_tag(session: Session, name: str) -> Tag:
    clean = _validate_name(name)
    now = to_db_datetime(utc_now())
    session.exec(
        sqlite_insert(Tag)
        .values(name=clean, created_at=now, updated_at=now)
        .on_conflict_do_nothing(index_elements=["name"]),
    )
    tag = find_tag_by_name(session, clean)
    if tag is None:  # pragma: no cover - insert-or-ignore guarantees a row
        raise NotFoundError(message=f"Tag {clean!r} not found")
    return tag


def resolve_tag_ids(session: Session, refs: Iterable[TagRef], *, create: bool) -> list[int]:
    """Resolve references to ids, creating names when ``create`` is set."""

    refs = list(refs)
    ids: list[int] = []
    by_id = [ref.id for ref in refs if isinstance(ref, TagById)]
    known: set[int] = set()
    if by_id:
        known = set(session.exec(select(Tag.id).where(col(Tag.id).in_(by_id))).all())
    for ref in refs:
        if isinstance(ref, TagById):
            if ref.id in known:
                ids.append(ref.id)
            continue
        if create:
            ids.append(get_or_create_tag(session, ref.name).id or 0)
            continue
        existing = find_tag_by_name(session, ref.name)
        if existing is not None and existing.id is not None:
            ids.append(existing.id)
    return list(dict.fromkeys(ids))


class TagRepository:
    """CRUD and merge over the tag vocabulary."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def list_tags(self) -> list[TagView]:
        with self.db.session() as session:
            usage = dict(
                session.exec(
                    select(ItemTag.tag_id, func.count(col(ItemTag.item_id))).group_by(
                        col(ItemTag.tag_id),
                    ),
                ).all(),
            )
            tags = session.exec(select(Tag).order_by(col(Tag.name))).all()
        return [tag_view(tag, usage_count=int(usage.get(tag.id, 0))) for tag in tags]

    def create_tag(self, name: str) -> TagView:
        with self.db.session() as session:
            tag = get_or_create_tag(session, name)
            session.commit()
            return tag_view(tag)

    def rename_tag(self, tag_id: int, name: str) -> TagView:
        clean = _validate_name(name)
        with self.db.session() as session:
            tag = _require_tag(session, tag_id)
            tag.name = clean
            tag.updated_at = to_db_datetime(utc_now())
            session.add(tag)
            try:
                session.commit()
            except IntegrityError as error:
                session.rollback()
                raise ValidationError(
                    message=f"Tag already exists: {clean}",
                    code="duplicate_tag",
                ) from error
            return tag_view(tag)

    def delete_tag(self, tag_id: int) -> None:
        with self.db.session() as session:
            tag = _require_tag(session, tag_id)
            session.exec(delete(ItemTag).where(col(ItemTag.tag_id) == tag_id))
            session.delete(tag)
            session.commit()

    def merge_tags(self, from_tag_ids: Iterable[int], into_tag_id: int) -> TagView:
        """Move every association of ``from_tag_ids`` onto ``into_tag_id`` and drop the sources."""

        sources = [tag_id for tag_id in dict.fromkeys(from_tag_ids) if tag_id != into_tag_id]
        with self.db.session() as session:
            target = _require_tag(session, into_tag_id)
            for tag_id in sources:
                _require_tag(session, tag_id)
            for tag_id in sources:
                item_ids = session.exec(
                    select(ItemTag.item_id).where(col(ItemTag.tag_id) == tag_id),
                ).all()
                for item_id in item_ids:
                    session.exec(
                        sqlite_insert(ItemTag)
                        .values(item_id=item_id, tag_id=into_tag_id)
                        .on_conflict_do_nothing(index_elements=["item_id", "tag_id"]),
                    )
                session.exec(delete(ItemTag).where(col(ItemTag.tag_id) == tag_id))
                session.exec(delete(Tag).where(col(Tag.id) == tag_id))
            session.exec(
                sa_update(Tag)
                .where(col(Tag.id) == into_tag_id)
                .values(updated_at=to_db_datetime(utc_now())),
            )
            session.commit()
            session.refresh(target)
            logger.info("Merged tags %s into %s", sources, into_tag_id)
            return tag_view(target)


def _require_tag(session: Session, tag_id: int) -> Tag:
    tag = session.get(Tag, tag_id)
    if tag is None:
        raise NotFoundError(message=f"Tag {tag_id} not found")
    return tag


def _validate_name(name: str) -> str:
    clean = name.strip()
    if not clean:
        raise ValidationError(message="Tag name must not be empty")
    return clean


def tag_view(tag: Tag, *, usage_count: int | None = None) -> TagView:
    return TagView(
        id=tag.id or 0,
        name=tag.name,
        created_at=from_db_datetime(tag.created_at) or tag.created_at,
        updated_at=from_db_datetime(tag.updated_at) or tag.updated_at,
        usage_count=usage_count,
    )

