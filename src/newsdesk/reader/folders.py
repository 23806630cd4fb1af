"""Folder hierarchy storage and subtree helpers."""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Mapping
from uuid import uuid4

from sqlalchemy import func, or_
from sqlalchemy import update as sa_update
from sqlmodel import Session, col, select

from newsdesk.errors import NotFoundError, ValidationError
from newsdesk.reader.models import FolderView
from newsdesk.storage.common import from_db_datetime, to_db_datetime, utc_now
from newsdesk.storage.database import Database
from newsdesk.storage.sqlmodel_models import Feed, Folder, Item, ReadState

logger = logging.getLogger(__name__)

FOLDER_UPDATE_FIELDS = frozenset({"name", "parent_id", "position"})


def folder_children(session: Session) -> dict[str | None, list[str]]:
    children: dict[str | None, list[str]] = defaultdict(list)
    for folder_id, parent_id in session.exec(select(Folder.id, Folder.parent_id)).all():
        children[parent_id].append(folder_id)
    return children


def descendant_folder_ids(session: Session, folder_id: str) -> list[str]:
    """Return ``folder_id`` plus every folder nested below it."""

    children = folder_children(session)
    result: list[str] = []
    stack = [folder_id]
    seen: set[str] = set()
    while stack:
        current = stack.pop()
        if current in seen:
            continue
        seen.add(current)
        result.append(current)
        stack.extend(children.get(current, []))
    return result


class FolderRepository:
    """CRUD over folders; deleting a folder never deletes its sources."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def list_folders(self) -> list[FolderView]:
        with self.db.session() as session:
            folders = session.exec(
                select(Folder).order_by(col(Folder.position), col(Folder.created_at)),
            ).all()
            direct = _direct_unread_by_folder(session)
            children = folder_children(session)

        totals: dict[str, int] = {}

        def subtree_total(folder_id: str, path: frozenset[str]) -> int:
            if folder_id in totals:
                return totals[folder_id]
            total = direct.get(folder_id, 0)
            for child_id in children.get(folder_id, []):
                if child_id not in path:
                    total += subtree_total(child_id, path | {child_id})
            totals[folder_id] = total
            return total

        return [
            _folder_view(folder, subtree_total(folder.id, frozenset({folder.id})))
            for folder in folders
        ]

    def get_folder(self, folder_id: str) -> FolderView:
        for folder in self.list_folders():
            if folder.id == folder_id:
                return folder
        raise NotFoundError(message=f"Folder {folder_id} not found")

    def create_folder(self, *, name: str, parent_id: str | None = None) -> FolderView:
        clean_name = _validate_name(name)
        now = to_db_datetime(utc_now())
        with self.db.session() as session:
            if parent_id is not None and session.get(Folder, parent_id) is None:
                raise NotFoundError(message=f"Parent folder {parent_id} not found")
            folder = Folder(
                id=str(uuid4()),
                name=clean_name,
                parent_id=parent_id,
                created_at=now,
                updated_at=now,
            )
            session.add(folder)
            session.commit()
            session.refresh(folder)
        logger.info("Created folder %s (%s)", folder.id, clean_name)
        return _folder_view(folder, 0)

    def update_folder(self, folder_id: str, changes: Mapping[str, object]) -> FolderView:
        unknown = set(changes) - FOLDER_UPDATE_FIELDS
        if unknown:
            raise ValidationError(message=f"Unknown folder fields: {', '.join(sorted(unknown))}")

        with self.db.session() as session:
            folder = session.get(Folder, folder_id)
            if folder is None:
                raise NotFoundError(message=f"Folder {folder_id} not found")
            if "name" in changes:
                name = changes["name"]
                if not isinstance(name, str):
                    raise ValidationError(message="name must be a string")
                folder.name = _validate_name(name)
            if "position" in changes:
                position = changes["position"]
                if not isinstance(position, int) or isinstance(position, bool):
                    raise ValidationError(message="position must be an integer")
                folder.position = position
            if "parent_id" in changes:
                parent_id = changes["parent_id"]
                if parent_id is not None:
                    if not isinstance(parent_id, str):
                        raise ValidationError(message="parentId must be a string or null")
                    if session.get(Folder, parent_id) is None:
                        raise NotFoundError(message=f"Parent folder {parent_id} not found")
                    if parent_id in descendant_folder_ids(session, folder_id):
                        raise ValidationError(
                            message="A folder cannot be moved inside itself or its descendants",
                            code="folder_cycle",
                        )
                folder.parent_id = parent_id
            folder.updated_at = to_db_datetime(utc_now())
            session.add(folder)
            session.commit()
        return self.get_folder(folder_id)

    def delete_folder(self, folder_id: str) -> int:
        """Delete a folder, moving its sources to root.

        Child folders are re-attached to the deleted folder's parent.
        Returns the number of sources moved.
        """

        now = to_db_datetime(utc_now())
        with self.db.session() as session:
            folder = session.get(Folder, folder_id)
            if folder is None:
                raise NotFoundError(message=f"Folder {folder_id} not found")
            moved = session.exec(
                sa_update(Feed)
                .where(col(Feed.folder_id) == folder_id)
                .values(folder_id=None, updated_at=now),
            )
            session.exec(
                sa_update(Folder)
                .where(col(Folder.parent_id) == folder_id)
                .values(parent_id=folder.parent_id, updated_at=now),
            )
            session.delete(folder)
            session.commit()
            moved_count = int(moved.rowcount or 0)
        logger.info("Deleted folder %s, moved %s feeds to root", folder_id, moved_count)
        return moved_count


def _direct_unread_by_folder(session: Session) -> dict[str, int]:
    statement = (
        select(Feed.folder_id, func.count(col(Item.id)))
        .join(Item, col(Item.feed_id) == col(Feed.id))
        .outerjoin(ReadState, col(ReadState.item_id) == col(Item.id))
        .where(
            col(Feed.folder_id).is_not(None),
            or_(col(ReadState.item_id).is_(None), col(ReadState.is_read).is_(False)),
        )
        .group_by(col(Feed.folder_id))
    )
    return {str(folder_id): int(count) for folder_id, count in session.exec(statement).all()}


def _validate_name(name: str) -> str:
    clean = name.strip()
    if not clean:
        raise ValidationError(message="name must not be empty")
    return clean


def _folder_view(folder: Folder, unread_count: int) -> FolderView:
    return FolderView(
        id=folder.id,
        name=folder.name,
        parent_id=folder.parent_id,
        position=folder.position,
        created_at=from_db_datetime(folder.created_at) or folder.created_at,
        updated_at=from_db_datetime(folder.updated_at) or folder.updated_at,
        unread_count=unread_count,
    )
