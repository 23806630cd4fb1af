"""SQLModel ORM tables for the aggregator store."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlmodel import Field, SQLModel


class Folder(SQLModel, table=True):
    __tablename__ = "folders"  # type: ignore[bad-override]

    id: str = Field(primary_key=True)
    name: str
    parent_id: str | None = Field(
        default=None,
        sa_column=Column(ForeignKey("folders.id", ondelete="SET NULL"), nullable=True, index=True),
    )
    position: int = Field(default=0, sa_column=Column(Integer, nullable=False, server_default="0"))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class Feed(SQLModel, table=True):
    __tablename__ = "feeds"  # type: ignore[bad-override]

    id: int | None = Field(default=None, primary_key=True)
    title: str
    url: str = Field(sa_column=Column(String, nullable=False, unique=True))
    enabled: bool = Field(
        default=True,
        sa_column=Column(Boolean, nullable=False, server_default="1"),
    )
    muted: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, server_default="0"),
    )
    folder_id: str | None = Field(
        default=None,
        sa_column=Column(ForeignKey("folders.id", ondelete="SET NULL"), nullable=True, index=True),
    )
    position: int = Field(default=0, sa_column=Column(Integer, nullable=False, server_default="0"))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    last_fetched_at: datetime | None = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )
    last_fetch_status: str | None = None
    last_fetch_error: str | None = Field(default=None, sa_column=Column(Text, nullable=True))


class Item(SQLModel, table=True):
    __tablename__ = "items"  # type: ignore[bad-override]
    __table_args__ = (
        UniqueConstraint("feed_id", "guid", name="uq_items_feed_guid"),
        Index("idx_items_published", "published_at", "id"),
        Index("idx_items_feed_published", "feed_id", "published_at"),
    )

    id: int | None = Field(default=None, primary_key=True)
    feed_id: int = Field(
        sa_column=Column(ForeignKey("feeds.id", ondelete="CASCADE"), nullable=False, index=True),
    )
    guid: str | None = None
    title: str
    link: str | None = None
    published_at: datetime | None = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )
    published_raw: str | None = None
    author: str | None = None
    snippet: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    content: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    readable_content: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    content_fetched_at: datetime | None = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )
    image_url: str | None = None
    raw_json: str | None = Field(default=None, sa_column=Column(Text, nullable=True))
    saved: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, server_default="0", index=True),
    )
    saved_at: datetime | None = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )
    unsaved_at: datetime | None = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class ReadState(SQLModel, table=True):
    __tablename__ = "read_state"  # type: ignore[bad-override]

    item_id: int = Field(
        sa_column=Column(ForeignKey("items.id", ondelete="CASCADE"), primary_key=True),
    )
    is_read: bool = Field(
        default=True,
        sa_column=Column(Boolean, nullable=False, server_default="1"),
    )
    read_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class Tag(SQLModel, table=True):
    __tablename__ = "tags"  # type: ignore[bad-override]

    id: int | None = Field(default=None, primary_key=True)
    name: str = Field(sa_column=Column(String(collation="NOCASE"), nullable=False, unique=True))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class ItemTag(SQLModel, table=True):
    __tablename__ = "item_tags"  # type: ignore[bad-override]

    item_id: int = Field(
        sa_column=Column(ForeignKey("items.id", ondelete="CASCADE"), primary_key=True),
    )
    tag_id: int = Field(
        sa_column=Column(
            ForeignKey("tags.id", ondelete="CASCADE"),
            primary_key=True,
            index=True,
        ),
    )


class SettingEntry(SQLModel, table=True):
    __tablename__ = "settings"  # type: ignore[bad-override]

    key: str = Field(primary_key=True)
    value: str = Field(sa_column=Column(Text, nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
