"""Initial aggregator schema with FTS5 item index."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "folders",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("parent_id", sa.String(), nullable=True),
        sa.Column("position", sa.Integer(), server_default="0", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["parent_id"], ["folders.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_folders_parent_id", "folders", ["parent_id"])

    op.create_table(
        "feeds",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("url", sa.String(), nullable=False),
        sa.Column("enabled", sa.Boolean(), server_default="1", nullable=False),
        sa.Column("muted", sa.Boolean(), server_default="0", nullable=False),
        sa.Column("folder_id", sa.String(), nullable=True),
        sa.Column("position", sa.Integer(), server_default="0", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_fetched_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_fetch_status", sa.String(), nullable=True),
        sa.Column("last_fetch_error", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["folder_id"], ["folders.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("url"),
    )
    op.create_index("ix_feeds_folder_id", "feeds", ["folder_id"])

    op.create_table(
        "items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("feed_id", sa.Integer(), nullable=False),
        sa.Column("guid", sa.String(), nullable=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("link", sa.String(), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("published_raw", sa.String(), nullable=True),
        sa.Column("author", sa.String(), nullable=True),
        sa.Column("snippet", sa.Text(), nullable=True),
        sa.Column("content", sa.Text(), nullable=True),
        sa.Column("readable_content", sa.Text(), nullable=True),
        sa.Column("content_fetched_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("image_url", sa.String(), nullable=True),
        sa.Column("raw_json", sa.Text(), nullable=True),
        sa.Column("saved", sa.Boolean(), server_default="0", nullable=False),
        sa.Column("saved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("unsaved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["feed_id"], ["feeds.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("feed_id", "guid", name="uq_items_feed_guid"),
    )
    op.create_index("ix_items_feed_id", "items", ["feed_id"])
    op.create_index("ix_items_saved", "items", ["saved"])
    op.create_index("idx_items_published", "items", ["published_at", "id"])
    op.create_index("idx_items_feed_published", "items", ["feed_id", "published_at"])

    op.create_table(
        "read_state",
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("is_read", sa.Boolean(), server_default="1", nullable=False),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["item_id"], ["items.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("item_id"),
    )

    op.create_table(
        "tags",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(collation="NOCASE"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "item_tags",
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("tag_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["item_id"], ["items.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["tag_id"], ["tags.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("item_id", "tag_id"),
    )
    op.create_index("ix_item_tags_tag_id", "item_tags", ["tag_id"])

    op.create_table(
        "settings",
        sa.Column("key", sa.String(), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("key"),
    )

    op.execute(
        """
        CREATE VIRTUAL TABLE items_fts USING fts5(
            title, snippet, content,
            content='items', content_rowid='id'
        )
        """,
    )
    op.execute(
        """
        CREATE TRIGGER items_fts_ai AFTER INSERT ON items BEGIN
            INSERT INTO items_fts(rowid, title, snippet, content)
            VALUES (new.id, new.title, new.snippet, new.content);
        END
        """,
    )
    op.execute(
        """
        CREATE TRIGGER items_fts_ad AFTER DELETE ON items BEGIN
            INSERT INTO items_fts(items_fts, rowid, title, snippet, content)
            VALUES ('delete', old.id, old.title, old.snippet, old.content);
        END
        """,
    )
    op.execute(
        """
        CREATE TRIGGER items_fts_au AFTER UPDATE OF title, snippet, content ON items BEGIN
            INSERT INTO items_fts(items_fts, rowid, title, snippet, content)
            VALUES ('delete', old.id, old.title, old.snippet, old.content);
            INSERT INTO items_fts(rowid, title, snippet, content)
            VALUES (new.id, new.title, new.snippet, new.content);
        END
        """,
    )


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS items_fts_au")
    op.execute("DROP TRIGGER IF EXISTS items_fts_ad")
    op.execute("DROP TRIGGER IF EXISTS items_fts_ai")
    op.execute("DROP TABLE IF EXISTS items_fts")
    op.drop_table("settings")
    op.drop_index("ix_item_tags_tag_id", table_name="item_tags")
    op.drop_table("item_tags")
    op.drop_table("tags")
    op.drop_table("read_state")
    op.drop_index("idx_items_feed_published", table_name="items")
    op.drop_index("idx_items_published", table_name="items")
    op.drop_index("ix_items_saved", table_name="items")
    op.drop_index("ix_items_feed_id", table_name="items")
    op.drop_table("items")
    op.drop_index("ix_feeds_folder_id", table_name="feeds")
    op.drop_table("feeds")
    op.drop_index("ix_folders_parent_id", table_name="folders")
    op.drop_table("folders")
