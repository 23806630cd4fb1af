"""Controllers for CLI commands; each returns printable lines."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from newsdesk.config import Settings
from newsdesk.ingestion.models import FetchStatus
from newsdesk.ingestion.sources.base import SourceError
from newsdesk.reader.models import ItemQuery, Scope, SearchMode, SortOrder
from newsdesk.services import open_services


@dataclass(slots=True)
class RefreshCommand:
    """CLI inputs for a one-off refresh."""

    db_path: Path | None
    feed_id: int | None = None


@dataclass(slots=True)
class AddFeedCommand:
    db_path: Path | None
    url: str
    title: str | None = None
    folder_id: str | None = None


@dataclass(slots=True)
class ListItemsCommand:
    """CLI inputs for item listing."""

    db_path: Path | None
    feed_id: int | None = None
    folder_id: str | None = None
    unread_only: bool = False
    search: str | None = None
    search_mode: SearchMode = SearchMode.FTS
    sort: SortOrder = SortOrder.NEWEST
    limit: int = 20
    cursor: str | None = None


@dataclass(slots=True)
class CleanupCommand:
    db_path: Path | None
    policy: str | None = None
    dry_run: bool = False


@dataclass(slots=True)
class OpmlImportCommand:
    db_path: Path | None
    path: Path


@dataclass(slots=True)
class OpmlExportCommand:
    db_path: Path | None
    path: Path | None = None


class FeedsCliController:
    """Coordinates source, item, and maintenance commands."""

    def refresh(self, command: RefreshCommand) -> list[str]:
        with open_services(_settings(command.db_path)) as services:
            if command.feed_id is None:
                summary = services.refresher.refresh_all()
                lines = [
                    f"  feed={result.feed_id} status={result.status.value} "
                    f"new={result.inserted} skipped={result.skipped_entries}"
                    + (f" error={result.error}" if result.error else "")
                    for result in summary.results
                ]
                lines.append(
                    "Refresh completed: "
                    f"ok={summary.ok_count} failed={summary.error_count} "
                    f"new={summary.inserted_count}",
                )
                return lines
            try:
                result = services.refresher.refresh_feed_by_id(command.feed_id)
            except SourceError as error:
                return [
                    f"  feed={command.feed_id} status={FetchStatus.ERROR.value} "
                    f"error={error.message}",
                ]
        return [
            f"  feed={result.feed_id} status={result.status.value} "
            f"new={result.inserted} skipped={result.skipped_entries}",
        ]

    def add_feed(self, command: AddFeedCommand) -> list[str]:
        with open_services(_settings(command.db_path)) as services:
            feed = services.feeds.create_feed(
                url=command.url,
                title=command.title,
                folder_id=command.folder_id,
            )
        return [f"Added feed id={feed.id} title={feed.title!r} url={feed.url}"]

    def list_feeds(self, db_path: Path | None) -> list[str]:
        with open_services(_settings(db_path)) as services:
            feeds = services.feeds.list_feeds()
        if not feeds:
            return ["No feeds."]
        lines = []
        for feed in feeds:
            flags = [
                flag
                for flag, enabled in (("disabled", not feed.enabled), ("muted", feed.muted))
                if enabled
            ]
            lines.append(
                f"{feed.id:>5} {feed.title} <{feed.url}> unread={feed.unread_count} "
                f"status={feed.last_fetch_status or '-'}"
                + (f" [{', '.join(flags)}]" if flags else ""),
            )
        return lines

    def list_items(self, command: ListItemsCommand) -> list[str]:
        scope = Scope.NEWSFEED
        if command.feed_id is not None:
            scope = Scope.FEED
        elif command.folder_id is not None:
            scope = Scope.FOLDER
        with open_services(_settings(command.db_path)) as services:
            page = services.queries.query(
                ItemQuery(
                    scope=scope,
                    feed_id=command.feed_id,
                    folder_id=command.folder_id,
                    unread_only=command.unread_only,
                    search=command.search,
                    search_mode=command.search_mode,
                    sort=command.sort,
                    limit=command.limit,
                    cursor=command.cursor,
                ),
            )
        lines = []
        for item in page.items:
            published = item.published_at.strftime("%Y-%m-%d %H:%M") if item.published_at else "-"
            marker = " " if item.is_read else "*"
            lines.append(f"{marker}{item.id:>6} {published} [{item.feed_title}] {item.title}")
        if not lines:
            lines.append("No items.")
        if page.next_cursor:
            lines.append(f"Next cursor: {page.next_cursor}")
        return lines

    def cleanup(self, command: CleanupCommand) -> list[str]:
        with open_services(_settings(command.db_path)) as services:
            deleted = services.retention.sweep(policy=command.policy, dry_run=command.dry_run)
        verb = "Would delete" if command.dry_run else "Deleted"
        return [f"{verb} {deleted} items."]

    def import_opml(self, command: OpmlImportCommand) -> list[str]:
        document = command.path.read_bytes()
        with open_services(_settings(command.db_path)) as services:
            result = services.opml.import_document(document)
        return [
            f"OPML import: discovered={result.discovered} created={result.created}",
        ]

    def export_opml(self, command: OpmlExportCommand) -> list[str]:
        with open_services(_settings(command.db_path)) as services:
            document = services.opml.export_document()
        if command.path is None:
            return document.splitlines()
        command.path.write_text(document, encoding="utf-8")
        return [f"Exported OPML to {command.path}"]


def _settings(db_path: Path | None) -> Settings:
    settings = Settings.from_env(db_path=db_path)
    settings.validate()
    return settings
