"""CLI entrypoint for newsdesk."""

import logging
from collections.abc import Callable
from pathlib import Path

import rich_click as click
import uvicorn

from newsdesk import __version__
from newsdesk.api import create_app
from newsdesk.config import Settings
from newsdesk.controllers import (
    AddFeedCommand,
    CleanupCommand,
    FeedsCliController,
    ListItemsCommand,
    OpmlExportCommand,
    OpmlImportCommand,
    RefreshCommand,
)
from newsdesk.errors import NewsdeskError
from newsdesk.reader.models import SearchMode, SortOrder
from newsdesk.reader.settings_store import RETENTION_HORIZONS

click.rich_click.USE_MARKDOWN = True
CONTROLLER = FeedsCliController()
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
QUIET_LOGGERS = ("httpx", "httpcore", "trafilatura")

db_path_option = click.option(
    "--db-path",
    type=click.Path(path_type=Path),
    default=None,
    help="SQLite DB path. Defaults to NEWSDESK_DB_PATH.",
)


@click.group()
@click.version_option(version=__version__, prog_name="newsdesk")
def newsdesk() -> None:
    """Self-hosted feed aggregator."""


@newsdesk.command("serve")
@click.option("--host", default=None, help="Bind address. Defaults to NEWSDESK_HOST.")
@click.option("--port", type=click.IntRange(1, 65535), default=None, help="Bind port.")
@db_path_option
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="INFO",
    show_default=True,
)
def serve(host: str | None, port: int | None, db_path: Path | None, log_level: str) -> None:
    """Run the HTTP API with the background scheduler."""

    configure_logging(log_level)
    settings = Settings.from_env(db_path=db_path)
    if host:
        settings.server.host = host
    if port:
        settings.server.port = port
    settings.validate()
    uvicorn.run(
        create_app(settings),
        host=settings.server.host,
        port=settings.server.port,
        log_level=log_level.lower(),
    )


@newsdesk.command("refresh")
@db_path_option
@click.option("--feed-id", type=int, default=None, help="Refresh only this source.")
def refresh(db_path: Path | None, feed_id: int | None) -> None:
    """Fetch sources once and store new items."""

    configure_logging("WARNING")
    _run(lambda: CONTROLLER.refresh(RefreshCommand(db_path=db_path, feed_id=feed_id)))


@newsdesk.group()
def feeds() -> None:
    """Source commands."""


@feeds.command("add")
@click.argument("url")
@db_path_option
@click.option("--title", default=None, help="Display title. Defaults to the URL.")
@click.option("--folder-id", default=None, help="Folder to place the source in.")
def feeds_add(url: str, db_path: Path | None, title: str | None, folder_id: str | None) -> None:
    """Subscribe to a feed URL."""

    _run(
        lambda: CONTROLLER.add_feed(
            AddFeedCommand(db_path=db_path, url=url, title=title, folder_id=folder_id),
        ),
    )


@feeds.command("list")
@db_path_option
def feeds_list(db_path: Path | None) -> None:
    """List sources with unread counts."""

    _run(lambda: CONTROLLER.list_feeds(db_path))


@newsdesk.group()
def items() -> None:
    """Item commands."""


@items.command("list")
@db_path_option
@click.option("--feed-id", type=int, default=None, help="Only items of this source.")
@click.option("--folder-id", default=None, help="Only items under this folder.")
@click.option("--unread-only/--all", default=False, show_default=True)
@click.option("--search", default=None, help="Search text.")
@click.option(
    "--search-mode",
    type=click.Choice([mode.value for mode in SearchMode]),
    default=SearchMode.FTS.value,
    show_default=True,
)
@click.option(
    "--sort",
    type=click.Choice([order.value for order in SortOrder]),
    default=SortOrder.NEWEST.value,
    show_default=True,
)
@click.option("--limit", type=click.IntRange(min=1, max=1000), default=20, show_default=True)
@click.option("--cursor", default=None, help="Continuation cursor from a previous page.")
def items_list(  # noqa: PLR0913
    db_path: Path | None,
    feed_id: int | None,
    folder_id: str | None,
    unread_only: bool,
    search: str | None,
    search_mode: str,
    sort: str,
    limit: int,
    cursor: str | None,
) -> None:
    """List items, newest first by default. Unread items are marked with `*`."""

    _run(
        lambda: CONTROLLER.list_items(
            ListItemsCommand(
                db_path=db_path,
                feed_id=feed_id,
                folder_id=folder_id,
                unread_only=unread_only,
                search=search,
                search_mode=SearchMode(search_mode),
                sort=SortOrder(sort),
                limit=limit,
                cursor=cursor,
            ),
        ),
    )


@newsdesk.command("cleanup")
@db_path_option
@click.option(
    "--policy",
    type=click.Choice(list(RETENTION_HORIZONS)),
    default=None,
    help="Retention policy. Defaults to the stored articleRetention setting.",
)
@click.option("--dry-run", is_flag=True, default=False, help="Only count what would go.")
def cleanup(db_path: Path | None, policy: str | None, dry_run: bool) -> None:
    """Delete old, read, unsaved items per the retention policy."""

    _run(
        lambda: CONTROLLER.cleanup(
            CleanupCommand(db_path=db_path, policy=policy, dry_run=dry_run),
        ),
    )


@newsdesk.group()
def opml() -> None:
    """OPML import and export."""


@opml.command("import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@db_path_option
def opml_import(path: Path, db_path: Path | None) -> None:
    """Subscribe to every feed listed in an OPML file."""

    _run(lambda: CONTROLLER.import_opml(OpmlImportCommand(db_path=db_path, path=path)))


@opml.command("export")
@click.argument("path", type=click.Path(dir_okay=False, path_type=Path), required=False)
@db_path_option
def opml_export(path: Path | None, db_path: Path | None) -> None:
    """Write sources as OPML 2.0 to PATH, or stdout."""

    _run(lambda: CONTROLLER.export_opml(OpmlExportCommand(db_path=db_path, path=path)))


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _run(action: Callable[[], list[str]]) -> None:
    try:
        lines = action()
    except NewsdeskError as error:
        raise click.ClickException(error.message) from error
    _emit_lines(lines)


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    newsdesk()
