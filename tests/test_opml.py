from __future__ import annotations

from pathlib import Path

import allure
import pytest
from defusedxml import ElementTree

from newsdesk.errors import ValidationError
from newsdesk.ingestion.repository import FeedRepository
from newsdesk.opml import OpmlService, parse_opml
from newsdesk.reader.folders import FolderRepository
from newsdesk.storage.database import Database

pytestmark = [
    allure.epic("Reader"),
    allure.feature("OPML"),
]

NESTED = """<?xml version="1.0" encoding="UTF-8"?>
<opml version="1.0">
  <head><title>Subscriptions</title></head>
  <body>
    <outline text="Tech">
      <outline text="Languages">
        <outline text="Python Blog" xmlUrl="https://python.example.com/rss"/>
      </outline>
      <outline title="Rust" text="rust" xmlUrl=" https://rust.example.com/feed "/>
    </outline>
    <outline xmlUrl="https://bare.example.com/feed"/>
    <outline text="Folder without feeds"/>
  </body>
</opml>
"""


def test_parse_opml_walks_nested_outlines() -> None:
    outlines = parse_opml(NESTED)

    assert [(outline.url, outline.title, outline.folder_name) for outline in outlines] == [
        ("https://python.example.com/rss", "Python Blog", "Languages"),
        ("https://rust.example.com/feed", "Rust", "Tech"),
        ("https://bare.example.com/feed", "https://bare.example.com/feed", None),
    ]


@pytest.mark.parametrize("document", ["<opml><body>", "<rss version='2.0'/>"])
def test_parse_opml_rejects_non_opml(document: str) -> None:
    with pytest.raises(ValidationError) as error:
        parse_opml(document)

    assert error.value.code == "invalid_opml"


def test_parse_opml_refuses_entity_expansion() -> None:
    bomb = (
        '<?xml version="1.0"?><!DOCTYPE opml [<!ENTITY a "aaaa">]>'
        "<opml><body><outline text='&a;' xmlUrl='https://x.example.com'/></body></opml>"
    )

    with pytest.raises(ValidationError) as error:
        parse_opml(bomb)

    assert error.value.code == "invalid_opml"


def test_import_creates_only_new_root_sources(
    feeds: FeedRepository,
    folders: FolderRepository,
) -> None:
    feeds.create_feed(url="https://python.example.com/rss")
    service = OpmlService(feeds=feeds, folders=folders)

    result = service.import_document(NESTED)

    assert result.discovered == 3
    assert result.created == 2
    assert {feed.folder_id for feed in feeds.list_feeds()} == {None}
    assert feeds.get_feed(result.created_ids[0]).title == "Rust"


def test_export_lists_root_sources_then_nested_folders(
    feeds: FeedRepository,
    folders: FolderRepository,
) -> None:
    tech = folders.create_folder(name="Tech")
    python = folders.create_folder(name="Python", parent_id=tech.id)
    folders.create_folder(name="Empty")
    feeds.create_feed(url="https://root.example.com/feed", title="Root")
    feeds.create_feed(url="https://tech.example.com/feed", title="Tech news", folder_id=tech.id)
    feeds.create_feed(url="https://py.example.com/feed", title="Py & co", folder_id=python.id)

    document = OpmlService(feeds=feeds, folders=folders).export_document()
    root = ElementTree.fromstring(document)
    body = root.find("body")

    assert document.startswith("<?xml")
    assert root.get("version") == "2.0"
    assert root.findtext("head/title") == "Newsdesk Export"
    assert body is not None
    top = list(body)
    assert [node.get("text") for node in top] == ["Root", "Tech", "Empty"]
    assert top[0].get("xmlUrl") == "https://root.example.com/feed"
    assert top[0].get("type") == "rss"
    tech_children = list(top[1])
    assert [node.get("text") for node in tech_children] == ["Tech news", "Python"]
    assert tech_children[1][0].get("xmlUrl") == "https://py.example.com/feed"
    assert tech_children[1][0].get("title") == "Py & co"


def test_export_then_import_into_empty_store_restores_sources(
    feeds: FeedRepository,
    folders: FolderRepository,
    tmp_path: Path,
) -> None:
    folder = folders.create_folder(name="Tech")
    feeds.create_feed(url="https://a.example.com/feed", title="A", folder_id=folder.id)
    feeds.create_feed(url="https://b.example.com/feed", title="B")
    document = OpmlService(feeds=feeds, folders=folders).export_document()

    other = Database(tmp_path / "other.db")
    other.init_schema()
    other_feeds = FeedRepository(other)
    result = OpmlService(feeds=other_feeds, folders=FolderRepository(other)).import_document(
        document,
    )
    urls = sorted(feed.url for feed in other_feeds.list_feeds())
    other.close()

    assert result.created == 2
    assert urls == ["https://a.example.com/feed", "https://b.example.com/feed"]
