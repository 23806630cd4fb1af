"""OPML import and export of the source list."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from xml.etree.ElementTree import Element, SubElement, indent, tostring

from defusedxml import DefusedXmlException, ElementTree

from newsdesk.errors import ValidationError
from newsdesk.ingestion.models import FeedView
from newsdesk.ingestion.repository import FeedRepository
from newsdesk.reader.folders import FolderRepository
from newsdesk.reader.models import FolderView

logger = logging.getLogger(__name__)

EXPORT_TITLE = "Newsdesk Export"


@dataclass(slots=True)
class OpmlOutline:
    """One ``outline`` carrying an ``xmlUrl``."""

    url: str
    title: str
    folder_name: str | None = None


@dataclass(slots=True)
class OpmlImportResult:
    discovered: int
    created: int
    created_ids: list[int] = field(default_factory=list)


def parse_opml(document: str | bytes) -> list[OpmlOutline]:
    """Collect every feed outline, at any nesting depth, in document order."""

    try:
        root = ElementTree.fromstring(document)
    except ElementTree.ParseError as error:
        raise ValidationError(message="Invalid OPML document", code="invalid_opml") from error
    except DefusedXmlException as error:
        raise ValidationError(
            message="OPML documents may not declare entities or DTDs",
            code="invalid_opml",
        ) from error
    if root.tag != "opml":
        raise ValidationError(message="Document root is not <opml>", code="invalid_opml")
    body = root.find("body")
    if body is None:
        return []

    discovered: list[OpmlOutline] = []

    def walk(parent: Element, folder_name: str | None) -> None:
        for node in parent.findall("outline"):
            label = node.get("title") or node.get("text")
            url = (node.get("xmlUrl") or "").strip()
            if url:
                discovered.append(OpmlOutline(url=url, title=label or url, folder_name=folder_name))
            if len(node):
                walk(node, label or folder_name)

    walk(body, None)
    return discovered


def build_opml(feeds: list[FeedView], folders: list[FolderView]) -> str:
    """Render an OPML 2.0 document: root sources first, then folders by parent."""

    feeds_by_folder: dict[str | None, list[FeedView]] = defaultdict(list)
    for feed in feeds:
        feeds_by_folder[feed.folder_id].append(feed)
    folders_by_parent: dict[str | None, list[FolderView]] = defaultdict(list)
    known_ids = {folder.id for folder in folders}
    for folder in folders:
        parent = folder.parent_id if folder.parent_id in known_ids else None
        folders_by_parent[parent].append(folder)

    root = Element("opml", version="2.0")
    head = SubElement(root, "head")
    SubElement(head, "title").text = EXPORT_TITLE
    body = SubElement(root, "body")

    def add_feeds(parent: Element, folder_id: str | None) -> None:
        for feed in feeds_by_folder.get(folder_id, []):
            SubElement(
                parent,
                "outline",
                text=feed.title,
                title=feed.title,
                type="rss",
                xmlUrl=feed.url,
            )

    def add_folders(parent: Element, parent_id: str | None, path: frozenset[str]) -> None:
        for folder in folders_by_parent.get(parent_id, []):
            if folder.id in path:
                continue
            node = SubElement(parent, "outline", text=folder.name, title=folder.name)
            add_feeds(node, folder.id)
            add_folders(node, folder.id, path | {folder.id})

    add_feeds(body, None)
    add_folders(body, None, frozenset())
    indent(root)
    return tostring(root, encoding="unicode", xml_declaration=True)


class OpmlService:
    """Bridges OPML documents and the source/folder repositories."""

    def __init__(self, *, feeds: FeedRepository, folders: FolderRepository) -> None:
        self.feeds = feeds
        self.folders = folders

    def import_document(self, document: str | bytes) -> OpmlImportResult:
        """Create root-level sources for every URL not already subscribed."""

        outlines = parse_opml(document)
        created_ids = self.feeds.create_missing_feeds(
            (outline.url, outline.title) for outline in outlines
        )
        logger.info(
            "OPML import: %s outlines discovered, %s feeds created",
            len(outlines),
            len(created_ids),
        )
        return OpmlImportResult(
            discovered=len(outlines),
            created=len(created_ids),
            created_ids=created_ids,
        )

    def export_document(self) -> str:
        return build_opml(self.feeds.list_feeds(), self.folders.list_folders())
