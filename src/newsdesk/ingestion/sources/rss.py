"""Generic RSS/Atom/RDF source adapter."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from xml.etree.ElementTree import Element, tostring

from defusedxml import ElementTree

from newsdesk.http.fetcher import HttpFetcher
from newsdesk.ingestion.models import FeedEntry, ParsedFeed
from newsdesk.ingestion.sources.base import NonRetryableSourceError, TemporarySourceError

RETRYABLE_HTTP_STATUS_CODES = frozenset({408, 425, 429, 500, 502, 503, 504})
FEED_ACCEPT = (
    "application/rss+xml, application/atom+xml, application/rdf+xml, "
    "application/xml;q=0.9, */*;q=0.8"
)
logger = logging.getLogger(__name__)


class RssSource:
    """Downloads one feed document over HTTP and parses it."""

    def __init__(self, fetcher: HttpFetcher) -> None:
        self.fetcher = fetcher

    def fetch(self, url: str) -> ParsedFeed:
        result = self.fetcher.fetch(url, accept=FEED_ACCEPT)
        if not result.is_success:
            if result.status_code == 0:
                raise TemporarySourceError(
                    message=f"RSS transport error: {result.error or 'unknown'}",
                    code=result.error if result.error == "timeout" else "transport",
                )
            if result.status_code in RETRYABLE_HTTP_STATUS_CODES:
                raise TemporarySourceError(
                    message=f"Temporary RSS HTTP error: {result.status_code}",
                    code=str(result.status_code),
                )
            raise NonRetryableSourceError(
                message=f"Non-retryable RSS HTTP error: {result.status_code}",
                code=str(result.status_code),
            )
        return parse_feed(result.raw or result.content, url)


def parse_feed(raw_xml: str | bytes, feed_url: str) -> ParsedFeed:
    """Parse an RSS 2.0, RSS 1.0 (RDF) or Atom document."""

    try:
        root = ElementTree.fromstring(raw_xml)
    except ElementTree.ParseError as error:
        raise NonRetryableSourceError(
            message=f"Invalid RSS/Atom XML from {feed_url}",
            code="invalid_feed_xml",
        ) from error

    root_name = _local_name(root.tag)
    if root_name == "rss":
        return _parse_rss(root, feed_url)
    if root_name == "feed":
        return _parse_atom(root, feed_url)
    if root_name == "rdf":
        return _parse_rdf(root, feed_url)

    # Best effort: some feeds omit top-level conventions.
    if any(_local_name(element.tag) == "item" for element in root.iter()):
        channel = next(
            (element for element in root.iter() if _local_name(element.tag) == "channel"),
            None,
        )
        return _parse_rss_container(channel if channel is not None else root, root, feed_url)
    if any(_local_name(element.tag) == "entry" for element in root.iter()):
        return _parse_atom(root, feed_url)

    raise NonRetryableSourceError(
        message=f"Unsupported feed format from {feed_url}",
        code="unsupported_feed_format",
    )


def _parse_rss(root: Element, feed_url: str) -> ParsedFeed:
    channel = _first_child(root, "channel")
    container = channel if channel is not None else root
    return _parse_rss_container(container, container, feed_url)


def _parse_rdf(root: Element, feed_url: str) -> ParsedFeed:
    # RSS 1.0 keeps items as siblings of the channel element.
    channel = _first_child(root, "channel")
    meta = channel if channel is not None else root
    return _parse_rss_container(meta, root, feed_url)


def _parse_rss_container(meta: Element, items_root: Element, feed_url: str) -> ParsedFeed:
    entries: list[FeedEntry] = []
    for item in items_root.iter():
        if _local_name(item.tag) != "item":
            continue
        try:
            entries.append(_rss_entry(item))
        except (TypeError, ValueError, AttributeError) as error:
            logger.warning("Skipping malformed RSS item in %s: %s", feed_url, error)
    return ParsedFeed(
        title=_child_text(meta, "title"),
        site_url=_child_text(meta, "link"),
        entries=entries,
    )


def _rss_entry(item: Element) -> FeedEntry:
    guid = _child_text(item, "guid") or _attribute(item, "about")
    link = _child_text(item, "link")
    title = _child_text(item, "title")
    author = _child_text(item, "creator") or _child_text(item, "author")
    published_raw = (
        _child_text(item, "pubDate") or _child_text(item, "date") or _child_text(item, "published")
    )
    summary = _child_text(item, "description") or _child_text(item, "summary")
    content = _child_text(item, "encoded")
    enclosure_url = _enclosure_url(item)
    media_content_url, media_thumbnail_url = _media_urls(item)
    return FeedEntry(
        guid=guid,
        link=link,
        title=title,
        author=author,
        published_raw=published_raw,
        summary=summary,
        content=content,
        enclosure_url=enclosure_url,
        media_content_url=media_content_url,
        media_thumbnail_url=media_thumbnail_url,
        raw_payload={
            "guid": guid,
            "title": title,
            "link": link,
            "author": author,
            "pub_date_raw": published_raw,
            "description": summary,
            "content": content,
            "enclosure": enclosure_url,
            "media_content": media_content_url,
            "media_thumbnail": media_thumbnail_url,
        },
    )


def _parse_atom(root: Element, feed_url: str) -> ParsedFeed:
    entries: list[FeedEntry] = []
    for entry in root.iter():
        if _local_name(entry.tag) != "entry":
            continue
        try:
            entries.append(_atom_entry(entry))
        except (TypeError, ValueError, AttributeError) as error:
            logger.warning("Skipping malformed Atom entry in %s: %s", feed_url, error)
    return ParsedFeed(
        title=_child_text(root, "title"),
        site_url=_atom_link(root),
        entries=entries,
    )


def _atom_entry(entry: Element) -> FeedEntry:
    entry_id = _child_text(entry, "id")
    link = _atom_link(entry)
    title = _child_text(entry, "title")
    author_element = _first_child(entry, "author")
    author = None
    if author_element is not None:
        author = _child_text(author_element, "name") or _element_text(author_element)
    published_raw = _child_text(entry, "published") or _child_text(entry, "updated")
    summary = _child_markup(entry, "summary")
    content = _child_markup(entry, "content")
    enclosure_url = _atom_enclosure(entry)
    media_content_url, media_thumbnail_url = _media_urls(entry)
    return FeedEntry(
        guid=entry_id,
        link=link,
        title=title,
        author=author,
        published_raw=published_raw,
        summary=summary,
        content=content,
        enclosure_url=enclosure_url,
        media_content_url=media_content_url,
        media_thumbnail_url=media_thumbnail_url,
        raw_payload={
            "id": entry_id,
            "title": title,
            "link": link,
            "author": author,
            "published_at_raw": published_raw,
            "summary": summary,
            "content": content,
            "enclosure": enclosure_url,
            "media_content": media_content_url,
            "media_thumbnail": media_thumbnail_url,
        },
    )


def _atom_link(entry: Element) -> str | None:
    for child in entry:
        if _local_name(child.tag) != "link":
            continue
        rel = child.attrib.get("rel", "").strip().lower()
        href = child.attrib.get("href", "").strip()
        if not href:
            continue
        if not rel or rel == "alternate":
            return href
    for child in entry:
        if _local_name(child.tag) == "link":
            rel = child.attrib.get("rel", "").strip().lower()
            href = child.attrib.get("href", "").strip()
            if href and rel not in {"enclosure", "self"}:
                return href
    return None


def _atom_enclosure(entry: Element) -> str | None:
    for child in entry:
        if _local_name(child.tag) != "link":
            continue
        if child.attrib.get("rel", "").strip().lower() != "enclosure":
            continue
        if _is_image_type(child.attrib.get("type")):
            href = child.attrib.get("href", "").strip()
            if href:
                return href
    return None


def _enclosure_url(item: Element) -> str | None:
    for child in item:
        if _local_name(child.tag) != "enclosure":
            continue
        url = child.attrib.get("url", "").strip()
        if url and _is_image_type(child.attrib.get("type")):
            return url
    return None


def _media_urls(item: Element) -> tuple[str | None, str | None]:
    content_url: str | None = None
    thumbnail_url: str | None = None
    for element in item.iter():
        if element is item:
            continue
        name = _local_name(element.tag)
        url = element.attrib.get("url", "").strip()
        if not url:
            continue
        if name == "content" and content_url is None and _is_media_namespace(element.tag):
            medium = element.attrib.get("medium", "").strip().lower()
            if medium in {"", "image"} and _is_image_type(element.attrib.get("type")):
                content_url = url
        elif name == "thumbnail" and thumbnail_url is None:
            thumbnail_url = url
    return content_url, thumbnail_url


def _is_media_namespace(tag: str) -> bool:
    return tag.startswith("{") and "search.yahoo.com/mrss" in tag


def _is_image_type(value: str | None) -> bool:
    if not value:
        return True
    return value.strip().lower().startswith("image/")


def _first_child(element: Element, name: str) -> Element | None:
    target = name.lower()
    for child in element:
        if _local_name(child.tag) == target:
            return child
    return None


def _child_text(element: Element, name: str) -> str | None:
    target = name.lower()
    for child in element:
        if _local_name(child.tag) != target:
            continue
        text = _element_text(child)
        if text:
            return text
    return None


def _element_text(element: Element) -> str | None:
    if element.text and element.text.strip():
        return element.text.strip()
    full_text = "".join(element.itertext()).strip()
    return full_text or None


def _child_markup(element: Element, name: str) -> str | None:
    """Return child text, serializing inline XHTML children as markup."""

    child = _first_child(element, name)
    if child is None:
        return None
    if len(child) == 0:
        return _element_text(child)
    for sub in child.iter():
        if isinstance(sub.tag, str) and "}" in sub.tag:
            sub.tag = sub.tag.rsplit("}", 1)[1]
    parts = [child.text or ""]
    parts.extend(tostring(sub, encoding="unicode") for sub in child)
    markup = "".join(parts).strip()
    return markup or None


def _attribute(element: Element, name: str) -> str | None:
    for key, value in element.attrib.items():
        if _local_name(key) == name and value.strip():
            return value.strip()
    return None


def _local_name(tag: str) -> str:
    if "}" in tag:
        return tag.rsplit("}", 1)[1].lower()
    return tag.lower()


def parse_published(raw_value: str | None) -> datetime | None:
    """Parse RFC 822 or ISO 8601 dates into UTC; unknown formats give None."""

    if not raw_value:
        return None

    try:
        parsed = parsedate_to_datetime(raw_value)
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=UTC)
        return parsed.astimezone(UTC)
    except (TypeError, ValueError, IndexError):
        pass

    try:
        iso = datetime.fromisoformat(raw_value.strip().replace("Z", "+00:00"))
        if iso.tzinfo is None:
            return iso.replace(tzinfo=UTC)
        return iso.astimezone(UTC)
    except ValueError:
        return None
