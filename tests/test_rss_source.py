from __future__ import annotations

import allure
import pytest

from newsdesk.http.fetcher import FetchResult
from newsdesk.ingestion.sources.base import NonRetryableSourceError, TemporarySourceError
from newsdesk.ingestion.sources.rss import RssSource, parse_feed

pytestmark = [
    allure.epic("Ingestion"),
    allure.feature("Fetcher"),
]

RSS_DOCUMENT = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"
     xmlns:content="http://purl.org/rss/1.0/modules/content/"
     xmlns:dc="http://purl.org/dc/elements/1.1/"
     xmlns:media="http://search.yahoo.com/mrss/">
  <channel>
    <title>Example Feed</title>
    <link>https://example.com</link>
    <item>
      <title>First</title>
      <link>https://example.com/first</link>
      <guid isPermaLink="false">first-guid</guid>
      <dc:creator>Alice</dc:creator>
      <pubDate>Tue, 10 Jun 2025 04:00:00 GMT</pubDate>
      <description><![CDATA[<p>Summary one</p>]]></description>
      <content:encoded><![CDATA[<p>Body one</p>]]></content:encoded>
      <enclosure url="https://example.com/audio.mp3" type="audio/mpeg" length="1"/>
      <media:thumbnail url="https://example.com/thumb.jpg"/>
    </item>
    <item>
      <title>Second</title>
      <link>https://example.com/second</link>
      <enclosure url="https://example.com/photo.jpg" type="image/jpeg" length="1"/>
    </item>
  </channel>
</rss>
"""

ATOM_DOCUMENT = """<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Atom Example</title>
  <link rel="self" href="https://example.com/atom.xml"/>
  <link rel="alternate" href="https://example.com/"/>
  <entry>
    <id>tag:example.com,2025:1</id>
    <title>Atom entry</title>
    <link rel="alternate" href="https://example.com/atom/1"/>
    <author><name>Bob</name></author>
    <updated>2025-06-10T06:30:00+02:00</updated>
    <summary>Plain summary</summary>
    <content type="xhtml"><div xmlns="http://www.w3.org/1999/xhtml"><p>Rich <b>body</b></p></div></content>
  </entry>
</feed>
"""

RDF_DOCUMENT = """<?xml version="1.0"?>
<rdf:RDF xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#"
         xmlns="http://purl.org/rss/1.0/"
         xmlns:dc="http://purl.org/dc/elements/1.1/">
  <channel rdf:about="https://example.com/">
    <title>RDF Example</title>
    <link>https://example.com/</link>
  </channel>
  <item rdf:about="https://example.com/rdf/1">
    <title>RDF item</title>
    <link>https://example.com/rdf/1</link>
    <dc:date>2025-06-10T04:00:00Z</dc:date>
  </item>
</rdf:RDF>
"""


class _StubFetcher:
    def __init__(self, result: FetchResult) -> None:
        self.result = result
        self.requests: list[tuple[str, str | None]] = []

    def fetch(self, url: str, *, accept: str | None = None) -> FetchResult:
        self.requests.append((url, accept))
        return self.result


def _result(status_code: int, body: str = "", error: str | None = None) -> FetchResult:
    return FetchResult(
        url="https://example.com/feed.xml",
        status_code=status_code,
        content=body,
        content_type="application/xml",
        is_success=200 <= status_code < 300,
        error=error,
        raw=body.encode("utf-8"),
    )


def test_parse_rss_reads_entries_and_extensions() -> None:
    feed = parse_feed(RSS_DOCUMENT, "https://example.com/feed.xml")

    assert feed.title == "Example Feed"
    assert feed.site_url == "https://example.com"
    first, second = feed.entries
    assert first.guid == "first-guid"
    assert first.author == "Alice"
    assert first.published_raw == "Tue, 10 Jun 2025 04:00:00 GMT"
    assert first.summary == "<p>Summary one</p>"
    assert first.content == "<p>Body one</p>"
    assert first.enclosure_url is None
    assert first.media_thumbnail_url == "https://example.com/thumb.jpg"
    assert second.guid is None
    assert second.enclosure_url == "https://example.com/photo.jpg"


def test_parse_atom_serializes_xhtml_content() -> None:
    feed = parse_feed(ATOM_DOCUMENT, "https://example.com/atom.xml")

    assert feed.title == "Atom Example"
    assert feed.site_url == "https://example.com/"
    (atom_entry,) = feed.entries
    assert atom_entry.guid == "tag:example.com,2025:1"
    assert atom_entry.link == "https://example.com/atom/1"
    assert atom_entry.author == "Bob"
    assert atom_entry.published_raw == "2025-06-10T06:30:00+02:00"
    assert atom_entry.summary == "Plain summary"
    assert atom_entry.content is not None
    assert "<p>Rich <b>body</b></p>" in atom_entry.content


def test_parse_rdf_uses_about_as_guid() -> None:
    feed = parse_feed(RDF_DOCUMENT, "https://example.com/index.rdf")

    assert feed.title == "RDF Example"
    (rdf_entry,) = feed.entries
    assert rdf_entry.guid == "https://example.com/rdf/1"
    assert rdf_entry.published_raw == "2025-06-10T04:00:00Z"


def test_parse_feed_rejects_invalid_xml() -> None:
    with pytest.raises(NonRetryableSourceError) as error:
        parse_feed("<rss><channel>", "https://example.com/feed.xml")

    assert error.value.code == "invalid_feed_xml"


def test_parse_feed_rejects_unknown_document() -> None:
    with pytest.raises(NonRetryableSourceError) as error:
        parse_feed("<html><body>nope</body></html>", "https://example.com/")

    assert error.value.code == "unsupported_feed_format"


def test_rss_source_sends_feed_accept_header() -> None:
    fetcher = _StubFetcher(_result(200, RSS_DOCUMENT))

    feed = RssSource(fetcher).fetch("https://example.com/feed.xml")  # type: ignore[arg-type]

    assert len(feed.entries) == 2
    url, accept = fetcher.requests[0]
    assert url == "https://example.com/feed.xml"
    assert accept is not None
    assert "application/rss+xml" in accept


@pytest.mark.parametrize(
    ("result", "expected"),
    [
        (_result(0, error="timeout"), TemporarySourceError),
        (_result(0, error="connection refused"), TemporarySourceError),
        (_result(503), TemporarySourceError),
        (_result(429), TemporarySourceError),
        (_result(404), NonRetryableSourceError),
        (_result(410), NonRetryableSourceError),
    ],
)
def test_rss_source_classifies_fetch_failures(result: FetchResult, expected: type) -> None:
    source = RssSource(_StubFetcher(result))  # type: ignore[arg-type]

    with pytest.raises(expected):
        source.fetch("https://example.com/feed.xml")
