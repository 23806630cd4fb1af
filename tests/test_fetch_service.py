from __future__ import annotations

import allure
import pytest

from conftest import FakeSource, entry, parsed

from newsdesk.ingestion.models import FetchStatus
from newsdesk.ingestion.repository import FeedRepository
from newsdesk.ingestion.services.fetch_service import FeedRefreshService
from newsdesk.ingestion.sources.base import NonRetryableSourceError, TemporarySourceError

pytestmark = [
    allure.epic("Ingestion"),
    allure.feature("Fetcher"),
]


def _service(source: FakeSource, feeds: FeedRepository) -> FeedRefreshService:
    return FeedRefreshService(source=source, repository=feeds)


def test_overlapping_fetches_store_each_entry_once(
    fake_source: FakeSource,
    feeds: FeedRepository,
) -> None:
    feed = feeds.create_feed(url="https://example.com/feed.xml")
    fake_source.queue(feed.url, parsed(entry("A"), entry("B")), parsed(entry("B"), entry("C")))
    service = _service(fake_source, feeds)

    first = service.refresh_feed_by_id(feed.id)
    second = service.refresh_feed_by_id(feed.id)

    assert first.inserted == 2
    assert second.inserted == 1
    assert feeds.count_items(feed.id) == 3


def test_repeated_fetch_of_same_document_is_idempotent(
    fake_source: FakeSource,
    feeds: FeedRepository,
) -> None:
    feed = feeds.create_feed(url="https://example.com/feed.xml")
    fake_source.queue(feed.url, parsed(entry("A"), entry("B"), entry("A")))
    service = _service(fake_source, feeds)

    for _ in range(3):
        service.refresh_feed_by_id(feed.id)

    assert feeds.count_items(feed.id) == 2


def test_tracking_params_do_not_create_duplicates(
    fake_source: FakeSource,
    feeds: FeedRepository,
) -> None:
    feed = feeds.create_feed(url="https://example.com/feed.xml")
    fake_source.queue(
        feed.url,
        parsed(entry(None, link="https://example.com/story?utm_source=rss")),
        parsed(entry(None, link="https://example.com/story?utm_source=mail#top")),
    )
    service = _service(fake_source, feeds)

    service.refresh_feed_by_id(feed.id)
    service.refresh_feed_by_id(feed.id)

    assert feeds.count_items(feed.id) == 1


def test_fetch_error_is_recorded_and_reraised(
    fake_source: FakeSource,
    feeds: FeedRepository,
) -> None:
    feed = feeds.create_feed(url="https://example.com/feed.xml")
    fake_source.queue(feed.url, TemporarySourceError(message="Temporary RSS HTTP error: 503"))

    with pytest.raises(TemporarySourceError):
        _service(fake_source, feeds).refresh_feed_by_id(feed.id)

    stored = feeds.get_feed(feed.id)
    assert stored.last_fetch_status == FetchStatus.ERROR.value
    assert stored.last_fetch_error == "Temporary RSS HTTP error: 503"


def test_successful_fetch_clears_previous_error(
    fake_source: FakeSource,
    feeds: FeedRepository,
) -> None:
    feed = feeds.create_feed(url="https://example.com/feed.xml")
    fake_source.queue(feed.url, NonRetryableSourceError(message="bad xml"), parsed(entry("A")))
    service = _service(fake_source, feeds)

    with pytest.raises(NonRetryableSourceError):
        service.refresh_feed_by_id(feed.id)
    service.refresh_feed_by_id(feed.id)

    stored = feeds.get_feed(feed.id)
    assert stored.last_fetch_status == FetchStatus.OK.value
    assert stored.last_fetch_error is None


def test_refresh_all_continues_past_failing_sources(
    fake_source: FakeSource,
    feeds: FeedRepository,
) -> None:
    broken = feeds.create_feed(url="https://broken.example.com/feed.xml")
    healthy = feeds.create_feed(url="https://healthy.example.com/feed.xml")
    disabled = feeds.create_feed(url="https://disabled.example.com/feed.xml")
    feeds.update_feed(disabled.id, {"enabled": False})
    fake_source.queue(broken.url, TemporarySourceError(message="timeout", code="timeout"))
    fake_source.queue(healthy.url, parsed(entry("A"), entry("B")))

    summary = _service(fake_source, feeds).refresh_all()

    assert summary.ok_count == 1
    assert summary.error_count == 1
    assert summary.inserted_count == 2
    assert disabled.url not in fake_source.calls
    assert feeds.count_items(healthy.id) == 2
    assert feeds.get_feed(broken.id).last_fetch_status == FetchStatus.ERROR.value


def test_malformed_entries_are_skipped_not_fatal(
    fake_source: FakeSource,
    feeds: FeedRepository,
) -> None:
    feed = feeds.create_feed(url="https://example.com/feed.xml")
    bad = entry("bad")
    bad.title = 42  # type: ignore[assignment]
    fake_source.queue(feed.url, parsed(entry("A"), bad, entry("C")))

    result = _service(fake_source, feeds).refresh_feed_by_id(feed.id)

    assert result.status == FetchStatus.OK
    assert result.inserted == 2
    assert result.skipped_entries == 1
