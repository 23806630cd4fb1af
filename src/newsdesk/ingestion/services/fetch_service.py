"""Fetch stage: download one source, normalize its entries, store the batch."""

from __future__ import annotations

import logging
import threading

from newsdesk.ingestion.models import FeedRefreshResult, FeedView, FetchStatus, RefreshSummary
from newsdesk.ingestion.repository import FeedRepository
from newsdesk.ingestion.services.normalize_service import ItemNormalizationService
from newsdesk.ingestion.sources.base import FeedSource, SourceError

logger = logging.getLogger(__name__)


class FeedRefreshService:
    """Runs the fetch -> normalize -> upsert pipeline per source.

    Network I/O happens outside any store transaction; only the final
    upsert is transactional. Concurrent refreshes of the same source are
    serialized by a per-source lock so two polls never interleave batches.
    """

    def __init__(
        self,
        *,
        source: FeedSource,
        repository: FeedRepository,
        normalizer: ItemNormalizationService | None = None,
    ) -> None:
        self.source = source
        self.repository = repository
        self.normalizer = normalizer or ItemNormalizationService()
        self._locks: dict[int, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def refresh_feed(self, feed: FeedView) -> FeedRefreshResult:
        """Refresh one source; failures are recorded on the source and re-raised."""

        if not feed.enabled:
            logger.debug("Feed %s is disabled, skipping refresh", feed.id)
            return FeedRefreshResult(feed_id=feed.id, status=FetchStatus.OK)

        with self._lock_for(feed.id):
            try:
                parsed = self.source.fetch(feed.url)
                batch = self.normalizer.normalize_batch(parsed.entries, feed_id=feed.id)
                upsert = self.repository.upsert_items(feed.id, batch.items)
            except SourceError as error:
                self.repository.touch_fetch(feed.id, FetchStatus.ERROR, error.message)
                raise
            except Exception as error:
                # Unexpected failures still land on the source status before propagating.
                self.repository.touch_fetch(
                    feed.id,
                    FetchStatus.ERROR,
                    str(error) or "Failed to fetch",
                )
                raise
            self.repository.touch_fetch(feed.id, FetchStatus.OK, None)

        logger.info(
            "Refreshed feed %s: %s new, %s duplicate, %s skipped entries",
            feed.id,
            upsert.inserted,
            upsert.skipped,
            batch.skipped,
        )
        return FeedRefreshResult(
            feed_id=feed.id,
            status=FetchStatus.OK,
            inserted=upsert.inserted,
            skipped_entries=batch.skipped,
        )

    def refresh_feed_by_id(self, feed_id: int) -> FeedRefreshResult:
        return self.refresh_feed(self.repository.get_feed(feed_id))

    def refresh_all(self) -> RefreshSummary:
        """Refresh every source sequentially; one failing source never stops the poll."""

        summary = RefreshSummary()
        for feed in self.repository.list_feeds():
            if not feed.enabled:
                continue
            try:
                summary.results.append(self.refresh_feed(feed))
            except Exception as error:  # noqa: BLE001
                logger.warning("Failed to refresh feed %s (%s): %s", feed.id, feed.url, error)
                summary.results.append(
                    FeedRefreshResult(
                        feed_id=feed.id,
                        status=FetchStatus.ERROR,
                        error=str(error) or error.__class__.__name__,
                    ),
                )
        logger.info(
            "Refresh cycle finished: %s ok, %s failed, %s new items",
            summary.ok_count,
            summary.error_count,
            summary.inserted_count,
        )
        return summary

    def _lock_for(self, feed_id: int) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(feed_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[feed_id] = lock
            return lock
