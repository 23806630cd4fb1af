"""Readable-content collaborator: fetch an item's page and keep its main body."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from newsdesk.errors import FeatureDisabledError
from newsdesk.http.fetcher import HttpFetcher
from newsdesk.http.html_extractor import ExtractionResult, extract_readable_html
from newsdesk.ingestion.cleaning import is_safe_url, sanitize_html
from newsdesk.reader.query import ItemQueryEngine
from newsdesk.reader.repository import ItemStateRepository

logger = logging.getLogger(__name__)

Extractor = Callable[..., ExtractionResult]


@dataclass(slots=True)
class ContentFetchResult:
    """Soft outcome: failures carry a message instead of raising."""

    ok: bool
    readable_content: str | None
    message: str | None = None


class ReadableContentService:
    """Downloads the linked page, extracts the article, sanitizes, and stores it."""

    def __init__(
        self,
        *,
        fetcher: HttpFetcher,
        queries: ItemQueryEngine,
        state: ItemStateRepository,
        enabled: Callable[[], bool],
        extractor: Extractor = extract_readable_html,
    ) -> None:
        self.fetcher = fetcher
        self.queries = queries
        self.state = state
        self.enabled = enabled
        self.extractor = extractor

    def fetch_for_item(self, item_id: int) -> ContentFetchResult:
        """Raise for disabled feature or unknown item; every other failure is soft."""

        if not self.enabled():
            raise FeatureDisabledError(message="Readable content fetching is disabled")
        item = self.queries.get_item(item_id)
        if not item.link or not is_safe_url(item.link):
            return ContentFetchResult(ok=False, readable_content=None, message="Item has no link")

        result = self.fetcher.fetch(item.link, accept="text/html,application/xhtml+xml")
        if not result.is_success:
            logger.warning("Content fetch failed for item %s: %s", item_id, result.error)
            return ContentFetchResult(
                ok=False,
                readable_content=None,
                message=f"Failed to fetch content: {result.error}",
            )

        extraction = self.extractor(result.content, url=result.final_url or item.link)
        readable = sanitize_html(extraction.html) if extraction.is_success else None
        if readable is None:
            logger.warning(
                "No readable content for item %s: %s",
                item_id,
                extraction.error or "empty after sanitizing",
            )
            return ContentFetchResult(
                ok=False,
                readable_content=None,
                message=extraction.error or "No readable content found",
            )

        self.state.set_readable_content(item_id, readable)
        return ContentFetchResult(ok=True, readable_content=readable)
