"""Normalization service for parsed feed entries."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from newsdesk.ingestion.cleaning import (
    first_image_src,
    html_to_text,
    normalize_link,
    og_image_hint,
    sanitize_html,
)
from newsdesk.ingestion.models import FeedEntry, NormalizedItem
from newsdesk.ingestion.sources.rss import parse_published

UNTITLED = "Untitled"
SNIPPET_MAX_CHARS = 500
logger = logging.getLogger(__name__)


@dataclass(slots=True)
class NormalizedBatch:
    """Normalized items plus the number of entries that had to be skipped."""

    items: list[NormalizedItem]
    skipped: int


class ItemNormalizationService:
    """Converts parsed feed entries into canonical item records."""

    def __init__(self, *, snippet_max_chars: int = SNIPPET_MAX_CHARS) -> None:
        self.snippet_max_chars = snippet_max_chars

    def normalize(self, entry: FeedEntry) -> NormalizedItem:
        raw_link = _clean(entry.link)
        normalized_link = normalize_link(raw_link) if raw_link else None
        published_raw = _clean(entry.published_raw)
        html_source = entry.content or entry.summary

        snippet = html_to_text(entry.summary or entry.content or "")
        if len(snippet) > self.snippet_max_chars:
            snippet = snippet[: self.snippet_max_chars].rstrip()

        return NormalizedItem(
            guid=dedup_key(entry.guid, normalized_link, raw_link),
            title=html_to_text(entry.title or "") or UNTITLED,
            link=normalized_link or raw_link,
            published_at=parse_published(published_raw),
            published_raw=published_raw,
            author=_clean(entry.author),
            snippet=snippet or None,
            content=sanitize_html(html_source),
            image_url=resolve_image(entry),
            raw_json=json.dumps(entry.raw_payload, ensure_ascii=False, default=str),
        )

    def normalize_batch(self, entries: list[FeedEntry], *, feed_id: int) -> NormalizedBatch:
        items: list[NormalizedItem] = []
        skipped = 0
        for entry in entries:
            try:
                items.append(self.normalize(entry))
            except (TypeError, ValueError, KeyError, AttributeError) as error:
                skipped += 1
                logger.warning(
                    "Skipping malformed entry for feed %s (guid=%s): %s",
                    feed_id,
                    entry.guid,
                    error,
                )
        return NormalizedBatch(items=items, skipped=skipped)


def dedup_key(guid: str | None, normalized_link: str | None, raw_link: str | None) -> str | None:
    """Identity used for insert-if-absent; None means the row is never deduplicated."""

    return _clean(guid) or normalized_link or raw_link or None


def resolve_image(entry: FeedEntry) -> str | None:
    """First match wins: enclosure, media content, media thumbnail, og:image, inline <img>."""

    html_source = entry.content or entry.summary
    candidates = (
        entry.enclosure_url,
        entry.media_content_url,
        entry.media_thumbnail_url,
        og_image_hint(html_source),
        first_image_src(html_source),
    )
    for candidate in candidates:
        cleaned = _clean(candidate)
        if cleaned:
            return cleaned
    return None


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None
