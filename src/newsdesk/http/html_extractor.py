"""Main-content extraction from article pages using trafilatura."""

from __future__ import annotations

import logging
from dataclasses import dataclass

import trafilatura

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ExtractionResult:
    """Result of HTML main-content extraction."""

    html: str
    is_success: bool
    error: str | None = None


def extract_readable_html(
    html: str,
    *,
    url: str | None = None,
    include_tables: bool = False,
    include_images: bool = True,
) -> ExtractionResult:
    """Extract the main article body from a page as HTML.

    Falls back to a recall-oriented pass if the precise pass finds nothing.
    """

    if not html or not html.strip():
        return ExtractionResult(html="", is_success=False, error="empty HTML input")

    try:
        extracted = trafilatura.extract(
            html,
            url=url,
            output_format="html",
            include_tables=include_tables,
            include_images=include_images,
            include_links=True,
            favor_precision=True,
            deduplicate=True,
        )
    except Exception as exc:  # noqa: BLE001
        logger.warning("trafilatura.extract failed for %s: %s", url or "<unknown>", exc)
        extracted = None

    if not extracted:
        try:
            extracted = trafilatura.extract(
                html,
                url=url,
                output_format="html",
                include_tables=include_tables,
                include_images=include_images,
                include_links=True,
                favor_recall=True,
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("trafilatura fallback failed for %s: %s", url or "<unknown>", exc)
            return ExtractionResult(
                html="",
                is_success=False,
                error=f"extraction failed: {exc}",
            )

    if not extracted:
        return ExtractionResult(html="", is_success=False, error="no content extracted")

    return ExtractionResult(html=extracted, is_success=True)
