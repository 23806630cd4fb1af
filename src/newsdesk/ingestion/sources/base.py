"""Common source adapter contracts."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from newsdesk.ingestion.models import ParsedFeed


@dataclass(slots=True)
class SourceError(Exception):
    """Base source fetch error."""

    message: str
    code: str = "source_error"

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True)
class TemporarySourceError(SourceError):
    """Retryable source error; the next scheduled poll tries again."""

    retry_after: int | None = None


@dataclass(slots=True)
class NonRetryableSourceError(SourceError):
    """Source error that will not go away by retrying the same document."""


class FeedSource(Protocol):
    """Interface for retrieving and parsing one source document."""

    def fetch(self, url: str) -> ParsedFeed:
        """Download and parse the feed at ``url``."""
        raise NotImplementedError
