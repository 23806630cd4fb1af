"""Retention cleanup of old, read, unsaved items."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from newsdesk.errors import ValidationError
from newsdesk.ingestion.repository import FeedRepository
from newsdesk.reader.settings_store import RETENTION_HORIZONS, SettingsStore
from newsdesk.storage.common import utc_now

logger = logging.getLogger(__name__)

DEFAULT_UNSAVE_GRACE = timedelta(days=7)


class RetentionService:
    """Applies the configured retention policy.

    An item is deleted only when it is not saved, is read, was not unsaved
    within the grace period, and is older than the horizon measured from its
    publish date (or creation date when it has none).
    """

    def __init__(
        self,
        *,
        repository: FeedRepository,
        settings: SettingsStore,
        unsave_grace: timedelta = DEFAULT_UNSAVE_GRACE,
    ) -> None:
        self.repository = repository
        self.settings = settings
        self.unsave_grace = unsave_grace

    def sweep(
        self,
        *,
        policy: str | None = None,
        now: datetime | None = None,
        dry_run: bool = False,
    ) -> int:
        effective_policy = policy or self.settings.get().article_retention
        if effective_policy not in RETENTION_HORIZONS:
            raise ValidationError(message=f"Unknown retention policy: {effective_policy}")
        horizon = RETENTION_HORIZONS[effective_policy]
        if horizon is None:
            logger.debug("Retention policy is off, nothing to delete")
            return 0

        current = now or utc_now()
        deleted = self.repository.prune_items(
            published_before=current - horizon,
            unsaved_before=current - self.unsave_grace,
            dry_run=dry_run,
        )
        logger.info(
            "Retention sweep (policy=%s, dry_run=%s) removed %s items",
            effective_policy,
            dry_run,
            deleted,
        )
        return deleted
