"""Data lifecycle: archive ended cache entries and enforce summary retention."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, date, datetime

from adledger.storage import CacheStore, DataSource

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_MONTHS = 14


def retention_cutoff(today: date, retention_months: int) -> date:
    """First day of the month `retention_months` months before today's month."""
    months = today.year * 12 + (today.month - 1) - retention_months
    return date(months // 12, months % 12 + 1, 1)


@dataclass
class ArchiveResult:
    """Outcome of one archive pass."""

    archived: int = 0
    skipped_existing: int = 0
    evicted: int = 0


class DataLifecycleManager:
    """Move open-period snapshots into the historical store once they close.

    Example:
        manager = DataLifecycleManager(store)
        manager.archive_closed_entries()
        manager.cleanup_old_data(retention_months=14)
    """

    def __init__(self, store: CacheStore, today: Callable[[], date] | None = None):
        self.store = store
        self._today = today or (lambda: datetime.now(UTC).date())

    def archive_closed_entries(self, today: date | None = None) -> ArchiveResult:
        """Archive every cache entry whose period ended before today, then evict it.

        An existing summary (from a scheduled close-out or a backfill) is never
        overwritten by the cached snapshot.
        """
        today = today or self._today()
        result = ArchiveResult()
        for entry in self.store.list_entries():
            if entry.summary.period_end >= today:
                continue
            if self.store.get_summary(entry.summary.key) is None:
                self.store.upsert_summary(entry.summary.with_source(DataSource.CACHE))
                result.archived += 1
            else:
                result.skipped_existing += 1
            if self.store.delete_entry(entry.key):
                result.evicted += 1

        if result.evicted:
            logger.info(
                f"Archived {result.archived} cache entries "
                f"({result.skipped_existing} already summarized), evicted {result.evicted}"
            )
        return result

    def cleanup_old_data(self, retention_months: int = DEFAULT_RETENTION_MONTHS, today: date | None = None) -> int:
        """Delete summaries whose period started before the retention horizon."""
        if retention_months < 1:
            raise ValueError(f"retention_months must be at least 1, got {retention_months}")
        cutoff = retention_cutoff(today or self._today(), retention_months)
        deleted = self.store.delete_summaries_before(cutoff)
        logger.info(f"Retention cleanup removed {deleted} summaries before {cutoff}")
        return deleted
