"""Cache store contract shared by the live cache and the historical store."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta

from adledger.connectors import Platform
from adledger.storage.models import (
    CacheEntry,
    CacheKey,
    PeriodSummary,
    PeriodType,
    SummaryKey,
)


class CacheStore(ABC):
    """Durable key-value storage for cache entries and period summaries.

    Implementations must make `try_acquire_refresh` an atomic
    compare-and-swap: of any number of concurrent callers on one key, at most
    one gets True until the lock is released or expires.

    Subclasses must implement every abstract method; they are safe to call
    from several threads at once.
    """

    # Cache entries (open periods)

    @abstractmethod
    def get_entry(self, key: CacheKey) -> CacheEntry | None:
        """Return the entry for `key`, or None."""
        pass  # pragma: no cover

    @abstractmethod
    def put_entry(self, entry: CacheEntry, held_since: datetime | None = None) -> None:
        """Create or replace an entry's data and clear its refresh lock.

        A refresher passes `held_since`, the time it acquired the lock. The
        lock is then cleared only if it still carries that time; a lock
        reclaimed by another refresher after expiry is kept.
        """
        pass  # pragma: no cover

    @abstractmethod
    def delete_entry(self, key: CacheKey) -> bool:
        """Evict an entry. Returns True if it existed."""
        pass  # pragma: no cover

    @abstractmethod
    def list_entries(self, client_id: str | None = None) -> list[CacheEntry]:
        """List entries, optionally for one client."""
        pass  # pragma: no cover

    @abstractmethod
    def try_acquire_refresh(self, key: CacheKey, now: datetime, lock_ttl: timedelta) -> bool:
        """Atomically set the refresh flag if it is clear or older than `lock_ttl`.

        Returns:
            True if this caller now holds the lock. False if another refresh
            holds a live lock or the entry does not exist.
        """
        pass  # pragma: no cover

    @abstractmethod
    def release_refresh(self, key: CacheKey, held_since: datetime | None = None) -> None:
        """Clear the refresh flag without touching the cached data.

        With `held_since`, only a lock acquired at that time is cleared.
        """
        pass  # pragma: no cover

    # Period summaries (closed periods)

    @abstractmethod
    def get_summary(self, key: SummaryKey) -> PeriodSummary | None:
        """Return the summary for `key`, or None."""
        pass  # pragma: no cover

    @abstractmethod
    def upsert_summary(self, summary: PeriodSummary) -> None:
        """Insert or replace the single row for `summary.key`."""
        pass  # pragma: no cover

    @abstractmethod
    def list_summaries(
        self,
        client_id: str,
        platform: Platform,
        period_type: PeriodType,
        start: date | None = None,
        end: date | None = None,
    ) -> list[PeriodSummary]:
        """List summaries whose period_start falls in [start, end], oldest first."""
        pass  # pragma: no cover

    @abstractmethod
    def delete_summaries_before(self, cutoff: date) -> int:
        """Delete summaries with period_start before `cutoff`. Returns the count."""
        pass  # pragma: no cover
