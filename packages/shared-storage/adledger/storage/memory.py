"""Thread-safe in-process cache store."""

from __future__ import annotations

import copy
import logging
import threading
from dataclasses import replace
from datetime import date, datetime, timedelta

from adledger.connectors import Platform
from adledger.storage.base import CacheStore
from adledger.storage.models import (
    CacheEntry,
    CacheKey,
    PeriodSummary,
    PeriodType,
    SummaryKey,
)

logger = logging.getLogger(__name__)


class InMemoryCacheStore(CacheStore):
    """Dictionary-backed store guarded by one lock.

    The lock is held only for dictionary access, never across I/O. Values
    are deep-copied in and out so callers cannot mutate stored state.

    Example:
        store = InMemoryCacheStore()
        arbiter = CacheFreshnessArbiter(store=store, ...)
    """

    def __init__(self) -> None:
        self._entries: dict[CacheKey, CacheEntry] = {}
        self._summaries: dict[SummaryKey, PeriodSummary] = {}
        self._lock = threading.Lock()

    def get_entry(self, key: CacheKey) -> CacheEntry | None:
        with self._lock:
            entry = self._entries.get(key)
            return copy.deepcopy(entry) if entry else None

    def put_entry(self, entry: CacheEntry, held_since: datetime | None = None) -> None:
        stored = replace(copy.deepcopy(entry), refresh_in_progress=False, refresh_started_at=None)
        with self._lock:
            current = self._entries.get(entry.key)
            if current is not None and not self._holds(current, held_since):
                stored.refresh_in_progress = current.refresh_in_progress
                stored.refresh_started_at = current.refresh_started_at
            self._entries[entry.key] = stored
        logger.debug(f"Stored cache entry {entry.key}")

    def delete_entry(self, key: CacheKey) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def list_entries(self, client_id: str | None = None) -> list[CacheEntry]:
        with self._lock:
            entries = [
                copy.deepcopy(e)
                for e in self._entries.values()
                if client_id is None or e.key.client_id == client_id
            ]
        return sorted(entries, key=lambda e: (e.key.client_id, e.key.platform.value, e.key.period_id))

    def try_acquire_refresh(self, key: CacheKey, now: datetime, lock_ttl: timedelta) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or not entry.lock_expired(now, lock_ttl):
                return False
            if entry.refresh_in_progress:
                logger.warning(f"Reclaiming expired refresh lock for {key} (started {entry.refresh_started_at})")
            entry.refresh_in_progress = True
            entry.refresh_started_at = now
            return True

    def release_refresh(self, key: CacheKey, held_since: datetime | None = None) -> None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and self._holds(entry, held_since):
                entry.refresh_in_progress = False
                entry.refresh_started_at = None

    @staticmethod
    def _holds(entry: CacheEntry, held_since: datetime | None) -> bool:
        return held_since is None or not entry.refresh_in_progress or entry.refresh_started_at == held_since

    def get_summary(self, key: SummaryKey) -> PeriodSummary | None:
        with self._lock:
            summary = self._summaries.get(key)
            return copy.deepcopy(summary) if summary else None

    def upsert_summary(self, summary: PeriodSummary) -> None:
        with self._lock:
            self._summaries[summary.key] = copy.deepcopy(summary)

    def list_summaries(
        self,
        client_id: str,
        platform: Platform,
        period_type: PeriodType,
        start: date | None = None,
        end: date | None = None,
    ) -> list[PeriodSummary]:
        with self._lock:
            matches = [
                copy.deepcopy(s)
                for key, s in self._summaries.items()
                if key.client_id == client_id
                and key.platform == platform
                and key.period_type == period_type
                and (start is None or key.period_start >= start)
                and (end is None or key.period_start <= end)
            ]
        return sorted(matches, key=lambda s: s.period_start)

    def delete_summaries_before(self, cutoff: date) -> int:
        with self._lock:
            expired = [key for key in self._summaries if key.period_start < cutoff]
            for key in expired:
                del self._summaries[key]
        return len(expired)
