"""
Cache freshness arbiter - decides per request whether to serve cache, refresh
in the background, or fetch synchronously.

- Closed periods: served from the historical store; a missing summary is
  backfilled once and persisted.
- Open periods: stale-while-revalidate over a CacheEntry. Only a cache miss
  blocks the caller; a stale hit is served immediately and refreshed in the
  background under the store's refresh lock.
- Custom ranges: clipped at today, decomposed into whole months, ISO weeks
  and days, resolved piecewise and summed.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from enum import Enum

from adledger.aggregation import (
    Period,
    PeriodAggregator,
    RangeKind,
    Totals,
    classify,
    decompose,
    merge_campaign_lines,
)
from adledger.connectors import (
    BaseFetcher,
    ClientDirectory,
    DateRange,
    FetcherRegistry,
    FetchError,
    Platform,
    PlatformAccount,
)
from adledger.conversions import CampaignRecord, ConversionMetrics
from adledger.storage import (
    CacheEntry,
    CacheKey,
    CacheStore,
    CampaignLine,
    DataSource,
    PeriodSummary,
    SummaryKey,
)
from adledger.cache.exceptions import DataUnavailableError, PlatformNotConfiguredError, UnknownClientError
from adledger.cache.monitor import RefreshMonitor
from adledger.cache.refresh import RefreshWorkerPool, SingleFlight
from adledger.cache.settings import CacheSettings

logger = logging.getLogger(__name__)


class ResolutionSource(str, Enum):
    """Where resolved data came from."""

    CACHE = "cache"  # fresh cache entry
    STALE_CACHE = "stale-cache"  # stale cache entry, refresh may be scheduled
    LIVE = "live"  # fetched synchronously for this request
    HISTORICAL = "historical"  # stored closed-period summary
    BACKFILL = "backfill"  # closed period fetched on demand
    MIXED = "mixed"  # custom range whose pieces came from different places


@dataclass
class PeriodResolution:
    """How one calendar period was resolved."""

    period: Period
    summary: PeriodSummary
    source: ResolutionSource
    cache_age: timedelta | None = None
    refresh_scheduled: bool = False
    error: str | None = None

    @property
    def stale(self) -> bool:
        return self.source is ResolutionSource.STALE_CACHE


@dataclass
class Resolution:
    """Resolved data for one client, platform and date range."""

    client_id: str
    platform: Platform
    date_range: DateRange
    totals: Totals
    campaigns: list[CampaignLine]
    source: ResolutionSource
    cache_age: timedelta | None = None
    stale: bool = False
    refresh_scheduled: bool = False
    partial: bool = False
    errors: list[str] = field(default_factory=list)
    periods: list[PeriodResolution] = field(default_factory=list)

    @property
    def metrics(self) -> ConversionMetrics:
        return self.totals.metrics

    @classmethod
    def combine(
        cls,
        client_id: str,
        platform: Platform,
        date_range: DateRange,
        parts: list[PeriodResolution],
        failures: list[DataUnavailableError] | None = None,
    ) -> Resolution:
        """Sum period resolutions; ratios are recomputed from the sums."""
        failures = failures or []
        sources = {part.source for part in parts}
        ages = [part.cache_age for part in parts if part.cache_age is not None]
        return cls(
            client_id=client_id,
            platform=platform,
            date_range=date_range,
            totals=Totals.sum([Totals.from_summary(part.summary) for part in parts]),
            campaigns=merge_campaign_lines(line for part in parts for line in part.summary.campaigns),
            source=sources.pop() if len(sources) == 1 else ResolutionSource.MIXED,
            cache_age=max(ages) if ages else None,
            stale=any(part.stale for part in parts),
            refresh_scheduled=any(part.refresh_scheduled for part in parts),
            partial=bool(failures),
            errors=[str(f) for f in failures] + [part.error for part in parts if part.error],
            periods=parts,
        )


@dataclass(frozen=True)
class _Target:
    client_id: str
    platform: Platform
    account: PlatformAccount
    fetcher: BaseFetcher


class CacheFreshnessArbiter:
    """
    Resolve reporting requests against the cache tiers.

    Example:
        arbiter = CacheFreshnessArbiter(
            store=BigQueryCacheStore(),
            fetchers=get_registry(),
            clients=directory,
        )
        resolution = arbiter.resolve("hotel_1", Platform.META, DateRange(date(2026, 10, 1), date(2026, 10, 31)))
        resolution.metrics.roas
    """

    def __init__(
        self,
        store: CacheStore,
        fetchers: FetcherRegistry,
        clients: ClientDirectory,
        settings: CacheSettings | None = None,
        aggregator: PeriodAggregator | None = None,
        refresher: RefreshWorkerPool | None = None,
        monitor: RefreshMonitor | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.store = store
        self.fetchers = fetchers
        self.clients = clients
        self.settings = settings or CacheSettings()
        self.aggregator = aggregator or PeriodAggregator(store)
        self.refresher = refresher or RefreshWorkerPool(self.settings.refresh_workers)
        self.monitor = monitor or RefreshMonitor()
        self._clock = clock or (lambda: datetime.now(UTC))
        self._single_flight = SingleFlight()

    def resolve(
        self,
        client_id: str,
        platform: Platform,
        date_range: DateRange,
        force_fresh: bool = False,
    ) -> Resolution:
        """Resolve one client/platform/date range.

        Raises:
            InvalidDateRangeError: If end precedes start or start is after today.
            UnknownClientError: If the client does not exist.
            PlatformNotConfiguredError: If the platform has no enabled account or fetcher.
            DataUnavailableError: If nothing is cached and fetching failed.
        """
        now = self._clock()
        today = now.date()
        kind, period = classify(date_range, today)
        target = self._target(client_id, platform)

        if kind is not RangeKind.CUSTOM:
            part = self._resolve_period(target, period, now, force_fresh)
            return Resolution.combine(client_id, platform, date_range, [part])

        parts: list[PeriodResolution] = []
        failures: list[DataUnavailableError] = []
        for sub_period in decompose(date_range, today):
            try:
                parts.append(self._resolve_period(target, sub_period, now, force_fresh))
            except DataUnavailableError as e:
                logger.warning(f"Custom range {date_range} is missing {sub_period}: {e}")
                failures.append(e)

        if not parts:
            raise DataUnavailableError(client_id, platform, str(date_range), failures[0].cause)
        return Resolution.combine(client_id, platform, date_range, parts, failures)

    async def resolve_async(
        self,
        client_id: str,
        platform: Platform,
        date_range: DateRange,
        force_fresh: bool = False,
    ) -> Resolution:
        """Resolve in a worker thread (non-blocking)."""
        return await asyncio.to_thread(self.resolve, client_id, platform, date_range, force_fresh)

    def _target(self, client_id: str, platform: Platform) -> _Target:
        client = self.clients.get(client_id)
        if client is None:
            raise UnknownClientError(client_id)
        account = client.account_for(platform)
        if account is None:
            raise PlatformNotConfiguredError(client_id, platform)
        fetcher = self.fetchers.get(platform)
        if fetcher is None:
            raise PlatformNotConfiguredError(client_id, platform, reason="no fetcher registered")
        return _Target(client_id, platform, account, fetcher)

    def _resolve_period(self, target: _Target, period: Period, now: datetime, force_fresh: bool) -> PeriodResolution:
        if period.is_closed(now.date()):
            return self._resolve_closed(target, period, force_fresh)
        return self._resolve_open(target, period, now, force_fresh)

    # Closed periods

    def _resolve_closed(self, target: _Target, period: Period, force_fresh: bool) -> PeriodResolution:
        key = SummaryKey(target.client_id, target.platform, period.period_type, period.start)
        existing = self.store.get_summary(key)
        if existing is not None and not force_fresh:
            return PeriodResolution(period, existing, ResolutionSource.HISTORICAL)

        data_source = DataSource.API if force_fresh else DataSource.BACKFILL
        try:
            summary = self._single_flight.do(
                (key, data_source), lambda: self._backfill(target, period, key, data_source)
            )
        except DataUnavailableError as e:
            if existing is None:
                raise
            cause = e.cause or e
            logger.warning(f"Re-aggregation of {period} for {target.client_id} failed, serving stored data: {cause}")
            return PeriodResolution(
                period, existing, ResolutionSource.HISTORICAL, error=f"{type(cause).__name__}: {cause}"
            )
        source = ResolutionSource.LIVE if force_fresh else ResolutionSource.BACKFILL
        return PeriodResolution(period, summary, source)

    def _backfill(self, target: _Target, period: Period, key: SummaryKey, data_source: DataSource) -> PeriodSummary:
        if data_source is DataSource.BACKFILL:
            # A concurrent backfill may have finished before we became leader
            existing = self.store.get_summary(key)
            if existing is not None:
                return existing

        records = self._fetch_or_unavailable(target, period, period.date_range)
        logger.info(f"Backfilling {period} for {target.client_id}/{target.platform.value}")
        return self.aggregator.aggregate(
            target.client_id,
            target.platform,
            period.period_type,
            period.start,
            records,
            data_source=data_source,
            normalizer=self.aggregator.normalizer_for(target.account),
        )

    # Open periods

    def _resolve_open(self, target: _Target, period: Period, now: datetime, force_fresh: bool) -> PeriodResolution:
        key = CacheKey(target.client_id, target.platform, period.period_id)
        entry = self.store.get_entry(key)

        if entry is None:
            entry = self._single_flight.do(key, lambda: self._populate(target, period, key))
            return PeriodResolution(period, entry.summary, ResolutionSource.LIVE, cache_age=entry.age(now))

        fresh = entry.is_fresh(now, self.settings.freshness_threshold)
        cached_source = ResolutionSource.CACHE if fresh else ResolutionSource.STALE_CACHE

        if force_fresh:
            if not self.store.try_acquire_refresh(key, now, self.settings.lock_ttl):
                logger.info(f"Refresh of {key} already in progress, serving cached data")
                return PeriodResolution(period, entry.summary, cached_source, cache_age=entry.age(now))
            try:
                refreshed = self._refresh(target, period, key, held_since=now)
            except FetchError as e:
                self.store.release_refresh(key, held_since=now)
                self.monitor.record_failure(target.client_id, target.platform, e)
                logger.warning(f"Forced refresh of {key} failed, serving cached data: {e}")
                return PeriodResolution(
                    period, entry.summary, cached_source, cache_age=entry.age(now), error=f"{type(e).__name__}: {e}"
                )
            except Exception:
                self.store.release_refresh(key, held_since=now)
                raise
            self.monitor.record_success(target.client_id, target.platform)
            return PeriodResolution(period, refreshed.summary, ResolutionSource.LIVE, cache_age=refreshed.age(now))

        if fresh:
            return PeriodResolution(period, entry.summary, ResolutionSource.CACHE, cache_age=entry.age(now))

        scheduled = self._schedule_refresh(target, period, key, now)
        return PeriodResolution(
            period,
            entry.summary,
            ResolutionSource.STALE_CACHE,
            cache_age=entry.age(now),
            refresh_scheduled=scheduled,
        )

    def _populate(self, target: _Target, period: Period, key: CacheKey) -> CacheEntry:
        # A concurrent miss may have written the entry before we became leader
        existing = self.store.get_entry(key)
        if existing is not None:
            return existing

        records = self._fetch_or_unavailable(target, period, self._fetch_range(period))
        entry = self._write_entry(target, period, key, records)
        logger.info(f"Cached {key} ({entry.summary.campaign_count} campaigns)")
        return entry

    def _schedule_refresh(self, target: _Target, period: Period, key: CacheKey, now: datetime) -> bool:
        if not self.store.try_acquire_refresh(key, now, self.settings.lock_ttl):
            logger.debug(f"Refresh of {key} already in progress")
            return False
        try:
            self.refresher.submit(str(key), self._background_refresh, target, period, key, now)
        except RuntimeError:
            self.store.release_refresh(key, held_since=now)
            raise
        return True

    def _refresh(self, target: _Target, period: Period, key: CacheKey, held_since: datetime) -> CacheEntry:
        """Fetch and replace the entry. The caller must hold the lock acquired at `held_since`."""
        records = self.settings.retry.call(target.fetcher.fetch, target.account, self._fetch_range(period))
        return self._write_entry(target, period, key, records, held_since=held_since)

    def _background_refresh(self, target: _Target, period: Period, key: CacheKey, held_since: datetime) -> None:
        try:
            self._refresh(target, period, key, held_since)
        except Exception as e:
            # Data is left untouched; the next stale read may try again
            self.store.release_refresh(key, held_since=held_since)
            self.monitor.record_failure(target.client_id, target.platform, e)
            raise
        self.monitor.record_success(target.client_id, target.platform)

    def _write_entry(
        self,
        target: _Target,
        period: Period,
        key: CacheKey,
        records: list[CampaignRecord],
        held_since: datetime | None = None,
    ) -> CacheEntry:
        summary = self.aggregator.build(
            target.client_id,
            target.platform,
            period.period_type,
            period.start,
            records,
            data_source=DataSource.API,
            normalizer=self.aggregator.normalizer_for(target.account),
        )
        entry = CacheEntry(key=key, summary=summary, last_updated=self._clock())
        self.store.put_entry(entry, held_since=held_since)
        return entry

    # Fetching

    def _fetch_range(self, period: Period) -> DateRange:
        """The open period up to today; future days have no data."""
        today: date = self._clock().date()
        return DateRange(period.start, min(period.end, today))

    def _fetch_or_unavailable(self, target: _Target, period: Period, date_range: DateRange) -> list[CampaignRecord]:
        try:
            records = self.settings.retry.call(target.fetcher.fetch, target.account, date_range)
        except FetchError as e:
            self.monitor.record_failure(target.client_id, target.platform, e)
            raise DataUnavailableError(target.client_id, target.platform, period.period_id, e) from e
        self.monitor.record_success(target.client_id, target.platform)
        return records
