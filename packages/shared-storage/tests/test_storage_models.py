"""Tests for stored models."""

from datetime import timedelta

import pytest

from adledger.connectors import Platform
from adledger.storage.models import CacheKey, DataSource, PeriodSummary, PeriodType, SummaryKey


class TestPeriodSummary:
    def test_key(self, september_summary):
        assert september_summary.key == SummaryKey(
            "hotel_1", Platform.META, PeriodType.MONTHLY, september_summary.period_start
        )

    def test_derived_rates(self, september_summary):
        assert september_summary.ctr == pytest.approx(2.0)
        assert september_summary.cpc == 1.25
        assert september_summary.campaign_count == 1

    def test_derived_rates_with_zero_denominators(self, september_summary):
        september_summary.impressions = 0
        september_summary.clicks = 0

        assert september_summary.ctr == 0.0
        assert september_summary.cpc == 0.0

    def test_dict_round_trip(self, september_summary):
        data = september_summary.to_dict()

        assert data["platform"] == "meta"
        assert data["period_start"] == "2026-09-01"
        assert data["data_source"] == "api"
        assert PeriodSummary.from_dict(data) == september_summary

    def test_with_source_returns_copy(self, september_summary):
        archived = september_summary.with_source(DataSource.CACHE)

        assert archived.data_source is DataSource.CACHE
        assert september_summary.data_source is DataSource.API


class TestCacheEntry:
    def test_freshness_boundary(self, october_entry, now):
        threshold = timedelta(hours=3)
        entry = october_entry

        assert entry.is_fresh(now + timedelta(hours=2, minutes=59), threshold)
        assert not entry.is_fresh(now + timedelta(hours=3), threshold)
        assert entry.age(now + timedelta(minutes=5)) == timedelta(minutes=5)

    def test_lock_expiry(self, october_entry, now):
        ttl = timedelta(minutes=5)
        october_entry.refresh_in_progress = True
        october_entry.refresh_started_at = now

        assert not october_entry.lock_expired(now + timedelta(minutes=4), ttl)
        assert october_entry.lock_expired(now + timedelta(minutes=6), ttl)

    def test_unlocked_entry_counts_as_expired(self, october_entry, now):
        assert october_entry.lock_expired(now, timedelta(minutes=5))

    def test_cache_key_str(self):
        assert str(CacheKey("hotel_1", Platform.GOOGLE_ADS, "2026-W43")) == "hotel_1/google_ads/2026-W43"
