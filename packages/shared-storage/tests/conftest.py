"""Pytest fixtures for shared-storage tests."""

from __future__ import annotations

from datetime import UTC, date, datetime

import pytest
from adledger.connectors import Platform
from adledger.conversions import ConversionMetrics
from adledger.storage.models import (
    CacheEntry,
    CacheKey,
    CampaignLine,
    DataSource,
    PeriodSummary,
    PeriodType,
)

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def september_summary() -> PeriodSummary:
    """A closed monthly Meta summary with one campaign."""
    metrics = ConversionMetrics(reservations=5, reservation_value=5000.0, lead=3).with_ratios(1000.0)
    return PeriodSummary(
        client_id="hotel_1",
        platform=Platform.META,
        period_type=PeriodType.MONTHLY,
        period_start=date(2026, 9, 1),
        period_end=date(2026, 9, 30),
        spend=1000.0,
        impressions=40000,
        clicks=800,
        metrics=metrics,
        campaigns=[
            CampaignLine("c1", "Autumn", 1000.0, 40000, 800, metrics),
        ],
        data_source=DataSource.API,
    )


@pytest.fixture
def october_entry(september_summary) -> CacheEntry:
    """An open-period cache entry for October."""
    summary = PeriodSummary(
        client_id="hotel_1",
        platform=Platform.META,
        period_type=PeriodType.MONTHLY,
        period_start=date(2026, 10, 1),
        period_end=date(2026, 10, 31),
        spend=300.0,
    )
    return CacheEntry(
        key=CacheKey("hotel_1", Platform.META, "2026-10"),
        summary=summary,
        last_updated=NOW,
    )
