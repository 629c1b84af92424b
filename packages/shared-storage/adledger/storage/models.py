"""
Stored models: closed-period summaries and open-period cache entries.

- PeriodSummary: durable historical row, one per
  (client_id, platform, period_type, period_start)
- CacheEntry: transient live snapshot of an open period, keyed by
  (client_id, platform, period_id), with a refresh lock
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any

from adledger.connectors import Platform
from adledger.conversions import ConversionMetrics


class PeriodType(str, Enum):
    """Summary granularity."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class DataSource(str, Enum):
    """How a stored summary was produced."""

    API = "api"  # Scheduled close-out or forced re-aggregation
    CACHE = "cache"  # Archived from an open-period cache entry
    BACKFILL = "backfill"  # On-demand fetch of a missing closed period


@dataclass(frozen=True)
class SummaryKey:
    """Identity of a PeriodSummary row."""

    client_id: str
    platform: Platform
    period_type: PeriodType
    period_start: date


@dataclass(frozen=True)
class CacheKey:
    """Identity of a CacheEntry row (e.g. period_id '2026-10', '2026-W43')."""

    client_id: str
    platform: Platform
    period_id: str

    def __str__(self) -> str:
        return f"{self.client_id}/{self.platform.value}/{self.period_id}"


@dataclass
class CampaignLine:
    """Per-campaign totals inside a summary."""

    campaign_id: str
    campaign_name: str = ""
    spend: float = 0.0
    impressions: int = 0
    clicks: int = 0
    metrics: ConversionMetrics = field(default_factory=ConversionMetrics)

    def to_dict(self) -> dict[str, Any]:
        return {
            "campaign_id": self.campaign_id,
            "campaign_name": self.campaign_name,
            "spend": self.spend,
            "impressions": self.impressions,
            "clicks": self.clicks,
            "metrics": self.metrics.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CampaignLine:
        return cls(
            campaign_id=str(data["campaign_id"]),
            campaign_name=data.get("campaign_name") or "",
            spend=float(data.get("spend") or 0.0),
            impressions=int(data.get("impressions") or 0),
            clicks=int(data.get("clicks") or 0),
            metrics=ConversionMetrics.from_dict(data.get("metrics") or {}),
        )


@dataclass
class PeriodSummary:
    """
    Aggregated totals for one client, platform and period.

    Carries no timestamps, so re-aggregating identical input produces an
    identical row.

    Example:
        summary = PeriodSummary(
            client_id="hotel_1",
            platform=Platform.META,
            period_type=PeriodType.MONTHLY,
            period_start=date(2026, 9, 1),
            period_end=date(2026, 9, 30),
            spend=1000.0,
            metrics=ConversionMetrics(reservations=5, reservation_value=5000.0).with_ratios(1000.0),
        )
    """

    client_id: str
    platform: Platform
    period_type: PeriodType
    period_start: date
    period_end: date
    spend: float = 0.0
    impressions: int = 0
    clicks: int = 0
    metrics: ConversionMetrics = field(default_factory=ConversionMetrics)
    campaigns: list[CampaignLine] = field(default_factory=list)
    data_source: DataSource = DataSource.API

    @property
    def key(self) -> SummaryKey:
        return SummaryKey(self.client_id, self.platform, self.period_type, self.period_start)

    @property
    def campaign_count(self) -> int:
        return len(self.campaigns)

    @property
    def ctr(self) -> float:
        """Click-through rate in percent."""
        return self.clicks / self.impressions * 100 if self.impressions > 0 else 0.0

    @property
    def cpc(self) -> float:
        """Cost per click."""
        return self.spend / self.clicks if self.clicks > 0 else 0.0

    def with_source(self, data_source: DataSource) -> PeriodSummary:
        return replace(self, data_source=data_source)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "client_id": self.client_id,
            "platform": self.platform.value,
            "period_type": self.period_type.value,
            "period_start": self.period_start.isoformat(),
            "period_end": self.period_end.isoformat(),
            "spend": self.spend,
            "impressions": self.impressions,
            "clicks": self.clicks,
            "ctr": self.ctr,
            "cpc": self.cpc,
            "metrics": self.metrics.to_dict(),
            "campaign_count": self.campaign_count,
            "campaigns": [line.to_dict() for line in self.campaigns],
            "data_source": self.data_source.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PeriodSummary:
        """Create a summary from a dictionary (as produced by to_dict)."""
        return cls(
            client_id=data["client_id"],
            platform=Platform(data["platform"]),
            period_type=PeriodType(data["period_type"]),
            period_start=_as_date(data["period_start"]),
            period_end=_as_date(data["period_end"]),
            spend=float(data.get("spend") or 0.0),
            impressions=int(data.get("impressions") or 0),
            clicks=int(data.get("clicks") or 0),
            metrics=ConversionMetrics.from_dict(data.get("metrics") or {}),
            campaigns=[CampaignLine.from_dict(c) for c in data.get("campaigns") or []],
            data_source=DataSource(data.get("data_source", DataSource.API.value)),
        )


@dataclass
class CacheEntry:
    """Live snapshot of an open period plus its refresh lock."""

    key: CacheKey
    summary: PeriodSummary
    last_updated: datetime
    refresh_in_progress: bool = False
    refresh_started_at: datetime | None = None

    def age(self, now: datetime) -> timedelta:
        return now - self.last_updated

    def is_fresh(self, now: datetime, threshold: timedelta) -> bool:
        """True while the snapshot is younger than `threshold`."""
        return self.age(now) < threshold

    def lock_expired(self, now: datetime, lock_ttl: timedelta) -> bool:
        """True when no refresh holds the lock or the holder exceeded `lock_ttl`."""
        if not self.refresh_in_progress or self.refresh_started_at is None:
            return True
        return now - self.refresh_started_at >= lock_ttl

    def to_dict(self) -> dict[str, Any]:
        return {
            "client_id": self.key.client_id,
            "platform": self.key.platform.value,
            "period_id": self.key.period_id,
            "summary": self.summary.to_dict(),
            "last_updated": self.last_updated.isoformat(),
            "refresh_in_progress": self.refresh_in_progress,
            "refresh_started_at": self.refresh_started_at.isoformat() if self.refresh_started_at else None,
        }


def _as_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))
