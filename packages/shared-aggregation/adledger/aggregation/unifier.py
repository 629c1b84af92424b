"""
Multi-platform unifier - platform summaries -> one reporting schema.

Platforms that are absent contribute zero. Ratios (ROAS, cost per
reservation, CTR, CPC) are recomputed from the combined sums.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from adledger.connectors import Platform
from adledger.conversions import ConversionMetrics
from adledger.storage import CampaignLine, PeriodSummary


@dataclass
class Totals:
    """Spend, delivery and conversion totals in the unified schema."""

    spend: float = 0.0
    impressions: int = 0
    clicks: int = 0
    metrics: ConversionMetrics = field(default_factory=ConversionMetrics)

    @classmethod
    def from_summary(cls, summary: PeriodSummary | None) -> Totals:
        if summary is None:
            return cls()
        return cls(summary.spend, summary.impressions, summary.clicks, summary.metrics)

    @classmethod
    def sum(cls, items: list[Totals]) -> Totals:
        spend = math.fsum(t.spend for t in items)
        return cls(
            spend=spend,
            impressions=sum(t.impressions for t in items),
            clicks=sum(t.clicks for t in items),
            metrics=ConversionMetrics.total([t.metrics for t in items], spend=spend),
        )

    @property
    def ctr(self) -> float:
        return self.clicks / self.impressions * 100 if self.impressions > 0 else 0.0

    @property
    def cpc(self) -> float:
        return self.spend / self.clicks if self.clicks > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "spend": self.spend,
            "impressions": self.impressions,
            "clicks": self.clicks,
            "ctr": self.ctr,
            "cpc": self.cpc,
        }


@dataclass
class CombinedTotals:
    """Cross-platform totals with the per-platform breakdown they came from."""

    totals: Totals
    by_platform: dict[Platform, Totals] = field(default_factory=dict)

    @property
    def metrics(self) -> ConversionMetrics:
        return self.totals.metrics

    @property
    def platforms(self) -> list[Platform]:
        return list(self.by_platform)


@dataclass
class UnifiedCampaign:
    """A campaign line tagged with its platform."""

    platform: Platform
    campaign_id: str
    campaign_name: str
    spend: float
    impressions: int
    clicks: int
    metrics: ConversionMetrics

    def to_dict(self) -> dict[str, Any]:
        return {
            "platform": self.platform.value,
            "campaign_id": self.campaign_id,
            "campaign_name": self.campaign_name,
            "spend": self.spend,
            "impressions": self.impressions,
            "clicks": self.clicks,
            "metrics": self.metrics.to_dict(),
        }


def unify_totals(platform_totals: Mapping[Platform, Totals | None]) -> CombinedTotals:
    """Sum per-platform totals; a None entry contributes zero."""
    by_platform = {platform: totals or Totals() for platform, totals in platform_totals.items()}
    return CombinedTotals(totals=Totals.sum(list(by_platform.values())), by_platform=by_platform)


def unify(platform_summaries: Mapping[Platform, PeriodSummary | None]) -> CombinedTotals:
    """Sum platform summaries into one set of totals.

    Example:
        combined = unify({Platform.META: meta_summary, Platform.GOOGLE_ADS: None})
        combined.metrics.roas  # recomputed from summed value and spend
    """
    return unify_totals(
        {platform: Totals.from_summary(summary) for platform, summary in platform_summaries.items()}
    )


def tag_campaigns(platform_lines: Mapping[Platform, Iterable[CampaignLine]]) -> list[UnifiedCampaign]:
    """Tag campaign lines with their platform, ordered by platform then campaign id."""
    campaigns = [
        UnifiedCampaign(
            platform=platform,
            campaign_id=line.campaign_id,
            campaign_name=line.campaign_name,
            spend=line.spend,
            impressions=line.impressions,
            clicks=line.clicks,
            metrics=line.metrics,
        )
        for platform, lines in platform_lines.items()
        for line in lines
    ]
    return sorted(campaigns, key=lambda c: (c.platform.value, c.campaign_id))


def unify_campaigns(platform_summaries: Mapping[Platform, PeriodSummary | None]) -> list[UnifiedCampaign]:
    """Flatten per-platform campaign lines, ordered by platform then campaign id."""
    return tag_campaigns(
        {platform: summary.campaigns for platform, summary in platform_summaries.items() if summary is not None}
    )
