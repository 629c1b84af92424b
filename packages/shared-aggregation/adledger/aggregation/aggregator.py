"""
Period aggregator - campaign records -> PeriodSummary.

Totals are sums; ROAS and cost per reservation are recomputed from the
summed totals and never averaged. All sums use math.fsum, so the result does
not depend on record order and re-aggregating the same input yields an
identical row.
"""

from __future__ import annotations

import logging
import math
from collections import defaultdict
from collections.abc import Iterable
from datetime import date
from typing import Any

import pandas as pd
from adledger.aggregation.periods import Period
from adledger.connectors import Platform, PlatformAccount
from adledger.conversions import ActionNormalizer, CampaignRecord, ConversionMetrics, to_records
from adledger.storage import (
    CacheStore,
    CampaignLine,
    DataSource,
    PeriodSummary,
    PeriodType,
)

logger = logging.getLogger(__name__)


def merge_campaign_lines(lines: Iterable[CampaignLine]) -> list[CampaignLine]:
    """Merge lines sharing a campaign id, sorted by campaign id."""
    grouped: dict[str, list[CampaignLine]] = defaultdict(list)
    for line in lines:
        grouped[line.campaign_id].append(line)

    merged = []
    for campaign_id in sorted(grouped):
        group = grouped[campaign_id]
        spend = math.fsum(line.spend for line in group)
        names = sorted(line.campaign_name for line in group if line.campaign_name)
        merged.append(
            CampaignLine(
                campaign_id=campaign_id,
                campaign_name=names[0] if names else "",
                spend=spend,
                impressions=sum(line.impressions for line in group),
                clicks=sum(line.clicks for line in group),
                metrics=ConversionMetrics.total([line.metrics for line in group], spend=spend),
            )
        )
    return merged


def summarize_lines(
    lines: Iterable[CampaignLine],
    client_id: str,
    platform: Platform,
    period_type: PeriodType,
    period_start: date,
    period_end: date,
    data_source: DataSource = DataSource.API,
) -> PeriodSummary:
    """Build a summary whose totals are the sums of `lines`."""
    campaigns = merge_campaign_lines(lines)
    spend = math.fsum(line.spend for line in campaigns)
    return PeriodSummary(
        client_id=client_id,
        platform=platform,
        period_type=period_type,
        period_start=period_start,
        period_end=period_end,
        spend=spend,
        impressions=sum(line.impressions for line in campaigns),
        clicks=sum(line.clicks for line in campaigns),
        metrics=ConversionMetrics.total([line.metrics for line in campaigns], spend=spend),
        campaigns=campaigns,
        data_source=data_source,
    )


def combine_summaries(
    summaries: Iterable[PeriodSummary],
    client_id: str,
    platform: Platform,
    period_type: PeriodType,
    period_start: date,
    period_end: date,
    data_source: DataSource = DataSource.API,
) -> PeriodSummary:
    """Sum several summaries of one client and platform into one."""
    lines = [line for summary in summaries for line in summary.campaigns]
    return summarize_lines(lines, client_id, platform, period_type, period_start, period_end, data_source)


class PeriodAggregator:
    """
    Aggregate normalized campaign records into per-period summaries.

    Example:
        aggregator = PeriodAggregator(store)
        summary = aggregator.aggregate(
            client_id="hotel_1",
            platform=Platform.META,
            period_type=PeriodType.MONTHLY,
            period_start=date(2026, 9, 1),
            campaign_records=records,
        )
    """

    def __init__(self, store: CacheStore, normalizer: ActionNormalizer | None = None):
        self.store = store
        self.normalizer = normalizer or ActionNormalizer()

    def normalizer_for(self, account: PlatformAccount) -> ActionNormalizer:
        """Normalizer with the account's custom conversion identifiers layered on."""
        if not account.custom_conversions:
            return self.normalizer
        return ActionNormalizer(self.normalizer.mapping.with_overrides(account.custom_conversions))

    def build(
        self,
        client_id: str,
        platform: Platform,
        period_type: PeriodType,
        period_start: date,
        campaign_records: pd.DataFrame | Iterable[CampaignRecord | dict[str, Any]],
        data_source: DataSource = DataSource.API,
        normalizer: ActionNormalizer | None = None,
    ) -> PeriodSummary:
        """Build a summary without persisting it.

        Raises:
            ValueError: If period_start is not aligned to period_type.
        """
        period = Period(period_type, period_start)
        normalizer = normalizer or self.normalizer
        lines = []
        for record in to_records(campaign_records):
            lines.append(
                CampaignLine(
                    campaign_id=record.campaign_id,
                    campaign_name=record.campaign_name,
                    spend=record.spend,
                    impressions=record.impressions,
                    clicks=record.clicks,
                    metrics=normalizer.normalize_record(record),
                )
            )
        return summarize_lines(lines, client_id, platform, period_type, period.start, period.end, data_source)

    def aggregate(
        self,
        client_id: str,
        platform: Platform,
        period_type: PeriodType,
        period_start: date,
        campaign_records: pd.DataFrame | Iterable[CampaignRecord | dict[str, Any]],
        data_source: DataSource = DataSource.API,
        normalizer: ActionNormalizer | None = None,
    ) -> PeriodSummary:
        """Build a summary and upsert it into the historical store."""
        summary = self.build(
            client_id, platform, period_type, period_start, campaign_records, data_source, normalizer
        )
        self.store.upsert_summary(summary)
        logger.info(
            f"Aggregated {summary.campaign_count} campaigns for {client_id}/{platform.value} "
            f"{period_type.value} {period_start} (spend={summary.spend:.2f}, source={data_source.value})"
        )
        return summary

    def rollup(
        self,
        client_id: str,
        platform: Platform,
        period: Period,
        data_source: DataSource = DataSource.API,
    ) -> PeriodSummary | None:
        """Derive a weekly or monthly summary from stored daily summaries.

        Returns:
            The upserted summary, or None when any day of the period is missing.
        """
        if period.period_type is PeriodType.DAILY:
            raise ValueError("Daily periods cannot be rolled up")

        daily = self.store.list_summaries(
            client_id, platform, PeriodType.DAILY, start=period.start, end=period.end
        )
        if len(daily) != period.date_range.days:
            logger.debug(
                f"Cannot roll up {period} for {client_id}/{platform.value}: "
                f"{len(daily)}/{period.date_range.days} days stored"
            )
            return None

        summary = combine_summaries(
            daily, client_id, platform, period.period_type, period.start, period.end, data_source
        )
        self.store.upsert_summary(summary)
        logger.info(f"Rolled up {len(daily)} daily summaries into {period} for {client_id}/{platform.value}")
        return summary
