"""
Conversion metrics normalizer - raw platform actions -> ConversionMetrics.

Rules (see `adledger.conversions.mapping`):
- Purchases are deduplicated: Meta reports one purchase under several
  identifiers (omni_*, offsite_conversion.fb_pixel_*, base name), so only the
  highest-priority identifier present is counted.
- Every other bucket accumulates across all matching entries.
- Purchase value is summed, never overwritten.
- Booking step 1 falls back to the initiate-checkout family.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from typing import Any

import pandas as pd
from adledger.conversions.mapping import (
    DEFAULT_MAPPING,
    ActionMapping,
    MetricBucket,
    canonical_action_type,
)
from adledger.conversions.schema import CampaignRecord, ConversionMetrics, RawAction

logger = logging.getLogger(__name__)

_ACCUMULATING_BUCKETS = (
    MetricBucket.CLICK_TO_CALL,
    MetricBucket.LEAD,
    MetricBucket.BOOKING_STEP_1,
    MetricBucket.BOOKING_STEP_2,
    MetricBucket.BOOKING_STEP_3,
)


class ActionNormalizer:
    """
    Normalize raw platform action arrays into canonical conversion metrics.

    Stateless apart from the mapping table, so one instance can be shared
    across threads.

    Example:
        normalizer = ActionNormalizer()
        metrics = normalizer.normalize(
            [RawAction("omni_purchase", 3), RawAction("offsite_conversion.fb_pixel_purchase", 3)],
            [RawAction("omni_purchase", 100.0), RawAction("omni_purchase", 50.0)],
            spend=75.0,
        )
        # metrics.purchase_count == 3, metrics.purchase_value == 150.0
    """

    def __init__(self, mapping: ActionMapping | None = None):
        """
        Initialize normalizer.

        Args:
            mapping: Mapping table to use (default: DEFAULT_MAPPING)
        """
        self.mapping = mapping or DEFAULT_MAPPING

    def normalize(
        self,
        raw_actions: Iterable[RawAction | tuple[str, Any]],
        raw_action_values: Iterable[RawAction | tuple[str, Any]],
        spend: float = 0.0,
        campaign_name: str | None = None,
    ) -> ConversionMetrics:
        """
        Normalize one campaign record's action arrays.

        Args:
            raw_actions: (action_type, count) entries
            raw_action_values: (action_type, monetary value) entries
            spend: Campaign spend, used for ROAS and cost per reservation
            campaign_name: Optional name for log messages

        Returns:
            Fully populated ConversionMetrics
        """
        actions = self._clean(raw_actions, campaign_name)
        values = self._clean(raw_action_values, campaign_name)

        totals = {bucket: 0.0 for bucket in _ACCUMULATING_BUCKETS}
        has_step_1 = False
        for action_type, value in actions:
            for bucket in _ACCUMULATING_BUCKETS:
                if self.mapping.family(bucket).matches(action_type):
                    totals[bucket] += value
                    if bucket is MetricBucket.BOOKING_STEP_1:
                        has_step_1 = True

        if not has_step_1:
            proxy = self.mapping.booking_step_1_proxy
            totals[MetricBucket.BOOKING_STEP_1] = math.fsum(
                value for action_type, value in actions if proxy.matches(action_type)
            )

        purchase_count = self._purchase_total(actions)
        purchase_value = self._purchase_total(values)

        metrics = ConversionMetrics(
            click_to_call=totals[MetricBucket.CLICK_TO_CALL],
            lead=totals[MetricBucket.LEAD],
            purchase_count=purchase_count,
            purchase_value=purchase_value,
            booking_step_1=totals[MetricBucket.BOOKING_STEP_1],
            booking_step_2=totals[MetricBucket.BOOKING_STEP_2],
            booking_step_3=totals[MetricBucket.BOOKING_STEP_3],
            reservations=purchase_count,
            reservation_value=purchase_value,
        ).with_ratios(max(float(spend or 0.0), 0.0))

        self._check_funnel(metrics, campaign_name)
        return metrics

    def normalize_record(self, record: CampaignRecord) -> ConversionMetrics:
        """Normalize a CampaignRecord using its own spend."""
        return self.normalize(
            record.raw_actions,
            record.raw_action_values,
            spend=record.spend,
            campaign_name=record.campaign_name or record.campaign_id,
        )

    def _purchase_total(self, entries: list[tuple[str, float]]) -> float:
        """Count one purchase identifier per record: first priority match wins."""
        present = {action_type for action_type, _ in entries}
        for identifier in self.mapping.purchase_priority:
            if identifier in present:
                return math.fsum(v for action_type, v in entries if action_type == identifier)
        fallback = self.mapping.purchase_fallback
        return math.fsum(v for action_type, v in entries if fallback.matches(action_type))

    def _clean(
        self,
        entries: Iterable[RawAction | tuple[str, Any]] | None,
        campaign_name: str | None,
    ) -> list[tuple[str, float]]:
        """Canonicalize action types and drop unusable values."""
        cleaned = []
        for entry in entries or []:
            try:
                action_type, raw_value = entry
                value = float(raw_value)
            except (TypeError, ValueError):
                logger.debug(f"Skipping malformed action entry {entry!r} for {campaign_name or 'unknown'}")
                continue
            if math.isnan(value) or math.isinf(value) or value < 0:
                logger.debug(f"Skipping invalid value for {action_type!r}: {raw_value!r}")
                continue
            cleaned.append((canonical_action_type(action_type), value))
        return cleaned

    def _check_funnel(self, metrics: ConversionMetrics, campaign_name: str | None) -> None:
        """Log funnel inversions; the numbers are reported as the platform sent them."""
        name = campaign_name or "unknown"
        steps = [
            ("Step 1", metrics.booking_step_1),
            ("Step 2", metrics.booking_step_2),
            ("Step 3", metrics.booking_step_3),
            ("Reservations", metrics.reservations),
        ]
        for (upper_name, upper), (lower_name, lower) in zip(steps, steps[1:]):
            if upper > 0 and lower > upper:
                logger.warning(
                    f"Funnel inversion for campaign {name!r}: {lower_name} ({lower}) > {upper_name} ({upper})"
                )


_default_normalizer = ActionNormalizer()


def normalize(
    raw_actions: Iterable[RawAction | tuple[str, Any]],
    raw_action_values: Iterable[RawAction | tuple[str, Any]],
    spend: float = 0.0,
) -> ConversionMetrics:
    """Normalize action arrays with the default mapping table."""
    return _default_normalizer.normalize(raw_actions, raw_action_values, spend=spend)


def to_records(
    data: pd.DataFrame | Iterable[CampaignRecord | dict[str, Any]],
) -> list[CampaignRecord]:
    """Convert a DataFrame or list of platform rows into CampaignRecords."""
    if isinstance(data, pd.DataFrame):
        rows: Iterable[Any] = data.to_dict(orient="records")
    else:
        rows = data
    return [row if isinstance(row, CampaignRecord) else CampaignRecord.from_dict(row) for row in rows]
