"""
AdLedger Conversions - Canonical conversion metrics across ad platforms.

Provides:
- Campaign record schema accepting Meta and Google Ads rows
- Versioned action mapping table (canonical bucket -> raw identifiers)
- Normalizer reducing raw action arrays to one ConversionMetrics set

The key insight: every platform reports the same booking funnel under a
different vocabulary, and Meta reports one purchase under several identifiers.
Normalizing once, with explicit dedup rules, is what makes totals comparable
and summable across platforms.

Usage:
    from adledger.conversions import ActionNormalizer, CampaignRecord

    record = CampaignRecord.from_dict(meta_insights_row)
    metrics = ActionNormalizer().normalize_record(record)
"""

from adledger.conversions.mapping import (
    DEFAULT_MAPPING,
    ActionMapping,
    BucketRule,
    MetricBucket,
)
from adledger.conversions.normalizer import (
    ActionNormalizer,
    normalize,
    to_records,
)
from adledger.conversions.schema import (
    ADDITIVE_FIELDS,
    CampaignRecord,
    ConversionMetrics,
    RawAction,
)

__all__ = [
    # Schema
    "RawAction",
    "CampaignRecord",
    "ConversionMetrics",
    "ADDITIVE_FIELDS",
    # Mapping
    "MetricBucket",
    "BucketRule",
    "ActionMapping",
    "DEFAULT_MAPPING",
    # Normalizer
    "ActionNormalizer",
    "normalize",
    "to_records",
]
