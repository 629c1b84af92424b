"""
Campaign record and conversion metric schema.

Platforms report the same funnel under very different vocabularies:
- Meta: `actions` / `action_values` arrays keyed by `action_type`
- Google Ads: per-conversion-action rows keyed by conversion name

Both are reduced to a `CampaignRecord` carrying raw `(action_type, value)`
pairs, which the normalizer turns into one canonical `ConversionMetrics` set.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from typing import Any, NamedTuple


class RawAction(NamedTuple):
    """A single platform-specific action entry."""

    action_type: str
    value: float


def _to_number(value: Any) -> float:
    """Coerce platform numbers (often strings) to float, 0.0 when unusable."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def _parse_actions(entries: Any, type_keys: tuple[str, ...], value_key: str) -> list[RawAction]:
    if not isinstance(entries, list):
        return []
    actions = []
    for entry in entries:
        if isinstance(entry, RawAction):
            actions.append(entry)
            continue
        if isinstance(entry, (tuple, list)) and len(entry) == 2:
            actions.append(RawAction(str(entry[0]), _to_number(entry[1])))
            continue
        if not isinstance(entry, dict):
            continue
        action_type = next((entry[k] for k in type_keys if entry.get(k)), "")
        actions.append(RawAction(str(action_type), _to_number(entry.get(value_key))))
    return actions


@dataclass
class CampaignRecord:
    """
    One platform campaign's metrics for a date range.

    Ephemeral: produced by a fetcher, consumed immediately by the normalizer.

    Example:
        record = CampaignRecord(
            campaign_id="120210",
            campaign_name="Summer stays",
            spend=1000.0,
            impressions=50_000,
            clicks=900,
            raw_actions=[RawAction("omni_purchase", 12)],
            raw_action_values=[RawAction("omni_purchase", 6000.0)],
        )
    """

    campaign_id: str
    campaign_name: str = ""
    spend: float = 0.0
    impressions: int = 0
    clicks: int = 0
    raw_actions: list[RawAction] = field(default_factory=list)
    raw_action_values: list[RawAction] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CampaignRecord:
        """Create a record from a Meta insights row or a Google Ads campaign row.

        Meta rows carry `actions` and `action_values` lists of
        `{"action_type": ..., "value": ...}`. Google Ads rows carry a
        `conversions` list of `{"conversion_name", "conversions",
        "conversion_value"}`; counts become raw actions and values become raw
        action values under the conversion name.

        Raises:
            ValueError: If no campaign identifier is present.
        """
        campaign_id = data.get("campaign_id") or data.get("id")
        if not campaign_id:
            raise ValueError("Missing required field: campaign_id")

        raw_actions = _parse_actions(data.get("actions"), ("action_type",), "value")
        raw_action_values = _parse_actions(data.get("action_values"), ("action_type",), "value")

        conversions = data.get("conversions")
        if isinstance(conversions, list):
            name_keys = ("conversion_name", "name")
            raw_actions += _parse_actions(conversions, name_keys, "conversions")
            raw_action_values += _parse_actions(conversions, name_keys, "conversion_value")

        return cls(
            campaign_id=str(campaign_id),
            campaign_name=str(data.get("campaign_name") or data.get("name") or ""),
            spend=_to_number(data.get("spend")),
            impressions=int(_to_number(data.get("impressions"))),
            clicks=int(_to_number(data.get("clicks"))),
            raw_actions=raw_actions,
            raw_action_values=raw_action_values,
        )


# Fields that are summed across records; ratios are always recomputed.
ADDITIVE_FIELDS = (
    "click_to_call",
    "lead",
    "purchase_count",
    "purchase_value",
    "booking_step_1",
    "booking_step_2",
    "booking_step_3",
    "reservations",
    "reservation_value",
)


@dataclass(frozen=True)
class ConversionMetrics:
    """Canonical conversion metric set.

    Every field is non-negative. `roas` and `cost_per_reservation` are derived
    from totals via `with_ratios()` and must never be averaged.
    """

    click_to_call: float = 0.0
    lead: float = 0.0
    purchase_count: float = 0.0
    purchase_value: float = 0.0
    booking_step_1: float = 0.0
    booking_step_2: float = 0.0
    booking_step_3: float = 0.0
    reservations: float = 0.0
    reservation_value: float = 0.0
    roas: float = 0.0
    cost_per_reservation: float = 0.0

    def __post_init__(self) -> None:
        for f in fields(self):
            if getattr(self, f.name) < 0:
                raise ValueError(f"{f.name} must be non-negative, got {getattr(self, f.name)}")

    def with_ratios(self, spend: float) -> ConversionMetrics:
        """Return a copy with ROAS and cost per reservation computed from `spend`."""
        roas = self.reservation_value / spend if spend > 0 else 0.0
        cost = spend / self.reservations if spend > 0 and self.reservations > 0 else 0.0
        values = {name: getattr(self, name) for name in ADDITIVE_FIELDS}
        return ConversionMetrics(**values, roas=roas, cost_per_reservation=cost)

    @classmethod
    def total(cls, items: list[ConversionMetrics], spend: float = 0.0) -> ConversionMetrics:
        """Sum the additive fields of `items` and derive ratios from `spend`."""
        values = {name: math.fsum(getattr(m, name) for m in items) for name in ADDITIVE_FIELDS}
        return cls(**values).with_ratios(spend)

    def to_dict(self) -> dict[str, float]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConversionMetrics:
        """Create metrics from a dictionary; missing fields default to zero."""
        return cls(**{f.name: _to_number(data.get(f.name)) for f in fields(cls)})
