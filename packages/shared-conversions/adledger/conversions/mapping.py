"""
Action mapping table - canonical bucket -> recognized raw identifiers.

The table is finite and versioned. Bump `version` whenever a rule changes so
stored summaries can be traced back to the mapping that produced them.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum


class MetricBucket(str, Enum):
    """Canonical conversion metric buckets."""

    CLICK_TO_CALL = "click_to_call"
    LEAD = "lead"
    BOOKING_STEP_1 = "booking_step_1"
    BOOKING_STEP_2 = "booking_step_2"
    BOOKING_STEP_3 = "booking_step_3"
    PURCHASE = "purchase"


def canonical_action_type(action_type: str) -> str:
    """Lower-case and trim a raw action type for matching."""
    return str(action_type or "").strip().lower()


@dataclass(frozen=True)
class BucketRule:
    """Substring family rule for one bucket.

    An action type matches when it contains any fragment and none of the
    excludes.
    """

    bucket: MetricBucket
    fragments: tuple[str, ...]
    excludes: tuple[str, ...] = ()

    def matches(self, action_type: str) -> bool:
        action_type = canonical_action_type(action_type)
        if not action_type:
            return False
        if any(excluded in action_type for excluded in self.excludes):
            return False
        return any(fragment in action_type for fragment in self.fragments)


@dataclass(frozen=True)
class ActionMapping:
    """Versioned mapping from raw platform identifiers to metric buckets.

    Attributes:
        version: Mapping table version.
        families: Accumulating family rules for every bucket except purchase.
        purchase_priority: Ordered dedup list; the first identifier present in
            a record wins and equivalent identifiers are ignored.
        purchase_fallback: Family used for purchases when no priority
            identifier is present (e.g. Google Ads conversion names).
        booking_step_1_proxy: Family summed into booking step 1 when the
            record has no dedicated step 1 entry.
    """

    version: str
    families: Mapping[MetricBucket, BucketRule]
    purchase_priority: tuple[str, ...]
    purchase_fallback: BucketRule
    booking_step_1_proxy: BucketRule
    overrides: Mapping[MetricBucket, frozenset[str]] = field(default_factory=dict)

    def family(self, bucket: MetricBucket) -> BucketRule:
        return self.families[bucket]

    def with_overrides(
        self,
        extra: Mapping[MetricBucket, Iterable[str]],
        version: str | None = None,
    ) -> ActionMapping:
        """Layer client-specific identifiers on top of this table.

        Purchase identifiers are put ahead of the dedup priority list; other
        identifiers join the bucket's family.

        Example:
            mapping = DEFAULT_MAPPING.with_overrides({
                MetricBucket.CLICK_TO_CALL: ["offsite_conversion.custom.1470262077092668"],
            })
        """
        families = dict(self.families)
        priority = list(self.purchase_priority)
        overrides = {bucket: set(ids) for bucket, ids in self.overrides.items()}

        for bucket, identifiers in extra.items():
            bucket = MetricBucket(bucket)
            identifiers = [canonical_action_type(i) for i in identifiers if canonical_action_type(i)]
            overrides.setdefault(bucket, set()).update(identifiers)
            if bucket is MetricBucket.PURCHASE:
                priority = identifiers + [p for p in priority if p not in identifiers]
                continue
            rule = families[bucket]
            fragments = rule.fragments + tuple(i for i in identifiers if i not in rule.fragments)
            families[bucket] = replace(rule, fragments=fragments)

        return replace(
            self,
            version=version or f"{self.version}+custom",
            families=families,
            purchase_priority=tuple(priority),
            overrides={bucket: frozenset(ids) for bucket, ids in overrides.items()},
        )


_BOOKING_STEP_NAMES = ("krok", "step", "booking engine", "booking_step")

DEFAULT_MAPPING = ActionMapping(
    version="2025.1",
    families={
        MetricBucket.CLICK_TO_CALL: BucketRule(
            MetricBucket.CLICK_TO_CALL,
            fragments=("call", "phone", "telefon", "dzwonienie"),
        ),
        MetricBucket.LEAD: BucketRule(
            MetricBucket.LEAD,
            fragments=("lead", "mail", "contact", "kontakt", "formularz"),
        ),
        MetricBucket.BOOKING_STEP_1: BucketRule(
            MetricBucket.BOOKING_STEP_1,
            fragments=(
                "booking_step_1", "step 1", "step1", "krok 1", "1 krok",
                "pierwszy krok", "pierwszy_krok", "omni_search",
            ),
        ),
        MetricBucket.BOOKING_STEP_2: BucketRule(
            MetricBucket.BOOKING_STEP_2,
            fragments=(
                "booking_step_2", "step 2", "step2", "krok 2", "2 krok",
                "drugi krok", "drugi_krok", "omni_view_content",
            ),
        ),
        MetricBucket.BOOKING_STEP_3: BucketRule(
            MetricBucket.BOOKING_STEP_3,
            fragments=(
                "booking_step_3", "step 3", "step3", "krok 3", "3 krok",
                "trzeci krok", "trzeci_krok", "omni_initiated_checkout",
            ),
        ),
    },
    purchase_priority=(
        "omni_purchase",
        "offsite_conversion.fb_pixel_purchase",
        "onsite_web_purchase",
        "purchase",
    ),
    purchase_fallback=BucketRule(
        MetricBucket.PURCHASE,
        fragments=("rezerwacja", "reservation", "zakup", "purchase", "complete"),
        excludes=_BOOKING_STEP_NAMES,
    ),
    booking_step_1_proxy=BucketRule(
        MetricBucket.BOOKING_STEP_1,
        fragments=("initiate_checkout", "initiated_checkout", "begin_checkout"),
    ),
)
