"""
Tier resolver: pick the quantity tier that overrides a rule's value.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from markup_engine.domain.models import PricingRule, PricingTier, TierMatch


@dataclass(frozen=True)
class TierResolution:
    """Value a rule contributes at a given quantity."""

    effective_value: Decimal
    used_tier: bool
    tier: Optional[TierMatch] = None


def find_tier(tiers: Iterable[PricingTier], quantity: int) -> Optional[PricingTier]:
    """
    First tier, scanning ascending `min_quantity`, whose range holds `quantity`.

    Overlapping tiers are a data error; the first match in scan order wins.
    """
    quantity = max(1, quantity)
    for tier in sorted(tiers, key=lambda tier: tier.min_quantity):
        if tier.contains(quantity):
            return tier
    return None


def resolve_tier(
    rule: PricingRule,
    tiers: Iterable[PricingTier],
    quantity: int = 1,
) -> TierResolution:
    """
    Resolve the value `rule` contributes for `quantity`.

    A matching tier's value replaces the rule's value outright. Without a
    match (or without tiers) the rule's own value is used.
    """
    tier = find_tier(tiers, quantity)
    if tier is None:
        return TierResolution(effective_value=rule.value, used_tier=False)
    return TierResolution(
        effective_value=tier.value,
        used_tier=True,
        tier=TierMatch(
            min_quantity=tier.min_quantity,
            max_quantity=tier.max_quantity,
            value=tier.value,
        ),
    )


__all__ = ["TierResolution", "find_tier", "resolve_tier"]
