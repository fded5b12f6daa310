"""
Input boundary for the markup engine.

Two kinds of checks live here:

- coercion of evaluation inputs (base price, quantity, product id, category)
  and parsing of raw rule/tier records into models. These raise, before any
  computation starts.
- write-boundary data checks (percentage range, target keys, validity window,
  tier ranges and overlaps, the single active site-wide rule). These never
  raise; they return a list of `RuleIssue` so storage layers and the CLI can
  decide what to do with them.
"""

from __future__ import annotations

import itertools
import math
from collections import defaultdict
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, ValidationError

from markup_engine.domain.errors import InvalidInputError, InvalidRuleDataError
from markup_engine.domain.models import (
    PERCENTAGE_BOUND,
    PricingRule,
    PricingTier,
    RuleSnapshot,
    Scope,
    ValueKind,
)


class RuleIssue(BaseModel):
    """A data problem found by the write-boundary checks."""

    code: str
    message: str
    rule_id: Optional[int] = None
    tier_id: Optional[int] = None

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Evaluation inputs
# ---------------------------------------------------------------------------


def _decimal_from(value: Any) -> Optional[Decimal]:
    if isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, int):
        number = Decimal(value)
    elif isinstance(value, float):
        if not math.isfinite(value):
            return None
        number = Decimal(repr(value))
    elif isinstance(value, str):
        try:
            number = Decimal(value.strip())
        except InvalidOperation:
            return None
    else:
        return None
    return number if number.is_finite() else None


def coerce_base_price(value: Any) -> Decimal:
    """Parse a base price into a non-negative Decimal."""
    number = _decimal_from(value)
    if number is None or number < 0:
        raise InvalidInputError(
            "basePrice must be a valid positive number",
            code="INVALID_BASE_PRICE",
            details={"basePrice": repr(value)},
        )
    return number


def coerce_quantity(value: Any, default: int = 1) -> int:
    """
    Parse a purchase quantity.

    None falls back to `default`; integral values below 1 are treated as 1.
    Fractional or non-numeric values are rejected.
    """
    if value is None:
        return max(1, default)
    number = _decimal_from(value)
    if number is None or number != number.to_integral_value():
        raise InvalidInputError(
            "quantity must be a whole number",
            code="INVALID_QUANTITY",
            details={"quantity": repr(value)},
        )
    return max(1, int(number))


def coerce_product_id(value: Any) -> str:
    """Product ids are compared as strings against product-scoped rules."""
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise InvalidInputError(
            "productId must be an integer or a string",
            code="INVALID_PRODUCT_ID",
            details={"productId": repr(value)},
        )
    text = str(value).strip()
    if not text:
        raise InvalidInputError("productId is required", code="INVALID_PRODUCT_ID")
    return text


def coerce_category_name(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInputError(
            "categoryName must be a non-empty string",
            code="INVALID_CATEGORY_NAME",
            details={"categoryName": repr(value)},
        )
    return value


# ---------------------------------------------------------------------------
# Record parsing
# ---------------------------------------------------------------------------


def _describe(exc: ValidationError) -> List[str]:
    return [
        f"{'.'.join(str(part) for part in error['loc']) or '<root>'}: {error['msg']}"
        for error in exc.errors()
    ]


def parse_rule(raw: Any) -> PricingRule:
    """Validate a raw rule record (dict or model) into a `PricingRule`."""
    if isinstance(raw, PricingRule):
        return raw
    try:
        return PricingRule.model_validate(raw)
    except ValidationError as exc:
        raise InvalidRuleDataError(
            "Invalid pricing rule record", details={"errors": _describe(exc)}
        ) from exc


def parse_tier(raw: Any) -> PricingTier:
    """Validate a raw tier record (dict or model) into a `PricingTier`."""
    if isinstance(raw, PricingTier):
        return raw
    try:
        return PricingTier.model_validate(raw)
    except ValidationError as exc:
        raise InvalidRuleDataError(
            "Invalid pricing tier record", details={"errors": _describe(exc)}
        ) from exc


def _parse_many(raws: Iterable[Any], parser, kind: str) -> list:
    parsed = []
    for index, raw in enumerate(raws):
        try:
            parsed.append(parser(raw))
        except InvalidRuleDataError as exc:
            exc.details[kind] = index
            raise
    return parsed


def parse_rules(raws: Iterable[Any]) -> List[PricingRule]:
    return _parse_many(raws, parse_rule, "rule_index")


def parse_tiers(raws: Iterable[Any]) -> List[PricingTier]:
    return _parse_many(raws, parse_tier, "tier_index")


def group_tiers(tiers: Iterable[PricingTier]) -> Dict[int, Tuple[PricingTier, ...]]:
    """Group tiers by owning rule, each group ordered by `min_quantity`."""
    grouped: Dict[int, List[PricingTier]] = defaultdict(list)
    for tier in tiers:
        if tier.rule_id is None:
            raise InvalidRuleDataError(
                "Tier record has no owning rule", details={"tier_id": tier.id}
            )
        grouped[tier.rule_id].append(tier)
    return {
        rule_id: tuple(sorted(group, key=lambda tier: tier.min_quantity))
        for rule_id, group in grouped.items()
    }


# ---------------------------------------------------------------------------
# Write-boundary checks
# ---------------------------------------------------------------------------


def percentage_in_range(value: Decimal) -> bool:
    return -PERCENTAGE_BOUND <= value <= PERCENTAGE_BOUND


def check_rule(rule: PricingRule) -> List[RuleIssue]:
    issues: List[RuleIssue] = []
    if rule.value_kind is ValueKind.PERCENTAGE and not percentage_in_range(rule.value):
        issues.append(
            RuleIssue(
                code="INVALID_PERCENTAGE_RANGE",
                message=f"Percentage markup value {rule.value} must be between -100 and 100",
                rule_id=rule.id,
            )
        )
    if rule.scope is Scope.SITE_WIDE and rule.target_key is not None:
        issues.append(
            RuleIssue(
                code="INVALID_TARGET_ID",
                message="Target must be empty for site_wide rules",
                rule_id=rule.id,
            )
        )
    if rule.scope is not Scope.SITE_WIDE and rule.target_key is None:
        issues.append(
            RuleIssue(
                code="MISSING_TARGET_ID",
                message=f"Target is required for {rule.scope.value} rules",
                rule_id=rule.id,
            )
        )
    if (
        rule.valid_from is not None
        and rule.valid_until is not None
        and rule.valid_until <= rule.valid_from
    ):
        issues.append(
            RuleIssue(
                code="INVALID_DATE_RANGE",
                message="End date must be after start date",
                rule_id=rule.id,
            )
        )
    return issues


def _overlaps(first: PricingTier, second: PricingTier) -> bool:
    low, high = sorted((first, second), key=lambda tier: tier.min_quantity)
    return low.max_quantity is None or high.min_quantity <= low.max_quantity


def check_tiers(
    tiers: Sequence[PricingTier],
    value_kind: Optional[ValueKind] = None,
    rule_id: Optional[int] = None,
) -> List[RuleIssue]:
    """Check one rule's tiers for bad bounds, bad values, and overlaps."""
    issues: List[RuleIssue] = []
    for tier in tiers:
        owner = tier.rule_id if tier.rule_id is not None else rule_id
        if tier.min_quantity < 1:
            issues.append(
                RuleIssue(
                    code="INVALID_MIN_QUANTITY",
                    message="Minimum quantity must be a positive integer >= 1",
                    rule_id=owner,
                    tier_id=tier.id,
                )
            )
        if tier.max_quantity is not None and tier.max_quantity <= tier.min_quantity:
            issues.append(
                RuleIssue(
                    code="INVALID_QUANTITY_RANGE",
                    message="Maximum quantity must be greater than minimum quantity",
                    rule_id=owner,
                    tier_id=tier.id,
                )
            )
        if value_kind is ValueKind.PERCENTAGE and not percentage_in_range(tier.value):
            issues.append(
                RuleIssue(
                    code="INVALID_PERCENTAGE_RANGE",
                    message=f"Tier percentage {tier.value} must be between -100 and 100",
                    rule_id=owner,
                    tier_id=tier.id,
                )
            )
    for first, second in itertools.combinations(tiers, 2):
        if _overlaps(first, second):
            issues.append(
                RuleIssue(
                    code="OVERLAPPING_RANGE",
                    message=f"Quantity range {first.label} overlaps {second.label}",
                    rule_id=first.rule_id if first.rule_id is not None else rule_id,
                    tier_id=second.id,
                )
            )
    return issues


def find_site_wide_conflicts(rules: Iterable[PricingRule]) -> List[RuleIssue]:
    """Report every active site-wide rule after the first one."""
    active = [rule for rule in rules if rule.scope is Scope.SITE_WIDE and rule.active]
    return [
        RuleIssue(
            code="SITE_WIDE_ALREADY_ACTIVE",
            message=f"Only one site-wide markup can be active at a time (already: {active[0].id})",
            rule_id=rule.id,
        )
        for rule in active[1:]
    ]


def check_snapshot(snapshot: RuleSnapshot) -> List[RuleIssue]:
    """Run every write-boundary check over a snapshot."""
    issues: List[RuleIssue] = []
    rules_by_id: Mapping[int, PricingRule] = {rule.id: rule for rule in snapshot.rules}
    for rule in snapshot.rules:
        issues.extend(check_rule(rule))
        issues.extend(
            check_tiers(snapshot.tiers_for(rule.id), value_kind=rule.value_kind, rule_id=rule.id)
        )
    for rule_id, tiers in snapshot.tiers_by_rule_id.items():
        if rule_id not in rules_by_id:
            issues.extend(
                RuleIssue(
                    code="MARKUP_NOT_FOUND",
                    message=f"Tier references unknown markup {rule_id}",
                    rule_id=rule_id,
                    tier_id=tier.id,
                )
                for tier in tiers
            )
    issues.extend(find_site_wide_conflicts(snapshot.rules))
    return issues


__all__ = [
    "RuleIssue",
    "coerce_base_price",
    "coerce_quantity",
    "coerce_product_id",
    "coerce_category_name",
    "parse_rule",
    "parse_tier",
    "parse_rules",
    "parse_tiers",
    "group_tiers",
    "percentage_in_range",
    "check_rule",
    "check_tiers",
    "find_site_wide_conflicts",
    "check_snapshot",
]
