"""
Compounding evaluator: turn a base price and a rule set into a final price.

Pipeline per call:

    coerce inputs -> select_applicable -> order_by_priority
        -> fold(resolve_tier + combine strategy) -> PriceEvaluationResult

The fold carries an immutable `_FoldState`. Each step clamps the new price at
zero, records it rounded to cents in the trace, and carries the unrounded
value forward as the running price for the next rule. The whole evaluation is
a pure function of its inputs and `now`.

Usage:
    from markup_engine.engine.evaluator import evaluate_price

    result = evaluate_price("42", "Flower", "100.00", quantity=5,
                            rules=rules, tiers_by_rule_id=tiers)
    print(result.final_price, [step.name for step in result.applied_markups])
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from decimal import Decimal
from functools import reduce
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from markup_engine.domain.errors import InvalidInputError, InvalidRuleDataError
from markup_engine.domain.models import (
    ZERO,
    AppliedRuleRecord,
    PriceEvaluationResult,
    PricingRule,
    PricingTier,
    RuleSnapshot,
    SkippedRule,
    ValueKind,
    ensure_utc,
    round_money,
)
from markup_engine.domain.validation import (
    coerce_base_price,
    coerce_category_name,
    coerce_product_id,
    coerce_quantity,
    parse_rule,
    parse_tier,
    percentage_in_range,
)
from markup_engine.engine.combine import resolve_combine
from markup_engine.engine.filters import select_applicable
from markup_engine.engine.sequencer import order_by_priority
from markup_engine.engine.tiers import resolve_tier
from markup_engine.utils.logging import get_logger

log = get_logger(__name__)

PERCENTAGE_OUT_OF_RANGE = "PERCENTAGE_OUT_OF_RANGE"
INVALID_RULE_DATA = "INVALID_RULE_DATA"


@dataclass(frozen=True)
class _FoldState:
    current_price: Decimal
    applied: Tuple[AppliedRuleRecord, ...] = ()
    skipped: Tuple[SkippedRule, ...] = ()


def _resolve_now(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    if not isinstance(now, datetime):
        raise InvalidInputError(
            "now must be a datetime", code="INVALID_NOW", details={"now": repr(now)}
        )
    return ensure_utc(now)


def _skip(state: _FoldState, rule: PricingRule, value: Decimal) -> _FoldState:
    log.warning(
        "Skipping markup with out-of-range percentage",
        extra={"rule_id": rule.id, "rule_name": rule.name, "value": str(value)},
    )
    skipped = SkippedRule(id=rule.id, name=rule.name, reason=PERCENTAGE_OUT_OF_RANGE, value=value)
    return replace(state, skipped=state.skipped + (skipped,))


def _identify(raw: Any) -> Tuple[Optional[int], str]:
    if isinstance(raw, Mapping):
        rule_id, name = raw.get("id"), raw.get("name")
    else:
        rule_id, name = getattr(raw, "id", None), getattr(raw, "name", None)
    try:
        rule_id = int(rule_id)
    except (TypeError, ValueError):
        rule_id = None
    return rule_id, str(name or "")


def _parse_candidates(rules: Iterable[Any]) -> Tuple[List[PricingRule], Tuple[SkippedRule, ...]]:
    candidates: List[PricingRule] = []
    rejected: List[SkippedRule] = []
    for raw in rules:
        try:
            candidates.append(parse_rule(raw))
        except InvalidRuleDataError as exc:
            rule_id, name = _identify(raw)
            log.warning(
                "Skipping unparseable markup record",
                extra={"rule_id": rule_id, "errors": exc.details.get("errors")},
            )
            rejected.append(SkippedRule(id=rule_id, name=name, reason=INVALID_RULE_DATA))
    return candidates, tuple(rejected)


def _parse_tier_map(
    tiers_by_rule_id: Mapping[Any, Iterable[Any]],
) -> Dict[int, Tuple[PricingTier, ...]]:
    # JSON-derived maps key by string; "1" and 1 name the same rule.
    parsed: Dict[int, Tuple[PricingTier, ...]] = {}
    for key, rule_tiers in tiers_by_rule_id.items():
        try:
            rule_id = int(key)
        except (TypeError, ValueError):
            log.warning("Ignoring tiers under a non-integer rule id", extra={"rule_id": repr(key)})
            continue
        tiers: List[PricingTier] = []
        for raw in rule_tiers:
            try:
                tiers.append(parse_tier(raw))
            except InvalidRuleDataError as exc:
                log.warning(
                    "Skipping unparseable tier record",
                    extra={"rule_id": rule_id, "errors": exc.details.get("errors")},
                )
        parsed[rule_id] = parsed.get(rule_id, ()) + tuple(tiers)
    return parsed


def _apply_rule(
    state: _FoldState,
    rule: PricingRule,
    tiers: Sequence[PricingTier],
    base_price: Decimal,
    quantity: int,
) -> _FoldState:
    if rule.value_kind is ValueKind.PERCENTAGE and not percentage_in_range(rule.value):
        return _skip(state, rule, rule.value)

    resolution = resolve_tier(rule, tiers, quantity)
    value = resolution.effective_value
    if rule.value_kind is ValueKind.PERCENTAGE and not percentage_in_range(value):
        return _skip(state, rule, value)

    strategy = resolve_combine(rule.combine_mode)
    price = max(ZERO, strategy.apply(rule.value_kind, value, base_price, state.current_price))

    record = AppliedRuleRecord(
        id=rule.id,
        name=rule.name,
        scope=rule.scope,
        value_kind=rule.value_kind,
        effective_value=value,
        original_value=rule.value,
        priority=rule.priority,
        combine_mode=rule.combine_mode,
        used_tier=resolution.used_tier,
        tier=resolution.tier,
        price_before_markup=round_money(state.current_price),
        price_after_markup=round_money(price),
    )
    return replace(state, current_price=price, applied=state.applied + (record,))


def evaluate_price(
    product_id: Any,
    category_name: Any,
    base_price: Any,
    quantity: Any = 1,
    rules: Iterable[Any] = (),
    tiers_by_rule_id: Optional[Mapping[Any, Iterable[Any]]] = None,
    now: Optional[datetime] = None,
) -> PriceEvaluationResult:
    """
    Compute the final price for one product at one quantity.

    Parameters
    ----------
    product_id : int | str
        Compared as a string against product-scoped rules.
    category_name : str
        Compared exactly (case-sensitive) against category-scoped rules.
    base_price : Decimal | int | float | str
        Non-negative base price.
    quantity : int | None
        Purchase quantity; None means 1 and values below 1 are treated as 1.
    rules : iterable of PricingRule or raw rule records
        Candidate rules; may be a superset, the filter narrows it. Records
        that fail to parse are listed in `skipped_rules` as INVALID_RULE_DATA.
    tiers_by_rule_id : mapping of rule id to tiers, optional
        Quantity tiers per rule, in any order. Keys may be ints or numeric
        strings; unparseable tier records are dropped with a warning.
    now : datetime, optional
        Evaluation instant for validity windows; defaults to the current UTC time.

    Returns
    -------
    PriceEvaluationResult
        Rounded base and final price plus the applied trace in application order.

    Raises
    ------
    InvalidInputError
        If any evaluation input is malformed. Nothing is computed in that case.
    """
    product_key = coerce_product_id(product_id)
    category = coerce_category_name(category_name)
    base = coerce_base_price(base_price)
    qty = coerce_quantity(quantity)
    instant = _resolve_now(now)

    candidates, rejected = _parse_candidates(rules)
    tiers = _parse_tier_map(tiers_by_rule_id or {})

    ordered = order_by_priority(select_applicable(candidates, product_key, category, instant))

    state = reduce(
        lambda acc, rule: _apply_rule(acc, rule, tiers.get(rule.id, ()), base, qty),
        ordered,
        _FoldState(current_price=base, skipped=rejected),
    )

    result = PriceEvaluationResult(
        base_price=round_money(base),
        final_price=round_money(max(ZERO, state.current_price)),
        quantity=qty,
        applied_markups=list(state.applied),
        skipped_rules=list(state.skipped),
    )
    log.debug(
        "Price evaluated",
        extra={
            "product_id": product_key,
            "category": category,
            "quantity": qty,
            "candidates": len(candidates),
            "applied": len(result.applied_markups),
            "final_price": str(result.final_price),
        },
    )
    return result


def evaluate_snapshot(
    snapshot: RuleSnapshot,
    product_id: Any,
    category_name: Any,
    base_price: Any,
    quantity: Any = 1,
    now: Optional[datetime] = None,
) -> PriceEvaluationResult:
    """Evaluate against a repository snapshot."""
    return evaluate_price(
        product_id,
        category_name,
        base_price,
        quantity=quantity,
        rules=snapshot.rules,
        tiers_by_rule_id=snapshot.tiers_by_rule_id,
        now=now,
    )


__all__ = [
    "INVALID_RULE_DATA",
    "PERCENTAGE_OUT_OF_RANGE",
    "evaluate_price",
    "evaluate_snapshot",
]
