"""
Applicability filter: which rules are in scope for a product right now.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, List

from markup_engine.domain.models import PricingRule, Scope


def is_within_window(rule: PricingRule, now: datetime) -> bool:
    """Both bounds are inclusive; a missing bound is unbounded on that side."""
    if rule.valid_from is not None and rule.valid_from > now:
        return False
    if rule.valid_until is not None and rule.valid_until < now:
        return False
    return True


def matches_scope(rule: PricingRule, product_id: str, category_name: str) -> bool:
    if rule.scope is Scope.SITE_WIDE:
        return True
    if rule.scope is Scope.CATEGORY:
        return rule.target_key == category_name
    if rule.scope is Scope.PRODUCT:
        return rule.target_key == str(product_id)
    raise AssertionError(f"unhandled scope {rule.scope!r}")


def is_applicable(rule: PricingRule, product_id: str, category_name: str, now: datetime) -> bool:
    return (
        rule.active
        and is_within_window(rule, now)
        and matches_scope(rule, product_id, category_name)
    )


def select_applicable(
    rules: Iterable[PricingRule],
    product_id: str,
    category_name: str,
    now: datetime,
) -> List[PricingRule]:
    """
    Keep active, in-window rules whose scope targets this product.

    Input order is preserved.
    """
    return [rule for rule in rules if is_applicable(rule, product_id, category_name, now)]


__all__ = ["is_within_window", "matches_scope", "is_applicable", "select_applicable"]
