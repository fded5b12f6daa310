"""
Priority sequencer.

Rules apply in `priority` descending order. Equal priorities are broken by
`created_at` descending (the most recently created rule wins the tie), and
rules without a creation time go after dated ones. Anything still tied keeps
its input order, which matches the storage query
`ORDER BY priority DESC, created_at DESC`.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, List, Tuple

from markup_engine.domain.models import PricingRule

_UNDATED = datetime.min.replace(tzinfo=timezone.utc)


def _created_key(rule: PricingRule) -> Tuple[bool, datetime]:
    return (rule.created_at is not None, rule.created_at or _UNDATED)


def order_by_priority(rules: Iterable[PricingRule]) -> List[PricingRule]:
    # Two stable passes: secondary key first, then primary.
    by_recency = sorted(rules, key=_created_key, reverse=True)
    return sorted(by_recency, key=lambda rule: rule.priority, reverse=True)


__all__ = ["order_by_priority"]
