"""
Rule repository interface.

A repository supplies a consistent `RuleSnapshot` (rules plus their tiers)
for one pricing call. The engine never re-fetches mid-evaluation; callers
fetch once and evaluate as many prices as they need against the snapshot.
"""

from __future__ import annotations

from typing import Any, Iterable, Protocol, runtime_checkable

from markup_engine.domain.models import RuleSnapshot
from markup_engine.domain.validation import group_tiers, parse_rules, parse_tiers
from markup_engine.engine.sequencer import order_by_priority


@runtime_checkable
class RuleRepository(Protocol):
    """
    Common interface all rule sources implement.

    Attributes
    ----------
    name : str
        A short machine-friendly identifier of the source kind.
    """

    name: str

    def fetch_snapshot(self) -> RuleSnapshot:
        """Read every rule and tier and return them as one snapshot."""
        ...


def build_snapshot(
    raw_rules: Iterable[Any],
    raw_tiers: Iterable[Any],
    source: str,
) -> RuleSnapshot:
    """
    Parse raw records into a snapshot.

    Rules are stored in fetch order `priority DESC, created_at DESC`; tiers are
    grouped per rule in ascending `min_quantity`.

    Raises
    ------
    InvalidRuleDataError
        If a record cannot be parsed.
    """
    rules = order_by_priority(parse_rules(raw_rules))
    tiers = group_tiers(parse_tiers(raw_tiers))
    return RuleSnapshot(rules=tuple(rules), tiers_by_rule_id=tiers, source=source)


__all__ = ["RuleRepository", "build_snapshot"]
