"""
In-memory rule repository, for tests and for callers that already hold rows.
"""

from __future__ import annotations

from typing import Any, Iterable

from markup_engine.domain.models import RuleSnapshot
from markup_engine.repository.abstract import RuleRepository, build_snapshot


class InMemoryRuleRepository(RuleRepository):
    """Serve a fixed set of rule and tier records."""

    name: str = "memory"

    def __init__(self, rules: Iterable[Any] = (), tiers: Iterable[Any] = ()) -> None:
        self._snapshot = build_snapshot(rules, tiers, source=self.name)

    def fetch_snapshot(self) -> RuleSnapshot:
        return self._snapshot


__all__ = ["InMemoryRuleRepository"]
