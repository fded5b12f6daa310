"""
Engine package for the markup engine.

Re-exports the pipeline stages (filter, sequencer, tier resolver, evaluator)
and the combine strategy registry so callers can import from
`markup_engine.engine` directly.
"""

from markup_engine.engine.abstract import AbstractCombineStrategy, CombineStrategy
from markup_engine.engine.combine import (
    AdditiveCombine,
    MultiplicativeCombine,
    ReplaceCombine,
    available_combine_modes,
    resolve_combine,
)
from markup_engine.engine.evaluator import evaluate_price, evaluate_snapshot
from markup_engine.engine.filters import select_applicable
from markup_engine.engine.sequencer import order_by_priority
from markup_engine.engine.tiers import TierResolution, resolve_tier

__all__ = [
    # Abstracts
    "AbstractCombineStrategy",
    "CombineStrategy",
    # Combine strategies
    "AdditiveCombine",
    "MultiplicativeCombine",
    "ReplaceCombine",
    "available_combine_modes",
    "resolve_combine",
    # Pipeline
    "select_applicable",
    "order_by_priority",
    "TierResolution",
    "resolve_tier",
    "evaluate_price",
    "evaluate_snapshot",
]
