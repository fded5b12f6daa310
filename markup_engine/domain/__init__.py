"""
Domain package for the markup engine.

Exports the pricing models, the error hierarchy, and the input boundary.
Keep this package focused on data definitions and validation concerns.
"""

from markup_engine.domain.errors import (
    InvalidInputError,
    InvalidRuleDataError,
    PricingError,
    RepositoryError,
)
from markup_engine.domain.models import (
    AppliedRuleRecord,
    CombineMode,
    PriceEvaluationResult,
    PricingRule,
    PricingTier,
    RuleSnapshot,
    Scope,
    SkippedRule,
    TierMatch,
    ValueKind,
    round_money,
)
from markup_engine.domain.validation import RuleIssue, check_snapshot, parse_rule, parse_tier

__all__ = [
    # Models
    "AppliedRuleRecord",
    "CombineMode",
    "PriceEvaluationResult",
    "PricingRule",
    "PricingTier",
    "RuleSnapshot",
    "Scope",
    "SkippedRule",
    "TierMatch",
    "ValueKind",
    "round_money",
    # Errors
    "PricingError",
    "InvalidInputError",
    "InvalidRuleDataError",
    "RepositoryError",
    # Boundary
    "RuleIssue",
    "check_snapshot",
    "parse_rule",
    "parse_tier",
]
