"""
Markup Engine - rule-based price computation for a marketplace catalogue.

Given a product, a base price, a purchase quantity, and a snapshot of pricing
rules ("markups") with their quantity tiers, the engine:

- Selects the rules in scope (site-wide, category, product) and in their validity window
- Orders them by priority (most recently created wins ties)
- Resolves each rule's quantity tier
- Folds them into the running price by combine mode (replace, add, multiply)

and returns the final price with an audit trail of every applied step.
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from markup_engine.config import Settings, get_settings
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
    ValueKind,
)
from markup_engine.engine.evaluator import evaluate_price, evaluate_snapshot
from markup_engine.service import PricingService
from markup_engine.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Models
    "AppliedRuleRecord",
    "CombineMode",
    "PriceEvaluationResult",
    "PricingRule",
    "PricingTier",
    "RuleSnapshot",
    "Scope",
    "ValueKind",
    # Errors
    "PricingError",
    "InvalidInputError",
    "InvalidRuleDataError",
    "RepositoryError",
    # Evaluation
    "evaluate_price",
    "evaluate_snapshot",
    "PricingService",
    # Logging
    "configure_logging",
    "get_logger",
]
