"""
Domain models for the markup engine.

Defines pricing rules ("markups"), their quantity tiers, and the evaluation
result with its applied-rule trace. Rule and tier models accept both the
snake_case field names used in Python and the camelCase / storage names of
the marketplace records (``markupValue``, ``compoundStrategy``, ``targetId``,
``startDate`` ...), so raw rows can be validated directly.
"""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import AliasChoices, BaseModel, Field, field_validator

CENT = Decimal("0.01")
ZERO = Decimal("0")
PERCENTAGE_BOUND = Decimal("100")


def round_money(value: Decimal) -> Decimal:
    """Round a money amount to 2 decimal places, half away from zero."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def to_decimal(value: Any) -> Any:
    # Floats go through repr so 5.99 stays 5.99 rather than its binary expansion.
    if isinstance(value, float):
        return Decimal(repr(value))
    return value


class Scope(str, Enum):
    """Targeting level of a rule."""

    SITE_WIDE = "site_wide"
    CATEGORY = "category"
    PRODUCT = "product"


class ValueKind(str, Enum):
    """How a rule's value is interpreted."""

    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"


class CombineMode(str, Enum):
    """How a rule's effect folds into the running price."""

    REPLACE = "replace"
    ADDITIVE = "add"
    MULTIPLICATIVE = "multiply"


class PricingRule(BaseModel):
    """
    A configured price adjustment scoped to the whole site, a category, or a
    single product.
    """

    id: int = Field(..., description="Rule identifier.")
    name: str = Field(..., description="Display label.")
    scope: Scope = Field(..., validation_alias=AliasChoices("scope", "type"))
    target_key: Optional[str] = Field(
        None,
        description="Category name or product id; None for site-wide rules.",
        validation_alias=AliasChoices("target_key", "targetKey", "targetId", "target_id"),
    )
    value_kind: ValueKind = Field(
        ...,
        validation_alias=AliasChoices("value_kind", "valueKind", "markupType", "markup_type"),
    )
    value: Decimal = Field(
        ...,
        description="Percentage points or a fixed currency amount.",
        validation_alias=AliasChoices("value", "markupValue", "markup_value"),
    )
    active: bool = Field(True, validation_alias=AliasChoices("active", "isActive", "is_active"))
    priority: int = Field(0, description="Higher applies earlier.")
    valid_from: Optional[datetime] = Field(
        None,
        validation_alias=AliasChoices("valid_from", "validFrom", "startDate", "start_date"),
    )
    valid_until: Optional[datetime] = Field(
        None,
        validation_alias=AliasChoices("valid_until", "validUntil", "endDate", "end_date"),
    )
    combine_mode: CombineMode = Field(
        CombineMode.REPLACE,
        validation_alias=AliasChoices(
            "combine_mode", "combineMode", "compoundStrategy", "compound_strategy"
        ),
    )
    created_at: Optional[datetime] = Field(
        None, validation_alias=AliasChoices("created_at", "createdAt")
    )

    model_config = {
        "frozen": True,
        "populate_by_name": True,
    }

    @field_validator("target_key", mode="before")
    @classmethod
    def _blank_target_is_none(cls, value: Any) -> Any:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @field_validator("value", mode="before")
    @classmethod
    def _float_value(cls, value: Any) -> Any:
        return to_decimal(value)

    @field_validator("active", mode="before")
    @classmethod
    def _null_is_inactive(cls, value: Any) -> Any:
        return False if value is None else value

    @field_validator("priority", mode="before")
    @classmethod
    def _null_priority(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("combine_mode", mode="before")
    @classmethod
    def _null_combine_mode(cls, value: Any) -> Any:
        return CombineMode.REPLACE if value in (None, "") else value

    @field_validator("valid_from", "valid_until", "created_at", mode="before")
    @classmethod
    def _blank_timestamp_is_none(cls, value: Any) -> Any:
        return None if value == "" else value

    @field_validator("valid_from", "valid_until", "created_at")
    @classmethod
    def _timestamps_are_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)


class PricingTier(BaseModel):
    """
    Quantity-conditional override of a rule's value, used for volume pricing.
    """

    id: Optional[int] = None
    rule_id: Optional[int] = Field(
        None, validation_alias=AliasChoices("rule_id", "ruleId", "markupId", "markup_id")
    )
    min_quantity: int = Field(
        ..., validation_alias=AliasChoices("min_quantity", "minQuantity")
    )
    max_quantity: Optional[int] = Field(
        None, validation_alias=AliasChoices("max_quantity", "maxQuantity")
    )
    value: Decimal = Field(
        ..., validation_alias=AliasChoices("value", "markupValue", "markup_value")
    )

    model_config = {
        "frozen": True,
        "populate_by_name": True,
    }

    @field_validator("value", mode="before")
    @classmethod
    def _float_value(cls, value: Any) -> Any:
        return to_decimal(value)

    def contains(self, quantity: int) -> bool:
        """Whether `quantity` falls inside this tier's inclusive range."""
        if quantity < self.min_quantity:
            return False
        return self.max_quantity is None or quantity <= self.max_quantity

    @property
    def label(self) -> str:
        if self.max_quantity is None:
            return f"{self.min_quantity}+"
        return f"{self.min_quantity}-{self.max_quantity}"


class TierMatch(BaseModel):
    """Bounds and value of the tier that fired for an applied rule."""

    min_quantity: int
    max_quantity: Optional[int] = None
    value: Decimal

    model_config = {"frozen": True}


class AppliedRuleRecord(BaseModel):
    """One step of the applied trace."""

    id: int
    name: str
    scope: Scope
    value_kind: ValueKind
    effective_value: Decimal = Field(..., description="Value used after tier resolution.")
    original_value: Decimal = Field(..., description="The rule's own value.")
    priority: int
    combine_mode: CombineMode
    used_tier: bool
    tier: Optional[TierMatch] = None
    price_before_markup: Decimal
    price_after_markup: Decimal

    model_config = {"frozen": True}

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "type": self.scope.value,
            "markupType": self.value_kind.value,
            "markupValue": float(self.effective_value),
            "originalMarkupValue": float(self.original_value),
            "priority": self.priority,
            "compoundStrategy": self.combine_mode.value,
            "usedTier": self.used_tier,
            "priceBeforeMarkup": float(self.price_before_markup),
            "priceAfterMarkup": float(self.price_after_markup),
        }
        if self.tier is not None:
            payload["tierUsed"] = {
                "minQuantity": self.tier.min_quantity,
                "maxQuantity": self.tier.max_quantity,
                "markupValue": float(self.tier.value),
            }
        return payload


class SkippedRule(BaseModel):
    """A rule left out of the fold because its data is unusable."""

    id: Optional[int] = None
    name: str = ""
    reason: str
    value: Optional[Decimal] = None

    model_config = {"frozen": True}


class PriceEvaluationResult(BaseModel):
    """Computed price plus the ordered trace of rules that fired."""

    base_price: Decimal
    final_price: Decimal
    quantity: int
    applied_markups: List[AppliedRuleRecord] = Field(default_factory=list)
    skipped_rules: List[SkippedRule] = Field(default_factory=list)

    model_config = {"frozen": True}

    @property
    def discounted(self) -> bool:
        return self.final_price < self.base_price

    def to_payload(self) -> Dict[str, Any]:
        """Render the camelCase JSON shape consumed by the storefront."""
        return {
            "basePrice": float(self.base_price),
            "finalPrice": float(self.final_price),
            "quantity": self.quantity,
            "appliedMarkups": [record.to_payload() for record in self.applied_markups],
        }


class RuleSnapshot(BaseModel):
    """A consistent set of rules and their tiers, fetched once per call."""

    rules: Tuple[PricingRule, ...] = ()
    tiers_by_rule_id: Dict[int, Tuple[PricingTier, ...]] = Field(default_factory=dict)
    fetched_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    source: str = "memory"

    model_config = {"frozen": True}

    def tiers_for(self, rule_id: int) -> Tuple[PricingTier, ...]:
        return self.tiers_by_rule_id.get(rule_id, ())

    @property
    def tier_count(self) -> int:
        return sum(len(tiers) for tiers in self.tiers_by_rule_id.values())


__all__ = [
    "CENT",
    "ZERO",
    "PERCENTAGE_BOUND",
    "round_money",
    "ensure_utc",
    "to_decimal",
    "Scope",
    "ValueKind",
    "CombineMode",
    "PricingRule",
    "PricingTier",
    "TierMatch",
    "AppliedRuleRecord",
    "SkippedRule",
    "PriceEvaluationResult",
    "RuleSnapshot",
]
