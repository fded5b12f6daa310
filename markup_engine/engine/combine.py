"""
Concrete combine strategies and their registry.

    replace   percentage: base * (1 + v/100)      fixed: base + v
    add       percentage: current * (1 + v/100)   fixed: current + v
    multiply  percentage: current * (1 + v/100)   fixed: current + v

`multiply` intentionally computes exactly what `add` computes: percentages are
applied to the running price rather than compounding factors across the
chain. Keep it that way until product confirms true compounding is wanted.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Callable, Dict, List

from markup_engine.domain.models import CombineMode, ValueKind
from markup_engine.engine.abstract import AbstractCombineStrategy, CombineStrategy

_HUNDRED = Decimal("100")


def _apply_percentage(price: Decimal, value: Decimal) -> Decimal:
    return price * (1 + value / _HUNDRED)


def _apply_fixed_amount(price: Decimal, value: Decimal) -> Decimal:
    return price + value


_ADJUSTERS: Dict[ValueKind, Callable[[Decimal, Decimal], Decimal]] = {
    ValueKind.PERCENTAGE: _apply_percentage,
    ValueKind.FIXED_AMOUNT: _apply_fixed_amount,
}


def adjust(price: Decimal, value_kind: ValueKind, value: Decimal) -> Decimal:
    """Apply a single percentage or fixed-amount adjustment to `price`."""
    return _ADJUSTERS[value_kind](price, value)


class ReplaceCombine(AbstractCombineStrategy):
    """Adjust the original base price, discarding earlier rules' effects."""

    mode = CombineMode.REPLACE
    description = "Apply the adjustment to the base price (earlier rules are overridden)."

    def apply(
        self,
        value_kind: ValueKind,
        value: Decimal,
        base_price: Decimal,
        current_price: Decimal,
    ) -> Decimal:
        return adjust(base_price, value_kind, value)


class AdditiveCombine(AbstractCombineStrategy):
    """Adjust the running price."""

    mode = CombineMode.ADDITIVE
    description = "Apply the adjustment to the running price (cumulative)."

    def apply(
        self,
        value_kind: ValueKind,
        value: Decimal,
        base_price: Decimal,
        current_price: Decimal,
    ) -> Decimal:
        return adjust(current_price, value_kind, value)


class MultiplicativeCombine(AdditiveCombine):
    """Same arithmetic as `AdditiveCombine`; see the module docstring."""

    mode = CombineMode.MULTIPLICATIVE
    description = "Apply the adjustment factor to the running price."


def _combine_factories() -> Dict[CombineMode, Callable[[], CombineStrategy]]:
    """Registry of available combine strategies."""
    return {
        CombineMode.REPLACE: ReplaceCombine,
        CombineMode.ADDITIVE: AdditiveCombine,
        CombineMode.MULTIPLICATIVE: MultiplicativeCombine,
    }


_missing = set(CombineMode) - set(_combine_factories())
if _missing:  # pragma: no cover - import-time exhaustiveness check
    raise RuntimeError(f"No combine strategy registered for: {sorted(m.value for m in _missing)}")
_missing_kinds = set(ValueKind) - set(_ADJUSTERS)
if _missing_kinds:  # pragma: no cover - import-time exhaustiveness check
    raise RuntimeError(f"No adjuster registered for: {sorted(k.value for k in _missing_kinds)}")

_STRATEGIES: Dict[CombineMode, CombineStrategy] = {
    mode: factory() for mode, factory in _combine_factories().items()
}


def available_combine_modes() -> List[str]:
    """List available combine mode names."""
    return sorted(mode.value for mode in _STRATEGIES)


def resolve_combine(mode: CombineMode | str) -> CombineStrategy:
    """Return the strategy for `mode` (enum member or its wire value)."""
    try:
        key = CombineMode(mode)
    except ValueError:
        raise ValueError(
            f"Unknown combine mode '{mode}'. Available: {', '.join(available_combine_modes())}"
        ) from None
    return _STRATEGIES[key]


__all__ = [
    "adjust",
    "ReplaceCombine",
    "AdditiveCombine",
    "MultiplicativeCombine",
    "available_combine_modes",
    "resolve_combine",
]
