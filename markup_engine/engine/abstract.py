"""
Combine strategy interfaces for the markup engine.

A combine strategy decides which price a rule's adjustment is applied to
(the original base price or the running price left by earlier rules).
Concrete strategies implement the CombineStrategy protocol; the evaluator
resolves one per rule through the registry in `markup_engine.engine.combine`.
"""

from __future__ import annotations

import abc
from decimal import Decimal
from typing import Protocol, runtime_checkable

from markup_engine.domain.models import CombineMode, ValueKind


@runtime_checkable
class CombineStrategy(Protocol):
    """
    Common interface all combine strategies must implement.

    Attributes
    ----------
    mode : CombineMode
        The rule combine mode this strategy handles.
    description : str
        A human-friendly summary of the behaviour.
    """

    mode: CombineMode
    description: str

    def apply(
        self,
        value_kind: ValueKind,
        value: Decimal,
        base_price: Decimal,
        current_price: Decimal,
    ) -> Decimal:
        """
        Compute the price after one rule.

        Parameters
        ----------
        value_kind : ValueKind
            Whether `value` is a percentage or a fixed amount.
        value : Decimal
            The tier-resolved value of the rule.
        base_price : Decimal
            The evaluation's original base price.
        current_price : Decimal
            The running price produced by earlier rules.

        Returns
        -------
        Decimal
            The unclamped, unrounded price after this rule.
        """
        ...


class AbstractCombineStrategy(abc.ABC):
    """
    Optional ABC helper for class-based implementations.

    Subclasses set `mode` and `description` and implement `apply`.
    """

    mode: CombineMode
    description: str

    @abc.abstractmethod
    def apply(
        self,
        value_kind: ValueKind,
        value: Decimal,
        base_price: Decimal,
        current_price: Decimal,
    ) -> Decimal:  # pragma: no cover - interface only
        """Apply the rule and return the new price."""
        raise NotImplementedError


__all__ = [
    "CombineStrategy",
    "AbstractCombineStrategy",
]
