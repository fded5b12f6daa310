"""
Exception hierarchy for the markup engine.

Every error carries a machine-readable ``code`` (matching the codes the
storefront API reports), a human message, and optional details.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class PricingError(Exception):
    """Base exception for pricing failures."""

    default_code = "PRICING_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.code = code or self.default_code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Render as the error payload shape used by API collaborators."""
        payload: Dict[str, Any] = {"error": self.message, "code": self.code}
        if self.details:
            payload["details"] = self.details
        return payload


class InvalidInputError(PricingError):
    """Caller-supplied evaluation input is malformed; nothing was computed."""

    default_code = "INVALID_INPUT"


class InvalidRuleDataError(PricingError):
    """A rule or tier record cannot be parsed into a usable model."""

    default_code = "INVALID_RULE_DATA"


class RepositoryError(PricingError):
    """The rule source could not be read."""

    default_code = "REPOSITORY_UNAVAILABLE"


__all__ = [
    "PricingError",
    "InvalidInputError",
    "InvalidRuleDataError",
    "RepositoryError",
]
