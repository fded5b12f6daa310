"""
Pricing service: the entry point storefront collaborators call.

Fetches one rule snapshot per call and runs the evaluation pipeline for
single quotes, quantity break tables (product detail), carts (order totals,
priced at the actual purchase quantity), and whole catalogues (listing pages,
profiled).

Usage:
    from markup_engine.repository import JsonFileRuleRepository
    from markup_engine.service import PricingService

    service = PricingService(JsonFileRuleRepository("rules.json"))
    quote = service.quote("42", "Flower", "19.99", quantity=3)
    breaks = service.quantity_breaks("42", "Flower", "19.99")
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional

from pydantic import BaseModel, Field, field_validator

from markup_engine.domain.errors import InvalidInputError, PricingError
from markup_engine.domain.models import (
    PriceEvaluationResult,
    RuleSnapshot,
    ensure_utc,
    round_money,
    to_decimal,
)
from markup_engine.domain.validation import coerce_category_name, coerce_product_id
from markup_engine.engine.evaluator import evaluate_snapshot
from markup_engine.engine.filters import select_applicable
from markup_engine.repository.abstract import RuleRepository
from markup_engine.utils.logging import get_logger
from markup_engine.utils.profiler import profile_block

log = get_logger(__name__)


class QuantityBreak(BaseModel):
    """Unit price from `min_quantity` up to `max_quantity` (inclusive)."""

    min_quantity: int
    max_quantity: Optional[int] = None
    unit_price: Decimal

    model_config = {"frozen": True}

    @property
    def label(self) -> str:
        if self.max_quantity is None:
            return f"{self.min_quantity}+"
        if self.max_quantity == self.min_quantity:
            return str(self.min_quantity)
        return f"{self.min_quantity}-{self.max_quantity}"


class CartLine(BaseModel):
    product_id: str
    category_name: str
    base_price: Decimal
    quantity: int = Field(1, ge=1)

    @field_validator("base_price", mode="before")
    @classmethod
    def _float_price(cls, value: Any) -> Any:
        return to_decimal(value)


class CartLineQuote(BaseModel):
    product_id: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    evaluation: PriceEvaluationResult


class CartQuote(BaseModel):
    lines: List[CartLineQuote] = Field(default_factory=list)
    subtotal: Decimal = Decimal("0.00")

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)


class CatalogItem(BaseModel):
    product_id: str
    category_name: str
    base_price: Decimal


class CatalogEntry(BaseModel):
    product_id: str
    result: Optional[PriceEvaluationResult] = None
    error: Optional[Dict[str, Any]] = None


class CatalogRun(BaseModel):
    entries: List[CatalogEntry] = Field(default_factory=list)
    stats: Dict[str, Any] = Field(default_factory=dict)

    @property
    def failed(self) -> List[CatalogEntry]:
        return [entry for entry in self.entries if entry.error is not None]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PricingService:
    """
    Price products against the rules of one repository.

    Parameters
    ----------
    repository : RuleRepository
        Rule source; fetched once per service call.
    clock : callable, optional
        Returns the evaluation instant when a call does not pin `now`.
    """

    def __init__(
        self,
        repository: RuleRepository,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.repository = repository
        self._clock = clock or _utc_now

    def _now(self, now: Optional[datetime]) -> datetime:
        return ensure_utc(now) if now is not None else self._clock()

    def snapshot(self) -> RuleSnapshot:
        return self.repository.fetch_snapshot()

    def quote(
        self,
        product_id: Any,
        category_name: Any,
        base_price: Any,
        quantity: Any = 1,
        now: Optional[datetime] = None,
    ) -> PriceEvaluationResult:
        """Price one product at one quantity."""
        return evaluate_snapshot(
            self.snapshot(), product_id, category_name, base_price, quantity, now=self._now(now)
        )

    def quantity_breaks(
        self,
        product_id: Any,
        category_name: Any,
        base_price: Any,
        now: Optional[datetime] = None,
        snapshot: Optional[RuleSnapshot] = None,
    ) -> List[QuantityBreak]:
        """
        Unit price at every quantity where it can change.

        Breakpoints are 1 plus each applicable tier's lower bound and the
        quantity just past its upper bound. Consecutive breakpoints with the
        same unit price are merged.
        """
        snapshot = snapshot or self.snapshot()
        instant = self._now(now)
        product_key = coerce_product_id(product_id)
        category = coerce_category_name(category_name)

        points = {1}
        for rule in select_applicable(snapshot.rules, product_key, category, instant):
            for tier in snapshot.tiers_for(rule.id):
                points.add(max(1, tier.min_quantity))
                if tier.max_quantity is not None:
                    points.add(tier.max_quantity + 1)

        breaks: List[QuantityBreak] = []
        for point in sorted(points):
            result = evaluate_snapshot(
                snapshot, product_key, category, base_price, point, now=instant
            )
            if breaks and breaks[-1].unit_price == result.final_price:
                continue
            breaks.append(QuantityBreak(min_quantity=point, unit_price=result.final_price))

        return [
            current.model_copy(
                update={"max_quantity": following.min_quantity - 1}
            )
            for current, following in zip(breaks, breaks[1:])
        ] + breaks[-1:]

    def next_break(
        self,
        product_id: Any,
        category_name: Any,
        base_price: Any,
        quantity: int,
        now: Optional[datetime] = None,
    ) -> Optional[QuantityBreak]:
        """The first quantity break above `quantity`, if any."""
        for candidate in self.quantity_breaks(product_id, category_name, base_price, now=now):
            if candidate.min_quantity > quantity:
                return candidate
        return None

    def price_cart(
        self,
        lines: Iterable[CartLine | Dict[str, Any]],
        now: Optional[datetime] = None,
    ) -> CartQuote:
        """
        Price every cart line at its purchase quantity.

        All lines share one snapshot and one evaluation instant.

        Raises
        ------
        InvalidInputError
            If a line is malformed; the cart is not partially priced.
        """
        snapshot = self.snapshot()
        instant = self._now(now)
        quotes: List[CartLineQuote] = []
        for index, raw in enumerate(lines):
            line = raw if isinstance(raw, CartLine) else _parse_cart_line(raw, index)
            evaluation = evaluate_snapshot(
                snapshot,
                line.product_id,
                line.category_name,
                line.base_price,
                line.quantity,
                now=instant,
            )
            quotes.append(
                CartLineQuote(
                    product_id=line.product_id,
                    quantity=line.quantity,
                    unit_price=evaluation.final_price,
                    line_total=round_money(evaluation.final_price * line.quantity),
                    evaluation=evaluation,
                )
            )
        subtotal = round_money(sum((quote.line_total for quote in quotes), Decimal("0")))
        log.info("Cart priced", extra={"lines": len(quotes), "subtotal": str(subtotal)})
        return CartQuote(lines=quotes, subtotal=subtotal)

    def price_catalog(
        self,
        items: Iterable[CatalogItem | Dict[str, Any]],
        quantity: int = 1,
        now: Optional[datetime] = None,
    ) -> CatalogRun:
        """
        Price a whole catalogue at one quantity, profiling the run.

        A product with bad input is recorded with its error and the run
        continues, so one broken row does not blank a listing page.
        """
        snapshot = self.snapshot()
        instant = self._now(now)
        entries: List[CatalogEntry] = []

        log.info("[CATALOG START]", extra={"source": snapshot.source, "rules": len(snapshot.rules)})
        with profile_block("catalog") as stats:
            for raw in items:
                item = raw if isinstance(raw, CatalogItem) else dict(raw)
                raw_id = _field(item, "product_id", "productId", "id")
                product_id = "" if raw_id is None else str(raw_id)
                try:
                    result = evaluate_snapshot(
                        snapshot,
                        product_id,
                        _field(item, "category_name", "categoryName", "mainCategory", "category"),
                        _field(item, "base_price", "basePrice", "price"),
                        quantity,
                        now=instant,
                    )
                    entries.append(CatalogEntry(product_id=product_id, result=result))
                except PricingError as exc:
                    log.warning(
                        "[CATALOG ITEM FAILED]",
                        extra={"product_id": product_id, "code": exc.code},
                    )
                    entries.append(CatalogEntry(product_id=product_id, error=exc.to_dict()))
            stats.items = len(entries)

        run = CatalogRun(entries=entries, stats=stats.to_dict())
        log.info(
            "[CATALOG COMPLETE]",
            extra={
                "items": stats.items,
                "failed": len(run.failed),
                "duration": round(stats.duration_seconds, 4),
            },
        )
        return run


def _field(item: Any, *names: str) -> Any:
    for name in names:
        if isinstance(item, dict):
            if name in item:
                return item[name]
        elif hasattr(item, name):
            return getattr(item, name)
    return None


def _parse_cart_line(raw: Dict[str, Any], index: int) -> CartLine:
    product_id = _field(raw, "product_id", "productId")
    quantity = _field(raw, "quantity")
    try:
        return CartLine(
            product_id=str(product_id) if product_id is not None else None,
            category_name=_field(raw, "category_name", "categoryName"),
            base_price=_field(raw, "base_price", "basePrice", "price"),
            quantity=1 if quantity is None else quantity,
        )
    except ValueError as exc:
        raise InvalidInputError(
            f"Invalid cart line at index {index}", code="INVALID_CART_LINE", details={"index": index}
        ) from exc


__all__ = [
    "PricingService",
    "QuantityBreak",
    "CartLine",
    "CartLineQuote",
    "CartQuote",
    "CatalogItem",
    "CatalogEntry",
    "CatalogRun",
]
