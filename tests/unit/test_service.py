from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest

from markup_engine.domain.errors import InvalidInputError
from markup_engine.domain.models import RuleSnapshot
from markup_engine.repository.memory import InMemoryRuleRepository
from markup_engine.service import CartLine, CatalogItem, PricingService

CARTRIDGE_ID = "55"
CARTRIDGE_BASE = "40"

RULES = [
    {"id": 1, "name": "Site Margin", "type": "site_wide", "markupType": "percentage",
     "markupValue": 10, "priority": 0, "compoundStrategy": "add"},
    {"id": 2, "name": "Cartridge Volume", "type": "category", "targetId": "Cartridges",
     "markupType": "percentage", "markupValue": 20, "priority": 3, "compoundStrategy": "add"},
    {"id": 3, "name": "Flower Handling", "type": "category", "targetId": "Flower",
     "markupType": "fixed_amount", "markupValue": 5, "priority": 5, "compoundStrategy": "add"},
]
TIERS = [
    {"markupId": 2, "minQuantity": 1, "maxQuantity": 10, "markupValue": 20},
    {"markupId": 2, "minQuantity": 11, "maxQuantity": 49, "markupValue": 14},
    {"markupId": 2, "minQuantity": 50, "maxQuantity": None, "markupValue": 10},
]


class _CountingRepository:
    name = "counting"

    def __init__(self, inner: InMemoryRuleRepository) -> None:
        self.inner = inner
        self.fetches = 0

    def fetch_snapshot(self) -> RuleSnapshot:
        self.fetches += 1
        return self.inner.fetch_snapshot()


@pytest.fixture
def repository() -> _CountingRepository:
    return _CountingRepository(InMemoryRuleRepository(RULES, TIERS))


@pytest.fixture
def service(repository, now) -> PricingService:
    return PricingService(repository, clock=lambda: now)


def test_quote(service) -> None:
    result = service.quote(CARTRIDGE_ID, "Cartridges", CARTRIDGE_BASE, quantity=11)

    assert [step.id for step in result.applied_markups] == [2, 1]
    assert result.final_price == Decimal("50.16")


def test_quote_uses_clock_unless_now_given(make_rule, now) -> None:
    rule = make_rule(valid_until=now + timedelta(hours=1))
    service = PricingService(InMemoryRuleRepository([rule]), clock=lambda: now)

    assert service.quote("1", "Any", "10").final_price == Decimal("11.00")
    later = service.quote("1", "Any", "10", now=now + timedelta(hours=2))
    assert later.final_price == Decimal("10.00")


def test_quantity_breaks(service) -> None:
    table = service.quantity_breaks(CARTRIDGE_ID, "Cartridges", CARTRIDGE_BASE)

    assert [(entry.label, entry.unit_price) for entry in table] == [
        ("1-10", Decimal("52.80")),
        ("11-49", Decimal("50.16")),
        ("50+", Decimal("48.40")),
    ]


def test_quantity_breaks_without_tiers_is_single_row(service) -> None:
    table = service.quantity_breaks("7", "Flower", "100")

    assert len(table) == 1
    assert table[0].label == "1+"
    assert table[0].unit_price == Decimal("115.50")


def test_quantity_breaks_merge_equal_prices_and_cover_gaps(now) -> None:
    rules = [{"id": 1, "name": "Bulk", "type": "site_wide", "markupType": "percentage",
              "markupValue": 20, "compoundStrategy": "add"}]
    tiers = [
        {"markupId": 1, "minQuantity": 1, "maxQuantity": 4, "markupValue": 10},
        {"markupId": 1, "minQuantity": 5, "maxQuantity": 9, "markupValue": 10},
        {"markupId": 1, "minQuantity": 20, "maxQuantity": 29, "markupValue": 5},
    ]
    service = PricingService(InMemoryRuleRepository(rules, tiers), clock=lambda: now)

    table = service.quantity_breaks("1", "Any", "100")

    assert [(entry.label, entry.unit_price) for entry in table] == [
        ("1-9", Decimal("110.00")),
        ("10-19", Decimal("120.00")),
        ("20-29", Decimal("105.00")),
        ("30+", Decimal("120.00")),
    ]


def test_quantity_breaks_ignore_tiers_of_inapplicable_rules(service) -> None:
    table = service.quantity_breaks("7", "Edibles", "10")

    assert [entry.label for entry in table] == ["1+"]


def test_next_break(service) -> None:
    upcoming = service.next_break(CARTRIDGE_ID, "Cartridges", CARTRIDGE_BASE, quantity=3)

    assert upcoming.min_quantity == 11
    assert upcoming.unit_price == Decimal("50.16")
    assert service.next_break(CARTRIDGE_ID, "Cartridges", CARTRIDGE_BASE, quantity=60) is None


def test_price_cart_uses_purchase_quantity(service, repository) -> None:
    cart = service.price_cart(
        [
            {"productId": 55, "categoryName": "Cartridges", "basePrice": 40, "quantity": 12},
            {"product_id": "7", "category_name": "Flower", "base_price": "100", "quantity": 2},
            CartLine(product_id="8", category_name="Edibles", base_price=9.99),
        ]
    )

    assert [(line.unit_price, line.line_total) for line in cart.lines] == [
        (Decimal("50.16"), Decimal("601.92")),
        (Decimal("115.50"), Decimal("231.00")),
        (Decimal("10.99"), Decimal("10.99")),
    ]
    assert cart.subtotal == Decimal("843.91")
    assert cart.item_count == 15
    assert repository.fetches == 1


def test_price_cart_rejects_bad_line(service) -> None:
    with pytest.raises(InvalidInputError) as excinfo:
        service.price_cart(
            [
                {"productId": 1, "categoryName": "Flower", "basePrice": 10},
                {"productId": 2, "basePrice": 10, "quantity": -2},
            ]
        )

    assert excinfo.value.code == "INVALID_CART_LINE"
    assert excinfo.value.details == {"index": 1}


def test_price_catalog_records_failures_and_continues(service) -> None:
    run = service.price_catalog(
        [
            {"product_id": "55", "category_name": "Cartridges", "base_price": "40"},
            {"productId": "9", "categoryName": "", "basePrice": "10"},
            CatalogItem(product_id="7", category_name="Flower", base_price=Decimal("100")),
        ],
        quantity=50,
    )

    assert [entry.product_id for entry in run.entries] == ["55", "9", "7"]
    assert run.entries[0].result.final_price == Decimal("48.40")
    assert run.entries[2].result.final_price == Decimal("115.50")
    [failed] = run.failed
    assert failed.error["code"] == "INVALID_CATEGORY_NAME"
    assert run.stats["label"] == "catalog"
    assert run.stats["items"] == 3


@pytest.mark.parametrize("quantity", [0, -1])
def test_price_cart_rejects_non_positive_quantity(service, quantity) -> None:
    line = {"productId": 7, "categoryName": "Flower", "basePrice": "10", "quantity": quantity}

    with pytest.raises(InvalidInputError) as excinfo:
        service.price_cart([line])

    assert excinfo.value.code == "INVALID_CART_LINE"


def test_price_cart_defaults_missing_quantity_to_one(service) -> None:
    cart = service.price_cart([{"productId": 7, "categoryName": "Flower", "basePrice": "100"}])

    assert cart.lines[0].quantity == 1
    assert cart.subtotal == Decimal("115.50")


def test_price_catalog_accepts_product_id_zero(service) -> None:
    run = service.price_catalog([{"product_id": 0, "category_name": "Flower", "base_price": "100"}])

    [entry] = run.entries
    assert entry.product_id == "0"
    assert entry.error is None
    assert entry.result.final_price == Decimal("115.50")
