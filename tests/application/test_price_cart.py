"""Integration tests for the PriceCart use case."""

from datetime import datetime, timezone
from decimal import Decimal

from promo.application.dto import CartLineSpec, PricedCartDTO, PricingFailureDTO
from promo.application.price_cart import PriceCartHandler, build_cart
from promo.domain.model.coupon import CouponCode
from promo.domain.model.discount_rule import DiscountRule, RuleScope, ValueType
from promo.domain.model.pricing import ExchangeRates
from promo.domain.model.value_objects import Money
from tests.fakes import FakeCatalogRepository, FakeExchangeRateProvider, FakeUsageRepository

START = datetime(2026, 1, 1, tzinfo=timezone.utc)
NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


def _setup():
    rules = [
        DiscountRule(
            id="SUMMER10",
            name="Summer sale",
            scope=RuleScope.store_wide(),
            value_type=ValueType.PERCENTAGE,
            value=Decimal("10"),
            start_date=START,
            combinable=True,
            priority=10,
        ),
        DiscountRule(
            id="MUGS5",
            scope=RuleScope.categories("kitchen"),
            value_type=ValueType.FIXED_AMOUNT,
            value=Decimal("5"),
            currency="USD",
            start_date=START,
            combinable=True,
            priority=5,
            requires_coupon_code=True,
        ),
    ]
    catalog = FakeCatalogRepository(rules, [CouponCode("MUGLOVER", "MUGS5")])
    rates = FakeExchangeRateProvider(ExchangeRates.from_base("USD", {"EUR": Decimal("0.8")}))
    return PriceCartHandler(catalog, FakeUsageRepository(), rates)


SPECS = [
    CartLineSpec("1", "shirt", "40.00", 2, category_id="apparel"),
    CartLineSpec("2", "mug", "20.00", 1, category_id="kitchen"),
]


class TestBuildCart:

    def test_specs_become_cart_lines(self):
        cart = build_cart(SPECS)
        assert len(cart) == 2
        assert cart.lines[0].unit_price == Money.of("40.00")
        assert cart.lines[1].category_id == "kitchen"


class TestPriceCartHappyPath:

    def test_preview_without_code(self):
        dto = _setup().handle(SPECS, "USD", as_of=NOW)

        assert isinstance(dto, PricedCartDTO)
        assert dto.subtotal == "100.00 USD"
        assert dto.total_discount == "10.00 USD"
        assert dto.grand_total == "90.00 USD"
        assert dto.applied_rule_ids == ["SUMMER10"]
        assert dto.ineligible == {"MUGS5": "CodeRequired"}

    def test_preview_with_code(self):
        dto = _setup().handle(SPECS, "usd", coupon_codes=("muglover",), as_of=NOW)

        assert dto.applied_rule_ids == ["SUMMER10", "MUGS5"]
        # Mug line: 20.00 - 2.00 (10%) - 5.00 = 13.00
        mug = dto.lines[1]
        assert [(r.rule_id, r.amount) for r in mug.reductions] == [
            ("SUMMER10", "2.00 USD"),
            ("MUGS5", "5.00 USD"),
        ]
        assert mug.final_total == "13.00 USD"
        assert dto.grand_total == "85.00 USD"

    def test_preview_in_other_currency(self):
        dto = _setup().handle(SPECS, "EUR", as_of=NOW)

        assert dto.currency == "EUR"
        assert dto.subtotal == "80.00 EUR"
        assert dto.grand_total == "72.00 EUR"


class TestPriceCartFailures:

    def test_empty_cart(self):
        dto = _setup().handle([], "USD", as_of=NOW)

        assert isinstance(dto, PricingFailureDTO)
        assert dto.code == "EmptyCart"
        assert dto.message == "Unable to calculate price, try again."

    def test_unparseable_price(self):
        dto = _setup().handle([CartLineSpec("1", "shirt", "forty", 1)], "USD", as_of=NOW)
        assert dto.code == "InvalidInput"
        assert "Invalid money amount" in dto.detail

    def test_unknown_currency_pair(self):
        dto = _setup().handle(SPECS, "GBP", as_of=NOW)
        assert dto.code == "MissingRate"
