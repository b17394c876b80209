"""Unit tests for the EligibilityEvaluator."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from promo.domain.model.cart import Cart, CartLine
from promo.domain.model.coupon import CouponCode
from promo.domain.model.discount_rule import DiscountRule, RuleScope, ValueType
from promo.domain.model.pricing import (
    ExchangeRates,
    IneligibilityReason,
    PricingContext,
)
from promo.domain.model.usage import RedemptionRecord, RuleUsage
from promo.domain.model.value_objects import Money
from promo.domain.service.currency_converter import CurrencyConverter
from promo.domain.service.eligibility import EligibilityEvaluator
from tests.fakes import FakeCatalogRepository, FakeUsageRepository

START = datetime(2026, 1, 1, tzinfo=timezone.utc)
NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)

CART = Cart.of(
    CartLine("A", "P1", "apparel", Money.of("40.00"), 1),
    CartLine("B", "P2", "kitchen", Money.of("10.00"), 3),
)


def _rule(**overrides) -> DiscountRule:
    fields = dict(
        id="R1",
        scope=RuleScope.store_wide(),
        value_type=ValueType.PERCENTAGE,
        value=Decimal("10"),
        start_date=START,
    )
    fields.update(overrides)
    return DiscountRule(**fields)


def _evaluate(rule, *, usages=None, coupons=None, cart=CART, **context_fields):
    catalog = FakeCatalogRepository([rule], coupons)
    evaluator = EligibilityEvaluator(catalog, FakeUsageRepository(usages))
    context = PricingContext(target_currency="USD", as_of=NOW, **context_fields)
    terms = CurrencyConverter(ExchangeRates()).rule_terms(rule, "USD")
    return evaluator.evaluate(rule, cart, context, terms)


def _redemption(customer_id: str) -> RedemptionRecord:
    return RedemptionRecord(rule_id="R1", customer_id=customer_id, used_at=START)


class TestActiveAndWindow:

    def test_plain_rule_is_eligible(self):
        result = _evaluate(_rule())
        assert result.eligible
        assert result.reason is None

    def test_inactive(self):
        assert _evaluate(_rule(is_active=False)).reason is IneligibilityReason.INACTIVE

    def test_not_started(self):
        rule = _rule(start_date=NOW + timedelta(days=1))
        assert _evaluate(rule).reason is IneligibilityReason.OUT_OF_WINDOW

    def test_ends_exactly_now(self):
        rule = _rule(end_date=NOW)
        assert _evaluate(rule).reason is IneligibilityReason.OUT_OF_WINDOW

    def test_first_failing_check_wins(self):
        rule = _rule(is_active=False, end_date=START + timedelta(days=1), usage_limit_global=1,
                     current_usage_global=1)
        assert _evaluate(rule).reason is IneligibilityReason.INACTIVE


class TestCouponCode:

    def test_code_required_but_none_presented(self):
        rule = _rule(requires_coupon_code=True)
        assert _evaluate(rule).reason is IneligibilityReason.CODE_REQUIRED

    def test_presented_code_matched_case_insensitively(self):
        rule = _rule(requires_coupon_code=True)
        result = _evaluate(
            rule,
            coupons=[CouponCode("SAVE10", "R1")],
            presented_coupon_codes=frozenset({" save10 "}),
        )
        assert result.eligible
        assert result.coupon_code == "SAVE10"

    def test_code_for_another_rule_does_not_unlock(self):
        rule = _rule(requires_coupon_code=True)
        result = _evaluate(
            rule,
            coupons=[CouponCode("OTHER", "R9")],
            presented_coupon_codes=frozenset({"OTHER"}),
        )
        assert result.reason is IneligibilityReason.CODE_REQUIRED

    def test_expired_code_does_not_unlock(self):
        rule = _rule(requires_coupon_code=True)
        result = _evaluate(
            rule,
            coupons=[CouponCode("SAVE10", "R1", expires_at=NOW)],
            presented_coupon_codes=frozenset({"SAVE10"}),
        )
        assert result.reason is IneligibilityReason.CODE_REQUIRED


class TestThresholds:

    def test_below_minimum_purchase(self):
        rule = _rule(min_purchase_amount=Money.of("100"))
        assert _evaluate(rule).reason is IneligibilityReason.BELOW_MINIMUM

    def test_minimum_counts_only_matching_lines(self):
        # Cart total is 70.00 but only the 40.00 shirt is in scope.
        rule = _rule(scope=RuleScope.products("P1"), min_purchase_amount=Money.of("50"))
        assert _evaluate(rule).reason is IneligibilityReason.BELOW_MINIMUM

    def test_minimum_met_exactly(self):
        rule = _rule(min_purchase_amount=Money.of("70.00"))
        assert _evaluate(rule).eligible

    def test_below_min_quantity(self):
        rule = _rule(scope=RuleScope.categories("kitchen"), min_quantity=4)
        assert _evaluate(rule).reason is IneligibilityReason.BELOW_MIN_QUANTITY

    def test_min_quantity_met(self):
        rule = _rule(min_quantity=4)
        assert _evaluate(rule).eligible


class TestUsageLimits:

    def test_global_limit_reached_from_catalog_count(self):
        rule = _rule(usage_limit_global=1, current_usage_global=1)
        assert _evaluate(rule).reason is IneligibilityReason.GLOBAL_LIMIT_REACHED

    def test_global_limit_reached_from_ledger_count(self):
        rule = _rule(usage_limit_global=2)
        usage = RuleUsage(rule_id="R1", committed_count=2)
        assert _evaluate(rule, usages=[usage]).reason is IneligibilityReason.GLOBAL_LIMIT_REACHED

    def test_customer_limit_reached(self):
        rule = _rule(usage_limit_per_customer=1)
        usage = RuleUsage(rule_id="R1", committed_count=1, redemptions=[_redemption("c1")])
        result = _evaluate(rule, usages=[usage], customer_id="c1")
        assert result.reason is IneligibilityReason.CUSTOMER_LIMIT_REACHED

    def test_customer_limit_tracks_each_customer(self):
        rule = _rule(usage_limit_per_customer=1)
        usage = RuleUsage(rule_id="R1", committed_count=1, redemptions=[_redemption("c1")])
        assert _evaluate(rule, usages=[usage], customer_id="c2").eligible

    def test_anonymous_cart_skips_customer_limit(self):
        rule = _rule(usage_limit_per_customer=1)
        usage = RuleUsage(rule_id="R1", committed_count=1, redemptions=[_redemption("c1")])
        assert _evaluate(rule, usages=[usage]).eligible


class TestCustomerLists:

    def test_excluded_customer(self):
        rule = _rule(excluded_customer_ids=frozenset({"c1"}))
        result = _evaluate(rule, customer_id="c1")
        assert result.reason is IneligibilityReason.CUSTOMER_NOT_ELIGIBLE

    def test_whitelisted_customer(self):
        rule = _rule(eligible_customer_ids=frozenset({"vip"}))
        assert _evaluate(rule, customer_id="vip").eligible
        assert not _evaluate(rule, customer_id="c1").eligible
