"""Integration tests for the ValidateCoupon use case."""

from datetime import datetime, timezone
from decimal import Decimal

from promo.application.validate_coupon import ValidateCouponHandler
from promo.domain.model.coupon import CouponCode
from promo.domain.model.discount_rule import DiscountRule, RuleScope, ValueType
from promo.domain.model.usage import RedemptionRecord, RuleUsage
from tests.fakes import FakeCatalogRepository, FakeUsageRepository

START = datetime(2026, 1, 1, tzinfo=timezone.utc)
END = datetime(2026, 12, 31, tzinfo=timezone.utc)
NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


def _rule(**overrides) -> DiscountRule:
    fields = dict(
        id="R1",
        scope=RuleScope.store_wide(),
        value_type=ValueType.PERCENTAGE,
        value=Decimal("15"),
        start_date=START,
        end_date=END,
        requires_coupon_code=True,
    )
    fields.update(overrides)
    return DiscountRule(**fields)


def _validate(code="save15", rule=None, coupon=None, usages=None, customer_id=None, as_of=NOW):
    catalog = FakeCatalogRepository(
        [rule] if rule is not None else [_rule()],
        [coupon or CouponCode("SAVE15", "R1")],
    )
    handler = ValidateCouponHandler(catalog, FakeUsageRepository(usages))
    return handler.handle(code, customer_id=customer_id, as_of=as_of)


class TestValidateCouponHappyPath:

    def test_valid_code(self):
        dto = _validate()
        assert dto.valid
        assert dto.code == "SAVE15"
        assert dto.rule_id == "R1"
        assert dto.message == "Coupon applied"


    def test_naive_timestamp_taken_as_utc(self):
        assert _validate(as_of=datetime(2026, 6, 1, 12, 0)).valid

    def test_naive_timestamp_before_start(self):
        dto = _validate(as_of=datetime(2025, 12, 31, 23, 0))
        assert not dto.valid
        assert dto.message == "This coupon will be valid starting 2026-01-01"

class TestValidateCouponRejections:

    def test_unknown_code(self):
        dto = _validate(code="NOPE")
        assert not dto.valid
        assert dto.message == "Coupon code not found"

    def test_inactive_code(self):
        dto = _validate(coupon=CouponCode("SAVE15", "R1", is_active=False))
        assert dto.message == "This coupon code is currently inactive"

    def test_expired_code(self):
        dto = _validate(coupon=CouponCode("SAVE15", "R1", expires_at=NOW))
        assert dto.message == "This coupon code has expired"

    def test_rule_gone(self):
        dto = _validate(rule=_rule(id="OTHER"))
        assert dto.message == "Associated discount not found"

    def test_rule_inactive(self):
        dto = _validate(rule=_rule(is_active=False))
        assert dto.message == "This discount is currently inactive"

    def test_rule_not_started(self):
        dto = _validate(rule=_rule(start_date=datetime(2027, 1, 1, tzinfo=timezone.utc), end_date=None))
        assert dto.message == "This coupon will be valid starting 2027-01-01"

    def test_rule_ended(self):
        dto = _validate(as_of=END)
        assert dto.message == "This coupon has expired"

    def test_global_limit(self):
        dto = _validate(rule=_rule(usage_limit_global=10, current_usage_global=10))
        assert dto.message == "This coupon has reached its usage limit"

    def test_customer_limit(self):
        usage = RuleUsage(
            rule_id="R1",
            committed_count=1,
            redemptions=[RedemptionRecord("R1", "c1", START, coupon_code="SAVE15")],
        )
        dto = _validate(rule=_rule(usage_limit_per_customer=1), usages=[usage], customer_id="c1")
        assert dto.message == "You have reached the usage limit for this coupon"

    def test_coupon_customer_limit(self):
        usage = RuleUsage(
            rule_id="R1",
            committed_count=1,
            redemptions=[RedemptionRecord("R1", "c1", START, coupon_code="SAVE15")],
        )
        dto = _validate(
            coupon=CouponCode("SAVE15", "R1", per_customer_limit=1), usages=[usage], customer_id="c1"
        )
        assert not dto.valid
        assert _validate(
            coupon=CouponCode("SAVE15", "R1", per_customer_limit=1), usages=[usage], customer_id="c2"
        ).valid

    def test_excluded_customer(self):
        dto = _validate(rule=_rule(excluded_customer_ids=frozenset({"c1"})), customer_id="c1")
        assert dto.message == "This coupon is not available for your account"
