"""Application service: Validate Coupon use case (query).

Answers "can this customer use this code right now?" before a cart is
priced, with a message suitable for display.  Cart-dependent thresholds
(minimum purchase / quantity) are left to the pricing pass.
"""

from __future__ import annotations

from datetime import datetime, timezone

from promo.application.dto import CouponValidationDTO
from promo.domain.model.coupon import normalize_code
from promo.domain.model.value_objects import as_utc
from promo.domain.repository.catalog_repository import CatalogRepository
from promo.domain.repository.usage_repository import UsageRepository


class ValidateCouponHandler:

    def __init__(self, catalog: CatalogRepository, usage_repo: UsageRepository) -> None:
        self._catalog = catalog
        self._usage_repo = usage_repo

    def handle(
        self,
        code: str,
        customer_id: str | None = None,
        as_of: datetime | None = None,
    ) -> CouponValidationDTO:
        as_of = as_utc(as_of or datetime.now(timezone.utc))
        code = normalize_code(code)

        def invalid(message: str, rule_id: str | None = None) -> CouponValidationDTO:
            return CouponValidationDTO(code=code, valid=False, message=message, rule_id=rule_id)

        coupon = self._catalog.resolve_coupon_code(code)
        if coupon is None:
            return invalid("Coupon code not found")
        if not coupon.is_active:
            return invalid("This coupon code is currently inactive", coupon.discount_rule_id)
        if coupon.expires_at is not None and as_of >= coupon.expires_at:
            return invalid("This coupon code has expired", coupon.discount_rule_id)

        rule = self._catalog.get_rule(coupon.discount_rule_id)
        if rule is None:
            return invalid("Associated discount not found")
        if not rule.is_active:
            return invalid("This discount is currently inactive", rule.id)
        if as_of < rule.start_date:
            return invalid(
                f"This coupon will be valid starting {rule.start_date:%Y-%m-%d}", rule.id
            )
        if not rule.is_within_window(as_of):
            return invalid("This coupon has expired", rule.id)

        usage = self._usage_repo.get_by_rule_id(rule.id)
        if rule.usage_limit_global is not None:
            used = max(rule.current_usage_global, usage.committed_count if usage else 0)
            if used >= rule.usage_limit_global:
                return invalid("This coupon has reached its usage limit", rule.id)

        if customer_id is not None:
            if rule.usage_limit_per_customer is not None and usage is not None:
                if usage.committed_for_customer(customer_id) >= rule.usage_limit_per_customer:
                    return invalid("You have reached the usage limit for this coupon", rule.id)
            if coupon.per_customer_limit is not None and usage is not None:
                if usage.coupon_uses_for_customer(code, customer_id) >= coupon.per_customer_limit:
                    return invalid("You have reached the usage limit for this coupon", rule.id)
            if not rule.is_customer_eligible(customer_id):
                return invalid("This coupon is not available for your account", rule.id)

        return CouponValidationDTO(code=code, valid=True, message="Coupon applied", rule_id=rule.id)
