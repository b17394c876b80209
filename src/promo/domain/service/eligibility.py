"""Domain service: is a discount rule usable for this cart right now?

Checks short-circuit in a fixed order, cheapest and most decisive first.
Ineligibility is a value, never an exception: a rule that fails simply
drops out of the pricing pass with its reason recorded.
"""

from __future__ import annotations

import logging

from promo.domain.model.cart import Cart
from promo.domain.model.discount_rule import DiscountRule
from promo.domain.model.pricing import (
    EligibilityResult,
    IneligibilityReason,
    PricingContext,
    RuleTerms,
)
from promo.domain.model.value_objects import Money
from promo.domain.repository.catalog_repository import CatalogRepository
from promo.domain.repository.usage_repository import UsageRepository
from promo.domain.service.applicability import matching_lines

logger = logging.getLogger(__name__)


class EligibilityEvaluator:

    def __init__(self, catalog: CatalogRepository, usage_repo: UsageRepository) -> None:
        self._catalog = catalog
        self._usage_repo = usage_repo

    def evaluate(
        self,
        rule: DiscountRule,
        cart: Cart,
        context: PricingContext,
        terms: RuleTerms,
    ) -> EligibilityResult:
        """Run every check against a cart already priced in ``context.target_currency``.

        ``terms`` carries the rule's monetary thresholds converted to the
        same currency, so no conversion (and no MissingRate) happens here.
        """
        result = self._check(rule, cart, context, terms)
        if not result.eligible:
            logger.debug("Rule %s ineligible: %s", rule.id, result.reason.value)  # type: ignore[union-attr]
        return result

    def _check(
        self,
        rule: DiscountRule,
        cart: Cart,
        context: PricingContext,
        terms: RuleTerms,
    ) -> EligibilityResult:
        def ineligible(reason: IneligibilityReason) -> EligibilityResult:
            return EligibilityResult(rule_id=rule.id, reason=reason)

        # 1. Active flag
        if not rule.is_active:
            return ineligible(IneligibilityReason.INACTIVE)

        # 2. Date window
        if not rule.is_within_window(context.as_of):
            return ineligible(IneligibilityReason.OUT_OF_WINDOW)

        # 3. Coupon code
        coupon_code: str | None = None
        if rule.requires_coupon_code:
            coupon_code = self._matching_coupon(rule, context)
            if coupon_code is None:
                return ineligible(IneligibilityReason.CODE_REQUIRED)

        lines = matching_lines(rule.scope, cart)

        # 4. Minimum purchase over matching lines
        if terms.min_purchase_amount is not None:
            matching_total = Money.zero(context.target_currency)
            for line in lines:
                matching_total = matching_total + line.line_total
            if matching_total < terms.min_purchase_amount:
                return ineligible(IneligibilityReason.BELOW_MINIMUM)

        # 5. Minimum quantity over matching lines
        if rule.min_quantity is not None:
            if sum(line.quantity for line in lines) < rule.min_quantity:
                return ineligible(IneligibilityReason.BELOW_MIN_QUANTITY)

        usage = self._usage_repo.get_by_rule_id(rule.id)

        # 6. Global usage limit.  The ledger may be ahead of the catalog
        #    snapshot, so the larger of the two counts wins.
        if rule.usage_limit_global is not None:
            used = rule.current_usage_global
            if usage is not None:
                used = max(used, usage.committed_count)
            if used >= rule.usage_limit_global:
                return ineligible(IneligibilityReason.GLOBAL_LIMIT_REACHED)

        # 7. Per-customer usage limit
        if rule.usage_limit_per_customer is not None and context.customer_id is not None:
            used = usage.committed_for_customer(context.customer_id) if usage else 0
            if used >= rule.usage_limit_per_customer:
                return ineligible(IneligibilityReason.CUSTOMER_LIMIT_REACHED)

        # 8. Customer whitelist / blacklist
        if not rule.is_customer_eligible(context.customer_id):
            return ineligible(IneligibilityReason.CUSTOMER_NOT_ELIGIBLE)

        return EligibilityResult(rule_id=rule.id, coupon_code=coupon_code)

    def _matching_coupon(self, rule: DiscountRule, context: PricingContext) -> str | None:
        """First presented code (sorted) that unlocks ``rule``."""
        for code in context.normalized_codes:
            coupon = self._catalog.resolve_coupon_code(code)
            if coupon is None:
                continue
            if coupon.discount_rule_id == rule.id and coupon.is_usable(context.as_of):
                return coupon.normalized
        return None
