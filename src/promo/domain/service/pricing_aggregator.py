"""Domain service: price a cart against the store's promotions.

A pricing pass moves linearly through

    COLLECTING -> CONVERTING -> EVALUATING -> RESOLVING -> CALCULATING -> FINALIZED

and never goes back.  Any failure aborts the whole pass and is returned
as a ``PricingError``; a partially priced result is never surfaced.

The pass is read-only: it holds no shared mutable state and never writes
usage, so previews can run concurrently without coordination.
"""

from __future__ import annotations

import logging
from enum import Enum

from promo.domain.exceptions import (
    DomainException,
    EmptyCartError,
    InvalidQuantityError,
    MissingRateError,
    RuleDataInvalidError,
    ValidationError,
)
from promo.domain.model.cart import Cart
from promo.domain.model.discount_rule import DiscountRule
from promo.domain.model.pricing import (
    AppliedDiscount,
    EligibilityResult,
    PricedLine,
    PricedResult,
    PricingContext,
    PricingError,
    PricingErrorCode,
    Reduction,
    RuleTerms,
)
from promo.domain.model.value_objects import Money
from promo.domain.repository.catalog_repository import CatalogRepository
from promo.domain.repository.usage_repository import UsageRepository
from promo.domain.service.applicability import matching_lines
from promo.domain.service.currency_converter import CurrencyConverter
from promo.domain.service.discount_calculator import DiscountCalculator
from promo.domain.service.eligibility import EligibilityEvaluator
from promo.domain.service.stacking import StackingResolver

logger = logging.getLogger(__name__)


class PricingState(Enum):
    COLLECTING = "Collecting"
    CONVERTING = "Converting"
    EVALUATING = "Evaluating"
    RESOLVING = "Resolving"
    CALCULATING = "Calculating"
    FINALIZED = "Finalized"


# Most specific first.
_ERROR_CODES: tuple[tuple[type[DomainException], PricingErrorCode], ...] = (
    (MissingRateError, PricingErrorCode.MISSING_RATE),
    (EmptyCartError, PricingErrorCode.EMPTY_CART),
    (InvalidQuantityError, PricingErrorCode.INVALID_QUANTITY),
    (RuleDataInvalidError, PricingErrorCode.RULE_DATA_INVALID),
    (DomainException, PricingErrorCode.INVALID_INPUT),
)


class PricingAggregator:

    def __init__(
        self,
        catalog: CatalogRepository,
        usage_repo: UsageRepository,
        evaluator: EligibilityEvaluator | None = None,
        resolver: StackingResolver | None = None,
        calculator: DiscountCalculator | None = None,
    ) -> None:
        self._catalog = catalog
        self._evaluator = evaluator or EligibilityEvaluator(catalog, usage_repo)
        self._resolver = resolver or StackingResolver()
        self._calculator = calculator or DiscountCalculator()

    def price(self, cart: Cart, context: PricingContext) -> PricedResult | PricingError:
        """Price ``cart`` in ``context.target_currency``.

        Deterministic for a given rule set, cart and rate table.  Never
        raises a DomainException; those become a ``PricingError``.
        """
        pass_state = [PricingState.COLLECTING]
        try:
            return self._run(cart, context, pass_state)
        except DomainException as exc:
            code = next(code for kind, code in _ERROR_CODES if isinstance(exc, kind))
            logger.warning(
                "Pricing aborted in %s state: %s (%s)", pass_state[0].value, code.value, exc
            )
            return PricingError(code=code, message=str(exc))

    # --- Pass -----------------------------------------------------------------

    def _run(
        self,
        cart: Cart,
        context: PricingContext,
        pass_state: list[PricingState],
    ) -> PricedResult:
        currency = context.target_currency

        # Collecting
        self._validate_cart(cart)
        rules = self._collect_rules(cart, context)

        # Converting
        pass_state[0] = PricingState.CONVERTING
        converter = CurrencyConverter(context.exchange_rates)
        priced_cart = Cart(
            tuple(line.with_unit_price(converter.convert(line.unit_price, currency)) for line in cart)
        )
        terms = {
            rule.id: (
                converter.rule_terms(rule, currency)
                if rule.is_active and rule.is_within_window(context.as_of)
                else RuleTerms()
            )
            for rule in rules
        }

        # Evaluating
        pass_state[0] = PricingState.EVALUATING
        candidates: list[DiscountRule] = []
        coupon_codes: dict[str, str | None] = {}
        rejected: list[EligibilityResult] = []
        for rule in rules:
            verdict = self._evaluator.evaluate(rule, priced_cart, context, terms[rule.id])
            if not verdict.eligible:
                rejected.append(verdict)
                continue
            if not matching_lines(rule.scope, priced_cart):
                logger.debug("Rule %s matches no cart line", rule.id)
                continue
            candidates.append(rule)
            coupon_codes[rule.id] = verdict.coupon_code

        # Resolving
        pass_state[0] = PricingState.RESOLVING
        accepted = self._resolver.resolve(candidates)

        # Calculating: each rule sees the totals left by the rules before it.
        pass_state[0] = PricingState.CALCULATING
        remaining = {line.line_id: line.line_total for line in priced_cart}
        quantities = {line.line_id: line.quantity for line in priced_cart}
        line_reductions: dict[str, list[Reduction]] = {line.line_id: [] for line in priced_cart}
        discounts: list[AppliedDiscount] = []
        for rule in accepted:
            targets = [
                (line.line_id, remaining[line.line_id])
                for line in matching_lines(rule.scope, priced_cart)
            ]
            outcome = self._calculator.apply(rule, terms[rule.id], targets, quantities)
            for line_id, amount in outcome.per_line.items():
                remaining[line_id] = remaining[line_id] - amount
                line_reductions[line_id].append(Reduction(rule.id, amount))
            discounts.append(AppliedDiscount(rule.id, outcome.total, coupon_codes[rule.id]))

        # Finalized
        pass_state[0] = PricingState.FINALIZED
        subtotal = Money.zero(currency)
        for line in priced_cart:
            subtotal = subtotal + line.line_total
        total_discount = Money.zero(currency)
        for discount in discounts:
            total_discount = total_discount + discount.amount
        shipping = Money.zero(currency)
        tax = Money.zero(currency)

        return PricedResult(
            lines=tuple(
                PricedLine(
                    line_id=line.line_id,
                    original_total=line.line_total,
                    reductions=tuple(line_reductions[line.line_id]),
                )
                for line in priced_cart
            ),
            subtotal_before_discount=subtotal,
            total_discount=total_discount,
            shipping=shipping,
            tax=tax,
            grand_total=subtotal - total_discount + shipping + tax,
            applied_rule_ids=tuple(rule.id for rule in accepted),
            discounts=tuple(discounts),
            ineligible_rules=tuple(rejected),
        )

    # --- Internal helpers -----------------------------------------------------

    @staticmethod
    def _validate_cart(cart: Cart) -> None:
        if not cart.lines:
            raise EmptyCartError("Cart must contain at least one line")
        seen: set[str] = set()
        for line in cart:
            if not isinstance(line.quantity, int) or line.quantity <= 0:
                raise InvalidQuantityError(
                    f"Line {line.line_id} has invalid quantity {line.quantity!r}"
                )
            if line.line_id in seen:
                raise ValidationError(f"Duplicate cart line id '{line.line_id}'")
            seen.add(line.line_id)

    def _collect_rules(self, cart: Cart, context: PricingContext) -> list[DiscountRule]:
        """Candidate rules, de-duplicated and in rule-id order."""
        fetched = self._catalog.list_applicable_rules(
            context.store_id,
            context.customer_id,
            cart.product_ids,
            cart.category_ids,
            context.as_of,
        )
        by_id: dict[str, DiscountRule] = {}
        for rule in fetched:
            by_id.setdefault(rule.id, rule)
        return [by_id[rule_id] for rule_id in sorted(by_id)]
