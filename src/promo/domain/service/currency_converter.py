"""Domain service: currency conversion.

Pure functions over a supplied rate table; no state of their own, so any
number of threads may call them concurrently.
"""

from __future__ import annotations

from decimal import Decimal

from promo.domain.exceptions import MissingRateError
from promo.domain.model.discount_rule import DiscountRule
from promo.domain.model.pricing import ExchangeRates, RuleTerms
from promo.domain.model.value_objects import Money


def convert(
    amount: Decimal,
    from_currency: str,
    to_currency: str,
    rates: ExchangeRates,
) -> Money:
    """Convert ``amount`` from one currency into another.

    Same-currency conversion returns the amount untouched (no rounding).
    Otherwise the direct rate is used, falling back to the inverse of the
    opposite pair.  The result is rounded half-to-even to the target's
    minor unit, once, at the very end.

    Raises MissingRateError when neither direction is quoted.
    """
    if from_currency == to_currency:
        return Money(amount, to_currency)

    direct = rates.get(from_currency, to_currency)
    if direct is not None:
        raw = amount * direct
    else:
        inverse = rates.get(to_currency, from_currency)
        if inverse is None:
            raise MissingRateError(from_currency, to_currency)
        raw = amount / inverse

    return Money(raw, to_currency).rounded()


class CurrencyConverter:
    """A rate table bound to ``convert`` for repeated use in one pricing pass."""

    def __init__(self, rates: ExchangeRates) -> None:
        self._rates = rates

    def convert(self, money: Money, to_currency: str) -> Money:
        return convert(money.amount, money.currency, to_currency, self._rates)

    def convert_optional(self, money: Money | None, to_currency: str) -> Money | None:
        if money is None:
            return None
        return self.convert(money, to_currency)

    def rule_terms(self, rule: DiscountRule, to_currency: str) -> RuleTerms:
        """Express a rule's thresholds, cap and flat value in ``to_currency``."""
        return RuleTerms(
            min_purchase_amount=self.convert_optional(rule.min_purchase_amount, to_currency),
            max_discount_amount=self.convert_optional(rule.max_discount_amount, to_currency),
            fixed_amount=self.convert_optional(rule.fixed_amount, to_currency),
        )
