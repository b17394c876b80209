"""Inputs and outputs of a pricing pass.

``PricingContext`` is rebuilt for every preview or checkout call and never
persisted.  ``PricedResult`` is produced fresh by each call and never
mutated afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Mapping

from promo.domain.exceptions import ValidationError
from promo.domain.model.coupon import normalize_code
from promo.domain.model.value_objects import Money, as_utc


@dataclass(frozen=True)
class ExchangeRates:
    """Directed currency-pair rate table: ``rates[(from, to)]``."""

    rates: Mapping[tuple[str, str], Decimal] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for pair, rate in self.rates.items():
            if not isinstance(rate, Decimal) or rate <= 0:
                raise ValidationError(f"Exchange rate for {pair[0]}->{pair[1]} must be a positive Decimal")

    def get(self, from_currency: str, to_currency: str) -> Decimal | None:
        return self.rates.get((from_currency, to_currency))

    @staticmethod
    def from_base(base: str, rates: Mapping[str, Decimal]) -> ExchangeRates:
        """Expand ``{currency: units per 1 base}`` into a full pair table.

        Cross rates are left unrounded; rounding happens once, in the
        converter, on the final amount.
        """
        table: dict[tuple[str, str], Decimal] = {}
        quoted = dict(rates)
        quoted.setdefault(base, Decimal("1"))
        for src, src_rate in quoted.items():
            for dst, dst_rate in quoted.items():
                if src != dst:
                    table[(src, dst)] = dst_rate / src_rate
        return ExchangeRates(table)


@dataclass(frozen=True)
class PricingContext:
    """Everything a pricing pass needs besides the cart itself."""

    target_currency: str
    as_of: datetime
    customer_id: str | None = None
    presented_coupon_codes: frozenset[str] = frozenset()
    exchange_rates: ExchangeRates = field(default_factory=ExchangeRates)
    store_id: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "as_of", as_utc(self.as_of))

    @property
    def normalized_codes(self) -> tuple[str, ...]:
        return tuple(sorted({normalize_code(c) for c in self.presented_coupon_codes}))


@dataclass(frozen=True)
class RuleTerms:
    """A rule's monetary terms expressed in the cart currency for one pass."""

    min_purchase_amount: Money | None = None
    max_discount_amount: Money | None = None
    fixed_amount: Money | None = None


# ---------------------------------------------------------------------------
# Eligibility
# ---------------------------------------------------------------------------


class IneligibilityReason(Enum):
    INACTIVE = "Inactive"
    OUT_OF_WINDOW = "OutOfWindow"
    CODE_REQUIRED = "CodeRequired"
    BELOW_MINIMUM = "BelowMinimum"
    BELOW_MIN_QUANTITY = "BelowMinQuantity"
    GLOBAL_LIMIT_REACHED = "GlobalLimitReached"
    CUSTOMER_LIMIT_REACHED = "CustomerLimitReached"
    CUSTOMER_NOT_ELIGIBLE = "CustomerNotEligible"


@dataclass(frozen=True)
class EligibilityResult:
    rule_id: str
    reason: IneligibilityReason | None = None
    coupon_code: str | None = None

    @property
    def eligible(self) -> bool:
        return self.reason is None


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Reduction:
    rule_id: str
    amount: Money


@dataclass(frozen=True)
class AppliedDiscount:
    """A rule's total reduction over the whole cart."""

    rule_id: str
    amount: Money
    coupon_code: str | None = None


@dataclass(frozen=True)
class PricedLine:
    line_id: str
    original_total: Money
    reductions: tuple[Reduction, ...] = ()

    @property
    def total_reduction(self) -> Money:
        total = Money.zero(self.original_total.currency)
        for reduction in self.reductions:
            total = total + reduction.amount
        return total

    @property
    def final_total(self) -> Money:
        return self.original_total - self.total_reduction


@dataclass(frozen=True)
class PricedResult:
    lines: tuple[PricedLine, ...]
    subtotal_before_discount: Money
    total_discount: Money
    shipping: Money
    tax: Money
    grand_total: Money
    applied_rule_ids: tuple[str, ...]
    discounts: tuple[AppliedDiscount, ...] = ()
    ineligible_rules: tuple[EligibilityResult, ...] = ()

    @property
    def currency(self) -> str:
        return self.grand_total.currency


class PricingErrorCode(Enum):
    MISSING_RATE = "MissingRate"
    EMPTY_CART = "EmptyCart"
    INVALID_QUANTITY = "InvalidQuantity"
    RULE_DATA_INVALID = "RuleDataInvalid"
    INVALID_INPUT = "InvalidInput"


@dataclass(frozen=True)
class PricingError:
    """A pricing pass was aborted; no partial total is ever returned."""

    code: PricingErrorCode
    message: str

    USER_MESSAGE = "Unable to calculate price, try again."
