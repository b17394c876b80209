"""DiscountRule aggregate and its scope.

Rules are owned by the marketing catalog.  This core only reads them for
the duration of one pricing pass, so they are frozen.  Construction
validates the strict rule shape and raises ``RuleDataInvalidError`` for
malformed records instead of trying to sanitize them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum

from promo.domain.exceptions import RuleDataInvalidError
from promo.domain.model.value_objects import Money, as_utc


class ScopeKind(Enum):
    STORE_WIDE = "store_wide"
    PRODUCTS = "products"
    CATEGORIES = "categories"


class ValueType(Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed_amount"
    BUY_X_GET_Y = "buy_x_get_y"


@dataclass(frozen=True)
class RuleScope:
    """Which cart lines a rule may affect."""

    kind: ScopeKind
    target_ids: frozenset[str] = frozenset()

    @staticmethod
    def store_wide() -> RuleScope:
        return RuleScope(ScopeKind.STORE_WIDE)

    @staticmethod
    def products(*product_ids: str) -> RuleScope:
        return RuleScope(ScopeKind.PRODUCTS, frozenset(product_ids))

    @staticmethod
    def categories(*category_ids: str) -> RuleScope:
        return RuleScope(ScopeKind.CATEGORIES, frozenset(category_ids))


MAX_PERCENTAGE = Decimal("100")


@dataclass(frozen=True)
class DiscountRule:
    """A promotion a merchant configured for a store.

    Invariants:
    - percentage ``value`` is in (0, 100]
    - fixed-amount ``value`` is > 0 and ``currency`` is set
    - buy-x-get-y ``value`` is the percent taken off each free unit, in
      (0, 100], and both ``buy_quantity`` and ``get_quantity`` are at least 1
    - usage limits, when present, are at least 1
    - ``end_date`` is not before ``start_date``
    """

    id: str
    scope: RuleScope | None
    value_type: ValueType
    value: Decimal
    start_date: datetime
    currency: str | None = None
    name: str = ""
    priority: int = 0
    combinable: bool = False
    is_active: bool = True
    end_date: datetime | None = None
    min_purchase_amount: Money | None = None
    min_quantity: int | None = None
    max_discount_amount: Money | None = None
    usage_limit_global: int | None = None
    usage_limit_per_customer: int | None = None
    current_usage_global: int = 0
    requires_coupon_code: bool = False
    eligible_customer_ids: frozenset[str] = field(default_factory=frozenset)
    excluded_customer_ids: frozenset[str] = field(default_factory=frozenset)
    buy_quantity: int | None = None
    get_quantity: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "start_date", as_utc(self.start_date))
        if self.end_date is not None:
            object.__setattr__(self, "end_date", as_utc(self.end_date))

        if not self.id:
            raise RuleDataInvalidError("Discount rule id is required")
        if not isinstance(self.value, Decimal):
            raise RuleDataInvalidError(
                f"Rule {self.id}: value must be a Decimal, got {type(self.value).__name__}"
            )

        if self.value_type is not ValueType.FIXED_AMOUNT:
            if not Decimal("0") < self.value <= MAX_PERCENTAGE:
                raise RuleDataInvalidError(
                    f"Rule {self.id}: percentage must be in (0, 100], got {self.value}"
                )
        else:
            if self.value <= 0:
                raise RuleDataInvalidError(
                    f"Rule {self.id}: fixed amount must be positive, got {self.value}"
                )
            if not self.currency:
                raise RuleDataInvalidError(
                    f"Rule {self.id}: fixed-amount rules require a currency"
                )
        if self.value_type is ValueType.BUY_X_GET_Y:
            for label, count in (("buy_quantity", self.buy_quantity), ("get_quantity", self.get_quantity)):
                if count is None or count < 1:
                    raise RuleDataInvalidError(f"Rule {self.id}: buy_x_get_y needs {label} >= 1")

        for label, limit in (
            ("usage_limit_global", self.usage_limit_global),
            ("usage_limit_per_customer", self.usage_limit_per_customer),
        ):
            if limit is not None and limit < 1:
                raise RuleDataInvalidError(f"Rule {self.id}: {label} must be >= 1")
        if self.min_quantity is not None and self.min_quantity < 0:
            raise RuleDataInvalidError(f"Rule {self.id}: min_quantity cannot be negative")
        if self.current_usage_global < 0:
            raise RuleDataInvalidError(f"Rule {self.id}: usage count cannot be negative")
        if self.end_date is not None and self.end_date < self.start_date:
            raise RuleDataInvalidError(f"Rule {self.id}: end_date precedes start_date")

    # --- Convenience ----------------------------------------------------------

    @property
    def is_percentage(self) -> bool:
        return self.value_type is ValueType.PERCENTAGE

    @property
    def fixed_amount(self) -> Money | None:
        """The flat discount in the rule's own currency (fixed rules only)."""
        if self.value_type is not ValueType.FIXED_AMOUNT:
            return None
        return Money(self.value, self.currency)  # type: ignore[arg-type]

    def free_units(self, quantity: int) -> int:
        """Units of a line of ``quantity`` that the buy-x-get-y offer discounts.

        Every full group of ``buy_quantity + get_quantity`` units earns
        ``get_quantity`` discounted units; a partial group earns nothing.
        """
        if self.value_type is not ValueType.BUY_X_GET_Y:
            return 0
        group = self.buy_quantity + self.get_quantity  # type: ignore[operator]
        return (quantity // group) * self.get_quantity  # type: ignore[operator]

    def is_within_window(self, as_of: datetime) -> bool:
        """True when ``as_of`` falls in ``[start_date, end_date)``."""
        as_of = as_utc(as_of)
        if as_of < self.start_date:
            return False
        return self.end_date is None or as_of < self.end_date

    def is_customer_eligible(self, customer_id: str | None) -> bool:
        """Whitelist/blacklist check carried over from the storefront."""
        if customer_id is not None and customer_id in self.excluded_customer_ids:
            return False
        if self.eligible_customer_ids:
            return customer_id in self.eligible_customer_ids
        return True
