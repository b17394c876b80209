"""Data Transfer Objects: plain containers that cross layer boundaries.

DTOs carry data between the CLI / checkout callers and the application
layer without exposing domain internals to the outside world.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class CartLineSpec:
    """Input: one cart line as the order flow describes it."""

    line_id: str
    product_id: str
    unit_price: str
    quantity: int
    currency: str = "USD"
    category_id: str | None = None


@dataclass(frozen=True)
class ReductionDTO:
    rule_id: str
    amount: str


@dataclass(frozen=True)
class PricedLineDTO:
    line_id: str
    original_total: str
    reductions: list[ReductionDTO]
    final_total: str


@dataclass(frozen=True)
class PricedCartDTO:
    """Output: a successfully priced cart, amounts formatted for display."""

    currency: str
    lines: list[PricedLineDTO]
    subtotal: str
    total_discount: str
    shipping: str
    tax: str
    grand_total: str
    applied_rule_ids: list[str]
    ineligible: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class PricingFailureDTO:
    """Output: the pricing pass was aborted."""

    code: str
    detail: str
    message: str


@dataclass(frozen=True)
class CouponValidationDTO:
    code: str
    valid: bool
    message: str
    rule_id: str | None = None


@dataclass(frozen=True)
class UsageSummaryDTO:
    rule_id: str
    total_uses: int
    pending: int
    unique_customers: int
    total_discount: list[str]


class CheckoutStatus(Enum):
    CONFIRMED = "CONFIRMED"
    PRICING_FAILED = "PRICING_FAILED"
    OFFER_UNAVAILABLE = "OFFER_UNAVAILABLE"
    ORDER_FAILED = "ORDER_FAILED"
    TIMED_OUT = "TIMED_OUT"


@dataclass(frozen=True)
class CheckoutOutcomeDTO:
    status: CheckoutStatus
    message: str
    order_id: str | None = None
    grand_total: str | None = None
    committed_rule_ids: list[str] = field(default_factory=list)
