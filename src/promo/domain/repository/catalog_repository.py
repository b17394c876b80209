"""Abstract catalog of discount rules and coupon codes.

Defined in the domain layer so the domain never depends on
infrastructure.  The marketing catalog owns these records; the pricing
core only reads them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from promo.domain.model.coupon import CouponCode
from promo.domain.model.discount_rule import DiscountRule


class CatalogRepository(ABC):

    @abstractmethod
    def list_applicable_rules(
        self,
        store_id: str | None,
        customer_id: str | None,
        product_ids: frozenset[str],
        category_ids: frozenset[str],
        as_of: datetime,
    ) -> list[DiscountRule]:
        """Return candidate rules for a cart; filtering is advisory only."""

    @abstractmethod
    def get_rule(self, rule_id: str) -> DiscountRule | None:
        """Return a rule by its ID, or None if it was deleted."""

    @abstractmethod
    def resolve_coupon_code(self, code: str) -> CouponCode | None:
        """Return the coupon for a (normalized) code, or None."""
