"""Coupon codes presented at checkout."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from promo.domain.exceptions import ValidationError
from promo.domain.model.value_objects import as_utc


def normalize_code(code: str) -> str:
    """Codes are compared case-insensitively and without surrounding blanks."""
    return code.strip().upper()


@dataclass(frozen=True)
class CouponCode:
    """A redeemable code that unlocks a ``requires_coupon_code`` rule.

    Many codes may point at the same rule.
    """

    code: str
    discount_rule_id: str
    is_active: bool = True
    per_customer_limit: int | None = None
    expires_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.expires_at is not None:
            object.__setattr__(self, "expires_at", as_utc(self.expires_at))
        if not self.code or not self.code.strip():
            raise ValidationError("Coupon code cannot be blank")
        if self.per_customer_limit is not None and self.per_customer_limit < 1:
            raise ValidationError(
                f"Coupon {self.code}: per_customer_limit must be >= 1"
            )

    @property
    def normalized(self) -> str:
        return normalize_code(self.code)

    def is_usable(self, as_of: datetime) -> bool:
        if not self.is_active:
            return False
        return self.expires_at is None or as_utc(as_of) < self.expires_at

