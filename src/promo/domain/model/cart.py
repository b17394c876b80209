"""Cart snapshot priced by a single pricing pass.

Lines are immutable once constructed.  Quantities are *not* validated
here: the pricing aggregator checks them in its collecting step so a bad
quantity surfaces as a typed pricing error instead of a constructor crash.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterator

from promo.domain.model.value_objects import Money


@dataclass(frozen=True)
class CartLine:
    """One product in the cart at a captured unit price."""

    line_id: str
    product_id: str
    category_id: str | None
    unit_price: Money
    quantity: int

    @property
    def line_total(self) -> Money:
        return self.unit_price * self.quantity

    def with_unit_price(self, unit_price: Money) -> CartLine:
        return replace(self, unit_price=unit_price)


@dataclass(frozen=True)
class Cart:
    """Ordered sequence of cart lines."""

    lines: tuple[CartLine, ...]

    @staticmethod
    def of(*lines: CartLine) -> Cart:
        return Cart(lines=tuple(lines))

    def __iter__(self) -> Iterator[CartLine]:
        return iter(self.lines)

    def __len__(self) -> int:
        return len(self.lines)

    @property
    def product_ids(self) -> frozenset[str]:
        return frozenset(line.product_id for line in self.lines)

    @property
    def category_ids(self) -> frozenset[str]:
        return frozenset(
            line.category_id for line in self.lines if line.category_id is not None
        )
