"""Domain service: which cart lines a rule's scope covers.

A rule either fully applies to a line or not at all.  An unknown or
missing scope never matches; it is not treated as store-wide.
"""

from __future__ import annotations

from typing import Iterable

from promo.domain.model.cart import CartLine
from promo.domain.model.discount_rule import RuleScope, ScopeKind


def matches(scope: RuleScope | None, line: CartLine) -> bool:
    if scope is None:
        return False
    if scope.kind is ScopeKind.STORE_WIDE:
        return True
    if scope.kind is ScopeKind.PRODUCTS:
        return line.product_id in scope.target_ids
    if scope.kind is ScopeKind.CATEGORIES:
        return line.category_id is not None and line.category_id in scope.target_ids
    return False


def matching_lines(scope: RuleScope | None, lines: Iterable[CartLine]) -> list[CartLine]:
    """Lines covered by ``scope``, in cart order."""
    return [line for line in lines if matches(scope, line)]
