"""Unit tests for rule scope matching."""

from promo.domain.model.cart import CartLine
from promo.domain.model.discount_rule import RuleScope
from promo.domain.model.value_objects import Money
from promo.domain.service.applicability import matches, matching_lines

SHIRT = CartLine("A", "P1", "apparel", Money.of("20"), 1)
MUG = CartLine("B", "P2", None, Money.of("8"), 2)


class TestMatches:

    def test_store_wide_matches_everything(self):
        assert matches(RuleScope.store_wide(), SHIRT)
        assert matches(RuleScope.store_wide(), MUG)

    def test_product_scope(self):
        scope = RuleScope.products("P1")
        assert matches(scope, SHIRT)
        assert not matches(scope, MUG)

    def test_category_scope(self):
        scope = RuleScope.categories("apparel")
        assert matches(scope, SHIRT)
        assert not matches(scope, MUG)

    def test_missing_scope_never_matches(self):
        assert not matches(None, SHIRT)

    def test_empty_target_list_matches_nothing(self):
        assert not matches(RuleScope.products(), SHIRT)


class TestMatchingLines:

    def test_keeps_cart_order(self):
        lines = [MUG, SHIRT]
        assert matching_lines(RuleScope.store_wide(), lines) == [MUG, SHIRT]
        assert matching_lines(RuleScope.products("P1"), lines) == [SHIRT]
