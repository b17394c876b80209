"""Domain service: how much a single accepted rule takes off.

The rule's total reduction is computed once for all matching lines, then
split across those lines with largest-remainder rounding so the per-line
parts always add up exactly to the total.  No line is ever reduced below
zero.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_DOWN, ROUND_HALF_EVEN, Decimal
from typing import Mapping, Sequence

from promo.domain.exceptions import RuleDataInvalidError, ValidationError
from promo.domain.model.discount_rule import DiscountRule, ValueType
from promo.domain.model.pricing import RuleTerms
from promo.domain.model.value_objects import Money, minor_unit

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class RuleReductions:
    """What one rule removed, per line and in total."""

    rule_id: str
    per_line: dict[str, Money]
    total: Money


def allocate(total: Decimal, weights: Sequence[Decimal], currency: str) -> list[Decimal]:
    """Split ``total`` across ``weights`` proportionally, in whole minor units.

    Each part is floored to the minor unit; the units left over go to the
    parts with the largest discarded remainders (earlier parts win ties).
    Parts never exceed their own weight.
    """
    unit = minor_unit(currency)
    weight_sum = sum(weights, Decimal("0"))
    if total <= 0 or weight_sum <= 0:
        return [Decimal("0").quantize(unit) for _ in weights]

    total_units = int((total / unit).to_integral_value())
    exact = [total_units * w / weight_sum for w in weights]
    parts = [int(share) for share in exact]

    leftover = total_units - sum(parts)
    by_remainder = sorted(range(len(weights)), key=lambda i: (-(exact[i] - parts[i]), i))
    for i in by_remainder[:leftover]:
        parts[i] += 1

    return [min(Decimal(p) * unit, w).quantize(unit) for p, w in zip(parts, weights)]


class DiscountCalculator:

    def apply(
        self,
        rule: DiscountRule,
        terms: RuleTerms,
        line_totals: Sequence[tuple[str, Money]],
        quantities: Mapping[str, int] | None = None,
    ) -> RuleReductions:
        """Compute ``rule``'s reduction over ``(line_id, current_total)`` pairs.

        ``line_totals`` are the matching lines' totals *after* any rule
        applied earlier in the pass, all in one currency.  ``quantities``
        maps line ids to unit counts and is needed by buy-x-get-y rules only.
        """
        if not line_totals:
            raise ValidationError(f"Rule {rule.id} has no matching lines to apply to")
        currency = line_totals[0][1].currency
        subtotal = Money.zero(currency)
        for _, total in line_totals:
            subtotal = subtotal + total

        weights = [t.amount for _, t in line_totals]
        if rule.value_type is ValueType.PERCENTAGE:
            target = self._percentage_total(rule, terms, subtotal)
        elif rule.value_type is ValueType.FIXED_AMOUNT:
            target = self._fixed_total(rule, terms, subtotal)
        else:
            weights = self._free_unit_values(rule, line_totals, quantities)
            target = self._buy_x_get_y_total(terms, weights, currency)

        parts = allocate(target.amount, weights, currency)
        per_line = {
            line_id: Money(part, currency)
            for (line_id, _), part in zip(line_totals, parts)
        }
        total = Money.zero(currency)
        for amount in per_line.values():
            total = total + amount
        return RuleReductions(rule_id=rule.id, per_line=per_line, total=total)

    # --- Internal helpers -----------------------------------------------------

    @staticmethod
    def _percentage_total(rule: DiscountRule, terms: RuleTerms, subtotal: Money) -> Money:
        raw = subtotal.amount * rule.value / HUNDRED
        target = Money(
            raw.quantize(minor_unit(subtotal.currency), rounding=ROUND_HALF_EVEN),
            subtotal.currency,
        )
        # Cap applies to the rule's total across the whole cart, not per line.
        if terms.max_discount_amount is not None:
            cap = _floor_to_minor_unit(terms.max_discount_amount)
            if target > cap:
                target = cap
        return target

    @staticmethod
    def _fixed_total(rule: DiscountRule, terms: RuleTerms, subtotal: Money) -> Money:
        if terms.fixed_amount is None:
            raise RuleDataInvalidError(f"Rule {rule.id} has no fixed amount in {subtotal.currency}")
        return min(_floor_to_minor_unit(terms.fixed_amount), subtotal)

    @staticmethod
    def _free_unit_values(
        rule: DiscountRule,
        line_totals: Sequence[tuple[str, Money]],
        quantities: Mapping[str, int] | None,
    ) -> list[Decimal]:
        """What the discounted units of each line are worth, unrounded."""
        if quantities is None:
            raise ValidationError(f"Rule {rule.id} needs line quantities")
        values = []
        for line_id, total in line_totals:
            quantity = quantities[line_id]
            free = rule.free_units(quantity)
            values.append(total.amount * free / quantity * rule.value / HUNDRED if free else Decimal("0"))
        return values

    @staticmethod
    def _buy_x_get_y_total(terms: RuleTerms, values: Sequence[Decimal], currency: str) -> Money:
        # Floored: no line gives away more than its discounted units are worth.
        target = _floor_to_minor_unit(Money(sum(values, Decimal("0")), currency))
        if terms.max_discount_amount is not None:
            cap = _floor_to_minor_unit(terms.max_discount_amount)
            if target > cap:
                target = cap
        return target


def _floor_to_minor_unit(money: Money) -> Money:
    return Money(
        money.amount.quantize(minor_unit(money.currency), rounding=ROUND_DOWN),
        money.currency,
    )
