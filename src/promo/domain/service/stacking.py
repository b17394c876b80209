"""Domain service: which eligible rules may be applied together.

Rules are walked in priority order (highest first, ties by rule id).
Combinable rules accumulate; an exclusive rule is accepted only when
nothing has been accepted yet, and once accepted it locks the set.

Combinability is a property of the rule, not of scope overlap: two
exclusive rules on disjoint categories still exclude each other.
"""

from __future__ import annotations

import logging
from typing import Iterable

from promo.domain.model.discount_rule import DiscountRule

logger = logging.getLogger(__name__)


def priority_order(rules: Iterable[DiscountRule]) -> list[DiscountRule]:
    """Priority descending, then rule id ascending."""
    return sorted(rules, key=lambda rule: (-rule.priority, rule.id))


class StackingResolver:

    def resolve(self, rules: Iterable[DiscountRule]) -> list[DiscountRule]:
        """Return the accepted subset in application order."""
        accepted: list[DiscountRule] = []
        locked = False

        for rule in priority_order(rules):
            if locked:
                logger.debug("Rule %s skipped: set locked by exclusive rule %s", rule.id, accepted[0].id)
                continue
            if rule.combinable:
                accepted.append(rule)
            elif not accepted:
                accepted.append(rule)
                locked = True
            else:
                logger.debug("Rule %s skipped: exclusive rule cannot join a non-empty set", rule.id)

        return accepted
