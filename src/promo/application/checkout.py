"""Application service: Checkout use case.

Coordinates pricing, the usage ledger and the order collaborator:

  1. price the cart (abort on any pricing error)
  2. reserve one use of every applied rule
  3. let the order collaborator place the order
  4. commit the reservations, or release them on any failure

A timeout budget covers the whole flow; running over it means abort,
never commit.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from promo.application.dto import CheckoutOutcomeDTO, CheckoutStatus
from promo.domain.exceptions import (
    DomainException,
    ReservationConflictError,
    ReservationNotFoundError,
    ValidationError,
)
from promo.domain.model.cart import Cart
from promo.domain.model.pricing import AppliedDiscount, PricedResult, PricingContext, PricingError
from promo.domain.model.usage import ReservationConflict, ReservationToken
from promo.domain.service.pricing_aggregator import PricingAggregator
from promo.domain.service.usage_ledger import UsageLedger

logger = logging.getLogger(__name__)

PlaceOrder = Callable[[PricedResult], str]


class CheckoutHandler:

    def __init__(
        self,
        aggregator: PricingAggregator,
        ledger: UsageLedger,
        timeout_seconds: float = 30.0,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self._aggregator = aggregator
        self._ledger = ledger
        self._timeout = timeout_seconds
        self._monotonic = monotonic

    def handle(
        self,
        cart: Cart,
        context: PricingContext,
        place_order: PlaceOrder,
    ) -> CheckoutOutcomeDTO:
        """Run a checkout.

        ``place_order`` receives the priced result and returns the new
        order id.  It signals a business refusal (payment declined, ...)
        by raising a DomainException such as OrderPlacementError.

        If a commit fails after the order was placed, rules committed so far
        stay committed, the rest are released and the outcome is
        OFFER_UNAVAILABLE carrying the order id.  The order collaborator must
        void that order.
        """
        if context.customer_id is None:
            raise ValidationError("Checkout requires a customer id")
        deadline = self._monotonic() + self._timeout

        priced = self._aggregator.price(cart, context)
        if isinstance(priced, PricingError):
            return CheckoutOutcomeDTO(CheckoutStatus.PRICING_FAILED, PricingError.USER_MESSAGE)

        # Reserve every applied rule; all or nothing.
        reserved: list[tuple[ReservationToken, AppliedDiscount]] = []
        for discount in priced.discounts:
            outcome = self._ledger.reserve(discount.rule_id, context.customer_id, discount.coupon_code)
            if isinstance(outcome, ReservationConflict):
                logger.info("Checkout aborted: %s", outcome.reason)
                self._release_all(reserved)
                return CheckoutOutcomeDTO(CheckoutStatus.OFFER_UNAVAILABLE, ReservationConflict.USER_MESSAGE)
            reserved.append((outcome, discount))

        try:
            order_id = place_order(priced)
        except DomainException as exc:
            self._release_all(reserved)
            return CheckoutOutcomeDTO(CheckoutStatus.ORDER_FAILED, str(exc))
        except Exception:
            self._release_all(reserved)
            raise

        if self._monotonic() > deadline:
            logger.warning("Checkout for order %s exceeded %.1fs budget; not committing", order_id, self._timeout)
            self._release_all(reserved)
            return CheckoutOutcomeDTO(CheckoutStatus.TIMED_OUT, "Checkout timed out, please try again.", order_id)

        committed: list[str] = []
        for index, (token, discount) in enumerate(reserved):
            try:
                self._ledger.commit(token, order_id=order_id, discount_amount=discount.amount)
            except (ReservationConflictError, ReservationNotFoundError) as exc:
                logger.warning("Could not commit rule %s for order %s: %s", token.rule_id, order_id, exc)
                self._release_all(reserved[index + 1:])
                return CheckoutOutcomeDTO(
                    CheckoutStatus.OFFER_UNAVAILABLE,
                    ReservationConflict.USER_MESSAGE,
                    order_id,
                    committed_rule_ids=committed,
                )
            committed.append(token.rule_id)

        return CheckoutOutcomeDTO(
            CheckoutStatus.CONFIRMED,
            "Order confirmed",
            order_id=order_id,
            grand_total=str(priced.grand_total),
            committed_rule_ids=committed,
        )

    def _release_all(self, reserved: list[tuple[ReservationToken, AppliedDiscount]]) -> None:
        for token, _ in reserved:
            try:
                self._ledger.release(token)
            except ReservationNotFoundError:
                # Already swept as abandoned.
                logger.debug("Reservation %s already gone", token.token)
