"""Domain service: Usage Ledger.

Records consumption of limited-use rules after an order is confirmed.
Consumption is two-phase:

  reserve   atomically check every limit and take a provisional slot
  commit    make the slot a permanent redemption once the order is placed
  release   give the slot back when the order fails downstream

Reservations left neither committed nor released expire after the TTL
and are swept before any new reservation is considered.

All check-and-increment work happens under one lock, so two checkouts
racing for the last use of a rule cannot both succeed.
"""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable

from promo.domain.exceptions import ReservationConflictError, ReservationNotFoundError
from promo.domain.model.coupon import normalize_code
from promo.domain.model.discount_rule import DiscountRule
from promo.domain.model.usage import (
    RedemptionRecord,
    ReservationConflict,
    ReservationToken,
    RuleUsage,
    UsageSummary,
)
from promo.domain.model.value_objects import Money
from promo.domain.repository.catalog_repository import CatalogRepository
from promo.domain.repository.usage_repository import UsageRepository

logger = logging.getLogger(__name__)

DEFAULT_RESERVATION_TTL = timedelta(minutes=15)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class UsageLedger:

    def __init__(
        self,
        usage_repo: UsageRepository,
        catalog: CatalogRepository,
        reservation_ttl: timedelta = DEFAULT_RESERVATION_TTL,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._usage_repo = usage_repo
        self._catalog = catalog
        self._ttl = reservation_ttl
        self._clock = clock
        self._lock = threading.Lock()

    # --- Reservation contract -------------------------------------------------

    def reserve(
        self,
        rule_id: str,
        customer_id: str,
        coupon_code: str | None = None,
    ) -> ReservationToken | ReservationConflict:
        """Claim one use of ``rule_id`` for ``customer_id``.

        Returns a token on success, or a ReservationConflict when the rule
        is gone, the coupon is unusable or a limit has no room left.
        """
        rule = self._catalog.get_rule(rule_id)
        if rule is None:
            return ReservationConflict(rule_id, f"Rule {rule_id} no longer exists")

        now = self._clock()
        coupon_limit: int | None = None
        if coupon_code is not None:
            coupon_code = normalize_code(coupon_code)
            coupon = self._catalog.resolve_coupon_code(coupon_code)
            if coupon is None or coupon.discount_rule_id != rule_id or not coupon.is_usable(now):
                return ReservationConflict(rule_id, f"Coupon {coupon_code} is not valid for rule {rule_id}")
            coupon_limit = coupon.per_customer_limit

        token = ReservationToken(
            token=uuid.uuid4().hex,
            rule_id=rule_id,
            customer_id=customer_id,
            created_at=now,
            expires_at=now + self._ttl,
            coupon_code=coupon_code,
        )

        with self._lock:
            usage = self._load(rule)
            self._expire(usage, now)
            try:
                usage.reserve(
                    token,
                    global_limit=rule.usage_limit_global,
                    per_customer_limit=rule.usage_limit_per_customer,
                    coupon_limit=coupon_limit,
                    recorded_uses=rule.current_usage_global,
                )
            except ReservationConflictError as exc:
                self._usage_repo.save(usage)
                logger.info("Reservation refused for rule %s: %s", rule_id, exc)
                return ReservationConflict(rule_id, str(exc))
            self._usage_repo.save(usage)

        logger.info("Reserved rule %s for customer %s (token %s)", rule_id, customer_id, token.token)
        return token

    def commit(
        self,
        token: ReservationToken,
        order_id: str | None = None,
        discount_amount: Money | None = None,
    ) -> RedemptionRecord:
        """Make a reservation permanent after order confirmation.

        Raises ReservationConflictError if the reservation already expired,
        ReservationNotFoundError if it was released or never existed.
        """
        now = self._clock()
        with self._lock:
            usage = self._require_usage(token)
            if token.token in usage.reservations and token.is_expired(now):
                self._expire(usage, now)
                self._usage_repo.save(usage)
                raise ReservationConflictError(
                    f"Reservation {token.token} for rule {token.rule_id} has expired"
                )
            record = usage.commit(
                token.token, used_at=now, order_id=order_id, discount_amount=discount_amount
            )
            self._usage_repo.save(usage)

        logger.info("Committed rule %s for customer %s (order %s)", token.rule_id, token.customer_id, order_id)
        return record

    def release(self, token: ReservationToken) -> None:
        """Give a reserved slot back (payment declined, timeout, ...)."""
        with self._lock:
            usage = self._require_usage(token)
            usage.release(token.token)
            self._usage_repo.save(usage)
        logger.info("Released reservation %s for rule %s", token.token, token.rule_id)

    def release_expired(self) -> list[ReservationToken]:
        """Sweep abandoned reservations across every rule."""
        now = self._clock()
        released: list[ReservationToken] = []
        with self._lock:
            for usage in self._usage_repo.list_all():
                expired = self._expire(usage, now)
                if expired:
                    self._usage_repo.save(usage)
                    released.extend(expired)
        return released

    # --- Queries --------------------------------------------------------------

    def find_reservation(self, token: str) -> ReservationToken:
        with self._lock:
            for usage in self._usage_repo.list_all():
                if token in usage.reservations:
                    return usage.reservations[token]
        raise ReservationNotFoundError(f"No pending reservation '{token}'")

    def customer_usage_count(self, rule_id: str, customer_id: str) -> int:
        usage = self._usage_repo.get_by_rule_id(rule_id)
        return usage.committed_for_customer(customer_id) if usage else 0

    def usage_summary(self, rule_id: str) -> UsageSummary:
        usage = self._usage_repo.get_by_rule_id(rule_id)
        if usage is None:
            rule = self._catalog.get_rule(rule_id)
            baseline = rule.current_usage_global if rule else 0
            return UsageSummary(rule_id, baseline, 0, 0, ())

        totals: dict[str, Money] = {}
        for record in usage.redemptions:
            amount = record.discount_amount
            if amount is None:
                continue
            previous = totals.get(amount.currency)
            totals[amount.currency] = amount if previous is None else previous + amount
        return UsageSummary(
            rule_id=rule_id,
            total_uses=usage.committed_count,
            pending=usage.pending_count,
            unique_customers=len({r.customer_id for r in usage.redemptions}),
            total_discount=tuple(totals[c] for c in sorted(totals)),
        )

    # --- Internal helpers -----------------------------------------------------

    def _load(self, rule: DiscountRule) -> RuleUsage:
        usage = self._usage_repo.get_by_rule_id(rule.id)
        if usage is None:
            usage = RuleUsage(rule_id=rule.id, committed_count=rule.current_usage_global)
        return usage

    def _require_usage(self, token: ReservationToken) -> RuleUsage:
        usage = self._usage_repo.get_by_rule_id(token.rule_id)
        if usage is None:
            raise ReservationNotFoundError(f"No usage recorded for rule {token.rule_id}")
        return usage

    @staticmethod
    def _expire(usage: RuleUsage, now: datetime) -> list[ReservationToken]:
        expired = usage.expire(now)
        for reservation in expired:
            logger.warning(
                "Reservation %s for rule %s abandoned; released", reservation.token, usage.rule_id
            )
        return expired
