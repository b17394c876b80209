"""RuleUsage aggregate: tracks consumption and reservations per rule.

Each discount rule has one RuleUsage that knows how many redemptions have
been committed and which provisional reservations are still pending.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from promo.domain.exceptions import ReservationConflictError, ReservationNotFoundError
from promo.domain.model.value_objects import Money


@dataclass(frozen=True)
class ReservationToken:
    """A provisional, time-bounded claim on one use of a rule."""

    token: str
    rule_id: str
    customer_id: str
    created_at: datetime
    expires_at: datetime
    coupon_code: str | None = None

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class RedemptionRecord:
    """One committed use of a rule, kept for per-customer limits and reporting."""

    rule_id: str
    customer_id: str
    used_at: datetime
    coupon_code: str | None = None
    order_id: str | None = None
    discount_amount: Money | None = None


@dataclass
class RuleUsage:
    """Aggregate root for usage tracking.

    Invariants:
    - ``committed_count + pending_count`` never exceeds the global limit
      in force when a reservation is taken
    - a reservation is either pending, committed or gone; never two of these
    """

    rule_id: str
    committed_count: int = 0
    reservations: dict[str, ReservationToken] = field(default_factory=dict)
    redemptions: list[RedemptionRecord] = field(default_factory=list)

    # --- Queries --------------------------------------------------------------

    @property
    def pending_count(self) -> int:
        return len(self.reservations)

    def committed_for_customer(self, customer_id: str) -> int:
        return sum(1 for r in self.redemptions if r.customer_id == customer_id)

    def pending_for_customer(self, customer_id: str) -> int:
        return sum(1 for r in self.reservations.values() if r.customer_id == customer_id)

    def coupon_uses_for_customer(self, coupon_code: str, customer_id: str) -> int:
        committed = sum(
            1
            for r in self.redemptions
            if r.coupon_code == coupon_code and r.customer_id == customer_id
        )
        pending = sum(
            1
            for r in self.reservations.values()
            if r.coupon_code == coupon_code and r.customer_id == customer_id
        )
        return committed + pending

    # --- State transitions ----------------------------------------------------

    def reserve(
        self,
        token: ReservationToken,
        global_limit: int | None,
        per_customer_limit: int | None,
        coupon_limit: int | None = None,
        recorded_uses: int = 0,
    ) -> None:
        """Add a pending reservation if every limit still has room.

        ``recorded_uses`` is the catalog's own usage count; the global limit
        is checked against whichever of it and ``committed_count`` is higher.
        Raises ReservationConflictError otherwise; nothing is mutated then.
        """
        taken = max(self.committed_count, recorded_uses)
        if global_limit is not None and taken + self.pending_count >= global_limit:
            raise ReservationConflictError(
                f"Rule {self.rule_id} has reached its usage limit of {global_limit}"
            )
        if per_customer_limit is not None:
            used = self.committed_for_customer(token.customer_id) + self.pending_for_customer(
                token.customer_id
            )
            if used >= per_customer_limit:
                raise ReservationConflictError(
                    f"Customer {token.customer_id} has reached the limit of "
                    f"{per_customer_limit} for rule {self.rule_id}"
                )
        if coupon_limit is not None and token.coupon_code is not None:
            if self.coupon_uses_for_customer(token.coupon_code, token.customer_id) >= coupon_limit:
                raise ReservationConflictError(
                    f"Customer {token.customer_id} has reached the limit of "
                    f"{coupon_limit} for coupon {token.coupon_code}"
                )
        self.reservations[token.token] = token

    def commit(
        self,
        token: str,
        used_at: datetime,
        order_id: str | None = None,
        discount_amount: Money | None = None,
    ) -> RedemptionRecord:
        """Turn a pending reservation into a permanent redemption."""
        reservation = self._pop(token)
        record = RedemptionRecord(
            rule_id=self.rule_id,
            customer_id=reservation.customer_id,
            used_at=used_at,
            coupon_code=reservation.coupon_code,
            order_id=order_id,
            discount_amount=discount_amount,
        )
        self.committed_count += 1
        self.redemptions.append(record)
        return record

    def release(self, token: str) -> ReservationToken:
        """Drop a pending reservation (e.g. payment declined)."""
        return self._pop(token)

    def expire(self, now: datetime) -> list[ReservationToken]:
        """Release every reservation whose timeout has elapsed."""
        expired = [r for r in self.reservations.values() if r.is_expired(now)]
        for reservation in expired:
            del self.reservations[reservation.token]
        return expired

    # --- Internal helpers -----------------------------------------------------

    def _pop(self, token: str) -> ReservationToken:
        try:
            return self.reservations.pop(token)
        except KeyError:
            raise ReservationNotFoundError(
                f"No pending reservation '{token}' for rule {self.rule_id}"
            ) from None


@dataclass(frozen=True)
class ReservationConflict:
    """A reservation was refused; checkout shows the offer as gone."""

    rule_id: str
    reason: str

    USER_MESSAGE = "This offer is no longer available."


@dataclass(frozen=True)
class UsageSummary:
    rule_id: str
    total_uses: int
    pending: int
    unique_customers: int
    total_discount: tuple[Money, ...]
