"""Unit tests for the RuleUsage aggregate."""

from datetime import datetime, timedelta, timezone

import pytest

from promo.domain.exceptions import ReservationConflictError, ReservationNotFoundError
from promo.domain.model.usage import ReservationToken, RuleUsage
from promo.domain.model.value_objects import Money

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


def _token(token: str, customer_id: str = "c1", coupon_code: str | None = None) -> ReservationToken:
    return ReservationToken(
        token=token,
        rule_id="R1",
        customer_id=customer_id,
        created_at=NOW,
        expires_at=NOW + timedelta(minutes=15),
        coupon_code=coupon_code,
    )


class TestRuleUsageReserve:

    def test_reserve_adds_pending(self):
        usage = RuleUsage(rule_id="R1")
        usage.reserve(_token("t1"), global_limit=None, per_customer_limit=None)
        assert usage.pending_count == 1
        assert usage.committed_count == 0

    def test_pending_counts_against_global_limit(self):
        usage = RuleUsage(rule_id="R1")
        usage.reserve(_token("t1"), global_limit=1, per_customer_limit=None)
        with pytest.raises(ReservationConflictError, match="usage limit of 1"):
            usage.reserve(_token("t2", "c2"), global_limit=1, per_customer_limit=None)

    def test_committed_counts_against_global_limit(self):
        usage = RuleUsage(rule_id="R1", committed_count=3)
        with pytest.raises(ReservationConflictError, match="usage limit"):
            usage.reserve(_token("t1"), global_limit=3, per_customer_limit=None)

    def test_recorded_uses_count_against_global_limit(self):
        usage = RuleUsage(rule_id="R1", committed_count=1)
        with pytest.raises(ReservationConflictError, match="usage limit of 5"):
            usage.reserve(_token("t1"), global_limit=5, per_customer_limit=None, recorded_uses=5)
        usage.reserve(_token("t2"), global_limit=5, per_customer_limit=None, recorded_uses=4)
        assert usage.pending_count == 1

    def test_per_customer_limit(self):
        usage = RuleUsage(rule_id="R1")
        usage.reserve(_token("t1"), global_limit=None, per_customer_limit=1)
        with pytest.raises(ReservationConflictError, match="Customer c1"):
            usage.reserve(_token("t2"), global_limit=None, per_customer_limit=1)
        usage.reserve(_token("t3", "c2"), global_limit=None, per_customer_limit=1)
        assert usage.pending_count == 2

    def test_coupon_limit(self):
        usage = RuleUsage(rule_id="R1")
        usage.reserve(_token("t1", coupon_code="SAVE"), None, None, coupon_limit=1)
        with pytest.raises(ReservationConflictError, match="coupon SAVE"):
            usage.reserve(_token("t2", coupon_code="SAVE"), None, None, coupon_limit=1)

    def test_conflict_leaves_state_untouched(self):
        usage = RuleUsage(rule_id="R1", committed_count=1)
        with pytest.raises(ReservationConflictError):
            usage.reserve(_token("t1"), global_limit=1, per_customer_limit=None)
        assert usage.reservations == {}
        assert usage.committed_count == 1


class TestRuleUsageCommitRelease:

    def test_commit_moves_reservation_to_redemptions(self):
        usage = RuleUsage(rule_id="R1")
        usage.reserve(_token("t1", coupon_code="SAVE"), None, None)

        record = usage.commit("t1", used_at=NOW, order_id="o-1", discount_amount=Money.of("5"))

        assert usage.pending_count == 0
        assert usage.committed_count == 1
        assert record.order_id == "o-1"
        assert record.coupon_code == "SAVE"
        assert usage.committed_for_customer("c1") == 1

    def test_commit_unknown_token_rejected(self):
        usage = RuleUsage(rule_id="R1")
        with pytest.raises(ReservationNotFoundError, match="No pending reservation 'nope'"):
            usage.commit("nope", used_at=NOW)

    def test_release_frees_slot(self):
        usage = RuleUsage(rule_id="R1")
        usage.reserve(_token("t1"), global_limit=1, per_customer_limit=None)
        usage.release("t1")
        usage.reserve(_token("t2", "c2"), global_limit=1, per_customer_limit=None)
        assert list(usage.reservations) == ["t2"]

    def test_release_twice_rejected(self):
        usage = RuleUsage(rule_id="R1")
        usage.reserve(_token("t1"), None, None)
        usage.release("t1")
        with pytest.raises(ReservationNotFoundError):
            usage.release("t1")

    def test_expire_drops_only_elapsed(self):
        usage = RuleUsage(rule_id="R1")
        usage.reserve(_token("t1"), None, None)
        late = ReservationToken("t2", "R1", "c2", NOW, NOW + timedelta(hours=1))
        usage.reserve(late, None, None)

        expired = usage.expire(NOW + timedelta(minutes=15))

        assert [t.token for t in expired] == ["t1"]
        assert list(usage.reservations) == ["t2"]
