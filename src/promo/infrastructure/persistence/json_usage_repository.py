"""JSON-file-backed implementation of UsageRepository."""

from __future__ import annotations

import json
from decimal import Decimal
from pathlib import Path

from promo.domain.model.usage import RedemptionRecord, ReservationToken, RuleUsage
from promo.domain.model.value_objects import Money
from promo.domain.repository.usage_repository import UsageRepository
from promo.infrastructure.persistence.json_catalog_repository import parse_datetime


class JsonUsageRepository(UsageRepository):

    def __init__(self, file_path: Path) -> None:
        self._file_path = file_path
        self._ensure_file()

    # --- UsageRepository interface --------------------------------------------

    def get_by_rule_id(self, rule_id: str) -> RuleUsage | None:
        for raw in self._load_raw():
            if raw["rule_id"] == rule_id:
                return self._to_domain(raw)
        return None

    def list_all(self) -> list[RuleUsage]:
        return [self._to_domain(raw) for raw in self._load_raw()]

    def save(self, usage: RuleUsage) -> None:
        records = self._load_raw()
        replaced = False
        for i, raw in enumerate(records):
            if raw["rule_id"] == usage.rule_id:
                records[i] = self._to_raw(usage)
                replaced = True
                break
        if not replaced:
            records.append(self._to_raw(usage))
        self._persist_raw(records)

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _to_raw(usage: RuleUsage) -> dict:
        return {
            "rule_id": usage.rule_id,
            "committed_count": usage.committed_count,
            "reservations": [
                {
                    "token": r.token,
                    "customer_id": r.customer_id,
                    "created_at": r.created_at.isoformat(),
                    "expires_at": r.expires_at.isoformat(),
                    "coupon_code": r.coupon_code,
                }
                for r in usage.reservations.values()
            ],
            "redemptions": [
                {
                    "customer_id": r.customer_id,
                    "used_at": r.used_at.isoformat(),
                    "coupon_code": r.coupon_code,
                    "order_id": r.order_id,
                    "discount_amount": (
                        {"amount": str(r.discount_amount.amount), "currency": r.discount_amount.currency}
                        if r.discount_amount is not None
                        else None
                    ),
                }
                for r in usage.redemptions
            ],
        }

    @staticmethod
    def _to_domain(raw: dict) -> RuleUsage:
        rule_id = raw["rule_id"]
        reservations = [
            ReservationToken(
                token=r["token"],
                rule_id=rule_id,
                customer_id=r["customer_id"],
                created_at=parse_datetime(r["created_at"]),
                expires_at=parse_datetime(r["expires_at"]),
                coupon_code=r.get("coupon_code"),
            )
            for r in raw.get("reservations", [])
        ]
        redemptions = [
            RedemptionRecord(
                rule_id=rule_id,
                customer_id=r["customer_id"],
                used_at=parse_datetime(r["used_at"]),
                coupon_code=r.get("coupon_code"),
                order_id=r.get("order_id"),
                discount_amount=(
                    Money(Decimal(r["discount_amount"]["amount"]), r["discount_amount"]["currency"])
                    if r.get("discount_amount")
                    else None
                ),
            )
            for r in raw.get("redemptions", [])
        ]
        return RuleUsage(
            rule_id=rule_id,
            committed_count=raw.get("committed_count", len(redemptions)),
            reservations={r.token: r for r in reservations},
            redemptions=redemptions,
        )

    # --- File helpers ---------------------------------------------------------

    def _load_raw(self) -> list[dict]:
        return json.loads(self._file_path.read_text(encoding="utf-8"))

    def _persist_raw(self, records: list[dict]) -> None:
        self._file_path.write_text(
            json.dumps(records, indent=2) + "\n", encoding="utf-8"
        )

    def _ensure_file(self) -> None:
        if not self._file_path.exists():
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            self._file_path.write_text("[]", encoding="utf-8")
