"""JSON-file-backed implementation of CatalogRepository.

Rules live in ``rules.json`` and coupon codes in ``coupons.json``.  Records
are parsed into the strict domain shape on every read; a malformed record
raises RuleDataInvalidError instead of being patched up.
"""

from __future__ import annotations

import json
from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path

from promo.domain.exceptions import RuleDataInvalidError, ValidationError
from promo.domain.model.coupon import CouponCode, normalize_code
from promo.domain.model.discount_rule import DiscountRule, RuleScope, ScopeKind, ValueType
from promo.domain.model.value_objects import Money, as_utc
from promo.domain.repository.catalog_repository import CatalogRepository


def parse_datetime(raw: str) -> datetime:
    """ISO-8601 timestamp; naive values are taken as UTC."""
    return as_utc(datetime.fromisoformat(raw))


def _money(raw: dict | None) -> Money | None:
    if raw is None:
        return None
    return Money(Decimal(str(raw["amount"])), raw.get("currency", "USD").upper())


class JsonCatalogRepository(CatalogRepository):

    def __init__(self, rules_path: Path, coupons_path: Path) -> None:
        self._rules_path = rules_path
        self._coupons_path = coupons_path
        self._ensure_file(rules_path)
        self._ensure_file(coupons_path)

    # --- CatalogRepository interface ------------------------------------------

    def list_applicable_rules(
        self,
        store_id: str | None,
        customer_id: str | None,
        product_ids: frozenset[str],
        category_ids: frozenset[str],
        as_of: datetime,
    ) -> list[DiscountRule]:
        return [
            self._to_rule(raw)
            for raw in self._load_raw(self._rules_path)
            if store_id is None or raw.get("store_id") in (None, store_id)
        ]

    def get_rule(self, rule_id: str) -> DiscountRule | None:
        for raw in self._load_raw(self._rules_path):
            if raw.get("id") == rule_id:
                return self._to_rule(raw)
        return None

    def resolve_coupon_code(self, code: str) -> CouponCode | None:
        wanted = normalize_code(code)
        for raw in self._load_raw(self._coupons_path):
            if normalize_code(raw.get("code", "")) == wanted:
                return self._to_coupon(raw)
        return None

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _to_rule(raw: dict) -> DiscountRule:
        try:
            scope_raw = raw.get("scope")
            scope = (
                RuleScope(ScopeKind(scope_raw["kind"]), frozenset(scope_raw.get("target_ids", [])))
                if scope_raw
                else None
            )
            return DiscountRule(
                id=raw["id"],
                name=raw.get("name", ""),
                scope=scope,
                value_type=ValueType(raw["value_type"]),
                value=Decimal(str(raw["value"])),
                currency=raw.get("currency"),
                priority=int(raw.get("priority", 0)),
                combinable=bool(raw.get("combinable", False)),
                is_active=bool(raw.get("is_active", True)),
                start_date=parse_datetime(raw["start_date"]),
                end_date=parse_datetime(raw["end_date"]) if raw.get("end_date") else None,
                min_purchase_amount=_money(raw.get("min_purchase_amount")),
                min_quantity=raw.get("min_quantity"),
                max_discount_amount=_money(raw.get("max_discount_amount")),
                usage_limit_global=raw.get("usage_limit_global"),
                usage_limit_per_customer=raw.get("usage_limit_per_customer"),
                current_usage_global=int(raw.get("current_usage_global", 0)),
                requires_coupon_code=bool(raw.get("requires_coupon_code", False)),
                eligible_customer_ids=frozenset(raw.get("eligible_customer_ids") or []),
                excluded_customer_ids=frozenset(raw.get("excluded_customer_ids") or []),
                buy_quantity=raw.get("buy_quantity"),
                get_quantity=raw.get("get_quantity"),
            )
        except RuleDataInvalidError:
            raise
        except (KeyError, TypeError, ValueError, InvalidOperation, ValidationError) as exc:
            raise RuleDataInvalidError(
                f"Malformed discount rule {raw.get('id', '?')!r}: {exc}"
            ) from exc

    @staticmethod
    def _to_coupon(raw: dict) -> CouponCode:
        return CouponCode(
            code=normalize_code(raw["code"]),
            discount_rule_id=raw["discount_rule_id"],
            is_active=bool(raw.get("is_active", True)),
            per_customer_limit=raw.get("per_customer_limit"),
            expires_at=parse_datetime(raw["expires_at"]) if raw.get("expires_at") else None,
        )

    # --- File helpers ---------------------------------------------------------

    @staticmethod
    def _load_raw(path: Path) -> list[dict]:
        return json.loads(path.read_text(encoding="utf-8"))

    @staticmethod
    def _ensure_file(path: Path) -> None:
        if not path.exists():
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text("[]", encoding="utf-8")
