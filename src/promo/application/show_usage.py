"""Application service: Show Usage use case (query)."""

from __future__ import annotations

from promo.application.dto import UsageSummaryDTO
from promo.domain.service.usage_ledger import UsageLedger


class ShowUsageHandler:

    def __init__(self, ledger: UsageLedger) -> None:
        self._ledger = ledger

    def handle(self, rule_id: str) -> UsageSummaryDTO:
        summary = self._ledger.usage_summary(rule_id)
        return UsageSummaryDTO(
            rule_id=summary.rule_id,
            total_uses=summary.total_uses,
            pending=summary.pending,
            unique_customers=summary.unique_customers,
            total_discount=[str(amount) for amount in summary.total_discount],
        )
