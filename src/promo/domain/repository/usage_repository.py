"""Abstract repository for RuleUsage aggregate."""

from __future__ import annotations

from abc import ABC, abstractmethod

from promo.domain.model.usage import RuleUsage


class UsageRepository(ABC):

    @abstractmethod
    def get_by_rule_id(self, rule_id: str) -> RuleUsage | None:
        """Return the usage record for a rule, or None."""

    @abstractmethod
    def list_all(self) -> list[RuleUsage]:
        """Return every usage record."""

    @abstractmethod
    def save(self, usage: RuleUsage) -> None:
        """Persist a new or updated usage record."""
