"""Abstract source of exchange rates."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from promo.domain.model.pricing import ExchangeRates


class ExchangeRateProvider(ABC):

    @abstractmethod
    def get_rates(self, as_of: datetime) -> ExchangeRates:
        """Return the rate table valid at ``as_of``."""
