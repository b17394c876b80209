"""JSON-file-backed implementation of ExchangeRateProvider.

``rates.json`` quotes every currency against one base::

    {"base": "USD", "rates": {"EUR": "0.92", "JPY": "151.3"}}

Rates are stored as strings so they load into Decimal without float noise.
"""

from __future__ import annotations

import json
from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path

from promo.domain.exceptions import ValidationError
from promo.domain.model.pricing import ExchangeRates
from promo.domain.repository.exchange_rate_provider import ExchangeRateProvider


class JsonExchangeRateProvider(ExchangeRateProvider):

    def __init__(self, file_path: Path) -> None:
        self._file_path = file_path

    def get_rates(self, as_of: datetime) -> ExchangeRates:
        # A single snapshot; as_of selects nothing yet.
        if not self._file_path.exists():
            return ExchangeRates()
        raw = json.loads(self._file_path.read_text(encoding="utf-8"))
        try:
            quoted = {code.upper(): Decimal(str(rate)) for code, rate in raw.get("rates", {}).items()}
            return ExchangeRates.from_base(raw["base"].upper(), quoted)
        except (KeyError, InvalidOperation, ZeroDivisionError) as exc:
            raise ValidationError(f"Malformed rate table in {self._file_path.name}: {exc}") from exc
