"""Composition root: wires concrete implementations to domain interfaces.

This is the only place in the codebase that knows about *all* layers.
Every other module depends only on abstractions.
"""

from __future__ import annotations

from functools import lru_cache

from promo.application.checkout import CheckoutHandler
from promo.domain.service.pricing_aggregator import PricingAggregator
from promo.domain.service.usage_ledger import UsageLedger
from promo.infrastructure.config import Settings
from promo.infrastructure.persistence.json_catalog_repository import (
    JsonCatalogRepository,
)
from promo.infrastructure.persistence.json_exchange_rate_provider import (
    JsonExchangeRateProvider,
)
from promo.infrastructure.persistence.json_usage_repository import (
    JsonUsageRepository,
)


@lru_cache(maxsize=1)
def settings() -> Settings:
    return Settings.from_env()


def catalog_repository() -> JsonCatalogRepository:
    data_dir = settings().data_dir
    return JsonCatalogRepository(data_dir / "rules.json", data_dir / "coupons.json")


def usage_repository() -> JsonUsageRepository:
    return JsonUsageRepository(settings().data_dir / "usage.json")


def exchange_rate_provider() -> JsonExchangeRateProvider:
    return JsonExchangeRateProvider(settings().data_dir / "rates.json")


@lru_cache(maxsize=1)
def usage_ledger() -> UsageLedger:
    # One ledger per process so every caller shares its lock.
    return UsageLedger(
        usage_repo=usage_repository(),
        catalog=catalog_repository(),
        reservation_ttl=settings().reservation_ttl,
    )


def checkout_handler() -> CheckoutHandler:
    """Entry point for the order flow; it supplies its own place_order callback."""
    catalog = catalog_repository()
    return CheckoutHandler(
        aggregator=PricingAggregator(catalog, usage_repository()),
        ledger=usage_ledger(),
        timeout_seconds=settings().checkout_timeout_seconds,
    )
