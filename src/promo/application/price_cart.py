"""Application service: Price Cart use case (preview).

Builds the pricing context from the exchange-rate provider and hands the
cart to the PricingAggregator.  Pricing previews never touch usage.
"""

from __future__ import annotations

from datetime import datetime, timezone

from promo.application.dto import (
    CartLineSpec,
    PricedCartDTO,
    PricedLineDTO,
    PricingFailureDTO,
    ReductionDTO,
)
from promo.domain.exceptions import DomainException
from promo.domain.model.cart import Cart, CartLine
from promo.domain.model.pricing import (
    PricedResult,
    PricingContext,
    PricingError,
    PricingErrorCode,
)
from promo.domain.model.value_objects import Money
from promo.domain.repository.catalog_repository import CatalogRepository
from promo.domain.repository.exchange_rate_provider import ExchangeRateProvider
from promo.domain.repository.usage_repository import UsageRepository
from promo.domain.service.pricing_aggregator import PricingAggregator


def build_cart(specs: list[CartLineSpec]) -> Cart:
    """Turn raw line specs into a Cart (raises ValidationError on bad money)."""
    return Cart(
        tuple(
            CartLine(
                line_id=spec.line_id,
                product_id=spec.product_id,
                category_id=spec.category_id,
                unit_price=Money.of(spec.unit_price, spec.currency),
                quantity=spec.quantity,
            )
            for spec in specs
        )
    )


class PriceCartHandler:

    def __init__(
        self,
        catalog: CatalogRepository,
        usage_repo: UsageRepository,
        rate_provider: ExchangeRateProvider,
    ) -> None:
        self._aggregator = PricingAggregator(catalog, usage_repo)
        self._rate_provider = rate_provider

    def handle(
        self,
        line_specs: list[CartLineSpec],
        target_currency: str,
        customer_id: str | None = None,
        coupon_codes: tuple[str, ...] = (),
        store_id: str | None = None,
        as_of: datetime | None = None,
    ) -> PricedCartDTO | PricingFailureDTO:
        """Price a cart for display.

        Steps:
        1. Build the cart from the line specs.
        2. Fetch the rate table valid at ``as_of``.
        3. Run the pricing pass and map the outcome to a DTO.
        """
        as_of = as_of or datetime.now(timezone.utc)
        try:
            cart = build_cart(line_specs)
            context = PricingContext(
                target_currency=target_currency.upper(),
                as_of=as_of,
                customer_id=customer_id,
                presented_coupon_codes=frozenset(coupon_codes),
                exchange_rates=self._rate_provider.get_rates(as_of),
                store_id=store_id,
            )
        except DomainException as exc:
            return self._to_failure(PricingError(PricingErrorCode.INVALID_INPUT, str(exc)))

        result = self._aggregator.price(cart, context)
        if isinstance(result, PricingError):
            return self._to_failure(result)
        return self._to_dto(result)

    # --- Mapping --------------------------------------------------------------

    @staticmethod
    def _to_failure(error: PricingError) -> PricingFailureDTO:
        return PricingFailureDTO(
            code=error.code.value,
            detail=error.message,
            message=PricingError.USER_MESSAGE,
        )

    @staticmethod
    def _to_dto(result: PricedResult) -> PricedCartDTO:
        return PricedCartDTO(
            currency=result.currency,
            lines=[
                PricedLineDTO(
                    line_id=line.line_id,
                    original_total=str(line.original_total),
                    reductions=[
                        ReductionDTO(rule_id=r.rule_id, amount=str(r.amount))
                        for r in line.reductions
                    ],
                    final_total=str(line.final_total),
                )
                for line in result.lines
            ],
            subtotal=str(result.subtotal_before_discount),
            total_discount=str(result.total_discount),
            shipping=str(result.shipping),
            tax=str(result.tax),
            grand_total=str(result.grand_total),
            applied_rule_ids=list(result.applied_rule_ids),
            ineligible={
                verdict.rule_id: verdict.reason.value  # type: ignore[union-attr]
                for verdict in result.ineligible_rules
            },
        )
