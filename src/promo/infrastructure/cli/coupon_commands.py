"""CLI commands for coupon codes."""

from __future__ import annotations

import click

from promo.application.validate_coupon import ValidateCouponHandler
from promo.domain.exceptions import DomainException
from promo.infrastructure.bootstrap import catalog_repository, usage_repository


@click.command("validate")
@click.option("--code", required=True, help="Coupon code as typed by the customer.")
@click.option("--customer", default=None, help="Customer ID for per-customer limits.")
def coupon_validate(code: str, customer: str | None) -> None:
    """Check whether a coupon code can be used right now."""
    handler = ValidateCouponHandler(
        catalog=catalog_repository(),
        usage_repo=usage_repository(),
    )

    try:
        dto = handler.handle(code, customer_id=customer)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    if not dto.valid:
        raise click.ClickException(f"{dto.code}: {dto.message}")
    click.echo(f"{dto.code}: {dto.message} (rule {dto.rule_id})")
