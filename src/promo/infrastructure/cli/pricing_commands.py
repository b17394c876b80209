"""CLI command for pricing a cart."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path

import click

from promo.application.dto import CartLineSpec, PricedCartDTO, PricingFailureDTO
from promo.application.price_cart import PriceCartHandler
from promo.domain.exceptions import DomainException
from promo.infrastructure.bootstrap import (
    catalog_repository,
    exchange_rate_provider,
    settings,
    usage_repository,
)
from promo.infrastructure.persistence.json_catalog_repository import parse_datetime


def _load_cart(path: Path) -> list[CartLineSpec]:
    """Read a cart file: a list of lines, or ``{"lines": [...]}``."""
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise click.BadParameter(f"{path.name} is not valid JSON: {exc}")
    lines = raw["lines"] if isinstance(raw, dict) else raw
    specs: list[CartLineSpec] = []
    for index, line in enumerate(lines, start=1):
        try:
            specs.append(
                CartLineSpec(
                    line_id=str(line.get("line_id", index)),
                    product_id=line["product_id"],
                    category_id=line.get("category_id"),
                    unit_price=str(line["unit_price"]),
                    quantity=int(line["quantity"]),
                    currency=line.get("currency", "USD").upper(),
                )
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise click.BadParameter(f"Invalid cart line {index}: {exc}")
    return specs


def _parse_as_of(raw: str | None) -> datetime | None:
    if raw is None:
        return None
    try:
        return parse_datetime(raw)
    except ValueError:
        raise click.BadParameter(f"Invalid timestamp '{raw}'. Expected ISO-8601.")


def _display_priced(dto: PricedCartDTO) -> None:
    click.echo(f"  {'Line':<12} {'Original':>24} {'Final':>26}")
    click.echo(f"  {'-'*63}")
    for line in dto.lines:
        click.echo(f"  {line.line_id:<12} {line.original_total:>24} {line.final_total:>26}")
        for reduction in line.reductions:
            click.echo(f"  {'':<12} - {reduction.rule_id}: {reduction.amount}")
    click.echo(f"  {'-'*63}")
    click.echo(f"  {'Subtotal':<30} {dto.subtotal:>32}")
    click.echo(f"  {'Discount':<30} {dto.total_discount:>32}")
    click.echo(f"  {'Shipping':<30} {dto.shipping:>32}")
    click.echo(f"  {'Tax':<30} {dto.tax:>32}")
    click.echo(f"  {'Grand Total':<30} {dto.grand_total:>32}")
    click.echo()
    click.echo(f"Applied rules: {', '.join(dto.applied_rule_ids) or 'none'}")
    for rule_id, reason in sorted(dto.ineligible.items()):
        click.echo(f"  skipped {rule_id}: {reason}")


@click.command("price")
@click.option("--cart", "cart_path", required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path), help="Cart JSON file.")
@click.option("--customer", default=None, help="Customer ID.")
@click.option("--currency", default=None, help="Target currency (default from PROMO_DEFAULT_CURRENCY).")
@click.option("--code", "codes", multiple=True, help="Coupon code; repeat for several.")
@click.option("--store", default=None, help="Store ID.")
@click.option("--as-of", "as_of", default=None, help="Evaluation time, ISO-8601 (default now).")
def price(
    cart_path: Path,
    customer: str | None,
    currency: str | None,
    codes: tuple[str, ...],
    store: str | None,
    as_of: str | None,
) -> None:
    """Price a cart and show the applied discounts."""
    specs = _load_cart(cart_path)
    when = _parse_as_of(as_of)

    try:
        handler = PriceCartHandler(
            catalog=catalog_repository(),
            usage_repo=usage_repository(),
            rate_provider=exchange_rate_provider(),
        )
        dto = handler.handle(
            specs,
            target_currency=currency or settings().default_currency,
            customer_id=customer,
            coupon_codes=codes,
            store_id=store,
            as_of=when,
        )
    except DomainException as exc:
        raise click.ClickException(str(exc))

    if isinstance(dto, PricingFailureDTO):
        raise click.ClickException(f"{dto.message} ({dto.code}: {dto.detail})")
    _display_priced(dto)
