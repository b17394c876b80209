"""CLI commands for the usage ledger."""

from __future__ import annotations

import click

from promo.application.show_usage import ShowUsageHandler
from promo.domain.exceptions import DomainException
from promo.domain.model.usage import ReservationConflict
from promo.domain.model.value_objects import Money
from promo.infrastructure.bootstrap import usage_ledger


@click.command("reserve")
@click.option("--rule", "rule_id", required=True, help="Discount rule ID.")
@click.option("--customer", required=True, help="Customer ID.")
@click.option("--code", default=None, help="Coupon code the use is tied to.")
def usage_reserve(rule_id: str, customer: str, code: str | None) -> None:
    """Reserve one use of a rule ahead of order placement."""
    try:
        outcome = usage_ledger().reserve(rule_id, customer, coupon_code=code)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    if isinstance(outcome, ReservationConflict):
        raise click.ClickException(f"{ReservationConflict.USER_MESSAGE} ({outcome.reason})")
    click.echo(f"Reserved rule {rule_id} for {customer}")
    click.echo(f"Token:   {outcome.token}")
    click.echo(f"Expires: {outcome.expires_at.isoformat()}")


@click.command("commit")
@click.option("--token", required=True, help="Reservation token.")
@click.option("--order", "order_id", default=None, help="Order the use belongs to.")
@click.option("--amount", default=None, help="Discount granted, e.g. '5.00'.")
@click.option("--currency", default="USD", show_default=True, help="Currency of --amount.")
def usage_commit(token: str, order_id: str | None, amount: str | None, currency: str) -> None:
    """Make a reservation permanent."""
    ledger = usage_ledger()
    try:
        reservation = ledger.find_reservation(token)
        discount = Money.of(amount, currency.upper()) if amount is not None else None
        ledger.commit(reservation, order_id=order_id, discount_amount=discount)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Committed rule {reservation.rule_id} for {reservation.customer_id}.")


@click.command("release")
@click.option("--token", required=True, help="Reservation token.")
def usage_release(token: str) -> None:
    """Give a reserved use back."""
    ledger = usage_ledger()
    try:
        reservation = ledger.find_reservation(token)
        ledger.release(reservation)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Released reservation for rule {reservation.rule_id}.")


@click.command("show")
@click.option("--rule", "rule_id", required=True, help="Discount rule ID.")
def usage_show(rule_id: str) -> None:
    """Show usage of a rule."""
    dto = ShowUsageHandler(ledger=usage_ledger()).handle(rule_id)

    click.echo(f"Rule {dto.rule_id}")
    click.echo(f"  {'Total uses':<18} {dto.total_uses:>8}")
    click.echo(f"  {'Pending':<18} {dto.pending:>8}")
    click.echo(f"  {'Unique customers':<18} {dto.unique_customers:>8}")
    for amount in dto.total_discount:
        click.echo(f"  {'Discount given':<18} {amount:>8}")
