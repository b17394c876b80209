import logging

import click

from promo.infrastructure.cli.coupon_commands import coupon_validate
from promo.infrastructure.cli.pricing_commands import price
from promo.infrastructure.cli.usage_commands import (
    usage_commit,
    usage_release,
    usage_reserve,
    usage_show,
)

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


@click.group()
@click.option("-v", "--verbose", count=True, help="Log more (-v info, -vv debug).")
def cli(verbose: int) -> None:
    """PROMO: promotion and pricing engine"""
    level = {0: logging.WARNING, 1: logging.INFO}.get(verbose, logging.DEBUG)
    logging.basicConfig(level=level, format=LOG_FORMAT, force=True)


@cli.group()
def coupon() -> None:
    """Check coupon codes."""


@cli.group()
def usage() -> None:
    """Reserve, commit and inspect rule usage."""


# Register subcommands
cli.add_command(price)
coupon.add_command(coupon_validate)
usage.add_command(usage_reserve)
usage.add_command(usage_commit)
usage.add_command(usage_release)
usage.add_command(usage_show)
