import logging
from decimal import Decimal, InvalidOperation, localcontext

import click

from .utils import decimals_0_option, decimals_1_option, group_options

root_logger = logging.getLogger("nethermind")
logger = root_logger.getChild("flashpool").getChild("cli")

# isort: skip_file
# pylint: disable=import-outside-toplevel


@click.group("math", short_help="Tick & Price Conversions")
def math_group():
    """
    Converts between ticks, Q64.96 sqrt ratios and human-readable prices
    """


@math_group.command(name="tick-to-price")
@group_options(decimals_0_option, decimals_1_option)
@click.argument("tick", type=int)
def tick_to_price(tick: int, decimals_0: int, decimals_1: int):
    """
    Prints the sqrt ratio and the price of token 1 in token 0 at TICK.  Negative ticks must be passed after --
    """
    from nethermind.flashpool.cli.utils import cli_logger_config
    from nethermind.flashpool.exceptions import InvalidTick, TickMathRevert
    from nethermind.flashpool.math import CoreMath

    console = cli_logger_config(root_logger)

    try:
        CoreMath.check_tick(tick)
        sqrt_ratio = CoreMath.tick_math.get_sqrt_ratio_at_tick(tick)
    except (InvalidTick, TickMathRevert) as exc:
        raise click.BadParameter(str(exc), param_hint="TICK")

    price = (Decimal(sqrt_ratio) / Decimal(2**96)) ** 2 / Decimal(10) ** (decimals_1 - decimals_0)

    console.print(f"[bold]Tick:[/bold] {tick}")
    console.print(f"[bold]Sqrt Ratio:[/bold] {sqrt_ratio}")
    console.print(f"[bold]Price:[/bold] {price:.6g}")


@math_group.command(name="price-to-tick")
@group_options(decimals_0_option, decimals_1_option)
@click.argument("price", type=str)
def price_to_tick(price: str, decimals_0: int, decimals_1: int):
    """
    Prints the greatest tick whose price is less than or equal to PRICE
    """
    from nethermind.flashpool.cli.utils import cli_logger_config
    from nethermind.flashpool.exceptions import TickMathRevert
    from nethermind.flashpool.math import CoreMath

    console = cli_logger_config(root_logger)

    try:
        raw_price = Decimal(price) * Decimal(10) ** (decimals_1 - decimals_0)
    except InvalidOperation:
        raise click.BadParameter(f"{price} is not a number", param_hint="PRICE")
    if raw_price <= 0:
        raise click.BadParameter("Price must be positive", param_hint="PRICE")

    with localcontext() as ctx:
        ctx.prec = 78
        sqrt_ratio = int(raw_price.sqrt(ctx) * Decimal(2**96))
    try:
        tick = CoreMath.tick_math.get_tick_at_sqrt_ratio(sqrt_ratio)
    except TickMathRevert as exc:
        raise click.BadParameter(str(exc), param_hint="PRICE")

    console.print(f"[bold]Sqrt Ratio:[/bold] {sqrt_ratio}")
    console.print(f"[bold]Tick:[/bold] {tick}")
