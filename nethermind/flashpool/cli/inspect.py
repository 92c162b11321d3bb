import logging

import click

from .utils import group_options, pool_id_option, state_file_argument, verbose_option

root_logger = logging.getLogger("nethermind")
logger = root_logger.getChild("flashpool").getChild("cli")

# isort: skip_file
# pylint: disable=import-outside-toplevel,too-many-locals


@click.command("inspect", short_help="Display a saved core state")
@state_file_argument
@group_options(pool_id_option, verbose_option)
def inspect_command(state_file, pool_id: str | None, verbose: bool):
    """
    Renders the pools stored in STATE_FILE, a JSON file written by Core.save_state().  If STATE_FILE is omitted,
    the FLASHPOOL_STATE_FILE environment variable is used.
    """
    from rich import box
    from rich.panel import Panel
    from rich.table import Table

    from nethermind.flashpool.cli.utils import cli_logger_config
    from nethermind.flashpool.core.main import Core
    from nethermind.flashpool.utils import pprint_address

    console = cli_logger_config(root_logger, logging.DEBUG if verbose else logging.INFO)
    core = Core.load_state(state_file)

    console.print(Panel(f"[bold]Core [magenta]{core.address}"))

    core_table = Table(show_header=False, box=box.ROUNDED)
    core_table.add_column("Param", style="bold magenta")
    core_table.add_column("Value")
    core_table.add_row("Owner", core.owner)
    core_table.add_row("Protocol Fee", f"{core.protocol_fee / 10_000}%")
    core_table.add_row("Pools", str(len(core.pools)))
    core_table.add_row("Extensions", str(len(core.extension_registry.call_points)))
    console.print(core_table)

    pool_table = Table(title="Pools", box=box.ROUNDED)
    for column in ["Pool ID", "Token 0", "Token 1", "Fee", "Spacing", "Extension", "Tick", "Liquidity"]:
        pool_table.add_column(column)

    for key, state in core.pools.items():
        pool_key = core.pool_keys[key]
        pool_table.add_row(
            key,
            pprint_address(pool_key.token0),
            pprint_address(pool_key.token1),
            f"{pool_key.fee / 10_000}%",
            str(pool_key.tick_spacing),
            pprint_address(pool_key.extension) if pool_key.has_extension else "-",
            str(state.tick),
            str(state.liquidity),
        )
    console.print(pool_table)

    if core.saved_balances_map:
        saved_table = Table(title="Saved Balances", box=box.ROUNDED)
        for column in ["Owner", "Token", "Salt", "Amount"]:
            saved_table.add_column(column)
        for (owner, token, salt), amount in core.saved_balances_map.items():
            saved_table.add_row(pprint_address(owner), pprint_address(token), str(salt), str(amount))
        console.print(saved_table)

    if pool_id is None:
        return

    if pool_id not in core.pools:
        raise click.BadParameter(f"Pool {pool_id} is not stored in the state file", param_hint="--pool-id")

    tick_table = Table(title="Initialized Ticks", box=box.ROUNDED)
    for column in ["Tick", "Liquidity Net", "Liquidity Gross"]:
        tick_table.add_column(column, justify="right")
    for tick in core.tick_bitmaps[pool_id].initialized_ticks():
        tick_data = core.ticks[pool_id][tick]
        tick_table.add_row(str(tick), str(tick_data.liquidity_net), str(tick_data.liquidity_gross))
    console.print(tick_table)

    position_table = Table(title="Positions", box=box.ROUNDED)
    for column in ["Owner", "Salt", "Lower", "Upper", "Liquidity", "Owed 0", "Owed 1"]:
        position_table.add_column(column)
    for position_key, position in core.positions[pool_id].items():
        position_table.add_row(
            pprint_address(position_key.owner),
            str(position_key.salt),
            str(position_key.tick_lower),
            str(position_key.tick_upper),
            str(position.liquidity),
            str(position.tokens_owed_0),
            str(position.tokens_owed_1),
        )
    console.print(position_table)
