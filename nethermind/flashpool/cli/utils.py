import logging
import os
from logging import Logger

import click
from rich.console import Console
from rich.logging import RichHandler

root_logger = logging.getLogger("nethermind")
logger = root_logger.getChild("flashpool").getChild("cli")


def cli_logger_config(instrument_logger: Logger, level: int = logging.INFO) -> Console:
    rich_console = Console()
    instrument_logger.handlers.clear()

    instrument_logger.addHandler(RichHandler(show_path=False, console=rich_console))
    instrument_logger.setLevel(level)
    return rich_console


def group_options(*options):
    """Decorator to group multiple click options together"""

    def wrapper(function):
        for option in reversed(options):
            function = option(function)
        return function

    return wrapper


# -------------------------------------------------------
#    CLI Configurations
# -------------------------------------------------------
state_file_argument = click.argument(
    "state_file",
    type=click.File("r"),
    envvar="FLASHPOOL_STATE_FILE",
)

pool_id_option = click.option(
    "--pool-id",
    "-p",
    "pool_id",
    default=os.environ.get("FLASHPOOL_POOL_ID"),
    help="Pool id to display ticks and positions for.  If not provided, will use the FLASHPOOL_POOL_ID "
    "environment variable",
)

verbose_option = click.option(
    "--verbose",
    "-v",
    "verbose",
    is_flag=True,
    default=False,
    help="Log debug messages while loading state",
)


# -------------------------------------------------------
#    Display Options
# -------------------------------------------------------
decimals_0_option = click.option(
    "--decimals-0",
    "decimals_0",
    type=int,
    default=18,
    help="Decimals of token 0.  Used to adjust the displayed price",
)

decimals_1_option = click.option(
    "--decimals-1",
    "decimals_1",
    type=int,
    default=18,
    help="Decimals of token 1.  Used to adjust the displayed price",
)
