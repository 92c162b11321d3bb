import click

from nethermind.flashpool.cli.inspect import inspect_command
from nethermind.flashpool.cli.math import math_group


@click.group()
def flashpool_cli():
    """Command Line Interface for Nethermind Flashpool"""


# Adding Command Groups
flashpool_cli.add_command(math_group, name="math")
flashpool_cli.add_command(inspect_command, name="inspect")
