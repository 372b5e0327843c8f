"""Main CLI entry point for converge."""

import logging
import click
from .commands.apply import apply
from .commands.destroy import destroy
from .commands.force_unlock import force_unlock
from .commands.plan import plan
from .commands.state import state
from .commands.version import version
from .. import __version__
from ..utils.logging import get_logger, setup_logging

logger = get_logger("cli.main")


@click.group()
@click.version_option(version=__version__, prog_name="converge", message="%(prog)s version %(version)s")
@click.option('--verbose', '-v', is_flag=True, help='Log engine activity to stderr')
def cli(verbose):
    """converge - Declarative infrastructure reconciliation."""
    if verbose:
        setup_logging(logging.INFO)


cli.add_command(plan)
cli.add_command(apply)
cli.add_command(destroy)
cli.add_command(state)
cli.add_command(force_unlock)
cli.add_command(version)
