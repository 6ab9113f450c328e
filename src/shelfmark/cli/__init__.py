# ABOUTME: CLI package for shelfmark, built on Click.
# ABOUTME: Defines the root command group and registers subcommands.

import click

from shelfmark.cli.commands import duplicate_cmd, identify_cmd, reconcile_cmd
from shelfmark.logging_setup import setup_logging


@click.group()
@click.version_option(package_name="shelfmark")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Show debug logging.")
def cli(verbose: bool) -> None:
    """shelfmark - reconcile book metadata from many sources."""
    setup_logging(verbose)


cli.add_command(reconcile_cmd.reconcile)
cli.add_command(identify_cmd.identify)
cli.add_command(duplicate_cmd.check_duplicate)
