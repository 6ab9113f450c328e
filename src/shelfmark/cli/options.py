# ABOUTME: Shared Click options for shelfmark CLI commands.
# ABOUTME: Provides reusable decorators for the --json and --reference-year flags.

import click

json_option = click.option(
    "--json",
    "as_json",
    is_flag=True,
    default=False,
    help="Print machine-readable JSON instead of tables.",
)

reference_year_option = click.option(
    "--reference-year",
    type=click.IntRange(1000, 9999),
    default=None,
    help="Treat this as the current year when judging dates (default: today).",
)
