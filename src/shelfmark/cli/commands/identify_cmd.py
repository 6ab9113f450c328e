# ABOUTME: The `shelfmark identify` command for normalizing raw identifiers.
# ABOUTME: Detects the type of each value and shows its canonical form and validity.

import json
from typing import get_args

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from shelfmark.cli.options import json_option
from shelfmark.reconcile.identifiers import IdentifierType, isbn13_to_isbn10, normalize_identifier

_TYPES = [t for t in get_args(IdentifierType) if t != "other"]


@click.command("identify")
@click.argument("values", nargs=-1, required=True)
@click.option(
    "-t",
    "--type",
    "id_type",
    type=click.Choice(_TYPES),
    default=None,
    help="Treat every value as this identifier type instead of detecting it.",
)
@json_option
def identify(values: tuple[str, ...], id_type: str | None, as_json: bool) -> None:
    """Normalize ISBNs, DOIs, OCLC numbers, LCCNs and catalog IDs."""
    identifiers = [normalize_identifier(value, id_type) for value in values]

    if as_json:
        payload = [
            {
                "value": i.value,
                "type": i.type,
                "normalized": i.normalized,
                "valid": i.valid,
                "isbn10": isbn13_to_isbn10(i.normalized) if i.type == "isbn" else None,
            }
            for i in identifiers
        ]
        click.echo(json.dumps(payload, indent=2))
        return

    console = Console()
    table = Table()
    table.add_column("Input")
    table.add_column("Type", style="bold")
    table.add_column("Normalized")
    table.add_column("Valid", width=5)

    for ident in identifiers:
        normalized = ident.normalized
        if ident.type == "isbn" and ident.valid:
            isbn10 = isbn13_to_isbn10(ident.normalized)
            if isbn10:
                normalized = f"{normalized} ({isbn10})"
        table.add_row(
            escape(ident.value),
            ident.type,
            escape(normalized) or "[dim]none[/dim]",
            "[green]yes[/green]" if ident.valid else "[red]no[/red]",
        )

    console.print(table)
    invalid = sum(1 for i in identifiers if not i.valid)
    if invalid:
        console.print(f"\n[yellow]{invalid} invalid identifier(s)[/yellow]")
