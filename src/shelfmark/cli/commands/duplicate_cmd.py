# ABOUTME: The `shelfmark check-duplicate` command for testing books against an existing library.
# ABOUTME: Merges the incoming records per book and reports the strongest duplicate match for each.

import json
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from shelfmark.cli.loader import RecordLoadError, candidate_from_record, load_library, load_records
from shelfmark.cli.options import json_option
from shelfmark.core.duplicates import (
    DuplicateCandidate,
    DuplicateCheckResult,
    detect_duplicate,
    merge_duplicate_records,
)
from shelfmark.core.hashing import compute_file_hash


def _result_json(title: str | None, result: DuplicateCheckResult) -> dict:
    return {
        "title": title,
        "has_duplicate": result.has_duplicate,
        "type": result.type,
        "confidence": round(result.confidence, 4),
        "existing_work": result.existing_work.id if result.existing_work else None,
        "existing_edition": result.existing_edition.id if result.existing_edition else None,
        "existing_asset": result.existing_asset.id if result.existing_asset else None,
        "description": result.description,
    }


@click.command("check-duplicate")
@click.argument("records_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--library",
    "library_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    required=True,
    help="JSON snapshot of the existing library (works, editions, assets).",
)
@click.option(
    "--file",
    "file_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="The book file itself, checksummed for exact-asset matching.",
)
@json_option
def check_duplicate(
    records_path: Path, library_path: Path, file_path: Path | None, as_json: bool
) -> None:
    """Check whether the books described in a records file are already in the library."""
    console = Console()
    try:
        records = load_records(records_path)
        index = load_library(library_path)
    except RecordLoadError as exc:
        console.print(f"[red]Error:[/red] {escape(str(exc))}")
        raise SystemExit(1) from exc

    checksum = compute_file_hash(file_path) if file_path else None
    candidates = [
        (book.title, candidate_from_record(book, checksum))
        for book in merge_duplicate_records(records)
    ]
    if not candidates and checksum:
        candidates = [(file_path.name, DuplicateCandidate(checksum=checksum))]

    verdicts = [(title, detect_duplicate(candidate, index)) for title, candidate in candidates]

    if as_json:
        click.echo(json.dumps([_result_json(t, r) for t, r in verdicts], indent=2))
        return

    if not verdicts:
        console.print("[yellow]No books to check.[/yellow]")
        return

    table = Table()
    table.add_column("Book", style="bold")
    table.add_column("Verdict")
    table.add_column("Conf", justify="right", width=5)
    table.add_column("Details")
    for title, result in verdicts:
        if result.has_duplicate:
            verdict = f"[red]{result.type}[/red]"
            details = escape(result.description)
        else:
            verdict = "[green]new[/green]"
            details = "[dim]no match in library[/dim]"
        table.add_row(escape(title or "untitled"), verdict, f"{result.confidence:.0%}", details)

    console.print(table)
    found = sum(1 for _, r in verdicts if r.has_duplicate)
    console.print(f"\n[dim]{found} of {len(verdicts)} book(s) already in the library[/dim]")
