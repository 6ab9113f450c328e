# ABOUTME: The `shelfmark reconcile` command for reconciling provider records offline.
# ABOUTME: Groups records by book, reconciles each field and shows value, confidence and conflicts.

import json
import logging
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from shelfmark.cli.loader import RecordLoadError, load_records, load_reliability
from shelfmark.cli.options import json_option, reference_year_option
from shelfmark.core.duplicates import group_duplicate_records
from shelfmark.core.enrichment import RecordReconciliation, reconcile_records
from shelfmark.metadata.types import ReconciledField
from shelfmark.reconcile.conflicts import (
    ConflictSummary,
    conflict_report,
    format_value,
    summarize_conflicts,
)
from shelfmark.reconcile.editions import EditionSelectorConfig

logger = logging.getLogger(__name__)

_DESCRIPTION_PREVIEW = 80


def display_value(name: str, value: Any) -> str:
    """Render a reconciled value as one line of text."""
    if value is None:
        return ""
    if name == "identifiers":
        return ", ".join(
            f"{i.type}:{i.normalized}" + ("" if i.valid else " (invalid)") for i in value
        )
    if name in ("publisher", "place"):
        return value.name
    if name == "publication_date":
        return value.key
    if name == "weight":
        return f"{value} g"
    if name == "description":
        text = value.text
        if len(text) > _DESCRIPTION_PREVIEW:
            return text[: _DESCRIPTION_PREVIEW - 3] + "..."
        return text
    if name == "cover_image":
        return value.url
    if isinstance(value, list):
        return ", ".join(str(v) for v in value)
    return str(value)


def _field_json(name: str, result: ReconciledField[Any]) -> dict[str, Any]:
    return {
        "value": display_value(name, result.value),
        "confidence": round(result.confidence, 4),
        "sources": result.source_names,
        "reasoning": result.reasoning,
        "conflicts": [
            {
                "field": conflict.field,
                "values": [
                    {"value": format_value(v.value), "source": v.source.name}
                    for v in conflict.values
                ],
                "resolution": conflict.resolution,
            }
            for conflict in result.conflicts or []
        ],
    }


def _summary_json(summary: ConflictSummary) -> dict[str, Any]:
    return {
        "total": summary.total,
        "score": round(summary.overall_score, 4),
        "problematic_fields": summary.problematic_fields,
        "auto_resolvable": len(summary.auto_resolvable),
        "manual_review": len(summary.manual_review),
        "by_field": [
            {"field": c.field, "kind": c.kind.value, "severity": c.severity.value}
            for c in summary.conflicts
        ],
        "recommendations": summary.recommendations,
    }


def _to_json(reconciliation: RecordReconciliation) -> dict[str, Any]:
    edition = reconciliation.edition
    return {
        "records": [f"{r.source}:{r.id}" for r in reconciliation.records],
        "fields": {
            name: _field_json(name, result) for name, result in reconciliation.fields.items()
        },
        "edition": None
        if edition is None
        else {
            "id": edition.selected_edition.id,
            "reason": edition.selection_reason,
            "confidence": round(edition.confidence, 4),
            "alternatives": [a.edition.id for a in edition.alternatives],
        },
        "conflict_summary": _summary_json(summarize_conflicts(reconciliation.fields)),
    }


def _print_table(console: Console, index: int, reconciliation: RecordReconciliation) -> None:
    sources = sorted({r.source for r in reconciliation.records})
    count = len(reconciliation.records)
    table = Table(title=f"Book {index}: {count} record(s) from {', '.join(sources)}")
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_column("Conf", justify="right", width=5)
    table.add_column("Sources", style="dim")

    for name, result in reconciliation.fields.items():
        value = escape(display_value(name, result.value)) or "[dim]none[/dim]"
        if result.has_conflicts:
            value += " [yellow](conflict)[/yellow]"
        table.add_row(name, value, f"{result.confidence:.0%}", ", ".join(result.source_names))

    console.print(table)
    if reconciliation.edition is not None:
        selection = reconciliation.edition
        console.print(
            f"[dim]Edition:[/dim] {selection.selected_edition.id} "
            f"({selection.confidence:.0%}) - {selection.selection_reason}"
        )
    summary = summarize_conflicts(reconciliation.fields)
    if summary.total:
        console.print(f"[yellow]Conflicts:[/yellow] {escape(conflict_report(summary))}")


@click.command("reconcile")
@click.argument("records_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("-l", "--language", default=None, help="Preferred language for edition selection.")
@click.option(
    "--merge/--no-merge",
    default=True,
    help="Group records that describe the same book (default: --merge).",
)
@reference_year_option
@json_option
def reconcile(
    records_path: Path,
    language: str | None,
    merge: bool,
    reference_year: int | None,
    as_json: bool,
) -> None:
    """Reconcile provider records from a JSON file and show the chosen values."""
    console = Console()
    try:
        records = load_records(records_path)
        reliability = load_reliability(records_path)
    except RecordLoadError as exc:
        console.print(f"[red]Error:[/red] {escape(str(exc))}")
        raise SystemExit(1) from exc

    if not records:
        console.print("[yellow]No records to reconcile.[/yellow]")
        return

    clusters = group_duplicate_records(records) if merge else [records]
    logger.debug("Reconciling %d record(s) in %d group(s)", len(records), len(clusters))
    config = EditionSelectorConfig(reference_year=reference_year)
    results = [
        reconcile_records(
            cluster, reliability=reliability, language=language, edition_config=config
        )
        for cluster in clusters
    ]

    if as_json:
        click.echo(json.dumps([_to_json(r) for r in results], indent=2))
        return

    for index, result in enumerate(results, start=1):
        _print_table(console, index, result)
    console.print(f"\n[dim]{len(results)} book(s) from {len(records)} record(s)[/dim]")
