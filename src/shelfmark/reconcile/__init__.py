# ABOUTME: Per-field reconcilers that turn conflicting source values into one ReconciledField.
# ABOUTME: Exports the reconcile_* entry points; scoring constants live in reconcile.policy.

from shelfmark.reconcile.conflicts import ConflictSummary, summarize_conflicts
from shelfmark.reconcile.content import ContentInput, reconcile_content
from shelfmark.reconcile.dates import reconcile_dates
from shelfmark.reconcile.editions import select_best_edition
from shelfmark.reconcile.fields import reconcile_subjects, reconcile_values
from shelfmark.reconcile.identifiers import IdentifierInput, reconcile_identifiers
from shelfmark.reconcile.physical import PhysicalInput, reconcile_physical
from shelfmark.reconcile.places import reconcile_places
from shelfmark.reconcile.publishers import PublicationInput, reconcile_publishers
from shelfmark.reconcile.series import SeriesInput, reconcile_series

__all__ = [
    "ConflictSummary",
    "ContentInput",
    "IdentifierInput",
    "PhysicalInput",
    "PublicationInput",
    "SeriesInput",
    "reconcile_content",
    "reconcile_dates",
    "reconcile_identifiers",
    "reconcile_physical",
    "reconcile_places",
    "reconcile_publishers",
    "reconcile_series",
    "reconcile_subjects",
    "reconcile_values",
    "select_best_edition",
    "summarize_conflicts",
]
