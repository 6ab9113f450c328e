# ABOUTME: Unit tests for conflict analysis and the conflict report.
# ABOUTME: Covers value grouping, conflict kinds, severity, the summary score and text rendering.

import pytest

from shelfmark.metadata.types import (
    Conflict,
    ConflictValue,
    MetadataSource,
    PublicationDate,
    ReconciledField,
)
from shelfmark.reconcile.conflicts import (
    ConflictKind,
    ConflictSeverity,
    analyze_conflict,
    conflict_report,
    format_conflict,
    format_value,
    summarize_conflicts,
    values_similar,
)
from shelfmark.reconcile.series import Series

OTHER = MetadataSource(name="Other", reliability=0.6)


def _conflict(field: str, *values: tuple[object, MetadataSource]) -> Conflict:
    return Conflict(
        field=field,
        values=[ConflictValue(value=v, source=s) for v, s in values],
        resolution="Selected value from most reliable source",
    )


class TestValuesSimilar:
    """Tests for values_similar."""

    @pytest.mark.parametrize(
        ("a", "b", "expected"),
        [
            ("Dune", "dune", True),
            ("Dune", "Dune Messiah", False),
            (412, 410, True),
            (412, 256, False),
            (Series("Dune", "dune", 1.0), Series("The Dune", "dune", 1.0), True),
            (None, "Dune", False),
        ],
    )
    def test_pairs(self, a, b, expected: bool) -> None:
        """Case, small numeric gaps and normalized forms do not make values differ."""
        assert values_similar(a, b) is expected


class TestAnalyzeConflict:
    """Tests for analyze_conflict."""

    def test_format_difference(self, high_source, mid_source) -> None:
        """Values that read the same are only a format difference."""
        detailed = analyze_conflict(_conflict("title", ("Dune", high_source), ("DUNE", mid_source)))
        assert detailed.kind == ConflictKind.FORMAT_DIFFERENCE
        assert detailed.severity == ConflictSeverity.MINOR
        assert detailed.auto_resolvable
        assert len(detailed.groups) == 1

    def test_core_value_mismatch(self, high_source, mid_source) -> None:
        """A core field disputed by a highly reliable source is major."""
        detailed = analyze_conflict(
            _conflict("title", ("Children of Dune", mid_source), ("Dune", high_source))
        )
        assert detailed.kind == ConflictKind.VALUE_MISMATCH
        assert detailed.severity == ConflictSeverity.MAJOR
        assert detailed.auto_resolvable
        assert detailed.groups[0][0].value == "Dune"

    def test_three_way_core_conflict(self, high_source, mid_source, low_source) -> None:
        """Three readings of a core field with a reliable source are critical."""
        detailed = analyze_conflict(
            _conflict(
                "identifier.isbn",
                ("9780306406157", high_source),
                ("9780441013593", mid_source),
                ("9780593099322", low_source),
            )
        )
        assert detailed.severity == ConflictSeverity.CRITICAL
        assert detailed.kind == ConflictKind.QUALITY_DIFFERENCE

    def test_completeness_difference(self, high_source, low_source) -> None:
        """A source reporting nothing makes a completeness difference."""
        detailed = analyze_conflict(
            _conflict("series", ([], high_source), ([Series("Dune", "dune")], low_source))
        )
        assert detailed.kind == ConflictKind.COMPLETENESS_DIFFERENCE
        assert detailed.severity == ConflictSeverity.INFORMATIONAL

    def test_close_reliabilities_need_review(self, mid_source) -> None:
        """Without a clear winner a mismatch is left for manual review."""
        detailed = analyze_conflict(_conflict("language", ("en", mid_source), ("fr", OTHER)))
        assert detailed.kind == ConflictKind.VALUE_MISMATCH
        assert detailed.severity == ConflictSeverity.INFORMATIONAL
        assert not detailed.auto_resolvable


class TestSummary:
    """Tests for summarize_conflicts and the text report."""

    @pytest.fixture
    def fields(self, high_source, mid_source) -> dict[str, ReconciledField]:
        title = _conflict("title", ("Dune", high_source), ("Children of Dune", mid_source))
        language = _conflict("language", ("en", mid_source), ("fr", OTHER))
        return {
            "title": ReconciledField("Dune", 0.6, [high_source], "vote", [title]),
            "language": ReconciledField("en", 0.5, [mid_source], "vote", [language]),
            "authors": ReconciledField(["Frank Herbert"], 0.8, [high_source], "agreed"),
        }

    def test_summary(self, fields) -> None:
        """Conflicts are scored by severity and split into automatic and manual."""
        summary = summarize_conflicts(fields)
        assert summary.total == 2
        assert summary.overall_score == pytest.approx(0.08)
        assert summary.problematic_fields == ["title", "language"]
        assert len(summary.auto_resolvable) == 1
        assert [c.field for c in summary.manual_review] == ["language"]
        assert summary.recommendations == [
            "Review 1 major conflict(s); they may impact data quality",
            "1 conflict(s) can be resolved automatically",
            "1 conflict(s) need manual review",
        ]

    def test_no_conflicts(self, high_source) -> None:
        """Agreeing fields give an empty summary."""
        summary = summarize_conflicts(
            {"title": ReconciledField("Dune", 0.9, [high_source], "agreed")}
        )
        assert summary.total == 0
        assert summary.overall_score == 0.0
        assert conflict_report(summary) == "No conflicts."

    def test_report(self, fields) -> None:
        """The report lists counts, fields and each conflict's values."""
        report = conflict_report(summarize_conflicts(fields))
        assert report.startswith("2 conflict(s) (1 major, 1 informational), score 0.08")
        assert "Most affected: title, language" in report
        assert "  - Children of Dune (OpenLibrary)" in report
        assert "Needs manual review" in report

    def test_format_conflict(self, high_source, mid_source) -> None:
        """One conflict renders its header, values and resolution."""
        detailed = analyze_conflict(
            _conflict("title", ("Dune", high_source), ("Children of Dune", mid_source))
        )
        lines = format_conflict(detailed).splitlines()
        assert lines[0] == "title [major, value mismatch]"
        assert lines[2] == "  - Dune (LibraryOfCongress)"
        assert lines[-1] == "  Resolution: Selected value from most reliable source"

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (None, "(none)"),
            ([], "(none)"),
            (2.5, "2.5"),
            (PublicationDate(year=1965, precision="year"), "1965"),
            (["Dune", "Arrakis"], "Dune, Arrakis"),
            (Series("Dune", "dune", 1.0), "Dune #1"),
        ],
    )
    def test_format_value(self, value, expected: str) -> None:
        """Values render as short text."""
        assert format_value(value) == expected
