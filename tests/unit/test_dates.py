# ABOUTME: Unit tests for publication date parsing, validation and reconciliation.
# ABOUTME: Covers precision detection, implausible parts, confidence and precision-first selection.

import pytest

from shelfmark.metadata.types import MetadataSource, PublicationDate, ReconciliationError
from shelfmark.reconcile.dates import (
    date_confidence,
    normalize_date,
    parse_publication_date,
    reconcile_dates,
    validate_publication_date,
)
from shelfmark.reconcile.publishers import PublicationInput


class TestParsePublicationDate:
    """Tests for parse_publication_date."""

    @pytest.mark.parametrize(
        ("raw", "key", "precision"),
        [
            ("2001-05-17", "2001-05-17", "day"),
            ("2001-05", "2001-05", "month"),
            ("2001", "2001", "year"),
            ("Spring 1987", "1987", "year"),
            ("circa 1850", "unknown", "unknown"),
            ("", "unknown", "unknown"),
        ],
    )
    def test_precision(self, raw: str, key: str, precision: str) -> None:
        """Each input shape yields the expected key and precision."""
        parsed = parse_publication_date(raw, reference_year=2026)
        assert parsed.key == key
        assert parsed.precision == precision

    def test_raw_text_kept(self) -> None:
        """The original text is carried on the parsed value."""
        assert parse_publication_date(" 2001-05 ").raw == "2001-05"


class TestValidatePublicationDate:
    """Tests for validate_publication_date."""

    def test_invalid_month_drops_to_year(self) -> None:
        """Month 13 is discarded and precision falls back to year."""
        parsed = parse_publication_date("2001-13-01", reference_year=2026)
        assert parsed.month is None
        assert parsed.precision == "year"

    def test_invalid_day_drops_to_month(self) -> None:
        """February 30th keeps the month but not the day."""
        parsed = parse_publication_date("2001-02-30", reference_year=2026)
        assert (parsed.year, parsed.month, parsed.day) == (2001, 2, None)
        assert parsed.precision == "month"

    def test_leap_day_kept(self) -> None:
        """February 29th survives in a leap year."""
        parsed = validate_publication_date(
            PublicationDate(year=2000, month=2, day=29, precision="day")
        )
        assert parsed.day == 29

    def test_far_future_year_dropped(self) -> None:
        """Years more than ten years past the reference year are implausible."""
        parsed = parse_publication_date("3000", reference_year=2026)
        assert parsed.year is None
        assert parsed.precision == "unknown"

    def test_near_future_year_kept(self) -> None:
        """Announced books a few years out are accepted."""
        parsed = parse_publication_date("2030", reference_year=2026)
        assert parsed.year == 2030

    def test_normalize_date_accepts_structured(self) -> None:
        """Structured dates are validated rather than re-parsed."""
        value = normalize_date(PublicationDate(year=999, precision="year"))
        assert value.precision == "unknown"


class TestDateConfidence:
    """Tests for date_confidence."""

    def test_precision_factor(self) -> None:
        """Day precision keeps full reliability; year precision scales by 0.8."""
        source = MetadataSource("A", 0.8)
        day = parse_publication_date("2001-05-17")
        year = parse_publication_date("2001")
        assert date_confidence(day, source) == pytest.approx(0.8)
        assert date_confidence(year, source) == pytest.approx(0.64)

    def test_unknown_date_halved(self) -> None:
        """A date without a year is further halved."""
        value = parse_publication_date("circa 1850")
        assert date_confidence(value, MetadataSource("A", 1.0)) == pytest.approx(0.15)


class TestReconcileDates:
    """Tests for reconcile_dates."""

    def test_precision_beats_reliability(self) -> None:
        """A day-precision date wins over a more reliable year-only date."""
        a = MetadataSource("A", 0.9)
        b = MetadataSource("B", 0.6)
        result = reconcile_dates(
            [
                PublicationInput(source=a, date="2001"),
                PublicationInput(source=b, date="2001-05-17"),
            ],
            reference_year=2026,
        )
        assert result.value.key == "2001-05-17"
        assert result.confidence == pytest.approx(0.6)
        assert result.source_names == ["B"]
        assert result.has_conflicts
        assert result.conflicts[0].field == "publication_date"

    def test_agreeing_sources(self) -> None:
        """Sources reporting the same date all support it without conflict."""
        a = MetadataSource("A", 0.9)
        b = MetadataSource("B", 0.6)
        result = reconcile_dates(
            [
                PublicationInput(source=a, date="1965-08-01"),
                PublicationInput(source=b, date=PublicationDate(1965, 8, 1, precision="day")),
            ]
        )
        assert result.conflicts is None
        assert result.source_names == ["A", "B"]
        assert result.confidence == pytest.approx(0.9)

    def test_single_source(self) -> None:
        """A single input is reported as such."""
        result = reconcile_dates([PublicationInput(source=MetadataSource("A", 0.8), date="2001")])
        assert result.reasoning == "Single source"
        assert result.confidence == pytest.approx(0.64)

    def test_all_unknown(self) -> None:
        """When no date is usable, the most reliable source's value is kept at low confidence."""
        a = MetadataSource("A", 0.9)
        b = MetadataSource("B", 0.6)
        result = reconcile_dates(
            [
                PublicationInput(source=b, date="unknown"),
                PublicationInput(source=a, date="circa 1850"),
            ]
        )
        assert result.value.precision == "unknown"
        assert result.confidence == pytest.approx(0.1)
        assert result.source_names == ["A"]

    def test_empty_inputs_raise(self) -> None:
        """Calling with no inputs is an error."""
        with pytest.raises(ReconciliationError):
            reconcile_dates([])
