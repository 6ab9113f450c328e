# ABOUTME: Unit tests for identifier detection, normalization and reconciliation.
# ABOUTME: Covers ISBN conversion and checksums, URL and prefix forms, and cross-source merging.

import pytest

from shelfmark.metadata.types import MetadataSource, ReconciliationError
from shelfmark.reconcile.identifiers import (
    Identifier,
    IdentifierInput,
    detect_identifier_type,
    isbn10_checksum_ok,
    isbn10_to_isbn13,
    isbn13_to_isbn10,
    normalize_identifier,
    reconcile_identifiers,
    validate_isbn,
)


class TestIsbnHelpers:
    """Tests for ISBN conversion and validation."""

    def test_isbn10_checksum(self) -> None:
        """A correct ISBN-10 checksum passes and a wrong one fails."""
        assert isbn10_checksum_ok("0123456789")
        assert isbn10_checksum_ok("0306406152")
        assert not isbn10_checksum_ok("0306406153")

    def test_isbn10_to_isbn13(self) -> None:
        """Conversion prefixes 978 and recomputes the check digit."""
        assert isbn10_to_isbn13("0-306-40615-2") == "9780306406157"
        assert isbn10_to_isbn13("0123456789") == "9780123456786"

    def test_isbn13_to_isbn10(self) -> None:
        """978 ISBNs convert back; 979 ISBNs have no ISBN-10."""
        assert isbn13_to_isbn10("9780123456786") == "0123456789"
        assert isbn13_to_isbn10("978-0-306-40615-7") == "0306406152"
        assert isbn13_to_isbn10("9791234567896") is None

    def test_validate_isbn(self) -> None:
        """Only 978/979 ISBN-13s with a correct check digit validate."""
        assert validate_isbn("9780306406157")
        assert not validate_isbn("9780306406158")
        assert not validate_isbn("1234567890123")
        assert not validate_isbn("978030640615")


class TestDetectIdentifierType:
    """Tests for detect_identifier_type."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("9780306406157", "isbn"),
            ("0-306-40615-2", "isbn"),
            ("10.1000/xyz123", "doi"),
            ("doi:10.1000/xyz123", "doi"),
            ("https://doi.org/10.1000/xyz123", "doi"),
            ("ocm12345678", "oclc"),
            ("n79021164", "lccn"),
            ("https://www.goodreads.com/book/show/1234567.Title", "goodreads"),
            ("https://www.amazon.com/dp/B000FC0SIM", "amazon"),
            ("B000FC0SIM", "amazon"),
            ("https://books.google.com/books?id=abcDEF123", "google"),
            ("not an identifier", "other"),
        ],
    )
    def test_detection(self, value: str, expected: str) -> None:
        """Each recognised shape maps to its identifier type."""
        assert detect_identifier_type(value) == expected


class TestNormalizeIdentifier:
    """Tests for normalize_identifier."""

    def test_isbn10_becomes_isbn13(self) -> None:
        """ISBN-10 input normalizes to its ISBN-13 and stays valid."""
        ident = normalize_identifier("0-12-345678-9")
        assert ident == Identifier(
            type="isbn", value="0-12-345678-9", normalized="9780123456786", valid=True
        )
        assert ident.key == "isbn:9780123456786"

    def test_bad_isbn_checksum_is_invalid(self) -> None:
        """A wrong check digit keeps the value but marks it invalid."""
        ident = normalize_identifier("9780123456787")
        assert ident.type == "isbn"
        assert ident.normalized == "9780123456787"
        assert not ident.valid

    def test_doi_url_and_prefix_stripped(self) -> None:
        """DOI URLs and doi: prefixes normalize to the bare DOI."""
        for raw in ("doi:10.1000/xyz123", "https://doi.org/10.1000/xyz123"):
            ident = normalize_identifier(raw)
            assert ident.type == "doi"
            assert ident.normalized == "10.1000/xyz123"
            assert ident.valid

    def test_oclc_prefix_stripped(self) -> None:
        """OCLC ocm/ocn prefixes are removed."""
        ident = normalize_identifier("ocm12345678")
        assert ident.normalized == "12345678"
        assert ident.valid

    def test_lccn(self) -> None:
        """Alphabetic-prefix LCCNs are valid."""
        ident = normalize_identifier("n79021164")
        assert ident.type == "lccn"
        assert ident.valid

    def test_goodreads_url(self) -> None:
        """The numeric book id is pulled out of a Goodreads URL."""
        ident = normalize_identifier("https://www.goodreads.com/book/show/1234567.Title")
        assert ident.type == "goodreads"
        assert ident.normalized == "1234567"
        assert ident.valid

    def test_short_goodreads_id_is_invalid(self) -> None:
        """Goodreads ids need at least seven digits."""
        ident = normalize_identifier("goodreads:12345")
        assert ident.type == "goodreads"
        assert not ident.valid

    def test_amazon_url(self) -> None:
        """The ASIN is pulled out of an Amazon product URL."""
        ident = normalize_identifier("https://www.amazon.com/dp/B000FC0SIM")
        assert ident.type == "amazon"
        assert ident.normalized == "B000FC0SIM"
        assert ident.valid

    def test_explicit_type_overrides_detection(self) -> None:
        """A known type skips detection."""
        ident = normalize_identifier("12345678", "oclc")
        assert ident.type == "oclc"
        assert ident.valid

    def test_empty_value(self) -> None:
        """Empty input is an invalid 'other' identifier."""
        ident = normalize_identifier("  ")
        assert ident.type == "other"
        assert ident.normalized == ""
        assert not ident.valid


class TestReconcileIdentifiers:
    """Tests for reconcile_identifiers."""

    def test_same_isbn_in_two_forms(self) -> None:
        """Two raw forms of one ISBN merge into one identifier with a conflict."""
        loc = MetadataSource("LibraryOfCongress", 0.9)
        ol = MetadataSource("OpenLibrary", 0.7)
        result = reconcile_identifiers(
            [
                IdentifierInput(source=loc, isbn=["0-12-345678-9"]),
                IdentifierInput(source=ol, identifiers=["9780123456786"]),
            ]
        )
        assert len(result.value) == 1
        assert result.value[0].normalized == "9780123456786"
        assert result.value[0].value == "0-12-345678-9"
        assert result.confidence == pytest.approx(0.91)
        assert result.has_conflicts
        assert result.conflicts[0].field == "identifier.isbn"
        assert result.source_names == ["LibraryOfCongress"]

    def test_identical_forms_do_not_conflict(self) -> None:
        """The same raw string from two sources is agreement, not conflict."""
        a = MetadataSource("A", 0.8)
        b = MetadataSource("B", 0.6)
        result = reconcile_identifiers(
            [
                IdentifierInput(source=a, isbn=["9780306406157"]),
                IdentifierInput(source=b, isbn=["9780306406157"]),
            ]
        )
        assert len(result.value) == 1
        assert result.conflicts is None

    def test_valid_before_invalid_and_isbn_first(self) -> None:
        """Valid identifiers sort first, ISBNs ahead of other types."""
        source = MetadataSource("A", 0.8)
        result = reconcile_identifiers(
            [
                IdentifierInput(
                    source=source,
                    identifiers=["9780123456787", "ocm12345678", "9780306406157"],
                )
            ]
        )
        types = [(i.type, i.valid) for i in result.value]
        assert types == [("isbn", True), ("oclc", True), ("isbn", False)]

    def test_invalid_identifiers_lower_confidence(self) -> None:
        """Confidence scales with the share of valid identifiers."""
        source = MetadataSource("A", 1.0)
        result = reconcile_identifiers(
            [IdentifierInput(source=source, isbn=["9780306406157", "9780306406158"])]
        )
        assert result.confidence == pytest.approx(0.5 * 0.9 + 0.1)

    def test_no_usable_identifiers(self) -> None:
        """Inputs with nothing usable give the no-data result."""
        result = reconcile_identifiers([IdentifierInput(source=MetadataSource("A", 0.8))])
        assert result.value == []
        assert result.confidence == pytest.approx(0.1)
        assert result.sources == []

    def test_empty_inputs_raise(self) -> None:
        """Calling with no inputs is an error."""
        with pytest.raises(ReconciliationError):
            reconcile_identifiers([])
