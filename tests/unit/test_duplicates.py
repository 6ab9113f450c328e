# ABOUTME: Unit tests for duplicate detection, record merging and library entry comparison.
# ABOUTME: Covers the ordered checks against a LibraryIndex and the record clustering rules.

import pytest

from shelfmark.core.duplicates import (
    DuplicateCandidate,
    ExistingAsset,
    ExistingEdition,
    ExistingWork,
    LibraryEntry,
    LibraryIndex,
    compare_entries,
    detect_duplicate,
    find_similar_entries,
    group_duplicate_records,
    merge_duplicate_records,
)
from shelfmark.metadata.types import PublicationDate


@pytest.fixture
def library() -> LibraryIndex:
    return LibraryIndex(
        works=[ExistingWork(id="w1", title="Dune", authors=("Frank Herbert",))],
        editions=[
            ExistingEdition(
                id="e1",
                work_id="w1",
                title="Dune",
                isbn_13="9780306406157",
                asin="B000FC0SIM",
                format="ebook",
            )
        ],
        assets=[ExistingAsset(id="a1", edition_id="e1", checksum="ABC123", filename="dune.epub")],
    )


class TestLibraryIndex:
    """Tests for LibraryIndex lookups."""

    def test_isbn10_finds_isbn13_edition(self, library: LibraryIndex) -> None:
        """ISBNs are indexed in ISBN-13 form."""
        assert [e.id for e in library.find_editions_by_isbn("0-306-40615-2")] == ["e1"]

    def test_checksum_case_insensitive(self, library: LibraryIndex) -> None:
        """Checksums match regardless of hex case."""
        asset = library.find_by_checksum("abc123")
        assert asset is not None
        assert asset.id == "a1"

    def test_len_counts_editions(self, library: LibraryIndex) -> None:
        """len() is the number of editions."""
        assert len(library) == 1


class TestDetectDuplicate:
    """Tests for detect_duplicate."""

    def test_exact_asset_first(self, library: LibraryIndex) -> None:
        """A matching checksum wins over every other check."""
        result = detect_duplicate(
            DuplicateCandidate(title="Something Else", checksum="abc123"), library
        )
        assert result.has_duplicate
        assert result.type == "exact-asset"
        assert result.confidence == 1.0
        assert result.existing_asset.id == "a1"
        assert result.existing_edition.id == "e1"
        assert result.existing_work.id == "w1"

    def test_same_isbn(self, library: LibraryIndex) -> None:
        """A shared ISBN with the same title is the same edition."""
        result = detect_duplicate(
            DuplicateCandidate(title="Dune", isbns=("0-306-40615-2",)), library
        )
        assert result.type == "same-isbn"
        assert result.confidence == 1.0

    def test_isbn_with_other_title(self, library: LibraryIndex) -> None:
        """A shared ISBN under another title is a different format of the work."""
        result = detect_duplicate(
            DuplicateCandidate(title="Dune Messiah", isbns=("9780306406157",)), library
        )
        assert result.type == "different-format"

    def test_same_asin(self, library: LibraryIndex) -> None:
        """A shared ASIN matches regardless of case."""
        result = detect_duplicate(DuplicateCandidate(title="X", asin="b000fc0sim"), library)
        assert result.type == "same-asin"

    def test_exact_title_and_author(self, library: LibraryIndex) -> None:
        """Same normalized title and author is a different format at 0.95."""
        result = detect_duplicate(
            DuplicateCandidate(title="DUNE", authors=("Herbert, Frank",)), library
        )
        assert result.type == "different-format"
        assert result.confidence == pytest.approx(0.95)
        assert result.existing_work.id == "w1"

    def test_same_title_other_author_is_only_similar(self, library: LibraryIndex) -> None:
        """A different author drops an exact title match to a fuzzy one."""
        result = detect_duplicate(
            DuplicateCandidate(title="Dune", authors=("Brian Herbert",)), library
        )
        assert result.type == "similar-title"
        assert 0.9 < result.confidence < 0.95
        assert "% match" in result.description

    def test_no_duplicate(self, library: LibraryIndex) -> None:
        """An unrelated book has no duplicate."""
        result = detect_duplicate(
            DuplicateCandidate(title="Neuromancer", authors=("William Gibson",)), library
        )
        assert not result.has_duplicate
        assert result.confidence == 0.0
        assert result.type is None


class TestRecordMerging:
    """Tests for group_duplicate_records and merge_duplicate_records."""

    def test_shared_isbn_groups(self, make_record) -> None:
        """Records sharing an ISBN in any form are grouped."""
        a = make_record("OpenLibrary", title="Dune", isbn=["0-306-40615-2"])
        b = make_record("WikiData", title="Dune (novel)", isbn=["9780306406157"])
        c = make_record("WikiData", title="Neuromancer", isbn=["9780441569595"])
        clusters = group_duplicate_records([c, b, a])
        assert sorted(len(cluster) for cluster in clusters) == [1, 2]

    def test_title_and_first_author_groups(self, make_record) -> None:
        """Records with the same normalized title and first author are grouped."""
        a = make_record("OpenLibrary", title="The Hobbit", authors=["J. R. R. Tolkien"])
        b = make_record("WikiData", title="Hobbit", authors=["Tolkien, J.R.R."])
        assert len(group_duplicate_records([a, b])) == 1

    def test_grouping_is_order_independent(self, make_record) -> None:
        """The same records in any order give the same clusters."""
        a = make_record("OpenLibrary", id="1", title="Dune", isbn=["9780306406157"])
        b = make_record("WikiData", id="2", title="Dune", isbn=["9780306406157"])
        c = make_record("VIAF", id="3", title="Emma", authors=["Jane Austen"])
        forward = group_duplicate_records([a, b, c])
        backward = group_duplicate_records([c, b, a])
        assert forward == backward

    def test_merge_prefers_confident_scalars_and_unions_lists(self, make_record) -> None:
        """Scalars come from the most confident record; lists are unioned."""
        strong = make_record(
            "LibraryOfCongress",
            id="loc",
            confidence=0.95,
            title="Dune",
            isbn=["9780306406157"],
            subjects=["Science fiction"],
        )
        weak = make_record(
            "OpenLibrary",
            id="ol",
            confidence=0.6,
            title="Dune!",
            isbn=["9780306406157"],
            publisher="Chilton Books",
            subjects=["science fiction", "Deserts"],
        )
        merged = merge_duplicate_records([weak, strong])
        assert len(merged) == 1
        record = merged[0]
        assert record.title == "Dune"
        assert record.publisher == "Chilton Books"
        assert record.subjects == ["Science fiction", "Deserts"]
        assert record.provider_data["merged_from"] == ["LibraryOfCongress:loc", "OpenLibrary:ol"]


class TestCompareEntries:
    """Tests for compare_entries and find_similar_entries."""

    def test_exact_entry(self) -> None:
        """Identical entries are exact duplicates to skip."""
        entry = LibraryEntry(
            title="Dune",
            authors=("Frank Herbert",),
            isbn=("9780306406157",),
            publication_date=PublicationDate(1965, 8, 1, precision="day"),
        )
        match = compare_entries(entry, entry)
        assert match.match_type == "exact"
        assert match.recommendation == "skip"
        assert match.similarity == pytest.approx(1.0)
        assert match.confidence == 1.0

    def test_missing_optional_fields_do_not_count(self) -> None:
        """Only title and authors count when nothing else overlaps."""
        proposed = LibraryEntry(title="Dune", authors=("Frank Herbert",))
        existing = LibraryEntry(title="Dune", authors=("Frank Herbert",), publisher="Chilton")
        match = compare_entries(proposed, existing)
        assert [f.field for f in match.matching_fields] == ["title", "authors"]
        assert match.match_type == "exact"

    def test_different_edition(self) -> None:
        """A shared ISBN with little else in common is a different edition."""
        proposed = LibraryEntry(title="Dune: Deluxe", isbn=("9780306406157",))
        existing = LibraryEntry(title="Dune", authors=("Frank Herbert",), isbn=("9780306406157",))
        match = compare_entries(proposed, existing)
        assert match.match_type == "different_edition"
        assert match.recommendation == "add_as_new"

    def test_find_similar_filters_and_sorts(self) -> None:
        """Weak matches are dropped and the rest sorted best first."""
        proposed = LibraryEntry(title="Dune", authors=("Frank Herbert",))
        library = [
            LibraryEntry(title="Emma", authors=("Jane Austen",)),
            LibraryEntry(title="Dune Messiah", authors=("Frank Herbert",)),
            LibraryEntry(title="Dune", authors=("Frank Herbert",)),
        ]
        matches = find_similar_entries(proposed, library)
        assert [m.existing.title for m in matches] == ["Dune", "Dune Messiah"]
