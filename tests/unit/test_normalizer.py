# ABOUTME: Unit tests for title and creator name normalization.
# ABOUTME: Validates CamelCase splitting, word segmentation, matching forms and baseline cleanup.

from shelfmark.metadata import BookMetadata
from shelfmark.metadata.normalizer import (
    _needs_normalization,
    _split_camel_case,
    clean_baseline,
    has_valid_authors,
    normalize_creator_name,
    normalize_title,
    split_concatenated,
)


class TestNeedsNormalization:
    """Tests for _needs_normalization quick-check function."""

    def test_clean_title_does_not_need_normalization(self) -> None:
        """A properly spaced title should not need normalization."""
        assert _needs_normalization("The Name of the Rose") is False

    def test_camel_case_needs_normalization(self) -> None:
        """CamelCase-joined words need normalization."""
        assert _needs_normalization("TheTemplarLegacy") is True

    def test_long_spaceless_string_needs_normalization(self) -> None:
        """A long string with no spaces needs normalization."""
        assert _needs_normalization("thetemplarlegacy") is True

    def test_short_single_word_does_not_need_normalization(self) -> None:
        """Short single words like '1984' or 'Dune' are fine as-is."""
        assert _needs_normalization("Dune") is False
        assert _needs_normalization("1984") is False

    def test_legitimate_hyphen_does_not_need_normalization(self) -> None:
        """Titles like 'Catch-22' with legitimate hyphens are fine."""
        assert _needs_normalization("Catch-22") is False

    def test_underscore_joined_needs_normalization(self) -> None:
        """Underscore-joined words need normalization."""
        assert _needs_normalization("The_Templar_Legacy") is True

    def test_whitespace_only_does_not_need_normalization(self) -> None:
        """Whitespace-only should not need normalization."""
        assert _needs_normalization("   ") is False


class TestSplitCamelCase:
    """Tests for _split_camel_case regex splitting."""

    def test_simple_camel_case(self) -> None:
        """Split simple CamelCase into separate words."""
        assert _split_camel_case("TheTemplarLegacy") == ["The", "Templar", "Legacy"]

    def test_proper_nouns_consecutive_uppercase(self) -> None:
        """Handle consecutive uppercase letters (acronyms)."""
        assert _split_camel_case("HTMLParser") == ["HTML", "Parser"]

    def test_digits_at_boundary(self) -> None:
        """Split on letter-to-digit and digit-to-letter boundaries."""
        assert _split_camel_case("Fahrenheit451") == ["Fahrenheit", "451"]
        assert _split_camel_case("Book2Read") == ["Book", "2", "Read"]

    def test_all_uppercase(self) -> None:
        """All-caps string stays as one word."""
        assert _split_camel_case("NASA") == ["NASA"]


class TestSplitConcatenated:
    """Tests for split_concatenated full pipeline."""

    def test_camel_case_title(self) -> None:
        """CamelCase title becomes space-separated words."""
        assert split_concatenated("TheTemplarLegacy") == "The Templar Legacy"

    def test_hyphen_separated_segments(self) -> None:
        """Hyphen-separated CamelCase segments are split and joined."""
        assert split_concatenated("SteveBerry-TheTemplarLegacy") == (
            "Steve Berry The Templar Legacy"
        )

    def test_already_clean(self) -> None:
        """Clean titles pass through unchanged."""
        assert split_concatenated("The Templar Legacy") == "The Templar Legacy"

    def test_lowercase_concatenated_uses_wordninja(self) -> None:
        """All-lowercase concatenated text is split using wordninja."""
        result = split_concatenated("thetemplarlegacy")
        assert " " in result
        assert "templar" in result.lower()


class TestNormalizeTitle:
    """Tests for normalize_title."""

    def test_article_and_punctuation(self) -> None:
        """Leading article and punctuation are dropped."""
        assert normalize_title("The Name of the Rose!") == "name of the rose"
        assert normalize_title("name of the rose") == "name of the rose"

    def test_accents_and_apostrophes(self) -> None:
        """Accents are stripped and apostrophes vanish without a space."""
        assert normalize_title("Ender's Gáme") == "enders game"

    def test_subtitle_dropped_on_request(self) -> None:
        """Subtitles are kept unless drop_subtitle is set."""
        assert normalize_title("Dune: Deluxe Edition") == "dune deluxe edition"
        assert normalize_title("Dune: Deluxe Edition", drop_subtitle=True) == "dune"

    def test_mangled_title_split_first(self) -> None:
        """Concatenated titles match their spaced form."""
        assert normalize_title("TheTemplarLegacy") == normalize_title("The Templar Legacy")

    def test_empty(self) -> None:
        """Missing titles normalize to the empty string."""
        assert normalize_title(None) == ""


class TestNormalizeCreatorName:
    """Tests for normalize_creator_name."""

    def test_last_first_inverted(self) -> None:
        """'Last, First' becomes 'first last'."""
        assert normalize_creator_name("Eco, Umberto") == "umberto eco"

    def test_honorific_and_suffix_removed(self) -> None:
        """Titles and generational suffixes are dropped."""
        assert normalize_creator_name("Dr. Martin Luther King Jr.") == "martin luther king"

    def test_spaced_initials_joined(self) -> None:
        """Initials collapse into one token."""
        assert normalize_creator_name("J. R. R. Tolkien") == "jrr tolkien"

    def test_inner_hyphen_kept(self) -> None:
        """Hyphenated given names keep their hyphen."""
        assert normalize_creator_name("Jean-Paul Sartre") == "jean-paul sartre"

    def test_accents_stripped(self) -> None:
        """Accented letters compare equal to plain ones."""
        assert normalize_creator_name("Gabriel García Márquez") == "gabriel garcia marquez"


class TestCleanBaseline:
    """Tests for has_valid_authors and clean_baseline."""

    def test_placeholder_authors_are_invalid(self) -> None:
        """'Unknown' and 'Various' do not count as authors."""
        assert not has_valid_authors(BookMetadata(title="X", authors=["Unknown", "various"]))
        assert has_valid_authors(BookMetadata(title="X", authors=["Umberto Eco"]))

    def test_cleans_title_and_authors(self) -> None:
        """Mangled titles are split and placeholder authors removed."""
        meta = BookMetadata(title="TheTemplarLegacy", authors=["Unknown"], isbn="9780306406157")
        cleaned = clean_baseline(meta)
        assert cleaned.title == "The Templar Legacy"
        assert cleaned.authors == []
        assert cleaned.isbn == "9780306406157"
        assert meta.title == "TheTemplarLegacy"

    def test_clean_metadata_returned_unchanged(self) -> None:
        """Nothing to fix returns the same object."""
        meta = BookMetadata(title="The Name of the Rose", authors=["Umberto Eco"])
        assert clean_baseline(meta) is meta
