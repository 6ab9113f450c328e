# ABOUTME: Unit tests for publisher normalization and reconciliation.
# ABOUTME: Covers suffix stripping, imprint aliasing, confidence adjustments and conflicts.

import pytest

from shelfmark.metadata.types import MetadataSource, ReconciliationError
from shelfmark.reconcile.publishers import (
    PublicationInput,
    Publisher,
    normalize_publisher,
    normalize_publisher_name,
    publisher_confidence,
    reconcile_publishers,
)


class TestNormalizePublisherName:
    """Tests for normalize_publisher_name."""

    def test_imprints_map_to_parent(self) -> None:
        """Imprints and the parent name share a normalized form."""
        assert normalize_publisher_name("Bantam Books") == "penguin random house"
        assert normalize_publisher_name("Penguin") == "penguin random house"
        assert normalize_publisher_name("Random House, Inc.") == "penguin random house"

    def test_article_and_suffix_stripped(self) -> None:
        """Leading articles and publishing suffixes are removed before alias lookup."""
        assert normalize_publisher_name("The Oxford University Press") == (
            "oxford university press"
        )

    def test_unknown_publisher_kept(self) -> None:
        """Publishers not in the alias table keep their cleaned name."""
        assert normalize_publisher_name("Small Press X") == "small press x"

    def test_blank(self) -> None:
        """Blank or missing names normalize to the empty string."""
        assert normalize_publisher_name("   ") == ""
        assert normalize_publisher_name(None) == ""

    def test_preserves_given_normalized_form(self) -> None:
        """A Publisher that already carries a normalized form keeps it."""
        publisher = normalize_publisher(Publisher(name="Acme", normalized="acme corp"))
        assert publisher.normalized == "acme corp"


class TestPublisherConfidence:
    """Tests for publisher_confidence."""

    def test_known_and_normalized_boost(self) -> None:
        """A normalized, well-known publisher gets both multipliers."""
        publisher = normalize_publisher("Bantam Books")
        assert publisher_confidence(publisher, MetadataSource("A", 0.5)) == pytest.approx(0.66)

    def test_clamped_to_one(self) -> None:
        """Boosts never push confidence above 1.0."""
        publisher = normalize_publisher("Bantam Books")
        assert publisher_confidence(publisher, MetadataSource("A", 0.8)) == 1.0

    def test_short_name_penalized(self) -> None:
        """Names under three characters are halved."""
        publisher = Publisher(name="XY", normalized="xy")
        assert publisher_confidence(publisher, MetadataSource("A", 0.8)) == pytest.approx(0.4)


class TestReconcilePublishers:
    """Tests for reconcile_publishers."""

    def test_aliases_agree(self) -> None:
        """Imprints of the same group agree and both sources support the value."""
        a = MetadataSource("A", 0.9)
        b = MetadataSource("B", 0.7)
        result = reconcile_publishers(
            [
                PublicationInput(source=a, publisher="Bantam Books"),
                PublicationInput(source=b, publisher="Penguin"),
            ]
        )
        assert result.value.name == "Bantam Books"
        assert result.conflicts is None
        assert result.source_names == ["A", "B"]
        assert result.confidence == 1.0

    def test_unrelated_publisher_conflicts(self) -> None:
        """A publisher from a different group is recorded as a conflict."""
        a = MetadataSource("A", 0.9)
        b = MetadataSource("B", 0.7)
        c = MetadataSource("C", 0.6)
        result = reconcile_publishers(
            [
                PublicationInput(source=a, publisher="Bantam Books"),
                PublicationInput(source=b, publisher="Penguin"),
                PublicationInput(source=c, publisher="Small Press X"),
            ]
        )
        assert result.value.normalized == "penguin random house"
        assert result.has_conflicts
        assert result.conflicts[0].field == "publisher"
        assert len(result.conflicts[0].values) == 3
        assert result.source_names == ["A", "B"]

    def test_most_reliable_source_wins(self) -> None:
        """The higher-reliability source's publisher is chosen."""
        low = MetadataSource("Low", 0.4)
        high = MetadataSource("High", 0.8)
        result = reconcile_publishers(
            [
                PublicationInput(source=low, publisher="Small Press X"),
                PublicationInput(source=high, publisher="Tiny Imprint"),
            ]
        )
        assert result.value.name == "Tiny Imprint"
        assert result.source_names == ["High"]

    def test_single_publisher(self) -> None:
        """A single usable publisher is reported as such."""
        result = reconcile_publishers(
            [PublicationInput(source=MetadataSource("A", 0.5), publisher="Small Press X")]
        )
        assert result.reasoning == "Single valid publisher"
        assert result.confidence == pytest.approx(0.5)

    def test_no_publishers(self) -> None:
        """Inputs without any publisher give the no-data result."""
        result = reconcile_publishers([PublicationInput(source=MetadataSource("A", 0.9))])
        assert result.confidence == pytest.approx(0.1)
        assert result.sources == []
        assert result.value.name == ""

    def test_empty_inputs_raise(self) -> None:
        """Calling with no inputs is an error."""
        with pytest.raises(ReconciliationError):
            reconcile_publishers([])
