# ABOUTME: Tests for the MetadataProvider protocol and the BaseMetadataProvider defaults.
# ABOUTME: Verifies structural conformance, reliability tables and source stamping.

import asyncio

import pytest

from shelfmark.metadata.provider import (
    DEFAULT_RELIABILITY,
    BaseMetadataProvider,
    MetadataProvider,
    MultiCriteriaQuery,
    RateLimitConfig,
    TimeoutConfig,
    TitleQuery,
)
from shelfmark.metadata.types import MetadataType


class NotAProvider:
    """A class that doesn't implement the protocol."""

    def search_by_isbn(self, isbn: str) -> list:
        return []


class TestMetadataProviderProtocol:
    """Tests for the runtime-checkable protocol."""

    def test_base_provider_conforms(self) -> None:
        """BaseMetadataProvider satisfies MetadataProvider."""
        assert isinstance(BaseMetadataProvider("OpenLibrary"), MetadataProvider)

    def test_fake_provider_conforms(self, make_provider) -> None:
        """Test doubles built on the base also conform."""
        assert isinstance(make_provider("WikiData"), MetadataProvider)

    def test_non_provider_does_not_conform(self) -> None:
        """A class with only part of the interface does not conform."""
        assert not isinstance(NotAProvider(), MetadataProvider)


class TestBaseMetadataProvider:
    """Tests for BaseMetadataProvider defaults."""

    def test_descriptor_defaults(self) -> None:
        """Priority, rate limit and timeouts have sensible defaults."""
        provider = BaseMetadataProvider("OpenLibrary")
        assert provider.name == "OpenLibrary"
        assert provider.priority == 50
        assert provider.rate_limit == RateLimitConfig()
        assert provider.timeout == TimeoutConfig(request_timeout=10_000, operation_timeout=30_000)

    def test_reliability_overrides_merge_with_defaults(self) -> None:
        """Overridden types change; the rest keep the default table."""
        provider = BaseMetadataProvider(
            "LibraryOfCongress", reliability={MetadataType.TITLE: 0.95}
        )
        assert provider.get_reliability_score(MetadataType.TITLE) == 0.95
        assert provider.get_reliability_score(MetadataType.ISBN) == (
            DEFAULT_RELIABILITY[MetadataType.ISBN]
        )

    def test_supported_types(self) -> None:
        """Core bibliographic types are supported unless overridden."""
        provider = BaseMetadataProvider("OpenLibrary")
        assert provider.supports_data_type(MetadataType.TITLE)
        assert not provider.supports_data_type(MetadataType.COVER_IMAGE)
        narrow = BaseMetadataProvider("ISNI", supported_data_types=[MetadataType.AUTHORS])
        assert narrow.supports_data_type(MetadataType.AUTHORS)
        assert not narrow.supports_data_type(MetadataType.TITLE)

    def test_default_searches_return_nothing(self) -> None:
        """The base search coroutines return empty lists."""
        provider = BaseMetadataProvider("OpenLibrary")
        assert asyncio.run(provider.search_by_isbn("9780306406157")) == []
        assert asyncio.run(provider.search_by_title(TitleQuery(title="Dune"))) == []
        assert asyncio.run(provider.search_multi_criteria(MultiCriteriaQuery())) == []

    def test_create_source_for_type(self) -> None:
        """Sources carry the per-type reliability and a timestamp."""
        provider = BaseMetadataProvider(
            "OpenLibrary", reliability={MetadataType.PUBLISHER: 0.65}
        )
        source = provider.create_source(MetadataType.PUBLISHER)
        assert source.name == "OpenLibrary"
        assert source.reliability == pytest.approx(0.65)
        assert source.timestamp is not None

    def test_create_source_without_type_uses_best(self) -> None:
        """Without a type the strongest reliability is used."""
        provider = BaseMetadataProvider("OpenLibrary")
        assert provider.create_source().reliability == max(DEFAULT_RELIABILITY.values())

    def test_repr(self) -> None:
        """repr names the class, provider and priority."""
        assert repr(BaseMetadataProvider("VIAF", priority=70)) == (
            "BaseMetadataProvider(name='VIAF', priority=70)"
        )
