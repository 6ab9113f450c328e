# ABOUTME: MetadataProvider protocol defining the contract for metadata sources.
# ABOUTME: Any external catalog client (Open Library, WikiData, etc.) implements this.

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal, Protocol, runtime_checkable

from shelfmark.metadata.record import MetadataRecord
from shelfmark.metadata.types import MetadataSource, MetadataType

CreatorRole = Literal["author", "editor", "translator", "illustrator"]

# Reliability a provider reports for a field when it does not override it.
DEFAULT_RELIABILITY: dict[MetadataType, float] = {
    MetadataType.TITLE: 0.8,
    MetadataType.AUTHORS: 0.7,
    MetadataType.ISBN: 0.9,
    MetadataType.PUBLICATION_DATE: 0.6,
    MetadataType.SUBJECTS: 0.5,
    MetadataType.DESCRIPTION: 0.4,
    MetadataType.LANGUAGE: 0.7,
    MetadataType.PUBLISHER: 0.6,
    MetadataType.SERIES: 0.5,
    MetadataType.EDITION: 0.5,
    MetadataType.PAGE_COUNT: 0.6,
    MetadataType.PHYSICAL_DIMENSIONS: 0.3,
    MetadataType.COVER_IMAGE: 0.4,
}

_DEFAULT_SUPPORTED = frozenset(
    {
        MetadataType.TITLE,
        MetadataType.AUTHORS,
        MetadataType.ISBN,
        MetadataType.PUBLICATION_DATE,
        MetadataType.PUBLISHER,
        MetadataType.LANGUAGE,
    }
)


@dataclass(frozen=True)
class RateLimitConfig:
    """Per-provider request budget. Times are in milliseconds."""

    max_requests: int = 100
    window_ms: int = 60_000
    request_delay: int = 100


@dataclass(frozen=True)
class TimeoutConfig:
    """Per-call and whole-operation time limits, in milliseconds."""

    request_timeout: int = 10_000
    operation_timeout: int = 30_000


@dataclass(frozen=True)
class TitleQuery:
    title: str
    exact_match: bool = False
    fuzzy: bool = False
    limit: int | None = None


@dataclass(frozen=True)
class CreatorQuery:
    name: str
    role: CreatorRole | None = None
    fuzzy: bool = False
    limit: int | None = None


@dataclass(frozen=True)
class MultiCriteriaQuery:
    """Combined query; every criterion is optional."""

    title: str | None = None
    authors: list[str] = field(default_factory=list)
    isbn: str | None = None
    language: str | None = None
    subjects: list[str] = field(default_factory=list)
    publisher: str | None = None
    year_range: tuple[int, int] | None = None
    fuzzy: bool = False
    limit: int | None = None


@runtime_checkable
class MetadataProvider(Protocol):
    """Protocol for metadata lookup services.

    Implementations expose the four search coroutines, returning provider
    records, plus static descriptors the selection strategy and the
    resilient wrapper read.
    """

    @property
    def name(self) -> str: ...

    @property
    def priority(self) -> int: ...

    @property
    def rate_limit(self) -> RateLimitConfig: ...

    @property
    def timeout(self) -> TimeoutConfig: ...

    async def search_by_title(self, query: TitleQuery) -> list[MetadataRecord]: ...

    async def search_by_isbn(self, isbn: str) -> list[MetadataRecord]: ...

    async def search_by_creator(self, query: CreatorQuery) -> list[MetadataRecord]: ...

    async def search_multi_criteria(self, query: MultiCriteriaQuery) -> list[MetadataRecord]: ...

    def get_reliability_score(self, data_type: MetadataType) -> float: ...

    def supports_data_type(self, data_type: MetadataType) -> bool: ...


class BaseMetadataProvider:
    """Convenience base for provider clients.

    Supplies the static descriptors and the default reliability table. Client
    subclasses override the search coroutines; the defaults return no records.
    """

    def __init__(
        self,
        name: str,
        *,
        priority: int = 50,
        rate_limit: RateLimitConfig | None = None,
        timeout: TimeoutConfig | None = None,
        reliability: dict[MetadataType, float] | None = None,
        supported_data_types: Iterable[MetadataType] | None = None,
    ) -> None:
        self._name = name
        self._priority = priority
        self._rate_limit = rate_limit or RateLimitConfig()
        self._timeout = timeout or TimeoutConfig()
        self._reliability = {**DEFAULT_RELIABILITY, **(reliability or {})}
        self._supported = (
            frozenset(supported_data_types)
            if supported_data_types is not None
            else _DEFAULT_SUPPORTED
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def priority(self) -> int:
        return self._priority

    @property
    def rate_limit(self) -> RateLimitConfig:
        return self._rate_limit

    @property
    def timeout(self) -> TimeoutConfig:
        return self._timeout

    async def search_by_title(self, query: TitleQuery) -> list[MetadataRecord]:
        return []

    async def search_by_isbn(self, isbn: str) -> list[MetadataRecord]:
        return []

    async def search_by_creator(self, query: CreatorQuery) -> list[MetadataRecord]:
        return []

    async def search_multi_criteria(self, query: MultiCriteriaQuery) -> list[MetadataRecord]:
        return []

    def get_reliability_score(self, data_type: MetadataType) -> float:
        return self._reliability.get(data_type, 0.5)

    def supports_data_type(self, data_type: MetadataType) -> bool:
        return data_type in self._supported

    def create_source(self, data_type: MetadataType | None = None) -> MetadataSource:
        """Build a MetadataSource stamped with this provider's reliability."""
        reliability = (
            self.get_reliability_score(data_type)
            if data_type is not None
            else max(self._reliability.values())
        )
        return MetadataSource(
            name=self._name,
            reliability=reliability,
            timestamp=datetime.now(timezone.utc),
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self._name!r}, priority={self._priority})"
