# ABOUTME: MetadataRecord is one provider's candidate answer for one query.
# ABOUTME: Records are produced by provider clients and consumed read-only by the reconcilers.

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from shelfmark.metadata.types import BookMetadata


@dataclass(frozen=True)
class SeriesInfo:
    """Series membership as reported by a provider."""

    name: str
    volume: float | None = None


@dataclass(frozen=True)
class MetadataRecord:
    """A candidate metadata result from an external source.

    Carries whatever subset of fields the provider could fill, plus the
    provider's own confidence that the record answers the query.
    """

    id: str
    source: str
    confidence: float
    timestamp: datetime | None = None
    title: str | None = None
    authors: list[str] = field(default_factory=list)
    isbn: list[str] = field(default_factory=list)
    publication_date: str | None = None
    publisher: str | None = None
    place: str | None = None
    language: str | None = None
    page_count: int | None = None
    dimensions: str | None = None
    weight: float | str | None = None
    binding: str | None = None
    description: str | None = None
    subjects: list[str] = field(default_factory=list)
    series: SeriesInfo | None = None
    edition: str | None = None
    cover_image: str | None = None
    provider_data: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            msg = f"confidence must be between 0.0 and 1.0, got {self.confidence}"
            raise ValueError(msg)

    def to_book_metadata(self) -> BookMetadata:
        """Flatten the record into a BookMetadata for candidate scoring."""
        return BookMetadata(
            title=self.title or "",
            authors=list(self.authors),
            language=self.language,
            publisher=self.publisher,
            isbn=self.isbn[0] if self.isbn else None,
            description=self.description,
            series=self.series.name if self.series else None,
            series_index=self.series.volume if self.series else None,
            publication_date=self.publication_date,
            page_count=self.page_count,
            subjects=list(self.subjects),
        )
