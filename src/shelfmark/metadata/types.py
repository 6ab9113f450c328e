# ABOUTME: Core metadata data structures shared by providers, reconcilers and the orchestrator.
# ABOUTME: BookMetadata is the baseline/merged record; ReconciledField is every reconciler's output.

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class ReconciliationError(ValueError):
    """Raised when a reconciler is called without any inputs."""


class MetadataType(str, Enum):
    """Kinds of bibliographic data a provider can supply."""

    TITLE = "title"
    AUTHORS = "authors"
    ISBN = "isbn"
    PUBLICATION_DATE = "publicationDate"
    SUBJECTS = "subjects"
    DESCRIPTION = "description"
    LANGUAGE = "language"
    PUBLISHER = "publisher"
    SERIES = "series"
    EDITION = "edition"
    PAGE_COUNT = "pageCount"
    PHYSICAL_DIMENSIONS = "physicalDimensions"
    COVER_IMAGE = "coverImage"


@dataclass
class BookMetadata:
    """Structured metadata for a single book.

    Used both as the baseline handed to enrichment (whatever the ingestion
    step managed to extract) and as the merged result. All fields are optional
    except title, since even a badly-formed upload should have something we
    can call a title.
    """

    title: str
    authors: list[str] = field(default_factory=list)
    language: str | None = None
    publisher: str | None = None
    isbn: str | None = None
    description: str | None = None
    series: str | None = None
    series_index: float | None = None
    publication_date: str | None = None
    page_count: int | None = None
    subjects: list[str] = field(default_factory=list)
    identifiers: dict[str, str] = field(default_factory=dict)

    @property
    def author(self) -> str:
        """Convenience property: joined author string for display."""
        return ", ".join(self.authors) if self.authors else ""


@dataclass(frozen=True)
class PublicationDate:
    """A possibly partial publication date.

    precision is "day", "month", "year" or "unknown" and tells which of the
    numeric parts can be trusted.
    """

    year: int | None = None
    month: int | None = None
    day: int | None = None
    raw: str | None = None
    precision: str = "unknown"

    @property
    def key(self) -> str:
        """Sortable string such as '2001-05-17', '2001-05' or 'unknown'."""
        parts: list[str] = []
        if self.year:
            parts.append(str(self.year))
            if self.month:
                parts.append(f"{self.month:02d}")
                if self.day:
                    parts.append(f"{self.day:02d}")
        return "-".join(parts) or "unknown"


@dataclass(frozen=True)
class MetadataSource:
    """Provenance of a value: which provider said it and how far we trust it."""

    name: str
    reliability: float
    timestamp: datetime | None = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.reliability <= 1.0:
            msg = f"reliability must be between 0.0 and 1.0, got {self.reliability}"
            raise ValueError(msg)


@dataclass(frozen=True)
class ConflictValue:
    """One of the competing values recorded in a Conflict."""

    value: Any
    source: MetadataSource


@dataclass(frozen=True)
class Conflict:
    """Record of normalized-distinct values seen for the same logical field."""

    field: str
    values: list[ConflictValue]
    resolution: str


@dataclass
class ReconciledField(Generic[T]):
    """Result of reconciling one field across sources.

    Attributes:
        value: The chosen value.
        confidence: Trust in the value, in [0.0, 1.0], derived only from the inputs.
        sources: Sources that contributed to value, strongest first.
        reasoning: Human-readable explanation of the choice.
        conflicts: Competing values, or None when the sources agreed.
    """

    value: T
    confidence: float
    sources: list[MetadataSource]
    reasoning: str
    conflicts: list[Conflict] | None = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            msg = f"confidence must be between 0.0 and 1.0, got {self.confidence}"
            raise ValueError(msg)

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflicts)

    @property
    def source_names(self) -> list[str]:
        return [s.name for s in self.sources]


def source_sort_key(source: MetadataSource) -> tuple[float, str]:
    """Ordering key that puts the most reliable source first, ties by name."""
    return (-source.reliability, source.name)
