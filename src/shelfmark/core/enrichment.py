# ABOUTME: Enrichment orchestrator: fans out to selected providers, reconciles what comes back,
# ABOUTME: and merges the result into the baseline metadata with per-field confidence.

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from statistics import fmean
from typing import Any

from shelfmark.metadata.normalizer import clean_baseline, normalize_creator_name, normalize_title
from shelfmark.metadata.performance import PerformanceHistory
from shelfmark.metadata.provider import DEFAULT_RELIABILITY, MetadataProvider, MultiCriteriaQuery
from shelfmark.metadata.record import MetadataRecord
from shelfmark.metadata.resilience import (
    Degraded,
    ErrorKind,
    FailureCause,
    Ok,
    ProviderOutcome,
    RateLimiterRegistry,
    ResilientProvider,
    RetryPolicy,
)
from shelfmark.metadata.scoring import contradicts_baseline, rank_records
from shelfmark.metadata.strategy import (
    LanguageSupportRegistry,
    SelectionOptions,
    SelectionStrategy,
    select_providers,
)
from shelfmark.metadata.types import BookMetadata, MetadataSource, MetadataType, ReconciledField
from shelfmark.reconcile.content import ContentInput, reconcile_cover_images, reconcile_descriptions
from shelfmark.reconcile.dates import parse_publication_date, reconcile_dates
from shelfmark.reconcile.editions import (
    Edition,
    EditionSelection,
    EditionSelectorConfig,
    select_best_edition,
)
from shelfmark.reconcile.fields import reconcile_subjects, reconcile_values
from shelfmark.reconcile.identifiers import IdentifierInput, reconcile_identifiers
from shelfmark.reconcile.physical import (
    PhysicalInput,
    reconcile_dimensions,
    reconcile_formats,
    reconcile_page_counts,
    reconcile_weights,
)
from shelfmark.reconcile.places import reconcile_places
from shelfmark.reconcile.publishers import PublicationInput, reconcile_publishers
from shelfmark.reconcile.series import SeriesInput, reconcile_series

logger = logging.getLogger(__name__)

ReliabilityLookup = Callable[[str, MetadataType], float]

# Field name -> provider data type whose reliability weighs it.
_FIELD_TYPES: dict[str, MetadataType] = {
    "title": MetadataType.TITLE,
    "authors": MetadataType.AUTHORS,
    "identifiers": MetadataType.ISBN,
    "publisher": MetadataType.PUBLISHER,
    "place": MetadataType.PUBLISHER,
    "publication_date": MetadataType.PUBLICATION_DATE,
    "language": MetadataType.LANGUAGE,
    "page_count": MetadataType.PAGE_COUNT,
    "dimensions": MetadataType.PHYSICAL_DIMENSIONS,
    "weight": MetadataType.PHYSICAL_DIMENSIONS,
    "format": MetadataType.EDITION,
    "series": MetadataType.SERIES,
    "subjects": MetadataType.SUBJECTS,
    "description": MetadataType.DESCRIPTION,
    "cover_image": MetadataType.COVER_IMAGE,
}


@dataclass(frozen=True)
class EnrichmentOptions:
    """How an enrichment run selects providers and applies what they return.

    Attributes:
        strategy: Provider selection strategy name.
        selection: Filters and limits for provider selection.
        overall_timeout: Seconds before pending provider calls are cancelled; None waits.
        min_confidence: Reconciled fields below this are not applied.
        fill_missing_only: Keep baseline values that are already present.
        min_record_score: Records whose shared fields agree with the baseline less than
            this are treated as a different book and ignored.
        retry: Retry policy for every provider call.
        edition: Edition selection tuning.
    """

    strategy: SelectionStrategy | str = SelectionStrategy.PRIORITY
    selection: SelectionOptions = field(default_factory=SelectionOptions)
    overall_timeout: float | None = 30.0
    min_confidence: float = 0.5
    fill_missing_only: bool = True
    min_record_score: float = 0.5
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    edition: EditionSelectorConfig = field(default_factory=EditionSelectorConfig)

    def __post_init__(self) -> None:
        if not 0.0 <= self.min_confidence <= 1.0:
            msg = f"min_confidence must be between 0.0 and 1.0, got {self.min_confidence}"
            raise ValueError(msg)
        if self.overall_timeout is not None and self.overall_timeout <= 0:
            msg = f"overall_timeout must be positive, got {self.overall_timeout}"
            raise ValueError(msg)


@dataclass(frozen=True)
class EnrichmentSummary:
    providers_queried: int = 0
    providers_succeeded: int = 0
    providers_degraded: int = 0
    providers_timed_out: int = 0
    records_received: int = 0
    fields_enriched: int = 0
    mean_confidence: float = 0.0


@dataclass
class RecordReconciliation:
    """Reconciled fields for one book plus the records they were drawn from."""

    fields: dict[str, ReconciledField[Any]]
    records: list[MetadataRecord]
    edition: EditionSelection | None = None


@dataclass
class EnrichmentResult:
    merged: BookMetadata
    fields: dict[str, ReconciledField[Any]]
    sources: list[str]
    confidence: float
    outcomes: list[ProviderOutcome] = field(default_factory=list)
    edition: EditionSelection | None = None
    summary: EnrichmentSummary = field(default_factory=EnrichmentSummary)
    applied_fields: list[str] = field(default_factory=list)


def default_reliability(source: str, data_type: MetadataType) -> float:
    return DEFAULT_RELIABILITY.get(data_type, 0.5)


def _source_for(
    record: MetadataRecord, data_type: MetadataType, reliability: ReliabilityLookup
) -> MetadataSource:
    score = max(0.0, min(1.0, reliability(record.source, data_type)))
    return MetadataSource(name=record.source, reliability=score, timestamp=record.timestamp)


def _keep(fields: dict[str, ReconciledField[Any]], name: str, result: ReconciledField[Any]) -> None:
    if result.sources:
        fields[name] = result


def _authors_key(authors: list[str]) -> tuple[str, ...]:
    return tuple(normalize_creator_name(a) for a in authors)


def _extra_identifiers(record: MetadataRecord) -> list[str]:
    extra = record.provider_data.get("identifiers", [])
    if not isinstance(extra, list):
        return []
    return [value for value in extra if isinstance(value, str)]


def _fallback_edition(fields: dict[str, ReconciledField[Any]]) -> Edition:
    def value(name: str) -> Any:
        result = fields.get(name)
        return result.value if result else None

    identifiers = value("identifiers") or []
    publisher = value("publisher")
    date = value("publication_date")
    return Edition(
        id="reconciled",
        title=value("title"),
        language=value("language"),
        publication_date=date if date and date.precision != "unknown" else None,
        publisher=publisher.name if publisher and publisher.name else None,
        isbn=tuple(i.normalized for i in identifiers if i.type == "isbn" and i.valid),
        page_count=value("page_count"),
    )


def reconcile_records(
    records: Sequence[MetadataRecord],
    *,
    reliability: ReliabilityLookup = default_reliability,
    language: str | None = None,
    edition_config: EditionSelectorConfig | None = None,
) -> RecordReconciliation:
    """Reconcile every field the records carry.

    Records are treated as describing the same book; callers drop records
    about other books first. Fields no record reports are absent from the result.
    """
    fields: dict[str, ReconciledField[Any]] = {}
    if not records:
        return RecordReconciliation(fields=fields, records=[])

    def pairs(attr: str, data_type: MetadataType) -> list[tuple[Any, MetadataSource]]:
        return [
            (getattr(r, attr), _source_for(r, data_type, reliability))
            for r in records
            if getattr(r, attr)
        ]

    def source(record: MetadataRecord, name: str) -> MetadataSource:
        return _source_for(record, _FIELD_TYPES[name], reliability)

    if titles := pairs("title", MetadataType.TITLE):
        _keep(fields, "title", reconcile_values("title", titles, key=normalize_title))
    if authors := pairs("authors", MetadataType.AUTHORS):
        _keep(fields, "authors", reconcile_values("authors", authors, key=_authors_key))

    ident_inputs = [
        IdentifierInput(
            source=source(r, "identifiers"), isbn=list(r.isbn), identifiers=_extra_identifiers(r)
        )
        for r in records
        if r.isbn or _extra_identifiers(r)
    ]
    if ident_inputs:
        _keep(fields, "identifiers", reconcile_identifiers(ident_inputs))

    publishers = [
        PublicationInput(source=source(r, "publisher"), publisher=r.publisher)
        for r in records
        if r.publisher
    ]
    if publishers:
        _keep(fields, "publisher", reconcile_publishers(publishers))
    places = [
        PublicationInput(source=source(r, "place"), place=r.place) for r in records if r.place
    ]
    if places:
        _keep(fields, "place", reconcile_places(places))
    dates = [
        PublicationInput(source=source(r, "publication_date"), date=r.publication_date)
        for r in records
        if r.publication_date
    ]
    if dates:
        reference_year = edition_config.reference_year if edition_config else None
        _keep(fields, "publication_date", reconcile_dates(dates, reference_year=reference_year))

    if languages := pairs("language", MetadataType.LANGUAGE):
        _keep(fields, "language", reconcile_values("language", languages))
    pages = [
        PhysicalInput(source=source(r, "page_count"), page_count=r.page_count)
        for r in records
        if r.page_count
    ]
    if pages:
        _keep(fields, "page_count", reconcile_page_counts(pages))
    sizes = [
        PhysicalInput(source=source(r, "dimensions"), dimensions=r.dimensions)
        for r in records
        if r.dimensions
    ]
    if sizes:
        _keep(fields, "dimensions", reconcile_dimensions(sizes))
    formats = [
        PhysicalInput(source=source(r, "format"), format=r.edition, binding=r.binding)
        for r in records
        if r.edition or r.binding
    ]
    if formats:
        _keep(fields, "format", reconcile_formats(formats))
    weights = [
        PhysicalInput(source=source(r, "weight"), weight=r.weight)
        for r in records
        if r.weight
    ]
    if weights:
        _keep(fields, "weight", reconcile_weights(weights))

    series = [
        SeriesInput(
            source=source(r, "series"),
            series=[r.series] if r.series else [],
            standalone=bool(r.provider_data.get("standalone")),
        )
        for r in records
        if r.series or r.provider_data.get("standalone")
    ]
    if series:
        _keep(fields, "series", reconcile_series(series))
    if subjects := pairs("subjects", MetadataType.SUBJECTS):
        _keep(fields, "subjects", reconcile_subjects(subjects))

    descriptions = [
        ContentInput(source=source(r, "description"), descriptions=[r.description])
        for r in records
        if r.description
    ]
    if descriptions:
        _keep(fields, "description", reconcile_descriptions(descriptions))
    covers = [
        ContentInput(source=source(r, "cover_image"), cover_images=[r.cover_image])
        for r in records
        if r.cover_image
    ]
    if covers:
        _keep(fields, "cover_image", reconcile_cover_images(covers))

    editions = [
        Edition(
            id=f"{r.source}:{r.id}",
            title=r.title,
            format=r.edition,
            language=r.language,
            publication_date=parse_publication_date(r.publication_date)
            if r.publication_date
            else None,
            publisher=r.publisher,
            isbn=tuple(r.isbn),
            page_count=r.page_count,
        )
        for r in records
        if r.edition
    ]
    reconciled_language = fields["language"].value if "language" in fields else language
    edition = select_best_edition(
        editions,
        language=reconciled_language,
        config=edition_config,
        fallback=_fallback_edition(fields),
    )
    return RecordReconciliation(fields=fields, records=list(records), edition=edition)


def _field_updates(fields: dict[str, ReconciledField[Any]]) -> dict[str, Any]:
    """Translate reconciled values into BookMetadata attribute values."""
    updates: dict[str, Any] = {}
    for name in ("title", "authors", "language", "page_count", "subjects"):
        if name in fields and fields[name].value:
            updates[name] = fields[name].value
    if "publisher" in fields and fields["publisher"].value.name:
        updates["publisher"] = fields["publisher"].value.name
    if "publication_date" in fields and fields["publication_date"].value.precision != "unknown":
        updates["publication_date"] = fields["publication_date"].value.key
    if "description" in fields and fields["description"].value.text:
        updates["description"] = fields["description"].value.text
    if "series" in fields and fields["series"].value:
        updates["series"] = fields["series"].value[0].name
        updates["series_index"] = fields["series"].value[0].volume
    if "identifiers" in fields:
        valid = [i for i in fields["identifiers"].value if i.valid]
        isbns = [i.normalized for i in valid if i.type == "isbn"]
        if isbns:
            updates["isbn"] = isbns[0]
        others: dict[str, str] = {}
        for ident in valid:
            if ident.type != "isbn":
                others.setdefault(ident.type, ident.normalized)
        if others:
            updates["identifiers"] = others
    return updates


_FIELD_FOR_ATTR = {
    "series_index": "series",
    "isbn": "identifiers",
}


def merge_into_baseline(
    baseline: BookMetadata,
    fields: dict[str, ReconciledField[Any]],
    *,
    fill_missing_only: bool = True,
    min_confidence: float = 0.5,
) -> tuple[BookMetadata, list[str]]:
    """Apply reconciled fields to the baseline.

    Returns the merged metadata and the names of the attributes that changed.
    """
    changes: dict[str, Any] = {}
    for attr, value in _field_updates(fields).items():
        field_name = _FIELD_FOR_ATTR.get(attr, attr)
        if fields[field_name].confidence < min_confidence:
            continue
        current = getattr(baseline, attr)
        if attr == "identifiers":
            value = {**value, **current} if fill_missing_only else {**current, **value}
        elif fill_missing_only and current:
            continue
        if value != current:
            changes[attr] = value
    if not changes:
        return baseline, []
    return replace(baseline, **changes), sorted(changes)


def _select_records(
    baseline: BookMetadata, records: Sequence[MetadataRecord], min_agreement: float
) -> list[MetadataRecord]:
    """Records about the baseline's book, one per provider.

    Only records that contradict the baseline are dropped; a record with the
    baseline ISBN in either form always stays, as does one sharing no field
    with a sparse baseline. Each provider keeps its best-scoring record so no
    provider votes twice.
    """
    kept = [r for r in records if not contradicts_baseline(baseline, r, min_agreement)]
    if len(kept) < len(records):
        logger.debug(
            "Ignoring %d of %d records that describe a different book",
            len(records) - len(kept),
            len(records),
        )
    per_provider: dict[str, MetadataRecord] = {}
    for record, _ in rank_records(baseline, kept):
        per_provider.setdefault(record.source, record)
    return [per_provider[name] for name in sorted(per_provider)]



def _build_query(baseline: BookMetadata) -> MultiCriteriaQuery:
    return MultiCriteriaQuery(
        title=baseline.title or None,
        authors=list(baseline.authors),
        isbn=baseline.isbn,
        language=baseline.language,
        publisher=baseline.publisher,
        subjects=list(baseline.subjects),
    )


async def _query_provider(wrapper: ResilientProvider, query: MultiCriteriaQuery) -> ProviderOutcome:
    """Ask by ISBN first, then by the combined criteria when that finds nothing."""
    first: ProviderOutcome | None = None
    if query.isbn:
        first = await wrapper.search_by_isbn(query.isbn)
        if first.records:
            return first
    if not query.title and not query.authors:
        return first or Ok(provider=wrapper.name, records=[], attempts=0)
    second = await wrapper.search_multi_criteria(replace(query, isbn=None))
    if first is None:
        return second
    elapsed = first.elapsed + second.elapsed
    attempts = first.attempts + second.attempts
    if isinstance(second, Ok):
        return replace(second, elapsed=elapsed, attempts=attempts)
    earlier = first.causes if isinstance(first, Degraded) else []
    return replace(second, causes=[*earlier, *second.causes], elapsed=elapsed, attempts=attempts)


async def enrich(
    baseline: BookMetadata,
    providers: Sequence[MetadataProvider],
    options: EnrichmentOptions | None = None,
    *,
    language_registry: LanguageSupportRegistry | None = None,
    rate_limiters: RateLimiterRegistry | None = None,
    history: PerformanceHistory | None = None,
) -> EnrichmentResult:
    """Enrich baseline metadata from external providers.

    Selected providers are queried concurrently. When overall_timeout
    elapses, calls still pending are cancelled and reconciliation proceeds
    with whatever arrived. Provider failures never raise; they show up as
    Degraded outcomes.

    Args:
        baseline: Metadata already extracted for the book.
        providers: Candidate providers.
        options: Selection, timeout and merge settings.
        language_registry: Language coverage for provider ordering.
        rate_limiters: Shared per-provider limiters; a private registry is used when omitted.
        history: Call history read by "fastest" and updated with every call.

    Raises:
        UnknownStrategyError: If options.strategy is not a known strategy.
    """
    options = options or EnrichmentOptions()
    rate_limiters = rate_limiters if rate_limiters is not None else RateLimiterRegistry()
    history = history if history is not None else PerformanceHistory()
    cleaned = clean_baseline(baseline)
    query = _build_query(cleaned)

    selection = options.selection
    if selection.performance_history is None:
        selection = replace(selection, performance_history=history)
    selected = select_providers(
        providers,
        query,
        options.strategy,
        selection,
        language_registry=language_registry,
    )
    by_name = {p.name: p for p in selected}
    logger.info("Enriching %r with %d providers", cleaned.title, len(selected))

    wrappers = [
        ResilientProvider(p, limiter=rate_limiters.get(p), retry=options.retry) for p in selected
    ]
    tasks = {
        asyncio.create_task(_query_provider(w, query), name=w.name): w.name for w in wrappers
    }
    outcomes: list[ProviderOutcome] = []
    if tasks:
        done, pending = await asyncio.wait(tasks, timeout=options.overall_timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning(
                "Enrichment timed out after %.1fs; cancelled %s",
                options.overall_timeout,
                ", ".join(sorted(tasks[t] for t in pending)),
            )
        for task, name in tasks.items():
            if task in pending or task.cancelled():
                cause = FailureCause(ErrorKind.TIMEOUT, "operation timed out", 0)
            elif task.exception() is not None:
                logger.error("Provider %s crashed: %s", name, task.exception())
                cause = FailureCause(ErrorKind.FATAL, repr(task.exception()), 0)
            else:
                cause = None

            if cause is None:
                outcome = task.result()
            else:
                outcome = Degraded(
                    provider=name,
                    records=[],
                    causes=[cause],
                    elapsed=options.overall_timeout or 0.0,
                )
            history.record(name, outcome.elapsed, succeeded=outcome.succeeded)
            outcomes.append(outcome)
    outcomes.sort(key=lambda o: o.provider)

    def reliability(source: str, data_type: MetadataType) -> float:
        provider = by_name.get(source)
        if provider is None:
            return default_reliability(source, data_type)
        return provider.get_reliability_score(data_type)

    records = [record for outcome in outcomes for record in outcome.records]
    selected = _select_records(cleaned, records, options.min_record_score)
    reconciled = reconcile_records(
        selected,
        reliability=reliability,
        language=cleaned.language,
        edition_config=options.edition,
    )
    merged, applied = merge_into_baseline(
        cleaned,
        reconciled.fields,
        fill_missing_only=options.fill_missing_only,
        min_confidence=options.min_confidence,
    )

    confidences = [f.confidence for f in reconciled.fields.values()]
    confidence = fmean(confidences) if confidences else 0.0
    summary = EnrichmentSummary(
        providers_queried=len(outcomes),
        providers_succeeded=sum(1 for o in outcomes if o.succeeded),
        providers_degraded=sum(1 for o in outcomes if not o.succeeded),
        providers_timed_out=sum(1 for o in outcomes if isinstance(o, Degraded) and o.timed_out),
        records_received=len(records),
        fields_enriched=len(applied),
        mean_confidence=confidence,
    )
    logger.info(
        "Enriched %r: %d fields from %d/%d providers",
        merged.title,
        summary.fields_enriched,
        summary.providers_succeeded,
        summary.providers_queried,
    )
    return EnrichmentResult(
        merged=merged,
        fields=reconciled.fields,
        sources=sorted({r.source for r in selected}),
        confidence=confidence,
        outcomes=outcomes,
        edition=reconciled.edition,
        summary=summary,
        applied_fields=applied,
    )


def enrich_sync(
    baseline: BookMetadata,
    providers: Sequence[MetadataProvider],
    options: EnrichmentOptions | None = None,
    **kwargs: Any,
) -> EnrichmentResult:
    """Run enrich() to completion from synchronous code."""
    return asyncio.run(enrich(baseline, providers, options, **kwargs))
