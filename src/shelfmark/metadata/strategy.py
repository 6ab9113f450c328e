# ABOUTME: Provider selection: filters and orders the providers to query for one request.
# ABOUTME: Supports all/priority/fastest/consensus strategies over the MetadataProvider protocol.

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum

from shelfmark.metadata.performance import PerformanceHistory
from shelfmark.metadata.provider import MetadataProvider, MultiCriteriaQuery
from shelfmark.metadata.types import MetadataType

logger = logging.getLogger(__name__)

_FALLBACK_LANGUAGES = ("en",)
_DEFAULT_CONSENSUS_MAX = 3
# A consensus candidate must beat every selected provider by this much on some type.
_CONSENSUS_DIVERSITY_MARGIN = 0.1
_CONSENSUS_MIN_SELECTED = 2

_CONSENSUS_DEFAULT_TYPES = (
    MetadataType.TITLE,
    MetadataType.AUTHORS,
    MetadataType.ISBN,
    MetadataType.PUBLICATION_DATE,
    MetadataType.DESCRIPTION,
)

_INTERNATIONAL = ("en", "es", "fr", "de", "it", "pt", "nl", "pl", "ru", "ja", "zh")

_KNOWN_LANGUAGE_SUPPORT: dict[str, tuple[str, ...]] = {
    "OpenLibrary": (*_INTERNATIONAL, "ar"),
    "WikiData": (*_INTERNATIONAL, "ar", "ko", "hi", "sv", "fi"),
    "LibraryOfCongress": ("en",),
    "ISNI": _INTERNATIONAL,
    "VIAF": _INTERNATIONAL,
}


class UnknownStrategyError(ValueError):
    """Raised when a selection strategy name is not recognised."""


class SelectionStrategy(str, Enum):
    ALL = "all"
    PRIORITY = "priority"
    FASTEST = "fastest"
    CONSENSUS = "consensus"

    @classmethod
    def parse(cls, value: "SelectionStrategy | str") -> "SelectionStrategy":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError as exc:
            msg = f"Unknown strategy: {value}"
            raise UnknownStrategyError(msg) from exc


class LanguageSupportRegistry:
    """Which languages each provider covers well.

    Built once and passed to the selection layer. Providers that were never
    registered are assumed to cover English only.
    """

    def __init__(self, support: dict[str, Iterable[str]] | None = None) -> None:
        self._support: dict[str, tuple[str, ...]] = {}
        for name, languages in (support or {}).items():
            self.register(name, languages)

    @classmethod
    def with_defaults(cls) -> "LanguageSupportRegistry":
        return cls(dict(_KNOWN_LANGUAGE_SUPPORT))

    def register(self, provider_name: str, languages: Iterable[str]) -> None:
        self._support[provider_name] = tuple(lang.lower() for lang in languages)

    def languages_for(self, provider_name: str) -> tuple[str, ...]:
        return self._support.get(provider_name, _FALLBACK_LANGUAGES)


@dataclass(frozen=True)
class SelectionOptions:
    """Filters and limits applied before and after a strategy runs.

    Attributes:
        required_data_types: Providers must support every one of these.
        min_reliability_score: Drop providers below this for any required type.
        exclude_providers: Provider names never to select.
        max_providers: None for no limit, 0 for none, negative is ignored.
        languages: Preferred languages; providers are reordered, never dropped.
        performance_history: Latency source for the "fastest" strategy.
    """

    required_data_types: tuple[MetadataType, ...] = ()
    min_reliability_score: float = 0.0
    exclude_providers: frozenset[str] = frozenset()
    max_providers: int | None = None
    languages: tuple[str, ...] = ()
    performance_history: PerformanceHistory | None = field(default=None, compare=False)


def filter_by_data_type_support(
    providers: Sequence[MetadataProvider], data_types: Iterable[MetadataType]
) -> list[MetadataProvider]:
    """Keep providers that declare support for every requested type."""
    types = list(data_types)
    if not types:
        return list(providers)
    return [p for p in providers if all(p.supports_data_type(t) for t in types)]


def filter_by_reliability(
    providers: Sequence[MetadataProvider],
    data_types: Iterable[MetadataType],
    min_score: float,
) -> list[MetadataProvider]:
    """Drop providers whose reliability for any requested type is below min_score."""
    types = list(data_types)
    if not types or min_score <= 0:
        return list(providers)
    return [
        p for p in providers if all(p.get_reliability_score(t) >= min_score for t in types)
    ]


def filter_by_language_support(
    providers: Sequence[MetadataProvider],
    languages: Iterable[str],
    registry: LanguageSupportRegistry,
) -> list[MetadataProvider]:
    """Reorder providers by how many of the requested languages they cover.

    Never drops a provider. Ties keep the higher-priority provider first.
    """
    wanted = [lang.lower() for lang in languages]
    if not wanted:
        return list(providers)

    def coverage(provider: MetadataProvider) -> float:
        supported = registry.languages_for(provider.name)
        return sum(1 for lang in wanted if lang in supported) / len(wanted)

    return sorted(providers, key=lambda p: (-coverage(p), -p.priority))


def sort_by_priority(providers: Sequence[MetadataProvider]) -> list[MetadataProvider]:
    """Highest priority first; ties keep their incoming order."""
    return sorted(providers, key=lambda p: -p.priority)


def sort_by_speed(
    providers: Sequence[MetadataProvider], history: PerformanceHistory | None
) -> list[MetadataProvider]:
    """Lowest mean latency first, unknown latency last, ties by priority."""
    if history is None:
        return sort_by_priority(providers)

    def latency(provider: MetadataProvider) -> float:
        mean = history.mean_latency(provider.name)
        return mean if mean is not None else float("inf")

    return sorted(providers, key=lambda p: (latency(p), -p.priority))


def relevant_data_types(query: MultiCriteriaQuery) -> list[MetadataType]:
    """Data types a query actually asks about, used to score consensus candidates."""
    types: list[MetadataType] = []
    if query.title:
        types.append(MetadataType.TITLE)
    if query.authors:
        types.append(MetadataType.AUTHORS)
    if query.isbn:
        types.append(MetadataType.ISBN)
    if query.language:
        types.append(MetadataType.LANGUAGE)
    if query.subjects:
        types.append(MetadataType.SUBJECTS)
    if query.publisher:
        types.append(MetadataType.PUBLISHER)
    if query.year_range:
        types.append(MetadataType.PUBLICATION_DATE)
    return types or list(_CONSENSUS_DEFAULT_TYPES)


def select_for_consensus(
    providers: Sequence[MetadataProvider],
    query: MultiCriteriaQuery,
    max_providers: int | None = None,
) -> list[MetadataProvider]:
    """Pick a small, diverse set of providers able to cross-check each other.

    The best-scoring provider is always taken. Further providers are added
    while fewer than two are selected, or when they beat every selected
    provider on some relevant type by a clear margin.
    """
    types = relevant_data_types(query)
    limit = max_providers if max_providers is not None and max_providers >= 0 else None
    if limit is None:
        limit = _DEFAULT_CONSENSUS_MAX

    def mean_reliability(provider: MetadataProvider) -> float:
        return sum(provider.get_reliability_score(t) for t in types) / len(types)

    ranked = sorted(providers, key=lambda p: (-mean_reliability(p), -p.priority))
    if not ranked or limit == 0:
        return []

    selected = [ranked[0]]
    for candidate in ranked[1:]:
        if len(selected) >= limit:
            break
        adds_diversity = any(
            candidate.get_reliability_score(t)
            > max(p.get_reliability_score(t) for p in selected) + _CONSENSUS_DIVERSITY_MARGIN
            for t in types
        )
        if adds_diversity or len(selected) < _CONSENSUS_MIN_SELECTED:
            selected.append(candidate)
    return selected


def select_providers(
    providers: Sequence[MetadataProvider],
    query: MultiCriteriaQuery | None = None,
    strategy: SelectionStrategy | str = SelectionStrategy.PRIORITY,
    options: SelectionOptions | None = None,
    *,
    language_registry: LanguageSupportRegistry | None = None,
) -> list[MetadataProvider]:
    """Choose and order the providers to query.

    Args:
        providers: Candidate providers.
        query: What is being looked up; only consulted by "consensus".
        strategy: One of all, priority, fastest, consensus.
        options: Filters and limits.
        language_registry: Language coverage used when options.languages is set.

    Returns:
        Providers to query, in the order they should be preferred.

    Raises:
        UnknownStrategyError: If the strategy name is not recognised.
    """
    chosen = SelectionStrategy.parse(strategy)
    opts = options or SelectionOptions()
    query = query or MultiCriteriaQuery()

    filtered = _apply_filters(providers, opts, language_registry or LanguageSupportRegistry())

    if chosen in (SelectionStrategy.ALL, SelectionStrategy.PRIORITY):
        selected = sort_by_priority(filtered)
    elif chosen is SelectionStrategy.FASTEST:
        selected = sort_by_speed(filtered, opts.performance_history)
    else:
        selected = select_for_consensus(filtered, query, opts.max_providers)

    if opts.max_providers is not None and opts.max_providers >= 0:
        selected = selected[: opts.max_providers]

    logger.debug(
        "Strategy %s selected %d of %d providers: %s",
        chosen.value,
        len(selected),
        len(providers),
        ", ".join(p.name for p in selected),
    )
    return selected


def _apply_filters(
    providers: Sequence[MetadataProvider],
    options: SelectionOptions,
    registry: LanguageSupportRegistry,
) -> list[MetadataProvider]:
    filtered = [p for p in providers if p.name not in options.exclude_providers]
    if options.required_data_types:
        filtered = filter_by_data_type_support(filtered, options.required_data_types)
        filtered = filter_by_reliability(
            filtered, options.required_data_types, options.min_reliability_score
        )
    if options.languages:
        filtered = filter_by_language_support(filtered, options.languages, registry)
    return filtered
