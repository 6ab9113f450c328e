# ABOUTME: Series parsing and reconciliation: "Dune Chronicles, Book 1" becomes a named, numbered entry.
# ABOUTME: Similar names from different sources merge into one series; standalone claims are weighed.

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field, replace

from shelfmark.metadata.record import SeriesInfo
from shelfmark.metadata.types import (
    Conflict,
    ConflictValue,
    MetadataSource,
    ReconciledField,
    ReconciliationError,
    source_sort_key,
)
from shelfmark.reconcile import policy
from shelfmark.reconcile.similarity import string_similarity

logger = logging.getLogger(__name__)

_MARKER = r"(?:book|bk\.?|vol\.?|volume|part|pt\.?|no\.?|number|#)"
_NUMBER = r"(\d+(?:\.\d+)?|[ivx]+)"
_ORDINAL = (
    r"(first|second|third|fourth|fifth|sixth|seventh|eighth|ninth|tenth|\d+(?:st|nd|rd|th))"
)

# (pattern, volume comes first)
_SERIES_PATTERNS: tuple[tuple[re.Pattern[str], bool], ...] = (
    (re.compile(rf"^(.+?),\s*{_MARKER}\s*{_NUMBER}$", re.IGNORECASE), False),
    (re.compile(rf"^(.+?)\s+{_MARKER}\s*{_NUMBER}$", re.IGNORECASE), False),
    (re.compile(rf"^(.+?)\s*\(\s*{_MARKER}\s*{_NUMBER}\s*\)$", re.IGNORECASE), False),
    (re.compile(rf"^{_MARKER}\s*{_NUMBER}\s+of\s+(?:the\s+)?(.+)$", re.IGNORECASE), True),
    (re.compile(rf"^(.+?)\s+{_ORDINAL}\s+(?:book|volume|part)$", re.IGNORECASE), False),
)

_ARTICLE_RE = re.compile(r"^(?:the|a|an)\s+", re.IGNORECASE)
_SUFFIX_RE = re.compile(r"\s+(?:series|saga|cycle)$", re.IGNORECASE)
_SERIES_CHARS_RE = re.compile(r"[^\w\s\-&']")
_WHITESPACE_RE = re.compile(r"\s+")
_ORDINAL_SUFFIX_RE = re.compile(r"^(\d+)(?:st|nd|rd|th)$")
_DECIMAL_RE = re.compile(r"^\d+(?:\.\d+)?$")

_VOLUME_WORDS: dict[str, int] = {
    word: value
    for words in (
        "one two three four five six seven eight nine ten",
        "first second third fourth fifth sixth seventh eighth ninth tenth",
    )
    for value, word in enumerate(words.split(), 1)
}

_ROMAN_NUMERALS: dict[str, int] = {
    numeral: value
    for value, numeral in enumerate(
        "i ii iii iv v vi vii viii ix x xi xii xiii xiv xv xvi xvii xviii xix xx".split(), 1
    )
}


@dataclass(frozen=True)
class Series:
    """A series a book belongs to.

    series_type is numbered, chronological, anthology, collection or unknown.
    """

    name: str
    normalized: str = ""
    volume: float | None = None
    total_volumes: int | None = None
    series_type: str = "unknown"
    raw: str | None = None

    def __str__(self) -> str:
        if self.volume is None:
            return self.name
        return f"{self.name} #{self.volume:g}"


@dataclass(frozen=True)
class SeriesInput:
    """Series one source reported for a book, or its claim that the book stands alone."""

    source: MetadataSource
    series: list[str | Series | SeriesInfo] = field(default_factory=list)
    standalone: bool = False


def normalize_series_name(name: str) -> str:
    """Comparison form of a series name: lowercase, no leading article or series suffix."""
    text = _ARTICLE_RE.sub("", name.strip())
    text = _SUFFIX_RE.sub("", text)
    text = _SERIES_CHARS_RE.sub(" ", text)
    return _WHITESPACE_RE.sub(" ", text).strip().lower()


def parse_volume_number(text: str) -> float | None:
    """Volume from "3", "2.5", "third", "3rd", "three" or roman numerals up to xx."""
    token = text.strip().lower()
    if not token:
        return None
    if token in _VOLUME_WORDS:
        return float(_VOLUME_WORDS[token])
    ordinal = _ORDINAL_SUFFIX_RE.match(token)
    if ordinal:
        return float(ordinal.group(1))
    if _DECIMAL_RE.match(token):
        return float(token)
    if token in _ROMAN_NUMERALS:
        return float(_ROMAN_NUMERALS[token])
    return None


def extract_series_info(text: str) -> tuple[str, float | None]:
    """Split series text into its name and volume, e.g. "Book 2 of Dune" -> ("Dune", 2.0).

    Text with no recognizable volume marker is returned whole as the name.
    """
    trimmed = text.strip()
    for pattern, volume_first in _SERIES_PATTERNS:
        match = pattern.match(trimmed)
        if match:
            first, second = match.groups()
            name, volume = (second, first) if volume_first else (first, second)
            return name.strip(), parse_volume_number(volume)
    return trimmed, None


def detect_series_type(name: str, volume: float | None) -> str:
    lower = name.lower()
    if "anthology" in lower:
        return "anthology"
    if any(word in lower for word in ("collection", "omnibus", "complete")):
        return "collection"
    if volume is not None:
        return "numbered"
    if any(word in lower for word in ("chronicles", "saga", "cycle")):
        return "chronological"
    return "unknown"


def normalize_series(value: str | Series | SeriesInfo) -> Series:
    if isinstance(value, str):
        name, volume = extract_series_info(value)
        raw: str | None = value.strip()
    elif isinstance(value, SeriesInfo):
        # Providers often leave the volume inside the name.
        if value.volume is None:
            name, volume = extract_series_info(value.name)
        else:
            name, volume = value.name.strip(), value.volume
        raw = value.name.strip()
    else:
        series_type = value.series_type
        if series_type == "unknown":
            series_type = detect_series_type(value.name, value.volume)
        return replace(
            value,
            normalized=value.normalized or normalize_series_name(value.name),
            series_type=series_type,
            raw=value.raw or value.name,
        )
    return Series(
        name=name,
        normalized=normalize_series_name(name),
        volume=volume,
        series_type=detect_series_type(name, volume),
        raw=raw or name,
    )


def _completeness(series: Series) -> float:
    score = policy.SERIES_COMPLETENESS_BASE
    if series.volume is not None:
        score += policy.SERIES_COMPLETENESS_STEP
    if series.series_type != "unknown":
        score += policy.SERIES_COMPLETENESS_STEP
    if series.total_volumes:
        score += policy.SERIES_COMPLETENESS_STEP
    return score


def _merge_group(group: list[tuple[Series, MetadataSource]]) -> Series:
    """The most reliable entry, with gaps filled from the others."""
    merged = group[0][0]
    for other, _ in group[1:]:
        if merged.volume is None and other.volume is not None:
            merged = replace(merged, volume=other.volume)
        if merged.total_volumes is None and other.total_volumes:
            merged = replace(merged, total_volumes=other.total_volumes)
        if merged.series_type == "unknown" and other.series_type != "unknown":
            merged = replace(merged, series_type=other.series_type)
    return merged


def reconcile_series(inputs: Sequence[SeriesInput]) -> ReconciledField[list[Series]]:
    """Group similar series names across sources and merge each group.

    Sources that mark the book as standalone are weighed against those that
    report a series; when their combined reliability is greater the result is
    an empty list with a conflict recording both sides.

    Raises:
        ReconciliationError: If inputs is empty.
    """
    if not inputs:
        raise ReconciliationError("No series inputs to reconcile")

    entries: list[tuple[Series, MetadataSource]] = []
    for entry in inputs:
        for value in entry.series:
            series = normalize_series(value)
            if series.normalized:
                entries.append((series, entry.source))
    entries.sort(key=lambda item: (*source_sort_key(item[1]), item[0].normalized))

    standalone = sorted(
        {entry.source for entry in inputs if entry.standalone and not entry.series},
        key=source_sort_key,
    )

    if not entries:
        if standalone:
            return ReconciledField(
                value=[],
                confidence=sum(s.reliability for s in standalone) / len(standalone),
                sources=standalone,
                reasoning="Sources agree the book is not part of a series",
            )
        return ReconciledField(
            value=[],
            confidence=policy.NO_DATA_CONFIDENCE,
            sources=[],
            reasoning="No valid series information found",
        )

    groups: list[list[tuple[Series, MetadataSource]]] = []
    for series, source in entries:
        group = next(
            (
                g
                for g in groups
                if string_similarity(series.normalized, g[0][0].normalized)
                > policy.SERIES_GROUP_THRESHOLD
            ),
            None,
        )
        if group is None:
            groups.append([(series, source)])
        else:
            group.append((series, source))

    merged = sorted(
        (_merge_group(group) for group in groups),
        key=lambda s: (s.volume is None, s.volume or 0.0, s.normalized),
    )
    series_sources = sorted({source for _, source in entries}, key=source_sort_key)

    if standalone:
        series_weight = sum(s.reliability for s in series_sources)
        standalone_weight = sum(s.reliability for s in standalone)
        values = [ConflictValue(value=[], source=s) for s in standalone] + [
            ConflictValue(value=series, source=source) for series, source in entries
        ]
        if standalone_weight > series_weight:
            logger.debug("Standalone claim outweighs %d series reports", len(entries))
            return ReconciledField(
                value=[],
                confidence=standalone_weight / (standalone_weight + series_weight),
                sources=standalone,
                reasoning="More reliable sources mark the book as standalone",
                conflicts=[
                    Conflict(
                        field="series",
                        values=values,
                        resolution="Treated as standalone by reliability weight",
                    )
                ],
            )
        conflicts = [
            Conflict(
                field="series",
                values=values,
                resolution="Kept series reported by more reliable sources",
            )
        ]
    else:
        conflicts = None

    average_reliability = sum(s.reliability for s in series_sources) / len(series_sources)
    completeness = sum(_completeness(s) for s in merged) / len(merged)
    confidence = max(policy.NO_DATA_CONFIDENCE, min(1.0, average_reliability * completeness))
    return ReconciledField(
        value=merged,
        confidence=confidence,
        sources=series_sources,
        reasoning=f"Reconciled {len(merged)} series from {len(series_sources)} sources",
        conflicts=conflicts,
    )
