# ABOUTME: Publisher name normalization against a curated imprint/alias table, and reconciliation.
# ABOUTME: "Bantam Books" and "Penguin" both normalize to "penguin random house".

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass

from shelfmark.metadata.types import (
    Conflict,
    ConflictValue,
    MetadataSource,
    PublicationDate,
    ReconciledField,
    ReconciliationError,
    source_sort_key,
)
from shelfmark.reconcile import policy
from shelfmark.reconcile.similarity import string_similarity

logger = logging.getLogger(__name__)

_ARTICLE_RE = re.compile(r"^(the|a|an)\s+")
_CORPORATE_SUFFIX_RE = re.compile(r"[\s,]+(inc\.?|corp\.?|co\.?|ltd\.?|llc)$")
_PUBLISHING_SUFFIX_RE = re.compile(
    r"\s+(publishers?|publishing|press|books?|company)([\s,]+(inc\.?|corp\.?|co\.?|ltd\.?|llc))?$"
)
_SPECIAL_CHARS_RE = re.compile(r"[^\w\s&-]")
_WHITESPACE_RE = re.compile(r"\s+")

_ABBREVIATIONS: dict[str, str] = {
    "inc": "incorporated",
    "corp": "corporation",
    "co": "company",
    "ltd": "limited",
    "llc": "limited liability company",
    "pub": "publishing",
    "publ": "publishing",
    "publs": "publishing",
    "publishers": "publishing",
    "book": "books",
    "univ": "university",
    "u": "university",
    "assoc": "association",
    "assn": "association",
    "soc": "society",
    "inst": "institute",
    "intl": "international",
    "natl": "national",
    "acad": "academic",
    "dept": "department",
    "govt": "government",
    "gov": "government",
}

# Canonical name -> imprints and spellings that belong to it. First match wins.
PUBLISHER_ALIASES: dict[str, tuple[str, ...]] = {
    "penguin random house": (
        "penguin",
        "random house",
        "bantam",
        "dell",
        "doubleday",
        "knopf",
        "pantheon",
        "vintage",
    ),
    "harpercollins": (
        "harper",
        "collins",
        "harper & row",
        "harper collins",
        "harpercollins publishers",
    ),
    "simon & schuster": (
        "simon and schuster",
        "simon schuster",
        "scribner",
        "atria",
        "pocket books",
    ),
    "macmillan": (
        "macmillan publishers",
        "st martins press",
        "farrar straus giroux",
        "henry holt",
        "tor",
    ),
    "hachette": ("hachette book group", "little brown", "grand central", "orbit", "yen press"),
    "oxford university press": ("oxford", "oup", "oxford univ press", "oxford university"),
    "cambridge university press": (
        "cambridge",
        "cup",
        "cambridge univ press",
        "cambridge university",
    ),
    "harvard university press": ("harvard", "harvard univ press", "harvard university"),
    "yale university press": ("yale", "yale univ press", "yale university"),
    "princeton university press": ("princeton", "princeton univ press", "princeton university"),
    "university of chicago press": ("chicago", "univ of chicago", "university chicago"),
    "mit press": ("massachusetts institute of technology", "mit", "mass inst tech"),
    "norton": ("w w norton", "ww norton", "norton & company"),
    "wiley": ("john wiley", "wiley & sons", "wiley-blackwell", "jossey-bass"),
    "springer": ("springer-verlag", "springer nature", "springer science"),
    "elsevier": ("elsevier science", "academic press", "morgan kaufmann"),
    "pearson": ("pearson education", "addison-wesley", "prentice hall", "benjamin cummings"),
    "mcgraw-hill": ("mcgraw hill", "mcgraw-hill education", "mcgraw hill education"),
    "cengage": ("cengage learning", "thomson", "wadsworth", "brookscole"),
    "sage": ("sage publications", "sage publishing"),
    "routledge": ("taylor & francis", "taylor and francis", "crc press"),
    "bloomsbury": ("bloomsbury publishing", "bloomsbury academic"),
    "scholastic": ("scholastic inc", "scholastic press", "scholastic corporation"),
}


@dataclass(frozen=True)
class Publisher:
    name: str
    normalized: str
    location: str | None = None


@dataclass(frozen=True)
class PublicationInput:
    """Publication facts one source reported; any part may be missing."""

    source: MetadataSource
    publisher: str | Publisher | None = None
    place: str | None = None
    date: str | PublicationDate | None = None


def _strip_suffixes(name: str) -> str:
    text = name.lower().strip()
    text = _ARTICLE_RE.sub("", text)
    text = _CORPORATE_SUFFIX_RE.sub("", text)
    text = _PUBLISHING_SUFFIX_RE.sub("", text)
    text = _PUBLISHING_SUFFIX_RE.sub("", text)
    text = _SPECIAL_CHARS_RE.sub("", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def _expand_abbreviations(text: str) -> str:
    return " ".join(_ABBREVIATIONS.get(word, word) for word in text.split())


def _alias_pattern(alias: str) -> re.Pattern[str]:
    return re.compile(rf"(?<![\w&-]){re.escape(alias)}(?![\w&-])")


# Aliases are compared in normalized form, so they get the same suffix stripping.
_ALIAS_PATTERNS: tuple[tuple[str, tuple[tuple[str, re.Pattern[str]], ...]], ...] = tuple(
    (
        canonical,
        tuple(
            (form, _alias_pattern(form))
            for form in dict.fromkeys(
                _expand_abbreviations(_strip_suffixes(alias)) for alias in aliases
            )
            if form
        ),
    )
    for canonical, aliases in PUBLISHER_ALIASES.items()
)


def _canonical_for(normalized: str) -> str | None:
    for canonical, aliases in _ALIAS_PATTERNS:
        if normalized == canonical:
            return canonical
        for alias, pattern in aliases:
            if pattern.search(normalized):
                return canonical
            if string_similarity(normalized, alias) > policy.PUBLISHER_FUZZY_THRESHOLD:
                return canonical
    return None


def normalize_publisher_name(name: str | None) -> str:
    """Normalize a publisher name to its comparison key.

    Lower-cases, drops articles and corporate or publishing suffixes, expands
    abbreviations, then maps known imprints onto their parent publisher.
    """
    if not name or not name.strip():
        return ""
    text = _expand_abbreviations(_strip_suffixes(name))
    return _canonical_for(text) or text


def normalize_publisher(value: str | Publisher) -> Publisher:
    if isinstance(value, Publisher):
        normalized = value.normalized or normalize_publisher_name(value.name)
        return Publisher(name=value.name, normalized=normalized, location=value.location)
    return Publisher(name=value, normalized=normalize_publisher_name(value))


def is_known_publisher(normalized: str) -> bool:
    return normalized in PUBLISHER_ALIASES


def publisher_confidence(publisher: Publisher, source: MetadataSource) -> float:
    """Source reliability adjusted for name quality and well-known publishers."""
    confidence = source.reliability
    name = publisher.name.strip()
    if not name:
        confidence *= policy.PUBLISHER_EMPTY_FACTOR
    elif len(name) < policy.PUBLISHER_SHORT_NAME_LENGTH:
        confidence *= policy.PUBLISHER_SHORT_NAME_FACTOR
    elif publisher.normalized and publisher.normalized != publisher.name.lower():
        confidence *= policy.PUBLISHER_NORMALIZED_FACTOR

    if publisher.normalized and is_known_publisher(publisher.normalized):
        confidence *= policy.PUBLISHER_KNOWN_FACTOR
    return max(0.0, min(1.0, confidence))


def _candidate_key(item: tuple[Publisher, MetadataSource]) -> tuple:
    publisher, source = item
    return (*source_sort_key(source), publisher.normalized, publisher.name)


def reconcile_publishers(inputs: Sequence[PublicationInput]) -> ReconciledField[Publisher]:
    """Pick one publisher from several sources.

    Names are grouped by normalized form; the most reliable source's name
    wins, and differing groups are recorded as a Conflict.

    Raises:
        ReconciliationError: If inputs is empty.
    """
    if not inputs:
        raise ReconciliationError("No publishers to reconcile")

    candidates: list[tuple[Publisher, MetadataSource]] = []
    for entry in inputs:
        raw = entry.publisher
        if raw is None:
            continue
        publisher = normalize_publisher(raw)
        if publisher.name.strip():
            candidates.append((publisher, entry.source))

    if not candidates:
        return ReconciledField(
            value=Publisher(name="", normalized=""),
            confidence=policy.NO_DATA_CONFIDENCE,
            sources=[],
            reasoning="No valid publishers found",
        )

    candidates.sort(key=_candidate_key)
    best_publisher, best_source = candidates[0]
    confidence = publisher_confidence(best_publisher, best_source)

    if len(candidates) == 1:
        return ReconciledField(
            value=best_publisher,
            confidence=confidence,
            sources=[best_source],
            reasoning="Single valid publisher",
        )

    groups: dict[str, list[tuple[Publisher, MetadataSource]]] = {}
    for publisher, source in candidates:
        key = publisher.normalized or publisher.name.lower()
        groups.setdefault(key, []).append((publisher, source))

    winning_key = best_publisher.normalized or best_publisher.name.lower()
    supporters = sorted({src for _, src in groups[winning_key]}, key=source_sort_key)

    conflicts = None
    if len(groups) > 1:
        conflicts = [
            Conflict(
                field="publisher",
                values=[ConflictValue(value=pub, source=src) for pub, src in candidates],
                resolution="Selected publisher from most reliable source",
            )
        ]
        reasoning = "Resolved conflict by selecting publisher from most reliable source"
        logger.debug("Publisher conflict across %d groups, chose %r", len(groups), winning_key)
    else:
        reasoning = "Selected publisher from most reliable source"

    return ReconciledField(
        value=best_publisher,
        confidence=confidence,
        sources=supporters,
        reasoning=reasoning,
        conflicts=conflicts,
    )
