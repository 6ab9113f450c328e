# ABOUTME: Identifier normalization (ISBN, DOI, OCLC, LCCN, Goodreads, Amazon, Google) and reconciliation.
# ABOUTME: Produces canonical dedup keys with structural/checksum validity and merges them across sources.

import logging
import re
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from typing import Literal

from shelfmark.metadata.types import (
    Conflict,
    ConflictValue,
    MetadataSource,
    ReconciledField,
    ReconciliationError,
    source_sort_key,
)
from shelfmark.reconcile import policy

logger = logging.getLogger(__name__)

IdentifierType = Literal["isbn", "doi", "oclc", "lccn", "goodreads", "amazon", "google", "other"]

_STRIP_RE = re.compile(r"[\s-]")
_ISBN13_SHAPE_RE = re.compile(r"^97\d{11}$")
_ISBN10_SHAPE_RE = re.compile(r"^\d{9}[\dX]$")
_DOI_BARE_RE = re.compile(r"^10\.\d{4,}/")
_DOI_PREFIX_RE = re.compile(r"^doi:\s*", re.IGNORECASE)
_DOI_URL_RE = re.compile(r"^https?://(dx\.)?doi\.org/", re.IGNORECASE)
_DOI_VALID_RE = re.compile(r"^10\.\d{4,}/\S+$")
_OCLC_RE = re.compile(r"^(ocm|ocn|on)\d+$")
_OCLC_PLAIN_RE = re.compile(r"^\d{8,10}$")
_OCLC_PREFIX_RE = re.compile(r"^(ocm|ocn|on)", re.IGNORECASE)
_LCCN_RE = re.compile(r"^[a-z]{1,3}\d{8,10}$")
_LCCN_LONG_RE = re.compile(r"^\d{11}$")
_LCCN_VALID_RE = re.compile(r"^[a-z]{0,3}\d{8,10}$")
_GOODREADS_PREFIX_RE = re.compile(r"^goodreads:", re.IGNORECASE)
_GOODREADS_SHOW_RE = re.compile(r"/show/(\d+)")
_GOODREADS_NUMERIC_RE = re.compile(r"^\d{7,10}$")
_AMAZON_PREFIX_RE = re.compile(r"^amazon:", re.IGNORECASE)
_AMAZON_PATH_RE = re.compile(r"/(?:dp|gp/product)/([A-Za-z0-9]{10})")
_ASIN_RE = re.compile(r"^[A-Z0-9]{10}$")
_GOOGLE_PREFIX_RE = re.compile(r"^google:", re.IGNORECASE)
_GOOGLE_ID_RE = re.compile(r"[?&]id=([^&#]+)")
_NON_DIGIT_RE = re.compile(r"\D")


@dataclass(frozen=True)
class Identifier:
    """A typed identifier.

    normalized is the canonical key used for deduplication; valid reflects
    structural and checksum checks only, not whether the identifier resolves.
    """

    type: IdentifierType
    value: str
    normalized: str
    valid: bool

    @property
    def key(self) -> str:
        return f"{self.type}:{self.normalized}"


@dataclass(frozen=True)
class IdentifierInput:
    """Identifiers one source reported, either untyped or grouped by type."""

    source: MetadataSource
    identifiers: list[str | Identifier] = field(default_factory=list)
    isbn: list[str] = field(default_factory=list)
    doi: list[str] = field(default_factory=list)
    oclc: list[str] = field(default_factory=list)
    lccn: list[str] = field(default_factory=list)
    goodreads: list[str] = field(default_factory=list)
    amazon: list[str] = field(default_factory=list)
    google: list[str] = field(default_factory=list)

    def raw_values(self) -> Iterator[tuple[str, IdentifierType | None]]:
        for item in self.identifiers:
            if isinstance(item, Identifier):
                yield item.value, item.type
            else:
                yield item, None
        typed: tuple[tuple[IdentifierType, list[str]], ...] = (
            ("isbn", self.isbn),
            ("doi", self.doi),
            ("oclc", self.oclc),
            ("lccn", self.lccn),
            ("goodreads", self.goodreads),
            ("amazon", self.amazon),
            ("google", self.google),
        )
        for id_type, values in typed:
            for value in values:
                yield value, id_type


def isbn10_checksum_ok(isbn10: str) -> bool:
    if not _ISBN10_SHAPE_RE.match(isbn10):
        return False
    total = 0
    for position, char in enumerate(isbn10):
        digit = 10 if char == "X" else int(char)
        total += (10 - position) * digit
    return total % 11 == 0


def _isbn13_check_digit(first12: str) -> int:
    total = sum(int(d) * (1 if i % 2 == 0 else 3) for i, d in enumerate(first12))
    return (10 - total % 10) % 10


def validate_isbn(isbn13: str) -> bool:
    """True for a 13-digit ISBN with a 978/979 prefix and a correct check digit."""
    if len(isbn13) != 13 or not isbn13.isdigit():
        return False
    if not isbn13.startswith(("978", "979")):
        return False
    return _isbn13_check_digit(isbn13[:12]) == int(isbn13[12])


def isbn10_to_isbn13(isbn10: str) -> str:
    """Convert an ISBN-10 to its 978-prefixed ISBN-13 with a recomputed check digit."""
    cleaned = _STRIP_RE.sub("", isbn10).upper()
    first12 = "978" + cleaned[:9]
    return first12 + str(_isbn13_check_digit(first12))


def isbn13_to_isbn10(isbn13: str) -> str | None:
    """Convert a 978-prefixed ISBN-13 back to ISBN-10; other prefixes have no ISBN-10."""
    cleaned = _STRIP_RE.sub("", isbn13)
    if len(cleaned) != 13 or not cleaned.startswith("978") or not cleaned.isdigit():
        return None
    body = cleaned[3:12]
    total = sum((10 - i) * int(d) for i, d in enumerate(body))
    check = (11 - total % 11) % 11
    return body + ("X" if check == 10 else str(check))


def detect_identifier_type(value: str) -> IdentifierType:
    """Guess the identifier type of a raw string.

    Checked in order: ISBN, DOI, OCLC, LCCN, then Goodreads, Amazon and
    Google by URL or scheme prefix, then a bare Goodreads number.
    """
    text = value.strip()
    cleaned = _STRIP_RE.sub("", text)
    upper = cleaned.upper()
    lower = cleaned.lower()

    if _ISBN13_SHAPE_RE.match(upper) or _ISBN10_SHAPE_RE.match(upper):
        return "isbn"
    if _DOI_BARE_RE.match(text) or _DOI_PREFIX_RE.match(text) or "doi.org" in text.lower():
        return "doi"
    if _OCLC_RE.match(lower) or _OCLC_PLAIN_RE.match(cleaned):
        return "oclc"
    if _LCCN_RE.match(lower) or _LCCN_LONG_RE.match(cleaned):
        return "lccn"
    if _GOODREADS_PREFIX_RE.match(text) or "goodreads.com" in text.lower():
        return "goodreads"
    if (
        _AMAZON_PREFIX_RE.match(text)
        or "amazon." in text.lower()
        or (_ASIN_RE.match(upper) and not upper.isdigit())
    ):
        return "amazon"
    if _GOOGLE_PREFIX_RE.match(text) or "books.google." in text.lower():
        return "google"
    if _GOODREADS_NUMERIC_RE.match(cleaned):
        return "goodreads"
    return "other"


def _normalize_isbn(value: str) -> tuple[str, bool]:
    cleaned = _STRIP_RE.sub("", value).upper()
    if len(cleaned) == 10 and _ISBN10_SHAPE_RE.match(cleaned):
        converted = isbn10_to_isbn13(cleaned)
        return converted, isbn10_checksum_ok(cleaned) and validate_isbn(converted)
    if len(cleaned) == 13:
        return cleaned, validate_isbn(cleaned)
    return cleaned, False


def _normalize_doi(value: str) -> str:
    text = _DOI_PREFIX_RE.sub("", value.strip())
    return _DOI_URL_RE.sub("", text)


def _normalize_oclc(value: str) -> str:
    return _OCLC_PREFIX_RE.sub("", _STRIP_RE.sub("", value))


def _normalize_lccn(value: str) -> str:
    return _STRIP_RE.sub("", value).lower()


def _normalize_goodreads(value: str) -> str:
    text = _GOODREADS_PREFIX_RE.sub("", value.strip())
    match = _GOODREADS_SHOW_RE.search(text)
    if match:
        return match.group(1)
    return _NON_DIGIT_RE.sub("", text)


def _normalize_amazon(value: str) -> str:
    text = _AMAZON_PREFIX_RE.sub("", value.strip())
    match = _AMAZON_PATH_RE.search(text)
    if match:
        text = match.group(1)
    return text.upper()


def _normalize_google(value: str) -> str:
    text = _GOOGLE_PREFIX_RE.sub("", value.strip())
    match = _GOOGLE_ID_RE.search(text)
    if match:
        return match.group(1)
    return text


def _is_valid(id_type: IdentifierType, normalized: str) -> bool:
    if id_type == "doi":
        return bool(_DOI_VALID_RE.match(normalized))
    if id_type == "oclc":
        return bool(_OCLC_PLAIN_RE.match(normalized))
    if id_type == "lccn":
        return bool(_LCCN_VALID_RE.match(normalized) or _LCCN_LONG_RE.match(normalized))
    if id_type == "goodreads":
        return bool(_GOODREADS_NUMERIC_RE.match(normalized))
    if id_type == "amazon":
        return bool(_ASIN_RE.match(normalized))
    return bool(normalized)


def normalize_identifier(value: str, id_type: IdentifierType | None = None) -> Identifier:
    """Normalize a raw identifier string.

    Args:
        value: Raw identifier as reported by a source (URL, prefixed or bare).
        id_type: Known type; detected from the value when omitted.

    Returns:
        The typed Identifier. Empty input yields an invalid "other" identifier.
    """
    raw = value or ""
    if not raw.strip():
        return Identifier(type="other", value=raw, normalized="", valid=False)

    kind = id_type or detect_identifier_type(raw)
    if kind == "isbn":
        normalized, valid = _normalize_isbn(raw)
        return Identifier(type="isbn", value=raw, normalized=normalized, valid=valid)

    if kind == "doi":
        normalized = _normalize_doi(raw)
    elif kind == "oclc":
        normalized = _normalize_oclc(raw)
    elif kind == "lccn":
        normalized = _normalize_lccn(raw)
    elif kind == "goodreads":
        normalized = _normalize_goodreads(raw)
    elif kind == "amazon":
        normalized = _normalize_amazon(raw)
    elif kind == "google":
        normalized = _normalize_google(raw)
    else:
        normalized = raw.strip()
    return Identifier(
        type=kind, value=raw, normalized=normalized, valid=_is_valid(kind, normalized)
    )


def _identifier_sort_key(item: tuple[Identifier, MetadataSource]) -> tuple:
    ident, source = item
    return (
        0 if ident.valid else 1,
        -policy.IDENTIFIER_TYPE_PRIORITY.get(ident.type, 0),
        -source.reliability,
        ident.key,
        source.name,
    )


def reconcile_identifiers(inputs: Sequence[IdentifierInput]) -> ReconciledField[list[Identifier]]:
    """Merge identifiers from several sources into one deduplicated, ranked list.

    Identifiers are keyed by type and normalized value. When sources report
    the same key in different raw forms, the more reliable source's form is
    kept and a Conflict is recorded.

    Raises:
        ReconciliationError: If inputs is empty.
    """
    if not inputs:
        raise ReconciliationError("No identifiers to reconcile")

    groups: dict[str, list[tuple[Identifier, MetadataSource]]] = {}
    for entry in inputs:
        for raw, hint in entry.raw_values():
            ident = normalize_identifier(raw, hint)
            if not ident.normalized:
                continue
            groups.setdefault(ident.key, []).append((ident, entry.source))

    if not groups:
        return ReconciledField(
            value=[],
            confidence=policy.NO_DATA_CONFIDENCE,
            sources=[],
            reasoning="No valid identifiers found",
        )

    winners: list[tuple[Identifier, MetadataSource]] = []
    conflicts: list[Conflict] = []
    for key in sorted(groups):
        candidates = sorted(
            groups[key], key=lambda item: (source_sort_key(item[1]), item[0].value)
        )
        winner = candidates[0]
        winners.append(winner)
        forms = {ident.value.strip() for ident, _ in candidates}
        reporters = {source.name for _, source in candidates}
        if len(forms) > 1 and len(reporters) > 1:
            conflicts.append(
                Conflict(
                    field=f"identifier.{winner[0].type}",
                    values=[ConflictValue(value=ident, source=src) for ident, src in candidates],
                    resolution=(
                        f"Kept the form reported by {winner[1].name}, the most reliable source"
                    ),
                )
            )

    winners.sort(key=_identifier_sort_key)
    identifiers = [ident for ident, _ in winners]

    valid_count = sum(1 for ident in identifiers if ident.valid)
    mean_reliability = sum(src.reliability for _, src in winners) / len(winners)
    confidence = min(
        1.0,
        (valid_count / len(identifiers)) * mean_reliability * policy.IDENTIFIER_CONFIDENCE_SCALE
        + policy.IDENTIFIER_CONFIDENCE_FLOOR,
    )

    sources: dict[str, MetadataSource] = {}
    for _, src in winners:
        current = sources.get(src.name)
        if current is None or src.reliability > current.reliability:
            sources[src.name] = src

    reasoning = (
        f"Reconciled {len(identifiers)} unique identifiers ({valid_count} valid) "
        f"from {len(inputs)} sources"
    )
    if conflicts:
        reasoning += f"; resolved {len(conflicts)} conflicting representations by reliability"
    logger.debug(reasoning)

    return ReconciledField(
        value=identifiers,
        confidence=confidence,
        sources=sorted(sources.values(), key=source_sort_key),
        reasoning=reasoning,
        conflicts=conflicts or None,
    )
