# ABOUTME: Relevance scoring of provider records against the baseline being enriched.
# ABOUTME: Weighted title/author/ISBN/language agreement plus a small completeness bonus.

from collections.abc import Sequence

from shelfmark.metadata.normalizer import normalize_creator_name, normalize_title
from shelfmark.metadata.record import MetadataRecord
from shelfmark.metadata.types import BookMetadata
from shelfmark.reconcile.identifiers import normalize_identifier
from shelfmark.reconcile.similarity import string_similarity

# Match weights, must sum to 1.0
_WEIGHT_TITLE = 0.4
_WEIGHT_AUTHOR = 0.3
_WEIGHT_ISBN = 0.2
_WEIGHT_LANGUAGE = 0.1

# Completeness bonus: max added on top of the match score.
_COMPLETENESS_BONUS = 0.10

# Per-field weights within the completeness bonus (must sum to 1.0).
_COMPLETENESS_FIELDS: dict[str, float] = {
    "description": 0.40,
    "isbn": 0.30,
    "authors": 0.15,
    "language": 0.10,
    "publisher": 0.05,
}


def _isbn_key(isbn: str) -> str:
    """ISBN-13 form of an ISBN so both forms of the same number compare equal."""
    return normalize_identifier(isbn, "isbn").normalized


def isbn_matches(baseline: BookMetadata, record: MetadataRecord) -> bool:
    """True when one of the record's ISBNs is the baseline ISBN in either form."""
    if not baseline.isbn or not record.isbn:
        return False
    wanted = _isbn_key(baseline.isbn)
    return bool(wanted) and any(_isbn_key(isbn) == wanted for isbn in record.isbn)


def completeness_bonus(record: MetadataRecord) -> float:
    """Small bonus for records with more populated fields, in [0.0, 0.1].

    Lets rich records float above sparse stubs when match scores tie.
    """
    filled = sum(
        weight for name, weight in _COMPLETENESS_FIELDS.items() if getattr(record, name, None)
    )
    return _COMPLETENESS_BONUS * filled


def score_record(baseline: BookMetadata, record: MetadataRecord) -> float:
    """How well a provider record matches the book being enriched, in [0.0, 1.0]."""
    score = _WEIGHT_TITLE * string_similarity(
        normalize_title(baseline.title), normalize_title(record.title)
    )

    # Both sides lacking authors is not evidence of a match.
    baseline_authors = " ".join(normalize_creator_name(a) for a in baseline.authors)
    record_authors = " ".join(normalize_creator_name(a) for a in record.authors)
    if baseline_authors and record_authors:
        score += _WEIGHT_AUTHOR * string_similarity(baseline_authors, record_authors)

    if isbn_matches(baseline, record):
        score += _WEIGHT_ISBN

    if (
        baseline.language
        and record.language
        and baseline.language.lower() == record.language.lower()
    ):
        score += _WEIGHT_LANGUAGE

    score += completeness_bonus(record)
    return max(0.0, min(1.0, score))


def agreement_ratio(baseline: BookMetadata, record: MetadataRecord) -> float | None:
    """Weighted agreement over the fields both sides report, or None if they share none."""
    earned = 0.0
    possible = 0.0

    baseline_title = normalize_title(baseline.title)
    record_title = normalize_title(record.title)
    if baseline_title and record_title:
        possible += _WEIGHT_TITLE
        earned += _WEIGHT_TITLE * string_similarity(baseline_title, record_title)

    baseline_authors = " ".join(normalize_creator_name(a) for a in baseline.authors)
    record_authors = " ".join(normalize_creator_name(a) for a in record.authors)
    if baseline_authors and record_authors:
        possible += _WEIGHT_AUTHOR
        earned += _WEIGHT_AUTHOR * string_similarity(baseline_authors, record_authors)

    if baseline.isbn and record.isbn:
        possible += _WEIGHT_ISBN
        if isbn_matches(baseline, record):
            earned += _WEIGHT_ISBN

    if baseline.language and record.language:
        possible += _WEIGHT_LANGUAGE
        if baseline.language.lower() == record.language.lower():
            earned += _WEIGHT_LANGUAGE

    if possible == 0.0:
        return None
    return earned / possible


def contradicts_baseline(
    baseline: BookMetadata, record: MetadataRecord, min_agreement: float
) -> bool:
    """True when the record positively describes a different book.

    A record carrying the baseline ISBN never contradicts it, and neither does
    one that shares no comparable field with a sparse baseline. Otherwise the
    fields both sides report must agree at least min_agreement of the way.
    """
    if isbn_matches(baseline, record):
        return False
    ratio = agreement_ratio(baseline, record)
    return ratio is not None and ratio < min_agreement


def rank_records(
    baseline: BookMetadata, records: Sequence[MetadataRecord], *, min_score: float = 0.0
) -> list[tuple[MetadataRecord, float]]:
    """Records scoring at least min_score, best first; ties by source then id."""
    scored = [(record, score_record(baseline, record)) for record in records]
    kept = [(record, score) for record, score in scored if score >= min_score]
    return sorted(kept, key=lambda item: (-item[1], item[0].source, item[0].id))
