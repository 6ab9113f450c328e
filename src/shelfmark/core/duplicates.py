# ABOUTME: Duplicate detection against an index of known works, editions and assets.
# ABOUTME: Ordered checks: checksum, ISBN, ASIN, exact title+author, then fuzzy title+author.

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from typing import Literal, Protocol

from shelfmark.metadata.normalizer import normalize_creator_name, normalize_title
from shelfmark.metadata.record import MetadataRecord, SeriesInfo
from shelfmark.metadata.types import PublicationDate
from shelfmark.reconcile import policy
from shelfmark.reconcile.identifiers import normalize_identifier
from shelfmark.reconcile.similarity import (
    array_similarity,
    date_similarity,
    isbn_similarity,
    publisher_similarity,
    series_similarity,
    string_similarity,
)

logger = logging.getLogger(__name__)

DuplicateType = Literal[
    "exact-asset", "same-isbn", "different-format", "same-asin", "similar-title"
]
MatchType = Literal["exact", "likely", "possible", "different_edition", "related_work"]


@dataclass(frozen=True)
class ExistingWork:
    id: str
    title: str
    authors: tuple[str, ...] = ()


@dataclass(frozen=True)
class ExistingEdition:
    id: str
    work_id: str
    title: str
    authors: tuple[str, ...] = ()
    isbn_10: str | None = None
    isbn_13: str | None = None
    asin: str | None = None
    format: str | None = None


@dataclass(frozen=True)
class ExistingAsset:
    id: str
    edition_id: str
    checksum: str
    filename: str | None = None


@dataclass(frozen=True)
class DuplicateCandidate:
    """What we know about an incoming book before it is added."""

    title: str | None = None
    authors: tuple[str, ...] = ()
    isbns: tuple[str, ...] = ()
    asin: str | None = None
    checksum: str | None = None


@dataclass(frozen=True)
class DuplicateCheckResult:
    has_duplicate: bool
    confidence: float
    type: DuplicateType | None = None
    existing_work: ExistingWork | None = None
    existing_edition: ExistingEdition | None = None
    existing_asset: ExistingAsset | None = None
    description: str = ""


NO_DUPLICATE = DuplicateCheckResult(has_duplicate=False, confidence=0.0)


class LibraryLookup(Protocol):
    """Read access to the existing library. LibraryIndex is the in-memory implementation."""

    def find_by_checksum(self, checksum: str) -> ExistingAsset | None: ...

    def find_editions_by_isbn(self, isbn: str) -> list[ExistingEdition]: ...

    def find_editions_by_asin(self, asin: str) -> list[ExistingEdition]: ...

    def get_edition(self, edition_id: str) -> ExistingEdition | None: ...

    def get_work(self, work_id: str) -> ExistingWork | None: ...

    def editions(self) -> list[ExistingEdition]: ...


def _isbn_key(value: str | None) -> str | None:
    if not value or not value.strip():
        return None
    identifier = normalize_identifier(value, "isbn")
    return identifier.normalized or None


class LibraryIndex:
    """In-memory lookup over existing works, editions and assets.

    ISBNs are indexed in their ISBN-13 form, so an ISBN-10 query finds an
    edition stored with the matching ISBN-13 and vice versa.
    """

    def __init__(
        self,
        works: Iterable[ExistingWork] = (),
        editions: Iterable[ExistingEdition] = (),
        assets: Iterable[ExistingAsset] = (),
    ) -> None:
        self._works: dict[str, ExistingWork] = {}
        self._editions: dict[str, ExistingEdition] = {}
        self._assets_by_checksum: dict[str, ExistingAsset] = {}
        self._by_isbn: dict[str, list[ExistingEdition]] = {}
        self._by_asin: dict[str, list[ExistingEdition]] = {}
        for work in works:
            self.add_work(work)
        for edition in editions:
            self.add_edition(edition)
        for asset in assets:
            self.add_asset(asset)

    def add_work(self, work: ExistingWork) -> None:
        self._works[work.id] = work

    def add_edition(self, edition: ExistingEdition) -> None:
        self._editions[edition.id] = edition
        for raw in (edition.isbn_10, edition.isbn_13):
            key = _isbn_key(raw)
            if key and edition not in self._by_isbn.get(key, []):
                self._by_isbn.setdefault(key, []).append(edition)
        if edition.asin:
            self._by_asin.setdefault(edition.asin.strip().upper(), []).append(edition)

    def add_asset(self, asset: ExistingAsset) -> None:
        self._assets_by_checksum[asset.checksum.lower()] = asset

    def find_by_checksum(self, checksum: str) -> ExistingAsset | None:
        return self._assets_by_checksum.get(checksum.lower())

    def find_editions_by_isbn(self, isbn: str) -> list[ExistingEdition]:
        key = _isbn_key(isbn)
        return list(self._by_isbn.get(key, [])) if key else []

    def find_editions_by_asin(self, asin: str) -> list[ExistingEdition]:
        return list(self._by_asin.get(asin.strip().upper(), []))

    def get_edition(self, edition_id: str) -> ExistingEdition | None:
        return self._editions.get(edition_id)

    def get_work(self, work_id: str) -> ExistingWork | None:
        return self._works.get(work_id)

    def works(self) -> list[ExistingWork]:
        return sorted(self._works.values(), key=lambda w: w.id)

    def editions(self) -> list[ExistingEdition]:
        return sorted(self._editions.values(), key=lambda e: e.id)

    def __len__(self) -> int:
        return len(self._editions)


def _author_similarity(left: Sequence[str], right: Sequence[str]) -> float:
    """Mean best-match similarity of normalized author names, 0 when either side is empty."""
    a = [n for n in (normalize_creator_name(x) for x in left) if n]
    b = [n for n in (normalize_creator_name(x) for x in right) if n]
    if not a or not b:
        return 0.0
    shorter, longer = (a, b) if len(a) <= len(b) else (b, a)
    return sum(max(string_similarity(x, y) for y in longer) for x in shorter) / len(shorter)


def _edition_authors(edition: ExistingEdition, index: LibraryLookup) -> tuple[str, ...]:
    if edition.authors:
        return edition.authors
    work = index.get_work(edition.work_id)
    return work.authors if work else ()


def _found(
    index: LibraryLookup,
    edition: ExistingEdition | None,
    *,
    type: DuplicateType,
    confidence: float,
    description: str,
    asset: ExistingAsset | None = None,
) -> DuplicateCheckResult:
    work = index.get_work(edition.work_id) if edition else None
    return DuplicateCheckResult(
        has_duplicate=True,
        confidence=confidence,
        type=type,
        existing_work=work,
        existing_edition=edition,
        existing_asset=asset,
        description=description,
    )


def check_exact_asset(candidate: DuplicateCandidate, index: LibraryLookup) -> DuplicateCheckResult:
    if not candidate.checksum:
        return NO_DUPLICATE
    asset = index.find_by_checksum(candidate.checksum)
    if asset is None:
        return NO_DUPLICATE
    return _found(
        index,
        index.get_edition(asset.edition_id),
        type="exact-asset",
        confidence=policy.DUPLICATE_EXACT_ASSET_CONFIDENCE,
        description="This exact file already exists in the library",
        asset=asset,
    )


def check_isbn(candidate: DuplicateCandidate, index: LibraryLookup) -> DuplicateCheckResult:
    wanted_title = normalize_title(candidate.title)
    for isbn in candidate.isbns:
        matches = sorted(index.find_editions_by_isbn(isbn), key=lambda e: e.id)
        if not matches:
            continue
        edition = matches[0]
        if wanted_title and normalize_title(edition.title) == wanted_title:
            return _found(
                index,
                edition,
                type="same-isbn",
                confidence=policy.DUPLICATE_SAME_ISBN_CONFIDENCE,
                description=f"An edition with ISBN {isbn} already exists",
            )
        return _found(
            index,
            edition,
            type="different-format",
            confidence=policy.DUPLICATE_DIFFERENT_FORMAT_CONFIDENCE,
            description=f"Found a different edition (ISBN: {isbn}) of this work",
        )
    return NO_DUPLICATE


def check_asin(candidate: DuplicateCandidate, index: LibraryLookup) -> DuplicateCheckResult:
    if not candidate.asin:
        return NO_DUPLICATE
    matches = sorted(index.find_editions_by_asin(candidate.asin), key=lambda e: e.id)
    if not matches:
        return NO_DUPLICATE
    return _found(
        index,
        matches[0],
        type="same-asin",
        confidence=policy.DUPLICATE_SAME_ASIN_CONFIDENCE,
        description=f"An edition with ASIN {candidate.asin} already exists",
    )


def check_exact_title(candidate: DuplicateCandidate, index: LibraryLookup) -> DuplicateCheckResult:
    wanted = normalize_title(candidate.title)
    if not wanted:
        return NO_DUPLICATE
    for edition in index.editions():
        if normalize_title(edition.title) != wanted:
            continue
        if candidate.authors:
            authors = _edition_authors(edition, index)
            similarity = _author_similarity(candidate.authors, authors)
            if similarity < policy.DUPLICATE_AUTHOR_MATCH_THRESHOLD:
                continue
        return _found(
            index,
            edition,
            type="different-format",
            confidence=policy.DUPLICATE_SAME_TITLE_AUTHOR_CONFIDENCE,
            description=f'Found existing work "{edition.title}" by the same author',
        )
    return NO_DUPLICATE


def check_similar_title(
    candidate: DuplicateCandidate, index: LibraryLookup
) -> DuplicateCheckResult:
    """Fuzzy title match, blended with author similarity when both sides have authors."""
    wanted = normalize_title(candidate.title)
    if not wanted:
        return NO_DUPLICATE

    best: tuple[float, ExistingEdition] | None = None
    for edition in index.editions():
        title_score = string_similarity(wanted, normalize_title(edition.title))
        if title_score < policy.DUPLICATE_SIMILAR_TITLE_THRESHOLD:
            continue
        authors = _edition_authors(edition, index)
        if candidate.authors and authors:
            score = (
                policy.DUPLICATE_TITLE_WEIGHT * title_score
                + policy.DUPLICATE_AUTHOR_WEIGHT * _author_similarity(candidate.authors, authors)
            )
        else:
            score = title_score
        if score < policy.DUPLICATE_SIMILAR_TITLE_THRESHOLD:
            continue
        if best is None or score > best[0]:
            best = (score, edition)

    if best is None:
        return NO_DUPLICATE
    score, edition = best
    return _found(
        index,
        edition,
        type="similar-title",
        confidence=round(score, 4),
        description=f'Found similar work "{edition.title}" ({round(score * 100)}% match)',
    )


_CHECKS = (check_exact_asset, check_isbn, check_asin, check_exact_title, check_similar_title)


def detect_duplicate(candidate: DuplicateCandidate, index: LibraryLookup) -> DuplicateCheckResult:
    """Run the duplicate checks in priority order; the first hit wins.

    Returns a result with has_duplicate False and confidence 0 when nothing
    in the library resembles the candidate.
    """
    for check in _CHECKS:
        result = check(candidate, index)
        if result.has_duplicate:
            logger.info(
                "Duplicate of %r found (%s, confidence %.2f)",
                candidate.title,
                result.type,
                result.confidence,
            )
            return result
    return NO_DUPLICATE


# --- Merging provider records ------------------------------------------------


def _record_keys(record: MetadataRecord) -> set[str]:
    keys = {f"isbn:{key}" for key in (_isbn_key(i) for i in record.isbn) if key}
    title = normalize_title(record.title)
    if title and record.authors:
        keys.add(f"work:{title}|{normalize_creator_name(record.authors[0])}")
    return keys


def group_duplicate_records(records: Sequence[MetadataRecord]) -> list[list[MetadataRecord]]:
    """Cluster records that share an ISBN or a normalized title and first author.

    Clusters and their members are ordered by source then id, so the result
    does not depend on input order.
    """
    ordered = sorted(records, key=lambda r: (r.source, r.id))
    parent = list(range(len(ordered)))

    def find(i: int) -> int:
        while parent[i] != i:
            parent[i] = parent[parent[i]]
            i = parent[i]
        return i

    owner: dict[str, int] = {}
    for i, record in enumerate(ordered):
        for key in _record_keys(record):
            if key in owner:
                a, b = find(owner[key]), find(i)
                if a != b:
                    parent[max(a, b)] = min(a, b)
            else:
                owner[key] = i

    clusters: dict[int, list[MetadataRecord]] = {}
    for i, record in enumerate(ordered):
        clusters.setdefault(find(i), []).append(record)
    return [clusters[root] for root in sorted(clusters)]


def _union(*lists: Iterable[str]) -> list[str]:
    seen: dict[str, str] = {}
    for items in lists:
        for item in items:
            if item and item.strip():
                seen.setdefault(item.strip().casefold(), item.strip())
    return list(seen.values())


def merge_cluster(cluster: Sequence[MetadataRecord]) -> MetadataRecord:
    """Fold one cluster into a single record.

    Scalars come from the most confident record that has them; lists are
    unioned. provider_data lists every merged record under "merged_from".
    """
    ranked = sorted(cluster, key=lambda r: (-r.confidence, r.source, r.id))
    primary = ranked[0]
    if len(ranked) == 1:
        return primary

    def first(attr: str):
        return next((getattr(r, attr) for r in ranked if getattr(r, attr)), None)

    return replace(
        primary,
        title=first("title"),
        authors=_union(*(r.authors for r in ranked)),
        isbn=_union(*(r.isbn for r in ranked)),
        publication_date=first("publication_date"),
        publisher=first("publisher"),
        place=first("place"),
        language=first("language"),
        page_count=first("page_count"),
        dimensions=first("dimensions"),
        weight=first("weight"),
        binding=first("binding"),
        description=first("description"),
        subjects=_union(*(r.subjects for r in ranked)),
        series=first("series"),
        edition=first("edition"),
        cover_image=first("cover_image"),
        provider_data={
            **primary.provider_data,
            "merged_from": [f"{r.source}:{r.id}" for r in ranked],
        },
    )


def merge_duplicate_records(records: Sequence[MetadataRecord]) -> list[MetadataRecord]:
    """Collapse records describing the same book into one record each."""
    merged = [merge_cluster(cluster) for cluster in group_duplicate_records(records)]
    if len(merged) < len(records):
        logger.debug("Merged %d records into %d", len(records), len(merged))
    return merged


# --- Library entry comparison ------------------------------------------------


@dataclass(frozen=True)
class LibraryEntry:
    title: str
    authors: tuple[str, ...] = ()
    isbn: tuple[str, ...] = ()
    publication_date: PublicationDate | None = None
    publisher: str | None = None
    series: tuple[SeriesInfo, ...] = ()


@dataclass(frozen=True)
class FieldMatch:
    field: str
    similarity: float
    weight: float


@dataclass(frozen=True)
class EntryMatch:
    existing: LibraryEntry
    similarity: float
    match_type: MatchType
    confidence: float
    recommendation: str
    explanation: str
    matching_fields: list[FieldMatch] = field(default_factory=list)


def _classify(
    overall: float, isbn_score: float, title_score: float, author_score: float
) -> tuple[MatchType, str, str]:
    if overall >= 0.9:
        return "exact", "skip", "This appears to be an exact duplicate of an existing entry."
    if overall >= 0.7:
        return (
            "likely",
            "review_manually",
            "This is likely a duplicate but may have some differences worth reviewing.",
        )
    if overall >= 0.5:
        return (
            "possible",
            "review_manually",
            "This might be a duplicate or a different edition of the same work.",
        )
    if isbn_score > 0.8 or (title_score > 0.8 and author_score > 0.8):
        return (
            "different_edition",
            "add_as_new",
            "This appears to be a different edition of an existing work.",
        )
    return (
        "related_work",
        "add_as_new",
        "This appears to be related but distinct from existing entries.",
    )


def compare_entries(proposed: LibraryEntry, existing: LibraryEntry) -> EntryMatch:
    """Weighted similarity of two library entries.

    Title and authors always count; ISBN, date, publisher and series only
    count when they show some similarity, so a missing field does not drag
    the score down.
    """
    weights = policy.LIBRARY_ENTRY_WEIGHTS
    title_score = string_similarity(proposed.title, existing.title)
    author_score = array_similarity(proposed.authors, existing.authors)
    scores = [
        FieldMatch("title", title_score, weights["title"]),
        FieldMatch("authors", author_score, weights["authors"]),
    ]

    isbn_score = isbn_similarity(proposed.isbn, existing.isbn)
    optional = (
        ("isbn", isbn_score),
        ("date", date_similarity(proposed.publication_date, existing.publication_date)),
        ("publisher", publisher_similarity(proposed.publisher, existing.publisher)),
        ("series", series_similarity(proposed.series, existing.series)),
    )
    scores.extend(FieldMatch(name, score, weights[name]) for name, score in optional if score > 0)

    total_weight = sum(f.weight for f in scores)
    overall = sum(f.similarity * f.weight for f in scores) / total_weight if total_weight else 0.0
    match_type, recommendation, explanation = _classify(
        overall, isbn_score, title_score, author_score
    )
    return EntryMatch(
        existing=existing,
        similarity=overall,
        match_type=match_type,
        confidence=min(overall + 0.1, 1.0),
        recommendation=recommendation,
        explanation=explanation,
        matching_fields=scores,
    )


def find_similar_entries(
    proposed: LibraryEntry, library: Iterable[LibraryEntry], *, min_similarity: float = 0.3
) -> list[EntryMatch]:
    matches = [compare_entries(proposed, entry) for entry in library]
    kept = [m for m in matches if m.similarity > min_similarity]
    return sorted(kept, key=lambda m: (-m.similarity, m.existing.title))
