# ABOUTME: Similarity primitives shared by every reconciler and the duplicate detector.
# ABOUTME: Pure functions returning scores in [0.0, 1.0]; degenerate input scores 0.

import re
from collections.abc import Iterable, Sequence

from shelfmark.metadata.record import SeriesInfo
from shelfmark.metadata.types import PublicationDate

_ISBN_STRIP_RE = re.compile(r"[\s-]")

_SERIES_NAME_WEIGHT = 0.8
_SERIES_VOLUME_WEIGHT = 0.2


def levenshtein_distance(a: str, b: str) -> int:
    """Number of single-character edits needed to turn a into b."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)
    if len(a) < len(b):
        a, b = b, a

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def string_similarity(a: str | None, b: str | None) -> float:
    """Normalized Levenshtein similarity, case-insensitive and trimmed.

    Identical non-empty strings score 1.0; an empty side scores 0.0.
    """
    left = (a or "").strip().lower()
    right = (b or "").strip().lower()
    if not left or not right:
        return 0.0
    if left == right:
        return 1.0
    longest = max(len(left), len(right))
    return 1.0 - levenshtein_distance(left, right) / longest


def array_similarity(a: Iterable[str] | None, b: Iterable[str] | None) -> float:
    """Jaccard index over lower-cased, trimmed, non-empty items."""
    left = {item.strip().lower() for item in (a or []) if item and item.strip()}
    right = {item.strip().lower() for item in (b or []) if item and item.strip()}
    if not left or not right:
        return 0.0
    return len(left & right) / len(left | right)


def _strip_isbn(isbn: str) -> str:
    return _ISBN_STRIP_RE.sub("", isbn).upper()


def isbn_similarity(a: Iterable[str] | None, b: Iterable[str] | None) -> float:
    """1.0 when any ISBN appears on both sides after hyphen/space stripping, else 0.0."""
    left = {_strip_isbn(x) for x in (a or []) if x}
    right = {_strip_isbn(x) for x in (b or []) if x}
    left.discard("")
    right.discard("")
    return 1.0 if left & right else 0.0


def date_similarity(d1: PublicationDate | None, d2: PublicationDate | None) -> float:
    """Tiered closeness of two publication dates.

    Same day 1.0, same month 0.9 (0.8 when the days differ), same year 0.8
    (0.7 when the months differ), one year apart 0.6, two years 0.4,
    otherwise 0. A missing year on either side scores 0.
    """
    if d1 is None or d2 is None or not d1.year or not d2.year:
        return 0.0

    if d1.year == d2.year:
        if d1.month and d2.month:
            if d1.month != d2.month:
                return 0.7
            if d1.day and d2.day:
                return 1.0 if d1.day == d2.day else 0.8
            return 0.9
        return 0.8

    gap = abs(d1.year - d2.year)
    if gap <= 1:
        return 0.6
    if gap <= 2:
        return 0.4
    return 0.0


def publisher_similarity(a: str | None, b: str | None) -> float:
    return string_similarity(a, b)


def series_similarity(a: Sequence[SeriesInfo] | None, b: Sequence[SeriesInfo] | None) -> float:
    """Best pairwise match: 0.8 weight on name similarity, 0.2 on an exact volume match.

    Two entries that both lack a volume count as a volume match.
    """
    if not a or not b:
        return 0.0
    best = 0.0
    for left in a:
        for right in b:
            name_score = string_similarity(left.name, right.name)
            volume_score = 1.0 if left.volume == right.volume else 0.0
            score = _SERIES_NAME_WEIGHT * name_score + _SERIES_VOLUME_WEIGHT * volume_score
            best = max(best, score)
    return best


def word_overlap(a: str, b: str, *, min_length: int = 4) -> float:
    """Jaccard overlap of the longer words in two texts, used for topic-level comparison."""
    left = {w for w in a.lower().split() if len(w) >= min_length}
    right = {w for w in b.lower().split() if len(w) >= min_length}
    union = left | right
    if not union:
        return 0.0
    return len(left & right) / len(union)
