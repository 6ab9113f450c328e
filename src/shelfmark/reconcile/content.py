# ABOUTME: Reconciles descriptive content: descriptions, tables of contents, reviews, ratings,
# ABOUTME: cover images and excerpts. Each picks or merges candidates by quality and source reliability.

import html
import logging
import math
import re
from collections import Counter
from collections.abc import Sequence
from dataclasses import dataclass, field

from shelfmark.metadata.types import (
    Conflict,
    ConflictValue,
    MetadataSource,
    ReconciledField,
    ReconciliationError,
    source_sort_key,
)
from shelfmark.reconcile import policy
from shelfmark.reconcile.similarity import word_overlap

logger = logging.getLogger(__name__)

_DESCRIPTION_PREFIXES = (
    "description:",
    "summary:",
    "synopsis:",
    "about:",
    "overview:",
    "book description:",
    "product description:",
    "editorial review:",
    "from the publisher:",
    "from the back cover:",
    "book summary:",
)
_PREFIX_RE = re.compile(
    r"^(?:" + "|".join(re.escape(p) for p in _DESCRIPTION_PREFIXES) + r")\s*", re.IGNORECASE
)
_HTML_TAG_RE = re.compile(r"<[^>]*>")
_MD_LINK_RE = re.compile(r"\[([^\]]+)\]\([^)]*\)")
_MD_EMPHASIS_RE = re.compile(r"(\*{1,3}|_{2,3})(\S(?:.*?\S)?)\1")
_MD_HEADING_RE = re.compile(r"^\s{0,3}#{1,6}\s+", re.MULTILINE)
_MANY_NEWLINES_RE = re.compile(r"\n{3,}")
_HSPACE_RE = re.compile(r"[ \t]+")
_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
_ENDS_WITH_PUNCT_RE = re.compile(r"[.!?]$")

_POSITIVE_SOURCE_HINTS = (
    "publisher",
    "official",
    "author",
    "editorial",
    "book jacket",
    "back cover",
    "dust jacket",
    "synopsis",
    "summary",
)
_NEGATIVE_SOURCE_HINTS = (
    "user",
    "review",
    "comment",
    "opinion",
    "personal",
    "brief",
    "short",
    "incomplete",
    "partial",
)
_PROMOTIONAL_WORDS = ("amazing", "incredible", "must-read", "bestseller", "award-winning")

_TOC_DOTTED_RE = re.compile(r"^(.+?)\s*(?:\.{2,}|…+)\s*(\d+)$")
_TOC_TRAILING_PAGE_RE = re.compile(r"^(.+?)\s+(\d+)$")
_TOC_NUMBER_PREFIX_RE = re.compile(
    r"^(chapter\s*\d+[:.]\s*|ch\s*\d+[:.]\s*|\d+\.\s*)", re.IGNORECASE
)

_IMAGE_EXTENSIONS = {
    "jpg": "jpeg",
    "jpeg": "jpeg",
    "png": "png",
    "webp": "webp",
    "gif": "gif",
    "svg": "svg",
}


@dataclass(frozen=True)
class Description:
    """Cleaned description text with its classification.

    type is one of synopsis, summary, blurb, abstract or description; length
    is short, medium or long. A type left as None is detected from the text
    when the description is normalized. origin is a free-text hint from the
    provider such as "publisher" or "user review".
    """

    text: str
    type: str | None = None
    length: str = "short"
    quality: float = policy.NO_DATA_CONFIDENCE
    language: str | None = None
    origin: str | None = None
    raw: str | None = None


@dataclass(frozen=True)
class TocEntry:
    title: str
    page: int | None = None
    level: int = 0
    children: tuple["TocEntry", ...] = ()


@dataclass(frozen=True)
class TableOfContents:
    entries: tuple[TocEntry, ...]
    format: str = "simple"
    page_numbers: bool = False
    raw: str | None = None


@dataclass(frozen=True)
class Review:
    text: str | None = None
    rating: float | None = None
    author: str | None = None
    verified: bool = False
    helpful: int | None = None
    total: int | None = None

    @property
    def helpfulness(self) -> float:
        if self.helpful and self.total:
            return self.helpful / self.total
        return 0.0


@dataclass(frozen=True)
class Rating:
    value: float
    scale: float = 5
    count: int | None = None

    def __post_init__(self) -> None:
        if self.scale <= 0:
            msg = f"rating scale must be positive, got {self.scale}"
            raise ValueError(msg)

    @property
    def normalized(self) -> float:
        return self.value / self.scale


@dataclass(frozen=True)
class CoverImage:
    url: str
    width: int | None = None
    height: int | None = None
    format: str = "other"
    size: int | None = None
    quality: str = "medium"
    aspect_ratio: float | None = None
    verified: bool = False


@dataclass(frozen=True)
class ContentInput:
    """Everything descriptive one source reported about a book."""

    source: MetadataSource
    descriptions: Sequence[str | Description] = ()
    table_of_contents: str | TableOfContents | None = None
    reviews: Sequence[Review] = ()
    ratings: Sequence[Rating] = ()
    cover_images: Sequence[str | CoverImage] = ()
    excerpt: str | None = None


@dataclass
class ContentReconciliation:
    description: ReconciledField[Description]
    table_of_contents: ReconciledField[TableOfContents]
    reviews: ReconciledField[list[Review]]
    rating: ReconciledField[Rating]
    cover_image: ReconciledField[CoverImage]
    excerpt: ReconciledField[str]
    conflict_fields: list[str] = field(default_factory=list)


def _require_inputs(inputs: Sequence[ContentInput], what: str) -> None:
    if not inputs:
        msg = f"No {what} to reconcile"
        raise ReconciliationError(msg)


def _sorted_sources(sources) -> list[MetadataSource]:
    return sorted(set(sources), key=source_sort_key)


# --- Descriptions ----------------------------------------------------------


def clean_description_text(text: str | None) -> str:
    """Strip label prefixes, HTML and markdown noise, and collapse whitespace."""
    if not text:
        return ""
    cleaned = _PREFIX_RE.sub("", text.strip())
    cleaned = cleaned.replace("\r\n", "\n").replace("\r", "\n")
    cleaned = _HTML_TAG_RE.sub("", cleaned)
    cleaned = html.unescape(cleaned).replace("\xa0", " ")
    cleaned = _MD_LINK_RE.sub(r"\1", cleaned)
    cleaned = _MD_EMPHASIS_RE.sub(r"\2", cleaned)
    cleaned = _MD_HEADING_RE.sub("", cleaned)
    cleaned = _MANY_NEWLINES_RE.sub("\n\n", cleaned)
    cleaned = _HSPACE_RE.sub(" ", cleaned)
    return "\n".join(line.strip() for line in cleaned.split("\n")).strip()


def detect_description_type(text: str, origin: str | None = None) -> str:
    lower = text.lower()
    hint = (origin or "").lower()
    if "publisher" in hint or "official" in hint:
        return "summary"
    if "review" in hint or "editorial" in hint:
        return "blurb"
    if "abstract" in hint or "academic" in hint:
        return "abstract"

    for kind in ("synopsis", "summary", "abstract"):
        if lower.startswith(kind + ":") or lower.startswith(kind + " "):
            return kind
    for kind in ("synopsis", "summary", "abstract"):
        if kind in lower:
            return kind

    if len(text) < policy.DESCRIPTION_BLURB_LIMIT:
        return "blurb"
    if len(text) > policy.DESCRIPTION_FULL_LIMIT:
        return "description"
    return "summary"


def detect_description_length(text: str) -> str:
    if len(text) < policy.DESCRIPTION_SHORT_LIMIT:
        return "short"
    if len(text) < policy.DESCRIPTION_MEDIUM_LIMIT:
        return "medium"
    return "long"


def description_quality(text: str, origin: str | None = None) -> float:
    """Heuristic quality in [0.1, 1.0] from length, structure, origin and tone."""
    if not text or len(text) < policy.DESCRIPTION_MIN_LENGTH:
        return policy.DESCRIPTION_QUALITY_BOUNDS[0]

    quality = policy.DESCRIPTION_BASE_QUALITY
    length = len(text)
    ideal_low, ideal_high = policy.DESCRIPTION_IDEAL_RANGE
    ok_low, ok_high = policy.DESCRIPTION_ACCEPTABLE_RANGE
    if ideal_low <= length <= ideal_high:
        quality += policy.DESCRIPTION_IDEAL_BONUS
    elif ok_low <= length <= ok_high:
        quality += policy.DESCRIPTION_ACCEPTABLE_BONUS
    elif length < policy.DESCRIPTION_TOO_SHORT or length > policy.DESCRIPTION_TOO_LONG:
        quality -= policy.DESCRIPTION_LENGTH_PENALTY

    if origin:
        hint = origin.lower()
        if any(word in hint for word in _POSITIVE_SOURCE_HINTS):
            quality += policy.DESCRIPTION_SOURCE_ADJUSTMENT
        if any(word in hint for word in _NEGATIVE_SOURCE_HINTS):
            quality -= policy.DESCRIPTION_SOURCE_ADJUSTMENT

    sentences = [s for s in _SENTENCE_SPLIT_RE.split(text) if s.strip()]
    low, high = policy.DESCRIPTION_SENTENCE_RANGE
    if low <= len(sentences) <= high:
        quality += policy.DESCRIPTION_SENTENCE_BONUS
    if _ENDS_WITH_PUNCT_RE.search(text.strip()):
        quality += policy.DESCRIPTION_PUNCTUATION_BONUS

    lower = text.lower()
    if sum(word in lower for word in _PROMOTIONAL_WORDS) > policy.DESCRIPTION_PROMOTIONAL_LIMIT:
        quality -= policy.DESCRIPTION_PROMOTIONAL_PENALTY

    floor, ceiling = policy.DESCRIPTION_QUALITY_BOUNDS
    return max(floor, min(ceiling, quality))


def normalize_description(value: str | Description) -> Description:
    if isinstance(value, Description):
        text = clean_description_text(value.text)
        return Description(
            text=text,
            type=value.type or detect_description_type(value.text, value.origin),
            length=detect_description_length(text),
            quality=description_quality(text, value.origin),
            language=value.language,
            origin=value.origin,
            raw=value.raw or value.text,
        )
    text = clean_description_text(value)
    # Type cues such as "Synopsis:" live in the raw text, before prefix stripping.
    return Description(
        text=text,
        type=detect_description_type(value),
        length=detect_description_length(text),
        quality=description_quality(text),
        raw=value,
    )


def description_confidence(description: Description, source: MetadataSource) -> float:
    confidence = source.reliability * (0.5 + description.quality * 0.5)
    if description.length == "medium":
        confidence *= policy.DESCRIPTION_MEDIUM_BOOST
    elif description.length == "long":
        confidence *= policy.DESCRIPTION_LONG_BOOST
    return max(policy.NO_DATA_CONFIDENCE, min(1.0, confidence))


def reconcile_descriptions(inputs: Sequence[ContentInput]) -> ReconciledField[Description]:
    """Pick the description with the best quality times source reliability.

    A Conflict is recorded when any other candidate shares less than 70% of
    its longer words with the winner, i.e. describes a different book or
    angle rather than rewording the same one.

    Raises:
        ReconciliationError: If inputs is empty.
    """
    _require_inputs(inputs, "descriptions")

    candidates: list[tuple[Description, MetadataSource]] = []
    for entry in inputs:
        for raw in entry.descriptions:
            description = normalize_description(raw)
            if len(description.text) > policy.DESCRIPTION_MIN_LENGTH:
                candidates.append((description, entry.source))

    if not candidates:
        return ReconciledField(
            value=Description(text="", type="description"),
            confidence=policy.NO_DATA_CONFIDENCE,
            sources=[],
            reasoning="No valid descriptions found",
        )

    candidates.sort(
        key=lambda item: (
            -round(item[0].quality * item[1].reliability, 6),
            -len(item[0].text),
            *source_sort_key(item[1]),
            item[0].text,
        )
    )
    best, best_source = candidates[0]

    divergent = any(
        word_overlap(other.text, best.text) < policy.DESCRIPTION_DIVERGENCE_THRESHOLD
        for other, _ in candidates[1:]
    )
    conflicts = None
    reasoning = "Selected best available description"
    if divergent:
        conflicts = [
            Conflict(
                field="description",
                values=[ConflictValue(value=d, source=s) for d, s in candidates],
                resolution=(
                    "Selected highest quality description based on content quality"
                    " and source reliability"
                ),
            )
        ]
        reasoning = "Selected best description from multiple sources with conflict resolution"

    return ReconciledField(
        value=best,
        confidence=description_confidence(best, best_source),
        sources=_sorted_sources(s for _, s in candidates),
        reasoning=reasoning,
        conflicts=conflicts,
    )


# --- Table of contents ----------------------------------------------------


def parse_table_of_contents(text: str) -> list[TocEntry]:
    """Parse a free-text outline, one entry per line.

    Trailing page numbers ("Chapter One ..... 12" or "Chapter One 12") are
    captured, leading chapter numbering is dropped, and every two spaces of
    indentation add one level.
    """
    entries: list[TocEntry] = []
    for line in text.replace("\r\n", "\n").split("\n"):
        stripped = line.strip()
        if not stripped:
            continue
        level = (len(line) - len(line.lstrip(" "))) // 2
        page = None
        title = stripped
        match = _TOC_DOTTED_RE.match(stripped) or _TOC_TRAILING_PAGE_RE.match(stripped)
        if match:
            title, page = match.group(1).strip(), int(match.group(2))
        title = _TOC_NUMBER_PREFIX_RE.sub("", title).strip()
        if title:
            entries.append(TocEntry(title=title, page=page, level=level))
    return entries


def _normalize_entry(entry: TocEntry) -> TocEntry:
    return TocEntry(
        title=entry.title.strip(),
        page=entry.page,
        level=entry.level or 0,
        children=tuple(_normalize_entry(child) for child in entry.children),
    )


def detect_toc_format(entries: Sequence[TocEntry]) -> str:
    if any(entry.children for entry in entries):
        return "hierarchical"
    if any(entry.page is not None for entry in entries):
        return "detailed"
    return "simple"


def normalize_table_of_contents(value: str | TableOfContents) -> TableOfContents:
    if isinstance(value, TableOfContents):
        entries = tuple(_normalize_entry(e) for e in value.entries)
        raw = value.raw
    else:
        entries = tuple(parse_table_of_contents(value))
        raw = value
    return TableOfContents(
        entries=entries,
        format=detect_toc_format(entries),
        page_numbers=any(e.page is not None for e in entries),
        raw=raw,
    )


def reconcile_table_of_contents(inputs: Sequence[ContentInput]) -> ReconciledField[TableOfContents]:
    """Pick the most complete table of contents.

    Most entries wins, then having page numbers, then source reliability.
    """
    _require_inputs(inputs, "tables of contents")

    candidates = []
    for entry in inputs:
        if entry.table_of_contents is None:
            continue
        toc = normalize_table_of_contents(entry.table_of_contents)
        if toc.entries:
            candidates.append((toc, entry.source))

    if not candidates:
        return ReconciledField(
            value=TableOfContents(entries=()),
            confidence=policy.NO_DATA_CONFIDENCE,
            sources=[],
            reasoning="No table of contents found",
        )

    candidates.sort(
        key=lambda item: (
            -len(item[0].entries),
            -policy.TOC_FORMAT_SCORE.get(item[0].format, 0),
            *source_sort_key(item[1]),
            tuple(e.title for e in item[0].entries),
        )
    )
    best, best_source = candidates[0]
    return ReconciledField(
        value=best,
        confidence=best_source.reliability * policy.TOC_CONFIDENCE_FACTOR,
        sources=[best_source],
        reasoning="Selected most complete table of contents",
    )


# --- Reviews and ratings ---------------------------------------------------


def reconcile_reviews(
    inputs: Sequence[ContentInput], *, limit: int = policy.REVIEW_LIMIT
) -> ReconciledField[list[Review]]:
    """Keep the top reviews: verified first, then most helpful, then longest."""
    _require_inputs(inputs, "reviews")

    pooled = [(review, entry.source) for entry in inputs for review in entry.reviews]
    if not pooled:
        return ReconciledField(
            value=[],
            confidence=policy.NO_DATA_CONFIDENCE,
            sources=[],
            reasoning="No reviews found",
        )

    pooled.sort(
        key=lambda item: (
            not item[0].verified,
            -item[0].helpfulness,
            -len(item[0].text or ""),
            *source_sort_key(item[1]),
            item[0].text or "",
        )
    )
    selected = pooled[:limit]
    sources = _sorted_sources(s for _, s in selected)
    mean_reliability = sum(s.reliability for s in sources) / len(sources)
    return ReconciledField(
        value=[review for review, _ in selected],
        confidence=mean_reliability * policy.REVIEW_CONFIDENCE_FACTOR,
        sources=sources,
        reasoning=f"Selected top {len(selected)} reviews based on verification and quality",
    )


def reconcile_rating(inputs: Sequence[ContentInput]) -> ReconciledField[Rating]:
    """Weighted average of every rating, weighted by reliability and log of the vote count.

    The result is expressed on the most common scale among the inputs.
    """
    _require_inputs(inputs, "ratings")

    pooled = [(rating, entry.source) for entry in inputs for rating in entry.ratings]
    if not pooled:
        return ReconciledField(
            value=Rating(value=0, scale=5),
            confidence=policy.NO_DATA_CONFIDENCE,
            sources=[],
            reasoning="No ratings found",
        )

    weighted = 0.0
    total_weight = 0.0
    for rating, source in pooled:
        count_weight = math.log10(rating.count + 1) if rating.count else 1.0
        weight = source.reliability * count_weight
        weighted += rating.normalized * weight
        total_weight += weight
    if total_weight:
        average = weighted / total_weight
    else:
        average = sum(r.normalized for r, _ in pooled) / len(pooled)

    scales = Counter(rating.scale for rating, _ in pooled)
    scale = sorted(scales.items(), key=lambda item: (-item[1], item[0]))[0][0]
    total_count = sum(rating.count or 0 for rating, _ in pooled)
    mean_reliability = sum(s.reliability for _, s in pooled) / len(pooled)

    normalized = [rating.normalized for rating, _ in pooled]
    conflicts = None
    reasoning = "Calculated weighted average rating from all sources"
    if max(normalized) - min(normalized) > policy.RATING_CONFLICT_SPREAD:
        conflicts = [
            Conflict(
                field="rating",
                values=[
                    ConflictValue(value=r, source=s)
                    for r, s in sorted(pooled, key=lambda item: source_sort_key(item[1]))
                ],
                resolution=(
                    "Calculated weighted average based on source reliability and rating counts"
                ),
            )
        ]
        reasoning = "Calculated weighted average rating with conflict resolution"

    return ReconciledField(
        value=Rating(value=round(average * scale, 1), scale=scale, count=total_count or None),
        confidence=mean_reliability * policy.RATING_CONFIDENCE_FACTOR,
        sources=_sorted_sources(s for _, s in pooled),
        reasoning=reasoning,
        conflicts=conflicts,
    )


# --- Cover images ----------------------------------------------------------


def detect_image_format(url: str) -> str:
    path = url.lower().split("?", 1)[0]
    extension = path.rsplit(".", 1)[-1] if "." in path else ""
    return _IMAGE_EXTENSIONS.get(extension, "other")


def detect_image_quality(width: int | None, height: int | None) -> str:
    if not width or not height:
        return "medium"
    area = width * height
    for limit, tier in policy.COVER_QUALITY_AREA:
        if area < limit:
            return tier
    return "original"


def normalize_cover_image(value: str | CoverImage) -> CoverImage:
    if isinstance(value, str):
        return CoverImage(url=value, format=detect_image_format(value))
    aspect = value.aspect_ratio
    if aspect is None and value.width and value.height:
        aspect = value.height / value.width
    quality = value.quality
    if quality == "medium" and value.width and value.height:
        quality = detect_image_quality(value.width, value.height)
    return CoverImage(
        url=value.url,
        width=value.width,
        height=value.height,
        format=value.format if value.format != "other" else detect_image_format(value.url),
        size=value.size,
        quality=quality,
        aspect_ratio=aspect,
        verified=value.verified,
    )


def _dimension_score(value: int, minimum: int, preferred: int) -> float:
    if value >= preferred:
        return policy.COVER_PREFERRED_BONUS
    if value >= minimum:
        return policy.COVER_MIN_BONUS
    return -policy.COVER_UNDERSIZE_PENALTY


def cover_quality_score(image: CoverImage) -> float:
    """Score in [0.1, 1.0] from resolution, aspect ratio, format, verification and tier."""
    score = policy.COVER_BASE_SCORE
    if image.width and image.height:
        min_w, min_h = policy.COVER_MIN_SIZE
        pref_w, pref_h = policy.COVER_PREFERRED_SIZE
        max_w, max_h = policy.COVER_MAX_SIZE
        score += _dimension_score(image.width, min_w, pref_w)
        score += _dimension_score(image.height, min_h, pref_h)
        if image.width > max_w or image.height > max_h:
            score -= policy.COVER_OVERSIZE_PENALTY
        if image.aspect_ratio:
            drift = abs(image.aspect_ratio - policy.COVER_PREFERRED_ASPECT)
            if drift <= policy.COVER_ASPECT_TOLERANCE:
                score += policy.COVER_ASPECT_ADJUSTMENT
            elif drift > policy.COVER_ASPECT_TOLERANCE * 2:
                score -= policy.COVER_ASPECT_ADJUSTMENT

    score += policy.COVER_FORMAT_BONUS.get(image.format, 0.0)
    if image.verified:
        score += policy.COVER_VERIFIED_BONUS
    score += policy.COVER_QUALITY_BONUS.get(image.quality, 0.0)

    floor, ceiling = policy.COVER_SCORE_BOUNDS
    return max(floor, min(ceiling, score))


def reconcile_cover_images(inputs: Sequence[ContentInput]) -> ReconciledField[CoverImage]:
    _require_inputs(inputs, "cover images")

    candidates = [
        (normalize_cover_image(raw), entry.source)
        for entry in inputs
        for raw in entry.cover_images
        if (raw.url if isinstance(raw, CoverImage) else raw)
    ]
    if not candidates:
        return ReconciledField(
            value=CoverImage(url=""),
            confidence=policy.NO_DATA_CONFIDENCE,
            sources=[],
            reasoning="No cover images found",
        )

    candidates.sort(
        key=lambda item: (
            -round(cover_quality_score(item[0]) * item[1].reliability, 6),
            *source_sort_key(item[1]),
            item[0].url,
        )
    )
    best, best_source = candidates[0]

    conflicts = None
    reasoning = "Selected best available cover image"
    if len({image.url for image, _ in candidates}) > 1:
        conflicts = [
            Conflict(
                field="coverImage",
                values=[ConflictValue(value=i, source=s) for i, s in candidates],
                resolution=(
                    "Selected highest quality image based on resolution, format,"
                    " and source reliability"
                ),
            )
        ]
        reasoning = "Selected best cover image from multiple sources with conflict resolution"

    return ReconciledField(
        value=best,
        confidence=best_source.reliability * cover_quality_score(best),
        sources=_sorted_sources(s for i, s in candidates if i.url == best.url),
        reasoning=reasoning,
        conflicts=conflicts,
    )


# --- Excerpts --------------------------------------------------------------


def reconcile_excerpts(inputs: Sequence[ContentInput]) -> ReconciledField[str]:
    _require_inputs(inputs, "excerpts")

    candidates = [
        (entry.excerpt.strip(), entry.source)
        for entry in inputs
        if entry.excerpt and entry.excerpt.strip()
    ]
    if not candidates:
        return ReconciledField(
            value="",
            confidence=policy.NO_DATA_CONFIDENCE,
            sources=[],
            reasoning="No excerpts found",
        )

    candidates.sort(
        key=lambda item: (
            -item[1].reliability,
            abs(len(item[0]) - policy.EXCERPT_IDEAL_LENGTH),
            item[1].name,
            item[0],
        )
    )
    best, best_source = candidates[0]
    return ReconciledField(
        value=best,
        confidence=best_source.reliability * policy.EXCERPT_CONFIDENCE_FACTOR,
        sources=[best_source],
        reasoning="Selected best excerpt based on source reliability and content quality",
    )


def reconcile_content(inputs: Sequence[ContentInput]) -> ContentReconciliation:
    """Reconcile every descriptive field at once.

    Raises:
        ReconciliationError: If inputs is empty.
    """
    _require_inputs(inputs, "content descriptions")
    result = ContentReconciliation(
        description=reconcile_descriptions(inputs),
        table_of_contents=reconcile_table_of_contents(inputs),
        reviews=reconcile_reviews(inputs),
        rating=reconcile_rating(inputs),
        cover_image=reconcile_cover_images(inputs),
        excerpt=reconcile_excerpts(inputs),
    )
    for name in ("description", "table_of_contents", "reviews", "rating", "cover_image", "excerpt"):
        if getattr(result, name).has_conflicts:
            result.conflict_fields.append(name)
    if result.conflict_fields:
        logger.debug("Content conflicts in %s", ", ".join(result.conflict_fields))
    return result
