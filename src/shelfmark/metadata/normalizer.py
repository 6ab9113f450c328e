# ABOUTME: Text normalization for titles and creator names used in matching and duplicate detection.
# ABOUTME: Splits mangled titles like "TheTemplarLegacy" and canonicalizes "Last, First" author forms.

import re
import unicodedata
from dataclasses import replace

import wordninja

from shelfmark.metadata.types import BookMetadata

# Minimum length for a spaceless string to be considered "concatenated" and worth splitting.
# Shorter strings (e.g. "Dune", "1984") are left alone.
_MIN_CONCAT_LENGTH = 8

_CAMEL_CASE_RE = re.compile(r"[a-z][A-Z]")
_CAMEL_LOWER_UPPER_RE = re.compile(r"([a-z\d])([A-Z])")
_CAMEL_UPPER_SEQUENCE_RE = re.compile(r"([A-Z]+)([A-Z][a-z])")
_LETTER_DIGIT_RE = re.compile(r"([a-zA-Z])(\d)")
_DIGIT_LETTER_RE = re.compile(r"(\d)([a-zA-Z])")
_SEPARATOR_RE = re.compile(r"[-_]")

_PUNCTUATION_RE = re.compile(r"[^\w\s]")
_WHITESPACE_RE = re.compile(r"\s+")
_LEADING_ARTICLE_RE = re.compile(r"^(the|a|an)\s+")
_SUBTITLE_RE = re.compile(r"\s*[:;]\s.*$")

_HONORIFIC_RE = re.compile(
    r"\b(dr|prof|professor|sir|dame|lord|lady|rev|reverend|father|mother|brother|sister"
    r"|saint|st|pope)\b\.?\s*"
)
_NAME_SUFFIX_RE = re.compile(
    r"\s*\b(jr|sr|junior|senior|i{1,3}|iv|v|vi{1,3}|ix|x{1,3}|xi{1,3}|xiv|xv|phd|md|esq"
    r"|esquire)\b\.?\s*$",
    re.IGNORECASE,
)
_LAST_FIRST_RE = re.compile(r"^([^,]+),\s*(.+)$")
_INNER_HYPHEN_RE = re.compile(r"([a-z])-([a-z])")
_HYPHEN_MARKER = "_HYPHEN_"
_SPACED_INITIALS_RE = re.compile(r"\b([a-z])\s+(?=[a-z]\s|[a-z]$)")

# Author values that indicate missing/unknown authorship.
_UNKNOWN_AUTHORS = frozenset({"unknown", "various", "anonymous", ""})


def _needs_normalization(text: str) -> bool:
    """Check whether a title string looks mangled and needs splitting.

    Returns True for CamelCase-joined words, underscore-joined words,
    or long spaceless strings that are likely concatenated.
    """
    text = text.strip()
    if not text:
        return False
    if "_" in text:
        return True
    if _CAMEL_CASE_RE.search(text):
        return True
    segments = text.split("-") if "-" in text else [text]
    return any(" " not in seg and len(seg) >= _MIN_CONCAT_LENGTH for seg in segments)


def _split_camel_case(text: str) -> list[str]:
    """Split a CamelCase string into individual words.

    Handles lower-to-upper boundaries, acronyms followed by a capitalized
    word ("HTMLParser"), and letter/digit boundaries ("Fahrenheit451").
    """
    result = _CAMEL_LOWER_UPPER_RE.sub(r"\1_SPLIT_\2", text)
    result = _CAMEL_UPPER_SEQUENCE_RE.sub(r"\1_SPLIT_\2", result)
    result = _LETTER_DIGIT_RE.sub(r"\1_SPLIT_\2", result)
    result = _DIGIT_LETTER_RE.sub(r"\1_SPLIT_\2", result)
    parts = [p for p in result.split("_SPLIT_") if p]
    return parts if parts else [text]


def split_concatenated(text: str) -> str:
    """Split a concatenated/mangled string into space-separated words.

    Hyphens and underscores separate segments, CamelCase boundaries split
    each segment, and long all-lowercase runs go through wordninja.
    """
    if not _needs_normalization(text):
        return text

    words: list[str] = []
    for segment in _SEPARATOR_RE.split(text):
        segment = segment.strip()
        if not segment:
            continue
        for part in _split_camel_case(segment):
            if part.islower() and len(part) >= _MIN_CONCAT_LENGTH:
                words.append(" ".join(wordninja.split(part)) or part)
            else:
                words.append(part)
    return " ".join(words)


def strip_accents(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_title(title: str | None, *, drop_subtitle: bool = False) -> str:
    """Canonical matching form of a title.

    Splits mangled words, lower-cases, removes accents, punctuation and a
    leading article, and collapses whitespace. "The Name of the Rose!" and
    "name of the rose" normalize to the same string.
    """
    if not title:
        return ""
    text = split_concatenated(title.strip())
    if drop_subtitle:
        text = _SUBTITLE_RE.sub("", text)
    text = strip_accents(text).lower().replace("'", "").replace("’", "")
    text = _PUNCTUATION_RE.sub(" ", text).replace("_", " ")
    text = _WHITESPACE_RE.sub(" ", text).strip()
    return _LEADING_ARTICLE_RE.sub("", text)


def normalize_creator_name(name: str | None) -> str:
    """Canonical matching form of a person's name.

    Drops honorifics and generational or degree suffixes, turns
    "Last, First" into "First Last", strips punctuation while keeping inner
    hyphens, and joins spaced initials ("j r r tolkien" -> "jrr tolkien").
    """
    if not name:
        return ""
    text = strip_accents(name.strip().lower())
    text = _HONORIFIC_RE.sub("", text)
    text = _NAME_SUFFIX_RE.sub("", text)
    match = _LAST_FIRST_RE.match(text)
    if match:
        text = f"{match.group(2)} {match.group(1)}"
    text = _INNER_HYPHEN_RE.sub(rf"\1{_HYPHEN_MARKER}\2", text)
    text = _PUNCTUATION_RE.sub("", text)
    text = text.replace(_HYPHEN_MARKER, "-")
    text = _WHITESPACE_RE.sub(" ", text).strip()
    return _SPACED_INITIALS_RE.sub(r"\1", text)


def has_valid_authors(meta: BookMetadata) -> bool:
    """Check whether metadata has meaningful author information."""
    if not meta.authors:
        return False
    return not all(a.strip().lower() in _UNKNOWN_AUTHORS for a in meta.authors)


def clean_baseline(metadata: BookMetadata) -> BookMetadata:
    """Tidy extracted metadata before it is used to query providers.

    Placeholder authors ("Unknown", "Various") are dropped and mangled
    titles are split into words. Returns the input unchanged when nothing
    needed fixing.
    """
    authors = metadata.authors if has_valid_authors(metadata) else []
    title = split_concatenated(metadata.title) if metadata.title else metadata.title
    if authors == metadata.authors and title == metadata.title:
        return metadata
    return replace(metadata, title=title, authors=list(authors))
