# ABOUTME: Physical description reconciliation: page counts, dimensions, binding and format, weight.
# ABOUTME: Free text such as "xiv + 342 pages", "8.5 x 11 in" or "1.2 kg" is parsed to metric values.

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, replace

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

_NUMBER = r"(\d+(?:\.\d+)?)"
_UNIT = r"(mm|cm|inches|inch|in)\b"
_DIMENSIONS_SHARED_UNIT_RE = re.compile(
    rf"{_NUMBER}\s*[x×]\s*{_NUMBER}(?:\s*[x×]\s*{_NUMBER})?\s*{_UNIT}", re.IGNORECASE
)
_DIMENSIONS_EACH_UNIT_RE = re.compile(
    rf"{_NUMBER}\s*{_UNIT}\s*[x×]\s*{_NUMBER}\s*{_UNIT}(?:\s*[x×]\s*{_NUMBER}\s*{_UNIT})?",
    re.IGNORECASE,
)
_DIMENSION_LABEL_RE = re.compile(
    rf"\b(height|width|depth|h|w|d)\s*:?\s*{_NUMBER}\s*{_UNIT}", re.IGNORECASE
)
_WEIGHT_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(kg|g|lbs|lb|ounces|ounce|oz)\b", re.IGNORECASE)
_PAGE_NOISE_RE = re.compile(r"[^\d\s+]")
_DIGITS_RE = re.compile(r"\d+")

# Checked in order; the first phrase found in the text decides the binding.
_BINDING_PHRASES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("hardcover", ("hardcover", "hardback", "hard cover")),
    ("mass_market", ("mass market", "pocket")),
    ("paperback", ("paperback", "softcover", "soft cover")),
    ("board_book", ("board book", "boardbook")),
    ("spiral", ("spiral", "wire-o", "coil")),
    ("leather", ("leather",)),
    ("cloth", ("cloth",)),
    ("digital", ("digital", "ebook", "e-book")),
    ("audio", ("audio",)),
)

# (phrases, format, medium), checked in order.
_FORMAT_PHRASES: tuple[tuple[tuple[str, ...], str, str], ...] = (
    (("ebook", "e-book", "digital"), "ebook", "digital"),
    (("audiobook", "audio book"), "audiobook", "audio"),
    (("magazine",), "magazine", "print"),
    (("journal",), "journal", "print"),
    (("newspaper",), "newspaper", "print"),
    (("braille",), "book", "braille"),
    (("large print",), "book", "large_print"),
)


@dataclass(frozen=True)
class Dimensions:
    """Physical size of a copy in millimetres; width and height are the cover sides."""

    width: float | None = None
    height: float | None = None
    depth: float | None = None
    unit: str = "mm"
    raw: str | None = None

    @property
    def completeness(self) -> float:
        return sum(1 for d in (self.width, self.height, self.depth) if d is not None) / 3

    def __str__(self) -> str:
        sides = [f"{d:g}" for d in (self.width, self.height, self.depth) if d is not None]
        return f"{' x '.join(sides)} {self.unit}" if sides else ""


@dataclass(frozen=True)
class FormatInfo:
    """Publication format and binding.

    format is book, ebook, audiobook, magazine, journal or newspaper; medium
    is print, digital, audio, braille or large_print.
    """

    format: str = "book"
    medium: str = "print"
    binding: str | None = None
    raw: str | None = None

    def __str__(self) -> str:
        if self.binding and self.format == "book":
            return self.binding.replace("_", " ")
        return self.format


@dataclass(frozen=True)
class PhysicalInput:
    """Physical facts one source reported; any part may be missing."""

    source: MetadataSource
    page_count: int | str | None = None
    dimensions: str | Dimensions | None = None
    format: str | FormatInfo | None = None
    binding: str | None = None
    weight: float | str | None = None


@dataclass
class PhysicalDescription:
    page_count: ReconciledField[int | None]
    dimensions: ReconciledField[Dimensions]
    format: ReconciledField[FormatInfo]
    weight: ReconciledField[int | None]


def normalize_page_count(value: int | str | None) -> int | None:
    """Page count from a number or text like "320 pages" or "xiv + 342".

    With several numbers in the text the largest is taken as the main count.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        count = int(value)
    else:
        numbers = _DIGITS_RE.findall(_PAGE_NOISE_RE.sub(" ", value.lower()))
        if not numbers:
            return None
        count = max(int(n) for n in numbers)
    return count if 0 < count < policy.PAGE_COUNT_LIMIT else None


def _unit(text: str | None) -> str:
    lower = (text or "mm").lower()
    if lower.startswith("in"):
        return "in"
    if lower == "cm":
        return "cm"
    return "mm"


def _to_mm(value: float | None, unit: str) -> float | None:
    if value is None:
        return None
    return round(value * policy.DIMENSION_UNIT_MM[unit], 2)


def _in_range(value: float | None, bounds: tuple[float, float]) -> float | None:
    if value is None:
        return None
    low, high = bounds
    return value if low <= value <= high else None


def _validated(dimensions: Dimensions) -> Dimensions:
    unit = _unit(dimensions.unit)
    return Dimensions(
        width=_in_range(_to_mm(dimensions.width, unit), policy.DIMENSION_SIDE_RANGE_MM),
        height=_in_range(_to_mm(dimensions.height, unit), policy.DIMENSION_SIDE_RANGE_MM),
        depth=_in_range(_to_mm(dimensions.depth, unit), policy.DIMENSION_DEPTH_RANGE_MM),
        unit="mm",
        raw=dimensions.raw,
    )


def parse_dimensions(text: str) -> Dimensions:
    """Parse "8.5 x 11 in", "210mm x 297mm x 5mm" or "H: 23cm, W: 15cm, D: 2cm".

    Unlabelled sizes are read as width, height, then depth. Text that matches
    no form gives empty Dimensions carrying only the raw text.
    """
    match = _DIMENSIONS_SHARED_UNIT_RE.search(text)
    if match:
        width, height, depth, unit = match.groups()
        return _validated(
            Dimensions(
                width=float(width),
                height=float(height),
                depth=float(depth) if depth else None,
                unit=_unit(unit),
                raw=text,
            )
        )

    match = _DIMENSIONS_EACH_UNIT_RE.search(text)
    if match:
        groups = match.groups()
        width, height, depth = (
            _to_mm(float(groups[i]), _unit(groups[i + 1])) if groups[i] else None
            for i in (0, 2, 4)
        )
        # Sides are already in millimetres here.
        return _validated(Dimensions(width, height, depth, unit="mm", raw=text))

    labelled: dict[str, float | None] = {}
    for label, number, unit in _DIMENSION_LABEL_RE.findall(text):
        labelled[label[0].lower()] = _to_mm(float(number), _unit(unit))
    if labelled:
        return _validated(
            Dimensions(
                width=labelled.get("w"),
                height=labelled.get("h"),
                depth=labelled.get("d"),
                unit="mm",
                raw=text,
            )
        )
    return Dimensions(raw=text)


def normalize_dimensions(value: str | Dimensions) -> Dimensions:
    if isinstance(value, Dimensions):
        return _validated(value)
    return parse_dimensions(value)


def normalize_binding(hint: str) -> str:
    """Map a provider's binding label onto the known binding names, else "other"."""
    lower = hint.lower()
    for needle, binding in (
        ("hard", "hardcover"),
        ("paper", "paperback"),
        ("soft", "paperback"),
        ("mass", "mass_market"),
        ("board", "board_book"),
        ("spiral", "spiral"),
        ("coil", "spiral"),
        ("leather", "leather"),
        ("cloth", "cloth"),
        ("digital", "digital"),
        ("ebook", "digital"),
        ("audio", "audio"),
    ):
        if needle in lower:
            return binding
    return "other"


def parse_format(text: str, binding_hint: str | None = None) -> FormatInfo:
    lower = text.lower()
    binding = next(
        (name for name, phrases in _BINDING_PHRASES if any(p in lower for p in phrases)),
        None,
    )
    if binding is None and binding_hint:
        binding = normalize_binding(binding_hint)

    for phrases, fmt, medium in _FORMAT_PHRASES:
        if any(p in lower for p in phrases):
            return FormatInfo(format=fmt, medium=medium, binding=binding, raw=text or None)

    medium = {"digital": "digital", "audio": "audio"}.get(binding or "", "print")
    return FormatInfo(format="book", medium=medium, binding=binding, raw=text or None)


def normalize_format(value: str | FormatInfo, binding_hint: str | None = None) -> FormatInfo:
    """Parse format text, or fill a structured format's medium from its binding or format."""
    if not isinstance(value, FormatInfo):
        return parse_format(value, binding_hint)
    medium = value.medium
    if value.binding == "digital" or value.format == "ebook":
        medium = "digital"
    elif value.binding == "audio" or value.format == "audiobook":
        medium = "audio"
    return replace(value, medium=medium)


def normalize_weight(value: float | str | None) -> int | None:
    """Weight in grams from a number of grams or text like "500g", "1.2 kg" or "2 lbs"."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        grams = float(value)
    else:
        match = _WEIGHT_RE.search(value)
        if not match:
            return None
        unit = match.group(2).lower()
        if unit.startswith("kg"):
            factor = policy.WEIGHT_UNIT_GRAMS["kg"]
        elif unit.startswith("lb"):
            factor = policy.WEIGHT_UNIT_GRAMS["lb"]
        elif unit.startswith(("oz", "ounce")):
            factor = policy.WEIGHT_UNIT_GRAMS["oz"]
        else:
            factor = policy.WEIGHT_UNIT_GRAMS["g"]
        grams = float(match.group(1)) * factor
    return round(grams) if 0 < grams < policy.PAGE_COUNT_LIMIT else None


def _pages_agree(a: int, b: int) -> bool:
    diff = abs(a - b)
    return (
        diff <= policy.PAGE_COUNT_TOLERANCE_PAGES
        or diff / max(a, b) <= policy.PAGE_COUNT_TOLERANCE_RATIO
    )


def reconcile_page_counts(inputs: Sequence[PhysicalInput]) -> ReconciledField[int | None]:
    """Reconcile page counts, treating counts within 10 pages or 5% as agreeing.

    Counts are grouped around the count of the most reliable source in each
    group; the group with the most total reliability wins and its counts are
    averaged, weighted by reliability.
    """
    counts = sorted(
        (
            (count, entry.source)
            for entry in inputs
            if (count := normalize_page_count(entry.page_count)) is not None
        ),
        key=lambda item: (*source_sort_key(item[1]), item[0]),
    )
    if not counts:
        return ReconciledField(
            value=None,
            confidence=policy.NO_DATA_CONFIDENCE,
            sources=[],
            reasoning="No valid page counts found",
        )
    if len(counts) == 1:
        count, source = counts[0]
        return ReconciledField(
            value=count,
            confidence=source.reliability * policy.PAGE_COUNT_SINGLE_FACTOR,
            sources=[source],
            reasoning="Single page count source",
        )

    groups: list[list[tuple[int, MetadataSource]]] = []
    for count, source in counts:
        group = next((g for g in groups if _pages_agree(count, g[0][0])), None)
        if group is None:
            groups.append([(count, source)])
        else:
            group.append((count, source))

    def weight(group: list[tuple[int, MetadataSource]]) -> float:
        return sum(source.reliability for _, source in group)

    # Groups were opened in reliability order, so max() keeps the more reliable on ties.
    best = max(groups, key=weight)
    best_weight = weight(best)
    average = round(sum(count * source.reliability for count, source in best) / best_weight)
    confidence = min(
        policy.PAGE_COUNT_CONFIDENCE_CAP,
        best_weight / len(counts) * policy.PAGE_COUNT_GROUP_FACTOR,
    )

    conflicts = None
    if len(groups) > 1:
        conflicts = [
            Conflict(
                field="page_count",
                values=[ConflictValue(value=g[0][0], source=g[0][1]) for g in groups],
                resolution="Selected page count from most reliable sources",
            )
        ]
        reasoning = (
            f"Reconciled {len(counts)} page counts with conflicts, "
            f"selected from {len(best)} agreeing sources"
        )
        logger.debug("Page count conflict across %d groups, chose %d", len(groups), average)
    else:
        reasoning = f"Averaged {len(best)} agreeing page counts"

    return ReconciledField(
        value=average,
        confidence=max(0.0, min(1.0, confidence)),
        sources=sorted({source for _, source in best}, key=source_sort_key),
        reasoning=reasoning,
        conflicts=conflicts,
    )


def reconcile_dimensions(inputs: Sequence[PhysicalInput]) -> ReconciledField[Dimensions]:
    """Pick the most complete dimensions from the most reliable source."""
    candidates = []
    for entry in inputs:
        if entry.dimensions is None:
            continue
        dimensions = normalize_dimensions(entry.dimensions)
        if dimensions.width is not None or dimensions.height is not None:
            candidates.append((dimensions, entry.source))

    if not candidates:
        return ReconciledField(
            value=Dimensions(),
            confidence=policy.NO_DATA_CONFIDENCE,
            sources=[],
            reasoning="No valid dimensions found",
        )
    if len(candidates) == 1:
        dimensions, source = candidates[0]
        return ReconciledField(
            value=dimensions,
            confidence=source.reliability * policy.DIMENSION_SINGLE_FACTOR,
            sources=[source],
            reasoning="Single dimensions source",
        )

    def score(item: tuple[Dimensions, MetadataSource]) -> float:
        return item[1].reliability * item[0].completeness

    candidates.sort(key=lambda item: (-score(item), *source_sort_key(item[1])))
    dimensions, source = candidates[0]
    return ReconciledField(
        value=dimensions,
        confidence=score(candidates[0]) * policy.DIMENSION_GROUP_FACTOR,
        sources=[source],
        reasoning=f"Selected most complete dimensions from {len(candidates)} sources",
    )


def reconcile_formats(inputs: Sequence[PhysicalInput]) -> ReconciledField[FormatInfo]:
    """Take the format of the most reliable source; with none, assume a printed book."""
    candidates = []
    for entry in inputs:
        if entry.format is not None:
            candidates.append((normalize_format(entry.format, entry.binding), entry.source))
        elif entry.binding:
            candidates.append((parse_format("", entry.binding), entry.source))

    if not candidates:
        return ReconciledField(
            value=FormatInfo(),
            confidence=policy.FORMAT_DEFAULT_CONFIDENCE,
            sources=[],
            reasoning="No format information found, defaulting to print book",
        )

    candidates.sort(key=lambda item: (*source_sort_key(item[1]), str(item[0])))
    best, source = candidates[0]
    confidence = source.reliability * policy.FORMAT_FACTOR
    if len(candidates) == 1:
        return ReconciledField(
            value=best,
            confidence=confidence,
            sources=[source],
            reasoning="Single format source",
        )

    conflicts = None
    if len({(f.format, f.binding) for f, _ in candidates}) > 1:
        conflicts = [
            Conflict(
                field="format",
                values=[ConflictValue(value=f, source=s) for f, s in candidates],
                resolution="Selected format from most reliable source",
            )
        ]
    return ReconciledField(
        value=best,
        confidence=confidence,
        sources=[source],
        reasoning=f"Selected format from most reliable of {len(candidates)} sources",
        conflicts=conflicts,
    )


def reconcile_weights(inputs: Sequence[PhysicalInput]) -> ReconciledField[int | None]:
    """Average reported weights in grams, weighted by source reliability."""
    weights = sorted(
        (
            (grams, entry.source)
            for entry in inputs
            if (grams := normalize_weight(entry.weight)) is not None
        ),
        key=lambda item: (*source_sort_key(item[1]), item[0]),
    )
    if not weights:
        return ReconciledField(
            value=None,
            confidence=policy.NO_DATA_CONFIDENCE,
            sources=[],
            reasoning="No weight information found",
        )
    if len(weights) == 1:
        grams, source = weights[0]
        return ReconciledField(
            value=grams,
            confidence=source.reliability * policy.WEIGHT_SINGLE_FACTOR,
            sources=[source],
            reasoning="Single weight source",
        )

    total = sum(source.reliability for _, source in weights)
    average = round(sum(grams * source.reliability for grams, source in weights) / total)
    return ReconciledField(
        value=average,
        confidence=min(
            policy.WEIGHT_GROUP_FACTOR, total / len(weights) * policy.WEIGHT_GROUP_FACTOR
        ),
        sources=sorted({source for _, source in weights}, key=source_sort_key),
        reasoning=f"Averaged {len(weights)} weight measurements",
    )


def reconcile_physical(inputs: Sequence[PhysicalInput]) -> PhysicalDescription:
    """Reconcile every part of the physical description.

    Raises:
        ReconciliationError: If inputs is empty.
    """
    if not inputs:
        raise ReconciliationError("No physical descriptions to reconcile")
    return PhysicalDescription(
        page_count=reconcile_page_counts(inputs),
        dimensions=reconcile_dimensions(inputs),
        format=reconcile_formats(inputs),
        weight=reconcile_weights(inputs),
    )
