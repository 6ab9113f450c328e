# ABOUTME: Reliability-weighted voting for simple fields such as title, language and authors.
# ABOUTME: Also unions subject headings across sources, ranked by how many sources report them.

import logging
import re
from collections.abc import Callable, Hashable, Sequence
from typing import Any, TypeVar

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

T = TypeVar("T")

_WHITESPACE_RE = re.compile(r"\s+")


def default_key(value: Any) -> Hashable:
    """Comparison key: case-folded, whitespace-collapsed text; lists compare item by item."""
    if isinstance(value, str):
        return _WHITESPACE_RE.sub(" ", value).strip().casefold()
    if isinstance(value, (list, tuple)):
        return tuple(default_key(item) for item in value)
    return value


def _is_usable(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, set, frozenset, dict)):
        return bool(value)
    return True


def agreement_confidence(reliabilities: Sequence[float], share: float = 1.0) -> float:
    """Best reliability, nudged up per extra agreeing source and scaled by vote share."""
    best = max(reliabilities)
    boosted = best
    if len(reliabilities) > 1:
        bonus = policy.AGREEMENT_BONUS * (len(reliabilities) - 1)
        boosted = max(best, min(policy.AGREEMENT_CAP, best + bonus))
    return max(0.0, min(1.0, boosted * share))


def reconcile_values(
    field: str,
    candidates: Sequence[tuple[T, MetadataSource]],
    *,
    key: Callable[[T], Hashable] = default_key,
) -> ReconciledField[T | None]:
    """Vote on a simple field.

    Values are grouped by key and each group's weight is the summed
    reliability of its sources. The heaviest group wins; its value is taken
    from its most reliable source.

    Raises:
        ReconciliationError: If candidates is empty.
    """
    if not candidates:
        msg = f"No {field} values to reconcile"
        raise ReconciliationError(msg)

    usable = [(value, source) for value, source in candidates if _is_usable(value)]
    if not usable:
        return ReconciledField(
            value=None,
            confidence=policy.NO_DATA_CONFIDENCE,
            sources=[],
            reasoning=f"No usable {field} values",
        )

    usable.sort(key=lambda item: (*source_sort_key(item[1]), repr(key(item[0]))))
    groups: dict[Hashable, list[tuple[T, MetadataSource]]] = {}
    for value, source in usable:
        groups.setdefault(key(value), []).append((value, source))

    def weight(members: list[tuple[T, MetadataSource]]) -> float:
        return sum(source.reliability for _, source in members)

    ranked = sorted(
        groups.items(),
        key=lambda item: (-weight(item[1]), *source_sort_key(item[1][0][1]), repr(item[0])),
    )
    _, winners = ranked[0]
    total = sum(weight(members) for members in groups.values())
    share = weight(winners) / total if total else 1.0
    sources = sorted({source for _, source in winners}, key=source_sort_key)
    confidence = agreement_confidence([s.reliability for s in sources], share)

    conflicts = None
    if len(groups) > 1:
        conflicts = [
            Conflict(
                field=field,
                values=[ConflictValue(value=v, source=s) for v, s in usable],
                resolution="Selected value with the most reliable support",
            )
        ]
        reasoning = f"{len(sources)} of {len(usable)} sources agree on {field}"
        logger.debug("%s conflict across %d distinct values", field, len(groups))
    elif len(sources) > 1:
        reasoning = f"All {len(sources)} sources agree on {field}"
    else:
        reasoning = f"Single source for {field}"

    return ReconciledField(
        value=winners[0][0],
        confidence=confidence,
        sources=sources,
        reasoning=reasoning,
        conflicts=conflicts,
    )


def reconcile_subjects(
    candidates: Sequence[tuple[Sequence[str], MetadataSource]], *, limit: int | None = None
) -> ReconciledField[list[str]]:
    """Union subject headings from every source.

    Subjects reported by more (and more reliable) sources come first. The
    displayed spelling is the one from the most reliable reporter.

    Raises:
        ReconciliationError: If candidates is empty.
    """
    if not candidates:
        raise ReconciliationError("No subjects to reconcile")

    ordered = sorted(candidates, key=lambda item: source_sort_key(item[1]))
    support: dict[str, float] = {}
    display: dict[str, str] = {}
    contributors: set[MetadataSource] = set()
    for subjects, source in ordered:
        seen: set[str] = set()
        for subject in subjects or []:
            if not subject or not subject.strip():
                continue
            subject_key = default_key(subject)
            if subject_key in seen:
                continue
            seen.add(subject_key)
            display.setdefault(subject_key, subject.strip())
            support[subject_key] = support.get(subject_key, 0.0) + source.reliability
            contributors.add(source)

    if not support:
        return ReconciledField(
            value=[],
            confidence=policy.NO_DATA_CONFIDENCE,
            sources=[],
            reasoning="No subjects reported",
        )

    ranked = sorted(support, key=lambda k: (-support[k], k))
    if limit is not None and limit >= 0:
        ranked = ranked[:limit]
    sources = sorted(contributors, key=source_sort_key)
    return ReconciledField(
        value=[display[k] for k in ranked],
        confidence=agreement_confidence([s.reliability for s in sources]),
        sources=sources,
        reasoning=f"Merged {len(support)} subjects from {len(sources)} sources",
    )
