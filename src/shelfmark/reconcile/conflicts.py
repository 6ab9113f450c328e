# ABOUTME: Conflict analysis across reconciled fields: classifies each conflict and rates its severity.
# ABOUTME: Also renders conflicts and a summary report as plain text for the CLI.

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from shelfmark.metadata.types import (
    Conflict,
    ConflictValue,
    PublicationDate,
    ReconciledField,
    source_sort_key,
)
from shelfmark.reconcile import policy
from shelfmark.reconcile.content import CoverImage, Description, Rating
from shelfmark.reconcile.identifiers import Identifier
from shelfmark.reconcile.physical import Dimensions, FormatInfo
from shelfmark.reconcile.places import PublicationPlace
from shelfmark.reconcile.publishers import Publisher
from shelfmark.reconcile.series import Series
from shelfmark.reconcile.similarity import string_similarity

logger = logging.getLogger(__name__)

_TEXT_PREVIEW = 60


class ConflictSeverity(str, Enum):
    CRITICAL = "critical"
    MAJOR = "major"
    MINOR = "minor"
    INFORMATIONAL = "informational"


class ConflictKind(str, Enum):
    """What the disagreement is about."""

    VALUE_MISMATCH = "value_mismatch"  # sources name genuinely different values
    FORMAT_DIFFERENCE = "format_difference"  # same value written differently
    COMPLETENESS_DIFFERENCE = "completeness_difference"  # some sources report nothing
    QUALITY_DIFFERENCE = "quality_difference"  # a much more reliable source disagrees


@dataclass(frozen=True)
class DetailedConflict:
    """A Conflict with its classification and the groups of agreeing values."""

    conflict: Conflict
    kind: ConflictKind
    severity: ConflictSeverity
    groups: list[list[ConflictValue]]
    auto_resolvable: bool
    explanation: str
    suggestions: list[str]

    @property
    def field(self) -> str:
        return self.conflict.field


@dataclass
class ConflictSummary:
    """Every conflict found in a reconciliation, with an overall score in [0, 1]."""

    conflicts: list[DetailedConflict] = field(default_factory=list)
    overall_score: float = 0.0
    problematic_fields: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.conflicts)

    @property
    def auto_resolvable(self) -> list[DetailedConflict]:
        return [c for c in self.conflicts if c.auto_resolvable]

    @property
    def manual_review(self) -> list[DetailedConflict]:
        return [c for c in self.conflicts if not c.auto_resolvable]

    def by_severity(self, severity: ConflictSeverity) -> list[DetailedConflict]:
        return [c for c in self.conflicts if c.severity == severity]


def _compare_key(value: Any) -> Any:
    if isinstance(value, (Identifier, Publisher, PublicationPlace)):
        return value.normalized
    if isinstance(value, Series):
        return (value.normalized, value.volume)
    if isinstance(value, PublicationDate):
        return value.key
    if isinstance(value, Description):
        return value.text.strip().lower()
    if isinstance(value, CoverImage):
        return value.url
    if isinstance(value, Rating):
        return value.normalized
    if isinstance(value, FormatInfo):
        return (value.format, value.binding)
    if isinstance(value, Dimensions):
        return (value.width, value.height, value.depth)
    if isinstance(value, str):
        return " ".join(value.lower().split())
    if isinstance(value, (list, tuple)):
        return tuple(_compare_key(v) for v in value)
    return value


def _is_empty(value: Any) -> bool:
    return value is None or _compare_key(value) in ("", ())


def values_similar(a: Any, b: Any) -> bool:
    """True when two conflicting values would be read as the same value."""
    left, right = _compare_key(a), _compare_key(b)
    if left == right:
        return True
    if isinstance(left, bool) or isinstance(right, bool):
        return False
    if isinstance(left, (int, float)) and isinstance(right, (int, float)):
        scale = max(abs(left), abs(right))
        return abs(left - right) <= policy.CONFLICT_NUMERIC_TOLERANCE * scale
    if isinstance(left, str) and isinstance(right, str):
        return string_similarity(left, right) >= policy.CONFLICT_STRING_SIMILARITY
    return False


def _group_values(values: Sequence[ConflictValue]) -> list[list[ConflictValue]]:
    ordered = sorted(values, key=lambda v: (*source_sort_key(v.source), format_value(v.value)))
    groups: list[list[ConflictValue]] = []
    for item in ordered:
        group = next((g for g in groups if values_similar(item.value, g[0].value)), None)
        if group is None:
            groups.append([item])
        else:
            group.append(item)
    return groups


def _is_core(field_name: str) -> bool:
    return field_name.split(".", 1)[0] in policy.CONFLICT_CORE_FIELDS


def _severity(field_name: str, groups: list[list[ConflictValue]]) -> ConflictSeverity:
    core = _is_core(field_name)
    reliabilities = [v.source.reliability for g in groups for v in g]
    high = any(r > policy.CONFLICT_HIGH_RELIABILITY for r in reliabilities)
    low = any(r < policy.CONFLICT_LOW_RELIABILITY for r in reliabilities)
    if core and len(groups) > 2 and high:
        return ConflictSeverity.CRITICAL
    if core and len(groups) > 1 and high:
        return ConflictSeverity.MAJOR
    if len(groups) > 2 or (core and low):
        return ConflictSeverity.MINOR
    return ConflictSeverity.INFORMATIONAL


def _clear_winner(groups: list[list[ConflictValue]]) -> bool:
    reliabilities = [v.source.reliability for g in groups for v in g]
    top = max(reliabilities)
    return reliabilities.count(top) == 1 and top > policy.CONFLICT_HIGH_RELIABILITY


def analyze_conflict(conflict: Conflict) -> DetailedConflict:
    """Classify a conflict by grouping its values into ones that read the same.

    One group means the sources only wrote the same value differently. With
    several groups, an empty side makes it a completeness difference and a
    wide reliability spread a quality difference; otherwise the values
    genuinely disagree.
    """
    groups = _group_values(conflict.values)
    name = conflict.field
    reliabilities = [v.source.reliability for v in conflict.values]

    if len(groups) <= 1:
        return DetailedConflict(
            conflict=conflict,
            kind=ConflictKind.FORMAT_DIFFERENCE,
            severity=ConflictSeverity.MINOR,
            groups=groups,
            auto_resolvable=True,
            explanation=f"Sources report the same '{name}' in different formats",
            suggestions=["Use the normalized form"],
        )

    severity = _severity(name, groups)
    if any(_is_empty(g[0].value) for g in groups):
        kind = ConflictKind.COMPLETENESS_DIFFERENCE
        explanation = f"Some sources report no '{name}' while others do"
        suggestions = ["Prefer sources with more complete information"]
        auto = True
    elif max(reliabilities) - min(reliabilities) >= policy.CONFLICT_RELIABILITY_SPREAD:
        kind = ConflictKind.QUALITY_DIFFERENCE
        explanation = f"Sources of very different reliability disagree on '{name}'"
        suggestions = ["Weight values by source reliability"]
        auto = True
    else:
        kind = ConflictKind.VALUE_MISMATCH
        explanation = f"Sources report {len(groups)} different values for '{name}'"
        suggestions = [
            "Prefer the value from the most reliable source",
            "Check the values against an authoritative catalog",
        ]
        auto = _clear_winner(groups)

    return DetailedConflict(
        conflict=conflict,
        kind=kind,
        severity=severity,
        groups=groups,
        auto_resolvable=auto,
        explanation=explanation,
        suggestions=suggestions,
    )


def _recommendations(conflicts: list[DetailedConflict]) -> list[str]:
    if not conflicts:
        return ["No conflicts detected - metadata is consistent across sources"]
    counts = {s: sum(1 for c in conflicts if c.severity == s) for s in ConflictSeverity}
    recommendations = []
    if counts[ConflictSeverity.CRITICAL]:
        recommendations.append(
            f"Address {counts[ConflictSeverity.CRITICAL]} critical conflict(s) first; "
            "they affect core metadata"
        )
    if counts[ConflictSeverity.MAJOR]:
        recommendations.append(
            f"Review {counts[ConflictSeverity.MAJOR]} major conflict(s); "
            "they may impact data quality"
        )
    auto = sum(1 for c in conflicts if c.auto_resolvable)
    if auto:
        recommendations.append(f"{auto} conflict(s) can be resolved automatically")
    if len(conflicts) - auto:
        recommendations.append(f"{len(conflicts) - auto} conflict(s) need manual review")
    return recommendations


def summarize_conflicts(fields: Mapping[str, ReconciledField[Any]]) -> ConflictSummary:
    """Analyze every conflict recorded on the reconciled fields."""
    detailed = [
        analyze_conflict(conflict)
        for _, result in sorted(fields.items())
        for conflict in result.conflicts or []
    ]
    weights = policy.CONFLICT_SEVERITY_WEIGHT
    total = sum(weights[c.severity.value] for c in detailed)

    by_field: dict[str, float] = {}
    for conflict in detailed:
        by_field[conflict.field] = by_field.get(conflict.field, 0.0) + weights[
            conflict.severity.value
        ]
    problematic = sorted(by_field, key=lambda name: (-by_field[name], name))

    summary = ConflictSummary(
        conflicts=detailed,
        overall_score=min(1.0, total / policy.CONFLICT_SCORE_SCALE),
        problematic_fields=problematic[: policy.CONFLICT_PROBLEM_FIELDS],
        recommendations=_recommendations(detailed),
    )
    logger.debug("Found %d conflict(s), score %.2f", summary.total, summary.overall_score)
    return summary


def format_value(value: Any) -> str:
    """One-line rendering of a conflicting value."""
    if _is_empty(value):
        return "(none)"
    if isinstance(value, Identifier):
        return f"{value.type}:{value.normalized}"
    if isinstance(value, (Publisher, PublicationPlace)):
        return value.name
    if isinstance(value, PublicationDate):
        return value.key
    if isinstance(value, Description):
        text = " ".join(value.text.split())
        if len(text) > _TEXT_PREVIEW:
            return text[: _TEXT_PREVIEW - 3] + "..."
        return text
    if isinstance(value, CoverImage):
        return value.url
    if isinstance(value, Rating):
        return f"{value.value:g}/{value.scale:g}"
    if isinstance(value, float):
        return f"{value:g}"
    if isinstance(value, (list, tuple)):
        return ", ".join(format_value(v) for v in value)
    return str(value)


def format_conflict(conflict: DetailedConflict) -> str:
    lines = [
        f"{conflict.field} [{conflict.severity.value}, {conflict.kind.value.replace('_', ' ')}]",
        f"  {conflict.explanation}",
    ]
    for group in conflict.groups:
        names = ", ".join(v.source.name for v in group)
        lines.append(f"  - {format_value(group[0].value)} ({names})")
    lines.append(f"  Resolution: {conflict.conflict.resolution}")
    if not conflict.auto_resolvable:
        lines.append("  Needs manual review")
    return "\n".join(lines)


def conflict_report(summary: ConflictSummary) -> str:
    """Plain text report: score, counts by severity, each conflict, then recommendations."""
    if not summary.total:
        return "No conflicts."
    counts = ", ".join(
        f"{len(summary.by_severity(s))} {s.value}"
        for s in ConflictSeverity
        if summary.by_severity(s)
    )
    lines = [
        f"{summary.total} conflict(s) ({counts}), score {summary.overall_score:.2f}",
        f"Most affected: {', '.join(summary.problematic_fields)}",
        "",
    ]
    lines.extend(format_conflict(c) for c in summary.conflicts)
    lines.append("")
    lines.extend(f"* {r}" for r in summary.recommendations)
    return "\n".join(lines)
