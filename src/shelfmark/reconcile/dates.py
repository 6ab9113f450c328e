# ABOUTME: Publication date parsing, validation and reconciliation across sources.
# ABOUTME: Prefers the most precise date, then the most reliable source.

import calendar
import logging
import re
from collections.abc import Sequence
from datetime import date as _date

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
from shelfmark.reconcile.publishers import PublicationInput

logger = logging.getLogger(__name__)

_ISO_DAY_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
_ISO_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")
_YEAR_RE = re.compile(r"^(\d{4})$")
_EMBEDDED_YEAR_RE = re.compile(r"\b(?:19|20)\d{2}\b")


def _latest_year(reference_year: int | None) -> int:
    year = reference_year if reference_year is not None else _date.today().year
    return year + policy.DATE_FUTURE_TOLERANCE_YEARS


def validate_publication_date(
    value: PublicationDate, *, reference_year: int | None = None
) -> PublicationDate:
    """Drop implausible parts of a date and recompute its precision.

    Years outside [1000, now + 10] are discarded, as are months outside 1-12
    and days that do not exist in the given month.
    """
    year = month = day = None
    precision = value.precision or "unknown"

    if value.year is not None and policy.DATE_MIN_YEAR <= int(value.year) <= _latest_year(
        reference_year
    ):
        year = int(value.year)
        if precision == "unknown":
            precision = "year"

    if value.month is not None and year is not None and 1 <= int(value.month) <= 12:
        month = int(value.month)
        if precision == "year":
            precision = "month"

    if value.day is not None and month is not None:
        days_in_month = calendar.monthrange(year, month)[1]
        if 1 <= int(value.day) <= days_in_month:
            day = int(value.day)
            precision = "day"

    if year is None:
        precision = "unknown"
    elif month is None:
        precision = "year"
    elif day is None and precision == "day":
        precision = "month"

    return PublicationDate(year=year, month=month, day=day, raw=value.raw, precision=precision)


def parse_publication_date(
    text: str | None, *, reference_year: int | None = None
) -> PublicationDate:
    """Parse "2001-05-17", "2001-05", "2001" or any text holding a 19xx/20xx year."""
    raw = (text or "").strip()
    if match := _ISO_DAY_RE.match(raw):
        parsed = PublicationDate(
            year=int(match.group(1)),
            month=int(match.group(2)),
            day=int(match.group(3)),
            raw=raw,
            precision="day",
        )
    elif match := _ISO_MONTH_RE.match(raw):
        parsed = PublicationDate(
            year=int(match.group(1)), month=int(match.group(2)), raw=raw, precision="month"
        )
    elif match := _YEAR_RE.match(raw):
        parsed = PublicationDate(year=int(match.group(1)), raw=raw, precision="year")
    elif match := _EMBEDDED_YEAR_RE.search(raw):
        parsed = PublicationDate(year=int(match.group(0)), raw=raw, precision="year")
    else:
        return PublicationDate(raw=raw or None, precision="unknown")
    return validate_publication_date(parsed, reference_year=reference_year)


def normalize_date(
    value: str | PublicationDate | None, *, reference_year: int | None = None
) -> PublicationDate:
    if isinstance(value, PublicationDate):
        return validate_publication_date(value, reference_year=reference_year)
    return parse_publication_date(value, reference_year=reference_year)


def date_confidence(
    value: PublicationDate, source: MetadataSource, *, reference_year: int | None = None
) -> float:
    confidence = source.reliability * policy.DATE_PRECISION_FACTOR.get(value.precision, 0.3)
    if not value.year or value.year > _latest_year(reference_year):
        confidence *= 0.5
    return max(0.0, min(1.0, confidence))


def reconcile_dates(
    inputs: Sequence[PublicationInput], *, reference_year: int | None = None
) -> ReconciledField[PublicationDate]:
    """Pick one publication date from several sources.

    Candidates are ranked by precision (day > month > year), then source
    reliability. Distinct dates are recorded as a Conflict.

    Raises:
        ReconciliationError: If inputs is empty.
    """
    if not inputs:
        raise ReconciliationError("No publication dates to reconcile")

    dated = [
        (normalize_date(entry.date, reference_year=reference_year), entry.source)
        for entry in inputs
    ]
    dated.sort(key=lambda item: (*source_sort_key(item[1]), item[0].key))

    if len(dated) == 1:
        value, source = dated[0]
        return ReconciledField(
            value=value,
            confidence=date_confidence(value, source, reference_year=reference_year),
            sources=[source],
            reasoning="Single source",
        )

    candidates = [item for item in dated if item[0].precision != "unknown"]
    if not candidates:
        value, source = dated[0]
        return ReconciledField(
            value=value,
            confidence=policy.NO_DATA_CONFIDENCE,
            sources=[source],
            reasoning="All dates have unknown precision, using most reliable source",
        )

    candidates.sort(
        key=lambda item: (
            -policy.DATE_PRECISION_RANK[item[0].precision],
            *source_sort_key(item[1]),
            item[0].key,
        )
    )
    best_date, best_source = candidates[0]

    # First entry per key is already its most reliable reporter.
    unique: dict[str, tuple[PublicationDate, MetadataSource]] = {}
    for value, source in candidates:
        unique.setdefault(value.key, (value, source))
    supporters = sorted(
        {source for value, source in candidates if value.key == best_date.key}, key=source_sort_key
    )

    conflicts = None
    reasoning = "Selected most specific date from most reliable source"
    if len(unique) > 1:
        conflicts = [
            Conflict(
                field="publication_date",
                values=[ConflictValue(value=v, source=s) for v, s in unique.values()],
                resolution="Preferred most specific date from most reliable source",
            )
        ]
        reasoning = "Resolved conflict by preferring most specific date from most reliable source"
        logger.debug("Date conflict between %s", ", ".join(unique))

    return ReconciledField(
        value=best_date,
        confidence=date_confidence(best_date, best_source, reference_year=reference_year),
        sources=supporters,
        reasoning=reasoning,
        conflicts=conflicts,
    )
