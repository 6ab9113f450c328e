# ABOUTME: Chooses the best edition of a work from provider candidates and ranks the alternatives.
# ABOUTME: Scores completeness, recency, binding and language match; explains every pick.

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date as _date

from shelfmark.metadata.types import PublicationDate, ReconciliationError
from shelfmark.reconcile import policy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Edition:
    """One physical or digital manifestation of a work.

    format is the binding ("hardcover", "paperback", "ebook", ...).
    """

    id: str | None = None
    title: str | None = None
    format: str | None = None
    language: str | None = None
    publication_date: PublicationDate | None = None
    publisher: str | None = None
    isbn: tuple[str, ...] = ()
    page_count: int | None = None

    @property
    def year(self) -> int | None:
        return self.publication_date.year if self.publication_date else None

    @property
    def sort_key(self) -> tuple[str, str, str]:
        return (self.id or "", ",".join(self.isbn), self.title or "")


@dataclass(frozen=True)
class EditionAlternative:
    edition: Edition
    reason: str
    confidence: float
    advantages: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class EditionSelection:
    selected_edition: Edition
    available_editions: list[Edition]
    selection_reason: str
    confidence: float
    alternatives: list[EditionAlternative] = field(default_factory=list)


@dataclass(frozen=True)
class EditionSelectorConfig:
    """Tuning for edition selection.

    reference_year fixes "now" for recency scoring; None uses today's date.
    """

    recent_edition_years: int = 5
    max_alternatives: int = 3
    reference_year: int | None = None

    def __post_init__(self) -> None:
        if self.recent_edition_years < 0:
            msg = f"recent_edition_years must be non-negative, got {self.recent_edition_years}"
            raise ValueError(msg)
        if self.max_alternatives < 0:
            msg = f"max_alternatives must be non-negative, got {self.max_alternatives}"
            raise ValueError(msg)

    @property
    def current_year(self) -> int:
        return self.reference_year if self.reference_year is not None else _date.today().year


def score_edition(
    edition: Edition, language: str | None = None, config: EditionSelectorConfig | None = None
) -> float:
    """Score an edition in [0, 1]; higher means a better default choice."""
    config = config or EditionSelectorConfig()
    bonus = policy.EDITION_COMPLETENESS_BONUS
    score = policy.EDITION_BASE_SCORE

    if edition.isbn:
        score += bonus["isbn"]
    if edition.publication_date:
        score += bonus["publication_date"]
    if edition.publisher:
        score += bonus["publisher"]
    if edition.page_count:
        score += bonus["page_count"]
    if edition.format:
        score += bonus["format"]

    if edition.year:
        age = config.current_year - edition.year
        if age < config.recent_edition_years:
            score += policy.EDITION_RECENT_BONUS
        elif age < config.recent_edition_years * 2:
            score += policy.EDITION_SOMEWHAT_RECENT_BONUS

    score += policy.EDITION_FORMAT_BONUS.get((edition.format or "").lower(), 0.0)

    if language and edition.language and edition.language.lower() == language.lower():
        score += policy.EDITION_LANGUAGE_BONUS

    return round(min(score, 1.0), 6)


def selection_reason(edition: Edition, score: float) -> str:
    reasons = []
    if edition.isbn:
        reasons.append("has ISBN information")
    if edition.publication_date:
        reasons.append("has publication date")
    if edition.publisher:
        reasons.append("has publisher information")
    if score > 0.8:
        reasons.append("most complete metadata")
    if not reasons:
        return "Selected as the most suitable edition based on available data"
    return "Selected because it " + ", ".join(reasons)


def _is_hardcover(edition: Edition) -> bool:
    return (edition.format or "").lower() == "hardcover"


def alternative_reason(alternative: Edition, selected: Edition) -> str:
    if _is_hardcover(alternative) and not _is_hardcover(selected):
        return "Hardcover edition might be preferred"
    if alternative.year and selected.year:
        if alternative.year > selected.year:
            return "More recent edition"
        if alternative.year < selected.year:
            return "Original/earlier edition"
    return "Alternative edition with different characteristics"


def alternative_advantages(alternative: Edition, selected: Edition) -> list[str]:
    advantages = []
    if _is_hardcover(alternative) and not _is_hardcover(selected):
        advantages.append("Hardcover binding")
    if (alternative.page_count or 0) > (selected.page_count or 0) > 0:
        advantages.append("More pages (possibly unabridged)")
    if alternative.year and selected.year and alternative.year > selected.year:
        advantages.append("More recent publication")
    return advantages


def select_best_edition(
    editions: Sequence[Edition],
    language: str | None = None,
    config: EditionSelectorConfig | None = None,
    *,
    fallback: Edition | None = None,
) -> EditionSelection:
    """Pick the best edition and up to max_alternatives ranked runners-up.

    When editions is empty the fallback (typically built from the reconciled
    fields) becomes the only candidate, at a fixed low confidence.

    Raises:
        ReconciliationError: If there are no editions and no fallback.
    """
    config = config or EditionSelectorConfig()
    available = list(editions)
    synthesized = False
    if not available:
        if fallback is None:
            raise ReconciliationError("No editions to select from")
        available = [fallback]
        synthesized = True

    scored = sorted(
        ((score_edition(e, language, config), e) for e in available),
        key=lambda item: (-item[0], item[1].sort_key),
    )
    best_score, best = scored[0]
    alternatives = [
        EditionAlternative(
            edition=edition,
            reason=alternative_reason(edition, best),
            confidence=score,
            advantages=alternative_advantages(edition, best),
        )
        for score, edition in scored[1 : config.max_alternatives + 1]
    ]

    confidence = min(best_score, policy.EDITION_DEFAULT_CONFIDENCE) if synthesized else best_score
    logger.debug(
        "Selected edition %s from %d candidates (score %.2f)",
        best.sort_key,
        len(available),
        best_score,
    )
    return EditionSelection(
        selected_edition=best,
        available_editions=available,
        selection_reason=selection_reason(best, best_score),
        confidence=confidence,
        alternatives=alternatives,
    )
