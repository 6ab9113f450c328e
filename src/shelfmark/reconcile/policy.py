# ABOUTME: Named, versioned scoring table for every reconciler's confidence arithmetic.
# ABOUTME: Values are tuned against real provider behaviour; change them together and bump the version.

# Bump when any constant below changes so stored confidences can be compared.
SCORING_TABLE_VERSION = "1.1"

# Every reconciler returns this confidence when inputs exist but none are usable.
NO_DATA_CONFIDENCE = 0.1

# --- Identifiers -----------------------------------------------------------
# Higher sorts first when listing reconciled identifiers.
IDENTIFIER_TYPE_PRIORITY: dict[str, int] = {
    "isbn": 10,
    "doi": 9,
    "oclc": 8,
    "lccn": 7,
    "amazon": 6,
    "goodreads": 5,
    "google": 4,
    "other": 1,
}
# confidence = min(1, valid_ratio * mean_reliability * SCALE + FLOOR)
IDENTIFIER_CONFIDENCE_SCALE = 0.9
IDENTIFIER_CONFIDENCE_FLOOR = 0.1

# --- Publishers ------------------------------------------------------------
# Applied in this order to the source reliability, then clamped to [0, 1].
PUBLISHER_EMPTY_FACTOR = 0.1
PUBLISHER_SHORT_NAME_LENGTH = 3
PUBLISHER_SHORT_NAME_FACTOR = 0.5
PUBLISHER_NORMALIZED_FACTOR = 1.1
PUBLISHER_KNOWN_FACTOR = 1.2
PUBLISHER_FUZZY_THRESHOLD = 0.8

# --- Places ----------------------------------------------------------------
PLACE_EMPTY_FACTOR = 0.1
PLACE_SHORT_NAME_LENGTH = 2
PLACE_SHORT_NAME_FACTOR = 0.3
PLACE_CANONICAL_FACTOR = 1.2
PLACE_COUNTRY_FACTOR = 1.1
PLACE_MAJOR_CENTER_FACTOR = 1.3
PLACE_FUZZY_THRESHOLD = 0.9
MAJOR_PUBLISHING_CENTERS = frozenset(
    {"new york", "london", "paris", "berlin", "tokyo", "toronto", "cambridge", "oxford"}
)

# --- Dates -----------------------------------------------------------------
DATE_PRECISION_FACTOR: dict[str, float] = {
    "day": 1.0,
    "month": 0.9,
    "year": 0.8,
    "unknown": 0.3,
}
DATE_PRECISION_RANK: dict[str, int] = {"day": 3, "month": 2, "year": 1, "unknown": 0}
DATE_FUTURE_TOLERANCE_YEARS = 10
DATE_MIN_YEAR = 1000

# --- Simple fields ---------------------------------------------------------
AGREEMENT_BONUS = 0.05
AGREEMENT_CAP = 0.98

# --- Descriptions ----------------------------------------------------------
DESCRIPTION_MIN_LENGTH = 10
DESCRIPTION_BASE_QUALITY = 0.5
DESCRIPTION_IDEAL_RANGE = (100, 1000)
DESCRIPTION_IDEAL_BONUS = 0.2
DESCRIPTION_ACCEPTABLE_RANGE = (50, 1500)
DESCRIPTION_ACCEPTABLE_BONUS = 0.1
DESCRIPTION_TOO_SHORT = 50
DESCRIPTION_TOO_LONG = 2000
DESCRIPTION_LENGTH_PENALTY = 0.1
DESCRIPTION_SOURCE_ADJUSTMENT = 0.1
DESCRIPTION_SENTENCE_RANGE = (2, 10)
DESCRIPTION_SENTENCE_BONUS = 0.1
DESCRIPTION_PUNCTUATION_BONUS = 0.05
DESCRIPTION_PROMOTIONAL_LIMIT = 2
DESCRIPTION_PROMOTIONAL_PENALTY = 0.1
DESCRIPTION_QUALITY_BOUNDS = (0.1, 1.0)
DESCRIPTION_SHORT_LIMIT = 200
DESCRIPTION_MEDIUM_LIMIT = 800
DESCRIPTION_BLURB_LIMIT = 200
DESCRIPTION_FULL_LIMIT = 1000
DESCRIPTION_MEDIUM_BOOST = 1.1
DESCRIPTION_LONG_BOOST = 1.05
DESCRIPTION_DIVERGENCE_THRESHOLD = 0.7

# --- Table of contents, reviews, ratings, covers, excerpts -----------------
TOC_CONFIDENCE_FACTOR = 0.9
TOC_FORMAT_SCORE: dict[str, int] = {"detailed": 3, "hierarchical": 2, "simple": 1}
REVIEW_LIMIT = 10
REVIEW_CONFIDENCE_FACTOR = 0.8
RATING_CONFIDENCE_FACTOR = 0.9
RATING_CONFLICT_SPREAD = 0.3
EXCERPT_CONFIDENCE_FACTOR = 0.8
EXCERPT_IDEAL_LENGTH = 500

COVER_MIN_SIZE = (200, 300)
COVER_PREFERRED_SIZE = (400, 600)
COVER_MAX_SIZE = (2000, 3000)
COVER_PREFERRED_ASPECT = 1.5
COVER_ASPECT_TOLERANCE = 0.3
COVER_BASE_SCORE = 0.5
COVER_SCORE_BOUNDS = (0.1, 1.0)
COVER_PREFERRED_BONUS = 0.2
COVER_MIN_BONUS = 0.1
COVER_UNDERSIZE_PENALTY = 0.2
COVER_OVERSIZE_PENALTY = 0.1
COVER_ASPECT_ADJUSTMENT = 0.1
COVER_FORMAT_BONUS: dict[str, float] = {"jpeg": 0.1, "png": 0.1, "webp": 0.05, "gif": -0.05}
COVER_VERIFIED_BONUS = 0.1
COVER_QUALITY_BONUS: dict[str, float] = {
    "original": 0.15,
    "large": 0.1,
    "medium": 0.05,
    "small": 0.0,
    "thumbnail": -0.1,
}
# Upper bounds on pixel area for each quality tier; larger is "original".
COVER_QUALITY_AREA: tuple[tuple[int, str], ...] = (
    (40_000, "thumbnail"),
    (160_000, "small"),
    (640_000, "medium"),
    (2_560_000, "large"),
)

# --- Editions --------------------------------------------------------------
EDITION_BASE_SCORE = 0.5
EDITION_COMPLETENESS_BONUS: dict[str, float] = {
    "isbn": 0.1,
    "publication_date": 0.1,
    "publisher": 0.1,
    "page_count": 0.05,
    "format": 0.05,
}
EDITION_RECENT_BONUS = 0.1
EDITION_SOMEWHAT_RECENT_BONUS = 0.05
EDITION_FORMAT_BONUS: dict[str, float] = {"hardcover": 0.05, "paperback": 0.03}
EDITION_LANGUAGE_BONUS = 0.1
EDITION_DEFAULT_CONFIDENCE = 0.3

# --- Physical description ------------------------------------------------
# Page counts and weights outside (0, LIMIT) are discarded as bogus.
PAGE_COUNT_LIMIT = 50_000
# Page counts agree when within this many pages or this fraction of the larger.
PAGE_COUNT_TOLERANCE_PAGES = 10
PAGE_COUNT_TOLERANCE_RATIO = 0.05
PAGE_COUNT_SINGLE_FACTOR = 0.8
PAGE_COUNT_GROUP_FACTOR = 0.9
PAGE_COUNT_CONFIDENCE_CAP = 0.95
# Millimetres per unit.
DIMENSION_UNIT_MM: dict[str, float] = {"mm": 1.0, "cm": 10.0, "in": 25.4}
# Plausible ranges in millimetres; values outside are dropped.
DIMENSION_SIDE_RANGE_MM = (10.0, 1000.0)
DIMENSION_DEPTH_RANGE_MM = (1.0, 200.0)
DIMENSION_SINGLE_FACTOR = 0.7
DIMENSION_GROUP_FACTOR = 0.8
FORMAT_FACTOR = 0.8
FORMAT_DEFAULT_CONFIDENCE = 0.3
# Grams per unit.
WEIGHT_UNIT_GRAMS: dict[str, float] = {"g": 1.0, "kg": 1000.0, "lb": 453.592, "oz": 28.3495}
WEIGHT_SINGLE_FACTOR = 0.7
WEIGHT_GROUP_FACTOR = 0.8

# --- Series ----------------------------------------------------------------
SERIES_GROUP_THRESHOLD = 0.8
# Completeness: BASE for a name plus STEP for each of volume, type and total volumes.
SERIES_COMPLETENESS_BASE = 0.2
SERIES_COMPLETENESS_STEP = 0.2

# --- Conflicts -------------------------------------------------------------
# Matched against the part of a conflict field name before any ".".
CONFLICT_CORE_FIELDS = frozenset({"title", "authors", "identifier", "publication_date"})
CONFLICT_STRING_SIMILARITY = 0.8
CONFLICT_NUMERIC_TOLERANCE = 0.05
CONFLICT_HIGH_RELIABILITY = 0.8
CONFLICT_LOW_RELIABILITY = 0.5
CONFLICT_RELIABILITY_SPREAD = 0.3
CONFLICT_SEVERITY_WEIGHT: dict[str, float] = {
    "critical": 1.0,
    "major": 0.7,
    "minor": 0.4,
    "informational": 0.1,
}
# Weighted severities are divided by this to give the overall score in [0, 1].
CONFLICT_SCORE_SCALE = 10.0
CONFLICT_PROBLEM_FIELDS = 5

# --- Duplicates ------------------------------------------------------------
DUPLICATE_EXACT_ASSET_CONFIDENCE = 1.0
DUPLICATE_SAME_ISBN_CONFIDENCE = 1.0
DUPLICATE_DIFFERENT_FORMAT_CONFIDENCE = 1.0
DUPLICATE_SAME_ASIN_CONFIDENCE = 1.0
DUPLICATE_SAME_TITLE_AUTHOR_CONFIDENCE = 0.95
DUPLICATE_AUTHOR_MATCH_THRESHOLD = 0.9
DUPLICATE_SIMILAR_TITLE_THRESHOLD = 0.6
DUPLICATE_TITLE_WEIGHT = 0.7
DUPLICATE_AUTHOR_WEIGHT = 0.3

LIBRARY_ENTRY_WEIGHTS: dict[str, float] = {
    "title": 0.35,
    "authors": 0.25,
    "isbn": 0.2,
    "date": 0.1,
    "publisher": 0.05,
    "series": 0.05,
}
