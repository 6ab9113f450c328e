# ABOUTME: Publication place normalization against city and country alias tables, and reconciliation.
# ABOUTME: "NYC" and "New York, NY" both normalize to "new york" with country "united states".

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass

from shelfmark.metadata.types import (
    Conflict,
    ConflictValue,
    MetadataSource,
    ReconciledField,
    ReconciliationError,
    source_sort_key,
)
from shelfmark.reconcile import policy
from shelfmark.reconcile.publishers import PublicationInput
from shelfmark.reconcile.similarity import string_similarity

logger = logging.getLogger(__name__)

_LEADING_THE_RE = re.compile(r"^the\s+")
_PLACE_CHARS_RE = re.compile(r"[^\w\s,.-]")
_WHITESPACE_RE = re.compile(r"\s+")

CITY_ALIASES: dict[str, tuple[str, ...]] = {
    "new york": ("new york city", "nyc", "ny", "new york, ny", "manhattan", "brooklyn"),
    "london": ("london, england", "london, uk", "london, great britain"),
    "paris": ("paris, france", "paris, fr"),
    "berlin": ("berlin, germany", "berlin, de"),
    "tokyo": ("tokyo, japan", "tokyo, jp"),
    "toronto": ("toronto, canada", "toronto, on", "toronto, ontario"),
    "sydney": ("sydney, australia", "sydney, au"),
    "chicago": ("chicago, il", "chicago, illinois"),
    "boston": ("boston, ma", "boston, massachusetts"),
    "los angeles": ("la", "l.a.", "los angeles, ca", "los angeles, california"),
    "san francisco": ("sf", "s.f.", "san francisco, ca", "san francisco, california"),
    "philadelphia": ("philly", "philadelphia, pa", "philadelphia, pennsylvania"),
    "washington": ("washington, dc", "washington d.c.", "washington, d.c."),
    "cambridge": (
        "cambridge, ma",
        "cambridge, massachusetts",
        "cambridge, england",
        "cambridge, uk",
    ),
    "oxford": ("oxford, england", "oxford, uk"),
    "edinburgh": ("edinburgh, scotland", "edinburgh, uk"),
    "dublin": ("dublin, ireland", "dublin, ie"),
    "amsterdam": ("amsterdam, netherlands", "amsterdam, nl"),
    "munich": ("münchen", "munich, germany", "münchen, germany"),
    "vienna": ("wien", "vienna, austria", "wien, austria"),
    "zurich": ("zürich", "zurich, switzerland", "zürich, switzerland"),
    "stockholm": ("stockholm, sweden", "stockholm, se"),
    "copenhagen": ("copenhagen, denmark", "copenhagen, dk"),
    "helsinki": ("helsinki, finland", "helsinki, fi"),
    "oslo": ("oslo, norway", "oslo, no"),
    "madrid": ("madrid, spain", "madrid, es"),
    "barcelona": ("barcelona, spain", "barcelona, es"),
    "rome": ("roma", "rome, italy", "roma, italy"),
    "milan": ("milano", "milan, italy", "milano, italy"),
    "moscow": ("moscow, russia", "moscow, ru"),
    "st. petersburg": ("saint petersburg", "st petersburg", "st. petersburg, russia"),
    "beijing": ("peking", "beijing, china", "peking, china"),
    "shanghai": ("shanghai, china",),
    "hong kong": ("hong kong, china", "hk"),
    "singapore": ("singapore, sg",),
    "mumbai": ("bombay", "mumbai, india", "bombay, india"),
    "delhi": ("new delhi", "delhi, india", "new delhi, india"),
    "bangalore": ("bengaluru", "bangalore, india", "bengaluru, india"),
    "cairo": ("cairo, egypt",),
    "cape town": ("cape town, south africa",),
    "johannesburg": ("johannesburg, south africa",),
    "mexico city": ("mexico city, mexico", "ciudad de méxico"),
    "são paulo": ("sao paulo", "são paulo, brazil", "sao paulo, brazil"),
    "rio de janeiro": ("rio", "rio de janeiro, brazil"),
    "buenos aires": ("buenos aires, argentina",),
    "santiago": ("santiago, chile",),
    "lima": ("lima, peru",),
    "bogotá": ("bogota", "bogotá, colombia", "bogota, colombia"),
}

_US_STATE_CODES = (
    "al ak az ar ca co ct de fl ga hi id il in ia ks ky la me md ma mi mn ms mo mt ne nv nh"
    " nj nm ny nc nd oh ok or pa ri sc sd tn tx ut vt va wa wv wi wy"
).split()

_US_STATE_NAMES = (
    "alabama",
    "alaska",
    "arizona",
    "arkansas",
    "california",
    "colorado",
    "connecticut",
    "delaware",
    "florida",
    "georgia",
    "hawaii",
    "idaho",
    "illinois",
    "indiana",
    "iowa",
    "kansas",
    "kentucky",
    "louisiana",
    "maine",
    "maryland",
    "massachusetts",
    "michigan",
    "minnesota",
    "mississippi",
    "missouri",
    "montana",
    "nebraska",
    "nevada",
    "new hampshire",
    "new jersey",
    "new mexico",
    "new york",
    "north carolina",
    "north dakota",
    "ohio",
    "oklahoma",
    "oregon",
    "pennsylvania",
    "rhode island",
    "south carolina",
    "south dakota",
    "tennessee",
    "texas",
    "utah",
    "vermont",
    "virginia",
    "washington",
    "west virginia",
    "wisconsin",
    "wyoming",
)

# Checked in order, so "ca" resolves to the United States before Canada.
COUNTRY_ALIASES: dict[str, frozenset[str]] = {
    "united states": frozenset(
        ("usa", "us", "america", "united states of america", *_US_STATE_CODES, *_US_STATE_NAMES)
    ),
    "united kingdom": frozenset(("uk", "great britain", "britain", "england", "scotland", "wales")),
    "germany": frozenset(("deutschland", "de")),
    "france": frozenset(("fr",)),
    "italy": frozenset(("italia", "it")),
    "spain": frozenset(("españa", "es")),
    "netherlands": frozenset(("holland", "nl")),
    "switzerland": frozenset(("schweiz", "suisse", "ch")),
    "austria": frozenset(("österreich", "at")),
    "russia": frozenset(("russian federation", "ru")),
    "china": frozenset(("people's republic of china", "prc", "cn")),
    "japan": frozenset(("jp",)),
    "south korea": frozenset(("korea", "republic of korea", "kr")),
    "australia": frozenset(("au",)),
    "canada": frozenset(("ca",)),
    "brazil": frozenset(("brasil", "br")),
    "mexico": frozenset(("méxico", "mx")),
    "india": frozenset(("in",)),
    "south africa": frozenset(("za",)),
}


@dataclass(frozen=True)
class PublicationPlace:
    name: str
    normalized: str
    country: str | None = None
    coordinates: tuple[float, float] | None = None


def _matches_city(text: str, canonical: str, aliases: tuple[str, ...]) -> bool:
    if text == canonical or text.startswith(canonical + ","):
        return True
    for alias in aliases:
        if text == alias or text.startswith(alias + ","):
            return True
        if string_similarity(text, alias) > policy.PLACE_FUZZY_THRESHOLD:
            return True
    return False


def normalize_place_name(name: str | None) -> str:
    """Lower-case, tidy and map a place string onto its canonical city when known."""
    if not name:
        return ""
    text = name.lower().strip()
    text = _LEADING_THE_RE.sub("", text)
    text = _PLACE_CHARS_RE.sub("", text)
    text = _WHITESPACE_RE.sub(" ", text).strip()

    for canonical, aliases in CITY_ALIASES.items():
        if _matches_city(text, canonical, aliases):
            return canonical

    city_part = text.split(",")[0].strip()
    if city_part != text:
        for canonical, aliases in CITY_ALIASES.items():
            if city_part == canonical or city_part in aliases:
                return canonical
    return text


def extract_country(name: str | None) -> str | None:
    """Find a country in comma-separated place text, scanning from the last segment."""
    if not name:
        return None
    parts = [part.strip() for part in name.lower().strip().split(",")]
    for part in reversed(parts):
        for canonical, aliases in COUNTRY_ALIASES.items():
            if part == canonical or part in aliases:
                return canonical
    return None


def normalize_place(value: str | PublicationPlace) -> PublicationPlace:
    if isinstance(value, PublicationPlace):
        return PublicationPlace(
            name=value.name,
            normalized=value.normalized or normalize_place_name(value.name),
            country=value.country or extract_country(value.name),
            coordinates=value.coordinates,
        )
    return PublicationPlace(
        name=value, normalized=normalize_place_name(value), country=extract_country(value)
    )


def place_confidence(place: PublicationPlace, source: MetadataSource) -> float:
    confidence = source.reliability
    name = place.name.strip()
    if not name:
        confidence *= policy.PLACE_EMPTY_FACTOR
    elif len(name) < policy.PLACE_SHORT_NAME_LENGTH:
        confidence *= policy.PLACE_SHORT_NAME_FACTOR

    if place.normalized and place.normalized != place.name.lower():
        confidence *= policy.PLACE_CANONICAL_FACTOR
    if place.country:
        confidence *= policy.PLACE_COUNTRY_FACTOR
    if place.normalized in policy.MAJOR_PUBLISHING_CENTERS:
        confidence *= policy.PLACE_MAJOR_CENTER_FACTOR
    return max(0.0, min(1.0, confidence))


def _place_text(value: str | PublicationPlace | None) -> str:
    if value is None:
        return ""
    return value.name if isinstance(value, PublicationPlace) else value


def reconcile_places(inputs: Sequence[PublicationInput]) -> ReconciledField[PublicationPlace]:
    """Pick one publication place from several sources.

    Raises:
        ReconciliationError: If inputs is empty.
    """
    if not inputs:
        raise ReconciliationError("No publication places to reconcile")

    candidates = [
        (normalize_place(entry.place), entry.source)
        for entry in inputs
        if _place_text(entry.place).strip()
    ]
    if not candidates:
        return ReconciledField(
            value=PublicationPlace(name="", normalized=""),
            confidence=policy.NO_DATA_CONFIDENCE,
            sources=[],
            reasoning="No valid publication places found",
        )

    candidates.sort(key=lambda item: (*source_sort_key(item[1]), item[0].normalized, item[0].name))
    best_place, best_source = candidates[0]
    confidence = place_confidence(best_place, best_source)

    if len(candidates) == 1:
        return ReconciledField(
            value=best_place,
            confidence=confidence,
            sources=[best_source],
            reasoning="Single valid place",
        )

    groups: dict[str, list[MetadataSource]] = {}
    for place, source in candidates:
        groups.setdefault(place.normalized or place.name.lower(), []).append(source)
    winning_key = best_place.normalized or best_place.name.lower()
    supporters = sorted(set(groups[winning_key]), key=source_sort_key)

    conflicts = None
    reasoning = "Selected place from most reliable source"
    if len(groups) > 1:
        conflicts = [
            Conflict(
                field="publication_place",
                values=[ConflictValue(value=place, source=src) for place, src in candidates],
                resolution="Selected place from most reliable source",
            )
        ]
        reasoning = "Resolved conflict by selecting place from most reliable source"
        logger.debug("Place conflict across %d groups, chose %r", len(groups), winning_key)

    return ReconciledField(
        value=best_place,
        confidence=confidence,
        sources=supporters,
        reasoning=reasoning,
        conflicts=conflicts,
    )
