# ABOUTME: Reads the JSON inputs the CLI accepts: provider records, library snapshots, reliability.
# ABOUTME: Converts plain JSON objects into MetadataRecord, LibraryIndex and reliability lookups.

import json
from datetime import datetime
from pathlib import Path
from typing import Any

from shelfmark.core.duplicates import (
    DuplicateCandidate,
    ExistingAsset,
    ExistingEdition,
    ExistingWork,
    LibraryIndex,
)
from shelfmark.core.enrichment import ReliabilityLookup, default_reliability
from shelfmark.metadata.record import MetadataRecord, SeriesInfo
from shelfmark.metadata.types import MetadataType


class RecordLoadError(ValueError):
    """Raised when an input file is missing, is not JSON, or has the wrong shape."""


def _read_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise RecordLoadError(f"Cannot read {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise RecordLoadError(f"{path} is not valid JSON: {exc}") from exc


def _string_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [str(item) for item in value if item is not None]
    raise RecordLoadError(f"Expected a string or list of strings, got {type(value).__name__}")


def _series(value: Any) -> SeriesInfo | None:
    if not value:
        return None
    if isinstance(value, str):
        return SeriesInfo(name=value)
    if isinstance(value, dict) and value.get("name"):
        volume = value.get("volume")
        return SeriesInfo(
            name=str(value["name"]), volume=float(volume) if volume is not None else None
        )
    raise RecordLoadError(f"Unrecognised series value: {value!r}")


def _timestamp(value: Any) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value))
    except ValueError as exc:
        raise RecordLoadError(f"Invalid timestamp {value!r}") from exc


def record_from_dict(data: dict[str, Any], position: int = 0) -> MetadataRecord:
    """Build a MetadataRecord from one JSON object.

    source is required. id defaults to the position in the file, confidence
    to 1.0. Extra identifiers go under provider_data["identifiers"] and a
    "standalone" flag under provider_data["standalone"].
    """
    if not isinstance(data, dict):
        raise RecordLoadError(f"Record {position} is not an object")
    source = data.get("source")
    if not source:
        raise RecordLoadError(f"Record {position} has no source")

    page_count = data.get("page_count")
    provider_data = dict(data.get("provider_data") or {})
    identifiers = _string_list(data.get("identifiers"))
    if identifiers:
        provider_data["identifiers"] = identifiers
    if data.get("asin"):
        provider_data["asin"] = str(data["asin"])
    if "standalone" in data:
        provider_data["standalone"] = bool(data["standalone"])

    try:
        return MetadataRecord(
            id=str(data.get("id", position)),
            source=str(source),
            confidence=float(data.get("confidence", 1.0)),
            timestamp=_timestamp(data.get("timestamp")),
            title=data.get("title"),
            authors=_string_list(data.get("authors")),
            isbn=_string_list(data.get("isbn")),
            publication_date=data.get("publication_date"),
            publisher=data.get("publisher"),
            place=data.get("place"),
            language=data.get("language"),
            page_count=int(page_count) if page_count is not None else None,
            dimensions=data.get("dimensions"),
            weight=data.get("weight"),
            binding=data.get("binding"),
            description=data.get("description"),
            subjects=_string_list(data.get("subjects")),
            series=_series(data.get("series")),
            edition=data.get("edition"),
            cover_image=data.get("cover_image"),
            provider_data=provider_data,
        )
    except (TypeError, ValueError) as exc:
        raise RecordLoadError(f"Record {position} is invalid: {exc}") from exc


def load_records(path: Path) -> list[MetadataRecord]:
    """Load provider records from a JSON list or an object with a "records" list."""
    data = _read_json(path)
    items = data.get("records") if isinstance(data, dict) else data
    if not isinstance(items, list):
        raise RecordLoadError(f"{path} must hold a list of records")
    return [record_from_dict(item, i) for i, item in enumerate(items)]


def load_reliability(path: Path) -> ReliabilityLookup:
    """Per-source reliability overrides from a records file.

    The file may carry "reliability": {"source": 0.9, ...} for a flat score, or
    {"source": {"title": 0.9, ...}} keyed by data type. Anything not listed
    falls back to the default reliability table.
    """
    data = _read_json(path)
    table = data.get("reliability") if isinstance(data, dict) else None
    if not table:
        return default_reliability
    if not isinstance(table, dict):
        raise RecordLoadError(f"{path}: reliability must be an object")

    def lookup(source: str, data_type: MetadataType) -> float:
        entry = table.get(source)
        if isinstance(entry, (int, float)):
            return float(entry)
        if isinstance(entry, dict) and data_type.value in entry:
            return float(entry[data_type.value])
        return default_reliability(source, data_type)

    return lookup


def candidate_from_record(
    record: MetadataRecord, checksum: str | None = None
) -> DuplicateCandidate:
    return DuplicateCandidate(
        title=record.title,
        authors=tuple(record.authors),
        isbns=tuple(record.isbn),
        asin=record.provider_data.get("asin"),
        checksum=checksum,
    )


def load_library(path: Path) -> LibraryIndex:
    """Load a library snapshot: {"works": [...], "editions": [...], "assets": [...]}."""
    data = _read_json(path)
    if not isinstance(data, dict):
        raise RecordLoadError(f"{path} must hold an object with works, editions and assets")
    try:
        works = [
            ExistingWork(
                id=str(w["id"]),
                title=w["title"],
                authors=tuple(_string_list(w.get("authors"))),
            )
            for w in data.get("works", [])
        ]
        editions = [
            ExistingEdition(
                id=str(e["id"]),
                work_id=str(e["work_id"]),
                title=e["title"],
                authors=tuple(_string_list(e.get("authors"))),
                isbn_10=e.get("isbn_10"),
                isbn_13=e.get("isbn_13"),
                asin=e.get("asin"),
                format=e.get("format"),
            )
            for e in data.get("editions", [])
        ]
        assets = [
            ExistingAsset(
                id=str(a["id"]),
                edition_id=str(a["edition_id"]),
                checksum=a["checksum"],
                filename=a.get("filename"),
            )
            for a in data.get("assets", [])
        ]
    except (KeyError, TypeError) as exc:
        raise RecordLoadError(f"{path}: library entry is missing {exc}") from exc
    return LibraryIndex(works=works, editions=editions, assets=assets)
