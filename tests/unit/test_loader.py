# ABOUTME: Unit tests for the JSON input loaders used by the CLI.
# ABOUTME: Covers record parsing, reliability overrides, library snapshots and load errors.

import json
from pathlib import Path

import pytest

from shelfmark.cli.loader import (
    RecordLoadError,
    candidate_from_record,
    load_library,
    load_records,
    load_reliability,
    record_from_dict,
)
from shelfmark.core.enrichment import default_reliability
from shelfmark.metadata.types import MetadataType


def _write(tmp_path: Path, name: str, data: object) -> Path:
    path = tmp_path / name
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestRecordFromDict:
    """Tests for record_from_dict."""

    def test_full_record(self) -> None:
        """Every supported key lands on the record."""
        record = record_from_dict(
            {
                "id": "OL1M",
                "source": "OpenLibrary",
                "confidence": 0.8,
                "title": "Dune",
                "authors": "Frank Herbert",
                "isbn": ["9780306406157"],
                "page_count": "412",
                "series": {"name": "Dune Chronicles", "volume": 1},
                "identifiers": ["doi:10.1000/182"],
                "asin": "B000FC0SIM",
                "timestamp": "2024-01-02T03:04:05",
            }
        )
        assert record.id == "OL1M"
        assert record.authors == ["Frank Herbert"]
        assert record.page_count == 412
        assert record.series.name == "Dune Chronicles"
        assert record.series.volume == 1.0
        assert record.provider_data == {
            "identifiers": ["doi:10.1000/182"],
            "asin": "B000FC0SIM",
        }
        assert record.timestamp.year == 2024

    def test_physical_and_standalone_keys(self) -> None:
        """Dimensions, weight and binding are kept as given; standalone goes to provider_data."""
        record = record_from_dict(
            {
                "source": "OpenLibrary",
                "dimensions": "8.5 x 11 in",
                "weight": "1.2 kg",
                "binding": "Hardback",
                "standalone": True,
            }
        )
        assert record.dimensions == "8.5 x 11 in"
        assert record.weight == "1.2 kg"
        assert record.binding == "Hardback"
        assert record.provider_data == {"standalone": True}

    def test_defaults(self) -> None:
        """id defaults to the position and confidence to 1.0."""
        record = record_from_dict({"source": "WikiData", "series": "Foundation"}, position=4)
        assert record.id == "4"
        assert record.confidence == 1.0
        assert record.series.name == "Foundation"
        assert record.series.volume is None

    @pytest.mark.parametrize(
        ("data", "message"),
        [
            ({"title": "Dune"}, "has no source"),
            ({"source": "X", "confidence": 2}, "is invalid"),
            ({"source": "X", "authors": 7}, "Expected a string"),
            ({"source": "X", "timestamp": "yesterday"}, "Invalid timestamp"),
            ({"source": "X", "series": {"volume": 2}}, "Unrecognised series"),
        ],
    )
    def test_invalid(self, data: dict, message: str) -> None:
        """Malformed records raise RecordLoadError."""
        with pytest.raises(RecordLoadError, match=message):
            record_from_dict(data)

    def test_not_an_object(self) -> None:
        """A non-object entry is rejected."""
        with pytest.raises(RecordLoadError, match="not an object"):
            record_from_dict(["Dune"], position=2)


class TestLoadRecords:
    """Tests for load_records."""

    def test_plain_list(self, tmp_path: Path) -> None:
        """A top-level list is read as records."""
        path = _write(tmp_path, "records.json", [{"source": "OpenLibrary", "title": "Dune"}])
        assert [r.title for r in load_records(path)] == ["Dune"]

    def test_wrapped_list(self, tmp_path: Path) -> None:
        """An object with a records key is also accepted."""
        path = _write(tmp_path, "records.json", {"records": [{"source": "VIAF"}]})
        assert [r.source for r in load_records(path)] == ["VIAF"]

    def test_bad_json(self, tmp_path: Path) -> None:
        """Invalid JSON raises RecordLoadError."""
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(RecordLoadError, match="not valid JSON"):
            load_records(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        """A missing file raises RecordLoadError."""
        with pytest.raises(RecordLoadError, match="Cannot read"):
            load_records(tmp_path / "missing.json")

    def test_wrong_shape(self, tmp_path: Path) -> None:
        """An object without a records list is rejected."""
        path = _write(tmp_path, "records.json", {"title": "Dune"})
        with pytest.raises(RecordLoadError, match="list of records"):
            load_records(path)


class TestLoadReliability:
    """Tests for load_reliability."""

    def test_without_table_uses_defaults(self, tmp_path: Path) -> None:
        """Files without a reliability table fall back to the defaults."""
        path = _write(tmp_path, "records.json", [])
        assert load_reliability(path) is default_reliability

    def test_flat_and_per_type_overrides(self, tmp_path: Path) -> None:
        """Flat scores apply to every type; per-type tables fall back per type."""
        path = _write(
            tmp_path,
            "records.json",
            {
                "records": [],
                "reliability": {"LibraryOfCongress": 0.95, "OpenLibrary": {"title": 0.4}},
            },
        )
        lookup = load_reliability(path)
        assert lookup("LibraryOfCongress", MetadataType.PUBLISHER) == 0.95
        assert lookup("OpenLibrary", MetadataType.TITLE) == 0.4
        assert lookup("OpenLibrary", MetadataType.ISBN) == default_reliability(
            "OpenLibrary", MetadataType.ISBN
        )


class TestLoadLibrary:
    """Tests for load_library and candidate_from_record."""

    def test_snapshot(self, tmp_path: Path) -> None:
        """Works, editions and assets are loaded into an index."""
        path = _write(
            tmp_path,
            "library.json",
            {
                "works": [{"id": 1, "title": "Dune", "authors": ["Frank Herbert"]}],
                "editions": [
                    {"id": 10, "work_id": 1, "title": "Dune", "isbn_13": "9780306406157"}
                ],
                "assets": [{"id": 100, "edition_id": 10, "checksum": "abc"}],
            },
        )
        library = load_library(path)
        assert len(library) == 1
        assert [e.id for e in library.find_editions_by_isbn("0306406152")] == ["10"]
        assert library.find_by_checksum("ABC").edition_id == "10"

    def test_missing_key(self, tmp_path: Path) -> None:
        """Entries without required keys are rejected."""
        path = _write(tmp_path, "library.json", {"works": [{"title": "Dune"}]})
        with pytest.raises(RecordLoadError, match="missing"):
            load_library(path)

    def test_candidate_from_record(self) -> None:
        """A record becomes a duplicate candidate carrying its ASIN."""
        record = record_from_dict(
            {"source": "OpenLibrary", "title": "Dune", "isbn": "9780306406157", "asin": "B0"}
        )
        candidate = candidate_from_record(record, checksum="ff")
        assert candidate.title == "Dune"
        assert candidate.isbns == ("9780306406157",)
        assert candidate.asin == "B0"
        assert candidate.checksum == "ff"
