# ABOUTME: Unit tests for SHA-256 content checksums.
# ABOUTME: Validates hex format, determinism, streaming equivalence and error handling.

from pathlib import Path

import pytest

from shelfmark.core.hashing import compute_bytes_hash, compute_file_hash

EMPTY_SHA256 = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"


@pytest.fixture
def sample_file(tmp_path: Path) -> Path:
    path = tmp_path / "sample.epub"
    path.write_bytes(b"Hello, shelf!")
    return path


@pytest.fixture
def different_file(tmp_path: Path) -> Path:
    path = tmp_path / "different.epub"
    path.write_bytes(b"Goodbye, shelf!")
    return path


class TestComputeFileHash:
    """Tests for compute_file_hash."""

    def test_returns_hex_string(self, sample_file: Path) -> None:
        """Hash is a 64-character lowercase hex string (SHA-256)."""
        result = compute_file_hash(sample_file)
        assert len(result) == 64
        assert all(c in "0123456789abcdef" for c in result)

    def test_deterministic(self, sample_file: Path) -> None:
        """Same file produces same hash every time."""
        assert compute_file_hash(sample_file) == compute_file_hash(str(sample_file))

    def test_different_content_different_hash(
        self, sample_file: Path, different_file: Path
    ) -> None:
        """Files with different content produce different hashes."""
        assert compute_file_hash(sample_file) != compute_file_hash(different_file)

    def test_matches_in_memory_hash(self, sample_file: Path) -> None:
        """Streaming a file gives the same digest as hashing its bytes."""
        assert compute_file_hash(sample_file) == compute_bytes_hash(b"Hello, shelf!")

    def test_large_file_spans_blocks(self, tmp_path: Path) -> None:
        """Content larger than one read block still hashes as a whole."""
        data = b"x" * (3 * 1024 * 1024 + 17)
        path = tmp_path / "large.pdf"
        path.write_bytes(data)
        assert compute_file_hash(path) == compute_bytes_hash(data)

    def test_nonexistent_file_raises(self, tmp_path: Path) -> None:
        """Hashing a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            compute_file_hash(tmp_path / "missing.epub")

    def test_empty_file(self, tmp_path: Path) -> None:
        """Empty files hash to the well-known empty digest."""
        path = tmp_path / "empty.epub"
        path.write_bytes(b"")
        assert compute_file_hash(path) == EMPTY_SHA256
        assert compute_bytes_hash(b"") == EMPTY_SHA256
