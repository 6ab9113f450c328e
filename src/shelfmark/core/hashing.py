# ABOUTME: SHA-256 content checksums used for exact-asset duplicate detection.
# ABOUTME: Files are streamed in 1 MB blocks so large uploads never sit fully in memory.

import hashlib
from collections.abc import Iterable
from pathlib import Path

_BLOCK_SIZE = 1024 * 1024


def _digest(blocks: Iterable[bytes]) -> str:
    hasher = hashlib.sha256()
    for block in blocks:
        hasher.update(block)
    return hasher.hexdigest()


def compute_bytes_hash(data: bytes) -> str:
    """Checksum of in-memory content, as a lowercase hex digest."""
    return _digest([data])


def compute_file_hash(path: Path | str) -> str:
    """Checksum of a file's content.

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    with Path(path).open("rb") as stream:
        return _digest(iter(lambda: stream.read(_BLOCK_SIZE), b""))
