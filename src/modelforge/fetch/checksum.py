"""File integrity helpers."""

from __future__ import annotations

import hashlib
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

CHUNK_SIZE = 64 * 1024


def compute_file_sha256(filepath: Path, *, chunk_size: int = CHUNK_SIZE) -> str:
    """Compute SHA256 hash of a file without loading it into memory.

    Args:
        filepath: Path to file.
        chunk_size: Read size in bytes.

    Returns:
        Hex-encoded SHA256 hash (64 chars, lowercase).

    Raises:
        FileNotFoundError: If file doesn't exist.
    """
    hasher = hashlib.sha256()
    with filepath.open("rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def sha256_matches(actual: str, expected: str) -> bool:
    """Case-insensitive comparison of hex digests."""
    return actual.strip().lower() == expected.strip().lower()
