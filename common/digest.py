"""Content fingerprints for package files.

Fingerprints are persisted in manifests and compared across runs, so the
algorithm is fixed to SHA-1 and must not change.
"""
from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Iterable

from .errors import FileAccessError

DIGEST_ALGORITHM = "sha1"
CHUNK_SIZE = 64 * 1024


def digest_chunks(chunks: Iterable[bytes]) -> str:
    """Return the hex digest of a byte stream."""

    hasher = hashlib.new(DIGEST_ALGORITHM)
    for chunk in chunks:
        hasher.update(chunk)
    return hasher.hexdigest()


def file_digest(path: Path) -> str:
    """Return the hex digest of ``path``, reading it in fixed-size chunks."""

    try:
        with Path(path).open("rb") as handle:
            return digest_chunks(iter(lambda: handle.read(CHUNK_SIZE), b""))
    except OSError as exc:
        raise FileAccessError(f"Cannot read {path}: {exc}") from exc


__all__ = ["CHUNK_SIZE", "DIGEST_ALGORITHM", "digest_chunks", "file_digest"]
