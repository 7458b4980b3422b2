"""
Content fingerprints -- change detection that ignores timestamps.
"""

from __future__ import annotations

import hashlib
from pathlib import Path

CHUNK_SIZE = 64 * 1024


def fingerprint(path: Path) -> str:
    """Compute the SHA-256 hex digest of a file's full content.

    Args:
        path: File to hash.

    Returns:
        Lowercase hex-encoded SHA-256 digest.

    Raises:
        OSError: If the file cannot be opened or read.
    """
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            h.update(chunk)
    return h.hexdigest()
