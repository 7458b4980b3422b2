"""Tests for content fingerprints."""

from __future__ import annotations

import hashlib
from pathlib import Path

import pytest

from opencode_sync.sync.fingerprint import CHUNK_SIZE, fingerprint


class TestFingerprint:
    """SHA-256 over full file content."""

    def test_matches_hashlib(self, tmp_path: Path):
        f = tmp_path / "a.json"
        f.write_bytes(b"{}")
        assert fingerprint(f) == hashlib.sha256(b"{}").hexdigest()

    def test_lowercase_hex(self, tmp_path: Path):
        f = tmp_path / "a"
        f.write_bytes(b"x")
        digest = fingerprint(f)
        assert len(digest) == 64
        assert digest == digest.lower()

    def test_large_file_hashes_every_byte(self, tmp_path: Path):
        """A change past the first chunk must change the digest."""
        data = bytearray(b"a" * (CHUNK_SIZE * 3 + 17))
        f = tmp_path / "big"
        f.write_bytes(bytes(data))
        before = fingerprint(f)

        data[-1:] = b"b"
        f.write_bytes(bytes(data))
        assert fingerprint(f) != before
        assert fingerprint(f) == hashlib.sha256(bytes(data)).hexdigest()

    def test_missing_file_raises(self, tmp_path: Path):
        with pytest.raises(OSError):
            fingerprint(tmp_path / "missing")
