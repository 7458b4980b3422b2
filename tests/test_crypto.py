"""Tests for the encryption providers and key handling."""

from __future__ import annotations

import stat
from pathlib import Path

import pytest

from opencode_sync.crypto import (
    FernetEncryption,
    NoOpEncryption,
    generate_key,
    load_encryption,
    load_key,
    save_key,
    validate_key,
)
from opencode_sync.errors import EncryptionError, NotConfiguredError
from opencode_sync.models import EncryptionConfig, SyncPolicy
from opencode_sync.paths import Paths


class TestFernetEncryption:
    """Fernet provider."""

    def test_round_trip(self):
        enc = FernetEncryption(generate_key())
        token = enc.encrypt(b'{"key": "sk-secret"}')
        assert token != b'{"key": "sk-secret"}'
        assert enc.decrypt(token) == b'{"key": "sk-secret"}'

    def test_accepts_bytes_key(self):
        key = generate_key().encode("ascii")
        assert FernetEncryption(key).decrypt(FernetEncryption(key).encrypt(b"x")) == b"x"

    def test_invalid_key(self):
        with pytest.raises(EncryptionError, match="invalid encryption key"):
            FernetEncryption("not-a-key")

    def test_wrong_key(self):
        token = FernetEncryption(generate_key()).encrypt(b"x")
        with pytest.raises(EncryptionError):
            FernetEncryption(generate_key()).decrypt(token)

    def test_file_round_trip_owner_only(self, tmp_path: Path):
        enc = FernetEncryption(generate_key())
        src = tmp_path / "auth.json"
        src.write_bytes(b"secret")
        enc.encrypt_file(src, tmp_path / "out" / "auth.json.enc")
        enc.decrypt_file(tmp_path / "out" / "auth.json.enc", tmp_path / "back.json")
        assert (tmp_path / "back.json").read_bytes() == b"secret"
        assert stat.S_IMODE((tmp_path / "out" / "auth.json.enc").stat().st_mode) == 0o600


class TestNoOpEncryption:
    """Identity transform."""

    def test_identity(self):
        enc = NoOpEncryption()
        assert enc.encrypt(b"abc") == b"abc"
        assert enc.decrypt(b"abc") == b"abc"


class TestKeys:
    """Key files."""

    def test_save_and_load(self, tmp_path: Path):
        key = generate_key()
        path = tmp_path / "cfg" / "encryption.key"
        save_key(key, path)
        assert load_key(path) == key
        assert stat.S_IMODE(path.stat().st_mode) == 0o600

    def test_load_missing(self, tmp_path: Path):
        with pytest.raises(NotConfiguredError, match="key generate"):
            load_key(tmp_path / "nope.key")

    def test_validate_strips(self):
        key = generate_key()
        assert validate_key(f"  {key}\n") == key

    def test_save_rejects_bad_key(self, tmp_path: Path):
        with pytest.raises(EncryptionError):
            save_key("garbage", tmp_path / "k")
        assert not (tmp_path / "k").exists()


class TestLoadEncryption:
    """Provider selection from the policy."""

    def test_disabled(self, sync_paths: Paths):
        """A disabled policy yields no provider, not an identity one."""
        assert load_encryption(SyncPolicy(), sync_paths) is None

    def test_enabled_without_key(self, sync_paths: Paths):
        policy = SyncPolicy(encryption=EncryptionConfig(enabled=True))
        with pytest.raises(NotConfiguredError):
            load_encryption(policy, sync_paths)

    def test_default_key_location(self, sync_paths: Paths):
        save_key(generate_key(), sync_paths.key_file)
        policy = SyncPolicy(encryption=EncryptionConfig(enabled=True))
        assert isinstance(load_encryption(policy, sync_paths), FernetEncryption)

    def test_explicit_key_file(self, sync_paths: Paths, tmp_path: Path):
        key_file = tmp_path / "elsewhere.key"
        save_key(generate_key(), key_file)
        policy = SyncPolicy(encryption=EncryptionConfig(enabled=True, key_file=key_file))
        assert load_encryption(policy, sync_paths) is not None
