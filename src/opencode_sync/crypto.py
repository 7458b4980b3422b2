"""
Encryption providers for credential files.

Sensitive files leave the live tree only as Fernet tokens
(AES-128-CBC + HMAC-SHA256). The key is a urlsafe-base64 string kept in
the config dir with owner-only permissions; anyone who holds it can
decrypt the credentials, so it must be copied to other machines by hand.

NoOpEncryption is the identity transform. No policy value selects it:
load_encryption returns None when encryption is disabled, and the
secret channel treats None as "cannot encrypt". Callers that want the
full pipeline without a key pass a NoOpEncryption in the SyncContext.
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union

from cryptography.fernet import Fernet, InvalidToken

from .errors import EncryptionError, NotConfiguredError
from .models import SyncPolicy
from .paths import Paths

logger = logging.getLogger("opencode_sync.crypto")

SECRET_FILE_MODE = 0o600


def _write_secret(path: Path, data: bytes) -> None:
    """Write bytes to a file readable only by its owner."""
    path.parent.mkdir(parents=True, exist_ok=True, mode=0o755)
    fd = os.open(str(path), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, SECRET_FILE_MODE)
    with os.fdopen(fd, "wb") as f:
        f.write(data)
    os.chmod(path, SECRET_FILE_MODE)


class Encryption(ABC):
    """Byte-level encryption capability used for sensitive files."""

    @abstractmethod
    def encrypt(self, plaintext: bytes) -> bytes:
        """Encrypt a whole plaintext buffer."""

    @abstractmethod
    def decrypt(self, ciphertext: bytes) -> bytes:
        """Decrypt a whole ciphertext buffer."""

    def encrypt_file(self, src: Path, dst: Path) -> None:
        """Encrypt src and write the result to dst (mode 0600)."""
        _write_secret(Path(dst), self.encrypt(Path(src).read_bytes()))

    def decrypt_file(self, src: Path, dst: Path) -> None:
        """Decrypt src and write the plaintext to dst (mode 0600)."""
        _write_secret(Path(dst), self.decrypt(Path(src).read_bytes()))


class FernetEncryption(Encryption):
    """Symmetric encryption with a Fernet key."""

    def __init__(self, key: Union[str, bytes]):
        try:
            raw = key.encode("ascii") if isinstance(key, str) else key
            self._fernet = Fernet(raw.strip())
        except (ValueError, TypeError) as exc:
            raise EncryptionError(f"invalid encryption key: {exc}") from exc

    def encrypt(self, plaintext: bytes) -> bytes:
        return self._fernet.encrypt(plaintext)

    def decrypt(self, ciphertext: bytes) -> bytes:
        try:
            return self._fernet.decrypt(ciphertext)
        except InvalidToken as exc:
            raise EncryptionError(
                "decryption failed: wrong key or corrupted artifact"
            ) from exc


class NoOpEncryption(Encryption):
    """Identity transform. Never use it for real credentials."""

    def encrypt(self, plaintext: bytes) -> bytes:
        return plaintext

    def decrypt(self, ciphertext: bytes) -> bytes:
        return ciphertext


def generate_key() -> str:
    """Generate a fresh Fernet key."""
    return Fernet.generate_key().decode("ascii")


def validate_key(key: str) -> str:
    """Check that a key string is usable and return it normalized.

    Raises:
        EncryptionError: If the key is not a valid Fernet key.
    """
    normalized = key.strip()
    FernetEncryption(normalized)
    return normalized


def save_key(key: str, path: Path) -> None:
    """Write a key file with owner-only permissions."""
    _write_secret(path, (validate_key(key) + "\n").encode("ascii"))
    logger.info("Encryption key saved to %s", path)


def load_key(path: Path) -> str:
    """Read a key file.

    Raises:
        NotConfiguredError: If the key file does not exist.
    """
    if not path.exists():
        raise NotConfiguredError(
            f"encryption key not found at {path}. "
            "Run 'opencode-sync key generate' or 'opencode-sync key import'"
        )
    return path.read_text(encoding="ascii").strip()


def load_encryption(policy: SyncPolicy, paths: Paths) -> Optional[Encryption]:
    """Build the encryption provider the policy asks for.

    Returns:
        A FernetEncryption, or None when encryption is disabled. Never
        a NoOpEncryption.

    Raises:
        NotConfiguredError: Encryption is enabled but the key is missing.
        EncryptionError: The key file does not hold a valid key.
    """
    if not policy.encryption.enabled:
        return None
    key_file = Path(policy.encryption.key_file or paths.key_file).expanduser()
    return FernetEncryption(load_key(key_file))
