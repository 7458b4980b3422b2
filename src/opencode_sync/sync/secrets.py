"""
Encrypted channel for credential files.

Two sensitive categories exist: OpenCode's provider credentials
(auth.json) and its MCP server credentials (mcp-auth.json). Each has a
fixed plaintext location in the live data dir, a fixed artifact name at
the top of the mirror, and its own enable flag in the policy.

    export:  live auth.json   -> encrypt -> mirror/auth.json.enc
    import:  mirror/auth.json.enc -> decrypt -> live auth.json

An enabled category never falls back to plaintext: without an
encryption provider the operation fails before anything is written.
Artifacts of disabled categories are skipped on import, neither
decrypted nor copied. Exclusion patterns apply to artifact names in
both directions. An artifact that already decrypts to the current
plaintext is left as it is, so an unchanged credential never changes
the mirror.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Optional

from ..crypto import Encryption
from ..errors import EncryptionError, NotConfiguredError, SyncIOError
from ..models import SyncPolicy
from ..paths import Paths
from .exclude import should_exclude

logger = logging.getLogger("opencode_sync.sync.secrets")

ARTIFACT_SUFFIX = ".enc"


@dataclass(frozen=True)
class SensitiveCategory:
    """A class of credential file that may only travel encrypted.

    Attributes:
        name: Short identifier used in logs.
        policy_flag: Attribute of SyncSettings that enables the category.
        source_attr: Attribute of Paths holding the plaintext location.
        artifact_name: Fixed file name of the encrypted blob in the mirror.
    """

    name: str
    policy_flag: str
    source_attr: str
    artifact_name: str

    def enabled(self, policy: SyncPolicy) -> bool:
        return bool(getattr(policy.sync, self.policy_flag))

    def source(self, paths: Paths) -> Path:
        return getattr(paths, self.source_attr)


AUTH = SensitiveCategory(
    name="auth",
    policy_flag="include_auth",
    source_attr="auth_file",
    artifact_name="auth.json" + ARTIFACT_SUFFIX,
)

MCP_AUTH = SensitiveCategory(
    name="mcp-auth",
    policy_flag="include_mcp_auth",
    source_attr="mcp_auth_file",
    artifact_name="mcp-auth.json" + ARTIFACT_SUFFIX,
)

SENSITIVE_CATEGORIES = (AUTH, MCP_AUTH)


def category_for_artifact(mirror_rel: str) -> Optional[SensitiveCategory]:
    """Return the category whose artifact lives at this mirror path."""
    rel = PurePosixPath(mirror_rel).as_posix()
    for category in SENSITIVE_CATEGORIES:
        if rel == category.artifact_name:
            return category
    return None


class SecretChannel:
    """Routes sensitive files through encryption on their way to the mirror."""

    def __init__(
        self,
        paths: Paths,
        policy: SyncPolicy,
        encryption: Optional[Encryption] = None,
    ):
        self.paths = paths
        self.policy = policy
        self.encryption = encryption

    def enabled_categories(self) -> list[SensitiveCategory]:
        return [c for c in SENSITIVE_CATEGORIES if c.enabled(self.policy)]

    def check_export_ready(self) -> None:
        """Fail unless every enabled category can be encrypted.

        Raises:
            NotConfiguredError: A category is enabled and no encryption
                provider is configured.
        """
        enabled = self.enabled_categories()
        if enabled and self.encryption is None:
            raise NotConfiguredError(
                f"sync.{enabled[0].policy_flag} requires encryption, "
                "but no encryption key is configured"
            )

    def export_secrets(self, mirror_dir: Path) -> list[Path]:
        """Encrypt every enabled, existing credential file into the mirror.

        Returns:
            Artifact paths written.

        Raises:
            NotConfiguredError: Encryption is required but missing.
            SyncIOError: A credential or artifact file could not be accessed.
        """
        self.check_export_ready()
        written = []
        for category in self.enabled_categories():
            if should_exclude(category.artifact_name, self.policy.sync.exclude):
                logger.debug("Skipping %s: excluded", category.artifact_name)
                continue

            src = category.source(self.paths)
            if not src.exists():
                logger.debug("No %s file at %s, nothing to protect", category.name, src)
                continue

            dst = mirror_dir / category.artifact_name
            if self._artifact_current(src, dst):
                logger.debug("%s unchanged, keeping existing artifact", dst.name)
                continue

            try:
                self.encryption.encrypt_file(src, dst)
            except OSError as exc:
                raise SyncIOError(src, f"failed to encrypt {category.name}") from exc
            logger.info("Encrypted %s -> %s", src.name, dst.name)
            written.append(dst)
        return written

    def _artifact_current(self, src: Path, dst: Path) -> bool:
        """Whether dst already decrypts to exactly the bytes of src.

        Encryption is not deterministic, so re-encrypting an unchanged
        file would still change the artifact.
        """
        if not dst.exists():
            return False
        try:
            return self.encryption.decrypt(dst.read_bytes()) == src.read_bytes()
        except EncryptionError:
            return False
        except OSError as exc:
            raise SyncIOError(
                Path(exc.filename) if exc.filename else dst, "failed to read"
            ) from exc

    def import_artifact(
        self, category: SensitiveCategory, artifact: Path
    ) -> Optional[Path]:
        """Decrypt one artifact found in the mirror into the live tree.

        Returns:
            The plaintext path written, or None when the category is
            disabled and the artifact was skipped.

        Raises:
            NotConfiguredError: The category is enabled but decryption is not.
            EncryptionError: The artifact does not decrypt with our key.
            SyncIOError: The artifact or destination could not be accessed.
        """
        if not category.enabled(self.policy):
            logger.warning(
                "Skipping %s: sync.%s is disabled",
                category.artifact_name,
                category.policy_flag,
            )
            return None

        if self.encryption is None:
            raise NotConfiguredError(
                f"found encrypted artifact {category.artifact_name} "
                "but decryption is not configured"
            )

        dst = category.source(self.paths)
        try:
            self.encryption.decrypt_file(artifact, dst)
        except OSError as exc:
            raise SyncIOError(dst, f"failed to decrypt {category.name}") from exc
        logger.info("Decrypted %s -> %s", artifact.name, dst)
        return dst
