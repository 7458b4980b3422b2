"""
Error hierarchy for opencode-sync.

Every failure the engine can report derives from SyncError so the CLI
can catch one type. The version-control kinds (ConflictError, AuthError)
are distinguished because callers react to them differently.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union


class SyncError(Exception):
    """Base class for all opencode-sync errors."""


class ConfigError(SyncError):
    """Raised when the configuration cannot be loaded, parsed, or updated."""


class PolicyViolationError(ConfigError):
    """Raised when a sync policy combines settings that are not allowed.

    The only such combination today is a sensitive file category enabled
    while encryption is disabled.
    """


class NotConfiguredError(SyncError):
    """Raised when an operation needs encryption and none is configured."""


class EncryptionError(SyncError):
    """Raised when ciphertext cannot be decrypted with the configured key."""


class SyncIOError(SyncError):
    """Raised when a file cannot be read, written, or hashed during sync.

    Attributes:
        path: The file that failed.
    """

    def __init__(self, path: Union[str, Path], message: str):
        self.path = Path(path)
        super().__init__(f"{message}: {self.path}")


class RepositoryError(SyncError):
    """Raised when the version-control collaborator reports a failure.

    Attributes:
        command: The command that failed, when known.
        stderr: Raw error output from the backend, when known.
    """

    def __init__(
        self,
        message: str,
        command: Optional[list[str]] = None,
        stderr: str = "",
    ):
        self.command = command
        self.stderr = stderr
        super().__init__(message)


class ConflictError(RepositoryError):
    """Raised when a pull stops on a merge conflict.

    Attributes:
        files: Conflicting paths, relative to the mirror root.
    """

    def __init__(self, files: list[str], stderr: str = ""):
        self.files = list(files)
        super().__init__(
            f"merge conflict in {len(self.files)} file(s)", stderr=stderr
        )


class AuthError(RepositoryError):
    """Raised when the remote rejects our credentials.

    Attributes:
        remote: Name of the remote that refused access.
    """

    def __init__(self, remote: str, stderr: str = ""):
        self.remote = remote
        detail = stderr.strip().splitlines()[-1] if stderr.strip() else "access denied"
        super().__init__(
            f"authentication failed for remote {remote}: {detail}",
            stderr=stderr,
        )
