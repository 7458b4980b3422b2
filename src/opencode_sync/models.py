"""
Pydantic models for the sync policy and the state the engine reports.

SyncPolicy is the user's configuration, persisted as YAML. FileRecord,
SyncState and CycleResult are transient reports: built fresh on every
call, never written to disk, never mutated after construction.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import PolicyViolationError

DEFAULT_EXCLUDES = ["node_modules", "*.log", "bun.lock"]


class RepoBackendType(str, Enum):
    """Supported mirror repository backends."""

    GIT = "git"
    LOCAL = "local"


class RepoConfig(BaseModel):
    """Where the mirror lives remotely and how to reach it."""

    url: str = ""
    branch: str = "main"
    backend: RepoBackendType = RepoBackendType.GIT
    timeout: int = Field(default=120, gt=0, description="Seconds per network operation")


class EncryptionConfig(BaseModel):
    """Encryption settings for sensitive files."""

    enabled: bool = False
    key_file: Optional[Path] = None


class ExternalDir(BaseModel):
    """A directory outside the config tree, mirrored under its own name."""

    path: Path
    mirror_name: str


class SyncSettings(BaseModel):
    """What gets synced."""

    include_auth: bool = False
    include_mcp_auth: bool = False
    exclude: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDES))
    external_dirs: list[ExternalDir] = Field(default_factory=list)


class SyncPolicy(BaseModel):
    """Complete user configuration consumed by the sync engine."""

    repo: RepoConfig = Field(default_factory=RepoConfig)
    encryption: EncryptionConfig = Field(default_factory=EncryptionConfig)
    sync: SyncSettings = Field(default_factory=SyncSettings)

    def validate_policy(self) -> None:
        """Reject combinations the engine must never run with.

        Raises:
            PolicyViolationError: If a sensitive category is enabled without
                encryption, or two external dirs share a mirror name.
        """
        if self.sync.include_auth and not self.encryption.enabled:
            raise PolicyViolationError(
                "sync.include_auth requires encryption.enabled to be true"
            )
        if self.sync.include_mcp_auth and not self.encryption.enabled:
            raise PolicyViolationError(
                "sync.include_mcp_auth requires encryption.enabled to be true"
            )

        names = [d.mirror_name for d in self.sync.external_dirs]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise PolicyViolationError(
                f"duplicate external_dirs mirror_name: {', '.join(duplicates)}"
            )


class FileRecord(BaseModel):
    """One observed file in the live tree (or in the mirror, if deleted live)."""

    model_config = ConfigDict(frozen=True)

    path: Path
    rel_path: str
    size: int
    mod_time: datetime
    fingerprint: str
    is_new: bool = False
    is_modified: bool = False
    is_deleted: bool = False

    @property
    def changed(self) -> bool:
        """Whether the file differs from its mirror counterpart."""
        return self.is_new or self.is_modified or self.is_deleted


class SyncState(BaseModel):
    """Aggregate snapshot used to decide push/pull eligibility."""

    model_config = ConfigDict(frozen=True)

    is_clean: bool
    has_local_changes: bool
    local_files: list[FileRecord] = Field(default_factory=list)
    conflict_files: list[str] = Field(default_factory=list)

    @property
    def changed_files(self) -> list[FileRecord]:
        """Records that differ from the mirror."""
        return [f for f in self.local_files if f.changed]


class SyncOutcome(str, Enum):
    """Terminal states of a pull, push, or full sync cycle."""

    PULLED = "pulled"
    UP_TO_DATE = "up_to_date"
    PUSHED = "pushed"
    BLOCKED_LOCAL_CHANGES = "blocked_local_changes"
    CONFLICTED = "conflicted"
    PUSH_FAILED = "push_failed"


FAILED_OUTCOMES = {
    SyncOutcome.BLOCKED_LOCAL_CHANGES,
    SyncOutcome.CONFLICTED,
    SyncOutcome.PUSH_FAILED,
}


class CycleResult(BaseModel):
    """What a pull/push/sync call ended with."""

    model_config = ConfigDict(frozen=True)

    outcome: SyncOutcome
    conflict_files: list[str] = Field(default_factory=list)
    commit_message: Optional[str] = None
    error: Optional[str] = None
    auth_failure: bool = False

    @property
    def ok(self) -> bool:
        """Whether the cycle ended in a success state."""
        return self.outcome not in FAILED_OUTCOMES
