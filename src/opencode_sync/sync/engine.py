"""
Sync Engine -- orchestrates export, import, and the repository round trip.

    opencode-sync pull  ->  guard local changes -> pull -> import to live tree
    opencode-sync push  ->  export to mirror -> stage -> commit -> push
    opencode-sync sync  ->  pull, then push

The engine holds no global state. Everything it touches comes from the
SyncContext passed to its constructor.
"""

from __future__ import annotations

import logging
import socket
from datetime import datetime
from typing import Optional

from ..context import SyncContext
from ..errors import AuthError, ConflictError, RepositoryError
from ..models import CycleResult, SyncOutcome, SyncState
from .mirror import MirrorCopier
from .secrets import SecretChannel
from .state import StateAggregator

logger = logging.getLogger("opencode_sync.sync.engine")


def commit_message(now: Optional[datetime] = None) -> str:
    """Automatic commit message naming this host and the local time."""
    now = now or datetime.now()
    return f"Sync from {socket.gethostname()} at {now.strftime('%Y-%m-%d %H:%M:%S')}"


class SyncEngine:
    """Moves OpenCode configuration between the live tree and the mirror.

    Args:
        context: Resolved paths, policy, repository and encryption.

    Raises:
        PolicyViolationError: The policy enables a sensitive category
            without encryption. Checked before any file is touched.
    """

    def __init__(self, context: SyncContext):
        context.policy.validate_policy()

        self.context = context
        self.paths = context.paths
        self.policy = context.policy
        self.repository = context.repository

        self.secrets = SecretChannel(self.paths, self.policy, context.encryption)
        self.copier = MirrorCopier(
            self.paths,
            self.policy,
            self.secrets,
            metadata_dir=self.repository.metadata_dir,
        )
        self.aggregator = StateAggregator(self.paths, self.policy, self.repository)
        self.last_conflicts: list[str] = []

    def export_to_mirror(self) -> list[str]:
        """Copy the live tree into the mirror. See MirrorCopier."""
        return self.copier.export_to_mirror()

    def import_from_mirror(self) -> list[str]:
        """Copy the mirror back into the live tree. See MirrorCopier."""
        return self.copier.import_from_mirror()

    def get_state(self) -> SyncState:
        """Snapshot the mirror and the live tree.

        Conflicts are those reported by the most recent failed pull.
        """
        return self.aggregator.get_state(conflict_files=self.last_conflicts)

    def pull(self) -> CycleResult:
        """Bring remote changes into the mirror, then into the live tree.

        Refuses to start while the mirror has uncommitted changes, so no
        network call happens in that case. A merge conflict stops the
        pull before anything is imported.

        Raises:
            AuthError: The remote rejected our credentials.
            RepositoryError: Any other repository failure.
            SyncIOError, NotConfiguredError, EncryptionError: From import.
        """
        if self.repository.has_changes():
            logger.warning("Mirror has uncommitted changes, refusing to pull")
            return CycleResult(
                outcome=SyncOutcome.BLOCKED_LOCAL_CHANGES,
                error="mirror has uncommitted changes; push them first",
            )

        try:
            self.repository.pull()
        except ConflictError as exc:
            self.last_conflicts = list(exc.files)
            logger.warning("Pull stopped on conflicts: %s", ", ".join(exc.files))
            return CycleResult(
                outcome=SyncOutcome.CONFLICTED,
                conflict_files=exc.files,
                error=str(exc),
            )

        self.last_conflicts = []
        self.import_from_mirror()
        logger.info("Pull complete")
        return CycleResult(outcome=SyncOutcome.PULLED)

    def push(self) -> CycleResult:
        """Export, then commit and push whatever changed.

        A failed push, authentication included, is reported as
        PUSH_FAILED rather than raised. The commit stays in the mirror
        and goes out with the next successful push.
        """
        self.export_to_mirror()

        if not self.repository.has_changes():
            logger.info("Nothing to push")
            return CycleResult(outcome=SyncOutcome.UP_TO_DATE)

        message = commit_message()
        self.repository.add_all()
        self.repository.commit(message)

        try:
            self.repository.push()
        except RepositoryError as exc:
            logger.error("Push failed: %s", exc)
            return CycleResult(
                outcome=SyncOutcome.PUSH_FAILED,
                commit_message=message,
                error=str(exc),
                auth_failure=isinstance(exc, AuthError),
            )

        logger.info("Pushed: %s", message)
        return CycleResult(outcome=SyncOutcome.PUSHED, commit_message=message)

    def sync(self) -> CycleResult:
        """Full cycle: pull, then push. Stops at the first failure."""
        pulled = self.pull()
        if not pulled.ok:
            return pulled
        return self.push()

    def bootstrap(self, message: str = "Initial sync") -> bool:
        """Export the live tree and commit it without pushing.

        Returns:
            True if a commit was made, False if the mirror was unchanged.
        """
        self.export_to_mirror()
        if not self.repository.has_changes():
            return False
        self.repository.add_all()
        self.repository.commit(message)
        return True
