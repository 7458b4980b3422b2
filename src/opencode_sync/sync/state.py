"""
Sync state aggregator -- one snapshot of mirror and live tree.

The snapshot combines two repository signals (clean working tree, any
uncommitted change) with a fresh inventory of the live files. Every
step may fail; a failure propagates and no partial state is returned.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Iterable, Optional

from ..errors import SyncIOError
from ..models import FileRecord, SyncPolicy, SyncState
from ..paths import Paths
from ..repository import Repository
from .catalog import iter_catalog_files, resolve_live_path
from .exclude import should_exclude
from .fingerprint import fingerprint
from .secrets import category_for_artifact

logger = logging.getLogger("opencode_sync.sync.state")


def _record(path: Path, rel: str, **flags) -> FileRecord:
    try:
        st = path.stat()
        digest = fingerprint(path)
    except OSError as exc:
        raise SyncIOError(path, "failed to inspect") from exc
    return FileRecord(
        path=path,
        rel_path=rel,
        size=st.st_size,
        mod_time=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
        fingerprint=digest,
        **flags,
    )


def _mirror_files(mirror: Path, patterns: list[str], metadata_dir: str):
    for path in sorted(mirror.rglob("*")):
        rel = PurePosixPath(*path.relative_to(mirror).parts)
        if rel.parts[0] == metadata_dir or not path.is_file():
            continue
        if should_exclude(rel.as_posix(), patterns):
            continue
        yield path, rel.as_posix()


def build_inventory(
    paths: Paths,
    patterns: Iterable[str],
    metadata_dir: str = ".git",
) -> list[FileRecord]:
    """Fingerprint every included live file and compare it with the mirror.

    Live files come first, in catalog order. Mirror files whose live
    counterpart is gone follow, sorted, flagged is_deleted.

    Args:
        paths: Resolved live and mirror locations.
        patterns: Exclusion patterns.
        metadata_dir: Repository metadata directory to leave out.

    Returns:
        One FileRecord per observed file.

    Raises:
        SyncIOError: A file could not be read or hashed.
    """
    patterns = list(patterns)
    mirror = paths.mirror_dir

    records = []
    for src, rel in iter_catalog_files(paths, patterns):
        counterpart = mirror / rel
        record = _record(src, rel)
        if not counterpart.exists():
            record = record.model_copy(update={"is_new": True})
        else:
            try:
                mirrored = fingerprint(counterpart)
            except OSError as exc:
                raise SyncIOError(counterpart, "failed to inspect") from exc
            if mirrored != record.fingerprint:
                record = record.model_copy(update={"is_modified": True})
        records.append(record)

    if mirror.is_dir():
        for path, rel in _mirror_files(mirror, patterns, metadata_dir):
            if category_for_artifact(rel) is not None:
                continue
            live = resolve_live_path(paths, rel)
            if live is not None and not live.exists():
                records.append(_record(path, rel, is_deleted=True))

    return records


class StateAggregator:
    """Builds SyncState snapshots on demand."""

    def __init__(self, paths: Paths, policy: SyncPolicy, repository: Repository):
        self.paths = paths
        self.policy = policy
        self.repository = repository

    def get_state(self, conflict_files: Optional[list[str]] = None) -> SyncState:
        """Snapshot the mirror and the live tree.

        Args:
            conflict_files: Conflicts reported by the last failed pull.
                The aggregator never detects conflicts on its own.
        """
        is_clean = self.repository.is_clean()
        has_local_changes = self.repository.has_changes()
        local_files = build_inventory(
            self.paths,
            self.policy.sync.exclude,
            metadata_dir=self.repository.metadata_dir,
        )
        logger.debug(
            "State: clean=%s changes=%s files=%d",
            is_clean,
            has_local_changes,
            len(local_files),
        )
        return SyncState(
            is_clean=is_clean,
            has_local_changes=has_local_changes,
            local_files=local_files,
            conflict_files=list(conflict_files or []),
        )
