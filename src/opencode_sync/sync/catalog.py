"""
Path catalog -- which parts of the live tree are candidates for sync.

Entries are listed in a fixed order. Paths inside the OpenCode config
dir keep their relative name in the mirror; external directories (the
shared Claude skills dir, for one) are remapped to an explicit name.
"""

from __future__ import annotations

import os
from pathlib import Path, PurePosixPath
from typing import Iterable, Iterator, NamedTuple, Optional

from ..errors import SyncIOError
from ..paths import Paths
from .exclude import should_exclude

CATALOG_ENTRIES = (
    "opencode.json",
    "opencode.jsonc",
    "AGENTS.md",
    "agent",
    "command",
    "skill",
    "mode",
    "themes",
    "plugin",
)


class SyncRoot(NamedTuple):
    """One catalog entry.

    Attributes:
        source: Real path in the live tree.
        mirror_name: Relative name inside the mirror (posix separators).
        remapped: True for directories outside the config tree.
    """

    source: Path
    mirror_name: str
    remapped: bool


def list_sync_roots(paths: Paths) -> list[SyncRoot]:
    """Enumerate every catalog entry, existing or not.

    Callers skip entries whose source does not exist; absence is not an
    error.
    """
    roots = [
        SyncRoot(paths.opencode_config_dir / name, name, False)
        for name in CATALOG_ENTRIES
    ]
    roots.extend(
        SyncRoot(Path(d.path), d.mirror_name, True) for d in paths.external_dirs
    )
    return roots


def existing_sync_roots(paths: Paths) -> list[SyncRoot]:
    """Catalog entries whose source exists on disk."""
    return [root for root in list_sync_roots(paths) if root.source.exists()]


def resolve_live_path(paths: Paths, mirror_rel: str) -> Optional[Path]:
    """Map a mirror-relative path back to its place in the live tree.

    Paths under a remapped root go to that root's real directory with the
    mirror name stripped; everything else lands under the OpenCode config
    dir. The bare remapped name itself maps to nothing.
    """
    rel = PurePosixPath(mirror_rel)
    for root in list_sync_roots(paths):
        if not root.remapped:
            continue
        if rel.parts and rel.parts[0] == root.mirror_name:
            remainder = rel.parts[1:]
            if not remainder:
                return None
            return root.source.joinpath(*remainder)
    return paths.opencode_config_dir.joinpath(*rel.parts)


def _walk_error(exc: OSError) -> None:
    raise SyncIOError(exc.filename or "", "cannot list directory") from exc


def walk_root(root: SyncRoot, patterns: Iterable[str]) -> Iterator[tuple[Path, str]]:
    """Yield (source file, mirror-relative name) for one root, sorted.

    Excluded directories are pruned so nothing below them is visited.
    """
    patterns = list(patterns)
    if should_exclude(root.mirror_name, patterns):
        return
    if root.source.is_file():
        yield root.source, root.mirror_name
        return

    for dirpath, dirnames, filenames in os.walk(root.source, onerror=_walk_error):
        rel_dir = Path(dirpath).relative_to(root.source)
        prefix = PurePosixPath(root.mirror_name, *rel_dir.parts)
        dirnames[:] = sorted(
            d for d in dirnames if not should_exclude((prefix / d).as_posix(), patterns)
        )
        for name in sorted(filenames):
            rel = (prefix / name).as_posix()
            if should_exclude(rel, patterns):
                continue
            yield Path(dirpath) / name, rel


def iter_catalog_files(
    paths: Paths, patterns: Iterable[str]
) -> Iterator[tuple[Path, str]]:
    """Every included file of every existing root, in catalog order."""
    patterns = list(patterns)
    for root in existing_sync_roots(paths):
        yield from walk_root(root, patterns)
