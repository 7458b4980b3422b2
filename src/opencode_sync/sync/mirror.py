"""
Mirror copy engine -- moves files between the live tree and the mirror.

Both directions are whole-file overwrites and are safe to re-run. A
failure on any one file aborts the run with a SyncIOError naming that
file. Files copied earlier in the same run stay where they are: the
copy is at-least-once, not atomic, and the next successful run repairs
whatever a failed one left behind.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
from pathlib import Path, PurePosixPath

from ..errors import SyncIOError
from ..models import SyncPolicy
from ..paths import Paths
from .catalog import iter_catalog_files, resolve_live_path
from .exclude import should_exclude
from .secrets import SecretChannel, category_for_artifact

logger = logging.getLogger("opencode_sync.sync.mirror")

DIR_MODE = 0o755


def _make_dir(path: Path) -> None:
    try:
        path.mkdir(parents=True, exist_ok=True, mode=DIR_MODE)
    except OSError as exc:
        raise SyncIOError(path, "failed to create directory") from exc


def copy_file(src: Path, dst: Path) -> None:
    """Overwrite dst with src, carrying over the permission bits.

    A read-only destination is made owner-writable first so that a file
    exported with mode 0o444 can still be refreshed on the next run.

    Raises:
        SyncIOError: Naming the file that could not be read or written.
    """
    _make_dir(dst.parent)
    try:
        if dst.exists() and not os.access(dst, os.W_OK):
            dst.chmod(stat.S_IMODE(dst.stat().st_mode) | stat.S_IWUSR)
        shutil.copyfile(src, dst)
        shutil.copymode(src, dst)
    except OSError as exc:
        failed = Path(exc.filename) if exc.filename else src
        raise SyncIOError(failed, "failed to copy") from exc


class MirrorCopier:
    """Exports the live tree into the mirror and imports it back.

    Args:
        paths: Resolved live and mirror locations.
        policy: Exclusion patterns and sensitive category flags.
        secrets: Channel that handles the encrypted credential artifacts.
        metadata_dir: Name of the repository's metadata directory at the
            top of the mirror; never walked on import.
    """

    def __init__(
        self,
        paths: Paths,
        policy: SyncPolicy,
        secrets: SecretChannel,
        metadata_dir: str = ".git",
    ):
        self.paths = paths
        self.policy = policy
        self.secrets = secrets
        self.metadata_dir = metadata_dir

    @property
    def exclude(self) -> list[str]:
        return self.policy.sync.exclude

    def export_to_mirror(self) -> list[str]:
        """Copy every included live file into the mirror.

        Credential files go through the secret channel instead of a plain
        copy. If a sensitive category is enabled without an encryption
        provider, nothing at all is written.

        Returns:
            Mirror-relative names of the plain files copied.

        Raises:
            NotConfiguredError: Encryption is required but missing.
            SyncIOError: A file could not be copied.
        """
        self.secrets.check_export_ready()

        mirror = self.paths.mirror_dir
        _make_dir(mirror)

        copied = []
        for src, rel in iter_catalog_files(self.paths, self.exclude):
            copy_file(src, mirror / rel)
            logger.debug("Exported %s", rel)
            copied.append(rel)

        artifacts = self.secrets.export_secrets(mirror)
        logger.info(
            "Exported %d file(s) and %d encrypted artifact(s) to %s",
            len(copied),
            len(artifacts),
            mirror,
        )
        return copied

    def import_from_mirror(self) -> list[str]:
        """Copy every mirror file back to its place in the live tree.

        The repository metadata directory and excluded paths are skipped.
        Encrypted artifacts are decrypted when their category is enabled
        and skipped entirely when it is not.

        Returns:
            Mirror-relative names of the files written to the live tree.

        Raises:
            NotConfiguredError: An enabled artifact was found but decryption
                is not configured.
            EncryptionError: An artifact does not decrypt with our key.
            SyncIOError: A file could not be copied.
        """
        mirror = self.paths.mirror_dir
        if not mirror.is_dir():
            raise SyncIOError(mirror, "mirror directory does not exist")

        imported = []
        for src, rel in self._walk_mirror(mirror):
            category = category_for_artifact(rel)
            if category is not None:
                if self.secrets.import_artifact(category, src) is not None:
                    imported.append(rel)
                continue

            dst = resolve_live_path(self.paths, rel)
            if dst is None:
                continue
            copy_file(src, dst)
            logger.debug("Imported %s -> %s", rel, dst)
            imported.append(rel)

        logger.info("Imported %d file(s) from %s", len(imported), mirror)
        return imported

    def _walk_mirror(self, mirror: Path):
        def on_error(exc: OSError) -> None:
            raise SyncIOError(exc.filename or mirror, "cannot list directory") from exc

        for dirpath, dirnames, filenames in os.walk(mirror, onerror=on_error):
            rel_dir = PurePosixPath(*Path(dirpath).relative_to(mirror).parts)
            at_top = not rel_dir.parts
            dirnames[:] = sorted(
                d
                for d in dirnames
                if not (at_top and d == self.metadata_dir)
                and not should_exclude((rel_dir / d).as_posix(), self.exclude)
            )
            for name in sorted(filenames):
                rel = (rel_dir / name).as_posix()
                if should_exclude(rel, self.exclude):
                    continue
                yield Path(dirpath) / name, rel
