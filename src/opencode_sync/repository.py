"""
Mirror repositories -- the version-control side of a sync.

The engine never speaks a VCS protocol itself. It asks a Repository for
a narrow set of operations (status, stage, commit, push, pull) and
reacts to two distinguished failures: ConflictError and AuthError.

Git: drives the git executable, one subprocess per operation.
Local: a plain directory for file-level transports (Syncthing, USB, NAS),
       tracked by a fingerprint index instead of a VCS.
"""

from __future__ import annotations

import json
import logging
import os
import shutil
import subprocess
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from .errors import AuthError, ConflictError, RepositoryError
from .models import RepoBackendType, SyncPolicy

logger = logging.getLogger("opencode_sync.repository")

DEFAULT_REMOTE = "origin"
COMMIT_AUTHOR_NAME = "opencode-sync"
COMMIT_AUTHOR_EMAIL = "opencode-sync@local"

AUTH_MARKERS = (
    "authentication failed",
    "permission denied",
    "could not read username",
    "could not read password",
    "invalid username or password",
    "access denied",
    "returned error: 401",
    "returned error: 403",
    "terminal prompts disabled",
)

CONFLICT_CODES = {"DD", "AU", "UD", "UA", "DU", "AA", "UU"}


class RepoStatus(BaseModel):
    """Working-tree status of a mirror repository."""

    branch: str = ""
    is_clean: bool = True
    detached: bool = False
    merging: bool = False
    untracked: list[str] = Field(default_factory=list)
    modified: list[str] = Field(default_factory=list)
    staged: list[str] = Field(default_factory=list)
    conflicted: list[str] = Field(default_factory=list)

    @property
    def changed_paths(self) -> list[str]:
        """Every path with an uncommitted change, sorted."""
        return sorted(
            set(self.untracked + self.modified + self.staged + self.conflicted)
        )


class Repository(ABC):
    """Capability interface the sync engine needs from version control."""

    def __init__(self, path: Path):
        self.path = Path(path)

    @property
    @abstractmethod
    def metadata_dir(self) -> str:
        """Name of the top-level directory the mirror walk must skip."""

    @abstractmethod
    def clone(self, url: str) -> None:
        """Create the working copy from a remote."""

    @abstractmethod
    def init(self) -> None:
        """Create an empty working copy."""

    @abstractmethod
    def open(self) -> None:
        """Attach to an existing working copy."""

    @abstractmethod
    def add_remote(self, name: str, url: str) -> None:
        """Register a remote."""

    @abstractmethod
    def set_remote_url(self, name: str, url: str) -> None:
        """Point an existing remote at a new URL."""

    @abstractmethod
    def get_remote_url(self, name: str = DEFAULT_REMOTE) -> str:
        """Return the URL of a remote."""

    @abstractmethod
    def status(self) -> RepoStatus:
        """Return the working-tree status."""

    @abstractmethod
    def add_all(self) -> None:
        """Stage every change."""

    @abstractmethod
    def commit(self, message: str) -> None:
        """Record staged changes."""

    @abstractmethod
    def push(self) -> None:
        """Publish commits to the remote."""

    @abstractmethod
    def force_push(self) -> None:
        """Publish commits, replacing whatever the remote holds."""

    @abstractmethod
    def pull(self) -> None:
        """Bring remote commits into the working copy.

        Raises:
            ConflictError: The merge stopped on conflicting files.
            AuthError: The remote refused our credentials.
        """

    @abstractmethod
    def fetch(self) -> None:
        """Download remote state without touching the working copy."""

    @abstractmethod
    def get_branch(self) -> str:
        """Return the current branch name."""

    @abstractmethod
    def diff(self) -> str:
        """Human-readable summary of uncommitted changes."""

    def exists(self) -> bool:
        """Whether a working copy is already present at self.path."""
        return (self.path / self.metadata_dir).exists()

    def has_changes(self) -> bool:
        """Whether there are uncommitted changes of any kind."""
        return bool(self.status().changed_paths)

    def is_clean(self) -> bool:
        """Whether the working copy is clean and safe to sync from."""
        return self.status().is_clean


def _looks_like_auth_failure(stderr: str) -> bool:
    lowered = stderr.lower()
    return any(marker in lowered for marker in AUTH_MARKERS)


class GitRepository(Repository):
    """Mirror backed by a git working copy, driven through the git CLI."""

    def __init__(self, path: Path, branch: str = "main", timeout: int = 120):
        super().__init__(path)
        self.branch = branch
        self.timeout = timeout
        self._opened = False

    @property
    def metadata_dir(self) -> str:
        return ".git"

    def _run(
        self,
        args: list[str],
        network: bool = False,
        cwd: Optional[Path] = None,
    ) -> subprocess.CompletedProcess:
        cmd = ["git", *args]
        env = os.environ.copy()
        env["GIT_TERMINAL_PROMPT"] = "0"
        try:
            return subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                check=False,
                cwd=str(cwd or self.path),
                env=env,
                timeout=self.timeout if network else None,
            )
        except FileNotFoundError as exc:
            raise RepositoryError("git executable not found on PATH", cmd) from exc
        except subprocess.TimeoutExpired as exc:
            raise RepositoryError(
                f"git {args[0]} timed out after {self.timeout}s", cmd
            ) from exc

    def _check(self, args: list[str], network: bool = False) -> str:
        result = self._run(args, network=network)
        if result.returncode != 0:
            if network and _looks_like_auth_failure(result.stderr):
                raise AuthError(DEFAULT_REMOTE, result.stderr)
            raise RepositoryError(
                f"git {' '.join(args)} failed: {result.stderr.strip()}",
                ["git", *args],
                result.stderr,
            )
        return result.stdout

    def _require_open(self) -> None:
        if not self._opened:
            raise RepositoryError(f"repository not initialized at {self.path}")

    def clone(self, url: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        result = self._run(
            ["clone", url, str(self.path)], network=True, cwd=self.path.parent
        )
        if result.returncode != 0:
            if _looks_like_auth_failure(result.stderr):
                raise AuthError(DEFAULT_REMOTE, result.stderr)
            raise RepositoryError(
                f"failed to clone {url}: {result.stderr.strip()}",
                ["git", "clone", url],
                result.stderr,
            )
        self._opened = True
        logger.info("Cloned %s into %s", url, self.path)

    def init(self) -> None:
        self.path.mkdir(parents=True, exist_ok=True)
        self._check(["init"])
        self._check(["symbolic-ref", "HEAD", f"refs/heads/{self.branch}"])
        self._opened = True
        logger.info("Initialized git repository at %s", self.path)

    def open(self) -> None:
        if not (self.path / ".git").exists():
            raise RepositoryError(f"no git repository at {self.path}")
        self._check(["rev-parse", "--git-dir"])
        self._opened = True

    def add_remote(self, name: str, url: str) -> None:
        self._require_open()
        self._check(["remote", "add", name, url])

    def set_remote_url(self, name: str, url: str) -> None:
        self._require_open()
        self._check(["remote", "set-url", name, url])

    def get_remote_url(self, name: str = DEFAULT_REMOTE) -> str:
        self._require_open()
        return self._check(["remote", "get-url", name]).strip()

    def status(self) -> RepoStatus:
        self._require_open()
        out = self._check(
            ["status", "--porcelain=v1", "-z", "--untracked-files=all"]
        )
        status = RepoStatus()

        entries = out.split("\0")
        i = 0
        while i < len(entries):
            entry = entries[i]
            i += 1
            if len(entry) < 4:
                continue
            code, path = entry[:2], entry[3:]
            if code[0] in "RC":
                # rename/copy entries carry the original path as the next field
                i += 1
            if code == "??":
                status.untracked.append(path)
            elif code in CONFLICT_CODES:
                status.conflicted.append(path)
            else:
                if code[1] in "MD":
                    status.modified.append(path)
                if code[0] not in " ?":
                    status.staged.append(path)

        branch = self._run(["symbolic-ref", "--short", "-q", "HEAD"])
        status.detached = branch.returncode != 0
        status.branch = "HEAD" if status.detached else branch.stdout.strip()
        status.merging = (
            self._run(["rev-parse", "-q", "--verify", "MERGE_HEAD"]).returncode == 0
        )
        status.is_clean = (
            not status.changed_paths and not status.detached and not status.merging
        )
        return status

    def add_all(self) -> None:
        self._require_open()
        self._check(["add", "-A"])

    def _identity_args(self) -> list[str]:
        args: list[str] = []
        if not self._run(["config", "user.name"]).stdout.strip():
            args += ["-c", f"user.name={COMMIT_AUTHOR_NAME}"]
        if not self._run(["config", "user.email"]).stdout.strip():
            args += ["-c", f"user.email={COMMIT_AUTHOR_EMAIL}"]
        return args

    def commit(self, message: str) -> None:
        self._require_open()
        self._check([*self._identity_args(), "commit", "-m", message])
        logger.info("Committed: %s", message)

    def push(self) -> None:
        self._require_open()
        self._check(["push", "-u", DEFAULT_REMOTE, "HEAD"], network=True)
        logger.info("Pushed to %s", DEFAULT_REMOTE)

    def force_push(self) -> None:
        self._require_open()
        self._check(["push", "--force", "-u", DEFAULT_REMOTE, "HEAD"], network=True)
        logger.info("Force-pushed to %s", DEFAULT_REMOTE)

    def pull(self) -> None:
        self._require_open()
        args = ["pull", "--no-rebase", "--no-edit", DEFAULT_REMOTE, self.branch]
        result = self._run(args, network=True)
        if result.returncode == 0:
            logger.info("Pulled from %s/%s", DEFAULT_REMOTE, self.branch)
            return

        if "couldn't find remote ref" in result.stderr.lower():
            logger.info(
                "Remote branch %s does not exist yet, nothing to pull", self.branch
            )
            return

        unmerged = self._run(["diff", "--name-only", "--diff-filter=U"])
        files = [line for line in unmerged.stdout.splitlines() if line.strip()]
        if files:
            raise ConflictError(files, result.stderr)
        if _looks_like_auth_failure(result.stderr):
            raise AuthError(DEFAULT_REMOTE, result.stderr)
        raise RepositoryError(
            f"git pull failed: {result.stderr.strip()}",
            ["git", *args],
            result.stderr,
        )

    def fetch(self) -> None:
        self._require_open()
        self._check(["fetch", DEFAULT_REMOTE], network=True)

    def get_branch(self) -> str:
        self._require_open()
        return self.status().branch

    def diff(self) -> str:
        self._require_open()
        summary = self._check(["status", "--short", "--untracked-files=all"])
        patch = self._check(["diff"])
        return (summary + ("\n" + patch if patch else "")).strip()


class LocalRepository(Repository):
    """Mirror kept as a plain directory, tracked by a fingerprint index.

    Useful when the mirror itself is moved by another tool (a Syncthing
    folder) or copied to removable media. With an 'origin' remote that
    points to a directory, push copies the working copy there and pull
    copies it back. Pull overwrites; there is no merge.
    """

    INDEX_NAME = "index.json"

    def __init__(self, path: Path):
        super().__init__(path)
        self._opened = False
        self._staged: Optional[dict[str, str]] = None

    @property
    def metadata_dir(self) -> str:
        return ".opencode-sync"

    @property
    def _index_file(self) -> Path:
        return self.path / self.metadata_dir / self.INDEX_NAME

    def _load_index(self) -> dict:
        if not self._index_file.exists():
            return {"files": {}, "remotes": {}}
        try:
            return json.loads(self._index_file.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise RepositoryError(f"corrupt index {self._index_file}: {exc}") from exc

    def _save_index(self, index: dict) -> None:
        self._index_file.parent.mkdir(parents=True, exist_ok=True)
        self._index_file.write_text(
            json.dumps(index, indent=2, sort_keys=True), encoding="utf-8"
        )

    def _snapshot(self, root: Optional[Path] = None) -> dict[str, str]:
        from .sync.fingerprint import fingerprint

        root = root or self.path
        files: dict[str, str] = {}
        for dirpath, dirnames, filenames in os.walk(root):
            if Path(dirpath) == root:
                dirnames[:] = [d for d in dirnames if d != self.metadata_dir]
            dirnames.sort()
            for name in sorted(filenames):
                full = Path(dirpath) / name
                files[full.relative_to(root).as_posix()] = fingerprint(full)
        return files

    def _require_open(self) -> None:
        if not self._opened:
            raise RepositoryError(f"repository not initialized at {self.path}")

    def _remote_dir(self) -> Optional[Path]:
        url = self._load_index().get("remotes", {}).get(DEFAULT_REMOTE)
        if not url:
            return None
        return Path(url.removeprefix("file://")).expanduser()

    def _copy_tree(self, src: Path, dst: Path) -> None:
        dst.mkdir(parents=True, exist_ok=True)
        for dirpath, dirnames, filenames in os.walk(src):
            if Path(dirpath) == src:
                dirnames[:] = [d for d in dirnames if d != self.metadata_dir]
            for name in filenames:
                source = Path(dirpath) / name
                target = dst / source.relative_to(src)
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(source, target)

    def clone(self, url: str) -> None:
        source = Path(url.removeprefix("file://")).expanduser()
        if not source.is_dir():
            raise RepositoryError(f"clone source is not a directory: {source}")
        self._copy_tree(source, self.path)
        self._opened = True
        self._save_index({"files": self._snapshot(), "remotes": {DEFAULT_REMOTE: url}})
        logger.info("Copied %s into %s", source, self.path)

    def init(self) -> None:
        (self.path / self.metadata_dir).mkdir(parents=True, exist_ok=True)
        if not self._index_file.exists():
            self._save_index({"files": {}, "remotes": {}})
        self._opened = True

    def open(self) -> None:
        if not (self.path / self.metadata_dir).is_dir():
            raise RepositoryError(f"no local mirror at {self.path}")
        self._opened = True

    def add_remote(self, name: str, url: str) -> None:
        self._require_open()
        index = self._load_index()
        remotes = index.setdefault("remotes", {})
        if name in remotes:
            raise RepositoryError(f"remote {name} already exists")
        remotes[name] = url
        self._save_index(index)

    def set_remote_url(self, name: str, url: str) -> None:
        self._require_open()
        index = self._load_index()
        remotes = index.setdefault("remotes", {})
        if name not in remotes:
            raise RepositoryError(f"no such remote: {name}")
        remotes[name] = url
        self._save_index(index)

    def get_remote_url(self, name: str = DEFAULT_REMOTE) -> str:
        self._require_open()
        url = self._load_index().get("remotes", {}).get(name)
        if not url:
            raise RepositoryError(f"no such remote: {name}")
        return url

    def status(self) -> RepoStatus:
        self._require_open()
        committed = self._load_index().get("files", {})
        current = self._snapshot()
        status = RepoStatus(branch=self.get_branch())
        for rel, digest in current.items():
            if rel not in committed:
                status.untracked.append(rel)
            elif committed[rel] != digest:
                status.modified.append(rel)
        status.modified.extend(sorted(set(committed) - set(current)))
        status.is_clean = not status.changed_paths
        return status

    def add_all(self) -> None:
        self._require_open()
        self._staged = self._snapshot()

    def commit(self, message: str) -> None:
        self._require_open()
        index = self._load_index()
        index["files"] = self._staged if self._staged is not None else self._snapshot()
        self._staged = None
        self._save_index(index)
        logger.info("Recorded local snapshot: %s", message)

    def push(self) -> None:
        self._require_open()
        remote = self._remote_dir()
        if remote is None:
            logger.debug("No remote directory configured, push is a no-op")
            return
        try:
            self._copy_tree(self.path, remote)
        except OSError as exc:
            raise RepositoryError(f"failed to push to {remote}: {exc}") from exc
        logger.info("Copied mirror to %s", remote)

    def force_push(self) -> None:
        self._require_open()
        remote = self._remote_dir()
        if remote is not None and remote.exists():
            shutil.rmtree(remote)
        self.push()

    def pull(self) -> None:
        self._require_open()
        remote = self._remote_dir()
        if remote is None:
            logger.debug("No remote directory configured, pull is a no-op")
            return
        if not remote.is_dir():
            raise RepositoryError(f"remote directory not found: {remote}")
        try:
            self._copy_tree(remote, self.path)
        except OSError as exc:
            raise RepositoryError(f"failed to pull from {remote}: {exc}") from exc
        index = self._load_index()
        index["files"] = self._snapshot()
        self._save_index(index)
        logger.info("Copied %s into mirror", remote)

    def fetch(self) -> None:
        self._require_open()
        remote = self._remote_dir()
        if remote is not None and not remote.is_dir():
            raise RepositoryError(f"remote directory not found: {remote}")

    def get_branch(self) -> str:
        return "local"

    def diff(self) -> str:
        status = self.status()
        lines = [f"?? {p}" for p in status.untracked]
        lines += [f" M {p}" for p in status.modified]
        return "\n".join(lines)


def create_repository(policy: SyncPolicy, path: Path) -> Repository:
    """Factory function to create the repository backend the policy names.

    Args:
        policy: Sync policy (repo.backend, repo.branch, repo.timeout).
        path: Mirror directory.

    Returns:
        An unopened Repository.

    Raises:
        ValueError: If the backend type is not supported.
    """
    backend = policy.repo.backend
    if backend == RepoBackendType.GIT:
        return GitRepository(
            path, branch=policy.repo.branch, timeout=policy.repo.timeout
        )
    if backend == RepoBackendType.LOCAL:
        return LocalRepository(path)
    raise ValueError(f"Unsupported repository backend: {backend}")
