"""Tests for the mirror repository backends."""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import pytest

from opencode_sync.errors import AuthError, ConflictError, RepositoryError
from opencode_sync.models import RepoBackendType, RepoConfig, SyncPolicy
from opencode_sync.repository import (
    GitRepository,
    LocalRepository,
    RepoStatus,
    _looks_like_auth_failure,
    create_repository,
)

needs_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not available")


class TestFactory:
    """create_repository picks the backend from the policy."""

    def test_git_default(self, tmp_path: Path):
        repo = create_repository(SyncPolicy(), tmp_path / "m")
        assert isinstance(repo, GitRepository)
        assert repo.branch == "main"
        assert repo.metadata_dir == ".git"

    def test_git_settings_carried(self, tmp_path: Path):
        policy = SyncPolicy(repo=RepoConfig(branch="trunk", timeout=5))
        repo = create_repository(policy, tmp_path / "m")
        assert repo.branch == "trunk"
        assert repo.timeout == 5

    def test_local(self, tmp_path: Path):
        policy = SyncPolicy(repo=RepoConfig(backend=RepoBackendType.LOCAL))
        repo = create_repository(policy, tmp_path / "m")
        assert isinstance(repo, LocalRepository)
        assert repo.metadata_dir == ".opencode-sync"


class TestRepoStatus:
    """Status model helpers."""

    def test_changed_paths_deduplicated(self):
        status = RepoStatus(modified=["b", "a"], staged=["a"], untracked=["c"])
        assert status.changed_paths == ["a", "b", "c"]

    def test_auth_markers(self):
        assert _looks_like_auth_failure("fatal: Authentication failed for 'https://x'")
        assert _looks_like_auth_failure("git@github.com: Permission denied (publickey).")
        assert not _looks_like_auth_failure("fatal: unable to access: Could not resolve host")


class TestLocalRepository:
    """Plain-directory mirror tracked by a fingerprint index."""

    def test_requires_init(self, tmp_path: Path):
        repo = LocalRepository(tmp_path / "m")
        with pytest.raises(RepositoryError):
            repo.open()
        with pytest.raises(RepositoryError):
            repo.status()

    def test_status_and_commit(self, tmp_path: Path):
        repo = LocalRepository(tmp_path / "m")
        repo.init()
        assert repo.is_clean()

        (repo.path / "a.json").write_text("{}")
        assert repo.status().untracked == ["a.json"]
        assert repo.has_changes()

        repo.add_all()
        repo.commit("first")
        assert repo.is_clean()

        (repo.path / "a.json").write_text('{"x": 1}')
        assert repo.status().modified == ["a.json"]

        (repo.path / "a.json").unlink()
        assert repo.status().modified == ["a.json"]

    def test_metadata_not_tracked(self, tmp_path: Path):
        repo = LocalRepository(tmp_path / "m")
        repo.init()
        repo.add_all()
        repo.commit("empty")
        assert repo.status().changed_paths == []

    def test_push_and_pull_through_remote_dir(self, tmp_path: Path):
        remote = tmp_path / "usb"
        a = LocalRepository(tmp_path / "a")
        a.init()
        a.add_remote("origin", str(remote))
        (a.path / "AGENTS.md").write_text("# Rules\n")
        a.add_all()
        a.commit("a")
        a.push()
        assert (remote / "AGENTS.md").read_text() == "# Rules\n"
        assert not (remote / ".opencode-sync").exists()

        b = LocalRepository(tmp_path / "b")
        b.init()
        b.add_remote("origin", f"file://{remote}")
        b.pull()
        assert (b.path / "AGENTS.md").read_text() == "# Rules\n"
        assert b.is_clean()

    def test_push_without_remote_is_noop(self, tmp_path: Path):
        repo = LocalRepository(tmp_path / "m")
        repo.init()
        repo.push()
        repo.pull()
        repo.fetch()

    def test_remote_management(self, tmp_path: Path):
        repo = LocalRepository(tmp_path / "m")
        repo.init()
        with pytest.raises(RepositoryError):
            repo.set_remote_url("origin", "/x")
        repo.add_remote("origin", "/x")
        with pytest.raises(RepositoryError):
            repo.add_remote("origin", "/y")
        repo.set_remote_url("origin", "/y")
        assert repo.get_remote_url() == "/y"

    def test_clone(self, tmp_path: Path):
        source = tmp_path / "src"
        (source / "agent").mkdir(parents=True)
        (source / "agent" / "a.md").write_text("a")
        repo = LocalRepository(tmp_path / "m")
        repo.clone(str(source))
        assert (repo.path / "agent" / "a.md").read_text() == "a"
        assert repo.is_clean()
        assert repo.get_remote_url() == str(source)

    def test_clone_missing_source(self, tmp_path: Path):
        with pytest.raises(RepositoryError):
            LocalRepository(tmp_path / "m").clone(str(tmp_path / "nope"))

    def test_corrupt_index(self, tmp_path: Path):
        repo = LocalRepository(tmp_path / "m")
        repo.init()
        (repo.path / ".opencode-sync" / "index.json").write_text("{not json")
        with pytest.raises(RepositoryError, match="corrupt index"):
            repo.status()


def _bare_remote(path: Path) -> str:
    subprocess.run(["git", "init", "--bare", str(path)], check=True, capture_output=True)
    subprocess.run(
        ["git", "symbolic-ref", "HEAD", "refs/heads/main"],
        cwd=str(path),
        check=True,
        capture_output=True,
    )
    return str(path)


def _git_clone(remote: str, path: Path) -> GitRepository:
    repo = GitRepository(path)
    repo.clone(remote)
    return repo


@needs_git
class TestGitRepository:
    """Git backend against a local bare remote."""

    def test_init_status_commit(self, tmp_path: Path):
        repo = GitRepository(tmp_path / "m")
        repo.init()
        assert repo.exists()
        assert repo.get_branch() == "main"
        assert repo.is_clean()

        (repo.path / "opencode.json").write_text("{}")
        assert repo.status().untracked == ["opencode.json"]
        assert repo.has_changes()

        repo.add_all()
        assert repo.status().staged == ["opencode.json"]
        repo.commit("Initial sync")
        assert repo.is_clean()
        assert not repo.has_changes()

    def test_open_missing(self, tmp_path: Path):
        with pytest.raises(RepositoryError):
            GitRepository(tmp_path / "nothing").open()

    def test_requires_open(self, tmp_path: Path):
        with pytest.raises(RepositoryError, match="not initialized"):
            GitRepository(tmp_path / "m").status()

    def test_remote_urls(self, tmp_path: Path):
        repo = GitRepository(tmp_path / "m")
        repo.init()
        repo.add_remote("origin", "https://example.invalid/a.git")
        repo.set_remote_url("origin", "https://example.invalid/b.git")
        assert repo.get_remote_url() == "https://example.invalid/b.git"

    def test_push_clone_pull(self, tmp_path: Path):
        remote = _bare_remote(tmp_path / "remote.git")
        a = GitRepository(tmp_path / "a")
        a.init()
        a.add_remote("origin", remote)
        (a.path / "AGENTS.md").write_text("# Rules\n")
        a.add_all()
        a.commit("first")
        a.push()

        b = _git_clone(remote, tmp_path / "b")
        assert (b.path / "AGENTS.md").read_text() == "# Rules\n"

        (a.path / "AGENTS.md").write_text("# Rules v2\n")
        a.add_all()
        a.commit("second")
        a.push()

        b.pull()
        assert (b.path / "AGENTS.md").read_text() == "# Rules v2\n"

    def test_pull_before_first_push_is_noop(self, tmp_path: Path):
        remote = _bare_remote(tmp_path / "remote.git")
        repo = GitRepository(tmp_path / "m")
        repo.init()
        repo.add_remote("origin", remote)
        repo.pull()

    def test_conflict(self, tmp_path: Path):
        remote = _bare_remote(tmp_path / "remote.git")
        a = GitRepository(tmp_path / "a")
        a.init()
        a.add_remote("origin", remote)
        (a.path / "opencode.json").write_text('{"v": 0}\n')
        a.add_all()
        a.commit("base")
        a.push()

        b = _git_clone(remote, tmp_path / "b")

        (a.path / "opencode.json").write_text('{"v": "a"}\n')
        a.add_all()
        a.commit("from a")
        a.push()

        (b.path / "opencode.json").write_text('{"v": "b"}\n')
        b.add_all()
        b.commit("from b")
        with pytest.raises(ConflictError) as exc_info:
            b.pull()
        assert exc_info.value.files == ["opencode.json"]

        status = b.status()
        assert status.merging
        assert status.conflicted == ["opencode.json"]
        assert not b.is_clean()

    def test_push_to_missing_remote(self, tmp_path: Path):
        repo = GitRepository(tmp_path / "m", timeout=30)
        repo.init()
        repo.add_remote("origin", str(tmp_path / "does-not-exist.git"))
        (repo.path / "a").write_text("a")
        repo.add_all()
        repo.commit("a")
        with pytest.raises(RepositoryError) as exc_info:
            repo.push()
        assert not isinstance(exc_info.value, AuthError)

    def test_diff(self, tmp_path: Path):
        repo = GitRepository(tmp_path / "m")
        repo.init()
        (repo.path / "a.md").write_text("a")
        assert "a.md" in repo.diff()
