"""Shared test fixtures for opencode-sync."""

from __future__ import annotations

from pathlib import Path

import pytest

from opencode_sync.models import ExternalDir, SyncPolicy
from opencode_sync.paths import CLAUDE_SKILLS_MIRROR_NAME, Paths


@pytest.fixture
def sync_paths(tmp_path: Path) -> Paths:
    """Paths rooted in a temporary directory, nothing created yet."""
    return Paths(
        config_dir=tmp_path / "sync-config",
        data_dir=tmp_path / "sync-data",
        opencode_config_dir=tmp_path / "opencode-config",
        opencode_data_dir=tmp_path / "opencode-data",
        external_dirs=(
            ExternalDir(
                path=tmp_path / "home" / ".claude" / "skills",
                mirror_name=CLAUDE_SKILLS_MIRROR_NAME,
            ),
        ),
    )


@pytest.fixture
def live_tree(sync_paths: Paths) -> Paths:
    """A populated live OpenCode tree, including credential files."""
    cfg = sync_paths.opencode_config_dir
    for d in ("agent", "command", "plugin/node_modules/left-pad"):
        (cfg / d).mkdir(parents=True)

    (cfg / "opencode.json").write_text('{"model": "anthropic/claude"}\n')
    (cfg / "AGENTS.md").write_text("# Rules\n")
    (cfg / "agent" / "reviewer.md").write_text("Review carefully.\n")
    (cfg / "command" / "deploy.md").write_text("Deploy it.\n")
    (cfg / "plugin" / "notify.ts").write_text("export default {}\n")
    (cfg / "plugin" / "debug.log").write_text("noise\n")
    (cfg / "plugin" / "node_modules" / "left-pad" / "index.js").write_text("//\n")

    skills = sync_paths.external_dirs[0].path
    (skills / "writing").mkdir(parents=True)
    (skills / "writing" / "SKILL.md").write_text("---\nname: writing\n---\n")

    sync_paths.opencode_data_dir.mkdir(parents=True)
    sync_paths.auth_file.write_text('{"anthropic": {"key": "sk-secret"}}\n')
    sync_paths.mcp_auth_file.write_text('{"github": {"token": "ghp-secret"}}\n')

    return sync_paths


@pytest.fixture
def policy() -> SyncPolicy:
    """Default policy: no encryption, no credential sync."""
    return SyncPolicy()


@pytest.fixture
def isolated_env(tmp_path: Path, monkeypatch) -> Path:
    """Point HOME, XDG dirs and OPENCODE_SYNC_HOME into tmp_path."""
    home = tmp_path / "home"
    home.mkdir(exist_ok=True)
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(home / ".local" / "share"))
    monkeypatch.setenv("OPENCODE_SYNC_HOME", str(tmp_path / "opencode-sync"))
    return home
