"""Tests for the YAML config store."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from opencode_sync.config import (
    default_policy,
    load_config,
    save_config,
    set_config_value,
)
from opencode_sync.errors import ConfigError, PolicyViolationError
from opencode_sync.models import DEFAULT_EXCLUDES, RepoBackendType
from opencode_sync.paths import Paths


class TestLoadSave:
    """Round trip through config.yaml."""

    def test_missing_file_returns_none(self, tmp_path: Path):
        assert load_config(tmp_path / "config.yaml") is None

    def test_defaults(self, sync_paths: Paths):
        policy = default_policy(sync_paths)
        assert policy.repo.branch == "main"
        assert policy.repo.backend == RepoBackendType.GIT
        assert not policy.encryption.enabled
        assert policy.encryption.key_file == sync_paths.key_file
        assert not policy.sync.include_auth
        assert not policy.sync.include_mcp_auth
        assert policy.sync.exclude == DEFAULT_EXCLUDES

    def test_round_trip(self, sync_paths: Paths):
        policy = default_policy(sync_paths)
        policy.repo.url = "git@example.invalid:me/opencode-config.git"
        save_config(policy, sync_paths.config_file)

        loaded = load_config(sync_paths.config_file)
        assert loaded == policy

    def test_written_as_plain_yaml(self, sync_paths: Paths):
        save_config(default_policy(sync_paths), sync_paths.config_file)
        data = yaml.safe_load(sync_paths.config_file.read_text())
        assert data["repo"]["backend"] == "git"
        assert data["sync"]["exclude"] == DEFAULT_EXCLUDES

    def test_partial_file_fills_defaults(self, tmp_path: Path):
        f = tmp_path / "config.yaml"
        f.write_text("repo:\n  url: https://example.invalid/c.git\n")
        policy = load_config(f)
        assert policy.repo.url == "https://example.invalid/c.git"
        assert policy.repo.branch == "main"

    def test_empty_file(self, tmp_path: Path):
        f = tmp_path / "config.yaml"
        f.write_text("")
        assert load_config(f).repo.url == ""

    @pytest.mark.parametrize(
        "content",
        ["repo: [unclosed", "- just\n- a list\n", "repo:\n  timeout: -1\n"],
    )
    def test_invalid(self, tmp_path: Path, content: str):
        f = tmp_path / "config.yaml"
        f.write_text(content)
        with pytest.raises(ConfigError):
            load_config(f)


class TestSetConfigValue:
    """Dotted-key updates."""

    def test_string(self, sync_paths: Paths):
        policy = set_config_value(default_policy(sync_paths), "repo.url", "https://x/y.git")
        assert policy.repo.url == "https://x/y.git"

    @pytest.mark.parametrize("raw,expected", [("yes", True), ("ON", True), ("0", False), ("false", False)])
    def test_bool(self, sync_paths: Paths, raw: str, expected: bool):
        policy = set_config_value(default_policy(sync_paths), "encryption.enabled", raw)
        assert policy.encryption.enabled is expected

    def test_bad_bool(self, sync_paths: Paths):
        with pytest.raises(ConfigError, match="boolean"):
            set_config_value(default_policy(sync_paths), "encryption.enabled", "maybe")

    def test_timeout(self, sync_paths: Paths):
        policy = set_config_value(default_policy(sync_paths), "repo.timeout", "30")
        assert policy.repo.timeout == 30
        with pytest.raises(ConfigError):
            set_config_value(policy, "repo.timeout", "soon")
        with pytest.raises(ConfigError):
            set_config_value(policy, "repo.timeout", "0")

    def test_backend(self, sync_paths: Paths):
        policy = set_config_value(default_policy(sync_paths), "repo.backend", "local")
        assert policy.repo.backend == RepoBackendType.LOCAL
        with pytest.raises(ConfigError, match="one of"):
            set_config_value(policy, "repo.backend", "svn")

    def test_exclude_list(self, sync_paths: Paths):
        policy = set_config_value(default_policy(sync_paths), "sync.exclude", "node_modules, *.bak ,")
        assert policy.sync.exclude == ["node_modules", "*.bak"]

    def test_unknown_key(self, sync_paths: Paths):
        with pytest.raises(ConfigError, match="unknown config key"):
            set_config_value(default_policy(sync_paths), "repo.password", "x")

    def test_sensitive_without_encryption_rejected(self, sync_paths: Paths):
        with pytest.raises(PolicyViolationError):
            set_config_value(default_policy(sync_paths), "sync.include_auth", "true")

    def test_sensitive_with_encryption(self, sync_paths: Paths):
        policy = set_config_value(default_policy(sync_paths), "encryption.enabled", "true")
        policy = set_config_value(policy, "sync.include_mcp_auth", "true")
        assert policy.sync.include_mcp_auth

    def test_original_untouched(self, sync_paths: Paths):
        original = default_policy(sync_paths)
        set_config_value(original, "repo.branch", "trunk")
        assert original.repo.branch == "main"
