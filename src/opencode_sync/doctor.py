"""
Sync setup diagnostics.

Checks the live OpenCode tree, the sync config, the encryption key, and
the mirror repository, and reports pass/fail with a suggested fix for
each failure.

Usage:
    opencode-sync doctor
    opencode-sync doctor --json-out
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass, field
from typing import Optional

from .errors import SyncError
from .models import RepoBackendType, SyncPolicy
from .paths import Paths


@dataclass
class Check:
    """One check. `fix` is only shown when `passed` is false."""

    name: str
    description: str
    passed: bool
    detail: str = ""
    fix: str = ""
    category: str = "general"


@dataclass
class DiagnosticReport:
    """All checks for one machine."""

    checks: list[Check] = field(default_factory=list)
    config_dir: str = ""

    @property
    def passed_count(self) -> int:
        return sum(1 for c in self.checks if c.passed)

    @property
    def failed_count(self) -> int:
        return sum(1 for c in self.checks if not c.passed)

    @property
    def all_passed(self) -> bool:
        return self.failed_count == 0

    def to_dict(self) -> dict:
        return {
            "config_dir": self.config_dir,
            "passed": self.passed_count,
            "failed": self.failed_count,
            "total": len(self.checks),
            "all_passed": self.all_passed,
            "checks": [
                {
                    "name": c.name,
                    "category": c.category,
                    "description": c.description,
                    "passed": c.passed,
                    "detail": c.detail,
                    "fix": c.fix,
                }
                for c in self.checks
            ],
        }


def run_diagnostics(paths: Paths) -> DiagnosticReport:
    """Run every check against one machine's setup.

    Args:
        paths: Resolved locations to inspect.

    Returns:
        DiagnosticReport with results for every check.
    """
    report = DiagnosticReport(config_dir=str(paths.config_dir))

    report.checks.extend(_check_live_tree(paths))
    config_checks, policy = _check_config(paths)
    report.checks.extend(config_checks)
    if policy is not None:
        report.checks.extend(_check_encryption(policy, paths))
        report.checks.extend(_check_repository(policy, paths))

    return report


def _check_live_tree(paths: Paths) -> list[Check]:
    checks = []
    for name, desc, path in (
        ("live:config", "OpenCode config directory", paths.opencode_config_dir),
        ("live:data", "OpenCode data directory", paths.opencode_data_dir),
    ):
        exists = path.is_dir()
        checks.append(Check(
            name=name,
            description=desc,
            passed=exists,
            detail=str(path),
            fix="" if exists else "Run OpenCode once so it creates its directories",
            category="live",
        ))
    return checks


def _check_config(paths: Paths) -> tuple[list[Check], Optional[SyncPolicy]]:
    """Check config.yaml exists, parses, and passes policy validation."""
    from .config import load_config

    config_file = paths.config_file
    try:
        policy = load_config(config_file)
    except SyncError as exc:
        return [Check(
            name="config:file",
            description="Sync config",
            passed=False,
            detail=str(exc),
            fix=f"Fix or remove {config_file}",
            category="config",
        )], None

    if policy is None:
        return [Check(
            name="config:file",
            description="Sync config",
            passed=False,
            detail=f"{config_file} not found",
            fix="opencode-sync init  or  opencode-sync clone <url>",
            category="config",
        )], None

    checks = [Check(
        name="config:file",
        description="Sync config",
        passed=True,
        detail=str(config_file),
        category="config",
    )]
    try:
        policy.validate_policy()
        checks.append(Check(
            name="config:policy",
            description="Sync policy",
            passed=True,
            category="config",
        ))
    except SyncError as exc:
        checks.append(Check(
            name="config:policy",
            description="Sync policy",
            passed=False,
            detail=str(exc),
            fix="opencode-sync config set encryption.enabled true",
            category="config",
        ))
    return checks, policy


def _check_encryption(policy: SyncPolicy, paths: Paths) -> list[Check]:
    from .crypto import load_encryption

    if not policy.encryption.enabled:
        return [Check(
            name="encryption:key",
            description="Encryption key",
            passed=True,
            detail="encryption disabled",
            category="encryption",
        )]

    try:
        load_encryption(policy, paths)
    except SyncError as exc:
        return [Check(
            name="encryption:key",
            description="Encryption key",
            passed=False,
            detail=str(exc),
            fix="opencode-sync key generate  or  opencode-sync key import <key>",
            category="encryption",
        )]
    return [Check(
        name="encryption:key",
        description="Encryption key",
        passed=True,
        detail=str(policy.encryption.key_file or paths.key_file),
        category="encryption",
    )]


def _check_repository(policy: SyncPolicy, paths: Paths) -> list[Check]:
    """Check the mirror dir, the repository, its remote, branch and tree."""
    from .repository import DEFAULT_REMOTE, create_repository

    checks = []

    if policy.repo.backend == RepoBackendType.GIT:
        git = shutil.which("git")
        checks.append(Check(
            name="tool:git",
            description="git executable",
            passed=git is not None,
            detail=git or "",
            fix="" if git else "Install git and make sure it is on PATH",
            category="repository",
        ))
        if git is None:
            return checks

    mirror = paths.mirror_dir
    checks.append(Check(
        name="repo:dir",
        description="Mirror directory",
        passed=mirror.is_dir(),
        detail=str(mirror),
        fix="" if mirror.is_dir() else "opencode-sync init",
        category="repository",
    ))
    if not mirror.is_dir():
        return checks

    repo = create_repository(policy, mirror)
    try:
        repo.open()
    except SyncError as exc:
        checks.append(Check(
            name="repo:open",
            description="Mirror repository",
            passed=False,
            detail=str(exc),
            fix="opencode-sync init  or  opencode-sync clone <url>",
            category="repository",
        ))
        return checks
    checks.append(Check(
        name="repo:open",
        description="Mirror repository",
        passed=True,
        detail=policy.repo.backend.value,
        category="repository",
    ))

    try:
        remote = repo.get_remote_url(DEFAULT_REMOTE)
        checks.append(Check(
            name="repo:remote",
            description="Remote configured",
            passed=True,
            detail=remote,
            category="repository",
        ))
    except SyncError:
        checks.append(Check(
            name="repo:remote",
            description="Remote configured",
            passed=False,
            fix="opencode-sync rebind <url>",
            category="repository",
        ))

    try:
        status = repo.status()
    except SyncError as exc:
        checks.append(Check(
            name="repo:status",
            description="Working tree status",
            passed=False,
            detail=str(exc),
            category="repository",
        ))
        return checks

    branch_ok = not status.detached
    checks.append(Check(
        name="repo:branch",
        description="Current branch",
        passed=branch_ok,
        detail=status.branch,
        fix="" if branch_ok else f"git -C {mirror} checkout {policy.repo.branch}",
        category="repository",
    ))
    checks.append(Check(
        name="repo:clean",
        description="Working tree clean",
        passed=status.is_clean,
        detail="" if status.is_clean else f"{len(status.changed_paths)} changed path(s)",
        fix="" if status.is_clean else "opencode-sync push",
        category="repository",
    ))
    return checks
