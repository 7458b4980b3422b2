"""
Invocation context -- everything one sync operation needs, built once.

Paths, policy, repository and encryption are resolved up front and
handed to the engine explicitly. Nothing here is cached at module level.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .config import default_policy, load_config
from .crypto import Encryption, load_encryption
from .models import SyncPolicy
from .paths import Paths, get_paths
from .repository import Repository, create_repository

logger = logging.getLogger("opencode_sync.context")


@dataclass
class SyncContext:
    """Resolved collaborators for a single invocation."""

    paths: Paths
    policy: SyncPolicy
    repository: Repository
    encryption: Optional[Encryption] = None


def build_context(
    paths: Optional[Paths] = None,
    open_repository: bool = True,
    policy: Optional[SyncPolicy] = None,
) -> SyncContext:
    """Load config and wire up the collaborators.

    Args:
        paths: Resolved locations. Defaults to get_paths().
        open_repository: Open the mirror repository. Commands that create
            the mirror (init, clone) pass False.
        policy: Use this policy instead of reading config.yaml.

    Raises:
        ConfigError: config.yaml is unreadable or invalid.
        PolicyViolationError: The policy combines forbidden settings.
        NotConfiguredError: Encryption is enabled but no key exists.
        RepositoryError: open_repository is set and no mirror exists.
    """
    paths = paths or get_paths()
    if policy is None:
        policy = load_config(paths.config_file) or default_policy(paths)
    policy.validate_policy()

    paths = paths.with_external_dirs(policy.sync.external_dirs)
    encryption = load_encryption(policy, paths)
    repository = create_repository(policy, paths.mirror_dir)
    if open_repository:
        repository.open()

    logger.debug(
        "Context: backend=%s mirror=%s encryption=%s",
        policy.repo.backend.value,
        paths.mirror_dir,
        "on" if encryption else "off",
    )
    return SyncContext(
        paths=paths,
        policy=policy,
        repository=repository,
        encryption=encryption,
    )
