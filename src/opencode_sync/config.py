"""
Config store -- SyncPolicy persisted as YAML.

The engine treats the loaded policy as an immutable snapshot for the
length of one operation; only the CLI writes it back.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError

from .errors import ConfigError
from .models import RepoBackendType, SyncPolicy
from .paths import Paths

logger = logging.getLogger("opencode_sync.config")

TRUE_VALUES = {"true", "yes", "1", "on"}
FALSE_VALUES = {"false", "no", "0", "off"}

SETTABLE_KEYS = (
    "repo.url",
    "repo.branch",
    "repo.backend",
    "repo.timeout",
    "encryption.enabled",
    "encryption.key_file",
    "sync.include_auth",
    "sync.include_mcp_auth",
    "sync.exclude",
)


def default_policy(paths: Paths) -> SyncPolicy:
    """Build the out-of-the-box policy for this machine."""
    policy = SyncPolicy()
    policy.encryption.key_file = paths.key_file
    return policy


def load_config(config_file: Path) -> Optional[SyncPolicy]:
    """Load the sync policy from disk.

    Args:
        config_file: Path to config.yaml.

    Returns:
        The parsed policy, or None if no config file exists yet.

    Raises:
        ConfigError: If the file cannot be read or does not validate.
    """
    if not config_file.exists():
        return None

    try:
        data = yaml.safe_load(config_file.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"failed to read config {config_file}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"config {config_file} must be a mapping")

    try:
        return SyncPolicy(**data)
    except ValidationError as exc:
        raise ConfigError(f"invalid config {config_file}: {exc}") from exc


def save_config(policy: SyncPolicy, config_file: Path) -> None:
    """Persist the sync policy to disk."""
    config_file.parent.mkdir(parents=True, exist_ok=True)
    data = policy.model_dump(mode="json")
    config_file.write_text(
        yaml.dump(data, default_flow_style=False, sort_keys=False),
        encoding="utf-8",
    )
    logger.debug("Saved config to %s", config_file)


def _parse_bool(key: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    raise ConfigError(f"{key} expects a boolean, got {value!r}")


def _parse_value(key: str, value: str) -> Any:
    if key in ("encryption.enabled", "sync.include_auth", "sync.include_mcp_auth"):
        return _parse_bool(key, value)
    if key == "repo.timeout":
        try:
            return int(value)
        except ValueError as exc:
            raise ConfigError(f"{key} expects an integer, got {value!r}") from exc
    if key == "repo.backend":
        try:
            return RepoBackendType(value.strip().lower())
        except ValueError as exc:
            choices = ", ".join(b.value for b in RepoBackendType)
            raise ConfigError(f"{key} must be one of: {choices}") from exc
    if key == "encryption.key_file":
        return Path(value).expanduser()
    if key == "sync.exclude":
        return [p.strip() for p in value.split(",") if p.strip()]
    return value


def set_config_value(policy: SyncPolicy, key: str, value: str) -> SyncPolicy:
    """Return a copy of the policy with one dotted key changed.

    Args:
        policy: Current policy.
        key: Dotted key, one of SETTABLE_KEYS.
        value: Raw string value from the command line.

    Returns:
        The updated, validated policy.

    Raises:
        ConfigError: Unknown key or unparseable value.
        PolicyViolationError: The change would leave an invalid policy.
    """
    if key not in SETTABLE_KEYS:
        raise ConfigError(
            f"unknown config key: {key}. Valid keys: {', '.join(SETTABLE_KEYS)}"
        )

    section, field_name = key.split(".", 1)
    data = policy.model_dump()
    data[section][field_name] = _parse_value(key, value)

    try:
        updated = SyncPolicy(**data)
    except ValidationError as exc:
        raise ConfigError(f"invalid value for {key}: {exc}") from exc

    updated.validate_policy()
    return updated
