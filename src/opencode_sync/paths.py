"""
Filesystem locations for opencode-sync and the OpenCode install it mirrors.

Unix follows the XDG base directory layout; Windows uses APPDATA and
LOCALAPPDATA. OPENCODE_SYNC_HOME relocates the tool's own config and
data directories, leaving OpenCode's directories where they are.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from . import HOME_ENV_VAR
from .models import ExternalDir

CLAUDE_SKILLS_MIRROR_NAME = "claude-skills"


@dataclass(frozen=True)
class Paths:
    """Resolved directories for one invocation.

    Attributes:
        config_dir: Where opencode-sync keeps config.yaml and the key file.
        data_dir: Where opencode-sync keeps the mirror repository.
        opencode_config_dir: OpenCode's live configuration tree.
        opencode_data_dir: OpenCode's live data tree (credential files).
        external_dirs: Directories outside the config tree that are mirrored
            under an explicit name.
    """

    config_dir: Path
    data_dir: Path
    opencode_config_dir: Path
    opencode_data_dir: Path
    external_dirs: tuple[ExternalDir, ...] = field(default_factory=tuple)

    @property
    def mirror_dir(self) -> Path:
        """The version-controlled working copy."""
        return self.data_dir / "repo"

    @property
    def config_file(self) -> Path:
        return self.config_dir / "config.yaml"

    @property
    def key_file(self) -> Path:
        return self.config_dir / "encryption.key"

    @property
    def auth_file(self) -> Path:
        return self.opencode_data_dir / "auth.json"

    @property
    def mcp_auth_file(self) -> Path:
        return self.opencode_data_dir / "mcp-auth.json"

    def with_external_dirs(self, extra: list[ExternalDir]) -> "Paths":
        """Return a copy with extra external dirs appended.

        Entries whose mirror name is already present replace the existing
        entry, so user config can repoint the default Claude skills dir.
        """
        merged = {d.mirror_name: d for d in self.external_dirs}
        for d in extra:
            merged[d.mirror_name] = ExternalDir(
                path=Path(d.path).expanduser(), mirror_name=d.mirror_name
            )
        return Paths(
            config_dir=self.config_dir,
            data_dir=self.data_dir,
            opencode_config_dir=self.opencode_config_dir,
            opencode_data_dir=self.opencode_data_dir,
            external_dirs=tuple(merged.values()),
        )


def get_paths(home: Optional[Path] = None) -> Paths:
    """Resolve paths for the current platform.

    Args:
        home: User home directory. Defaults to Path.home().

    Returns:
        Paths for this machine.
    """
    home = home or Path.home()

    if sys.platform == "win32":
        app_data = Path(os.environ.get("APPDATA", home / "AppData" / "Roaming"))
        local_app_data = Path(
            os.environ.get("LOCALAPPDATA", home / "AppData" / "Local")
        )
        config_dir = app_data / "opencode-sync"
        data_dir = local_app_data / "opencode-sync"
        opencode_config_dir = app_data / "opencode"
        opencode_data_dir = local_app_data / "opencode"
    else:
        config_home = Path(os.environ.get("XDG_CONFIG_HOME") or home / ".config")
        data_home = Path(
            os.environ.get("XDG_DATA_HOME") or home / ".local" / "share"
        )
        config_dir = config_home / "opencode-sync"
        data_dir = data_home / "opencode-sync"
        opencode_config_dir = config_home / "opencode"
        opencode_data_dir = data_home / "opencode"

    override = os.environ.get(HOME_ENV_VAR)
    if override:
        root = Path(override).expanduser()
        config_dir = root / "config"
        data_dir = root / "data"

    return Paths(
        config_dir=config_dir,
        data_dir=data_dir,
        opencode_config_dir=opencode_config_dir,
        opencode_data_dir=opencode_data_dir,
        external_dirs=(
            ExternalDir(
                path=home / ".claude" / "skills",
                mirror_name=CLAUDE_SKILLS_MIRROR_NAME,
            ),
        ),
    )
