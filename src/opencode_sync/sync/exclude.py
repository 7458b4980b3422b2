"""
Exclusion matching for sync paths.

A pattern excludes a path when it glob-matches the final path segment,
or when it appears as a literal substring anywhere in the path. The
substring rule lets users exclude a directory by name without glob
syntax. It also catches unrelated names: "log" excludes "login.json".
"""

from __future__ import annotations

from fnmatch import fnmatchcase
from pathlib import PurePath
from typing import Iterable, Union


def _normalize(relative_path: Union[str, PurePath]) -> str:
    return PurePath(relative_path).as_posix()


def should_exclude(
    relative_path: Union[str, PurePath], patterns: Iterable[str]
) -> bool:
    """Decide whether a path is excluded from sync.

    Args:
        relative_path: Path relative to the tree root (mirror-relative name).
        patterns: Shell-style globs or plain substrings.

    Returns:
        True if any pattern matches.
    """
    path = _normalize(relative_path)
    name = PurePath(path).name
    for pattern in patterns:
        if not pattern:
            continue
        if fnmatchcase(name, pattern):
            return True
        if pattern in path:
            return True
    return False
