"""
Sync core -- live tree <-> mirror, with credentials kept encrypted.

The live OpenCode config tree is copied into a version-controlled
mirror and back. Credential files only ever reach the mirror encrypted.
"""

from .engine import SyncEngine
from .mirror import MirrorCopier
from .secrets import SENSITIVE_CATEGORIES, SecretChannel
from .state import StateAggregator

__all__ = [
    "SENSITIVE_CATEGORIES",
    "MirrorCopier",
    "SecretChannel",
    "StateAggregator",
    "SyncEngine",
]
