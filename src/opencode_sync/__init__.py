"""
opencode-sync -- keep OpenCode configuration in step across machines.

The live config tree is mirrored into a version-controlled working copy.
Credentials never leave the machine in plaintext: they travel as encrypted
artifacts, everything else travels as plain files.
"""

__version__ = "0.1.0"
__author__ = "opencode-sync contributors"

HOME_ENV_VAR = "OPENCODE_SYNC_HOME"
