"""
opencode-sync CLI -- keep OpenCode configuration in step across machines.

Each command group lives in its own module and is registered on the
main Click group through a register function.

Entry point: opencode_sync.cli:main
"""

from __future__ import annotations

import logging

import click

from .. import __version__


@click.group()
@click.version_option(version=__version__, prog_name="opencode-sync")
@click.option("--verbose", "-v", is_flag=True, help="Log debug output.")
def main(verbose: bool):
    """opencode-sync -- sync OpenCode config through a git repository.

    Settings, agents, commands and skills travel as plain files.
    Credentials travel only encrypted.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# Register all command groups/commands from modular files
# ---------------------------------------------------------------------------

from .sync_cmd import register_sync_commands
from .status import register_status_commands
from .repo_cmd import register_repo_commands
from .config_cmd import register_config_commands
from .key_cmd import register_key_commands

register_sync_commands(main)
register_status_commands(main)
register_repo_commands(main)
register_config_commands(main)
register_key_commands(main)
