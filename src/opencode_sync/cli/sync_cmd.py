"""Sync commands: push, pull, sync."""

from __future__ import annotations

import click

from ._common import console, load_context, print_result, reported_errors
from ..sync import SyncEngine


def register_sync_commands(main: click.Group) -> None:
    """Register push, pull and sync on the main CLI group."""

    @main.command()
    def push():
        """Export the live config to the mirror, commit, and push."""
        context = load_context()
        with reported_errors():
            engine = SyncEngine(context)
            console.print("\n  Exporting to mirror and pushing...")
            result = engine.push()
        print_result(result)

    @main.command()
    def pull():
        """Pull the remote mirror and apply it to the live config."""
        context = load_context()
        with reported_errors():
            engine = SyncEngine(context)
            console.print("\n  Pulling and importing into live config...")
            result = engine.pull()
        print_result(result)

    @main.command("sync")
    def sync_cmd():
        """Pull, then push. Stops at the first failure."""
        context = load_context()
        with reported_errors():
            engine = SyncEngine(context)
            console.print("\n  Syncing...")
            result = engine.sync()
        print_result(result)
