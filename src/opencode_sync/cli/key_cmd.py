"""Encryption key commands: generate, export, import."""

from __future__ import annotations

from pathlib import Path

import click

from ._common import console, fail, reported_errors
from ..config import default_policy, load_config
from ..crypto import generate_key, load_key, save_key, validate_key
from ..paths import get_paths


def _key_path() -> Path:
    paths = get_paths()
    with reported_errors():
        policy = load_config(paths.config_file) or default_policy(paths)
    return Path(policy.encryption.key_file or paths.key_file).expanduser()


def register_key_commands(main: click.Group) -> None:
    """Register the key command group."""

    @main.group()
    def key():
        """Manage the key that encrypts credential files."""

    @key.command("generate")
    @click.option("--force", is_flag=True, help="Overwrite an existing key.")
    def key_generate(force: bool):
        """Create a new encryption key."""
        path = _key_path()
        if path.exists() and not force:
            fail(f"A key already exists at {path}. Use --force to replace it.")

        save_key(generate_key(), path)
        console.print(f"\n  [green]Key written to[/] {path}")
        console.print(
            "  Copy it to your other machines with "
            "[cyan]opencode-sync key export[/] / [cyan]key import[/]."
        )
        console.print(
            "  Enable it with [cyan]opencode-sync config set encryption.enabled true[/]\n"
        )

    @key.command("export")
    def key_export():
        """Print the encryption key."""
        with reported_errors():
            click.echo(load_key(_key_path()))

    @key.command("import")
    @click.argument("value")
    @click.option("--force", is_flag=True, help="Overwrite an existing key.")
    def key_import(value: str, force: bool):
        """Save an encryption key exported from another machine."""
        path = _key_path()
        if path.exists() and not force:
            fail(f"A key already exists at {path}. Use --force to replace it.")

        with reported_errors():
            save_key(validate_key(value), path)
        console.print(f"\n  [green]Key imported to[/] {path}\n")
