"""Config commands: show, path, set."""

from __future__ import annotations

import click
import yaml

from ._common import console, reported_errors
from ..config import SETTABLE_KEYS, default_policy, load_config, save_config, set_config_value
from ..paths import get_paths


def register_config_commands(main: click.Group) -> None:
    """Register the config command group."""

    @main.group()
    def config():
        """Inspect and change opencode-sync settings."""

    @config.command("show")
    def config_show():
        """Print the effective configuration as YAML."""
        paths = get_paths()
        with reported_errors():
            policy = load_config(paths.config_file) or default_policy(paths)
        click.echo(
            yaml.dump(policy.model_dump(mode="json"), default_flow_style=False, sort_keys=False)
        )

    @config.command("path")
    def config_path():
        """Print the location of config.yaml."""
        click.echo(str(get_paths().config_file))

    @config.command("set")
    @click.argument("key", type=click.Choice(SETTABLE_KEYS))
    @click.argument("value")
    def config_set(key: str, value: str):
        """Set one dotted KEY to VALUE and save."""
        paths = get_paths()
        with reported_errors():
            policy = load_config(paths.config_file) or default_policy(paths)
            updated = set_config_value(policy, key, value)
            save_config(updated, paths.config_file)
        console.print(f"  [green]{key}[/] = {value}")
