"""Status and overview commands: status, diff, doctor."""

from __future__ import annotations

import json

import click
from rich.panel import Panel
from rich.table import Table

from ._common import console, load_context, reported_errors
from ..paths import get_paths
from ..sync import SyncEngine


def _flag(record) -> str:
    if record.is_new:
        return "[green]new[/]"
    if record.is_modified:
        return "[yellow]modified[/]"
    if record.is_deleted:
        return "[red]deleted[/]"
    return "[dim]same[/]"


def register_status_commands(main: click.Group) -> None:
    """Register all status/overview commands on the main CLI group."""

    @main.command()
    @click.option("--json-out", is_flag=True, help="Output as machine-readable JSON.")
    def status(json_out: bool):
        """Show mirror state and how the live config compares to it."""
        context = load_context()
        with reported_errors():
            state = SyncEngine(context).get_state()

        if json_out:
            data = {
                "is_clean": state.is_clean,
                "has_local_changes": state.has_local_changes,
                "files": len(state.local_files),
                "changed": [f.rel_path for f in state.changed_files],
                "conflict_files": state.conflict_files,
            }
            click.echo(json.dumps(data, indent=2))
            return

        clean = "[green]clean[/]" if state.is_clean else "[yellow]not clean[/]"
        changes = "[yellow]yes[/]" if state.has_local_changes else "[green]no[/]"
        console.print()
        console.print(
            Panel(
                f"Mirror: [cyan]{context.paths.mirror_dir}[/]\n"
                f"Backend: [cyan]{context.policy.repo.backend.value}[/]\n"
                f"Remote: {context.policy.repo.url or '[dim]none[/]'}\n"
                f"Working tree: {clean}\n"
                f"Uncommitted changes: {changes}\n"
                f"Tracked files: [bold]{len(state.local_files)}[/]\n"
                f"Differs from mirror: [bold]{len(state.changed_files)}[/]",
                title="opencode-sync",
                border_style="bright_blue",
            )
        )
        if state.conflict_files:
            console.print("  [bold red]Conflicts:[/]")
            for path in state.conflict_files:
                console.print(f"    [red]{path}[/]")
        console.print()

    @main.command()
    def diff():
        """List live files that differ from the mirror."""
        context = load_context()
        with reported_errors():
            state = SyncEngine(context).get_state()

        changed = state.changed_files
        if not changed:
            console.print("\n  [green]Live config matches the mirror.[/]\n")
            return

        table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
        table.add_column("Change")
        table.add_column("Path", style="cyan")
        table.add_column("Size", justify="right", style="dim")
        for record in changed:
            table.add_row(_flag(record), record.rel_path, str(record.size))

        console.print()
        console.print(table)
        console.print()

    @main.command()
    @click.option("--json-out", is_flag=True, help="Output as machine-readable JSON.")
    def doctor(json_out: bool):
        """Diagnose the sync setup on this machine."""
        from ..doctor import run_diagnostics

        report = run_diagnostics(get_paths())

        if json_out:
            click.echo(json.dumps(report.to_dict(), indent=2))
            return

        console.print()

        categories = {}
        for check in report.checks:
            categories.setdefault(check.category, []).append(check)

        category_labels = {
            "live": "OpenCode",
            "config": "Configuration",
            "encryption": "Encryption",
            "repository": "Mirror Repository",
        }

        for cat_key in ["live", "config", "encryption", "repository"]:
            checks = categories.get(cat_key, [])
            if not checks:
                continue

            console.print(f"  [bold]{category_labels[cat_key]}[/]")
            for c in checks:
                icon = "[green]✓[/]" if c.passed else "[red]✗[/]"
                detail = f" [dim]({c.detail})[/]" if c.detail else ""
                console.print(f"    {icon} {c.description}{detail}")
                if not c.passed and c.fix:
                    console.print(f"      [yellow]Fix: {c.fix}[/]")
            console.print()

        total = len(report.checks)
        if report.all_passed:
            console.print(f"  [bold green]✓ All {total} checks passed.[/]")
        else:
            console.print(
                f"  [bold green]{report.passed_count}[/] passed, "
                f"[bold red]{report.failed_count}[/] failed "
                f"out of {total} checks."
            )
        console.print()
