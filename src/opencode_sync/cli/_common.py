"""Shared utilities for all CLI command modules.

Provides the Rich console instance, error reporting, and the helpers
that build a sync context or an engine for a command.
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from typing import Iterator, Optional

from rich.console import Console

from ..context import SyncContext, build_context
from ..errors import AuthError, ConflictError, NotConfiguredError, SyncError
from ..models import CycleResult, SyncOutcome
from ..paths import Paths, get_paths

console = Console()
logger = logging.getLogger("opencode_sync.cli")

OUTCOME_LABELS = {
    SyncOutcome.PULLED: "[bold green]PULLED[/]",
    SyncOutcome.UP_TO_DATE: "[green]UP TO DATE[/]",
    SyncOutcome.PUSHED: "[bold green]PUSHED[/]",
    SyncOutcome.BLOCKED_LOCAL_CHANGES: "[bold yellow]BLOCKED[/]",
    SyncOutcome.CONFLICTED: "[bold red]CONFLICTED[/]",
    SyncOutcome.PUSH_FAILED: "[bold red]PUSH FAILED[/]",
}

AUTH_HINT = (
    "Check your git credentials for the remote "
    "(SSH key, credential helper, or access token)."
)


def fail(message: str) -> None:
    """Print an error and exit non-zero."""
    console.print(f"[bold red]Error:[/] {message}")
    sys.exit(1)


@contextmanager
def reported_errors() -> Iterator[None]:
    """Turn SyncError into a readable message and exit code 1."""
    try:
        yield
    except ConflictError as exc:
        console.print(f"[bold red]Error:[/] {exc}")
        for path in exc.files:
            console.print(f"  [red]{path}[/]")
        sys.exit(1)
    except AuthError as exc:
        console.print(f"[bold red]Error:[/] {exc}")
        console.print(f"  [yellow]{AUTH_HINT}[/]")
        sys.exit(1)
    except NotConfiguredError as exc:
        console.print(f"[bold red]Not configured:[/] {exc}")
        sys.exit(1)
    except SyncError as exc:
        logger.debug("Command failed", exc_info=True)
        fail(str(exc))


def load_context(
    open_repository: bool = True, paths: Optional[Paths] = None
) -> SyncContext:
    """Build the invocation context, exiting cleanly on failure."""
    with reported_errors():
        return build_context(paths or get_paths(), open_repository=open_repository)


def print_result(result: CycleResult) -> None:
    """Render a CycleResult and exit 1 if it is a failure."""
    label = OUTCOME_LABELS.get(result.outcome, result.outcome.value)
    console.print(f"\n  {label}")
    if result.commit_message:
        console.print(f"  [dim]{result.commit_message}[/]")

    if result.outcome == SyncOutcome.BLOCKED_LOCAL_CHANGES:
        console.print(
            "  The mirror has uncommitted changes. "
            "Run [cyan]opencode-sync push[/] first."
        )
    elif result.outcome == SyncOutcome.CONFLICTED:
        console.print("  Resolve these conflicts in the mirror, then commit:")
        for path in result.conflict_files:
            console.print(f"    [red]{path}[/]")
    elif result.outcome == SyncOutcome.PUSH_FAILED:
        console.print(f"  [red]{result.error}[/]")
        if result.auth_failure:
            console.print(f"  [yellow]{AUTH_HINT}[/]")

    console.print()
    if not result.ok:
        sys.exit(1)
