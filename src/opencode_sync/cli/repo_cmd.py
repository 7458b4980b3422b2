"""Mirror repository commands: init, link, clone, rebind."""

from __future__ import annotations

import socket
from typing import Optional

import click

from ._common import console, fail, load_context, reported_errors
from ..config import default_policy, load_config, save_config
from ..context import build_context
from ..errors import RepositoryError
from ..models import RepoBackendType, SyncPolicy
from ..paths import Paths, get_paths
from ..repository import DEFAULT_REMOTE, Repository
from ..sync import SyncEngine


def _load_or_default(paths: Paths) -> SyncPolicy:
    with reported_errors():
        return load_config(paths.config_file) or default_policy(paths)


def _point_remote(repo: Repository, url: str) -> None:
    """Set origin to url, adding the remote if it does not exist yet."""
    try:
        repo.set_remote_url(DEFAULT_REMOTE, url)
    except RepositoryError:
        repo.add_remote(DEFAULT_REMOTE, url)


def _init_mirror(
    paths: Paths, policy: SyncPolicy, url: Optional[str]
) -> SyncEngine:
    """Save config, create or open the mirror, point origin, build an engine."""
    if url:
        policy.repo.url = url
    policy.validate_policy()
    save_config(policy, paths.config_file)

    context = build_context(paths, open_repository=False, policy=policy)
    repo = context.repository
    if repo.exists():
        repo.open()
        console.print(f"  [dim]Mirror already initialized at {paths.mirror_dir}[/]")
    else:
        repo.init()
        console.print(f"  Initialized mirror at [cyan]{paths.mirror_dir}[/]")
    if policy.repo.url:
        _point_remote(repo, policy.repo.url)
    return SyncEngine(context)


def register_repo_commands(main: click.Group) -> None:
    """Register the mirror setup commands on the main CLI group."""

    @main.command()
    @click.option("--url", default=None, help="Remote repository URL.")
    @click.option(
        "--backend",
        type=click.Choice([b.value for b in RepoBackendType]),
        default=None,
        help="Repository backend (default: git).",
    )
    def init(url: Optional[str], backend: Optional[str]):
        """Create the mirror and commit the current live config."""
        paths = get_paths()
        policy = _load_or_default(paths)
        if backend:
            policy.repo.backend = RepoBackendType(backend)

        console.print()
        with reported_errors():
            engine = _init_mirror(paths, policy, url)
            committed = engine.bootstrap(
                f"Initial sync from {socket.gethostname()}"
            )
        if committed:
            console.print("  [green]Committed live config to the mirror.[/]")
        else:
            console.print("  [dim]Mirror already up to date.[/]")
        console.print(f"  Config: [dim]{paths.config_file}[/]\n")

    @main.command()
    @click.argument("url")
    @click.option("--yes", "-y", is_flag=True, help="Skip the confirmation prompt.")
    def link(url: str, yes: bool):
        """Publish this machine's config to a new remote, replacing its content."""
        paths = get_paths()
        policy = _load_or_default(paths)

        if not yes:
            click.confirm(
                f"This overwrites everything on {url} with this machine's config. Continue?",
                abort=True,
            )

        console.print()
        with reported_errors():
            engine = _init_mirror(paths, policy, url)
            engine.bootstrap(f"Link from {socket.gethostname()}")
            engine.repository.force_push()
        console.print(f"  [green]Linked[/] mirror to [cyan]{url}[/]\n")

    @main.command()
    @click.argument("url", required=False)
    def clone(url: Optional[str]):
        """Clone an existing remote and apply it to the live config."""
        paths = get_paths()
        existing = _load_or_default(paths)
        url = url or existing.repo.url
        if not url:
            fail("No URL given and no repo.url configured.")

        if paths.mirror_dir.exists() and any(paths.mirror_dir.iterdir()):
            fail(f"Mirror already exists at {paths.mirror_dir}. Use pull instead.")

        existing.repo.url = url
        console.print(f"\n  Cloning [cyan]{url}[/]...")
        with reported_errors():
            context = build_context(paths, open_repository=False, policy=existing)
            context.repository.clone(url)
            save_config(existing, paths.config_file)
            imported = SyncEngine(context).import_from_mirror()
        console.print(f"  [green]Applied {len(imported)} file(s) to the live config.[/]\n")

    @main.command()
    @click.argument("url")
    def rebind(url: str):
        """Point the mirror at a different remote URL."""
        context = load_context()
        with reported_errors():
            _point_remote(context.repository, url)
            context.policy.repo.url = url
            save_config(context.policy, context.paths.config_file)
        console.print(f"\n  Remote is now [cyan]{url}[/]\n")
