"""Endpoint commands: list, resolve, add."""

from __future__ import annotations

from pathlib import Path

import click
from rich.table import Table

from ._common import config_option, console, fail, home_option, load_or_exit
from ..config import save_config
from ..errors import SaveGuardError
from ..sync.freshness import FreshnessResolver
from ..sync.models import build_registry
from ..sync.remote import RcloneTool


def _resolver_for(config) -> FreshnessResolver:
    endpoints = config.registry()
    remote = None
    if any(e.is_remote for e in endpoints):
        remote = RcloneTool(
            binary=config.rclone_binary,
            config_path=config.rclone_config,
            retries=config.remote_retries,
        )
    return FreshnessResolver(remote)


def register_endpoint_commands(main: click.Group) -> None:
    """Register the endpoints command group."""

    @main.group()
    def endpoints():
        """Configured save endpoints."""

    @endpoints.command("list")
    @home_option
    @config_option
    def endpoints_list(home, config_path):
        """Show every endpoint with its latest modification time."""
        config = load_or_exit(home, config_path)
        registry = config.registry()
        if not registry:
            console.print("\n  [yellow]No endpoints configured.[/] The game will launch directly.\n")
            return

        survey = _resolver_for(config).survey(registry)
        table = Table(show_header=True, header_style="bold", box=None, padding=(0, 2))
        table.add_column("#", style="dim", justify="right")
        table.add_column("Endpoint", style="cyan")
        table.add_column("Kind")
        table.add_column("Mode")
        table.add_column("Sync on exit")
        table.add_column("Last modified", style="dim")

        for index, (endpoint, modified) in enumerate(survey, start=1):
            mode = f"every {endpoint.interval}s" if endpoint.is_periodic else "watch"
            on_exit = endpoint.effective_sync_on_exit(config.sync_on_exit)
            table.add_row(
                str(index),
                endpoint.display,
                endpoint.kind.value,
                mode,
                "[green]yes[/]" if on_exit else "[dim]no[/]",
                modified.isoformat() if modified else "[red]unreachable[/]",
            )
        console.print()
        console.print(table)
        console.print()

    @endpoints.command("resolve")
    @home_option
    @config_option
    def endpoints_resolve(home, config_path):
        """Print the endpoint holding the freshest saves."""
        config = load_or_exit(home, config_path)
        try:
            source = _resolver_for(config).resolve(config.registry())
        except SaveGuardError as exc:
            fail(exc)
            return
        console.print(f"\n  Freshest saves: [bold cyan]{source.display}[/]\n")

    @endpoints.command("add")
    @home_option
    @config_option
    @click.argument("spec")
    def endpoints_add(home, config_path, spec):
        """Validate and append an endpoint spec to the config."""
        config = load_or_exit(home, config_path)
        try:
            build_registry(config.endpoints + [spec])
        except SaveGuardError as exc:
            fail(exc)
            return
        config.endpoints.append(spec)
        path = save_config(
            config, Path(config_path).expanduser() if config_path else None,
        )
        console.print(f"\n  [green]Added[/] {spec} [dim]({path})[/]\n")
