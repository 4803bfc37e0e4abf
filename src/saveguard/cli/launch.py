"""Launch command: run the game inside a save-synced session."""

from __future__ import annotations

import sys

import click
from rich.panel import Panel

from ._common import config_option, console, fail, home_option, load_or_exit
from ..errors import SaveGuardError, SessionInterrupted
from ..logs import setup_logging
from ..models import LaunchStrategy, LogLevel
from ..preflight import ensure_remotes
from ..session.launcher import SessionLauncher
from ..sync.remote import RcloneTool


def register_launch_commands(main: click.Group) -> None:
    """Register the launch command."""

    @main.command("launch")
    @home_option
    @config_option
    @click.option("--install-path", type=click.Path(), help="Game installation directory.")
    @click.option("--executable", help="Executable name inside the install directory.")
    @click.option("--save-path", type=click.Path(), help="Real save data directory.")
    @click.option(
        "--target", "targets", multiple=True,
        help='Save endpoint. Repeatable. Format: "path|interval|sync_on_exit".',
    )
    @click.option("--sync-on-quit", is_flag=True,
                  help="Sync on exit for endpoints without their own flag.")
    @click.option("--no-isolate", is_flag=True,
                  help="Swap real saves in place instead of sandboxing.")
    @click.option("--retries", type=int, help="Retry count for remote transfers.")
    @click.option("--rclone-config", type=click.Path(), help="Path to rclone.conf.")
    @click.option(
        "--log-level",
        type=click.Choice([level.value for level in LogLevel]),
        help="Console verbosity.",
    )
    @click.option("--auth", is_flag=True, help="Run the rclone configuration wizard first.")
    def launch(
        home, config_path, install_path, executable, save_path, targets,
        sync_on_quit, no_isolate, retries, rclone_config, log_level, auth,
    ):
        """Launch the game on the freshest saves and sync them back."""
        overrides = {
            "install_path": install_path,
            "executable": executable,
            "save_path": save_path,
            "endpoints": list(targets) if targets else None,
            "sync_on_exit": True if sync_on_quit else None,
            "isolate": False if no_isolate else None,
            "remote_retries": retries,
            "rclone_config": rclone_config,
            "log_level": log_level,
        }
        config = load_or_exit(home, config_path, overrides)
        setup_logging(config.log_level, config.log_file)

        try:
            launcher = SessionLauncher(config)
            if auth and isinstance(launcher.remote, RcloneTool):
                console.print("  [yellow]Starting the rclone configuration wizard...[/]")
                launcher.remote.run_config_wizard()
            ensure_remotes(launcher.endpoints, launcher.remote)
            result = launcher.launch()
        except SessionInterrupted as exc:
            console.print(f"\n  [yellow]{exc}. The game was not started.[/]\n")
            sys.exit(130)
        except SaveGuardError as exc:
            fail(exc)
            return

        if result.strategy == LaunchStrategy.DIRECT:
            console.print(
                f"\n  [green]Game launched[/] (PID {result.detached_pid}). "
                "[dim]No save endpoints configured.[/]\n"
            )
            return

        lines = [
            f"Strategy: [cyan]{result.strategy.value}[/]",
            f"Source: [cyan]{result.source.display if result.source else '-'}[/]",
            f"Exit code: {result.exit_code}",
        ]
        for label, ok in result.drained.items():
            mark = "[green]synced[/]" if ok else "[red]failed[/]"
            lines.append(f"  {label}: {mark}")
        failures = sum(result.background.get("failures", {}).values())
        if failures:
            lines.append(f"[yellow]{failures} background sync(s) failed, see log[/]")
        console.print()
        console.print(Panel("\n".join(lines), title="Session", border_style="magenta"))

        if result.ok:
            return
        if result.interrupted:
            console.print("  [yellow]Session interrupted. Saves restored.[/]\n")
            sys.exit(130)
        console.print(f"  [red]Game exited with code {result.exit_code}.[/]\n")
        sys.exit(1)
