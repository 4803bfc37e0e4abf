"""Auth command: configure remotes for the transfer tool."""

from __future__ import annotations

import sys

import click

from ._common import config_option, console, fail, home_option, load_or_exit
from ..errors import RemoteToolError
from ..sync.remote import RcloneTool


def register_auth_commands(main: click.Group) -> None:
    """Register the auth command."""

    @main.command("auth")
    @home_option
    @config_option
    @click.option("--rclone-config", type=click.Path(), help="Path to rclone.conf.")
    def auth(home, config_path, rclone_config):
        """Run the rclone configuration wizard."""
        config = load_or_exit(home, config_path, {"rclone_config": rclone_config})
        tool = RcloneTool(
            binary=config.rclone_binary,
            config_path=config.rclone_config,
        )
        console.print("\n  The rclone configuration wizard will now start.")
        console.print("  [dim]Follow the on-screen instructions.[/]\n")
        try:
            code = tool.run_config_wizard()
        except RemoteToolError as exc:
            fail(exc)
            return
        if code != 0:
            console.print(f"[red]rclone config exited with {code}[/]")
            sys.exit(code)
