"""
SaveGuard CLI.

Each command group lives in its own module and registers itself on
the main click group.

Entry point: saveguard.cli:main
"""

from __future__ import annotations

import click

from .. import __version__


@click.group()
@click.version_option(version=__version__, prog_name="saveguard")
def main():
    """SaveGuard: launch the game on your freshest saves.

    Picks the newest save copy, runs the game on an isolated copy,
    and syncs progress back to every configured location.
    """


from .launch import register_launch_commands
from .endpoints import register_endpoint_commands
from .auth import register_auth_commands

register_launch_commands(main)
register_endpoint_commands(main)
register_auth_commands(main)
