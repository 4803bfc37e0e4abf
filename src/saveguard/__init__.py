"""
SaveGuard: save-data sync and session isolation for game launches.

Finds the freshest copy of your saves, hands the game an isolated
working copy, syncs it back out while you play, and puts everything
back the way it was when the game exits.
"""

import os

__version__ = "0.1.0"

SAVEGUARD_HOME = os.environ.get("SAVEGUARD_HOME", "~/.saveguard")
