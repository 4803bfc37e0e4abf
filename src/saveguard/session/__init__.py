"""
Launch sessions -- lock, prepare, run, drain, tear down.

A session owns its working directory from start to finish and always
tears it down, whether the game exits cleanly, crashes, or gets
interrupted.
"""

from .launcher import SessionLauncher, SessionResult, launch_session, select_strategy
from .lock import InstanceLock, ProcessLiveness, probe_process
from .sandbox import SandboxManager
from .supervisor import SubprocessRunner, Supervisor
from .swap import SwapController
from .synced import SyncedEnvironment

__all__ = [
    "InstanceLock",
    "ProcessLiveness",
    "SandboxManager",
    "SessionLauncher",
    "SessionResult",
    "SubprocessRunner",
    "Supervisor",
    "SwapController",
    "SyncedEnvironment",
    "launch_session",
    "probe_process",
    "select_strategy",
]
