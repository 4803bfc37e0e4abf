"""
Session launcher -- one state machine for every launch strategy.

    Idle -> AcquiringLock -> PreparingEnvironment -> Running
         -> Draining -> TornDown

Strategy is picked from the endpoint registry:

    no endpoints                    direct launch, detached
    isolation not requested         swap real saves in and out
    isolate + any local endpoint    sandbox (redirected home)
    isolate + remote endpoints only real location, synced before and after

Anything that fails before the game starts aborts the run. Background
and exit syncs, and teardown, only ever log. SIGINT/SIGTERM are handled
from lock acquisition until teardown has finished: before the game
starts they abort the session, afterwards they only cancel background
work.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from ..errors import (
    EnvironmentSetupError,
    LaunchError,
    SessionInterrupted,
    SyncError,
    TeardownError,
)
from ..models import LaunchConfig, LaunchStrategy, LogLevel, SessionState
from ..sync.freshness import FreshnessResolver
from ..sync.models import Endpoint
from ..sync.remote import RcloneTool, RemoteTransferTool
from ..sync.scheduler import BackgroundSyncScheduler
from ..sync.synchronizer import DirectorySynchronizer
from .environment import SessionEnvironment
from .lock import InstanceLock
from .sandbox import SandboxManager
from .supervisor import ProcessRunner, SubprocessRunner, Supervisor
from .swap import SwapController
from .synced import SyncedEnvironment

logger = logging.getLogger("saveguard.session.launcher")


def select_strategy(endpoints: Sequence[Endpoint], isolate: bool) -> LaunchStrategy:
    """Pick the launch strategy from the endpoint composition."""
    if not endpoints:
        return LaunchStrategy.DIRECT
    if not isolate:
        return LaunchStrategy.SWAP
    if any(not e.is_remote for e in endpoints):
        return LaunchStrategy.SANDBOX
    return LaunchStrategy.SYNCED


def drain_targets(
    endpoints: Sequence[Endpoint],
    source: Optional[Endpoint],
    default_sync_on_exit: bool,
) -> list[Endpoint]:
    """Endpoints the working directory is pushed to after exit.

    The resolved source always gets the session's saves back, plus
    every endpoint whose sync-on-exit resolves true. Registry order,
    no duplicates.
    """
    targets: list[Endpoint] = []
    for endpoint in endpoints:
        if endpoint == source or endpoint.effective_sync_on_exit(default_sync_on_exit):
            if endpoint not in targets:
                targets.append(endpoint)
    return targets


@dataclass
class SessionResult:
    """Outcome of one launch."""

    strategy: LaunchStrategy
    exit_code: Optional[int] = None
    source: Optional[Endpoint] = None
    interrupted: bool = False
    detached_pid: Optional[int] = None
    drained: dict[str, bool] = field(default_factory=dict)
    background: dict = field(default_factory=dict)
    states: list[SessionState] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True when the game exited normally (or was detached)."""
        if self.strategy == LaunchStrategy.DIRECT:
            return True
        return self.exit_code == 0 and not self.interrupted


class SessionLauncher:
    """Run one managed-process session end to end.

    Args:
        config: Launcher configuration.
        remote: Transfer tool for remote endpoints. Built from config
            when None.
        runner: Process launch capability.
        lock: Instance lock. Built from config when None.
        cancel: Session cancellation event.
    """

    def __init__(
        self,
        config: LaunchConfig,
        remote: Optional[RemoteTransferTool] = None,
        runner: Optional[ProcessRunner] = None,
        lock: Optional[InstanceLock] = None,
        cancel: Optional[threading.Event] = None,
    ):
        self.config = config
        self.endpoints = config.registry()
        if remote is None and any(e.is_remote for e in self.endpoints):
            remote = RcloneTool(
                binary=config.rclone_binary,
                config_path=config.rclone_config,
                retries=config.remote_retries,
                quiet=config.log_level == LogLevel.QUIET,
            )
        self.remote = remote
        self.runner = runner or SubprocessRunner()
        self.lock = lock or InstanceLock(config.lock_path)
        self.cancel = cancel or threading.Event()
        self.synchronizer = DirectorySynchronizer(remote)
        self.resolver = FreshnessResolver(remote)
        self.supervisor = Supervisor(self.cancel, stop_timeout=config.stop_timeout)
        self.scheduler: Optional[BackgroundSyncScheduler] = None
        self.environment: Optional[SessionEnvironment] = None
        self.state = SessionState.IDLE
        self._result: Optional[SessionResult] = None

    def _advance(self, state: SessionState) -> None:
        logger.debug("Session state %s -> %s", self.state.value, state.value)
        self.state = state
        if self._result is not None:
            self._result.states.append(state)

    def _build_environment(self, strategy: LaunchStrategy) -> SessionEnvironment:
        if strategy == LaunchStrategy.SYNCED:
            return SyncedEnvironment(self.config.save_path, self.synchronizer)
        if strategy == LaunchStrategy.SANDBOX:
            return SandboxManager(
                self.config.save_path,
                self.synchronizer,
                base_dir=self.config.home / "sandbox",
            )
        return SwapController(
            self.config.save_path, self.synchronizer, self.config.backup_dir,
        )

    def launch(self) -> SessionResult:
        """Run the session.

        Returns:
            SessionResult describing what happened.

        Raises:
            LaunchError, LockContention, NoReachableSource,
            EnvironmentSetupError, SessionInterrupted: Fatal, before
            the game started.
        """
        executable = self.config.executable_path
        if not executable.exists():
            raise LaunchError(f"Executable not found at {executable}")

        strategy = select_strategy(self.endpoints, self.config.isolate)
        result = self._result = SessionResult(strategy=strategy)
        logger.info("Launch strategy: %s", strategy.value)

        if strategy == LaunchStrategy.DIRECT:
            logger.info("No save endpoints configured. Launching game and detaching.")
            handle = self.runner.launch(
                executable, self.config.install_path, detach=True,
            )
            result.detached_pid = handle.pid
            logger.info("Game launched successfully (PID %d).", handle.pid)
            return result

        self.supervisor.install_signals()
        try:
            self._advance(SessionState.ACQUIRING_LOCK)
            self.lock.acquire()
            try:
                self._run_locked(strategy, executable, result)
            finally:
                self._teardown(result)
        finally:
            self.supervisor.restore_signals()
        return result

    def _check_cancelled(self) -> None:
        if self.cancel.is_set():
            raise SessionInterrupted(
                f"Session interrupted while {self.state.value.replace('_', ' ')}"
            )

    def _run_locked(
        self, strategy: LaunchStrategy, executable: Path, result: SessionResult,
    ) -> None:
        self._check_cancelled()
        self._advance(SessionState.PREPARING_ENVIRONMENT)
        environment = self.environment = self._build_environment(strategy)
        if isinstance(environment, SwapController):
            try:
                environment.recover_leftovers()
            except OSError as exc:
                raise EnvironmentSetupError(
                    f"Could not restore saves from an interrupted session: {exc}"
                ) from exc

        source = result.source = self.resolver.resolve(self.endpoints)
        self._check_cancelled()
        working_dir = environment.prepare(source)
        self._check_cancelled()

        handle = self.runner.launch(
            executable, self.config.install_path, environment.env_overrides(),
        )
        self._advance(SessionState.RUNNING)
        logger.info("Game launched. Process ID: %d. Waiting for exit...", handle.pid)

        self.scheduler = BackgroundSyncScheduler(
            self.synchronizer,
            working_dir,
            self.endpoints,
            cancel=self.cancel,
            debounce=self.config.debounce_seconds,
        )
        self.scheduler.start()
        try:
            result.exit_code = self.supervisor.run(handle)
        finally:
            result.interrupted = self.supervisor.interrupted
            self.scheduler.stop()
            result.background = self.scheduler.stats.snapshot()

        self._advance(SessionState.DRAINING)
        working = Endpoint.local(working_dir, label="working directory")
        for target in drain_targets(self.endpoints, source, self.config.sync_on_exit):
            logger.info("Copying session saves back to '%s'...", target.display)
            try:
                self.synchronizer.synchronize(working, target)
            except SyncError as exc:
                logger.warning("%s", exc)
                result.drained[target.display] = False
            else:
                result.drained[target.display] = True

    def _teardown(self, result: SessionResult) -> None:
        if self.scheduler is not None:
            self.scheduler.stop()
        if self.environment is not None:
            try:
                self.environment.teardown()
            except TeardownError as exc:
                logger.error("%s", exc)
        self.lock.release()
        result.interrupted = self.supervisor.interrupted
        self._advance(SessionState.TORN_DOWN)


def launch_session(
    config: LaunchConfig,
    remote: Optional[RemoteTransferTool] = None,
    runner: Optional[ProcessRunner] = None,
) -> SessionResult:
    """Convenience wrapper: build a SessionLauncher and run it."""
    return SessionLauncher(config, remote=remote, runner=runner).launch()
