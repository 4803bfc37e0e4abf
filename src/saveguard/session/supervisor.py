"""
Process supervisor -- launch the game, wait for it, stop it on demand.

SIGINT/SIGTERM set the session cancellation event. While the game runs
they also terminate it; the wait then returns normally, so draining
and teardown still run. The launcher keeps the handlers installed for
the whole locked session.
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import sys
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from ..errors import LaunchError

logger = logging.getLogger("saveguard.session.supervisor")

STOP_TIMEOUT_SECONDS = 10.0
KILL_TIMEOUT_SECONDS = 5.0


class ProcessHandle(ABC):
    """A launched managed process."""

    @property
    @abstractmethod
    def pid(self) -> int:
        """OS process id."""

    @abstractmethod
    def wait(self) -> int:
        """Block until exit and return the exit code."""

    @abstractmethod
    def poll(self) -> Optional[int]:
        """Exit code if finished, else None."""

    @abstractmethod
    def terminate(self, timeout: float = STOP_TIMEOUT_SECONDS) -> None:
        """Stop the process, escalating to a hard kill after ``timeout``."""


class ProcessRunner(ABC):
    """Launch capability consumed by the session launcher."""

    @abstractmethod
    def launch(
        self,
        executable: Path,
        working_dir: Path,
        env_overrides: Optional[dict[str, str]] = None,
        detach: bool = False,
    ) -> ProcessHandle:
        """Start ``executable``.

        Raises:
            LaunchError: If the process could not be started.
        """


class PopenHandle(ProcessHandle):
    """ProcessHandle backed by ``subprocess.Popen``."""

    def __init__(self, proc: subprocess.Popen):
        self.proc = proc

    @property
    def pid(self) -> int:
        return self.proc.pid

    def wait(self) -> int:
        return self.proc.wait()

    def poll(self) -> Optional[int]:
        return self.proc.poll()

    def terminate(self, timeout: float = STOP_TIMEOUT_SECONDS) -> None:
        if self.proc.poll() is not None:
            return
        try:
            self.proc.terminate()
        except ProcessLookupError:
            return
        try:
            self.proc.wait(timeout=timeout)
            return
        except subprocess.TimeoutExpired:
            logger.warning(
                "Process %d did not exit after %.0fs, killing it",
                self.proc.pid, timeout,
            )
        try:
            self.proc.kill()
            self.proc.wait(timeout=KILL_TIMEOUT_SECONDS)
        except (ProcessLookupError, subprocess.TimeoutExpired) as exc:
            logger.error("Could not kill process %d: %s", self.proc.pid, exc)


def build_process_env(env_overrides: Optional[dict[str, str]] = None) -> dict[str, str]:
    """Inherited environment with the overrides applied on top."""
    env = os.environ.copy()
    env.update({k: str(v) for k, v in (env_overrides or {}).items()})
    return env


class SubprocessRunner(ProcessRunner):
    """Start executables with ``subprocess.Popen``."""

    def launch(
        self,
        executable: Path,
        working_dir: Path,
        env_overrides: Optional[dict[str, str]] = None,
        detach: bool = False,
    ) -> ProcessHandle:
        kwargs: dict = {}
        if detach:
            if sys.platform == "win32":
                kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
            else:
                kwargs["start_new_session"] = True
        try:
            proc = subprocess.Popen(
                [str(executable)],
                cwd=str(working_dir),
                env=build_process_env(env_overrides),
                **kwargs,
            )
        except OSError as exc:
            raise LaunchError(f"Failed to launch {executable}: {exc}") from exc
        return PopenHandle(proc)


class Supervisor:
    """Wait on a managed process while honouring interrupts.

    Args:
        cancel: Session cancellation event, shared with the scheduler.
        stop_timeout: Grace period before a hard kill on interrupt.
    """

    def __init__(
        self,
        cancel: Optional[threading.Event] = None,
        stop_timeout: float = STOP_TIMEOUT_SECONDS,
    ):
        self.cancel = cancel or threading.Event()
        self.stop_timeout = stop_timeout
        self.interrupted = False
        self._handle: Optional[ProcessHandle] = None
        self._previous: dict[int, object] = {}

    def interrupt(self, reason: str = "interrupt") -> None:
        """Cancel the session and terminate the managed process, if any.

        Outside of ``run`` this only sets the cancellation event. The
        launcher checks it between steps and teardown still runs.
        """
        self.interrupted = True
        self.cancel.set()
        handle = self._handle
        if handle is None:
            logger.warning("Received %s, finishing up before exit", reason)
            return
        logger.warning("Received %s, stopping the game", reason)
        threading.Thread(
            target=handle.terminate,
            args=(self.stop_timeout,),
            name="supervisor-terminate",
            daemon=True,
        ).start()

    def _handle_signal(self, signum, frame) -> None:
        self.interrupt(signal.Signals(signum).name)

    def install_signals(self) -> bool:
        """Route SIGINT and SIGTERM to ``interrupt``.

        Only possible on the main thread. Returns True if handlers were
        installed by this call, False if already installed or not on
        the main thread.
        """
        if self._previous:
            return False
        if threading.current_thread() is not threading.main_thread():
            return False
        for sig in (signal.SIGINT, signal.SIGTERM):
            self._previous[sig] = signal.signal(sig, self._handle_signal)
        return True

    def restore_signals(self) -> None:
        """Put back the handlers that were active before install_signals."""
        for sig, previous in self._previous.items():
            signal.signal(sig, previous)
        self._previous.clear()

    def run(self, handle: ProcessHandle) -> int:
        """Wait for ``handle`` to exit.

        Returns:
            The managed process's exit code.
        """
        self._handle = handle
        installed = self.install_signals()
        try:
            if self.cancel.is_set():
                self.interrupt("cancellation before wait")
            code = handle.wait()
        finally:
            if installed:
                self.restore_signals()
            self._handle = None
        logger.info("Game process has terminated. Exit code: %s", code)
        return code
