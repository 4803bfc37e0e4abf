"""
Background sync scheduler -- keeps endpoints fresh while the game runs.

Two kinds of workers, all bound to one session cancellation event:

    periodic   one thread per endpoint with interval > 0, pushing the
               working directory every <interval> seconds
    watched    one watchdog observer on the working directory; each
               write restarts a debounce timer, and when it finally
               fires a single pass pushes to every watched endpoint
               in registry order

A failed push is logged and counted. It never stops the scheduler or
affects other endpoints.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Sequence

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ..errors import SyncError
from .models import Endpoint
from .synchronizer import DirectorySynchronizer

logger = logging.getLogger("saveguard.sync.scheduler")

DEBOUNCE_SECONDS = 2.0


class SyncStats:
    """Thread-safe per-endpoint push counters."""

    def __init__(self):
        self._lock = threading.Lock()
        self.successes: dict[str, int] = {}
        self.failures: dict[str, int] = {}
        self.last_error: dict[str, str] = {}
        self.last_sync: Optional[datetime] = None
        self.passes = 0

    def record_success(self, label: str) -> None:
        with self._lock:
            self.successes[label] = self.successes.get(label, 0) + 1
            self.last_sync = datetime.now(timezone.utc)

    def record_failure(self, label: str, error: str) -> None:
        with self._lock:
            self.failures[label] = self.failures.get(label, 0) + 1
            self.last_error[label] = error

    def record_pass(self) -> None:
        with self._lock:
            self.passes += 1

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "successes": dict(self.successes),
                "failures": dict(self.failures),
                "last_error": dict(self.last_error),
                "last_sync": self.last_sync.isoformat() if self.last_sync else None,
                "watch_passes": self.passes,
            }


class _WriteHandler(FileSystemEventHandler):
    """Forward file write events to the scheduler's debounce."""

    def __init__(self, on_write: Callable[[str], None]):
        self._on_write = on_write

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._on_write(event.src_path)

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._on_write(event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._on_write(event.dest_path)


class BackgroundSyncScheduler:
    """Periodic and watch-driven pushes of the working directory.

    Args:
        synchronizer: Performs each push.
        working_dir: Live directory the managed process writes to.
        endpoints: Endpoints to keep fresh, in registry order.
        cancel: Session cancellation event. Setting it stops everything.
        debounce: Quiet period after the last write before a watch pass.
    """

    def __init__(
        self,
        synchronizer: DirectorySynchronizer,
        working_dir: Path,
        endpoints: Sequence[Endpoint],
        cancel: Optional[threading.Event] = None,
        debounce: float = DEBOUNCE_SECONDS,
    ):
        self.synchronizer = synchronizer
        self.working = Endpoint.local(working_dir, label="working directory")
        self.working_dir = working_dir
        self.cancel = cancel or threading.Event()
        self.debounce = debounce
        self.periodic = [e for e in endpoints if e.is_periodic]
        self.watched = [e for e in endpoints if not e.is_periodic]
        self.stats = SyncStats()

        self._threads: list[threading.Thread] = []
        self._observer: Optional[Observer] = None
        self._timer: Optional[threading.Timer] = None
        self._timer_lock = threading.Lock()
        self._pass_lock = threading.Lock()
        self._started = False
        self._stopped = False

    @property
    def watching(self) -> bool:
        return self._observer is not None

    def start(self) -> None:
        """Start periodic workers and the filesystem watch."""
        if self._started:
            return
        self._started = True

        if self.periodic:
            logger.info("--- Starting periodic background syncs ---")
        for endpoint in self.periodic:
            logger.info(
                "Periodic sync for '%s' every %ds.",
                endpoint.display, endpoint.interval,
            )
            t = threading.Thread(
                target=self._periodic_loop,
                args=(endpoint,),
                name=f"sync-periodic-{endpoint.display}",
                daemon=True,
            )
            t.start()
            self._threads.append(t)

        if self.watched:
            self._start_watch()

    def _start_watch(self) -> None:
        observer = Observer()
        handler = _WriteHandler(self.notify_write)
        try:
            observer.schedule(handler, str(self.working_dir), recursive=True)
            observer.start()
        except OSError as exc:
            logger.error(
                "Could not watch working directory '%s': %s",
                self.working_dir, exc,
            )
            return
        self._observer = observer
        logger.info("Watching '%s' for changes to sync.", self.working_dir)

        closer = threading.Thread(
            target=self._close_on_cancel, name="sync-watch-closer", daemon=True,
        )
        closer.start()
        self._threads.append(closer)

    def _close_on_cancel(self) -> None:
        self.cancel.wait()
        self._stop_observer()

    def _stop_observer(self) -> None:
        with self._timer_lock:
            observer, self._observer = self._observer, None
        if observer is None:
            return
        observer.stop()
        observer.join(timeout=5)
        logger.info("Closed filesystem watch.")

    def notify_write(self, path: str = "") -> None:
        """(Re)start the debounce timer after a write in the working dir."""
        if self.cancel.is_set():
            return
        logger.debug(
            "File change detected: %s. Debouncing sync for %.1fs...",
            Path(path).name, self.debounce,
        )
        with self._timer_lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.debounce, self._run_watch_pass)
            self._timer.daemon = True
            self._timer.name = "sync-debounce"
            self._timer.start()

    def _run_watch_pass(self) -> None:
        with self._pass_lock:
            if self.cancel.is_set():
                return
            logger.info("Debounce elapsed. Syncing %d watched endpoint(s).", len(self.watched))
            self.stats.record_pass()
            for endpoint in self.watched:
                self._sync_one(endpoint, "watched")

    def _periodic_loop(self, endpoint: Endpoint) -> None:
        while not self.cancel.wait(timeout=endpoint.interval):
            logger.info("Periodic sync triggered for '%s'...", endpoint.display)
            self._sync_one(endpoint, "periodic")
        logger.info("Stopping periodic sync for '%s'.", endpoint.display)

    def _sync_one(self, endpoint: Endpoint, trigger: str) -> bool:
        try:
            self.synchronizer.synchronize(self.working, endpoint)
        except SyncError as exc:
            logger.error("During %s sync for '%s': %s", trigger, endpoint.display, exc)
            self.stats.record_failure(endpoint.display, str(exc))
            return False
        except Exception as exc:
            logger.exception(
                "Unexpected error in %s sync for '%s'", trigger, endpoint.display,
            )
            self.stats.record_failure(endpoint.display, str(exc))
            return False
        logger.info("%s sync for '%s' successful.", trigger.capitalize(), endpoint.display)
        self.stats.record_success(endpoint.display)
        return True

    def stop(self, timeout: float = 30.0) -> None:
        """Cancel all workers and wait for in-flight pushes to finish.

        Safe to call more than once.
        """
        if self._stopped:
            return
        self._stopped = True
        self.cancel.set()

        with self._timer_lock:
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
            timer.join(timeout=timeout)

        self._stop_observer()

        for t in self._threads:
            t.join(timeout=timeout)
            if t.is_alive():
                logger.warning("Sync worker %s did not stop within %ss", t.name, timeout)

        # Let a watch pass that already started run to completion.
        if self._pass_lock.acquire(timeout=timeout):
            self._pass_lock.release()
